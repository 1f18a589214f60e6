import io
import os
import selectors
import signal
import subprocess
import sys
import threading

import pytest

from dcompose.errors import CommandError, SpawnError
from dcompose.RUNNERS.process_runner import ProcessResult, ProcessRunner


def python(code):
    return [sys.executable, "-c", code]


class TestRun:
    """Tests for ProcessRunner.run against real processes."""

    def test_captures_stdout(self):
        result = ProcessRunner().run(python("import sys; sys.stdout.write('hello\\nworld')"))
        assert result == ProcessResult(status=0, stdout=b"hello\nworld", stderr=b"")
        assert result.success
        assert result.output() == "hello\nworld"

    def test_nonzero_exit_with_stderr(self):
        result = ProcessRunner().run(python("import sys; sys.stderr.write('bad'); sys.exit(2)"))
        assert result.status == 2
        assert result.stderr == b"bad"
        assert not result.success

    def test_binary_output(self):
        result = ProcessRunner().run(python("import sys; sys.stdout.buffer.write(bytes(range(256)))"))
        assert result.stdout == bytes(range(256))

    def test_large_output_on_both_streams(self):
        code = "import sys; sys.stdout.write('o' * 500000); sys.stderr.write('e' * 500000)"
        result = ProcessRunner().run(python(code))
        assert result.stdout == b"o" * 500000
        assert result.stderr == b"e" * 500000

    def test_stdin_closed_when_not_interactive(self):
        result = ProcessRunner().run(python("import sys; print(repr(sys.stdin.read()))"))
        assert result.output().strip() == "''"

    def test_arguments_are_not_interpreted_by_a_shell(self):
        result = ProcessRunner().run(python("import sys; print(sys.argv[1])") + ["$HOME; echo hi"])
        assert result.output() == "$HOME; echo hi\n"

    def test_cwd(self, tmp_path):
        result = ProcessRunner().run(python("import os; print(os.getcwd())"), cwd=str(tmp_path))
        assert os.path.realpath(result.output().strip()) == os.path.realpath(str(tmp_path))

    def test_missing_program(self):
        with pytest.raises(SpawnError) as e:
            ProcessRunner().run(["dcompose-no-such-program-xyz"])
        assert e.value.program == "dcompose-no-such-program-xyz"
        assert "dcompose-no-such-program-xyz" in str(e.value)


class TestInteractive:
    """Tests for interactive mode."""

    def test_echoes_output(self):
        out = io.BytesIO()
        err = io.BytesIO()
        runner = ProcessRunner(stdin=io.BytesIO(), stdout=out, stderr=err)
        code = "import sys; sys.stdout.write('to out'); sys.stderr.write('to err')"
        result = runner.run(python(code), interactive=True)
        assert result.stdout == b"to out"
        assert result.stderr == b"to err"
        assert out.getvalue() == b"to out"
        assert err.getvalue() == b"to err"

    def test_forwards_stdin(self):
        read_fd, write_fd = os.pipe()
        os.write(write_fd, b"ping\n")
        os.close(write_fd)
        with os.fdopen(read_fd, "rb") as stdin:
            runner = ProcessRunner(stdin=stdin, stdout=io.BytesIO(), stderr=io.BytesIO())
            result = runner.run(python("import sys; print(sys.stdin.read().upper())"), interactive=True)
        assert result.output().strip() == "PING"

    def test_child_that_ignores_stdin(self):
        read_fd, write_fd = os.pipe()
        try:
            with os.fdopen(read_fd, "rb") as stdin:
                runner = ProcessRunner(stdin=stdin, stdout=io.BytesIO(), stderr=io.BytesIO())
                result = runner.run(python("print('done')"), interactive=True)
        finally:
            os.close(write_fd)
        assert result.output() == "done\n"

    def test_input_waits_while_child_is_writing(self):
        read_fd, write_fd = os.pipe()
        payload = b"i" * 200000

        def feed():
            with os.fdopen(write_fd, "wb") as pipe:
                pipe.write(payload)

        feeder = threading.Thread(target=feed, daemon=True)
        feeder.start()

        results = []
        code = ("import sys; sys.stdout.write('o' * 300000); sys.stdout.flush(); "
                "sys.stdout.write(str(len(sys.stdin.buffer.read())))")
        with os.fdopen(read_fd, "rb") as stdin:
            runner = ProcessRunner(stdin=stdin, stdout=io.BytesIO(), stderr=io.BytesIO())
            worker = threading.Thread(
                target=lambda: results.append(runner.run(python(code), interactive=True)),
                daemon=True,
            )
            worker.start()
            worker.join(timeout=30)
            assert not worker.is_alive()
        feeder.join(timeout=5)

        assert results[0].stdout == b"o" * 300000 + str(len(payload)).encode()


def test_interrupt_is_forwarded_to_the_child(monkeypatch):
    started = []

    class RecordingPopen(subprocess.Popen):
        def __init__(self, *args, **kwargs):
            super().__init__(*args, **kwargs)
            started.append(self)

    def interrupted(self, timeout=None):
        raise KeyboardInterrupt

    monkeypatch.setattr(subprocess, "Popen", RecordingPopen)
    monkeypatch.setattr(selectors.DefaultSelector, "select", interrupted)

    with pytest.raises(KeyboardInterrupt):
        ProcessRunner().run(python("import time; time.sleep(30)"))

    assert started[0].returncode == -signal.SIGINT


def test_run_or_raise():
    runner = ProcessRunner()
    assert runner.run_or_raise(python("print('ok')")).output() == "ok\n"
    with pytest.raises(CommandError) as e:
        runner.run_or_raise(python("import sys; print('\\nfirst\\nsecond'); sys.exit(3)"))
    assert e.value.status == 3
    assert e.value.command == sys.executable
    assert str(e.value).endswith("failed with status 3: first")
