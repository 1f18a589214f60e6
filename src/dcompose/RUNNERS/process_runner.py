# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Execution of external commands with captured or interactive I/O.
"""
import logging
import os
import selectors
import shlex
import signal
import subprocess
import sys
from dataclasses import dataclass
from typing import IO, Any, Dict, Optional, Sequence, Tuple

from ..errors import CommandError, SpawnError

logger = logging.getLogger(__name__)

# Largest chunk taken from a ready stream in one read.
CHUNK_SIZE = 65536

# Seconds to wait for any stream to become readable.
POLL_TIMEOUT = 1.0

# Seconds an interrupted child gets to exit before we stop waiting for it.
INTERRUPT_TIMEOUT = 5.0


@dataclass
class ProcessResult:
    """Exit status and captured output of a finished command."""

    status: int
    stdout: bytes = b""
    stderr: bytes = b""

    @property
    def success(self) -> bool:
        return self.status == 0

    def output(self, errors: str = "replace") -> str:
        """Decodes captured stdout."""
        return self.stdout.decode(errors=errors)


class ProcessRunner:
    """
    Runs a command and drains its stdout and stderr in a single thread.

    In interactive mode the command's output is also copied to our own
    terminal as it arrives, and our stdin is forwarded to the command, so
    that the user can watch and talk to it.
    """

    def __init__(self,
                 stdin: Optional[IO] = None,
                 stdout: Optional[IO] = None,
                 stderr: Optional[IO] = None):
        """
        Initializes the runner.

        Args:
            stdin (Optional[IO]): Stream forwarded to commands in interactive mode. Defaults to sys.stdin.
            stdout (Optional[IO]): Stream that echoes command stdout in interactive mode. Defaults to sys.stdout.
            stderr (Optional[IO]): Stream that echoes command stderr in interactive mode. Defaults to sys.stderr.
        """
        self.stdin = stdin
        self.stdout = stdout
        self.stderr = stderr

    def run(self,
            argv: Sequence[Any],
            interactive: bool = False,
            cwd: Optional[str] = None) -> ProcessResult:
        """
        Runs a command to completion.

        A nonzero exit status is not an error here; see run_or_raise.

        Args:
            argv (Sequence[Any]): Program name followed by its arguments. No shell is involved.
            interactive (bool): Echo output and forward stdin while the command runs.
            cwd (Optional[str]): Directory to run the command in.

        Returns:
            ProcessResult: Exit status with everything the command wrote.

        Raises:
            SpawnError: If the program cannot be started.
        """
        argv = [str(arg) for arg in argv]
        logger.debug("Running %s", shlex.join(argv))

        try:
            process = subprocess.Popen(
                argv,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=cwd,
                shell=False
            )
        except OSError as e:
            raise SpawnError(argv[0], e.strerror or str(e)) from e

        try:
            stdout, stderr = self._drain(process, interactive)
            # The output streams are at EOF, so this rarely blocks for long.
            status = process.wait()
        except KeyboardInterrupt:
            try:
                process.send_signal(signal.SIGINT)
                process.wait(timeout=INTERRUPT_TIMEOUT)
            except OSError:
                pass
            except subprocess.TimeoutExpired:
                logger.warning("%s did not exit after SIGINT", argv[0])
            raise
        finally:
            for stream in (process.stdin, process.stdout, process.stderr):
                _close(stream)

        if status != 0:
            logger.debug("%s exited with status %d", argv[0], status)
        return ProcessResult(status=status, stdout=stdout, stderr=stderr)

    def run_or_raise(self,
                     argv: Sequence[Any],
                     interactive: bool = False,
                     cwd: Optional[str] = None) -> ProcessResult:
        """
        Like run, but a nonzero exit status raises CommandError.
        """
        result = self.run(argv, interactive=interactive, cwd=cwd)
        if not result.success:
            raise CommandError(str(argv[0]), result.status, result.stdout + result.stderr)
        return result

    def _drain(self, process: subprocess.Popen, interactive: bool) -> Tuple[bytes, bytes]:
        """
        Reads both output streams until EOF, forwarding input as it comes.

        Input is held in a pending buffer and written to the child only when
        its stdin is writable, so a child that is busy writing output never
        stalls the loop. Our stdin is not read again until the buffer is empty.

        :param process: The running child.
        :param interactive: Whether to echo output and forward our stdin.
        :return: Everything read from stdout and stderr.
        """
        buffers: Dict[str, bytearray] = {"stdout": bytearray(), "stderr": bytearray()}
        echo: Dict[str, IO] = {}
        if interactive:
            echo["stdout"] = _binary(self.stdout or sys.stdout)
            echo["stderr"] = _binary(self.stderr or sys.stderr)

        selector = selectors.DefaultSelector()
        selector.register(process.stdout, selectors.EVENT_READ, "stdout")
        selector.register(process.stderr, selectors.EVENT_READ, "stderr")

        source = _fileno(self.stdin or sys.stdin) if interactive else None
        if source is not None:
            try:
                selector.register(source, selectors.EVENT_READ, "stdin")
            except (OSError, ValueError):
                # Regular files cannot be polled.
                source = None
        if source is None:
            _close(process.stdin)
        else:
            os.set_blocking(process.stdin.fileno(), False)

        sink = process.stdin.fileno() if source is not None else None
        pending = bytearray()
        source_done = False

        try:
            while any(key.data in buffers for key in selector.get_map().values()):
                for key, _ in selector.select(timeout=POLL_TIMEOUT):
                    if key.data == "stdin":
                        data = os.read(source, CHUNK_SIZE)
                        selector.unregister(source)
                        if not data:
                            source_done = True
                            _close(process.stdin)
                            continue
                        pending += data
                        selector.register(sink, selectors.EVENT_WRITE, "sink")
                        continue

                    if key.data == "sink":
                        try:
                            written = os.write(sink, pending)
                        except BlockingIOError:
                            continue
                        except BrokenPipeError:
                            # The child stopped reading; drop whatever is left.
                            logger.debug("%s closed its stdin", process.args[0])
                            pending.clear()
                            selector.unregister(sink)
                            source_done = True
                            _close(process.stdin)
                            continue
                        del pending[:written]
                        if not pending:
                            selector.unregister(sink)
                            if not source_done:
                                selector.register(source, selectors.EVENT_READ, "stdin")
                        continue

                    data = os.read(key.fd, CHUNK_SIZE)
                    if not data:
                        selector.unregister(key.fileobj)
                        continue
                    buffers[key.data] += data
                    if key.data in echo:
                        echo[key.data].write(data)
                        echo[key.data].flush()
        finally:
            selector.close()

        return bytes(buffers["stdout"]), bytes(buffers["stderr"])


def _binary(stream: IO) -> IO:
    """Returns the byte-oriented side of a text stream."""
    return getattr(stream, "buffer", stream)


def _fileno(stream: IO) -> Optional[int]:
    """Returns the descriptor behind a stream, or None if it has none."""
    try:
        return stream.fileno()
    except (AttributeError, OSError, ValueError):
        return None


def _close(stream: Optional[IO]):
    if stream is None or stream.closed:
        return
    try:
        stream.close()
    except BrokenPipeError:
        # The child went away with input still buffered for it.
        pass
