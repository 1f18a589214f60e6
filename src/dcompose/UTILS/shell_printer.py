"""
Printers that format environment changes for the user's shell.
"""
import os
import pwd
from typing import Optional


class PosixPrinter:
    """
    Printer for POSIX-compliant shells, e.g. sh, bash, zsh.
    """
    def comment(self, value: str) -> str:
        return f"# {value}"

    def eval_output(self, command: str) -> str:
        return f'eval "$({command})"'

    def export(self, name: str, value: str) -> str:
        return f"export {name}={self.single_quoted_escaped(value)}"

    def unset(self, name: str) -> str:
        return f"unset {name}"

    @staticmethod
    def single_quoted_escaped(value: str) -> str:
        """
        Single-quotes a value. A ' inside it closes the quoted string, adds a
        backslash-escaped quote and reopens the string; the shell joins the
        adjacent literals.
        """
        escaped = value.replace("'", "'\\''")
        return f"'{escaped}'"


class FishPrinter(PosixPrinter):
    """
    Printer for the Friendly Interactive Shell (fish).
    """
    def eval_output(self, command: str) -> str:
        return f"eval ({command})"

    def export(self, name: str, value: str) -> str:
        return f"set -gx {name} {self.single_quoted_escaped(value)}; "

    def unset(self, name: str) -> str:
        return f"set -ex {name}; "


PRINTERS = {
    'fish': FishPrinter,
}


def shell_printer(shell: Optional[str] = None) -> PosixPrinter:
    """
    Picks a printer for a shell.

    :param shell: Path or name of the shell. Defaults to the user's login shell.
    :return: A printer; POSIX syntax unless the shell is known to differ.
    """
    if shell is None:
        try:
            shell = pwd.getpwuid(os.getuid()).pw_shell
        except KeyError:
            shell = os.environ.get('SHELL', 'sh')
    return PRINTERS.get(os.path.basename(shell), PosixPrinter)()
