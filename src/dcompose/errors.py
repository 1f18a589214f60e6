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
Exceptions raised by dcompose.
"""
from typing import Any, Union


class DcomposeError(Exception):
    """Base class for every error raised by this package."""


class SpawnError(DcomposeError):
    """
    The operating system refused to start a program, usually because it is
    not installed or not executable.
    """

    def __init__(self, program: str, reason: str = "cannot execute"):
        self.program = program
        self.reason = reason
        super().__init__(f"'{program}': {reason}")


class CommandError(DcomposeError):
    """
    A wrapped command exited with a nonzero status.

    The message carries only the first non-empty line of the command's
    output; the full text is kept in ``detail``.
    """

    def __init__(self, command: str, status: Union[int, Any], detail: Union[str, bytes, None]):
        if isinstance(detail, bytes):
            detail = detail.decode(errors="replace")
        detail = detail or ""

        self.command = command
        self.status = status
        self.detail = detail

        brief = next((line.strip() for line in detail.splitlines() if line.strip()), "(no output)")
        if isinstance(status, int):
            shown = str(status)
        else:
            shown = f"'{status}'"

        super().__init__(f"'{command}' failed with status {shown}: {brief}")


class ContainerParseError(DcomposeError, ValueError):
    """A line of ``docker ps`` output could not be decoded."""

    def __init__(self, field: str, value: str, reason: str):
        self.field = field
        self.value = value
        super().__init__(f"{reason} in {field}: '{value}'")


class BadSubstitution(DcomposeError, ValueError):
    """An address reference is neither a URL nor a host:port pair."""


class NoService(DcomposeError, LookupError):
    """
    A service is not running, or does not publish the requested port.
    The two cases cannot be told apart.
    """
