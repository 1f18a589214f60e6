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
Translation of keyword options into command-line flags.
"""
from typing import Any, List, Mapping


class OptionEncoder:
    """
    Turns a mapping of options into golang-style CLI flags.

    1) single-character names become short options: ``{"d": True}`` -> ``-d``,
       ``{"f": "x"}`` -> ``-f x``
    2) longer names become long options with underscores hyphenated:
       ``{"no_deps": True}`` -> ``--no-deps``, ``{"timeout": 5}`` -> ``--timeout=5``
    3) ``False`` and ``None`` omit the flag
    """

    def __init__(self, negate_false: bool = False):
        """
        :param negate_false: emit ``--no-<name>`` for long options that are
            exactly ``False`` instead of omitting them.
        """
        self.negate_false = negate_false

    def encode(self, options: Mapping[str, Any]) -> List[str]:
        """
        Encodes options in mapping order.

        :param options: Option names and their values.
        :return: The flag tokens.
        """
        tokens = []
        for name, value in options.items():
            name = str(name)
            if len(name) == 1:
                if value is True:
                    tokens.append(f"-{name}")
                elif value is not False and value is not None:
                    tokens.extend([f"-{name}", str(value)])
            else:
                name = name.replace("_", "-")
                if value is True:
                    tokens.append(f"--{name}")
                elif value is False:
                    if self.negate_false:
                        tokens.append(f"--no-{name}")
                elif value is not None:
                    tokens.append(f"--{name}={value}")
        return tokens

    def command(self, *args: Any) -> List[str]:
        """
        Flattens words, option mappings and lists of words into one argv.

        :param args: Each item is a mapping (encoded as flags), a list or tuple
            (flattened) or a scalar word.
        :return: The argument vector.
        """
        argv = []
        for arg in args:
            if isinstance(arg, Mapping):
                argv.extend(self.encode(arg))
            elif isinstance(arg, (list, tuple)):
                argv.extend(self.command(*arg))
            elif arg is not None:
                argv.append(str(arg))
        return argv
