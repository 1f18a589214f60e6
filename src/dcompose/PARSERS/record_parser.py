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
Parser for the parenthesized records printed by ``docker ps --format``.
"""
import re
from typing import List

ANSI_ESCAPE = re.compile(r'\x1b\[[0-9;]*[A-Za-z]')


class RecordParser:
    """
    Splits a line such as ``(abc) (nginx) (1.2kB (virtual 7MB))`` into fields.
    """
    @staticmethod
    def parse(line: str) -> List[str]:
        """
        Extracts the top-level parenthesized groups of a line.

        Text between groups is discarded. Nested parentheses belong to the
        enclosing field. A group that is never closed is dropped.

        :param line: One line of output.
        :return: The field contents, in order.
        """
        fields = []
        current = []
        depth = 0
        for char in line:
            if char == '(':
                if depth > 0:
                    current.append(char)
                depth += 1
            elif char == ')' and depth > 0:
                depth -= 1
                if depth == 0:
                    fields.append(''.join(current))
                    current = []
                else:
                    current.append(char)
            elif depth > 0:
                current.append(char)
        return fields

    @staticmethod
    def strip_ansi(text: str) -> str:
        """
        Removes terminal color and cursor escape sequences.

        :param text: Text that may have been written for a TTY.
        :return: The plain text.
        """
        return ANSI_ESCAPE.sub('', text)
