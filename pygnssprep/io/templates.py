# Copyright 2024 inuex35
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

"""Filename templates with ``{variable}`` substitution"""

import re
from pathlib import Path

VARIABLE = re.compile(r'\{(\w+)\}')


class FileTemplate:
    """Filename with variables such as ``{station}``, ``{prn}``, ``{timeStart}``

    Unknown variables are left in place so a template can be resolved in
    several steps.
    """

    def __init__(self, template: str = ''):
        self.template = str(template or '')

    def __bool__(self):
        return bool(self.template)

    def __eq__(self, other):
        return isinstance(other, FileTemplate) and self.template == other.template

    def __hash__(self):
        return hash(self.template)

    def __repr__(self):
        return f"FileTemplate({self.template!r})"

    @property
    def variables(self):
        return set(VARIABLE.findall(self.template))

    def resolve(self, **values) -> Path:
        def substitute(match):
            name = match.group(1)
            return str(values[name]) if name in values else match.group(0)
        return Path(VARIABLE.sub(substitute, self.template))

    def with_suffix(self, suffix: str) -> 'FileTemplate':
        """Template with ``suffix`` inserted before the file extension"""
        path = Path(self.template)
        return FileTemplate(str(path.with_name(path.stem + suffix + path.suffix)))
