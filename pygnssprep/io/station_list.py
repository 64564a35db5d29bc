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

"""Station list: one logical station per line, alternatives in priority order"""

from pathlib import Path
from typing import List

from ..core.status import ConfigurationError


def parse_station_list(text: str) -> List[List[str]]:
    stations = []
    for line in text.splitlines():
        line = line.split('#', 1)[0].strip()
        if line:
            stations.append(line.split())
    return stations


def read_station_list(path) -> List[List[str]]:
    """Station names with alternatives, e.g. ``wtzr wtzz wtza``

    Raises
    ------
    ConfigurationError
        If the file does not exist
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Station list not found: {path}")
    return parse_station_list(path.read_text(encoding='utf-8'))


def write_station_list(path, stations: List[List[str]]):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(''.join(' '.join(alternatives) + '\n' for alternatives in stations),
                    encoding='utf-8')
