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

"""Station metadata, antenna/accuracy definitions and station positions.

Station info file (JSON)::

    {
        "markerName": "WTZR",
        "markerNumber": "14201M010",
        "approxPosition": [4075580.4, 931853.9, 4801568.2],
        "antennas": [{"name": "LEIAR25.R3", "serial": "10281", "radome": "LEIT",
                      "timeStart": 0, "timeEnd": null, "position": [0, 0, 0.071]}],
        "receivers": [{"name": "LEICA GR50", "serial": "1830399", "timeStart": 0}]
    }

Antenna and accuracy definition files (JSON) hold a list of definitions::

    [{"name": "LEIAR25.R3", "serial": "", "radome": "LEIT",
      "patterns": [{"type": "L1*G", "offset": [0.001, 0.0, 0.16],
                    "zenith": [0, 30, 60, 90], "values": [0, 0.001, 0.003, 0.006]}]}]

Station position files are whitespace tables ``time x y z``.
"""

import json
import logging
from pathlib import Path
from typing import List, Optional

import numpy as np
import pandas as pd

from ..core.signal_types import GnssType
from ..core.station_info import (AntennaDefinition, AntennaInstallation, AntennaPattern,
                                 DefinitionRegistry, ReceiverInstallation, StationInfo)
from ..core.status import ConfigurationError, StationDataError

logger = logging.getLogger(__name__)


def _time(value, default):
    return default if value is None else float(value)


def _read_json(path, error_cls):
    path = Path(path)
    if not path.exists():
        raise error_cls(f"File not found: {path}")
    try:
        with open(path, encoding='utf-8') as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise error_cls(f"Invalid file {path}: {e}") from e


def _pattern_type(text: str) -> GnssType:
    # attribute and system may be wildcards, the band has to be given
    text = text.strip()
    if len(text) == 3:
        text += '*'
    if len(text) != 4 or not text[1].isdigit():
        raise ValueError(f"Invalid pattern type: '{text}'")
    return GnssType(text[0].upper(), int(text[1]), text[2].upper(), text[3].upper())


def parse_antenna_definition(data: dict) -> AntennaDefinition:
    patterns = []
    for p in data.get('patterns', []):
        zenith = np.asarray(p.get('zenith', [0.0, 90.0]), dtype=float)
        values = np.asarray(p.get('values', np.zeros(len(zenith))), dtype=float)
        if zenith.shape != values.shape:
            raise ValueError(f"{data.get('name')}: zenith and values differ in length")
        patterns.append(AntennaPattern(
            gnss_type=_pattern_type(p['type']),
            offset=np.asarray(p.get('offset', [0.0, 0.0, 0.0]), dtype=float),
            zenith_deg=zenith,
            values=values,
        ))
    return AntennaDefinition(data['name'], data.get('serial', ''), data.get('radome', ''), patterns)


def read_definition_registry(path) -> DefinitionRegistry:
    """Antenna or accuracy definitions; a missing file is a configuration error"""
    data = _read_json(path, ConfigurationError)
    try:
        return DefinitionRegistry([parse_antenna_definition(d) for d in data])
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid definition file {path}: {e}") from e


def write_definition_registry(path, registry: DefinitionRegistry):
    data = [{
        'name': d.name, 'serial': d.serial, 'radome': d.radome,
        'patterns': [{
            'type': str(p.gnss_type),
            'offset': [float(v) for v in p.offset],
            'zenith': [float(v) for v in p.zenith_deg],
            'values': [float(v) for v in p.values],
        } for p in d.patterns],
    } for d in registry.definitions]
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2)


def read_receiver_definitions(path) -> List[ReceiverInstallation]:
    data = _read_json(path, ConfigurationError)
    return [ReceiverInstallation(
        name=d['name'],
        serial=d.get('serial', ''),
        version=d.get('version', ''),
        observed_types=[GnssType.parse(t) for t in d.get('observedTypes', [])] or None,
    ) for d in data]


def parse_station_info(data: dict) -> StationInfo:
    antennas = []
    for a in data.get('antennas', []):
        antennas.append(AntennaInstallation(
            name=a['name'],
            serial=a.get('serial', ''),
            radome=a.get('radome', ''),
            time_start=_time(a.get('timeStart'), -np.inf),
            time_end=_time(a.get('timeEnd'), np.inf),
            position=np.asarray(a.get('position', [0.0, 0.0, 0.0]), dtype=float),
            local2antenna=np.asarray(a.get('local2antenna', np.eye(3)), dtype=float),
        ))
    receivers = []
    for r in data.get('receivers', []):
        receivers.append(ReceiverInstallation(
            name=r['name'],
            serial=r.get('serial', ''),
            version=r.get('version', ''),
            time_start=_time(r.get('timeStart'), -np.inf),
            time_end=_time(r.get('timeEnd'), np.inf),
        ))
    return StationInfo(
        marker_name=data['markerName'],
        marker_number=data.get('markerNumber', ''),
        approx_position=np.asarray(data.get('approxPosition', [0.0, 0.0, 0.0]), dtype=float),
        antennas=antennas,
        receivers=receivers,
    )


def read_station_info(path) -> StationInfo:
    """Station metadata of one station

    Raises
    ------
    StationDataError
        If the file is missing or malformed
    """
    data = _read_json(path, StationDataError)
    try:
        return parse_station_info(data)
    except (KeyError, TypeError, ValueError) as e:
        raise StationDataError(f"Invalid station info {path}: {e}") from e


def read_station_position(path, time_start: float, time_end: float) -> Optional[np.ndarray]:
    """Approximate position from a ``time x y z`` table

    A single row is a static position; otherwise the first row inside the
    interval is used. Returns None if nothing applies.
    """
    df = pd.read_csv(path, sep=r'\s+', comment='#', header=None,
                     names=['time', 'x', 'y', 'z'])
    if df.empty:
        return None
    if len(df) > 1:
        df = df[(df['time'] >= time_start) & (df['time'] <= time_end)]
        if df.empty:
            return None
    return df[['x', 'y', 'z']].iloc[0].to_numpy(dtype=float)


def write_station_info(path, info: StationInfo):
    """Inverse of :func:`read_station_info` (used to set up station data)"""
    def time_value(t):
        return None if not np.isfinite(t) else float(t)

    data = {
        'markerName': info.marker_name,
        'markerNumber': info.marker_number,
        'approxPosition': [float(v) for v in info.approx_position],
        'antennas': [{
            'name': a.name, 'serial': a.serial, 'radome': a.radome,
            'timeStart': time_value(a.time_start), 'timeEnd': time_value(a.time_end),
            'position': [float(v) for v in a.position],
        } for a in info.antennas],
        'receivers': [{
            'name': r.name, 'serial': r.serial, 'version': r.version,
            'timeStart': time_value(r.time_start), 'timeEnd': time_value(r.time_end),
        } for r in info.receivers],
    }
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2)
