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

"""Receiver observation files.

CSV with the columns ``time, prn, type, value`` and an optional ``sigma``.
Code values are in meters, phase values in cycles; phases are converted to
meters on reading.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from ..core.data_structures import Observation, Receiver, Transmitter
from ..core.signal_types import GnssType, filter_types
from ..core.status import StationDataError

logger = logging.getLogger(__name__)

DEFAULT_SIGMA = {'C': 0.3, 'L': 0.002}   # [m]
TIME_MARGIN = 0.1                        # [s] max offset of an observation from its epoch

COLUMNS = ['time', 'prn', 'type', 'value']


def read_observation_table(path) -> pd.DataFrame:
    """Raw observation table

    Raises
    ------
    StationDataError
        If the file is missing or lacks required columns
    """
    path = Path(path)
    if not path.exists():
        raise StationDataError(f"Observation file not found: {path}")
    df = pd.read_csv(path, comment='#', dtype={'prn': str, 'type': str})
    missing = [c for c in COLUMNS if c not in df.columns]
    if missing:
        raise StationDataError(f"{path}: missing column(s) {', '.join(missing)}")
    if 'sigma' not in df.columns:
        df['sigma'] = np.nan
    return df.dropna(subset=['time', 'value'])


def epoch_index(times: np.ndarray, obs_times: np.ndarray, margin: float = TIME_MARGIN) -> np.ndarray:
    """Nearest epoch of each observation time, -1 if farther than ``margin``"""
    if len(times) == 0:
        return np.full(len(obs_times), -1)
    idx = np.clip(np.searchsorted(times, obs_times), 0, len(times) - 1)
    left = np.clip(idx - 1, 0, len(times) - 1)
    nearest = np.where(np.abs(obs_times - times[left]) < np.abs(obs_times - times[idx]), left, idx)
    return np.where(np.abs(obs_times - times[nearest]) <= margin, nearest, -1)


def load_observations(receiver: Receiver, path, transmitters: Sequence[Transmitter],
                      use_type: Optional[List[str]] = None,
                      ignore_type: Optional[List[str]] = None,
                      time_margin: float = TIME_MARGIN) -> int:
    """Read observations into the receiver's epoch grid

    Observations of unknown transmitters, outside the epoch grid or not
    selected by ``use_type`` / ``ignore_type`` are skipped. Returns the
    number of (epoch, transmitter) observations stored.
    """
    df = read_observation_table(path)
    by_name: Dict[str, Transmitter] = {t.name: t for t in transmitters}
    df = df[df['prn'].isin(by_name)]
    df = df.assign(epoch=epoch_index(receiver.times, df['time'].to_numpy(dtype=float), time_margin))
    df = df[df['epoch'] >= 0]

    type_cache = {}

    def parse(text, prn):
        key = (text, prn[0])
        if key not in type_cache:
            gnss_type = GnssType.parse(text, prn[0])
            type_cache[key] = gnss_type if filter_types([gnss_type], use_type, ignore_type) else None
        return type_cache[key]

    count = 0
    for (id_epoch, prn), group in df.groupby(['epoch', 'prn'], sort=True):
        transmitter = by_name[prn]
        types, values, sigmas = [], [], []
        for text, value, sigma in zip(group['type'], group['value'], group['sigma']):
            gnss_type = parse(text, prn)
            if gnss_type is None or gnss_type in types:
                continue
            if gnss_type.is_phase:
                value = value * gnss_type.wavelength(transmitter.frequency_number)
            types.append(gnss_type)
            values.append(float(value))
            sigmas.append(DEFAULT_SIGMA.get(gnss_type.obs, 1.0) if np.isnan(sigma) else float(sigma))
        if types:
            receiver.add_observation(int(id_epoch), transmitter.id_trans,
                                     Observation(types, np.array(values), np.array(sigmas)))
            count += 1
    logger.debug("%s: %d observations read from %s", receiver.name, count, path)
    return count


def observation_frame(receiver: Receiver, transmitters: Sequence[Transmitter]) -> pd.DataFrame:
    """Usable observations of a receiver as a table (phase in cycles)"""
    rows = []
    for id_epoch, epoch in enumerate(receiver.observations):
        for id_trans, obs in sorted(epoch.items()):
            if not obs.usable:
                continue
            transmitter = transmitters[id_trans]
            for gnss_type, value, sigma in zip(obs.types, obs.values, obs.sigmas):
                if gnss_type.is_phase:
                    value = value / gnss_type.wavelength(transmitter.frequency_number)
                rows.append((receiver.times[id_epoch], transmitter.name,
                             f"{gnss_type.obs}{gnss_type.band}{gnss_type.attribute}", value, sigma))
    return pd.DataFrame(rows, columns=COLUMNS + ['sigma'])


def write_observations(path, receiver: Receiver, transmitters: Sequence[Transmitter]):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    observation_frame(receiver, transmitters).to_csv(path, index=False, float_format='%.4f')
