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

"""Per-track diagnostic dumps"""

import logging
from pathlib import Path
from typing import List, Sequence

import pandas as pd

from ..core.data_structures import Receiver, Track, Transmitter
from ..gnss.combinations import compute_track_combinations, track_signals, track_values
from .templates import FileTemplate

logger = logging.getLogger(__name__)


def track_frame(receiver: Receiver, track: Track, transmitter: Transmitter) -> pd.DataFrame:
    """Observed values and combinations of one track as a table"""
    data = {
        'time': receiver.times[track.epochs],
        'epoch': track.epochs,
    }
    for gnss_type in track.types:
        data[str(gnss_type)] = track_values(receiver, track, gnss_type)
    signals = track_signals(track.types, transmitter.frequency_number)
    if signals is not None:
        for key, values in compute_track_combinations(receiver, track, signals).items():
            data[key] = values
    return pd.DataFrame(data)


def write_tracks(template: FileTemplate, receiver: Receiver,
                 transmitters: Sequence[Transmitter]) -> List[Path]:
    """Write one CSV file per track of the receiver"""
    written = []
    if not template:
        return written
    for track in receiver.tracks:
        transmitter = transmitters[track.id_trans]
        path = template.resolve(
            station=receiver.name,
            prn=transmitter.name,
            timeStart=f"{receiver.times[track.id_epoch_start]:.0f}",
            timeEnd=f"{receiver.times[track.id_epoch_end]:.0f}",
            types='_'.join(str(t) for t in track.types),
        )
        path.parent.mkdir(parents=True, exist_ok=True)
        track_frame(receiver, track, transmitter).to_csv(path, index=False, float_format='%.4f')
        written.append(path)
    logger.debug("%s: %d track files written", receiver.name, len(written))
    return written
