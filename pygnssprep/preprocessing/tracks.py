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

"""Track segmentation: continuous runs of type-complete observations"""

import logging
from collections import Counter
from typing import List, Optional, Sequence

from ..core.data_structures import Receiver, Track, Transmitter
from ..core.signal_types import GnssType

logger = logging.getLogger(__name__)


def find_track_runs(receiver: Receiver, id_trans: int, types: Sequence[GnssType],
                    transmitter: Optional[Transmitter] = None) -> List[List[int]]:
    """All maximal runs of epochs with usable observations holding ``types``

    An epoch breaks a run if it is disabled, has no observation for the
    transmitter, or misses one of the required types.
    """
    runs = []
    current = []
    for id_epoch in range(len(receiver.times)):
        obs = receiver.observation(id_epoch, id_trans)
        complete = obs is not None and obs.has_types(types)
        if complete and transmitter is not None:
            complete = transmitter.usable(id_epoch)
        if complete:
            current.append(id_epoch)
        elif current:
            runs.append(current)
            current = []
    if current:
        runs.append(current)
    return runs


def segment_tracks(receiver: Receiver, id_trans: int, types: Sequence[GnssType],
                   min_obs_count: int, transmitter: Optional[Transmitter] = None,
                   first_arc_id: int = 0) -> List[Track]:
    """Tracks with at least ``min_obs_count`` epochs; shorter runs are dropped"""
    tracks = []
    for run in find_track_runs(receiver, id_trans, types, transmitter):
        if len(run) < min_obs_count:
            continue
        tracks.append(Track(id_trans, run, list(types), arc_id=first_arc_id + len(tracks)))
    return tracks


def select_track_types(receiver: Receiver, id_trans: int,
                       frequency_number: int = 0) -> Optional[List[GnssType]]:
    """Dual-frequency type set for the tracks of one transmitter

    The most frequently observed phase type and the most frequent phase type
    on another frequency, each with the most frequent code type on its
    frequency. Further phase types on these frequencies are added if they
    are observed whenever the core set is. Returns None if no such set
    exists.
    """
    counts = Counter()
    epochs = []
    for id_epoch in range(len(receiver.times)):
        obs = receiver.observation(id_epoch, id_trans)
        if obs is None:
            continue
        epochs.append(obs)
        counts.update(obs.types)

    def has_frequency(gnss_type):
        try:
            gnss_type.frequency(frequency_number)
        except ValueError:
            return False
        return True

    ranked = [t for t, _ in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
              if has_frequency(t)]
    phases = []
    for gnss_type in ranked:
        if gnss_type.is_phase and all(not gnss_type.same_frequency(p) for p in phases):
            phases.append(gnss_type)
        if len(phases) == 2:
            break
    if len(phases) < 2:
        return None

    core = list(phases)
    for phase in phases:
        code = next((t for t in ranked if t.is_code and t.same_frequency(phase)), None)
        if code is None:
            return None
        core.append(code)

    complete = [obs for obs in epochs if obs.has_types(core)]
    extras = [t for t in ranked
              if t.is_phase and t not in core and any(t.same_frequency(p) for p in phases)
              and all(obs.index(t) is not None for obs in complete)]
    return core + extras


def create_tracks(receiver: Receiver, transmitters: Sequence[Transmitter],
                  min_obs_count: int) -> List[Track]:
    """Segment all transmitters observed by the receiver into ``receiver.tracks``"""
    tracks = []
    for id_trans in receiver.transmitter_ids():
        transmitter = transmitters[id_trans]
        if not transmitter.usable():
            continue
        types = select_track_types(receiver, id_trans, transmitter.frequency_number)
        if types is None:
            logger.debug("%s: no dual-frequency type set for %s", receiver.name, transmitter.name)
            continue
        tracks.extend(segment_tracks(receiver, id_trans, types, min_obs_count, transmitter,
                                     first_arc_id=len(tracks)))
    receiver.tracks = tracks
    return tracks


def remove_untracked_observations(receiver: Receiver) -> int:
    """Drop observations (and signal types) not covered by a track

    Returns the number of removed observations.
    """
    covered = {}
    for track in receiver.tracks:
        for id_epoch in track.epochs:
            covered[(id_epoch, track.id_trans)] = track.types

    removed = 0
    for id_epoch, epoch in enumerate(receiver.observations):
        for id_trans in list(epoch):
            types = covered.get((id_epoch, id_trans))
            if types is None:
                del epoch[id_trans]
                removed += 1
                continue
            obs = epoch[id_trans]
            for gnss_type in [t for t in obs.types if t not in types]:
                obs.remove_type(gnss_type)
    return removed
