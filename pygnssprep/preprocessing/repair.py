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

"""Cycle slip repair across the boundaries found by slip detection.

For two consecutive tracks of one arc the jumps of the combinations at the
boundary are estimated from the epochs next to it. The Melbourne-Wuebbena
jump gives the wide-lane integer ``Nw = n1 - n2``, the geometry-free jump
(in meters, extrapolated linearly from both sides) then fixes

    n1 = round((dGF - Nw * lambda2) / (lambda1 - lambda2)),  n2 = n1 - Nw

Further phase types on the same frequency follow from the jump of their
difference to the core phase. The phases of all later tracks of the arc are
corrected and the tracks are merged. If ``n1`` is not close enough to an
integer the boundary is left as it is.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np

from ..core.constants import REPAIR_FIT_EPOCHS, REPAIR_MIN_EPOCHS, REPAIR_TOLERANCE
from ..core.data_structures import Receiver, Track, Transmitter
from ..core.signal_types import GnssType
from ..gnss.combinations import (GF, MW, SAME_FREQUENCY, TrackSignals,
                                 compute_track_combinations, track_signals)

logger = logging.getLogger(__name__)


@dataclass
class SlipCorrection:
    """Integer cycles to subtract from the phases after a boundary"""
    cycles: Dict[GnssType, int] = field(default_factory=dict)

    @property
    def is_zero(self) -> bool:
        return all(n == 0 for n in self.cycles.values())


@dataclass
class RepairResult:
    repaired: int = 0
    unresolved: int = 0
    dropped: int = 0


def _edge_value(times: np.ndarray, values: np.ndarray, at: float, linear: bool) -> float:
    if linear and len(values) >= 2 and times[-1] > times[0]:
        coeff = np.polyfit(times - at, values, 1)
        return float(coeff[-1])
    return float(np.mean(values))


def estimate_slip(receiver: Receiver, before: Track, after: Track,
                  signals: TrackSignals, fit_epochs: int = REPAIR_FIT_EPOCHS,
                  tolerance: float = REPAIR_TOLERANCE) -> Optional[SlipCorrection]:
    """Integer slip between two consecutive tracks, None if not resolvable"""
    if before.count < REPAIR_MIN_EPOCHS or after.count < REPAIR_MIN_EPOCHS:
        return None
    comb_before = compute_track_combinations(receiver, before, signals)
    comb_after = compute_track_combinations(receiver, after, signals)
    t_before = receiver.times[before.epochs][-fit_epochs:]
    t_after = receiver.times[after.epochs][:fit_epochs]
    at = 0.5 * (t_before[-1] + t_after[0])

    def jump(key, linear):
        return (_edge_value(t_after, comb_after[key][:fit_epochs], at, linear)
                - _edge_value(t_before, comb_before[key][-fit_epochs:], at, linear))

    nw = int(round(jump(MW, linear=False)))
    n1_float = (jump(GF, linear=True) - nw * signals.lam2) / (signals.lam1 - signals.lam2)
    n1 = int(round(n1_float))
    if abs(n1_float - n1) > tolerance:
        logger.debug("%s: n1 %.2f not integer at epoch %d", receiver.name, n1_float,
                     after.id_epoch_start)
        return None
    correction = SlipCorrection({signals.phase1: n1, signals.phase2: n1 - nw})

    for extra, reference in signals.extra_phases.items():
        key = SAME_FREQUENCY + str(extra)
        if key not in comb_before or key not in comb_after:
            return None
        d = jump(key, linear=False)
        if abs(d - round(d)) > tolerance:
            return None
        correction.cycles[extra] = correction.cycles[reference] + int(round(d))
    return correction


def apply_correction(receiver: Receiver, tracks: Sequence[Track], signals: TrackSignals,
                     correction: SlipCorrection):
    """Subtract the slips from the phases of the given tracks"""
    for track in tracks:
        for id_epoch in track.epochs:
            obs = receiver.observations[id_epoch].get(track.id_trans)
            if obs is None:
                continue
            for gnss_type, cycles in correction.cycles.items():
                idx = obs.index(gnss_type)
                if idx is not None and cycles:
                    obs.values[idx] -= cycles * signals.wavelength(gnss_type)
        track.combinations = {}


def cycle_slip_repair(receiver: Receiver, transmitters: Sequence[Transmitter],
                      min_obs_count: int) -> RepairResult:
    """Merge the sub-tracks of each arc where the slip is resolvable

    Tracks with fewer than ``min_obs_count`` epochs are dropped afterwards.
    """
    result = RepairResult()
    arcs = defaultdict(list)
    for track in receiver.tracks:
        arcs[(track.id_trans, track.arc_id)].append(track)

    tracks = []
    for (id_trans, _), arc in sorted(arcs.items()):
        arc.sort(key=lambda t: t.id_epoch_start)
        signals = track_signals(arc[0].types, transmitters[id_trans].frequency_number)
        merged = [arc[0]]
        for i in range(1, len(arc)):
            current, following = merged[-1], arc[i]
            correction = None
            if signals is not None and following.slip_at_start:
                correction = estimate_slip(receiver, current, following, signals)
            if correction is None:
                merged.append(following)
                result.unresolved += 1
                continue
            if not correction.is_zero:
                logger.debug("%s %s: repaired slip %s at epoch %d", receiver.name,
                             transmitters[id_trans].name,
                             {str(t): n for t, n in correction.cycles.items() if n},
                             following.id_epoch_start)
                apply_correction(receiver, arc[i:], signals, correction)
            current.merge(following)
            result.repaired += 1
        tracks.extend(merged)

    kept = [t for t in tracks if t.count >= min_obs_count]
    result.dropped = len(tracks) - len(kept)
    kept.sort(key=lambda t: (t.id_trans, t.id_epoch_start))
    receiver.tracks = kept
    return result
