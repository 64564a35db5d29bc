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

"""Linear combinations of dual-frequency observations for slip analysis.

All phase values are stored in meters. The combinations are expressed in
cycles of the slip they are sensitive to:

- TEC-like (geometry-free): ``(L1 - L2) / (lambda1 - lambda2)``, a simultaneous
  one-cycle slip on both frequencies changes it by one
- Melbourne-Wuebbena: wide-lane phase minus narrow-lane code in wide-lane
  cycles, changes by ``n1 - n2``
- same-frequency: difference of two phase types on one frequency in cycles
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..core.constants import CLIGHT
from ..core.data_structures import Receiver, Track
from ..core.signal_types import GnssType

TEC = 'tec'
MW = 'mw'
GF = 'gf'           # geometry-free in meters, used for repair
SAME_FREQUENCY = 'sf:'


def ionosphere_free(v1, v2, f1, f2):
    """First order ionosphere-free combination"""
    g1, g2 = f1 * f1, f2 * f2
    return (g1 * v1 - g2 * v2) / (g1 - g2)


def ionosphere_free_sigma(s1, s2, f1, f2):
    g1, g2 = f1 * f1, f2 * f2
    return np.sqrt((g1 * s1) ** 2 + (g2 * s2) ** 2) / (g1 - g2)


def geometry_free_cycles(L1, L2, lam1, lam2):
    return (L1 - L2) / (lam1 - lam2)


def melbourne_wuebbena_cycles(L1, L2, C1, C2, f1, f2):
    lam_wl = CLIGHT / (f1 - f2)
    wide_lane = (f1 * L1 - f2 * L2) / (f1 - f2)
    narrow_lane = (f1 * C1 + f2 * C2) / (f1 + f2)
    return (wide_lane - narrow_lane) / lam_wl


@dataclass
class TrackSignals:
    """Signal layout of a dual-frequency track; index 1 is the higher frequency"""
    phase1: GnssType
    phase2: GnssType
    code1: GnssType
    code2: GnssType
    frequency_number: int = 0
    # extra phase type -> core phase type on the same frequency
    extra_phases: Dict[GnssType, GnssType] = field(default_factory=dict)

    @property
    def f1(self) -> float:
        return self.phase1.frequency(self.frequency_number)

    @property
    def f2(self) -> float:
        return self.phase2.frequency(self.frequency_number)

    @property
    def lam1(self) -> float:
        return CLIGHT / self.f1

    @property
    def lam2(self) -> float:
        return CLIGHT / self.f2

    @property
    def lam_wl(self) -> float:
        return CLIGHT / (self.f1 - self.f2)

    def wavelength(self, gnss_type: GnssType) -> float:
        return gnss_type.wavelength(self.frequency_number)


def track_signals(types: List[GnssType], frequency_number: int = 0) -> Optional[TrackSignals]:
    """Split a track type set into the dual-frequency phase/code layout

    Returns None if the types do not hold two phases on different
    frequencies with a code type on each of these frequencies.
    """
    phases = [t for t in types if t.is_phase]
    phases.sort(key=lambda t: -t.frequency(frequency_number))
    primary = []
    for phase in phases:
        if all(not phase.same_frequency(p) for p in primary):
            primary.append(phase)
        if len(primary) == 2:
            break
    if len(primary) < 2:
        return None

    def code_for(phase):
        codes = [t for t in types if t.is_code and t.same_frequency(phase)]
        exact = [t for t in codes if t.attribute == phase.attribute]
        return (exact or codes or [None])[0]

    code1, code2 = code_for(primary[0]), code_for(primary[1])
    if code1 is None or code2 is None:
        return None
    extras = {p: next(q for q in primary if q.same_frequency(p))
              for p in phases if p not in primary and any(q.same_frequency(p) for q in primary)}
    return TrackSignals(primary[0], primary[1], code1, code2, frequency_number, extras)


def track_values(receiver: Receiver, track: Track, gnss_type: GnssType) -> np.ndarray:
    """Observed values of one type over the track epochs (NaN where missing)"""
    values = np.full(track.count, np.nan)
    for i, id_epoch in enumerate(track.epochs):
        obs = receiver.observations[id_epoch].get(track.id_trans)
        if obs is not None:
            idx = obs.index(gnss_type)
            if idx is not None:
                values[i] = obs.values[idx]
    return values


def track_sigmas(receiver: Receiver, track: Track, gnss_type: GnssType) -> np.ndarray:
    sigmas = np.full(track.count, np.nan)
    for i, id_epoch in enumerate(track.epochs):
        obs = receiver.observations[id_epoch].get(track.id_trans)
        if obs is not None:
            idx = obs.index(gnss_type)
            if idx is not None:
                sigmas[i] = obs.sigmas[idx]
    return sigmas


def compute_track_combinations(receiver: Receiver, track: Track,
                               signals: TrackSignals) -> Dict[str, np.ndarray]:
    """Fill ``track.combinations`` with the TEC-like, MW and same-frequency series"""
    L1 = track_values(receiver, track, signals.phase1)
    L2 = track_values(receiver, track, signals.phase2)
    C1 = track_values(receiver, track, signals.code1)
    C2 = track_values(receiver, track, signals.code2)

    combinations = {
        GF: L1 - L2,
        TEC: geometry_free_cycles(L1, L2, signals.lam1, signals.lam2),
        MW: melbourne_wuebbena_cycles(L1, L2, C1, C2, signals.f1, signals.f2),
    }
    for extra, reference in signals.extra_phases.items():
        values = track_values(receiver, track, extra)
        if np.isnan(values).any():
            continue
        reference_values = L1 if reference == signals.phase1 else L2
        combinations[SAME_FREQUENCY + str(extra)] = \
            (values - reference_values) / signals.wavelength(extra)
    track.combinations = combinations
    return combinations


def combination_sigmas(receiver: Receiver, track: Track, signals: TrackSignals) -> Dict[str, np.ndarray]:
    """Formal accuracy of the TEC-like and MW series in cycles"""
    s_l1 = track_sigmas(receiver, track, signals.phase1)
    s_l2 = track_sigmas(receiver, track, signals.phase2)
    s_c1 = track_sigmas(receiver, track, signals.code1)
    s_c2 = track_sigmas(receiver, track, signals.code2)
    f1, f2 = signals.f1, signals.f2
    tec = np.hypot(s_l1, s_l2) / abs(signals.lam1 - signals.lam2)
    mw = np.sqrt((f1 * s_l1 / (f1 - f2)) ** 2 + (f2 * s_l2 / (f1 - f2)) ** 2
                 + (f1 * s_c1 / (f1 + f2)) ** 2 + (f2 * s_c2 / (f1 + f2)) ** 2) / signals.lam_wl
    return {TEC: tec, MW: mw}


def slip_combination_effect(signals: TrackSignals, n1: int, n2: int) -> Tuple[float, float]:
    """Change of (TEC-like, MW) caused by slips of n1, n2 cycles"""
    tec = (n1 * signals.lam1 - n2 * signals.lam2) / (signals.lam1 - signals.lam2)
    return tec, float(n1 - n2)
