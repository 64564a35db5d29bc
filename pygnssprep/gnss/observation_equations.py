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

"""Linearized observation equations for one receiver.

For each usable (epoch, transmitter) pair the observed values are reduced by
the modelled effects and compared against the computed range:

    l = observed - reductions - (range + c*(dt_recv - dt_trans) + antenna)

The design matrix holds the partials with respect to the receiver clock (in
meters) and the receiver position (x, y, z). Equations are rebuilt whenever
the clock or position estimates change; nothing here is cached.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Sequence

import numpy as np

from ..core.constants import CLIGHT
from ..core.data_structures import Receiver, Transmitter
from ..core.signal_types import GnssType
from ..core.station_info import NoPatternFoundAction
from .geometry import geodist, sagnac_correction, satazel, transmit_position

RANGE = 1
PHASE = 2

RotationFunc = Callable[[float], np.ndarray]
ReduceFunc = Callable[..., np.ndarray]

LIGHT_TIME_ITERATIONS = 2


@dataclass
class ObservationEquation:
    """Linearization of one receiver-transmitter pair at one epoch

    Attributes
    ----------
    types : list[GnssType]
        Signal types of the rows
    l : np.ndarray
        Reduced observations minus computed, meters
    A : np.ndarray
        Design matrix (rows x 4): receiver clock [m], position x, y, z
    sigma : np.ndarray
        Observation accuracy, meters
    """
    id_epoch: int
    id_trans: int
    types: List[GnssType]
    l: np.ndarray
    A: np.ndarray
    sigma: np.ndarray
    elevation: float
    azimuth: float
    range: float
    los: np.ndarray

    def rows(self, obs_kind: str) -> np.ndarray:
        """Row indices of code (``'C'``) or phase (``'L'``) types"""
        return np.array([i for i, t in enumerate(self.types) if t.obs == obs_kind], dtype=int)

    def index(self, gnss_type: GnssType) -> Optional[int]:
        try:
            return self.types.index(gnss_type)
        except ValueError:
            return None


class ObservationEquationList:
    """Observation equations of one receiver indexed by (id_epoch, id_trans)"""

    def __init__(self):
        self._eqns: Dict[int, Dict[int, ObservationEquation]] = {}

    def __len__(self):
        return sum(len(epoch) for epoch in self._eqns.values())

    def __contains__(self, key):
        id_epoch, id_trans = key
        return id_trans in self._eqns.get(id_epoch, {})

    def __iter__(self) -> Iterator[ObservationEquation]:
        for id_epoch in sorted(self._eqns):
            epoch = self._eqns[id_epoch]
            for id_trans in sorted(epoch):
                yield epoch[id_trans]

    def add(self, eqn: ObservationEquation):
        self._eqns.setdefault(eqn.id_epoch, {})[eqn.id_trans] = eqn

    def get(self, id_epoch: int, id_trans: int) -> Optional[ObservationEquation]:
        return self._eqns.get(id_epoch, {}).get(id_trans)

    def epoch(self, id_epoch: int) -> List[ObservationEquation]:
        epoch = self._eqns.get(id_epoch, {})
        return [epoch[id_trans] for id_trans in sorted(epoch)]

    def epochs(self) -> List[int]:
        return sorted(e for e, epoch in self._eqns.items() if epoch)

    def remove_epoch(self, id_epoch: int):
        self._eqns.pop(id_epoch, None)


def antenna_reference_point(receiver: Receiver, id_epoch: int) -> np.ndarray:
    """Receiver antenna reference point in the terrestrial frame"""
    return receiver.pos[id_epoch] + receiver.global2local[id_epoch].T @ receiver.offset[id_epoch]


def compute_geometry(receiver: Receiver, transmitter: Transmitter, id_epoch: int,
                     rotation_crf2trf: Optional[RotationFunc] = None):
    """Range, line of sight, azimuth and elevation at one epoch

    The transmitter position is moved back along its velocity by the signal
    travel time (light-time correction). Earth rotation during signal travel
    is handled by ``rotation_crf2trf`` if given, else by the Sagnac term.
    """
    rec = antenna_reference_point(receiver, id_epoch)
    t_recv = receiver.times[id_epoch] - receiver.clk[id_epoch]
    tau = np.linalg.norm(transmitter.positions[id_epoch] - rec) / CLIGHT
    for _ in range(LIGHT_TIME_ITERATIONS):
        sat = transmit_position(transmitter.positions, transmitter.velocities, id_epoch, tau)
        if rotation_crf2trf is not None:
            sat = rotation_crf2trf(t_recv) @ rotation_crf2trf(t_recv - tau).T @ sat
            r, e = geodist(sat, rec)
        else:
            r, e = geodist(sat, rec)
            r += sagnac_correction(sat, rec)
        tau = r / CLIGHT
    az, el = satazel(receiver.global2local[id_epoch], e)
    return r, e, az, el


def accuracy_sigmas(receiver: Receiver, id_epoch: int, types: Sequence[GnssType],
                    elevation: float) -> np.ndarray:
    """Accuracy pattern value per type, NaN where the antenna has none"""
    sigma = np.full(len(types), np.nan)
    idx = receiver.info.find_antenna(receiver.times[id_epoch])
    if idx is None or receiver.info.antennas[idx].accuracy_def is None:
        return sigma
    accuracy_def = receiver.info.antennas[idx].accuracy_def
    for i, gnss_type in enumerate(types):
        pattern = accuracy_def.find_pattern(gnss_type, NoPatternFoundAction.IGNORE_OBSERVATION)
        if pattern is not None:
            sigma[i] = pattern.value(elevation)
    return sigma


def antenna_correction(receiver: Receiver, transmitter: Transmitter, id_epoch: int,
                       types: Sequence[GnssType], los: np.ndarray, elevation: float,
                       action: NoPatternFoundAction):
    """Antenna phase center corrections and accuracies per signal type

    Returns (keep, correction, sigma): ``keep`` masks the types with a usable
    pattern, ``sigma`` is NaN where no accuracy pattern is defined.
    """
    n = len(types)
    keep = np.ones(n, dtype=bool)
    correction = np.zeros(n)
    sigma = accuracy_sigmas(receiver, id_epoch, types, elevation)

    idx = receiver.info.find_antenna(receiver.times[id_epoch])
    if idx is None:
        return keep, correction, sigma
    antenna = receiver.info.antennas[idx]
    los_antenna = receiver.local2antenna[id_epoch] @ (receiver.global2local[id_epoch] @ los)
    for i, gnss_type in enumerate(types):
        if antenna.antenna_def is not None:
            pattern = antenna.antenna_def.find_pattern(gnss_type, action, transmitter.frequency_number)
            if pattern is None:
                keep[i] = False
                continue
            correction[i] = -los_antenna @ pattern.offset + pattern.value(elevation)
    return keep, correction, sigma


def build_observation_equation(receiver: Receiver, transmitter: Transmitter, id_epoch: int,
                               rotation_crf2trf: Optional[RotationFunc] = None,
                               reduce_models: Optional[ReduceFunc] = None,
                               obs_mask: int = RANGE | PHASE,
                               action: NoPatternFoundAction = NoPatternFoundAction.IGNORE_OBSERVATION
                               ) -> Optional[ObservationEquation]:
    """Equation for one pair, or None if nothing usable remains"""
    obs = receiver.observation(id_epoch, transmitter.id_trans)
    if obs is None or not transmitter.usable(id_epoch):
        return None

    idx = [i for i, t in enumerate(obs.types)
           if (t.is_code and obs_mask & RANGE) or (t.is_phase and obs_mask & PHASE)]
    if not idx:
        return None
    types = [obs.types[i] for i in idx]

    r, los, az, el = compute_geometry(receiver, transmitter, id_epoch, rotation_crf2trf)
    keep, antenna, sigma_pattern = antenna_correction(receiver, transmitter, id_epoch, types,
                                                      los, el, action)
    if not keep.any():
        return None

    observed = obs.values[idx]
    sigma = np.where(np.isnan(sigma_pattern), obs.sigmas[idx], sigma_pattern)
    computed = r + CLIGHT * (receiver.clk[id_epoch] - transmitter.clock[id_epoch]) + antenna
    if reduce_models is not None:
        observed = observed - reduce_models(receiver, transmitter, id_epoch, types, az, el)

    keep_idx = np.flatnonzero(keep)
    A = np.zeros((len(keep_idx), 4))
    A[:, 0] = 1.0
    A[:, 1:] = -los
    return ObservationEquation(
        id_epoch=id_epoch,
        id_trans=transmitter.id_trans,
        types=[types[i] for i in keep_idx],
        l=(observed - computed)[keep_idx],
        A=A,
        sigma=sigma[keep_idx],
        elevation=el,
        azimuth=az,
        range=r,
        los=los,
    )


def build_observation_equations(receiver: Receiver, transmitters: Sequence[Transmitter],
                                rotation_crf2trf: Optional[RotationFunc] = None,
                                reduce_models: Optional[ReduceFunc] = None,
                                obs_mask: int = RANGE | PHASE,
                                action: NoPatternFoundAction = NoPatternFoundAction.IGNORE_OBSERVATION,
                                epochs: Optional[Sequence[int]] = None) -> ObservationEquationList:
    """Observation equations for all usable epochs of a receiver

    Parameters
    ----------
    receiver : Receiver
        Receiver with current clock and position estimates
    transmitters : sequence of Transmitter
        Indexed by ``id_trans``
    rotation_crf2trf : callable, optional
        ``rotation_crf2trf(time) -> (3, 3)`` earth rotation; Sagnac term if None
    reduce_models : callable, optional
        ``reduce_models(receiver, transmitter, id_epoch, types, azimuth,
        elevation) -> np.ndarray`` of modelled effects in meters
    obs_mask : int
        ``RANGE``, ``PHASE`` or ``RANGE | PHASE``
    action : NoPatternFoundAction
        Policy if the antenna definition lacks a pattern for a type
    epochs : sequence of int, optional
        Restrict to these epochs

    Raises
    ------
    NoAntennaPatternError
        Propagated for the ``THROW_EXCEPTION`` policy
    """
    eqns = ObservationEquationList()
    if not receiver.enabled:
        return eqns
    if epochs is None:
        epochs = range(len(receiver.times))
    for id_epoch in epochs:
        if not receiver.usable(id_epoch):
            continue
        for id_trans in sorted(receiver.observations[id_epoch]):
            eqn = build_observation_equation(receiver, transmitters[id_trans], id_epoch,
                                             rotation_crf2trf, reduce_models, obs_mask, action)
            if eqn is not None:
                eqns.add(eqn)
    return eqns
