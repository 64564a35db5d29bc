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

"""Core data structures for network preprocessing"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np

from .signal_bias import SignalBias
from .signal_types import GnssType
from .station_info import StationInfo
from .status import DisableReason


@dataclass
class Observation:
    """Observed signals of one receiver-transmitter pair at one epoch.

    Attributes
    ----------
    types : list[GnssType]
        Observed signal types
    values : np.ndarray
        Observations in meters (carrier phase is stored in meters as well)
    sigmas : np.ndarray
        Formal accuracy of each observation in meters
    usable : bool
        False once the observation has been rejected
    """
    types: List[GnssType]
    values: np.ndarray
    sigmas: np.ndarray
    usable: bool = True

    def __post_init__(self):
        self.values = np.asarray(self.values, dtype=float)
        self.sigmas = np.asarray(self.sigmas, dtype=float)

    def index(self, gnss_type: GnssType) -> Optional[int]:
        try:
            return self.types.index(gnss_type)
        except ValueError:
            return None

    def has_types(self, types: Sequence[GnssType]) -> bool:
        return all(t in self.types for t in types)

    def value(self, gnss_type: GnssType) -> float:
        return float(self.values[self.types.index(gnss_type)])

    def sigma(self, gnss_type: GnssType) -> float:
        return float(self.sigmas[self.types.index(gnss_type)])

    def remove_type(self, gnss_type: GnssType):
        idx = self.index(gnss_type)
        if idx is None:
            return
        del self.types[idx]
        self.values = np.delete(self.values, idx)
        self.sigmas = np.delete(self.sigmas, idx)
        if not self.types:
            self.usable = False

    def disable(self):
        self.usable = False


@dataclass
class Track:
    """Arc of continuous phase lock between one receiver and one transmitter.

    ``epochs`` holds the sorted epoch indices covered by the track. A track
    created by segmentation is contiguous; tracks produced by slip detection
    share the ``arc_id`` of the arc they were cut from.
    """
    id_trans: int
    epochs: List[int]
    types: List[GnssType]
    arc_id: int = 0
    slip_at_start: bool = False
    combinations: Dict[str, np.ndarray] = field(default_factory=dict)

    @property
    def id_epoch_start(self) -> int:
        return self.epochs[0]

    @property
    def id_epoch_end(self) -> int:
        return self.epochs[-1]

    @property
    def count(self) -> int:
        return len(self.epochs)

    def phase_types(self) -> List[GnssType]:
        return [t for t in self.types if t.is_phase]

    def split(self, position: int) -> 'Track':
        """Cut the track before ``epochs[position]`` and return the tail"""
        tail = Track(self.id_trans, self.epochs[position:], list(self.types),
                     arc_id=self.arc_id, slip_at_start=True)
        self.epochs = self.epochs[:position]
        self.combinations = {}
        return tail

    def merge(self, other: 'Track'):
        """Append a later track of the same arc"""
        self.epochs = sorted(set(self.epochs) | set(other.epochs))
        self.combinations = {}

    def remove_epoch(self, id_epoch: int):
        if id_epoch in self.epochs:
            self.epochs.remove(id_epoch)
            self.combinations = {}


@dataclass
class Transmitter:
    """GNSS satellite with per-epoch position and clock from external models.

    Attributes
    ----------
    name : str
        PRN-like identifier, e.g. ``G05``
    positions : np.ndarray
        Antenna center of mass positions in meters, shape (n_epochs, 3)
    clock : np.ndarray
        Clock error in seconds, shape (n_epochs,)
    velocities : np.ndarray, optional
        Velocities in m/s for the light time correction, shape (n_epochs, 3)
    frequency_number : int
        GLONASS frequency channel number
    """
    name: str
    positions: np.ndarray
    clock: np.ndarray
    velocities: Optional[np.ndarray] = None
    frequency_number: int = 0
    use_epoch: Optional[np.ndarray] = None
    signal_bias: SignalBias = field(default_factory=SignalBias)
    enabled: bool = True
    disable_reason: Optional[DisableReason] = None
    id_trans: int = -1

    def __post_init__(self):
        self.positions = np.asarray(self.positions, dtype=float)
        self.clock = np.asarray(self.clock, dtype=float)
        if self.use_epoch is None:
            self.use_epoch = np.ones(len(self.clock), dtype=bool)

    @property
    def system(self) -> str:
        return self.name[0]

    def usable(self, id_epoch: Optional[int] = None) -> bool:
        if not self.enabled:
            return False
        return id_epoch is None or bool(self.use_epoch[id_epoch])

    def disable(self, reason: Optional[DisableReason] = None):
        self.enabled = False
        self.disable_reason = reason


class Receiver:
    """Ground station receiver: an exclusively owned, mutable aggregate.

    Holds per-epoch state (usability, clock, position, antenna offset and
    orientation), the observations indexed by epoch and transmitter and the
    tracks built from them. A receiver is disabled rather than destroyed;
    a disabled receiver exposes no observations and no tracks.
    """

    def __init__(self, name: str, info: StationInfo, times: Optional[np.ndarray] = None,
                 id_recv: int = -1):
        self.name = name
        self.info = info
        self.id_recv = id_recv
        self.enabled = True
        self.disable_reason: Optional[DisableReason] = None
        self.is_my_rank = False
        self.signal_bias = SignalBias()
        self.tracks: List[Track] = []
        self.observation_sampling = 0.0
        self.init_epochs(np.zeros(0) if times is None else times)

    def __repr__(self):
        return f"Receiver({self.name!r}, epochs={len(self.times)}, enabled={self.enabled})"

    def init_epochs(self, times: np.ndarray):
        """Allocate per-epoch arrays for the processing interval"""
        from ..coordinate.transforms import compute_rotation_matrix_enu, ecef2llh

        self.times = np.asarray(times, dtype=float)
        n = len(self.times)
        approx = np.asarray(self.info.approx_position, dtype=float)
        self.use_epoch = np.ones(n, dtype=bool)
        self.clk = np.zeros(n)
        self.pos = np.tile(approx, (n, 1))
        self.vel = np.zeros((n, 3))
        self.offset = np.zeros((n, 3))
        if np.linalg.norm(approx) > 0:
            global2local = compute_rotation_matrix_enu(ecef2llh(approx))
        else:
            global2local = np.eye(3)
        self.global2local = np.tile(global2local, (n, 1, 1))
        self.local2antenna = np.tile(np.eye(3), (n, 1, 1))
        self.observations: List[Dict[int, Observation]] = [dict() for _ in range(n)]

    @property
    def approx_position(self) -> np.ndarray:
        return self.info.approx_position

    def position(self, id_epoch: int) -> np.ndarray:
        return self.pos[id_epoch]

    def usable(self, id_epoch: Optional[int] = None) -> bool:
        """Receiver enabled and, for an epoch, flagged usable with observations"""
        if not self.enabled:
            return False
        if id_epoch is None:
            return True
        if not self.use_epoch[id_epoch]:
            return False
        return any(obs.usable for obs in self.observations[id_epoch].values())

    def disable(self, id_epoch: Optional[int] = None, reason: Optional[DisableReason] = None):
        """Disable one epoch or, without ``id_epoch``, the whole receiver"""
        if id_epoch is not None:
            self.use_epoch[id_epoch] = False
            return
        self.enabled = False
        if self.disable_reason is None:
            self.disable_reason = reason
        self.tracks = []

    def observation(self, id_epoch: int, id_trans: int) -> Optional[Observation]:
        if not self.enabled or not self.use_epoch[id_epoch]:
            return None
        obs = self.observations[id_epoch].get(id_trans)
        if obs is None or not obs.usable:
            return None
        return obs

    def add_observation(self, id_epoch: int, id_trans: int, observation: Observation):
        self.observations[id_epoch][id_trans] = observation

    def transmitter_ids(self) -> List[int]:
        ids = set()
        for epoch in self.observations:
            ids.update(epoch.keys())
        return sorted(ids)

    def count_usable_epochs(self) -> int:
        return sum(self.usable(i) for i in range(len(self.times)))

    def update_observation_sampling(self):
        """Median interval between epochs holding observations"""
        idx = [i for i in range(len(self.times)) if self.observations[i]]
        if len(idx) >= 2:
            self.observation_sampling = float(np.median(np.diff(self.times[idx])))
        else:
            self.observation_sampling = median_sampling(self.times)

    def estimable_epochs_ratio_ok(self, min_ratio: float) -> bool:
        """``usableEpochs*sampling >= minRatio*epochs*medianSampling``"""
        n = len(self.times)
        if n == 0:
            return False
        sampling = self.observation_sampling or median_sampling(self.times)
        return self.count_usable_epochs() * sampling >= min_ratio * n * median_sampling(self.times)


def median_sampling(times: np.ndarray) -> float:
    """Median epoch interval in seconds (1 s for a single epoch)"""
    if len(times) < 2:
        return 1.0
    return float(np.median(np.diff(times)))
