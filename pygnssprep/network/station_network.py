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

"""
Ground station network
======================

Builds the receivers of a station network and preprocesses them on a
worker group.

Each line of the station list names one logical station and its
alternatives in priority order. ``StationNetwork.init`` creates a
candidate receiver per alternative with usable metadata, lets the worker
owning a station test the alternatives in order (observation file loads,
enough estimable epochs) and agrees on the winners with a barrier,
``reduce_sum`` and ``broadcast``. ``StationNetwork.preprocessing`` runs the
per-receiver sequence on the owned receivers.

Example::

    config = StationNetworkConfig.from_dict(load_config('network.json'))
    network = StationNetwork(config)
    receivers = network.init(times, transmitters)
    network.preprocessing(transmitters)
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np

from ..core.config import StationNetworkConfig
from ..core.data_structures import Receiver, Transmitter
from ..core.status import DisableReason, RecoverableError, reason_for_exception
from ..gnss.models import default_reduce_models
from ..gnss.observation_equations import ReduceFunc, RotationFunc
from ..io.observations import load_observations
from ..io.station_info import (read_definition_registry, read_receiver_definitions,
                               read_station_info, read_station_position)
from ..io.station_list import read_station_list
from ..io.templates import FileTemplate
from ..logger import PreprocessingReporter
from ..preprocessing.pipeline import preprocess_receiver
from ..preprocessing.quality import apply_elevation_cutoff
from ..simulation import SimulationSettings, simulate_observations
from .parallel import Communicator, SingleCommunicator
from .selection import keep_winners, select_alternatives

logger = logging.getLogger(__name__)

# displacement(receiver) -> (n_epochs, 3) station displacement in the terrestrial frame [m]
DisplacementFunc = Callable[[Receiver], np.ndarray]


class StationNetwork:
    """Receivers of a ground station network

    Parameters
    ----------
    config : StationNetworkConfig
        Files, selection and quality thresholds
    comm : Communicator, optional
        Worker group; a single worker if None
    reporter : PreprocessingReporter, optional
        Observer for status, warnings and disabled counts
    """

    def __init__(self, config: StationNetworkConfig, comm: Optional[Communicator] = None,
                 reporter: Optional[PreprocessingReporter] = None):
        self.config = config
        self.comm = comm or SingleCommunicator()
        self.reporter = reporter or PreprocessingReporter(is_master=self.comm.is_master)
        self.receivers: List[Receiver] = []
        self.station_count = 0
        self.times = np.zeros(0)

    @property
    def observation_template(self) -> FileTemplate:
        return FileTemplate(self.config.observations)

    # ------------------------------------------------------------------
    # init
    # ------------------------------------------------------------------

    def init(self, times: np.ndarray, transmitters: Sequence[Transmitter],
             rotation_crf2trf: Optional[RotationFunc] = None,
             displacement: Optional[DisplacementFunc] = None) -> List[Receiver]:
        """Select one receiver per station and read its observations

        Raises
        ------
        ConfigurationError
            If the station list or a definition file cannot be read
        """
        self.reporter.status("init station network")
        self.times = np.asarray(times, dtype=float)
        alternatives = self._candidate_receivers()

        self.reporter.status("read observations")
        chosen = select_alternatives(
            [len(a) for a in alternatives],
            lambda i, k: self._test_alternative(alternatives[i][k], transmitters, rotation_crf2trf),
            self.comm, progress=self.reporter.loop)

        self.receivers = [alternatives[i][k] for i, k in keep_winners(chosen, self.config.max_station_count)]
        for id_recv, receiver in enumerate(self.receivers):
            receiver.id_recv = id_recv
        self.reporter.info("  %d of %d stations used", len(self.receivers), self.station_count)

        if displacement is not None:
            self.add_displacements(displacement)
        return self.receivers

    def _candidate_receivers(self) -> List[List[Receiver]]:
        config = self.config
        station_names = read_station_list(config.station_list)
        self.station_count = len(station_names)
        antenna_defs = read_definition_registry(config.antenna_definition)
        accuracy_defs = read_definition_registry(config.accuracy_definition)
        receiver_defs = read_receiver_definitions(config.receiver_definition) \
            if config.receiver_definition else []

        info_template = FileTemplate(config.station_info)
        obs_template = self.observation_template
        alternatives = []
        for names in station_names:
            candidates = []
            for name in names:
                if obs_template and not obs_template.resolve(station=name).exists():
                    continue
                try:
                    info = read_station_info(info_template.resolve(station=name))
                    info.fill_antenna_pattern(antenna_defs)
                    info.fill_receiver_definition(receiver_defs)
                    info.fill_antenna_accuracy(accuracy_defs)
                except (RecoverableError, OSError, ValueError) as e:
                    self.reporter.warning_once(name, "%s disabled: %s", name, e)
                    continue
                self._read_approx_position(name, info)
                self._check_antenna_definitions(info)
                candidates.append(Receiver(name, info))
            # stations without any candidate are dropped
            if candidates:
                alternatives.append(candidates)
        return alternatives

    def _read_approx_position(self, name: str, info):
        if not self.config.station_position or len(self.times) == 0:
            return
        path = FileTemplate(self.config.station_position).resolve(station=name)
        try:
            position = read_station_position(path, self.times[0], self.times[-1])
        except (OSError, ValueError) as e:
            logger.debug("%s: no station position from %s (%s)", name, path, e)
            return
        if position is not None:
            info.approx_position = position

    def _check_antenna_definitions(self, info):
        if len(self.times) == 0:
            return
        for antenna in info.antennas:
            if antenna.time_end <= self.times[0] or antenna.time_start > self.times[-1]:
                continue
            if antenna.antenna_def is None or antenna.accuracy_def is None:
                kind = 'antenna' if antenna.antenna_def is None else 'accuracy'
                self.reporter.warning_once(
                    (info.marker_name, str(antenna), kind),
                    "%s.%s: No %s definition found for %s",
                    info.marker_name, info.marker_number, kind, antenna)

    def _init_receiver_epochs(self, receiver: Receiver):
        """Epoch grid, antenna offsets and orientation; epochs without definitions are disabled"""
        receiver.is_my_rank = True
        receiver.init_epochs(self.times)
        info = receiver.info
        for id_epoch, time in enumerate(self.times):
            idx = info.find_antenna(time)
            if idx is None:
                receiver.disable(id_epoch)
                continue
            antenna = info.antennas[idx]
            if antenna.antenna_def is None or antenna.accuracy_def is None:
                receiver.disable(id_epoch)
                continue
            receiver.offset[id_epoch] = antenna.position - info.reference_point(time)
            receiver.local2antenna[id_epoch] = antenna.local2antenna

    def _test_alternative(self, receiver: Receiver, transmitters: Sequence[Transmitter],
                          rotation_crf2trf: Optional[RotationFunc]) -> bool:
        self._init_receiver_epochs(receiver)
        obs_template = self.observation_template
        # simulation: observations are generated later
        if not obs_template:
            return True
        try:
            load_observations(receiver, obs_template.resolve(station=receiver.name), transmitters,
                              self.config.use_type, self.config.ignore_type)
            apply_elevation_cutoff(receiver, transmitters, self.config.elevation_cutoff,
                                   rotation_crf2trf)
        except (RecoverableError, OSError, ValueError) as e:
            self.reporter.warning("%s disabled: %s", receiver.name, e)
            return False
        except Exception:
            logger.exception("%s disabled: unexpected error", receiver.name)
            return False
        receiver.update_observation_sampling()
        if not receiver.estimable_epochs_ratio_ok(self.config.min_estimable_epochs_ratio):
            logger.debug("%s: only %d of %d epochs usable", receiver.name,
                         receiver.count_usable_epochs(), len(self.times))
            return False
        return True

    def add_displacements(self, displacement: DisplacementFunc):
        """Add station displacements (loading, tides) to the antenna offsets of owned receivers"""
        self.reporter.status("compute tides & loading")
        for receiver in self.my_receivers():
            disp = np.asarray(displacement(receiver), dtype=float)
            if disp.shape != receiver.offset.shape:
                raise ValueError(f"{receiver.name}: displacement shape {disp.shape}, "
                                 f"expected {receiver.offset.shape}")
            receiver.offset += np.einsum('nij,nj->ni', receiver.global2local, disp)

    def my_receivers(self) -> List[Receiver]:
        return [r for r in self.receivers if r.is_my_rank]

    # ------------------------------------------------------------------
    # processing
    # ------------------------------------------------------------------

    def preprocessing(self, transmitters: Sequence[Transmitter],
                      rotation_crf2trf: Optional[RotationFunc] = None,
                      reduce_models: Optional[ReduceFunc] = default_reduce_models) -> int:
        """Preprocess the owned receivers; returns the number of disabled stations

        Errors of one receiver disable only that receiver.
        """
        self.reporter.status("init observations")
        disabled = 0
        for idx in self.reporter.loop(len(self.receivers)):
            receiver = self.receivers[idx]
            if not receiver.is_my_rank:
                continue
            try:
                result = preprocess_receiver(receiver, transmitters, self.config,
                                             rotation_crf2trf, reduce_models)
                if result.ok:
                    continue
            except (RecoverableError, OSError, ValueError) as e:
                self.reporter.warning("%s disabled: %s", receiver.name, e)
                receiver.disable(reason=reason_for_exception(e))
            except Exception as e:
                logger.exception("%s disabled: unexpected error", receiver.name)
                receiver.disable(reason=reason_for_exception(e))
            disabled += 1
            self.reporter.entity_disabled('preprocessing', receiver.name, receiver.disable_reason)

        total = self.comm.reduce_sum([disabled])
        if self.comm.is_master:
            self.reporter.info("  %d disabled stations", int(total[0]))
        return int(self.comm.broadcast(None if total is None else int(total[0])))

    def simulation(self, transmitters: Sequence[Transmitter], types: Sequence = None,
                   rotation_crf2trf: Optional[RotationFunc] = None,
                   reduce_models: Optional[ReduceFunc] = default_reduce_models,
                   settings: Optional[SimulationSettings] = None) -> Dict[str, np.ndarray]:
        """Fill the owned receivers with synthetic observations

        Returns the true receiver clock per simulated station.
        """
        self.reporter.status("simulate observations")
        settings = settings or SimulationSettings(elevation_cutoff=self.config.elevation_cutoff)
        kwargs = {} if types is None else {'types': types}
        clocks = {}
        for idx in self.reporter.loop(len(self.receivers)):
            receiver = self.receivers[idx]
            if not receiver.is_my_rank:
                continue
            try:
                clocks[receiver.name] = simulate_observations(
                    receiver, transmitters, rotation_crf2trf=rotation_crf2trf,
                    reduce_models=reduce_models, settings=settings,
                    action=self.config.no_antenna_pattern_found, **kwargs)
            except (RecoverableError, OSError, ValueError) as e:
                self.reporter.warning("%s disabled: %s", receiver.name, e)
                receiver.disable(reason=reason_for_exception(e))
        return clocks


@dataclass
class NetworkSummary:
    """Outcome of a network run as seen by one worker"""
    stations: List[str] = field(default_factory=list)
    disabled: Dict[str, Optional[str]] = field(default_factory=dict)
    disabled_count: int = 0
    tracks: Dict[str, int] = field(default_factory=dict)


def preprocess_network(comm: Communicator, config: StationNetworkConfig, times: np.ndarray,
                       transmitters: Sequence[Transmitter],
                       rotation_crf2trf: Optional[RotationFunc] = None,
                       reduce_models: Optional[ReduceFunc] = default_reduce_models,
                       simulate: bool = False) -> NetworkSummary:
    """Worker entry point: select the stations and preprocess the owned receivers

    Suitable for :func:`run_parallel`; with the process backend all
    arguments have to be picklable.
    """
    with PreprocessingReporter(is_master=comm.is_master) as reporter:
        network = StationNetwork(config, comm, reporter)
        network.init(times, transmitters, rotation_crf2trf)
        if simulate:
            network.simulation(transmitters, rotation_crf2trf=rotation_crf2trf,
                               reduce_models=reduce_models)
        disabled_count = network.preprocessing(transmitters, rotation_crf2trf, reduce_models)

    summary = NetworkSummary(stations=[r.name for r in network.receivers],
                             disabled_count=disabled_count)
    for receiver in network.my_receivers():
        if receiver.enabled:
            summary.tracks[receiver.name] = len(receiver.tracks)
        else:
            reason = receiver.disable_reason or DisableReason.PROCESSING_ERROR
            summary.disabled[receiver.name] = reason.value
    return summary

