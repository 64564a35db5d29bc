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

"""Station metadata and antenna/accuracy definitions.

Equipment histories are kept as interval tables sorted by start time; the
installation valid at an epoch is found by bisection. Antenna and accuracy
definitions share one representation: a set of patterns per signal type,
each holding an offset and zenith-dependent values (phase centre variation
in meters, or observation sigma in meters for accuracy definitions).
"""

import bisect
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

import numpy as np

from .signal_types import GnssType
from .status import NoAntennaPatternError


class NoPatternFoundAction(Enum):
    """Policy if no antenna pattern matches an observed signal type"""
    IGNORE_OBSERVATION = 'ignoreObservation'
    USE_NEAREST_FREQUENCY = 'useNearestFrequency'
    THROW_EXCEPTION = 'throwException'


@dataclass
class AntennaPattern:
    """Offset and zenith-dependent values for types matching ``gnss_type``"""
    gnss_type: GnssType
    offset: np.ndarray = field(default_factory=lambda: np.zeros(3))  # east, north, up (m)
    zenith_deg: np.ndarray = field(default_factory=lambda: np.array([0.0, 90.0]))
    values: np.ndarray = field(default_factory=lambda: np.zeros(2))

    def matches(self, gnss_type: GnssType) -> bool:
        return gnss_type.matches(str(self.gnss_type))

    def value(self, elevation: float) -> float:
        """Pattern value at an elevation angle in radians"""
        zenith = 90.0 - np.degrees(elevation)
        return float(np.interp(zenith, self.zenith_deg, self.values))


@dataclass
class AntennaDefinition:
    name: str
    serial: str = ''
    radome: str = ''
    patterns: List[AntennaPattern] = field(default_factory=list)

    def __str__(self):
        return f"{self.name}.{self.serial}.{self.radome}"

    def find_pattern(self, gnss_type: GnssType,
                     action: NoPatternFoundAction = NoPatternFoundAction.IGNORE_OBSERVATION,
                     frequency_number: int = 0) -> Optional[AntennaPattern]:
        """Pattern for a signal type, resolved with the no-pattern policy

        Returns None if the observation should be ignored.

        Raises
        ------
        NoAntennaPatternError
            If no pattern matches and the policy is THROW_EXCEPTION, or no
            pattern of the same system exists for USE_NEAREST_FREQUENCY.
        """
        for pattern in self.patterns:
            if pattern.matches(gnss_type):
                return pattern

        if action == NoPatternFoundAction.IGNORE_OBSERVATION:
            return None
        if action == NoPatternFoundAction.USE_NEAREST_FREQUENCY:
            freq = gnss_type.frequency(frequency_number)
            candidates = [p for p in self.patterns if p.gnss_type.system == gnss_type.system]
            if candidates:
                return min(candidates,
                           key=lambda p: abs(p.gnss_type.frequency(frequency_number) - freq))
        raise NoAntennaPatternError(f"{self}: no pattern found for {gnss_type}")


class DefinitionRegistry:
    """Lookup of antenna (or accuracy) definitions by name, serial and radome"""

    def __init__(self, definitions: Optional[List[AntennaDefinition]] = None):
        self.definitions = list(definitions or [])

    def __len__(self):
        return len(self.definitions)

    def find(self, name: str, serial: str = '', radome: str = '') -> Optional[AntennaDefinition]:
        """Best matching definition; empty fields of a definition act as wildcards

        A definition named ``*`` matches every antenna. Exact name and serial
        matches are preferred over generic entries.
        """
        best = None
        best_score = -1
        for definition in self.definitions:
            if definition.name not in (name, '*'):
                continue
            if definition.radome and radome and definition.radome != radome:
                continue
            if definition.serial and definition.serial != serial:
                continue
            score = 4 * int(definition.name == name) + 2 * int(bool(definition.serial)) \
                + int(bool(definition.radome))
            if score > best_score:
                best, best_score = definition, score
        return best


@dataclass
class AntennaInstallation:
    """Antenna mounted at a station during [time_start, time_end)"""
    name: str
    serial: str = ''
    radome: str = ''
    time_start: float = -np.inf
    time_end: float = np.inf
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))  # east, north, up (m)
    local2antenna: np.ndarray = field(default_factory=lambda: np.eye(3))
    antenna_def: Optional[AntennaDefinition] = None
    accuracy_def: Optional[AntennaDefinition] = None

    def __str__(self):
        return f"{self.name}.{self.serial}.{self.radome}"


@dataclass
class ReceiverInstallation:
    name: str
    serial: str = ''
    version: str = ''
    time_start: float = -np.inf
    time_end: float = np.inf
    observed_types: Optional[List[GnssType]] = None


@dataclass
class StationInfo:
    """Station metadata: marker, approximate position, equipment history"""
    marker_name: str
    marker_number: str = ''
    approx_position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    antennas: List[AntennaInstallation] = field(default_factory=list)
    receivers: List[ReceiverInstallation] = field(default_factory=list)

    def __post_init__(self):
        self.approx_position = np.asarray(self.approx_position, dtype=float)
        self.antennas.sort(key=lambda a: a.time_start)
        self.receivers.sort(key=lambda r: r.time_start)

    @staticmethod
    def _find(intervals, time: float) -> Optional[int]:
        starts = [item.time_start for item in intervals]
        idx = bisect.bisect_right(starts, time) - 1
        if idx >= 0 and time < intervals[idx].time_end:
            return idx
        return None

    def find_antenna(self, time: float) -> Optional[int]:
        return self._find(self.antennas, time)

    def find_receiver(self, time: float) -> Optional[int]:
        return self._find(self.receivers, time)

    def reference_point(self, time: float) -> np.ndarray:
        """Marker reference point in the local east/north/up frame"""
        return np.zeros(3)

    def fill_antenna_pattern(self, registry: DefinitionRegistry):
        for antenna in self.antennas:
            antenna.antenna_def = registry.find(antenna.name, antenna.serial, antenna.radome)

    def fill_antenna_accuracy(self, registry: DefinitionRegistry):
        for antenna in self.antennas:
            antenna.accuracy_def = registry.find(antenna.name, antenna.serial, antenna.radome)

    def fill_receiver_definition(self, definitions: List[ReceiverInstallation]):
        """Copy observed signal types from matching receiver definitions"""
        for receiver in self.receivers:
            for definition in definitions:
                if definition.name == receiver.name and definition.serial in ('', receiver.serial):
                    receiver.observed_types = definition.observed_types
                    break
