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

"""Per-receiver / per-transmitter signal bias container"""

import math
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

import numpy as np

from .constants import GLONASS_CHANNEL_SPACING
from .signal_types import GnssType


def wrap_phase_bias(bias: float, wavelength: float) -> float:
    """Wrap a phase bias into [-wavelength/2, wavelength/2] (IEEE remainder)"""
    return math.remainder(bias, wavelength)


@dataclass
class SignalBias:
    """Signal biases in meters, one entry per signal type

    Stored types may contain wildcards (e.g. ``C1*G``); lookups return the
    first matching entry and zero if nothing matches.
    """
    types: List[GnssType] = field(default_factory=list)
    biases: List[float] = field(default_factory=list)

    def __len__(self):
        return len(self.types)

    def set(self, gnss_type: GnssType, bias: float):
        for idx, stored in enumerate(self.types):
            if stored == gnss_type:
                self.biases[idx] = float(bias)
                return
        self.types.append(gnss_type)
        self.biases.append(float(bias))

    def bias(self, gnss_type: GnssType) -> float:
        for stored, value in zip(self.types, self.biases):
            if gnss_type.matches(str(stored)):
                return value
        return 0.0

    def compute(self, types: Iterable[GnssType]) -> np.ndarray:
        return np.array([self.bias(t) for t in types])

    def wrapped(self, frequency_number: Optional[int] = 0) -> 'SignalBias':
        """Copy with every phase bias wrapped into half a wavelength

        Without a ``frequency_number`` (receiver biases shared by all
        channels) GLONASS FDMA phase biases have no single wavelength and
        are kept unchanged.
        """
        biases = []
        for gnss_type, value in zip(self.types, self.biases):
            if gnss_type.is_phase:
                if frequency_number is not None:
                    value = wrap_phase_bias(value, gnss_type.wavelength(frequency_number))
                elif not (gnss_type.system == 'R' and gnss_type.band in GLONASS_CHANNEL_SPACING):
                    value = wrap_phase_bias(value, gnss_type.wavelength())
            biases.append(value)
        return SignalBias(list(self.types), biases)
