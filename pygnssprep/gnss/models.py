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

"""Model reductions applied to raw observations before linearization"""

from typing import Callable, Sequence

import numpy as np

from ..coordinate.transforms import ecef2llh
from ..core.data_structures import Receiver, Transmitter
from ..core.signal_types import GnssType
from .geometry import tropmodel_simple


def troposphere_delay(receiver: Receiver, id_epoch: int, elevation: float) -> float:
    """Slant tropospheric delay at the receiver's current position"""
    return tropmodel_simple(ecef2llh(receiver.pos[id_epoch]), elevation)


def reduce_troposphere(receiver: Receiver, transmitter: Transmitter, id_epoch: int,
                       types: Sequence[GnssType], azimuth: float, elevation: float) -> np.ndarray:
    return np.full(len(types), troposphere_delay(receiver, id_epoch, elevation))


def reduce_signal_biases(receiver: Receiver, transmitter: Transmitter, id_epoch: int,
                         types: Sequence[GnssType], azimuth: float, elevation: float) -> np.ndarray:
    return receiver.signal_bias.compute(types) + transmitter.signal_bias.compute(types)


class CombinedReduction:
    """Sum of several reduction functions (picklable for worker processes)"""

    def __init__(self, *funcs: Callable):
        self.funcs = funcs

    def __call__(self, receiver, transmitter, id_epoch, types, azimuth, elevation):
        total = np.zeros(len(types))
        for func in self.funcs:
            total += func(receiver, transmitter, id_epoch, types, azimuth, elevation)
        return total


def combine_reductions(*funcs: Callable) -> Callable:
    return CombinedReduction(*funcs)


default_reduce_models = combine_reductions(reduce_troposphere, reduce_signal_biases)
