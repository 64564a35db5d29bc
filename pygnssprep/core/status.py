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

"""Error taxonomy and stage results for network preprocessing.

Configuration errors abort a run before any station is touched. Everything
else is scoped to a single receiver or transmitter: it is converted into a
:class:`DisableReason`, the entity is disabled and processing continues.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ConfigurationError(Exception):
    """Missing mandatory file or parameter, invalid option value"""


class RecoverableError(Exception):
    """Error confined to one receiver or transmitter"""


class StationDataError(RecoverableError):
    """Missing or unreadable station metadata, position or observation file"""


class NoAntennaPatternError(RecoverableError):
    """No antenna pattern found and the policy requests an error"""


class ConvergenceError(RecoverableError):
    """Iterative estimator did not converge"""


class DisableReason(Enum):
    """Why a receiver, transmitter or epoch was disabled"""
    NO_OBSERVATION_FILE = 'no observation file'
    STATION_DATA = 'station data unusable'
    NO_ANTENNA_DEFINITION = 'no antenna or accuracy definition'
    NO_ANTENNA_PATTERN = 'no antenna pattern found'
    INSUFFICIENT_EPOCHS = 'insufficient estimable epochs'
    CLOCK_NOT_SOLVED = 'clock error could not be estimated'
    NON_CONVERGENCE = 'estimator did not converge'
    GROSS_OUTLIER = 'gross code outlier'
    SIGNAL_BIAS = 'signal bias file unreadable'
    PROCESSING_ERROR = 'processing error'


@dataclass(frozen=True)
class StageResult:
    """Outcome of one pipeline stage: success or a reason to disable"""
    reason: Optional[DisableReason] = None
    message: str = ''

    @property
    def ok(self) -> bool:
        return self.reason is None

    @classmethod
    def success(cls) -> 'StageResult':
        return cls()

    @classmethod
    def failure(cls, reason: DisableReason, message: str = '') -> 'StageResult':
        return cls(reason, message)

    def __str__(self):
        if self.ok:
            return 'ok'
        return f"{self.reason.value}: {self.message}" if self.message else self.reason.value


def reason_for_exception(error: Exception) -> DisableReason:
    """Map a recoverable exception onto a disable reason"""
    if isinstance(error, NoAntennaPatternError):
        return DisableReason.NO_ANTENNA_PATTERN
    if isinstance(error, ConvergenceError):
        return DisableReason.NON_CONVERGENCE
    if isinstance(error, (StationDataError, OSError, ValueError)):
        return DisableReason.STATION_DATA
    return DisableReason.PROCESSING_ERROR
