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

"""Data model, configuration and error taxonomy"""

from .config import PreprocessingSettings, SignalBiasConfig, StationNetworkConfig, load_config
from .data_structures import Observation, Receiver, Track, Transmitter
from .signal_bias import SignalBias, wrap_phase_bias
from .signal_types import GnssType, filter_types
from .station_info import (AntennaDefinition, AntennaInstallation, AntennaPattern,
                           DefinitionRegistry, NoPatternFoundAction, StationInfo)
from .status import (ConfigurationError, ConvergenceError, DisableReason, NoAntennaPatternError,
                     RecoverableError, StageResult, StationDataError)

__all__ = [
    'PreprocessingSettings', 'SignalBiasConfig', 'StationNetworkConfig', 'load_config',
    'Observation', 'Receiver', 'Track', 'Transmitter',
    'SignalBias', 'wrap_phase_bias',
    'GnssType', 'filter_types',
    'AntennaDefinition', 'AntennaInstallation', 'AntennaPattern', 'DefinitionRegistry',
    'NoPatternFoundAction', 'StationInfo',
    'ConfigurationError', 'ConvergenceError', 'DisableReason', 'NoAntennaPatternError',
    'RecoverableError', 'StageResult', 'StationDataError',
]
