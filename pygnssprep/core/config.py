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
Configuration for station network preprocessing
===============================================

Options are plain dataclasses. ``from_dict`` accepts the camelCase option
names used in configuration files (``elevationCutOff``,
``minObsCountPerTrack``, ...) as well as the snake_case attribute names.

Example config:
{
    'inputfileStationList': 'stationList.txt',
    'inputfileStationInfo': 'stationInfo/{station}.json',
    'inputfileAntennaDefinition': 'antennaDefinition.json',
    'inputfileAccuracyDefinition': 'accuracyDefinition.json',
    'inputfileObservations': 'obs/{station}.csv',
    'minEstimableEpochsRatio': 0.75,
    'preprocessing': {'huber': 2.5, 'tecWindowSize': 15}
}
"""

import json
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

from .station_info import NoPatternFoundAction
from .status import ConfigurationError


def _snake_case(name: str) -> str:
    return re.sub(r'(?<!^)(?=[A-Z])', '_', name).lower()


def _normalize_keys(config: Dict[str, Any], aliases: Dict[str, str]) -> Dict[str, Any]:
    normalized = {}
    for key, value in config.items():
        normalized[aliases.get(key, _snake_case(key))] = value
    return normalized


def _build(cls, config: Dict[str, Any], aliases: Dict[str, str]):
    values = _normalize_keys(config, aliases)
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigurationError(f"{cls.__name__}: unknown option(s) {', '.join(unknown)}")
    return values


@dataclass
class PreprocessingSettings:
    """Settings of the per-receiver preprocessing sequence"""
    huber: float = 2.5                  # residuals > huber*sigma0 are downweighted
    huber_power: float = 1.5            # sigma = (e/huber)^huberPower*sigma0
    code_max_position_diff: float = 100.0  # [m] max position error of code-only clock estimation
    denoising_lambda: float = 5.0       # total variation regularization for slip detection
    tec_window_size: int = 15           # (0 = disabled) TEC smoothness window
    tec_sigma_factor: float = 3.5       # threshold factor on the moving standard deviation
    gross_outlier_factor: float = 2.0   # gross outlier threshold = factor*huber
    output_track_before: str = ''       # {station}, {prn}, {timeStart}, {timeEnd}, {types}
    output_track_after: str = ''

    _ALIASES = {
        'codeMaxPositionDiff': 'code_max_position_diff',
        'outputfileTrackBefore': 'output_track_before',
        'outputfileTrackAfter': 'output_track_after',
    }

    @classmethod
    def from_dict(cls, config: Optional[Dict[str, Any]]) -> 'PreprocessingSettings':
        settings = cls(**_build(cls, config or {}, cls._ALIASES))
        settings.validate()
        return settings

    def validate(self):
        if self.huber <= 0 or self.huber_power <= 0:
            raise ConfigurationError("huber and huberPower must be positive")
        if self.code_max_position_diff <= 0:
            raise ConfigurationError("codeMaxPositionDiff must be positive")
        if self.denoising_lambda < 0:
            raise ConfigurationError("denoisingLambda must not be negative")
        if self.tec_window_size < 0:
            raise ConfigurationError("tecWindowSize must not be negative")
        if self.tec_sigma_factor <= 0:
            raise ConfigurationError("tecSigmaFactor must be positive")
        if self.gross_outlier_factor < 1:
            raise ConfigurationError("grossOutlierFactor must be at least 1")


@dataclass
class StationNetworkConfig:
    """Ground station network: files, selection and quality thresholds"""
    station_list: str = ''
    station_info: str = ''
    antenna_definition: str = ''
    accuracy_definition: str = ''
    receiver_definition: str = ''
    station_position: str = ''
    observations: str = ''
    max_station_count: Optional[int] = None
    no_antenna_pattern_found: NoPatternFoundAction = NoPatternFoundAction.IGNORE_OBSERVATION
    use_type: List[str] = field(default_factory=list)
    ignore_type: List[str] = field(default_factory=list)
    elevation_cutoff: float = 5.0           # [degree]
    elevation_track_minimum: float = 15.0   # [degree]
    min_obs_count_per_track: int = 60
    min_estimable_epochs_ratio: float = 0.75
    preprocessing: PreprocessingSettings = field(default_factory=PreprocessingSettings)

    MANDATORY = ('station_list', 'station_info', 'antenna_definition', 'accuracy_definition')

    _ALIASES = {
        'inputfileStationList': 'station_list',
        'inputfileStationInfo': 'station_info',
        'inputfileAntennaDefinition': 'antenna_definition',
        'inputfileAccuracyDefinition': 'accuracy_definition',
        'inputfileReceiverDefinition': 'receiver_definition',
        'inputfileStationPosition': 'station_position',
        'inputfileObservations': 'observations',
        'noAntennaPatternFound': 'no_antenna_pattern_found',
        'elevationCutOff': 'elevation_cutoff',
    }

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'StationNetworkConfig':
        values = _build(cls, config, cls._ALIASES)
        values['preprocessing'] = PreprocessingSettings.from_dict(values.get('preprocessing'))
        action = values.get('no_antenna_pattern_found')
        if isinstance(action, str):
            try:
                values['no_antenna_pattern_found'] = NoPatternFoundAction(action)
            except ValueError:
                raise ConfigurationError(f"noAntennaPatternFound: unknown choice '{action}'") from None
        for key in ('use_type', 'ignore_type'):
            if isinstance(values.get(key), str):
                values[key] = [values[key]]
        config_obj = cls(**values)
        config_obj.validate()
        return config_obj

    def validate(self):
        for name in self.MANDATORY:
            if not getattr(self, name):
                raise ConfigurationError(f"mandatory option '{name}' is not set")
        if not 0.0 <= self.min_estimable_epochs_ratio <= 1.0:
            raise ConfigurationError("minEstimableEpochsRatio must be in [0, 1]")
        if self.min_obs_count_per_track < 1:
            raise ConfigurationError("minObsCountPerTrack must be positive")
        if self.max_station_count is not None and self.max_station_count < 1:
            raise ConfigurationError("maxStationCount must be positive")
        if not -90.0 <= self.elevation_cutoff <= 90.0:
            raise ConfigurationError("elevationCutOff must be an angle in degrees")
        self.preprocessing.validate()


@dataclass
class SignalBiasConfig:
    """Signal bias parametrization: selection and file templates"""
    name: str = 'parameter.signalBiases'
    select_transmitters: List[str] = field(default_factory=lambda: ['all'])
    select_receivers: List[str] = field(default_factory=lambda: ['all'])
    output_transmitter: str = ''    # variable {prn}
    output_receiver: str = ''       # variable {station}
    input_transmitter: str = ''     # variable {prn}
    input_receiver: str = ''        # variable {station}

    _ALIASES = {
        'outputfileSignalBiasTransmitter': 'output_transmitter',
        'outputfileSignalBiasReceiver': 'output_receiver',
        'inputfileSignalBiasTransmitter': 'input_transmitter',
        'inputfileSignalBiasReceiver': 'input_receiver',
    }

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'SignalBiasConfig':
        return cls(**_build(cls, config, cls._ALIASES))


def load_config(path) -> Dict[str, Any]:
    """Read a JSON configuration file

    Raises
    ------
    ConfigurationError
        If the file is missing or not valid JSON
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")
    try:
        with open(path, encoding='utf-8') as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid configuration file {path}: {e}") from e
