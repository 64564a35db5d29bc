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
Synthetic GNSS data
===================

Transmitters on straight-line paths above a station and receiver
observations generated with the same geometry, antenna and reduction
models the preprocessing uses. On top of the modelled range the
observations carry a receiver clock error, a slowly drifting ionosphere,
integer phase ambiguities and white noise at the formal accuracy.

Example::

    times = 1.0e9 + 30.0 * np.arange(120)
    transmitters = simulate_transmitters(times, position, count=8, seed=1)
    receiver = Receiver('sim1', simulated_station_info('sim1', position), times)
    true_clock = simulate_observations(receiver, transmitters, DEFAULT_TYPES)
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from .coordinate.transforms import compute_rotation_matrix_enu, ecef2llh
from .core.constants import CLIGHT, FREQ_L1, RE_WGS84
from .core.data_structures import Observation, Receiver, Transmitter
from .core.signal_types import GnssType
from .core.station_info import (AntennaDefinition, AntennaInstallation, AntennaPattern,
                                NoPatternFoundAction, StationInfo)
from .gnss.observation_equations import ReduceFunc, RotationFunc, antenna_correction, compute_geometry

DEFAULT_TYPES = ['C1CG', 'C2WG', 'L1CG', 'L2WG']
ORBIT_RADIUS = 26_560e3        # [m] GPS semi-major axis
IONOSPHERE_HEIGHT = 450e3      # [m] single layer height
SIMULATION_BANDS = (1, 2, 5)


@dataclass
class SimulationSettings:
    code_sigma: float = 0.3          # [m] used where no accuracy pattern exists
    phase_sigma: float = 0.002       # [m]
    clock_offset: float = 1e-4       # [s] receiver clock at the first epoch
    clock_drift: float = 1e-9        # [s/s]
    clock_noise: float = 1e-10       # [s] white noise per epoch
    zenith_delay: float = 3.0        # [m] ionospheric delay on L1 at zenith
    delay_rate: float = 1e-4         # [m/s] drift of the zenith delay
    elevation_cutoff: float = 5.0    # [degree]
    seed: Optional[int] = None


def simulate_transmitters(times: np.ndarray, station_position: np.ndarray, count: int = 8,
                          seed: Optional[int] = None, system: str = 'G',
                          elevation_range: Tuple[float, float] = (25.0, 75.0),
                          speed: float = 1.0e3) -> List[Transmitter]:
    """Transmitters starting at random azimuth/elevation above a station

    Each transmitter starts on the sphere of radius ``ORBIT_RADIUS`` in the
    direction of its initial azimuth and elevation and moves with constant
    velocity perpendicular to its radius vector.
    """
    rng = np.random.default_rng(seed)
    times = np.asarray(times, dtype=float)
    station_position = np.asarray(station_position, dtype=float)
    local2global = compute_rotation_matrix_enu(ecef2llh(station_position)).T
    dt = times - times[0]

    transmitters = []
    for i in range(count):
        az = 2 * np.pi * i / count + rng.uniform(-0.2, 0.2)
        el = np.deg2rad(rng.uniform(*elevation_range))
        u = local2global @ np.array([np.cos(el) * np.sin(az), np.cos(el) * np.cos(az), np.sin(el)])
        b = station_position @ u
        distance = -b + np.sqrt(b**2 - station_position @ station_position + ORBIT_RADIUS**2)
        start = station_position + distance * u

        direction = rng.normal(size=3)
        direction -= (direction @ start) / (start @ start) * start
        direction /= np.linalg.norm(direction)
        velocity = speed * direction

        transmitters.append(Transmitter(
            name=f"{system}{i + 1:02d}",
            positions=start + np.outer(dt, velocity),
            clock=rng.uniform(-1e-4, 1e-4) + 1e-11 * dt,
            velocities=np.tile(velocity, (len(times), 1)),
            id_trans=i,
        ))
    return transmitters


def simple_definition(name: str, code_value: float = 0.0, phase_value: float = 0.0,
                      offset_up: float = 0.0) -> AntennaDefinition:
    """Elevation independent definition for every system on bands 1, 2 and 5

    Used with zero values as antenna definition and with the sigmas as
    accuracy definition.
    """
    patterns = []
    for band in SIMULATION_BANDS:
        for obs, value in (('C', code_value), ('L', phase_value)):
            patterns.append(AntennaPattern(GnssType(obs, band, '*', '*'),
                                           offset=np.array([0.0, 0.0, offset_up]),
                                           zenith_deg=np.array([0.0, 90.0]),
                                           values=np.array([value, value])))
    return AntennaDefinition(name, patterns=patterns)


def simulated_station_info(name: str, position: np.ndarray, antenna_name: str = 'SIMANT',
                           with_definitions: bool = True, code_sigma: float = 0.3,
                           phase_sigma: float = 0.002) -> StationInfo:
    """Station with one antenna valid for all times"""
    antenna = AntennaInstallation(antenna_name)
    if with_definitions:
        antenna.antenna_def = simple_definition(antenna_name)
        antenna.accuracy_def = simple_definition(antenna_name, code_sigma, phase_sigma)
    return StationInfo(marker_name=name, approx_position=np.asarray(position, dtype=float),
                       antennas=[antenna])


def _ionosphere_mapping(elevation: float) -> float:
    sin_z = RE_WGS84 / (RE_WGS84 + IONOSPHERE_HEIGHT) * np.cos(elevation)
    return 1.0 / np.sqrt(1.0 - sin_z**2)


def _as_types(types: Sequence[Union[str, GnssType]]) -> List[GnssType]:
    return [t if isinstance(t, GnssType) else GnssType.parse(t) for t in types]


def simulate_observations(receiver: Receiver, transmitters: Sequence[Transmitter],
                          types: Sequence[Union[str, GnssType]] = DEFAULT_TYPES,
                          rotation_crf2trf: Optional[RotationFunc] = None,
                          reduce_models: Optional[ReduceFunc] = None,
                          settings: Optional[SimulationSettings] = None,
                          action: NoPatternFoundAction = NoPatternFoundAction.IGNORE_OBSERVATION
                          ) -> np.ndarray:
    """Fill the receiver with synthetic observations of ``types``

    Only usable epochs and transmitters above the elevation cutoff are
    simulated. The receiver clock estimate is left at zero.

    Returns
    -------
    np.ndarray
        True receiver clock error per epoch in seconds
    """
    settings = settings or SimulationSettings()
    rng = np.random.default_rng(settings.seed)
    types = _as_types(types)
    n = len(receiver.times)
    dt = receiver.times - receiver.times[0] if n else receiver.times
    true_clock = settings.clock_offset + settings.clock_drift * dt \
        + rng.normal(0.0, settings.clock_noise, n)
    cutoff = np.deg2rad(settings.elevation_cutoff)

    ambiguities = {}
    receiver.clk = true_clock.copy()
    for transmitter in transmitters:
        trans_types = [t for t in types if t.system == transmitter.system]
        if not trans_types:
            continue
        wavelengths = np.array([t.wavelength(transmitter.frequency_number) for t in trans_types])
        scale = np.array([(FREQ_L1 / t.frequency(transmitter.frequency_number))**2 for t in trans_types])
        sign = np.array([-1.0 if t.is_phase else 1.0 for t in trans_types])
        is_phase = sign < 0
        ambiguities[transmitter.id_trans] = \
            np.where(is_phase, rng.integers(-1000, 1000, len(trans_types)), 0) * wavelengths
        default_sigma = np.where(is_phase, settings.phase_sigma, settings.code_sigma)

        for id_epoch in range(n):
            if not receiver.use_epoch[id_epoch] or not transmitter.usable(id_epoch):
                continue
            r, los, az, el = compute_geometry(receiver, transmitter, id_epoch, rotation_crf2trf)
            if el < cutoff:
                continue
            keep, antenna, sigma_pattern = antenna_correction(receiver, transmitter, id_epoch,
                                                              trans_types, los, el, action)
            sigma = np.where(np.isnan(sigma_pattern), default_sigma, sigma_pattern)
            delay = (settings.zenith_delay + settings.delay_rate * dt[id_epoch]) * _ionosphere_mapping(el)
            values = r + CLIGHT * (true_clock[id_epoch] - transmitter.clock[id_epoch]) + antenna \
                + sign * scale * delay + ambiguities[transmitter.id_trans] \
                + rng.normal(0.0, 1.0, len(trans_types)) * sigma
            if reduce_models is not None:
                values = values + reduce_models(receiver, transmitter, id_epoch, trans_types, az, el)
            idx = np.flatnonzero(keep)
            if len(idx) == 0:
                continue
            receiver.add_observation(id_epoch, transmitter.id_trans,
                                     Observation([trans_types[i] for i in idx], values[idx], sigma[idx]))
    receiver.clk = np.zeros(n)
    receiver.update_observation_sampling()
    return true_clock


def inject_cycle_slip(receiver: Receiver, id_trans: int, gnss_type: Union[str, GnssType],
                      id_epoch: int, cycles: float, frequency_number: int = 0) -> int:
    """Add ``cycles`` to a phase type from ``id_epoch`` on; returns the epochs changed"""
    gnss_type = _as_types([gnss_type])[0]
    wavelength = gnss_type.wavelength(frequency_number)
    changed = 0
    for epoch in receiver.observations[id_epoch:]:
        obs = epoch.get(id_trans)
        if obs is None:
            continue
        idx = obs.index(gnss_type)
        if idx is not None:
            obs.values[idx] += cycles * wavelength
            changed += 1
    return changed


def inject_outlier(receiver: Receiver, id_epoch: int, id_trans: int,
                   gnss_type: Union[str, GnssType], size: float) -> bool:
    """Add ``size`` meters to one observation"""
    gnss_type = _as_types([gnss_type])[0]
    obs = receiver.observations[id_epoch].get(id_trans)
    if obs is None or obs.index(gnss_type) is None:
        return False
    obs.values[obs.index(gnss_type)] += size
    return True
