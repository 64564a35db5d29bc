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

"""Receiver-transmitter geometry and atmospheric delay helpers"""

import numpy as np
from numpy.linalg import norm

from ..core.constants import CLIGHT, OMGE

MIN_EL = 5.0         # min elevation for the troposphere model in degrees


def tropmodel_simple(llh, el):
    """Simple tropospheric model (Saastamoinen-like)

    Parameters
    ----------
    llh : np.ndarray
        Receiver geodetic position [lat, lon, height] (rad, rad, m)
    el : float
        Elevation angle in radians

    Returns
    -------
    float
        Slant delay in meters
    """
    if el < np.deg2rad(MIN_EL):
        return 0.0

    # Standard atmosphere at sea level
    P0 = 1013.25  # hPa
    T0 = 288.15   # K
    e0 = 11.75    # hPa (water vapor pressure)

    h = min(max(llh[2], 0.0), 44330.0)

    base = 1 - 2.26e-5 * h
    P = P0 * base ** 5.225 if base > 0 else 0.0
    T = T0 - 6.5e-3 * h
    e = e0 * (T / T0) ** 4.0

    zhd = 0.0022768 * P / (1 - 0.00266 * np.cos(2 * llh[0]) - 0.00028e-3 * h)
    zwd = 0.0022768 * (1255 / T + 0.05) * e

    return (zhd + zwd) / np.sin(el)


def sagnac_correction(sat_pos, rec_pos):
    """Sagnac effect correction"""
    return (OMGE / CLIGHT) * (sat_pos[0] * rec_pos[1] - sat_pos[1] * rec_pos[0])


def geodist(sat_pos, rec_pos):
    """Geometric distance and unit vector"""
    diff = sat_pos - rec_pos
    r = norm(diff)
    if r > 0:
        e = diff / r
    else:
        e = np.zeros(3)
    return r, e


def azel_local(los_local):
    """Azimuth and elevation of a unit vector given in east/north/up"""
    az = np.arctan2(los_local[0], los_local[1])
    if az < 0:
        az += 2 * np.pi
    el = np.arcsin(np.clip(los_local[2], -1.0, 1.0))
    return az, el


def satazel(global2local, e):
    """Satellite azimuth/elevation from the ECEF->ENU rotation and line of sight"""
    return azel_local(global2local @ e)


def transmit_position(positions, velocities, id_epoch, tau):
    """Transmitter position at signal emission, ``tau`` seconds before the epoch

    Positions are extrapolated along the velocity; without velocities the
    position at the epoch is returned.
    """
    pos = positions[id_epoch]
    if velocities is None:
        return pos
    return pos - velocities[id_epoch] * tau


def finite_difference_velocities(times, positions):
    """Velocities from tabulated positions (central differences)"""
    if len(times) < 2:
        return np.zeros_like(positions)
    return np.gradient(positions, times, axis=0)
