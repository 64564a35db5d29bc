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

"""Coordinate transformation utilities"""


import numpy as np

from ..core.constants import FE_WGS84, OMGE, RE_WGS84


def ecef2llh(xyz: np.ndarray) -> np.ndarray:
    """Convert ECEF coordinates to geodetic coordinates

    Parameters
    ----------
    xyz : np.ndarray
        ECEF coordinates [x, y, z] in meters

    Returns
    -------
    np.ndarray
        Geodetic coordinates [lat, lon, height] (rad, rad, m) on WGS84

    Notes
    -----
    Iterative solution; converges in 3-4 iterations.
    """
    x, y, z = xyz[0], xyz[1], xyz[2]
    e2 = FE_WGS84 * (2.0 - FE_WGS84)

    lon = np.arctan2(y, x)
    p = np.sqrt(x**2 + y**2)
    if p < 1e-9:
        # on the polar axis
        return np.array([np.copysign(np.pi / 2, z), lon, abs(z) - RE_WGS84 * (1.0 - FE_WGS84)])
    lat = np.arctan2(z, p * (1.0 - e2))
    h = 0.0
    for _ in range(5):
        N = RE_WGS84 / np.sqrt(1.0 - e2 * np.sin(lat)**2)
        h = p / np.cos(lat) - N
        lat = np.arctan2(z, p * (1.0 - e2 * N / (N + h)))

    return np.array([lat, lon, h])


def llh2ecef(llh: np.ndarray) -> np.ndarray:
    """Convert geodetic coordinates [lat, lon, height] (rad, rad, m) to ECEF"""
    lat, lon, h = llh[0], llh[1], llh[2]
    e2 = FE_WGS84 * (2.0 - FE_WGS84)
    N = RE_WGS84 / np.sqrt(1.0 - e2 * np.sin(lat)**2)

    return np.array([
        (N + h) * np.cos(lat) * np.cos(lon),
        (N + h) * np.cos(lat) * np.sin(lon),
        (N * (1.0 - e2) + h) * np.sin(lat),
    ])


def compute_rotation_matrix_enu(llh: np.ndarray) -> np.ndarray:
    """Rotation matrix from ECEF to local East-North-Up

    The matrix R transforms ECEF vectors to ENU: ``v_enu = R @ v_ecef``.
    """
    lat, lon = llh[0], llh[1]
    sin_lat = np.sin(lat)
    cos_lat = np.cos(lat)
    sin_lon = np.sin(lon)
    cos_lon = np.cos(lon)

    return np.array([
        [-sin_lon, cos_lon, 0],
        [-sin_lat * cos_lon, -sin_lat * sin_lon, cos_lat],
        [cos_lat * cos_lon, cos_lat * sin_lon, sin_lat]
    ])


def ecef2enu(xyz: np.ndarray, org_llh: np.ndarray) -> np.ndarray:
    """ECEF position to ENU relative to the geodetic origin ``org_llh``"""
    return compute_rotation_matrix_enu(org_llh) @ (xyz - llh2ecef(org_llh))


def enu2ecef(enu: np.ndarray, org_llh: np.ndarray) -> np.ndarray:
    """Inverse of :func:`ecef2enu`"""
    return llh2ecef(org_llh) + compute_rotation_matrix_enu(org_llh).T @ enu


def earth_rotation_matrix(time: float, time0: float = 0.0) -> np.ndarray:
    """Simple CRF to TRF rotation: spin about the z axis at the mean rate

    Stands in for a full earth orientation model; ``time`` in seconds.
    """
    angle = OMGE * (time - time0)
    c, s = np.cos(angle), np.sin(angle)
    return np.array([
        [c, s, 0.0],
        [-s, c, 0.0],
        [0.0, 0.0, 1.0]
    ])
