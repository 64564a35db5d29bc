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

"""1-D total variation denoising.

Solves ``min_x 1/2 * sum((y - x)**2) + lam * sum(|x[k+1] - x[k]|)`` exactly
with the taut string formulation (Davies & Kovac, "Local extremes, runs,
strings and multiresolution", Annals of Statistics, 2001): with the
cumulative sums ``S[j] = y[0] + ... + y[j-1]`` the solution is the slope
of the shortest path from ``(0, 0)`` to ``(n, S[n])`` that stays within
``S[j] - lam <= r[j] <= S[j] + lam``. The path is built segment by segment,
bending at the tube vertex that closes the cone of feasible slopes.
The result is piecewise constant; steps larger than the noise survive.
"""

import numpy as np
from numba import njit


@njit(cache=True)
def _tv1d(y, lam, x):
    n = y.shape[0]
    cumsum = np.zeros(n + 1)
    for j in range(n):
        cumsum[j + 1] = cumsum[j] + y[j]

    i0 = 0
    r0 = 0.0
    while i0 < n:
        # cone of slopes from (i0, r0) through the tube vertices seen so far
        max_low = 0.0
        min_up = 0.0
        arg_low = i0
        arg_up = i0
        bend = False
        for j in range(i0 + 1, n + 1):
            if j == n:
                low = cumsum[n]
                up = cumsum[n]
            else:
                low = cumsum[j] - lam
                up = cumsum[j] + lam
            slope_low = (low - r0) / (j - i0)
            slope_up = (up - r0) / (j - i0)
            if j == i0 + 1:
                max_low, arg_low = slope_low, j
                min_up, arg_up = slope_up, j
            elif slope_low > min_up:
                # path passes below the upper vertex
                for i in range(i0, arg_up):
                    x[i] = min_up
                r0 = cumsum[arg_up] + lam
                i0 = arg_up
                bend = True
                break
            elif slope_up < max_low:
                # path passes above the lower vertex
                for i in range(i0, arg_low):
                    x[i] = max_low
                r0 = cumsum[arg_low] - lam
                i0 = arg_low
                bend = True
                break
            else:
                if slope_up <= min_up:
                    min_up, arg_up = slope_up, j
                if slope_low >= max_low:
                    max_low, arg_low = slope_low, j
        if not bend:
            slope = (cumsum[n] - r0) / (n - i0)
            for i in range(i0, n):
                x[i] = slope
            return


def total_variation_denoising(y, lam):
    """Total variation denoised copy of ``y``

    Parameters
    ----------
    y : array_like
        Finite 1-D series
    lam : float
        Regularization weight; 0 returns the input unchanged

    Returns
    -------
    np.ndarray
        Piecewise constant estimate of the same length
    """
    y = np.ascontiguousarray(y, dtype=np.float64)
    if y.ndim != 1:
        raise ValueError("total variation denoising expects a 1-D series")
    if not np.all(np.isfinite(y)):
        raise ValueError("total variation denoising expects finite values")
    if y.size <= 1 or lam <= 0:
        return y.copy()
    x = np.empty_like(y)
    _tv1d(y, float(lam), x)
    return x


def jump_positions(x, threshold):
    """Indices k where ``|x[k] - x[k-1]| > threshold``"""
    x = np.asarray(x)
    if x.size < 2:
        return np.zeros(0, dtype=int)
    return np.flatnonzero(np.abs(np.diff(x)) > threshold) + 1
