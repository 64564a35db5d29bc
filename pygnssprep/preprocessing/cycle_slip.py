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

"""Cycle slip detection by total variation denoising.

Per track the TEC-like, Melbourne-Wuebbena and same-frequency combinations
are denoised. A slip shows up as a step of the denoised series. The TEC-like
series drifts with the ionosphere, so a quadratic trend is removed before
denoising, fitted together with offsets at the jumps already found. Smaller
slips that the regularization smooths away are found by the TEC smoothness
test: the residual from the level between the jumps is compared with the
moving standard deviation of the neighbouring residuals.

Every candidate epoch starts a new track; the pieces are analysed again
until no candidate remains.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Set

import numpy as np
import pandas as pd

from ..core.constants import JUMP_THRESHOLD, MIN_COMBINATION_SIGMA
from ..core.data_structures import Receiver, Track, Transmitter
from ..gnss.combinations import (MW, SAME_FREQUENCY, TEC, TrackSignals,
                                 compute_track_combinations, track_signals)
from .denoising import jump_positions, total_variation_denoising

logger = logging.getLogger(__name__)

TEC_TREND_DEGREE = 2
TEC_TREND_ITERATIONS = 3


@dataclass
class CycleSlipResult:
    """Tracks after splitting and the slip candidates per transmitter"""
    tracks: List[Track]
    slip_epochs: dict = field(default_factory=dict)   # id_trans -> sorted epoch list

    def candidates(self, id_trans: int) -> List[int]:
        return self.slip_epochs.get(id_trans, [])

    @property
    def count(self) -> int:
        return sum(len(v) for v in self.slip_epochs.values())


def detrend(times: np.ndarray, values: np.ndarray, degree: int = TEC_TREND_DEGREE,
            steps: Iterable[int] = ()) -> np.ndarray:
    """Remove a polynomial trend (degree limited by the series length)

    Offsets starting at the positions in ``steps`` are estimated together
    with the polynomial but stay in the result, so known jumps do not bend
    the trend.
    """
    n = len(values)
    degree = max(0, min(degree, n - 1))
    t = times - times[0]
    if n > 1 and t[-1] > 0:
        t = t / t[-1]
    columns = [t**p for p in range(degree + 1)]
    columns += [(np.arange(n) >= k).astype(float) for k in sorted(steps) if 0 < k < n]
    A = np.column_stack(columns)
    coeff = np.linalg.lstsq(A, values, rcond=None)[0]
    return values - A[:, :degree + 1] @ coeff[:degree + 1]


def piecewise_mean(values: np.ndarray, positions: Iterable[int]) -> np.ndarray:
    """Mean of each segment between the given cut positions"""
    bounds = [0] + sorted(p for p in set(positions) if 0 < p < len(values)) + [len(values)]
    levels = np.empty(len(values))
    for start, end in zip(bounds[:-1], bounds[1:]):
        levels[start:end] = values[start:end].mean()
    return levels


def moving_std(residuals: np.ndarray, window: int, floor: float = MIN_COMBINATION_SIGMA) -> np.ndarray:
    """Local scatter of the residuals around each epoch, excluding the epoch

    The standard deviation of the ``window`` preceding and the ``window``
    following residuals is computed; the smaller one is used so a slip on
    one side does not mask the other.
    """
    series = pd.Series(residuals)
    min_periods = max(3, window // 2)
    before = series.rolling(window, min_periods=min_periods).std().shift(1)
    after = series[::-1].rolling(window, min_periods=min_periods).std().shift(1)[::-1]
    std = pd.concat([before, after], axis=1).min(axis=1, skipna=True)
    return np.maximum(std.fillna(np.inf).to_numpy(), floor)


def detect_candidates(times: np.ndarray, combinations: dict, denoising_lambda: float,
                      tec_window_size: int, tec_sigma_factor: float) -> Set[int]:
    """Positions (within the track) where a new track has to start

    Jumps of the Melbourne-Wuebbena and same-frequency series are used as
    known steps when the TEC trend is fitted; the TEC fit is repeated until
    its own jumps add no new step. For the smoothness test the TEC levels
    are the segment means between the jumps, as the denoised levels are
    pulled towards their neighbours.
    """
    candidates = set()
    if len(times) < 2:
        return candidates

    for key, series in combinations.items():
        if key != MW and not key.startswith(SAME_FREQUENCY):
            continue
        if not np.all(np.isfinite(series)):
            continue
        denoised = total_variation_denoising(series, denoising_lambda)
        candidates.update(int(k) for k in jump_positions(denoised, JUMP_THRESHOLD))

    tec = combinations.get(TEC)
    if tec is not None and np.all(np.isfinite(tec)):
        steps = set(candidates)
        for _ in range(TEC_TREND_ITERATIONS):
            series = detrend(times, tec, steps=steps)
            denoised = total_variation_denoising(series, denoising_lambda)
            jumps = {int(k) for k in jump_positions(denoised, JUMP_THRESHOLD)}
            if jumps <= steps:
                break
            steps |= jumps
        candidates.update(jumps)

        if tec_window_size > 0:
            residuals = series - piecewise_mean(series, steps | jumps)
            std = moving_std(residuals, tec_window_size)
            outliers = np.flatnonzero(np.abs(residuals) > tec_sigma_factor * std)
            candidates.update(int(k) for k in outliers if k > 0)
    candidates.discard(0)
    return candidates


def split_track(track: Track, positions: Sequence[int]) -> List[Track]:
    """Cut a track before each position; the pieces share the arc id"""
    pieces = [track]
    for position in sorted(positions, reverse=True):
        pieces.insert(1, track.split(position))
    return pieces


def cycle_slip_detection(receiver: Receiver, transmitters: Sequence[Transmitter],
                         denoising_lambda: float = 5.0, tec_window_size: int = 15,
                         tec_sigma_factor: float = 3.5,
                         tracks: Optional[List[Track]] = None) -> CycleSlipResult:
    """Split the receiver's tracks at slip candidates

    Pieces shorter than any minimum are kept; repair decides whether they
    are merged back. ``receiver.tracks`` is replaced by the result.
    """
    queue = deque(receiver.tracks if tracks is None else tracks)
    done = []
    slip_epochs = {}
    while queue:
        track = queue.popleft()
        transmitter = transmitters[track.id_trans]
        signals: Optional[TrackSignals] = track_signals(track.types, transmitter.frequency_number)
        if signals is None or track.count < 2:
            done.append(track)
            continue
        combinations = compute_track_combinations(receiver, track, signals)
        times = receiver.times[track.epochs]
        candidates = detect_candidates(times, combinations, denoising_lambda,
                                       tec_window_size, tec_sigma_factor)
        if not candidates:
            done.append(track)
            continue
        epochs = slip_epochs.setdefault(track.id_trans, set())
        epochs.update(track.epochs[k] for k in candidates)
        logger.debug("%s %s: slip candidates at epochs %s", receiver.name, transmitter.name,
                     sorted(track.epochs[k] for k in candidates))
        queue.extend(split_track(track, candidates))

    done.sort(key=lambda t: (t.id_trans, t.id_epoch_start))
    receiver.tracks = done
    return CycleSlipResult(done, {k: sorted(v) for k, v in slip_epochs.items()})
