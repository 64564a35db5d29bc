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

"""Outlier and quality filters operating in place on a receiver"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from ..core.data_structures import Receiver, Transmitter
from ..core.status import ConvergenceError, DisableReason, StageResult
from ..gnss.combinations import (MW, TEC, combination_sigmas, compute_track_combinations,
                                 track_signals)
from ..gnss.observation_equations import (ObservationEquationList, RotationFunc, accuracy_sigmas,
                                          compute_geometry)
from .clock import InsufficientObservations, frequency_numbers_of, solve_epoch
from .cycle_slip import detrend
from .denoising import total_variation_denoising

logger = logging.getLogger(__name__)

MIN_OUTLIER_EPOCHS = 5


def apply_elevation_cutoff(receiver: Receiver, transmitters: Sequence[Transmitter],
                           elevation_cutoff: float,
                           rotation_crf2trf: Optional[RotationFunc] = None) -> int:
    """Disable observations below ``elevation_cutoff`` degrees; returns the count

    Observations kept get their sigmas from the accuracy definition of the
    antenna, where one matches.
    """
    cutoff = np.deg2rad(elevation_cutoff)
    removed = 0
    for id_epoch, epoch in enumerate(receiver.observations):
        for id_trans, obs in epoch.items():
            if not obs.usable:
                continue
            _, _, _, el = compute_geometry(receiver, transmitters[id_trans], id_epoch,
                                           rotation_crf2trf)
            if el < cutoff:
                obs.disable()
                removed += 1
                continue
            sigmas = accuracy_sigmas(receiver, id_epoch, obs.types, el)
            obs.sigmas = np.where(np.isnan(sigmas), obs.sigmas, sigmas)
    return removed


def disable_epochs_with_gross_code_outliers(receiver: Receiver, transmitters: Sequence[Transmitter],
                                            eqns: ObservationEquationList, huber: float,
                                            huber_power: float, code_max_position_diff: float,
                                            gross_outlier_factor: float = 2.0) -> int:
    """Disable epochs whose robust code solution still shows a gross error

    An epoch is dropped if the position correction exceeds
    ``code_max_position_diff`` or any normalized code residual exceeds
    ``gross_outlier_factor * huber``. Returns the number of disabled epochs.
    """
    frequency_numbers = frequency_numbers_of(transmitters)
    threshold = gross_outlier_factor * huber
    disabled = 0
    for id_epoch in eqns.epochs():
        if not receiver.usable(id_epoch):
            continue
        try:
            solution = solve_epoch(eqns.epoch(id_epoch), huber, huber_power, frequency_numbers)
        except (InsufficientObservations, np.linalg.LinAlgError, ConvergenceError):
            receiver.disable(id_epoch)
            disabled += 1
            continue
        if solution.position_diff > code_max_position_diff or np.any(solution.normalized > threshold):
            logger.debug("%s epoch %d: gross code outlier (max %.1f sigma, dpos %.1f m)",
                         receiver.name, id_epoch, np.max(solution.normalized),
                         solution.position_diff)
            receiver.disable(id_epoch)
            eqns.remove_epoch(id_epoch)
            disabled += 1
    return disabled


def remove_low_elevation_tracks(receiver: Receiver, eqns: ObservationEquationList,
                                elevation_track_minimum: float) -> int:
    """Drop tracks that never rise above ``elevation_track_minimum`` degrees"""
    minimum = np.deg2rad(elevation_track_minimum)
    kept = []
    for track in receiver.tracks:
        elevations = [eqn.elevation for eqn in
                      (eqns.get(e, track.id_trans) for e in track.epochs) if eqn is not None]
        if elevations and max(elevations) >= minimum:
            kept.append(track)
    removed = len(receiver.tracks) - len(kept)
    receiver.tracks = kept
    return removed


@dataclass
class OutlierResult:
    downweighted: int = 0
    rejected: int = 0


def _robust_scale(residuals: np.ndarray, formal: float) -> float:
    mad = 1.4826 * np.median(np.abs(residuals - np.median(residuals)))
    return max(mad, formal)


def track_outlier_detection(receiver: Receiver, transmitters: Sequence[Transmitter],
                            denoising_lambda: float, huber: float, huber_power: float,
                            gross_outlier_factor: float = 2.0) -> OutlierResult:
    """Huber test of each track's combinations against their denoised version

    Epochs with ``|r| > huber*sigma0`` get their phase sigmas inflated by
    ``(|r|/(huber*sigma0))**huberPower``; epochs beyond
    ``gross_outlier_factor*huber*sigma0`` are removed from the track and the
    observation is disabled. ``sigma0`` is the MAD scale of the residuals,
    floored by the formal accuracy of the combination.
    """
    result = OutlierResult()
    for track in receiver.tracks:
        if track.count < MIN_OUTLIER_EPOCHS:
            continue
        signals = track_signals(track.types, transmitters[track.id_trans].frequency_number)
        if signals is None:
            continue
        combinations = compute_track_combinations(receiver, track, signals)
        formal = combination_sigmas(receiver, track, signals)
        times = receiver.times[track.epochs]

        factor = np.ones(track.count)
        reject = np.zeros(track.count, dtype=bool)
        for key in (TEC, MW):
            series = combinations[key]
            if not np.all(np.isfinite(series)):
                continue
            if key == TEC:
                series = detrend(times, series)
            residuals = series - total_variation_denoising(series, denoising_lambda)
            sigma0 = _robust_scale(residuals, float(np.nanmedian(formal[key])))
            z = np.abs(residuals) / (huber * sigma0)
            reject |= z > gross_outlier_factor
            outlier = z > 1.0
            factor[outlier] = np.maximum(factor[outlier], z[outlier] ** huber_power)

        phase_types = [t for t in track.types if t.is_phase]
        for i, id_epoch in enumerate(list(track.epochs)):
            obs = receiver.observations[id_epoch][track.id_trans]
            if reject[i]:
                obs.disable()
                track.remove_epoch(id_epoch)
                result.rejected += 1
            elif factor[i] > 1.0:
                for gnss_type in phase_types:
                    idx = obs.index(gnss_type)
                    if idx is not None:
                        obs.sigmas[idx] *= factor[i]
                result.downweighted += 1
    return result


def check_estimable_epochs(receiver: Receiver, min_ratio: float) -> StageResult:
    """Disable the receiver if too few epochs are usable"""
    receiver.update_observation_sampling()
    if not receiver.estimable_epochs_ratio_ok(min_ratio):
        usable = receiver.count_usable_epochs()
        return StageResult.failure(DisableReason.INSUFFICIENT_EPOCHS,
                                   f"{usable} of {len(receiver.times)} epochs usable")
    return StageResult.success()
