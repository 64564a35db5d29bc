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

"""Per-receiver preprocessing sequence.

The stages run in a fixed order on one receiver owned by the calling worker:

 1. track segmentation
 2. robust code-only clock estimation
 3. observation equations (code and phase)
 4. gross code outlier epochs
 5. optional track dump
 6. cycle slip detection
 7. removal of tracks that stay low
 8. track outlier detection
 9. cycle slip repair and minimum track length
10. optional track dump, removal of untracked observations
11. estimable epoch ratio

A failing stage returns a :class:`StageResult`; the receiver is then disabled
and the sequence stops.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from ..core.config import StationNetworkConfig
from ..core.data_structures import Receiver, Transmitter
from ..core.status import DisableReason, StageResult
from ..gnss.observation_equations import (PHASE, RANGE, ReduceFunc, RotationFunc,
                                          build_observation_equations)
from ..io.templates import FileTemplate
from ..io.tracks import write_tracks
from .clock import estimate_initial_clock
from .cycle_slip import cycle_slip_detection
from .quality import (check_estimable_epochs, disable_epochs_with_gross_code_outliers,
                      remove_low_elevation_tracks, track_outlier_detection)
from .repair import cycle_slip_repair
from .tracks import create_tracks, remove_untracked_observations

logger = logging.getLogger(__name__)


@dataclass
class PreprocessingStats:
    """Counters of one receiver's preprocessing run"""
    tracks_created: int = 0
    gross_outlier_epochs: int = 0
    slip_candidates: int = 0
    low_elevation_tracks: int = 0
    downweighted: int = 0
    rejected: int = 0
    repaired: int = 0
    unresolved: int = 0
    short_tracks: int = 0
    tracks_final: int = 0


@dataclass
class PreprocessingResult:
    status: StageResult
    stats: PreprocessingStats = field(default_factory=PreprocessingStats)

    @property
    def ok(self) -> bool:
        return self.status.ok


def prune_disabled_epochs(receiver: Receiver):
    """Remove disabled epochs and rejected observations from the tracks"""
    for track in receiver.tracks:
        track.epochs = [e for e in track.epochs
                        if receiver.observation(e, track.id_trans) is not None]
        track.combinations = {}
    receiver.tracks = [t for t in receiver.tracks if t.count > 0]


def preprocess_receiver(receiver: Receiver, transmitters: Sequence[Transmitter],
                        config: StationNetworkConfig,
                        rotation_crf2trf: Optional[RotationFunc] = None,
                        reduce_models: Optional[ReduceFunc] = None) -> PreprocessingResult:
    """Run the preprocessing sequence on one receiver

    The receiver is disabled (and keeps no tracks) if a stage fails.
    Recoverable exceptions raised by the stages propagate to the caller,
    which owns the receiver boundary.
    """
    settings = config.preprocessing
    stats = PreprocessingStats()

    def fail(status: StageResult) -> PreprocessingResult:
        logger.info("%s disabled: %s", receiver.name, status)
        receiver.disable(reason=status.reason)
        return PreprocessingResult(status, stats)

    if not receiver.usable():
        return PreprocessingResult(StageResult.failure(
            receiver.disable_reason or DisableReason.STATION_DATA), stats)

    stats.tracks_created = len(create_tracks(receiver, transmitters, config.min_obs_count_per_track))
    remove_untracked_observations(receiver)
    if not receiver.tracks:
        return fail(StageResult.failure(DisableReason.INSUFFICIENT_EPOCHS, "no tracks"))

    status = estimate_initial_clock(receiver, transmitters, rotation_crf2trf, reduce_models,
                                    settings.huber, settings.huber_power,
                                    settings.code_max_position_diff,
                                    action=config.no_antenna_pattern_found)
    if not status.ok:
        return fail(status)

    eqns = build_observation_equations(receiver, transmitters, rotation_crf2trf, reduce_models,
                                       RANGE | PHASE, config.no_antenna_pattern_found)
    stats.gross_outlier_epochs = disable_epochs_with_gross_code_outliers(
        receiver, transmitters, eqns, settings.huber, settings.huber_power,
        settings.code_max_position_diff, settings.gross_outlier_factor)
    prune_disabled_epochs(receiver)

    write_tracks(FileTemplate(settings.output_track_before), receiver, transmitters)

    slips = cycle_slip_detection(receiver, transmitters, settings.denoising_lambda,
                                 settings.tec_window_size, settings.tec_sigma_factor)
    stats.slip_candidates = slips.count

    stats.low_elevation_tracks = remove_low_elevation_tracks(receiver, eqns,
                                                             config.elevation_track_minimum)
    outliers = track_outlier_detection(receiver, transmitters, settings.denoising_lambda,
                                       settings.huber, settings.huber_power,
                                       settings.gross_outlier_factor)
    stats.downweighted, stats.rejected = outliers.downweighted, outliers.rejected

    repair = cycle_slip_repair(receiver, transmitters, config.min_obs_count_per_track)
    stats.repaired, stats.unresolved, stats.short_tracks = \
        repair.repaired, repair.unresolved, repair.dropped

    write_tracks(FileTemplate(settings.output_track_after), receiver, transmitters)
    remove_untracked_observations(receiver)
    stats.tracks_final = len(receiver.tracks)

    status = check_estimable_epochs(receiver, config.min_estimable_epochs_ratio)
    if not status.ok:
        return fail(status)
    logger.debug("%s: %s", receiver.name, stats)
    return PreprocessingResult(StageResult.success(), stats)
