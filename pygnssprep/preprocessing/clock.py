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

"""Robust code-only receiver clock estimation.

Each epoch is solved independently as a point positioning problem with
ionosphere-free code observations. The unknowns are a position correction
and one clock per satellite system. Outliers are downweighted with a Huber
scheme: normalized residuals ``|e/sigma|`` beyond ``huber`` inflate the
observation sigma by ``(|e/sigma|/huber)**huberPower``.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np
from scipy.linalg import cho_factor, cho_solve

from ..core.constants import CLIGHT, MAX_ITERATIONS, SYSTEM_CHARS, WEIGHT_CONVERGENCE
from ..core.data_structures import Receiver, Transmitter
from ..core.station_info import NoPatternFoundAction
from ..core.status import ConvergenceError, DisableReason, StageResult
from ..gnss.combinations import ionosphere_free, ionosphere_free_sigma
from ..gnss.observation_equations import (RANGE, ObservationEquation, RotationFunc,
                                          ReduceFunc, build_observation_equations)

logger = logging.getLogger(__name__)

CLOCK_PASSES = 2


class InsufficientObservations(ValueError):
    """Fewer code observations than needed for a redundant solution"""


@dataclass
class CodeObservations:
    """Stacked code observations of one epoch, one row per transmitter"""
    l: np.ndarray
    A: np.ndarray          # partials w.r.t. position x, y, z
    sigma: np.ndarray
    systems: List[str]
    id_trans: List[int]


@dataclass
class EpochSolution:
    dx: np.ndarray
    clocks: Dict[str, float]     # [m] per system
    residuals: np.ndarray
    normalized: np.ndarray       # |e|/sigma with formal sigma
    weights: np.ndarray
    iterations: int
    id_trans: List[int]

    @property
    def position_diff(self) -> float:
        return float(np.linalg.norm(self.dx))


def code_observations(eqns: Sequence[ObservationEquation],
                      frequency_numbers: Optional[Dict[int, int]] = None) -> CodeObservations:
    """One code observable per transmitter: ionosphere-free if dual-frequency"""
    l, A, sigma, systems, ids = [], [], [], [], []
    for eqn in eqns:
        rows = eqn.rows('C')
        if len(rows) == 0:
            continue
        fn = (frequency_numbers or {}).get(eqn.id_trans, 0)
        by_band = {}
        for i in rows:
            by_band.setdefault(eqn.types[i].band, i)
        bands = sorted(by_band.values(), key=lambda i: -eqn.types[i].frequency(fn))
        if len(bands) >= 2:
            i1, i2 = bands[0], bands[1]
            f1, f2 = eqn.types[i1].frequency(fn), eqn.types[i2].frequency(fn)
            l.append(ionosphere_free(eqn.l[i1], eqn.l[i2], f1, f2))
            sigma.append(ionosphere_free_sigma(eqn.sigma[i1], eqn.sigma[i2], f1, f2))
        else:
            l.append(eqn.l[bands[0]])
            sigma.append(eqn.sigma[bands[0]])
        A.append(eqn.A[0, 1:])
        systems.append(eqn.types[rows[0]].system)
        ids.append(eqn.id_trans)
    return CodeObservations(np.array(l), np.array(A).reshape(-1, 3), np.array(sigma), systems, ids)


def _system_order(system):
    return SYSTEM_CHARS.index(system) if system in SYSTEM_CHARS else len(SYSTEM_CHARS)


def robust_solve(obs: CodeObservations, huber: float, huber_power: float,
                 max_iterations: int = MAX_ITERATIONS) -> EpochSolution:
    """Iteratively reweighted least squares for position and system clocks

    Raises
    ------
    InsufficientObservations
        Without redundancy
    numpy.linalg.LinAlgError
        If the normal matrix is not positive definite
    ConvergenceError
        If the weights do not settle within ``max_iterations``
    """
    systems = sorted(set(obs.systems), key=_system_order)
    n = len(obs.l)
    u = 3 + len(systems)
    if n <= u:
        raise InsufficientObservations(f"{n} code observations for {u} unknowns")

    A = np.zeros((n, u))
    A[:, :3] = obs.A
    for i, system in enumerate(obs.systems):
        A[i, 3 + systems.index(system)] = 1.0

    weights = np.ones(n)
    for iteration in range(1, max_iterations + 1):
        sigma = obs.sigma / weights
        Aw = A / sigma[:, None]
        lw = obs.l / sigma
        c_low = cho_factor(Aw.T @ Aw)
        x = cho_solve(c_low, Aw.T @ lw)
        e = obs.l - A @ x
        normalized = np.abs(e) / obs.sigma
        new_weights = np.ones(n)
        outlier = normalized > huber
        new_weights[outlier] = (huber / normalized[outlier]) ** huber_power
        change = np.max(np.abs(new_weights - weights))
        weights = new_weights
        if change < WEIGHT_CONVERGENCE:
            return EpochSolution(dx=x[:3], clocks=dict(zip(systems, x[3:])), residuals=e,
                                 normalized=normalized, weights=weights,
                                 iterations=iteration, id_trans=list(obs.id_trans))
    raise ConvergenceError(f"weights not converged after {max_iterations} iterations")


def solve_epoch(eqns: Sequence[ObservationEquation], huber: float, huber_power: float,
                frequency_numbers: Optional[Dict[int, int]] = None) -> EpochSolution:
    return robust_solve(code_observations(eqns, frequency_numbers), huber, huber_power)


def frequency_numbers_of(transmitters: Sequence[Transmitter]) -> Dict[int, int]:
    return {t.id_trans: t.frequency_number for t in transmitters}


def estimate_initial_clock(receiver: Receiver, transmitters: Sequence[Transmitter],
                           rotation_crf2trf: Optional[RotationFunc] = None,
                           reduce_models: Optional[ReduceFunc] = None,
                           huber: float = 2.5, huber_power: float = 1.5,
                           code_max_position_diff: float = 100.0,
                           estimate_kinematic_position: bool = False,
                           action: NoPatternFoundAction = NoPatternFoundAction.IGNORE_OBSERVATION
                           ) -> StageResult:
    """Per-epoch receiver clock from code observations

    ``receiver.clk`` is reset and re-estimated. Epochs without a redundant,
    converged solution or with a position correction beyond
    ``code_max_position_diff`` are disabled. The clock of the first
    satellite system (GPS first) is stored; with
    ``estimate_kinematic_position`` the position correction is applied too.
    """
    receiver.clk[:] = 0.0
    frequency_numbers = frequency_numbers_of(transmitters)
    disabled = 0
    for _ in range(CLOCK_PASSES):
        eqns = build_observation_equations(receiver, transmitters, rotation_crf2trf,
                                           reduce_models, RANGE, action)
        for id_epoch in range(len(receiver.times)):
            if not receiver.usable(id_epoch):
                continue
            try:
                solution = solve_epoch(eqns.epoch(id_epoch), huber, huber_power, frequency_numbers)
            except (InsufficientObservations, np.linalg.LinAlgError, ConvergenceError) as e:
                logger.debug("%s epoch %d: clock not estimable (%s)", receiver.name, id_epoch, e)
                receiver.disable(id_epoch)
                disabled += 1
                continue
            if solution.position_diff > code_max_position_diff:
                logger.debug("%s epoch %d: position diff %.1f m", receiver.name, id_epoch,
                             solution.position_diff)
                receiver.disable(id_epoch)
                disabled += 1
                continue
            receiver.clk[id_epoch] += next(iter(solution.clocks.values())) / CLIGHT
            if estimate_kinematic_position:
                receiver.pos[id_epoch] += solution.dx

    if disabled:
        logger.debug("%s: %d epochs disabled during clock estimation", receiver.name, disabled)
    if receiver.count_usable_epochs() == 0:
        return StageResult.failure(DisableReason.CLOCK_NOT_SOLVED, "no epoch with a clock solution")
    return StageResult.success()
