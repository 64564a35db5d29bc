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

"""Station alternative selection and transceiver selection patterns"""

import logging
from fnmatch import fnmatchcase
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from .parallel import Communicator, SingleCommunicator

logger = logging.getLogger(__name__)

NO_ALTERNATIVE = -1


def select_alternatives(alternative_counts: Sequence[int], test: Callable[[int, int], bool],
                        comm: Optional[Communicator] = None,
                        progress: Optional[Callable[[int], Sequence[int]]] = None) -> np.ndarray:
    """Index of the first accepted alternative per station

    Stations are owned round-robin by the workers of ``comm``. The owner
    calls ``test(i, k)`` for the alternatives ``k`` of station ``i`` in
    order and stops at the first accepted one. The choices are summed on
    the master and broadcast, so every worker returns the same vector.

    Parameters
    ----------
    alternative_counts : sequence of int
        Number of alternatives per station
    test : callable
        ``test(i, k) -> bool``, called only by the owner of station ``i``
    comm : Communicator, optional
        Worker group; a single worker if None
    progress : callable, optional
        ``progress(count)`` returning the iterable of station indices,
        e.g. :meth:`PreprocessingReporter.loop`

    Returns
    -------
    np.ndarray
        Chosen alternative per station, ``NO_ALTERNATIVE`` if none passed
    """
    comm = comm or SingleCommunicator()
    count = len(alternative_counts)
    chosen = np.zeros(count)
    indices = progress(count) if progress is not None else range(count)
    for i in indices:
        if not comm.is_my_rank(i):
            continue
        for k in range(alternative_counts[i]):
            if test(i, k):
                chosen[i] = k + 1
                break
    comm.barrier()
    chosen = comm.reduce_sum(chosen)
    chosen = comm.broadcast(chosen)
    return np.rint(chosen).astype(int) - 1


def keep_winners(chosen: np.ndarray, max_count: Optional[int] = None) -> List[Tuple[int, int]]:
    """(station, alternative) pairs of selected stations in list order"""
    winners = []
    for i, k in enumerate(chosen):
        if k == NO_ALTERNATIVE:
            continue
        winners.append((i, int(k)))
        if max_count is not None and len(winners) >= max_count:
            break
    return winners


class TransceiverSelector:
    """Select transmitters or receivers by name

    Patterns are matched case-insensitively with shell wildcards; ``all``
    selects everything and a leading ``!`` excludes matching names again.
    Patterns are applied in order.

    Examples
    --------
    >>> TransceiverSelector(['G*', '!G04']).select(['G01', 'G04', 'E11'])
    array([ True, False, False])
    """

    def __init__(self, patterns: Optional[Sequence[str]] = None):
        self.patterns = list(patterns) if patterns else ['all']

    def matches(self, name: str) -> bool:
        selected = False
        for pattern in self.patterns:
            exclude = pattern.startswith('!')
            pattern = pattern[1:] if exclude else pattern
            if pattern.lower() == 'all' or fnmatchcase(name.upper(), pattern.upper()):
                selected = not exclude
        return selected

    def select(self, names: Sequence[str]) -> np.ndarray:
        return np.array([self.matches(name) for name in names], dtype=bool)
