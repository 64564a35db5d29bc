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

"""Fixed worker group with collective operations.

Every worker runs the same function with its own communicator. Work is
sharded statically by rank; the only synchronization points are the
collectives ``barrier``, ``reduce_sum`` and ``broadcast``.

Workers are threads or processes. For processes the shared state lives in
a :class:`multiprocessing.Manager`, so the worker function and its
arguments have to be picklable.
"""

import logging
import multiprocessing
import threading
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor
from typing import Any, Callable, List, Optional

import numpy as np

logger = logging.getLogger(__name__)

MASTER = 0


class Communicator:
    """Collectives of one worker within its group"""

    rank = MASTER
    size = 1

    @property
    def is_master(self) -> bool:
        return self.rank == MASTER

    def is_my_rank(self, index: int) -> bool:
        """Round-robin ownership of work item ``index``"""
        return index % self.size == self.rank

    def barrier(self):
        raise NotImplementedError

    def reduce_sum(self, values) -> Optional[np.ndarray]:
        """Element-wise sum over all workers, result on the master only"""
        raise NotImplementedError

    def broadcast(self, value: Any = None) -> Any:
        """Master's value on all workers"""
        raise NotImplementedError

    def abort(self):
        """Release workers blocked in a collective"""


class SingleCommunicator(Communicator):
    """Group of one: collectives are identities"""

    def barrier(self):
        pass

    def reduce_sum(self, values):
        return np.array(values, dtype=float)

    def broadcast(self, value=None):
        return value


class GroupCommunicator(Communicator):
    """Worker ``rank`` of ``size`` sharing a barrier, a lock and a board"""

    def __init__(self, rank: int, size: int, barrier, lock, board):
        self.rank = rank
        self.size = size
        self._barrier = barrier
        self._lock = lock
        self._board = board

    def barrier(self):
        self._barrier.wait()

    def reduce_sum(self, values):
        values = np.array(values, dtype=float)
        self.barrier()
        with self._lock:
            current = self._board.get('sum')
            self._board['sum'] = values if current is None else current + values
        self.barrier()
        result = np.array(self._board['sum']) if self.is_master else None
        self.barrier()
        if self.is_master:
            del self._board['sum']
        return result

    def broadcast(self, value=None):
        self.barrier()
        if self.is_master:
            self._board['broadcast'] = value
        self.barrier()
        result = self._board['broadcast']
        self.barrier()
        if self.is_master:
            del self._board['broadcast']
        return result

    def abort(self):
        self._barrier.abort()


def _run_rank(func: Callable, comm: Communicator, args, kwargs):
    try:
        return func(comm, *args, **kwargs)
    except BaseException:
        logger.error("worker %d of %d failed", comm.rank, comm.size)
        comm.abort()
        raise


def run_parallel(func: Callable, size: int, args=(), kwargs=None, backend: str = 'process',
                 timeout: Optional[float] = None) -> List[Any]:
    """Run ``func(comm, *args, **kwargs)`` on ``size`` workers

    Parameters
    ----------
    func : callable
        Worker function; receives its communicator first
    size : int
        Number of workers
    backend : str
        ``'process'`` or ``'thread'``
    timeout : float, optional
        Barrier timeout in seconds

    Returns
    -------
    list
        Return values ordered by rank
    """
    kwargs = kwargs or {}
    if size < 1:
        raise ValueError("worker group needs at least one worker")
    if size == 1:
        return [func(SingleCommunicator(), *args, **kwargs)]

    if backend == 'thread':
        barrier = threading.Barrier(size, timeout=timeout)
        lock = threading.Lock()
        board = {}
        with ThreadPoolExecutor(max_workers=size) as executor:
            futures = [executor.submit(_run_rank, func, GroupCommunicator(rank, size, barrier, lock, board),
                                       args, kwargs) for rank in range(size)]
            return [f.result() for f in futures]

    if backend == 'process':
        with multiprocessing.Manager() as manager:
            barrier = manager.Barrier(size, timeout=timeout)
            lock = manager.Lock()
            board = manager.dict()
            with ProcessPoolExecutor(max_workers=size) as executor:
                futures = [executor.submit(_run_rank, func, GroupCommunicator(rank, size, barrier, lock, board),
                                           args, kwargs) for rank in range(size)]
                return [f.result() for f in futures]

    raise ValueError(f"Unknown backend: {backend}")
