# Copyright (c) 2025 massivedatascience
# Licensed under the Apache License, Version 2.0

"""
Collective channels.

The parallel kernel only needs three synchronous reductions from whatever
runtime connects its workers, plus a broadcast of the run configuration.
:class:`CollectiveChannel` describes that capability. Backends only have to
provide :meth:`CollectiveChannel.all_gather`; the reductions are derived from
it in rank order so that every backend produces bit-identical results.
Runtimes with native reductions (MPI) override them.

Backends defined here:

- :class:`LocalChannel`: a single worker, every collective is the identity.
- :class:`ThreadGroup` / :class:`ThreadChannel`: ``N`` workers running as
  threads of the current process, synchronized with :class:`threading.Barrier`.

See :mod:`kmkernel.clusterer.spark` and :mod:`kmkernel.clusterer.mpi` for the
Spark barrier-mode and MPI backends.
"""

import abc
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, List

import numpy as np

logger = logging.getLogger(__name__)


class CollectiveChannel(abc.ABC):
    """
    Synchronous collective operations across a fixed group of workers.

    Every worker of the group must make the same sequence of calls; each call
    blocks until all workers have contributed and returns the same combined
    value on every worker.
    """

    @property
    @abc.abstractmethod
    def rank(self) -> int:
        """Index of this worker, ``0 <= rank < size``."""

    @property
    @abc.abstractmethod
    def size(self) -> int:
        """Number of workers in the group."""

    @abc.abstractmethod
    def all_gather(self, value: Any) -> List[Any]:
        """
        Contribute ``value`` and return every worker's value in rank order.

        In-process backends hand out references, so ``value`` must not be
        mutated until every worker has returned from the call.
        """

    def broadcast(self, value: Any, root: int = 0) -> Any:
        """Return ``root``'s ``value`` on every worker."""
        return self.all_gather(value if self.rank == root else None)[root]

    def all_reduce_max_ints(self, values) -> np.ndarray:
        """
        Element-wise maximum of an integer or boolean array.

        For boolean arrays this is a logical OR and the result stays boolean.
        """
        parts = self.all_gather(np.array(values))
        out = np.array(parts[0], copy=True)
        for part in parts[1:]:
            np.maximum(out, part, out=out)
        return out

    def all_reduce_max_flag(self, flag: bool) -> bool:
        """Logical OR of a flag across workers."""
        return any(self.all_gather(bool(flag)))

    def all_reduce_sum(self, vector) -> np.ndarray:
        """Element-wise float32 sum, accumulated in rank order."""
        parts = self.all_gather(np.array(vector, dtype=np.float32))
        out = np.array(parts[0], dtype=np.float32, copy=True)
        for part in parts[1:]:
            out += part
        return out


class LocalChannel(CollectiveChannel):
    """Channel for a group of exactly one worker."""

    @property
    def rank(self) -> int:
        return 0

    @property
    def size(self) -> int:
        return 1

    def all_gather(self, value):
        return [value]


class ThreadGroup:
    """
    Rendezvous point for ``size`` worker threads.

    Parameters
    ----------
    size : int
        Number of workers; each must obtain its own channel through
        :meth:`channel`.
    """

    def __init__(self, size: int):
        if size < 1:
            raise ValueError("a thread group needs at least one worker, got %d" % size)
        self.size = size
        self._barrier = threading.Barrier(size)
        self._slots = [None] * size

    def channel(self, rank: int) -> "ThreadChannel":
        if not 0 <= rank < self.size:
            raise ValueError("rank %d outside group of size %d" % (rank, self.size))
        return ThreadChannel(self, rank)

    def exchange(self, rank: int, value):
        self._slots[rank] = value
        self._barrier.wait()
        gathered = list(self._slots)
        # Nobody may overwrite a slot before everyone has read it.
        self._barrier.wait()
        return gathered

    def abort(self) -> None:
        """Break the barrier so that every waiting worker fails."""
        self._barrier.abort()


class ThreadChannel(CollectiveChannel):
    """One worker's view of a :class:`ThreadGroup`."""

    def __init__(self, group: ThreadGroup, rank: int):
        self._group = group
        self._rank = rank

    @property
    def rank(self) -> int:
        return self._rank

    @property
    def size(self) -> int:
        return self._group.size

    def all_gather(self, value):
        return self._group.exchange(self._rank, value)


def run_threads(fn: Callable[[CollectiveChannel], Any], workers: int) -> List[Any]:
    """
    Run ``fn(channel)`` on ``workers`` threads sharing one :class:`ThreadGroup`.

    Returns
    -------
    list
        ``fn``'s return value for every rank, in rank order.

    Raises
    ------
    Exception
        The first error raised by a worker. A failing worker breaks the group's
        barrier, so the remaining workers abort too instead of waiting forever.
    """
    group = ThreadGroup(workers)

    def _target(rank):
        try:
            return fn(group.channel(rank))
        except BaseException:
            group.abort()
            raise

    logger.debug("Starting %d worker threads", workers)
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="kmkernel-worker") as pool:
        futures = [pool.submit(_target, rank) for rank in range(workers)]
        errors = [f.exception() for f in futures]

    failures = [e for e in errors if e is not None]
    if failures:
        # Prefer the root cause over the barrier errors it triggered elsewhere.
        primary = [e for e in failures if not isinstance(e, threading.BrokenBarrierError)]
        raise (primary or failures)[0]
    return [f.result() for f in futures]
