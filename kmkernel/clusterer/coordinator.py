# Copyright (c) 2025 massivedatascience
# Licensed under the Apache License, Version 2.0

"""
Convergence coordinators.

:func:`kmeans` drives the single-process kernel. :func:`kmeans_parallel` runs
the same passes over one worker's partition and merges the workers' partial
state through a :class:`~kmkernel.clusterer.collective.CollectiveChannel`
after every iteration.

Both loops repeat (assignment pass, recomputation pass) while some point is
still farther than ``mindistance`` from its centroid *and* some centroid was
recomputed.
"""

import logging
from typing import Callable, Optional, Tuple

import numpy as np

from .collective import CollectiveChannel
from .engine import compute_centroids, populate
from .randnum import RandNum
from .store import KernelConfig, KMeansState, build_state, initialize_centroids

logger = logging.getLogger(__name__)

IterationCallback = Callable[[int, KMeansState], None]


def kmeans(
    state: KMeansState,
    rng: RandNum,
    on_iteration: Optional[IterationCallback] = None,
) -> np.ndarray:
    """
    Cluster every point of ``state``.

    Parameters
    ----------
    state : KMeansState
        Points and (uninitialized) clustering containers.

    rng : RandNum
        Generator used for centroid initialization, typically the one that
        produced the points.

    on_iteration : callable, optional
        Called as ``on_iteration(iteration, state)`` after every
        recomputation pass, iterations counted from 1.

    Returns
    -------
    np.ndarray
        The assignment map, ``state.assignments``.
    """
    initialize_centroids(state, rng)

    iteration = 0
    while True:
        populate(state)
        compute_centroids(state)
        iteration += 1
        logger.debug(
            "Iteration %d: too_far=%s has_changed=%s",
            iteration,
            state.too_far,
            state.has_changed,
        )
        if on_iteration is not None:
            on_iteration(iteration, state)
        if not (state.too_far and state.has_changed):
            break

    state.iterations = iteration
    return state.assignments


def partition_bounds(npoints: int, size: int, rank: int) -> Tuple[int, int]:
    """
    Contiguous point range ``[start, end)`` owned by ``rank``.

    Every worker gets ``npoints // size`` points; the remainder goes to the
    last worker.
    """
    local = npoints // size
    start = rank * local
    end = npoints if rank == size - 1 else (rank + 1) * local
    return start, end


def reduce_state(state: KMeansState, channel: CollectiveChannel) -> None:
    """
    Merge the workers' partial state in place.

    The dirty set and both flags are OR-ed, and the centroids are summed. The
    summed centroids are the sum of each worker's local means, not the global
    mean, whenever a cluster has members in more than one partition.
    """
    state.dirty[:] = channel.all_reduce_max_ints(state.dirty)
    state.too_far = channel.all_reduce_max_flag(state.too_far)
    state.has_changed = channel.all_reduce_max_flag(state.has_changed)
    state.centroids[:] = channel.all_reduce_sum(state.centroids)


def parallel_step(state: KMeansState, channel: CollectiveChannel, start: int, end: int) -> None:
    """One local (assignment, recomputation) pair followed by the reduction."""
    populate(state, start, end)
    compute_centroids(state, start, end)
    reduce_state(state, channel)


def kmeans_parallel(
    state: KMeansState,
    rng: RandNum,
    channel: CollectiveChannel,
    on_iteration: Optional[IterationCallback] = None,
) -> np.ndarray:
    """
    Cluster this worker's partition of ``state`` in lockstep with its peers.

    Every worker must hold the same points and the same generator state, so
    that initialization agrees everywhere without communication. Only the
    worker's own slice of ``state.assignments`` is updated; the rest keeps
    the values from initialization.

    Returns
    -------
    np.ndarray
        This worker's assignment map, ``state.assignments``.
    """
    start, end = partition_bounds(state.npoints, channel.size, channel.rank)
    logger.debug("Rank %d/%d owns points [%d, %d)", channel.rank, channel.size, start, end)

    initialize_centroids(state, rng)

    iteration = 0
    while True:
        parallel_step(state, channel, start, end)
        iteration += 1
        if channel.rank == 0:
            logger.debug(
                "Iteration %d: too_far=%s has_changed=%s",
                iteration,
                state.too_far,
                state.has_changed,
            )
        if on_iteration is not None:
            on_iteration(iteration, state)
        if not (state.too_far and state.has_changed):
            break

    state.iterations = iteration
    return state.assignments


def run_parallel_worker(
    channel: CollectiveChannel,
    config: Optional[KernelConfig],
    on_iteration: Optional[IterationCallback] = None,
) -> KMeansState:
    """
    Body of one parallel worker.

    Rank 0's ``config`` is broadcast to the group (other ranks may pass
    ``None``); every worker then draws the same points from the shared seed
    and runs :func:`kmeans_parallel`.
    """
    config = KernelConfig(*channel.broadcast(config))
    state, rng = build_state(config)
    kmeans_parallel(state, rng, channel, on_iteration=on_iteration)
    return state
