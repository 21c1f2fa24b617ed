# Copyright (c) 2025 massivedatascience
# Licensed under the Apache License, Version 2.0

"""
Local clustering engine.

Both passes work on a contiguous point range ``[start, end)`` of a
:class:`~kmkernel.clusterer.store.KMeansState`: the whole set in the
single-process kernel, one worker's partition in the parallel one.
"""

from typing import Optional

import numpy as np

from .store import KMeansState

# Rows per block in the assignment pass; bounds the (rows, k, dimension) buffer.
BLOCK_SIZE = 4096


def v_distance(a, b) -> np.float32:
    """
    Euclidean distance between two vectors.

    Coordinate differences are taken in float32 and squared in float64;
    the result is rounded back to float32.
    """
    diff = np.asarray(a, dtype=np.float32) - np.asarray(b, dtype=np.float32)
    return np.float32(np.sqrt(np.sum(np.square(diff, dtype=np.float64))))


def pairwise_distances(points: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    """
    Distances from each point to each centroid.

    Returns
    -------
    np.ndarray
        float32 array of shape (N, K); entry ``[i, j]`` equals
        ``v_distance(points[i], centroids[j])``.
    """
    diff = points[:, np.newaxis, :] - centroids[np.newaxis, :, :]
    return np.sqrt(np.sum(np.square(diff, dtype=np.float64), axis=2)).astype(np.float32)


def _resolve_range(state: KMeansState, start: int, end: Optional[int]):
    if end is None:
        end = state.npoints
    return start, end


def populate(state: KMeansState, start: int = 0, end: Optional[int] = None) -> None:
    """
    Assignment pass over ``[start, end)``.

    Every point starts from the distance to its current centroid and scans the
    other clusters in index order, moving whenever a cluster is strictly
    closer than the best so far. Each cluster a point moves to is marked
    dirty, including the intermediate ones of the scan. ``state.too_far`` is
    set when any point ends up farther than ``state.mindistance``.
    """
    start, end = _resolve_range(state, start, end)
    state.too_far = False
    if state.ncentroids == 0:
        return
    for lo in range(start, end, BLOCK_SIZE):
        _assign_block(state, lo, min(lo + BLOCK_SIZE, end))


def _assign_block(state: KMeansState, lo: int, hi: int) -> None:
    ncentroids = state.ncentroids
    current = state.assignments[lo:hi].astype(np.intp)
    rows = np.arange(hi - lo)

    distances = pairwise_distances(state.points[lo:hi], state.centroids)
    baseline = distances[rows, current]
    candidates = distances
    candidates[rows, current] = np.inf

    # best[:, j] is the smallest distance seen before cluster j is scanned
    best = np.minimum.accumulate(np.column_stack([baseline, candidates]), axis=1)
    improved = candidates < best[:, :-1]

    state.dirty |= improved.any(axis=0)
    moved = improved.any(axis=1)
    last = ncentroids - 1 - np.argmax(improved[:, ::-1], axis=1)
    state.assignments[lo:hi] = np.where(moved, last, current)

    if np.any(best[:, -1] > state.mindistance):
        state.too_far = True


def compute_centroids(state: KMeansState, start: int = 0, end: Optional[int] = None) -> None:
    """
    Recomputation pass over ``[start, end)``.

    Each dirty centroid is replaced by the sum of the in-range points assigned
    to it, divided by the population only when more than one point
    contributes: an empty cluster ends up at the origin and a singleton at its
    single point. ``state.has_changed`` is set when any dirty cluster was
    processed. The dirty set is cleared afterwards.
    """
    start, end = _resolve_range(state, start, end)
    state.has_changed = False
    members = state.assignments[start:end]
    points = state.points[start:end]

    for cluster in np.flatnonzero(state.dirty):
        mask = members == cluster
        population = int(np.count_nonzero(mask))
        total = points[mask].sum(axis=0, dtype=np.float64)
        if population > 1:
            total *= 1.0 / population
        state.centroids[cluster] = total
        state.has_changed = True

    state.dirty[:] = False


def assignment_cost(state: KMeansState, start: int = 0, end: Optional[int] = None) -> float:
    """Sum of squared distances from each point in range to its assigned centroid."""
    start, end = _resolve_range(state, start, end)
    members = state.assignments[start:end]
    assigned = members >= 0
    if not np.any(assigned):
        return 0.0
    diff = state.points[start:end][assigned] - state.centroids[members[assigned]]
    return float(np.sum(np.square(diff, dtype=np.float64)))
