# Copyright (c) 2025 massivedatascience
# Licensed under the Apache License, Version 2.0

"""
Point and centroid store.

This module owns the containers the clustering engine works on: the synthetic
points, the centroids, the assignment map and the per-cluster dirty markers.
They live on a single :class:`KMeansState` object that the coordinator creates
and hands to the engine, so nothing is kept in module globals.
"""

import logging
from collections import namedtuple
from typing import Tuple

import numpy as np

from .randnum import RandNum

logger = logging.getLogger(__name__)

UNASSIGNED = -1

KernelConfig = namedtuple(
    "KernelConfig", ["npoints", "dimension", "ncentroids", "mindistance", "seed"]
)
KernelConfig.__doc__ = """Scalar run configuration shared by every worker."""


class KMeansState:
    """
    Mutable clustering state for one worker.

    Parameters
    ----------
    points : np.ndarray
        Array of shape (npoints, dimension). Stored read-only as float32.

    ncentroids : int
        Number of clusters.

    mindistance : float
        Distance threshold above which a point counts as too far from its
        centroid.

    Attributes
    ----------
    centroids : np.ndarray
        float32 array of shape (ncentroids, dimension), overwritten in place.

    assignments : np.ndarray
        int32 array of shape (npoints,); ``-1`` until initialization.

    dirty : np.ndarray
        bool array of shape (ncentroids,).

    too_far, has_changed : bool
        Convergence flags of the last assignment / recomputation pass.
    """

    def __init__(self, points: np.ndarray, ncentroids: int, mindistance: float):
        if ncentroids < 0:
            raise MemoryError("cannot allocate %d centroids" % ncentroids)
        self.points = np.asarray(points, dtype=np.float32)
        if self.points.ndim != 2:
            raise ValueError("points must be a 2-d array, got shape %s" % (self.points.shape,))
        self.points.setflags(write=False)
        npoints, dimension = self.points.shape

        self.centroids = np.zeros((ncentroids, dimension), dtype=np.float32)
        self.assignments = np.full(npoints, UNASSIGNED, dtype=np.int32)
        self.dirty = np.zeros(ncentroids, dtype=bool)
        self.mindistance = np.float32(mindistance)
        self.too_far = False
        self.has_changed = False
        self.iterations = 0

    @property
    def npoints(self) -> int:
        return self.points.shape[0]

    @property
    def dimension(self) -> int:
        return self.points.shape[1]

    @property
    def ncentroids(self) -> int:
        return self.centroids.shape[0]

    def __repr__(self):
        return "KMeansState(npoints=%d, dimension=%d, ncentroids=%d, mindistance=%r)" % (
            self.npoints,
            self.dimension,
            self.ncentroids,
            float(self.mindistance),
        )


def generate_points(rng: RandNum, npoints: int, dimension: int) -> np.ndarray:
    """
    Draw ``npoints`` synthetic points from ``rng``.

    Coordinates are filled row by row with the low 16 bits of successive
    generator outputs, so every value lies in ``[0, 65535]``.
    """
    if npoints < 0 or dimension < 0:
        raise MemoryError("cannot allocate %d x %d points" % (npoints, dimension))
    count = npoints * dimension
    values = np.fromiter((rng.next() & 0xFFFF for _ in range(count)), dtype=np.float32, count=count)
    return values.reshape(npoints, dimension)


def initialize_centroids(state: KMeansState, rng: RandNum) -> None:
    """
    Seed every centroid from a randomly drawn point and assign the rest.

    Draws are made with replacement: two clusters can start from the same
    point, and a later draw overwrites the assignment made by an earlier one.
    Points left unassigned afterwards go to a random cluster.
    """
    npoints, ncentroids = state.npoints, state.ncentroids
    state.assignments.fill(UNASSIGNED)

    for i in range(ncentroids):
        state.dirty[i] = True
        if npoints == 0:
            continue
        j = rng.next() % npoints
        state.centroids[i] = state.points[j]
        state.assignments[j] = i

    if ncentroids == 0:
        return
    for i in np.flatnonzero(state.assignments < 0):
        state.assignments[i] = rng.next() % ncentroids


def build_state(config: KernelConfig) -> Tuple[KMeansState, RandNum]:
    """
    Seed a generator, draw the points and allocate the state for ``config``.

    The generator is returned positioned right after the point draws, which
    is where centroid initialization continues the stream.
    """
    rng = RandNum(config.seed)
    points = generate_points(rng, config.npoints, config.dimension)
    state = KMeansState(points, config.ncentroids, config.mindistance)
    logger.debug("Allocated %r", state)
    return state, rng
