# Copyright (c) 2025 massivedatascience
# Licensed under the Apache License, Version 2.0

"""
Estimator-style wrapper around the k-means kernel.

This module exposes the kernel through the same Params / Estimator / Model /
Summary shape as Spark ML, using :mod:`pyspark.ml.param` for parameter
handling. Fitting runs locally: sequentially for one worker, or on worker
threads exchanging state through a
:class:`~kmkernel.clusterer.collective.ThreadGroup`.
"""

import time
from typing import List, Optional

import numpy as np

from pyspark import keyword_only
from pyspark.ml.param import Param, Params, TypeConverters
from pyspark.ml.param.shared import HasSeed

from .collective import run_threads
from .coordinator import kmeans, partition_bounds, run_parallel_worker
from .engine import assignment_cost, pairwise_distances
from .store import KernelConfig, KMeansState, build_state


class KernelKMeansParams(HasSeed):
    """
    Params for KernelKMeans and KernelKMeansModel.

    Parameters
    ----------
    k : int, default=2
        Number of clusters.

    numPoints : int, default=1000
        Number of synthetic points to generate.

    dimension : int, default=2
        Coordinates per point.

    minDistance : float, default=0.0
        Iteration stops once every point is within this distance of its
        centroid (or no centroid was recomputed).

    numWorkers : int, default=1
        Number of workers. With more than one worker the parallel kernel runs
        on threads of the current process.

    seed : int, default=0
        Seed of the point and centroid generator.
    """

    k = Param(
        Params._dummy(),
        "k",
        "Number of clusters to create.",
        typeConverter=TypeConverters.toInt,
    )

    numPoints = Param(
        Params._dummy(),
        "numPoints",
        "Number of synthetic points to generate.",
        typeConverter=TypeConverters.toInt,
    )

    dimension = Param(
        Params._dummy(),
        "dimension",
        "Number of coordinates per point.",
        typeConverter=TypeConverters.toInt,
    )

    minDistance = Param(
        Params._dummy(),
        "minDistance",
        "Distance threshold for convergence.",
        typeConverter=TypeConverters.toFloat,
    )

    numWorkers = Param(
        Params._dummy(),
        "numWorkers",
        "Number of workers (1 = single-process kernel).",
        typeConverter=TypeConverters.toInt,
    )

    def __init__(self, *args):
        super(KernelKMeansParams, self).__init__(*args)
        self._setDefault(
            k=2,
            numPoints=1000,
            dimension=2,
            minDistance=0.0,
            numWorkers=1,
            seed=0,
        )

    def getK(self) -> int:
        """Gets the value of k or its default value."""
        return self.getOrDefault(self.k)

    def getNumPoints(self) -> int:
        """Gets the value of numPoints or its default value."""
        return self.getOrDefault(self.numPoints)

    def getDimension(self) -> int:
        """Gets the value of dimension or its default value."""
        return self.getOrDefault(self.dimension)

    def getMinDistance(self) -> float:
        """Gets the value of minDistance or its default value."""
        return self.getOrDefault(self.minDistance)

    def getNumWorkers(self) -> int:
        """Gets the value of numWorkers or its default value."""
        return self.getOrDefault(self.numWorkers)

    def _config(self) -> KernelConfig:
        return KernelConfig(
            npoints=self.getNumPoints(),
            dimension=self.getDimension(),
            ncentroids=self.getK(),
            mindistance=self.getMinDistance(),
            seed=self.getSeed(),
        )


class KernelKMeans(KernelKMeansParams):
    """
    Lloyd's k-means over generated points.

    Points are drawn from the seeded multiply-with-carry generator, each
    coordinate in ``[0, 65535]``. Centroids start from randomly drawn points
    and the kernel iterates until every point is within ``minDistance`` of
    its centroid or no centroid changes.

    Examples
    --------
    >>> from kmkernel.clusterer import KernelKMeans
    >>> model = KernelKMeans(k=4, numPoints=500, dimension=3, minDistance=5000.0, seed=7).fit()
    >>> model.numClusters
    4
    >>> len(model.assignments)
    500
    >>> model.summary.iterations >= 1
    True

    Notes
    -----
    With ``numWorkers > 1`` the merged centroids are the *sum* of every
    worker's partial means, so results differ from the single-worker kernel
    whenever a cluster spans partitions. The returned assignments are those
    held by worker 0.
    """

    @keyword_only
    def __init__(
        self,
        *,
        k: int = 2,
        numPoints: int = 1000,
        dimension: int = 2,
        minDistance: float = 0.0,
        numWorkers: int = 1,
        seed: int = 0,
    ):
        """
        Initialize KernelKMeans estimator.
        """
        super(KernelKMeans, self).__init__()
        kwargs = self._input_kwargs
        self.setParams(**kwargs)

    @keyword_only
    def setParams(
        self,
        *,
        k: int = 2,
        numPoints: int = 1000,
        dimension: int = 2,
        minDistance: float = 0.0,
        numWorkers: int = 1,
        seed: int = 0,
    ):
        """
        Set parameters for KernelKMeans.
        """
        kwargs = self._input_kwargs
        return self._set(**kwargs)

    def setK(self, value: int):
        """Sets the value of k."""
        return self._set(k=value)

    def setNumPoints(self, value: int):
        """Sets the value of numPoints."""
        return self._set(numPoints=value)

    def setDimension(self, value: int):
        """Sets the value of dimension."""
        return self._set(dimension=value)

    def setMinDistance(self, value: float):
        """Sets the value of minDistance."""
        return self._set(minDistance=value)

    def setNumWorkers(self, value: int):
        """Sets the value of numWorkers."""
        return self._set(numWorkers=value)

    def setSeed(self, value: int):
        """Sets the value of seed."""
        return self._set(seed=value)

    def _validate(self) -> None:
        if self.getK() < 1:
            raise ValueError("k must be >= 1, got %d" % self.getK())
        if self.getNumPoints() < 1:
            raise ValueError("numPoints must be >= 1, got %d" % self.getNumPoints())
        if self.getDimension() < 1:
            raise ValueError("dimension must be >= 1, got %d" % self.getDimension())
        if self.getNumWorkers() < 1:
            raise ValueError("numWorkers must be >= 1, got %d" % self.getNumWorkers())

    def fit(self) -> "KernelKMeansModel":
        """
        Generate the points and run the kernel.

        Returns
        -------
        KernelKMeansModel
            Model holding the points, final centroids and assignments.
        """
        self._validate()
        config = self._config()
        workers = self.getNumWorkers()
        costs = []

        def _record(iteration, state):
            costs.append(assignment_cost(state))

        start = time.perf_counter()
        if workers == 1:
            state, rng = build_state(config)
            kmeans(state, rng, on_iteration=_record)
        else:
            results = run_threads(lambda channel: _fit_worker(channel, config), workers)
            state = results[0][0]
            # Each worker scores only the partition it owns.
            costs = [float(sum(step)) for step in zip(*(history for _, history in results))]
        elapsed = time.perf_counter() - start

        summary = TrainingSummary(
            k=config.ncentroids,
            dim=config.dimension,
            numPoints=config.npoints,
            numWorkers=workers,
            iterations=state.iterations,
            converged=not state.too_far,
            costHistory=costs,
            elapsedSeconds=elapsed,
        )
        model = KernelKMeansModel(state, summary)
        self._copyValues(model)
        return model


def _fit_worker(channel, config: KernelConfig):
    start, end = partition_bounds(config.npoints, channel.size, channel.rank)
    history = []

    def _record(iteration, state):
        history.append(assignment_cost(state, start, end))

    return run_parallel_worker(channel, config, on_iteration=_record), history


class KernelKMeansModel(KernelKMeansParams):
    """
    Model fitted by KernelKMeans.

    Attributes
    ----------
    assignments : np.ndarray
        Cluster index of every generated point.

    points : np.ndarray
        The generated points, shape (numPoints, dimension).

    Examples
    --------
    >>> centers = model.clusterCenters()
    >>> cluster = model.predict([100.0, 2000.0])
    >>> cost = model.computeCost()
    """

    def __init__(self, state: KMeansState, summary: Optional["TrainingSummary"] = None):
        super(KernelKMeansModel, self).__init__()
        self._state = state
        self._summary = summary

    @property
    def assignments(self) -> np.ndarray:
        return self._state.assignments

    @property
    def points(self) -> np.ndarray:
        return self._state.points

    def clusterCenters(self) -> np.ndarray:
        """
        Get the cluster centers as a NumPy array.

        Returns
        -------
        np.ndarray
            Copy of the centroids, shape (k, dimension).
        """
        return self._state.centroids.copy()

    @property
    def numClusters(self) -> int:
        """Number of clusters."""
        return self._state.ncentroids

    @property
    def numFeatures(self) -> int:
        """Number of features (dimension)."""
        return self._state.dimension

    def predict(self, value) -> int:
        """
        Index of the centroid nearest to ``value``.

        Ties go to the lowest cluster index.

        Raises
        ------
        ValueError
            If ``value`` does not have ``numFeatures`` coordinates.
        """
        point = np.asarray(value, dtype=np.float32).reshape(1, -1)
        if point.shape[1] != self.numFeatures:
            raise ValueError(
                "expected a vector of %d coordinates, got %d" % (self.numFeatures, point.shape[1])
            )
        return int(np.argmin(pairwise_distances(point, self._state.centroids)[0]))

    def computeCost(self, points=None) -> float:
        """
        Sum of squared distances from points to their cluster centers.

        Without arguments the training points are scored against
        :attr:`assignments`. With several workers those are worker 0's, so
        points outside its partition still carry their initial assignment;
        ``summary.finalCost`` holds the cost of the partitioned result.
        Given ``points``, every point is scored against its nearest centroid.
        """
        if points is None:
            return assignment_cost(self._state)
        points = np.asarray(points, dtype=np.float32)
        if points.ndim != 2 or points.shape[1] != self.numFeatures:
            raise ValueError("points must have shape (n, %d)" % self.numFeatures)
        distances = pairwise_distances(points, self._state.centroids).astype(np.float64)
        return float(np.sum(np.min(distances, axis=1) ** 2))

    def hasSummary(self) -> bool:
        """True if the model was produced by ``fit`` in this session."""
        return self._summary is not None

    @property
    def summary(self) -> "TrainingSummary":
        """
        Get the training summary.

        Raises
        ------
        RuntimeError
            If no summary is available.
        """
        if self._summary is None:
            raise RuntimeError("No training summary available for this KernelKMeansModel")
        return self._summary


class TrainingSummary:
    """
    Training summary of a KernelKMeans fit.

    Attributes
    ----------
    k : int
        Requested number of clusters.

    dim : int
        Feature dimensionality.

    numPoints : int
        Number of generated points.

    numWorkers : int
        Number of workers the kernel ran on.

    iterations : int
        Number of (assignment, recomputation) steps performed.

    converged : bool
        True if the loop stopped because every point was within
        ``minDistance``; False if it stopped because no centroid changed.

    costHistory : List[float]
        Sum of squared distances after each step. With several workers every
        worker scores the partition it owns and the partial costs are added.

    elapsedSeconds : float
        Wall-clock training time.
    """

    def __init__(
        self,
        k: int,
        dim: int,
        numPoints: int,
        numWorkers: int,
        iterations: int,
        converged: bool,
        costHistory: List[float],
        elapsedSeconds: float,
    ):
        self.k = k
        self.dim = dim
        self.numPoints = numPoints
        self.numWorkers = numWorkers
        self.iterations = iterations
        self.converged = converged
        self.costHistory = list(costHistory)
        self.elapsedSeconds = elapsedSeconds

    @property
    def finalCost(self) -> float:
        """Cost after the last step."""
        return self.costHistory[-1] if self.costHistory else 0.0

    def convergenceReport(self) -> str:
        """Human-readable summary of the run."""
        lines = [
            "KernelKMeans: k=%d dim=%d points=%d workers=%d"
            % (self.k, self.dim, self.numPoints, self.numWorkers),
            "  iterations: %d (%s)"
            % (self.iterations, "within minDistance" if self.converged else "no centroid changed"),
            "  final cost: %.6g" % self.finalCost,
            "  elapsed: %.3fs" % self.elapsedSeconds,
        ]
        return "\n".join(lines)
