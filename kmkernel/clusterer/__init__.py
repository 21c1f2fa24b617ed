# Copyright (c) 2025 massivedatascience
# Licensed under the Apache License, Version 2.0

"""
K-Means Kernel
==============

Lloyd's k-means over points drawn from a seeded multiply-with-carry generator,
as a single-process kernel and as a data-parallel kernel whose workers merge
their state through collective reductions after every iteration.

Classes:
    KernelKMeans: Estimator that generates the points and runs the kernel
    KernelKMeansModel: Fitted model (assignments, centers, cost)
    TrainingSummary: Iterations, convergence and cost history of a fit
    KMeansState: Points, centroids, assignment map and dirty set of one worker
    RandNum: The deterministic generator

Example:
    >>> from kmkernel.clusterer import KernelKMeans
    >>>
    >>> kmeans = KernelKMeans(k=4, numPoints=1000, dimension=2, minDistance=2000.0, seed=7)
    >>> model = kmeans.fit()
    >>> model.assignments[:5]
    >>>
    >>> # Same run on four lockstep workers
    >>> parallel = kmeans.copy().setNumWorkers(4).fit()
"""

from .collective import CollectiveChannel, LocalChannel, ThreadChannel, ThreadGroup, run_threads
from .coordinator import kmeans_parallel, partition_bounds, run_parallel_worker
from .kmeans import KernelKMeans, KernelKMeansModel, TrainingSummary
from .randnum import RandNum
from .store import KernelConfig, KMeansState, build_state, generate_points, initialize_centroids

__all__ = [
    "KernelKMeans",
    "KernelKMeansModel",
    "TrainingSummary",
    "KMeansState",
    "KernelConfig",
    "RandNum",
    "CollectiveChannel",
    "LocalChannel",
    "ThreadGroup",
    "ThreadChannel",
    "run_threads",
    "kmeans_parallel",
    "partition_bounds",
    "run_parallel_worker",
    "build_state",
    "generate_points",
    "initialize_centroids",
]
