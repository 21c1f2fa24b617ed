# Copyright (c) 2025 massivedatascience
# Licensed under the Apache License, Version 2.0

"""
Spark barrier-mode backend for the parallel kernel.

Each worker is one task of a barrier stage. Collectives go through
:meth:`pyspark.BarrierTaskContext.allGather`, which only carries strings, so
payloads are JSON-encoded; numpy arrays keep their dtype and shape.

Example:
    >>> from pyspark.sql import SparkSession
    >>> from kmkernel.clusterer.spark import fit_on_spark
    >>>
    >>> spark = SparkSession.builder.master("local[2]").getOrCreate()
    >>> assignments = fit_on_spark(spark, 1000, 2, 4, 100.0, 7, num_workers=2)
"""

import json
import logging
from typing import Any, List, Optional

import numpy as np
from pyspark import BarrierTaskContext
from pyspark.sql import SparkSession

from .collective import CollectiveChannel
from .coordinator import run_parallel_worker
from .store import KernelConfig

logger = logging.getLogger(__name__)

_NDARRAY = "__ndarray__"


def _encode(value: Any) -> Any:
    if isinstance(value, np.ndarray):
        return {_NDARRAY: value.tolist(), "dtype": value.dtype.str, "shape": list(value.shape)}
    return value


def _decode(value: Any) -> Any:
    if isinstance(value, dict) and _NDARRAY in value:
        return np.array(value[_NDARRAY], dtype=np.dtype(value["dtype"])).reshape(value["shape"])
    return value


class SparkBarrierChannel(CollectiveChannel):
    """
    Collective channel over the tasks of a Spark barrier stage.

    Parameters
    ----------
    context : BarrierTaskContext, optional
        Context of the running barrier task; defaults to
        ``BarrierTaskContext.get()``.
    """

    def __init__(self, context: Optional[BarrierTaskContext] = None):
        self._context = context if context is not None else BarrierTaskContext.get()
        self._rank = self._context.partitionId()
        self._size = len(self._context.getTaskInfos())

    @property
    def rank(self) -> int:
        return self._rank

    @property
    def size(self) -> int:
        return self._size

    def all_gather(self, value) -> List[Any]:
        messages = self._context.allGather(json.dumps(_encode(value)))
        return [_decode(json.loads(m)) for m in messages]


def fit_on_spark(
    spark: SparkSession,
    npoints: int,
    dimension: int,
    ncentroids: int,
    mindistance: float,
    seed: int,
    num_workers: int = 2,
) -> np.ndarray:
    """
    Run the parallel kernel as a Spark barrier stage of ``num_workers`` tasks.

    The cluster must be able to schedule all ``num_workers`` tasks at once
    (for a local master, ``local[n]`` with ``n >= num_workers``).

    Returns
    -------
    np.ndarray
        Rank 0's assignment map.
    """
    if num_workers < 1:
        raise ValueError("num_workers must be >= 1, got %d" % num_workers)
    config = KernelConfig(npoints, dimension, ncentroids, mindistance, seed)

    def _worker(_):
        channel = SparkBarrierChannel()
        state = run_parallel_worker(channel, config if channel.rank == 0 else None)
        yield channel.rank, state.assignments.tolist(), state.iterations

    rdd = spark.sparkContext.parallelize(range(num_workers), num_workers)
    results = rdd.barrier().mapPartitions(_worker).collect()
    rank, assignments, iterations = min(results, key=lambda r: r[0])
    logger.debug("Spark barrier stage finished after %d iterations", iterations)
    return np.array(assignments, dtype=np.int32)
