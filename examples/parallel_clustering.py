#!/usr/bin/env python
# Copyright (c) 2025 massivedatascience
# Licensed under the Apache License, Version 2.0

"""
Parallel clustering example: the same run on worker threads and as a Spark
barrier stage.
"""

import numpy as np
from pyspark.sql import SparkSession

from kmkernel.clusterer import KernelConfig, run_parallel_worker, run_threads
from kmkernel.clusterer.spark import fit_on_spark

WORKERS = 4


def main():
    config = KernelConfig(npoints=4000, dimension=3, ncentroids=8, mindistance=6000.0, seed=7)

    # Worker threads in this process
    states = run_threads(lambda channel: run_parallel_worker(channel, config), WORKERS)
    threaded = states[0].assignments
    print(f"Threads: {states[0].iterations} iterations on {WORKERS} workers")

    # Create Spark session
    spark = (
        SparkSession.builder.master(f"local[{WORKERS}]")
        .appName("ParallelClustering")
        .config("spark.ui.enabled", "false")
        .getOrCreate()
    )
    spark.sparkContext.setLogLevel("WARN")

    try:
        on_spark = fit_on_spark(spark, *config, num_workers=WORKERS)
    finally:
        spark.stop()

    print(f"Spark barrier stage agrees with threads: {np.array_equal(threaded, on_spark)}")
    print("\nCluster sizes (worker 0's view):")
    for i in range(config.ncentroids):
        print(f"  Cluster {i}: {int((on_spark == i).sum())} points")


if __name__ == "__main__":
    main()
