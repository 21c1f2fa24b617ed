# Copyright (c) 2025 massivedatascience
# Licensed under the Apache License, Version 2.0

"""
Tests for the Spark barrier-mode backend.
"""

import json
import os
import shutil
import typing
import unittest
from typing import Optional
from unittest import mock

import numpy as np
from pyspark import BarrierTaskContext
from pyspark.sql import SparkSession

from kmkernel.clusterer.collective import run_threads
from kmkernel.clusterer.coordinator import kmeans, run_parallel_worker
from kmkernel.clusterer.spark import SparkBarrierChannel, _decode, _encode, fit_on_spark
from kmkernel.clusterer.store import KernelConfig, build_state

HAS_JAVA = bool(os.environ.get("JAVA_HOME") or shutil.which("java"))


class EncodingTest(unittest.TestCase):
    """Test cases for the allGather payload encoding."""

    def test_arrays_keep_dtype_and_shape(self):
        for array in (
            np.array([[1.5, -2.25], [3.0, 1e-7]], dtype=np.float32),
            np.array([True, False, True]),
            np.zeros((0, 3), dtype=np.float32),
        ):
            decoded = _decode(_encode(array))
            self.assertEqual(decoded.dtype, array.dtype)
            self.assertEqual(decoded.shape, array.shape)
            np.testing.assert_array_equal(decoded, array)

    def test_scalars_pass_through(self):
        self.assertIs(_decode(_encode(True)), True)
        self.assertIsNone(_decode(_encode(None)))



class SparkBarrierChannelTest(unittest.TestCase):
    """Test cases for SparkBarrierChannel over a stand-in task context."""

    def test_context_is_optional(self):
        hints = typing.get_type_hints(SparkBarrierChannel.__init__)
        self.assertEqual(hints["context"], Optional[BarrierTaskContext])

    def test_rank_size_and_gather(self):
        context = mock.Mock()
        context.partitionId.return_value = 1
        context.getTaskInfos.return_value = [object(), object()]
        context.allGather.side_effect = lambda message: [_dumps(np.array([True, False])), message]

        channel = SparkBarrierChannel(context)
        self.assertEqual((channel.rank, channel.size), (1, 2))
        dirty = channel.all_reduce_max_ints(np.array([False, True]))
        self.assertEqual(dirty.dtype, bool)
        np.testing.assert_array_equal(dirty, [True, True])


def _dumps(value):
    return json.dumps(_encode(value))


@unittest.skipUnless(HAS_JAVA, "Spark needs a Java runtime")
class SparkBarrierTest(unittest.TestCase):
    """Test cases for fit_on_spark."""

    CONFIG = KernelConfig(200, 2, 5, 1000.0, 13)

    @classmethod
    def setUpClass(cls):
        """Set up Spark session for tests."""
        cls.spark = (
            SparkSession.builder.master("local[2]")
            .appName("KernelKMeansSparkTest")
            .config("spark.ui.enabled", "false")
            .config("spark.sql.shuffle.partitions", "4")
            .getOrCreate()
        )
        cls.spark.sparkContext.setLogLevel("WARN")

    @classmethod
    def tearDownClass(cls):
        """Tear down Spark session."""
        cls.spark.stop()

    def test_single_worker_matches_sequential(self):
        state, rng = build_state(self.CONFIG)
        expected = kmeans(state, rng)

        assignments = fit_on_spark(self.spark, *self.CONFIG, num_workers=1)
        np.testing.assert_array_equal(assignments, expected)

    def test_two_workers_match_thread_backend(self):
        states = run_threads(lambda channel: run_parallel_worker(channel, self.CONFIG), 2)

        assignments = fit_on_spark(self.spark, *self.CONFIG, num_workers=2)
        self.assertEqual(len(assignments), 200)
        np.testing.assert_array_equal(assignments, states[0].assignments)

    def test_invalid_worker_count(self):
        with self.assertRaises(ValueError):
            fit_on_spark(self.spark, *self.CONFIG, num_workers=0)


if __name__ == "__main__":
    unittest.main()
