# Copyright (c) 2025 massivedatascience
# Licensed under the Apache License, Version 2.0

"""
Tests for the MPI backend: single-rank checks on COMM_SELF and multi-rank
jobs launched through mpiexec when it is available.
"""

import io
import os
import shutil
import subprocess
import sys
import unittest
from contextlib import redirect_stderr, redirect_stdout
from unittest import mock

import numpy as np

from kmkernel import cli
from kmkernel.clusterer.coordinator import kmeans, run_parallel_worker
from kmkernel.clusterer.store import KernelConfig, build_state

try:
    from kmkernel.clusterer import mpi
except ImportError:
    mpi = None


@unittest.skipIf(mpi is None, "mpi4py is not installed")
class MPIChannelTest(unittest.TestCase):
    """Test cases for MPIChannel on COMM_SELF."""

    def setUp(self):
        self.channel = mpi.MPIChannel(mpi.MPI.COMM_SELF)

    def test_rank_and_size(self):
        self.assertEqual((self.channel.rank, self.channel.size), (0, 1))

    def test_reductions(self):
        dirty = self.channel.all_reduce_max_ints(np.array([True, False]))
        self.assertEqual(dirty.dtype, bool)
        np.testing.assert_array_equal(dirty, [True, False])
        self.assertTrue(self.channel.all_reduce_max_flag(True))
        reduced = self.channel.all_reduce_sum(np.array([[1.5, 2.0]], dtype=np.float32))
        np.testing.assert_array_equal(reduced, [[1.5, 2.0]])
        self.assertEqual(self.channel.broadcast("cfg"), "cfg")

    def test_matches_sequential(self):
        config = KernelConfig(120, 2, 4, 2000.0, 5)
        state, rng = build_state(config)
        expected = kmeans(state, rng)

        result = run_parallel_worker(self.channel, config)
        np.testing.assert_array_equal(result.assignments, expected)

    def test_main(self):
        out = io.StringIO()
        with redirect_stdout(out):
            status = mpi.main(["3", "1", "1", "0", "4"], comm=mpi.MPI.COMM_SELF)
        self.assertEqual(status, 0)
        self.assertEqual(out.getvalue().splitlines()[:4], ["0", "0", "0", ""])

    def test_bad_arguments_abort_the_job(self):
        comm = mock.Mock()
        comm.Get_rank.return_value = 0
        comm.Get_size.return_value = 2
        with redirect_stderr(io.StringIO()):
            status = mpi.main(["1", "2"], comm=comm)
        self.assertEqual(status, 2)
        comm.Abort.assert_called_once_with(2)
        comm.bcast.assert_not_called()


ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
MPIEXEC = shutil.which("mpiexec")

REDUCTIONS = """
import numpy as np
from kmkernel.clusterer.mpi import MPIChannel

channel = MPIChannel()
dirty = channel.all_reduce_max_ints(np.array([channel.rank == 0, channel.rank == 1, False]))
total = channel.all_reduce_sum(np.full((2, 2), channel.rank + 1, dtype=np.float32))
flag = channel.all_reduce_max_flag(channel.rank == 1)
if channel.rank == 0:
    print(dirty.dtype, dirty.tolist(), total.tolist(), flag)
"""


@unittest.skipIf(mpi is None or MPIEXEC is None, "mpi4py or mpiexec is not available")
class MultiRankTest(unittest.TestCase):
    """Test cases running real multi-rank jobs under mpiexec."""

    def _mpiexec(self, ranks, *args):
        env = dict(os.environ)
        env["PYTHONPATH"] = os.pathsep.join(filter(None, [ROOT, env.get("PYTHONPATH")]))
        env.setdefault("OMPI_ALLOW_RUN_AS_ROOT", "1")
        env.setdefault("OMPI_ALLOW_RUN_AS_ROOT_CONFIRM", "1")
        env.setdefault("OMPI_MCA_rmaps_base_oversubscribe", "1")
        return subprocess.run(
            [MPIEXEC, "-n", str(ranks), sys.executable] + list(args),
            cwd=ROOT,
            env=env,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            universal_newlines=True,
            timeout=120,
        )

    def test_reductions_across_ranks(self):
        result = self._mpiexec(2, "-c", REDUCTIONS)
        self.assertEqual(result.returncode, 0, result.stderr)
        self.assertEqual(
            result.stdout.strip(), "bool [True, True, False] [[3.0, 3.0], [3.0, 3.0]] True"
        )

    def test_matches_thread_workers(self):
        args = ["240", "3", "6", "800", "31"]
        result = self._mpiexec(3, "-m", "kmkernel.clusterer.mpi", *args)
        self.assertEqual(result.returncode, 0, result.stderr)

        out = io.StringIO()
        with redirect_stdout(out):
            cli.parallel_main(["--workers", "3"] + args)
        self.assertEqual(result.stdout.splitlines()[:-1], out.getvalue().splitlines()[:-1])

    def test_bad_arguments_do_not_hang(self):
        result = self._mpiexec(2, "-m", "kmkernel.clusterer.mpi", "1", "2")
        self.assertNotEqual(result.returncode, 0)
        self.assertIn("usage", result.stderr)


if __name__ == "__main__":
    unittest.main()
