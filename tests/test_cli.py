# Copyright (c) 2025 massivedatascience
# Licensed under the Apache License, Version 2.0

"""
Tests for the command-line drivers.
"""

import io
import re
import unittest
from contextlib import redirect_stdout

import numpy as np

from kmkernel import cli
from kmkernel.clusterer.coordinator import kmeans
from kmkernel.clusterer.store import KernelConfig, build_state

TIMING = re.compile(r"^Kernel executed in \d+\.\d{6} seconds\.$")


def run(entry, argv):
    out = io.StringIO()
    with redirect_stdout(out):
        status = entry(argv)
    return status, out.getvalue()


class ParseArgumentTest(unittest.TestCase):
    """Test cases for atoi/strtof style conversion."""

    def test_parse_int(self):
        self.assertEqual(cli.parse_int("42"), 42)
        self.assertEqual(cli.parse_int("  -7xyz"), -7)
        self.assertEqual(cli.parse_int("+3"), 3)
        self.assertEqual(cli.parse_int("12.9"), 12)
        self.assertEqual(cli.parse_int("abc"), 0)
        self.assertEqual(cli.parse_int(""), 0)

    def test_parse_int_wraps_to_32_bits(self):
        self.assertEqual(cli.parse_int("4294967297"), 1)
        self.assertEqual(cli.parse_int("2147483648"), -2147483648)

    def test_parse_float(self):
        self.assertEqual(cli.parse_float("2.5"), 2.5)
        self.assertEqual(cli.parse_float("1e3x"), 1000.0)
        self.assertEqual(cli.parse_float(".5"), 0.5)
        self.assertEqual(cli.parse_float("7."), 7.0)
        self.assertEqual(cli.parse_float("  -4"), -4.0)
        self.assertEqual(cli.parse_float("abc"), 0.0)
        self.assertEqual(cli.parse_float("inf"), float("inf"))

    def test_parse_float_hexadecimal(self):
        self.assertEqual(cli.parse_float("0x10"), 16.0)
        self.assertEqual(cli.parse_float("0X1.8p1"), 3.0)
        self.assertEqual(cli.parse_float(" -0xAp-1"), -5.0)
        self.assertEqual(cli.parse_float("0x.8"), 0.5)
        self.assertEqual(cli.parse_float("0x1p"), 1.0)
        # No hex digit after the prefix: only the leading "0" is a number.
        self.assertEqual(cli.parse_float("0x"), 0.0)
        self.assertEqual(cli.parse_float("0xg"), 0.0)
        self.assertEqual(cli.parse_float("0x1p99999"), float("inf"))

    def test_parse_float_is_single_precision(self):
        self.assertEqual(cli.parse_float("0.1"), float(np.float32(0.1)))


class MainTest(unittest.TestCase):
    """Test cases for the kmkernel entry point."""

    def test_output_format(self):
        status, output = run(cli.main, ["20", "2", "3", "100", "5"])
        self.assertEqual(status, 0)
        lines = output.splitlines()
        self.assertEqual(len(lines), 22)
        self.assertTrue(all(0 <= int(line) < 3 for line in lines[:20]))
        self.assertEqual(lines[20], "")
        self.assertRegex(lines[21], TIMING)

    def test_matches_kernel(self):
        state, rng = build_state(KernelConfig(50, 3, 4, 2000.0, 8))
        expected = [str(c) for c in kmeans(state, rng)]
        _, output = run(cli.main, ["50", "3", "4", "2000", "8"])
        self.assertEqual(output.splitlines()[:50], expected)

    def test_single_point(self):
        _, output = run(cli.main, ["1", "1", "1", "0", "123"])
        lines = output.splitlines()
        self.assertEqual(lines[:2], ["0", ""])
        self.assertRegex(lines[2], TIMING)

    def test_deterministic(self):
        _, first = run(cli.main, ["64", "2", "5", "500", "99"])
        _, second = run(cli.main, ["64", "2", "5", "500", "99"])
        self.assertEqual(first.splitlines()[:-1], second.splitlines()[:-1])

    def test_garbage_arguments_become_zero(self):
        status, output = run(cli.main, ["abc", "x", "y", "z", "w"])
        self.assertEqual(status, 0)
        lines = output.splitlines()
        self.assertEqual(lines[0], "")
        self.assertRegex(lines[1], TIMING)

    def test_allocation_failure_exits_1(self):
        status, output = run(cli.main, ["-5", "2", "2", "0", "1"])
        self.assertEqual(status, 1)
        self.assertEqual(output, "")


class ParallelMainTest(unittest.TestCase):
    """Test cases for the kmkernel-parallel entry point."""

    def test_single_worker_matches_sequential(self):
        args = ["80", "2", "4", "1500", "21"]
        _, sequential = run(cli.main, args)
        status, parallel = run(cli.parallel_main, ["--workers", "1"] + args)
        self.assertEqual(status, 0)
        self.assertEqual(parallel.splitlines()[:-1], sequential.splitlines()[:-1])

    def test_multiple_workers(self):
        status, output = run(cli.parallel_main, ["--workers", "3", "90", "2", "4", "1500", "21"])
        self.assertEqual(status, 0)
        lines = output.splitlines()
        self.assertEqual(len(lines), 92)
        self.assertTrue(all(0 <= int(line) < 4 for line in lines[:90]))
        self.assertRegex(lines[-1], TIMING)

    def test_allocation_failure_exits_1(self):
        status, output = run(cli.parallel_main, ["--workers", "2", "4", "2", "-1", "0", "1"])
        self.assertEqual(status, 1)
        self.assertEqual(output, "")


if __name__ == "__main__":
    unittest.main()
