# Copyright (c) 2025 massivedatascience
# Licensed under the Apache License, Version 2.0

"""
Command-line drivers.

``kmkernel`` runs the single-process kernel, ``kmkernel-parallel`` the
parallel one on worker threads or a Spark barrier stage. Both take the same
five positional arguments::

    kmkernel <npoints> <dimension> <ncentroids> <mindistance> <seed>

Arguments are converted the way C's ``atoi``/``strtof`` do it: the longest
numeric prefix is used (hexadecimal floats such as ``0x1.8p3`` included) and
anything unparsable becomes ``0``.
"""

import argparse
import logging
import re
import sys
import time

import numpy as np

from .clusterer.collective import run_threads
from .clusterer.coordinator import kmeans, run_parallel_worker
from .clusterer.store import KernelConfig, build_state

logger = logging.getLogger(__name__)

_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")
_HEX_FLOAT_PREFIX = re.compile(
    r"\s*([+-]?)0[xX]((?=\.?[0-9a-fA-F])[0-9a-fA-F]*)(?:\.([0-9a-fA-F]*))?(?:[pP]([+-]?\d+))?"
)
_FLOAT_PREFIX = re.compile(
    r"\s*([+-]?(?:inf(?:inity)?|nan|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?))",
    re.IGNORECASE,
)


def parse_int(text: str) -> int:
    """Integer value of the leading digits of ``text`` as a 32-bit C int."""
    match = _INT_PREFIX.match(text)
    if not match:
        return 0
    value = int(match.group(1)) & 0xFFFFFFFF
    return value - (1 << 32) if value & 0x80000000 else value


def parse_float(text: str) -> float:
    """Single-precision value of the leading number in ``text``."""
    match = _HEX_FLOAT_PREFIX.match(text)
    if match:
        sign, whole, fraction, exponent = match.groups()
        try:
            value = float.fromhex(
                "%s0x%s.%sp%s" % (sign, whole or "0", fraction or "0", exponent or "0")
            )
        except OverflowError:
            value = float("-inf" if sign == "-" else "inf")
    else:
        match = _FLOAT_PREFIX.match(text)
        if not match:
            return 0.0
        value = float(match.group(1))
    with np.errstate(over="ignore"):
        return float(np.float32(value))


def build_parser(prog: str, parallel: bool = False) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=prog,
        description="Lloyd's k-means over synthetically generated points.",
    )
    parser.add_argument("npoints", help="number of points")
    parser.add_argument("dimension", help="coordinates per point")
    parser.add_argument("ncentroids", help="number of clusters")
    parser.add_argument("mindistance", help="distance below which a point is close enough")
    parser.add_argument("seed", help="generator seed")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="log iteration details to stderr"
    )
    if parallel:
        parser.add_argument("--workers", type=int, default=2, help="number of workers (default: 2)")
        parser.add_argument(
            "--backend",
            choices=("threads", "spark"),
            default="threads",
            help="how workers are run (default: threads)",
        )
        parser.add_argument(
            "--master", default=None, help="Spark master URL (default: local[<workers>])"
        )
    return parser


def config_from_args(args: argparse.Namespace) -> KernelConfig:
    configure_logging(args.verbose)
    return KernelConfig(
        npoints=parse_int(args.npoints),
        dimension=parse_int(args.dimension),
        ncentroids=parse_int(args.ncentroids),
        mindistance=parse_float(args.mindistance),
        seed=parse_int(args.seed),
    )


def configure_logging(verbose: bool) -> None:
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            stream=sys.stderr,
            format="%(asctime)s %(name)s %(levelname)s %(message)s",
        )


def print_result(assignments, elapsed: float, stream=None) -> None:
    """Write one cluster index per line, a blank line and the elapsed time."""
    stream = stream if stream is not None else sys.stdout
    for cluster in assignments:
        stream.write("%d\n" % cluster)
    stream.write("\nKernel executed in %f seconds.\n" % elapsed)
    stream.flush()


def main(argv=None) -> int:
    """Entry point for ``kmkernel``."""
    start = time.perf_counter()
    config = config_from_args(build_parser("kmkernel").parse_args(argv))
    try:
        state, rng = build_state(config)
        assignments = kmeans(state, rng)
    except MemoryError:
        logger.debug("Allocation failed for %r", config)
        return 1
    print_result(assignments, time.perf_counter() - start)
    return 0


def parallel_main(argv=None) -> int:
    """Entry point for ``kmkernel-parallel``."""
    start = time.perf_counter()
    args = build_parser("kmkernel-parallel", parallel=True).parse_args(argv)
    config = config_from_args(args)
    try:
        if args.backend == "spark":
            assignments = _run_spark(config, args.workers, args.master)
        else:
            states = run_threads(lambda channel: run_parallel_worker(channel, config), args.workers)
            assignments = states[0].assignments
    except MemoryError:
        logger.debug("Allocation failed for %r", config)
        return 1
    print_result(assignments, time.perf_counter() - start)
    return 0


def _run_spark(config: KernelConfig, workers: int, master=None):
    from pyspark.sql import SparkSession

    from .clusterer.spark import fit_on_spark

    spark = (
        SparkSession.builder.master(master or "local[%d]" % workers)
        .appName("kmkernel")
        .config("spark.ui.enabled", "false")
        .getOrCreate()
    )
    spark.sparkContext.setLogLevel("WARN")
    try:
        return fit_on_spark(spark, *config, num_workers=workers)
    finally:
        spark.stop()


if __name__ == "__main__":
    raise SystemExit(main())
