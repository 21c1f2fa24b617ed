# Copyright (c) 2025 massivedatascience
# Licensed under the Apache License, Version 2.0

"""
MPI backend for the parallel kernel.

Requires the ``mpi`` extra (``mpi4py``). Launch with, for example::

    mpiexec -n 4 kmkernel-mpi 100000 8 16 50.0 7
"""

import time

import numpy as np
from mpi4py import MPI

from ..cli import build_parser, config_from_args, print_result
from .collective import CollectiveChannel
from .coordinator import run_parallel_worker


class MPIChannel(CollectiveChannel):
    """
    Collective channel over an MPI communicator.

    The reductions use ``Allreduce`` on numpy buffers instead of the
    gather-based defaults.
    """

    def __init__(self, comm=None):
        self.comm = comm if comm is not None else MPI.COMM_WORLD

    @property
    def rank(self) -> int:
        return self.comm.Get_rank()

    @property
    def size(self) -> int:
        return self.comm.Get_size()

    def all_gather(self, value):
        return self.comm.allgather(value)

    def broadcast(self, value, root: int = 0):
        return self.comm.bcast(value, root=root)

    def all_reduce_max_ints(self, values) -> np.ndarray:
        values = np.asarray(values)
        send = np.ascontiguousarray(values, dtype=np.int32)
        recv = np.empty_like(send)
        self.comm.Allreduce(send, recv, op=MPI.MAX)
        return recv.astype(values.dtype)

    def all_reduce_max_flag(self, flag: bool) -> bool:
        return bool(self.comm.allreduce(int(flag), op=MPI.MAX))

    def all_reduce_sum(self, vector) -> np.ndarray:
        send = np.ascontiguousarray(vector, dtype=np.float32)
        recv = np.empty_like(send)
        self.comm.Allreduce(send, recv, op=MPI.SUM)
        return recv


def main(argv=None, comm=None) -> int:
    """Entry point for ``kmkernel-mpi``; only rank 0 parses and prints."""
    start = time.perf_counter()
    channel = MPIChannel(comm)

    config = None
    if channel.rank == 0:
        try:
            config = config_from_args(build_parser("kmkernel-mpi").parse_args(argv))
        except SystemExit as exc:
            # The other ranks are already waiting for the configuration.
            code = exc.code if isinstance(exc.code, int) else 2
            channel.comm.Abort(code)
            return code
    try:
        state = run_parallel_worker(channel, config)
    except MemoryError:
        channel.comm.Abort(1)
        return 1

    if channel.rank == 0:
        print_result(state.assignments, time.perf_counter() - start)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
