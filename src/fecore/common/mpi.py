# -*- coding: utf-8 -*-
"""
Routines related to parallel operation via MPI.

All communication in fecore goes through the lower-case (pickle based)
object API of an mpi4py communicator: ``allreduce``, ``allgather``,
``alltoall``, ``sendrecv``, ``bcast`` and ``barrier``, together with the
``rank`` and ``size`` attributes. These calls are collective: every process
of the communicator must make the same calls in the same order.
"""

from typing import Any, Optional, Tuple

import numpy as np
from mpi4py import MPI


def comm_world() -> MPI.Intracomm:
    """Returns the world communicator."""
    return MPI.COMM_WORLD


def comm_self() -> MPI.Intracomm:
    """Returns the communicator holding only the calling process."""
    return MPI.COMM_SELF


def local_range(rank: int, n: int, size: int) -> Tuple[int, int]:
    """
    Computes the block of ``[0, n)`` owned by ``rank`` among ``size`` processes.

    The block distribution ``[n*p // P, n*(p+1) // P)`` only depends on its
    arguments, so any process can compute the range of any other process
    without communication.

    Args:
        rank: The process number.
        n: The global number of indices.
        size: The number of processes.

    Returns:
        The half open range ``(first, last)``.
    """
    if size <= 0:
        raise ValueError("Number of processes must be positive.")
    if not 0 <= rank < size:
        raise ValueError(f"Rank {rank} is outside [0, {size}).")
    return (n * rank) // size, (n * (rank + 1)) // size


def index_owner(index: int, n: int, size: int) -> int:
    """Returns the process owning ``index`` in the block distribution of ``n``."""
    if not 0 <= index < n:
        raise ValueError(f"Index {index} is outside [0, {n}).")
    # Largest p with n*p // size <= index
    p = ((index + 1) * size - 1) // n
    while (n * p) // size > index:
        p -= 1
    return p


def global_sum(comm: Any, value: Any) -> Any:
    """Sum-reduces ``value`` over all processes of ``comm``."""
    return comm.allreduce(value, op=MPI.SUM)


def global_min(comm: Any, value: Any) -> Any:
    """Min-reduces ``value`` over all processes of ``comm``."""
    return comm.allreduce(value, op=MPI.MIN)


def global_max(comm: Any, value: Any) -> Any:
    """Max-reduces ``value`` over all processes of ``comm``."""
    return comm.allreduce(value, op=MPI.MAX)


def sum_array(comm: Any, values: np.ndarray) -> np.ndarray:
    """Elementwise sum of an array of equal shape on every process."""
    if comm.size == 1:
        return np.array(values, copy=True)
    return np.asarray(comm.allreduce(np.asarray(values), op=MPI.SUM))


def pprint(*args, comm: Optional[Any] = None, proc: int = 0, **kwargs) -> None:
    """
    Parallel-safe print: only process ``proc`` of ``comm`` writes.

    Arguments are evaluated on every process before the call, so collective
    operations inside them stay matched.
    """
    comm = comm if comm is not None else MPI.COMM_WORLD
    if comm.rank == proc:
        print(*args, **kwargs)
