"""
A thread based stand-in for an mpi4py communicator.

`run_parallel` runs a function once per simulated rank, each in its own
thread, passing a `ThreadComm` that implements the subset of the mpi4py
object API fecore uses (rank, size, allreduce, allgather, alltoall, sendrecv,
bcast, barrier). Every call is collective, exactly as with MPI.
"""

import copy
import threading
from typing import Any, Callable, List

import numpy as np
from mpi4py import MPI


class _Hub:
    def __init__(self, size: int, timeout: float):
        self.size = size
        self.barrier = threading.Barrier(size, timeout=timeout)
        self.slots: List[Any] = [None] * size


class ThreadComm:
    def __init__(self, hub: _Hub, rank: int):
        self._hub = hub
        self.rank = rank
        self.size = hub.size

    def Get_rank(self) -> int:
        return self.rank

    def Get_size(self) -> int:
        return self.size

    def _exchange(self, value: Any) -> List[Any]:
        hub = self._hub
        hub.slots[self.rank] = copy.deepcopy(value)
        hub.barrier.wait()
        values = list(hub.slots)
        hub.barrier.wait()
        return values

    def barrier(self) -> None:
        self._exchange(None)

    def bcast(self, obj: Any, root: int = 0) -> Any:
        return copy.deepcopy(self._exchange(obj)[root])

    def allgather(self, sendobj: Any) -> List[Any]:
        return copy.deepcopy(self._exchange(sendobj))

    def alltoall(self, sendobj: List[Any]) -> List[Any]:
        if len(sendobj) != self.size:
            raise ValueError("alltoall needs one object per process")
        values = self._exchange(list(sendobj))
        return [copy.deepcopy(values[p][self.rank]) for p in range(self.size)]

    def sendrecv(self, sendobj, dest, sendtag=0, recvbuf=None, source=None,
                 recvtag=None, status=None):
        values = self._exchange((dest, sendobj))
        target, obj = values[source]
        if target != self.rank:
            raise RuntimeError(f"rank {source} did not send to rank {self.rank}")
        return copy.deepcopy(obj)

    def allreduce(self, sendobj: Any, op=MPI.SUM) -> Any:
        values = self._exchange(sendobj)
        if op is MPI.SUM:
            result = copy.deepcopy(values[0])
            for v in values[1:]:
                result = result + v
            return result
        is_array = isinstance(values[0], np.ndarray)
        if op is MPI.MIN:
            return np.minimum.reduce(values) if is_array else min(values)
        if op is MPI.MAX:
            return np.maximum.reduce(values) if is_array else max(values)
        raise NotImplementedError(f"Reduction {op} not supported by ThreadComm")


def run_parallel(size: int, fn: Callable[[ThreadComm], Any], timeout: float = 30.0) -> List[Any]:
    """
    Calls ``fn(comm)`` on ``size`` simulated ranks and returns their results.

    The first exception raised on any rank is re-raised in the caller.
    """
    hub = _Hub(size, timeout)
    results: List[Any] = [None] * size
    errors: List[BaseException] = []

    def target(rank: int) -> None:
        try:
            results[rank] = fn(ThreadComm(hub, rank))
        except BaseException as e:
            errors.append(e)
            hub.barrier.abort()

    threads = [threading.Thread(target=target, args=(r,)) for r in range(size)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    primary = [e for e in errors if not isinstance(e, threading.BrokenBarrierError)]
    if primary:
        raise primary[0]
    if errors:
        raise errors[0]
    return results
