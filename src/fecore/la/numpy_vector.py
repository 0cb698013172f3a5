# -*- coding: utf-8 -*-
"""
A distributed vector stored in numpy arrays.

Each process keeps its owned rows in one array and its ghost rows in a
second one. Staged writes are buffered per handle storage and routed to their
owners with ``alltoall`` when applied; remote reads use a request/response
pair of ``alltoall`` exchanges.
"""

import numpy as np

from ..common import mpi
from ..common.index_map import IndexMap
from .generic_vector import GenericVector, VectorStorage


class NumpyStorage(VectorStorage):
    """Owned values, ghost cache and staged writes of a `NumpyVector`."""

    def __init__(self, index_map: IndexMap, data: np.ndarray, ghost_values: np.ndarray):
        super().__init__(index_map, data)
        self.ghost_values = ghost_values
        self.pending_rows = []
        self.pending_values = []


def _last_occurrences(indices: np.ndarray) -> np.ndarray:
    """Positions of the last occurrence of every distinct value in ``indices``."""
    _, first_reversed = np.unique(indices[::-1], return_index=True)
    return indices.size - 1 - first_reversed


class NumpyVector(GenericVector):
    """The default vector backend, built on numpy and mpi4py."""

    backend = "numpy"

    def _allocate(self, index_map: IndexMap) -> NumpyStorage:
        return NumpyStorage(
            index_map, np.zeros(index_map.size_local), np.zeros(index_map.num_ghosts)
        )

    def _copy_storage(self, storage: NumpyStorage) -> NumpyStorage:
        return NumpyStorage(
            storage.index_map, storage.data.copy(), storage.ghost_values.copy()
        )

    def _owned_array(self) -> np.ndarray:
        return self._storage.data

    def _ghost_array(self) -> np.ndarray:
        return self._storage.ghost_values

    def _write_owned(self, values: np.ndarray) -> None:
        self._storage.data[:] = values

    def _write_ghosts(self, values: np.ndarray) -> None:
        self._storage.ghost_values[:] = values

    def _fill(self, value: float) -> None:
        self._storage.data.fill(value)

    @property
    def array(self) -> np.ndarray:
        """Writable view of the owned values."""
        return self._check_initialized(self._op("array")).data

    # =========================================================================
    # Staging and communication
    # =========================================================================

    def _stage_values(self, block: np.ndarray, rows: np.ndarray, mode: str) -> None:
        self._storage.pending_rows.append(rows.copy())
        self._storage.pending_values.append(block.copy())

    def _assemble(self, mode: str) -> None:
        storage = self._storage
        index_map = storage.index_map
        rows = np.concatenate(storage.pending_rows + [np.zeros(0, dtype=np.int64)])
        values = np.concatenate(storage.pending_values + [np.zeros(0)])
        storage.pending_rows = []
        storage.pending_values = []

        if index_map.num_processes > 1:
            owners = index_map.owner(rows)
            outgoing = [
                (rows[owners == p], values[owners == p])
                for p in range(index_map.num_processes)
            ]
            incoming = self._comm.alltoall(outgoing)
            rows = np.concatenate(
                [np.asarray(r, dtype=np.int64) for r, _ in incoming]
            )
            values = np.concatenate([np.asarray(v, dtype=float) for _, v in incoming])
            local = rows - index_map.local_range[0]
        else:
            local = rows

        if mode == "insert":
            # Later writes to the same row win.
            last = _last_occurrences(local)
            storage.data[local[last]] = values[last]
        else:
            np.add.at(storage.data, local, values)

    def _import_values(self, indices: np.ndarray) -> np.ndarray:
        storage = self._storage
        index_map = storage.index_map
        indices = np.asarray(indices, dtype=np.int64)
        if index_map.num_processes == 1:
            return storage.data[indices].copy()

        owners = index_map.owner(indices)
        requests = [indices[owners == p] for p in range(index_map.num_processes)]
        received = self._comm.alltoall(requests)

        r0 = index_map.local_range[0]
        replies = [
            storage.data[np.asarray(request, dtype=np.int64) - r0] for request in received
        ]
        answers = self._comm.alltoall(replies)

        values = np.empty(indices.size)
        for p, answer in enumerate(answers):
            values[owners == p] = answer
        return values

    # =========================================================================
    # Arithmetic kernels
    # =========================================================================

    def _inner(self, y: "NumpyVector") -> float:
        return float(mpi.global_sum(self._comm, float(np.dot(self._storage.data, y._storage.data))))

    def _axpy(self, a: float, y: "NumpyVector") -> None:
        self._storage.data += a * y._storage.data

    def _scale(self, a: float) -> None:
        self._storage.data *= a

    def _pointwise_mult(self, y: "NumpyVector") -> None:
        self._storage.data *= y._storage.data

    def _norm(self, norm_type: str) -> float:
        data = self._storage.data
        if norm_type == "l1":
            return float(mpi.global_sum(self._comm, float(np.abs(data).sum())))
        if norm_type == "l2":
            return float(np.sqrt(mpi.global_sum(self._comm, float(np.dot(data, data)))))
        local_max = float(np.abs(data).max()) if data.size else 0.0
        return float(mpi.global_max(self._comm, local_max))

    def _min(self) -> float:
        data = self._storage.data
        return float(mpi.global_min(self._comm, float(data.min()) if data.size else np.inf))

    def _max(self) -> float:
        data = self._storage.data
        return float(mpi.global_max(self._comm, float(data.max()) if data.size else -np.inf))
