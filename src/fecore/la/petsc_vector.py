# -*- coding: utf-8 -*-
"""
A distributed vector backed by a PETSc ``Vec`` (through petsc4py).

petsc4py is an optional dependency; constructing a `PETScVector` without it
raises ImportError. PETSc errors are re-raised as `BackendError` naming the
failing operation.
"""

import warnings
from typing import Any, Callable

import numpy as np

from ..common.errors import BackendError
from ..common.index_map import IndexMap
from .generic_vector import GenericVector, VectorStorage

try:
    from petsc4py import PETSc
except ImportError:
    PETSc = None

NORM_TYPES_PETSC = {"l1": "NORM_1", "l2": "NORM_2", "linf": "NORM_INFINITY"}


class PETScVector(GenericVector):
    """Vector backend delegating storage, assembly and kernels to PETSc."""

    backend = "petsc"

    def __init__(self, *args, **kwargs):
        if PETSc is None:
            raise ImportError(
                "petsc4py is not installed. Please install it with `pip install fecore[petsc]`."
            )
        super().__init__(*args, **kwargs)

    def _call(self, name: str, fn: Callable[[], Any]) -> Any:
        try:
            return fn()
        except PETSc.Error as e:
            raise BackendError(self._op(name), f"PETSc error {e}") from e

    @property
    def vec(self):
        """The underlying PETSc Vec."""
        return self._check_initialized(self._op("vec")).data

    def _allocate(self, index_map: IndexMap) -> VectorStorage:
        n, N = index_map.size_local, index_map.size_global

        def create():
            if index_map.num_processes == 1:
                vec = PETSc.Vec().createSeq(N, comm=PETSc.COMM_SELF)
            elif index_map.num_ghosts:
                ghosts = index_map.ghosts.astype(PETSc.IntType)
                vec = PETSc.Vec().createGhost(ghosts, (n, N), comm=self._comm)
            else:
                vec = PETSc.Vec().createMPI((n, N), comm=self._comm)
            vec.zeroEntries()
            return vec

        return VectorStorage(index_map, self._call("resize", create))

    def _copy_storage(self, storage: VectorStorage) -> VectorStorage:
        return VectorStorage(storage.index_map, self._call("copy", storage.data.copy))

    def _owned_array(self) -> np.ndarray:
        return self._storage.data.getArray(readonly=True)

    def _ghost_array(self) -> np.ndarray:
        vec = self._storage.data
        if self._storage.index_map.num_ghosts == 0:
            return np.zeros(0)
        n = self._storage.index_map.size_local
        with vec.localForm() as local_form:
            return np.array(local_form.getArray(readonly=True)[n:], copy=True)

    def _write_owned(self, values: np.ndarray) -> None:
        self._call("set_local", lambda: self._storage.data.setArray(values))

    def _write_ghosts(self, values: np.ndarray) -> None:
        vec = self._storage.data
        n = self._storage.index_map.size_local
        with vec.localForm() as local_form:
            local_form.getArray()[n:] = values

    def _fill(self, value: float) -> None:
        self._call("assign", lambda: self._storage.data.set(value))

    def _stage_values(self, block: np.ndarray, rows: np.ndarray, mode: str) -> None:
        addv = (
            PETSc.InsertMode.INSERT_VALUES
            if mode == "insert"
            else PETSc.InsertMode.ADD_VALUES
        )
        self._call(
            mode,
            lambda: self._storage.data.setValues(
                rows.astype(PETSc.IntType), block, addv=addv
            ),
        )

    def _assemble(self, mode: str) -> None:
        vec = self._storage.data

        def assemble():
            vec.assemblyBegin()
            vec.assemblyEnd()

        self._call("apply", assemble)

    def _import_values(self, indices: np.ndarray) -> np.ndarray:
        vec = self._storage.data

        def scatter():
            is_from = PETSc.IS().createGeneral(
                indices.astype(PETSc.IntType), comm=PETSc.COMM_SELF
            )
            target = PETSc.Vec().createSeq(indices.size, comm=PETSc.COMM_SELF)
            sc = PETSc.Scatter().create(vec, is_from, target, None)
            sc.scatter(
                vec,
                target,
                addv=PETSc.InsertMode.INSERT_VALUES,
                mode=PETSc.ScatterMode.FORWARD,
            )
            values = np.array(target.getArray(readonly=True), copy=True)
            for obj in (sc, target, is_from):
                obj.destroy()
            return values

        return self._call("gather", scatter)

    def update_ghost_values(self) -> None:
        storage = self._check_initialized(self._op("update_ghost_values"))
        if storage.index_map.num_ghosts == 0:
            return
        self._call(
            "update_ghost_values",
            lambda: storage.data.ghostUpdate(
                addv=PETSc.InsertMode.INSERT_VALUES, mode=PETSc.ScatterMode.FORWARD
            ),
        )

    # =========================================================================
    # Arithmetic kernels
    # =========================================================================

    def _inner(self, y: "PETScVector") -> float:
        return float(self._call("inner", lambda: self._storage.data.dot(y._storage.data)))

    def _axpy(self, a: float, y: "PETScVector") -> None:
        self._call("axpy", lambda: self._storage.data.axpy(a, y._storage.data))

    def _scale(self, a: float) -> None:
        self._call("__imul__", lambda: self._storage.data.scale(a))

    def _pointwise_mult(self, y: "PETScVector") -> None:
        vec = self._storage.data
        self._call("__imul__", lambda: vec.pointwiseMult(vec, y._storage.data))

    def _norm(self, norm_type: str) -> float:
        kind = getattr(PETSc.NormType, NORM_TYPES_PETSC[norm_type])
        return float(self._call("norm", lambda: self._storage.data.norm(kind)))

    def _min(self) -> float:
        return float(self._call("min", lambda: self._storage.data.min()[1]))

    def _max(self) -> float:
        return float(self._call("max", lambda: self._storage.data.max()[1]))

    def str(self, verbose: bool = False) -> str:
        if verbose and self._storage is not None:
            warnings.warn(
                "Verbose output for PETScVector not implemented, calling PETSc view directly.",
                stacklevel=2,
            )
            self._storage.data.view()
        return f"<PETScVector of size {self.size()}>"
