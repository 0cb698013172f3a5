# -*- coding: utf-8 -*-
"""
The backend-independent distributed vector interface.

`GenericVector` defines the contract every concrete vector backend satisfies
and implements the parts of it that do not depend on the backend: argument
validation, the insert/add staging discipline, ownership tracking, remote
reads, and reductions over row subsets. Backends implement a small set of
hooks (allocation, access to the owned values, staging, assembly, import of
remote values, and the arithmetic kernels).

Distributed semantics:
- Each global row is owned by exactly one process (see `IndexMap`).
- ``set``/``add`` stage values at arbitrary global rows; they become visible
  only after a matching ``apply(mode)``, which is collective.
- Ghost rows are a read-only cache refreshed by ``update_ghost_values``.
- A vector's storage may be shared between several handles (see
  `shared_view`); only an exclusively owned vector may be resized.
"""

import abc
import copy
import numbers
import weakref
from enum import Enum
from typing import Any, Optional, Sequence, Tuple, Type, TypeVar

import numpy as np
import numpy.typing as npt

from ..common import mpi
from ..common.errors import (
    AliasedResizeError,
    GhostIndexError,
    InvalidArgumentError,
    PreconditionError,
    SizeMismatchError,
    TypeMismatchError,
    UninitializedError,
)
from ..common.index_map import IndexMap

APPLY_MODES = ("insert", "add")
NORM_TYPES = ("l1", "l2", "linf")
VECTOR_TYPES = ("global", "local")

V = TypeVar("V", bound="GenericVector")


class Ownership(Enum):
    """Whether a handle is the only one referring to its storage."""

    EXCLUSIVE = "exclusive"
    SHARED_VIEW = "shared_view"


class VectorStorage:
    """
    Backend data of a vector together with the handles referring to it.

    Attributes:
        index_map (IndexMap): Ownership of the rows.
        data: The backend object (a numpy array, a PETSc Vec, ...).
        pending_mode (Optional[str]): Mode of the staged, not yet applied,
            writes.
        holders (weakref.WeakSet): Live vector handles using this storage.
    """

    def __init__(self, index_map: IndexMap, data: Any):
        self.index_map = index_map
        self.data = data
        self.pending_mode: Optional[str] = None
        self.holders: "weakref.WeakSet[GenericVector]" = weakref.WeakSet()


class GenericVector(abc.ABC):
    """
    Abstract distributed vector.

    Args:
        comm: Communicator of a global vector. Defaults to COMM_WORLD.
            Local vectors always use COMM_SELF.
        size: If given, the global size to allocate.
        local_size: Optional number of rows owned by this process.
        ghost_indices: Optional global rows owned elsewhere to cache here.
        vector_type: 'global' (distributed) or 'local' (a full copy on each
            process, without ghosts).
    """

    backend = "generic"

    def __init__(
        self,
        comm: Optional[Any] = None,
        size: Optional[int] = None,
        local_size: Optional[int] = None,
        ghost_indices: Optional[Sequence[int]] = None,
        vector_type: str = "global",
    ):
        if vector_type not in VECTOR_TYPES:
            raise InvalidArgumentError(
                f"{type(self).__name__}",
                f"unknown vector type '{vector_type}', expected one of {VECTOR_TYPES}",
            )
        self.vector_type = vector_type
        if vector_type == "local":
            self._comm = mpi.comm_self()
        else:
            self._comm = comm if comm is not None else mpi.comm_world()
        self._storage: Optional[VectorStorage] = None

        if size is not None:
            self.resize(size, local_size, ghost_indices)

    # =========================================================================
    # Backend hooks
    # =========================================================================

    @abc.abstractmethod
    def _allocate(self, index_map: IndexMap) -> VectorStorage:
        """Creates zero-initialised storage for ``index_map``."""

    @abc.abstractmethod
    def _copy_storage(self, storage: VectorStorage) -> VectorStorage:
        """Creates an independent deep copy of ``storage``."""

    @abc.abstractmethod
    def _owned_array(self) -> np.ndarray:
        """Read access to the owned values (may be a view)."""

    @abc.abstractmethod
    def _ghost_array(self) -> np.ndarray:
        """Read access to the cached ghost values."""

    @abc.abstractmethod
    def _write_owned(self, values: np.ndarray) -> None:
        """Overwrites all owned values."""

    @abc.abstractmethod
    def _fill(self, value: float) -> None:
        """Sets every owned value to ``value``."""

    @abc.abstractmethod
    def _stage_values(self, block: np.ndarray, rows: np.ndarray, mode: str) -> None:
        """Buffers writes at global rows until the next assembly."""

    @abc.abstractmethod
    def _assemble(self, mode: str) -> None:
        """Flushes staged writes to their owners (collective)."""

    @abc.abstractmethod
    def _import_values(self, indices: np.ndarray) -> np.ndarray:
        """Fetches the values at arbitrary global rows (collective)."""

    @abc.abstractmethod
    def _write_ghosts(self, values: np.ndarray) -> None:
        """Overwrites the ghost cache."""

    @abc.abstractmethod
    def _inner(self, y: "GenericVector") -> float: ...

    @abc.abstractmethod
    def _axpy(self, a: float, y: "GenericVector") -> None: ...

    @abc.abstractmethod
    def _scale(self, a: float) -> None: ...

    @abc.abstractmethod
    def _pointwise_mult(self, y: "GenericVector") -> None: ...

    @abc.abstractmethod
    def _norm(self, norm_type: str) -> float: ...

    @abc.abstractmethod
    def _min(self) -> float: ...

    @abc.abstractmethod
    def _max(self) -> float: ...

    # =========================================================================
    # Helpers
    # =========================================================================

    def _op(self, name: str) -> str:
        return f"{type(self).__name__}.{name}"

    def _check_initialized(self, operation: str) -> VectorStorage:
        if self._storage is None:
            raise UninitializedError(operation, "vector has not been initialized")
        return self._storage

    def _attach(self, storage: VectorStorage) -> None:
        if self._storage is not None:
            self._storage.holders.discard(self)
        self._storage = storage
        storage.holders.add(self)

    def _check_operand(self: V, y: "GenericVector", operation: str) -> V:
        """Down-casts ``y`` and checks it is initialised and of matching layout."""
        self._check_initialized(operation)
        other = y.down_cast(type(self))
        if other._storage is None:
            raise UninitializedError(operation, "given vector is not initialized")
        if other.size() != self.size():
            raise SizeMismatchError(
                operation,
                f"the vectors must be of the same size ({self.size()} != {other.size()})",
            )
        if other.local_range() != self.local_range():
            raise SizeMismatchError(
                operation, "the vectors must have the same parallel layout"
            )
        return other

    def _check_block(
        self, operation: str, block: npt.ArrayLike, rows: npt.ArrayLike
    ) -> Tuple[np.ndarray, np.ndarray]:
        self._check_initialized(operation)
        block = np.asarray(block, dtype=float).ravel()
        rows = np.asarray(rows, dtype=np.int64).ravel()
        if block.size != rows.size:
            raise SizeMismatchError(
                operation,
                f"number of values ({block.size}) is not equal to number of rows ({rows.size})",
            )
        n = self.size()
        if rows.size and (rows.min() < 0 or rows.max() >= n):
            raise IndexError(f"{operation}: row index outside [0, {n}).")
        return block, rows

    def _check_local_values(self, operation: str, values: npt.ArrayLike) -> np.ndarray:
        self._check_initialized(operation)
        values = np.asarray(values, dtype=float).ravel()
        if values.size != self.local_size():
            raise SizeMismatchError(
                operation,
                f"length of values array ({values.size}) is not equal to "
                f"local vector size ({self.local_size()})",
            )
        return values

    def _build_index_map(
        self,
        size: int,
        local_size: Optional[int],
        ghost_indices: Optional[Sequence[int]],
    ) -> IndexMap:
        op = self._op("resize")
        ghosts = np.asarray(
            [] if ghost_indices is None else ghost_indices, dtype=np.int64
        ).ravel()

        if self.vector_type == "local" or self._comm.size == 1:
            if ghosts.size:
                raise GhostIndexError(op, "serial vectors do not support ghost points")
            if local_size is not None and local_size != size:
                raise SizeMismatchError(
                    op,
                    f"local size ({local_size}) of a serial vector must equal its size ({size})",
                )
            return IndexMap.local(size)

        if local_size is None:
            return IndexMap.block(self._comm, size, ghosts)

        index_map = IndexMap.from_local_size(self._comm, local_size, ghosts)
        index_map.check_size(op, size)
        return index_map

    # =========================================================================
    # Sizes and ownership
    # =========================================================================

    @property
    def comm(self) -> Any:
        return self._comm

    @property
    def index_map(self) -> IndexMap:
        return self._check_initialized(self._op("index_map")).index_map

    @property
    def context(self):
        """The linear algebra context that creates vectors of this kind."""
        from .context import LinearAlgebraContext

        return LinearAlgebraContext(comm=self._comm, backend=self.backend)

    @property
    def ownership(self) -> Ownership:
        if self._storage is None or len(self._storage.holders) <= 1:
            return Ownership.EXCLUSIVE
        return Ownership.SHARED_VIEW

    def shared_view(self: V) -> V:
        """
        Returns a second handle on the same storage.

        Writes through either handle are seen by both. While both are alive,
        neither may be resized.
        """
        storage = self._check_initialized(self._op("shared_view"))
        view = copy.copy(self)
        storage.holders.add(view)
        return view

    def resize(
        self,
        size: int,
        local_size: Optional[int] = None,
        ghost_indices: Optional[Sequence[int]] = None,
    ) -> None:
        """
        (Re)allocates the vector, rebuilding its index map and ghost cache.

        Args:
            size: The global size.
            local_size: Rows owned by this process. If None, the rows are
                block distributed over the communicator.
            ghost_indices: Global rows owned elsewhere to cache here.

        Raises:
            AliasedResizeError: If another handle shares the storage.
            GhostIndexError: If ghosts are given for a serial vector.
            SizeMismatchError: If the local sizes do not add up to ``size``.
        """
        op = self._op("resize")
        if size < 0:
            raise ValueError(f"{op}: size must be non-negative.")
        if self.ownership is Ownership.SHARED_VIEW:
            raise AliasedResizeError(
                op, "more than one object points to the underlying storage"
            )
        no_layout = local_size is None and (
            ghost_indices is None or len(ghost_indices) == 0
        )
        if self._storage is not None and no_layout and self.size() == size:
            return
        self._attach(self._allocate(self._build_index_map(size, local_size, ghost_indices)))

    def empty(self) -> bool:
        return self._storage is None or self.size() == 0

    def size(self) -> int:
        return 0 if self._storage is None else self._storage.index_map.size_global

    def local_size(self) -> int:
        return 0 if self._storage is None else self._storage.index_map.size_local

    def local_range(self) -> Tuple[int, int]:
        storage = self._check_initialized(self._op("local_range"))
        if storage.index_map.num_processes == 1:
            return 0, self.size()
        return storage.index_map.local_range

    def owns_index(self, index: int) -> bool:
        r0, r1 = self.local_range()
        return r0 <= index < r1

    # =========================================================================
    # Element access
    # =========================================================================

    def zero(self) -> None:
        """Sets all owned entries to zero; the ghost cache is left untouched."""
        self._check_initialized(self._op("zero"))
        self._fill(0.0)

    def _stage(self, operation: str, mode: str) -> None:
        storage = self._storage
        if storage.pending_mode not in (None, mode):
            raise InvalidArgumentError(
                operation,
                f"cannot stage '{mode}' values while '{storage.pending_mode}' values "
                f"are pending; call apply('{storage.pending_mode}') first",
            )
        storage.pending_mode = mode

    def set(self, block: npt.ArrayLike, rows: npt.ArrayLike) -> None:
        """Stages replacement of the values at global ``rows``."""
        op = self._op("set")
        block, rows = self._check_block(op, block, rows)
        self._stage(op, "insert")
        self._stage_values(block, rows, "insert")

    def add(self, block: npt.ArrayLike, rows: npt.ArrayLike) -> None:
        """Stages accumulation into the values at global ``rows``."""
        op = self._op("add")
        block, rows = self._check_block(op, block, rows)
        self._stage(op, "add")
        self._stage_values(block, rows, "add")

    def apply(self, mode: str) -> None:
        """
        Flushes staged writes to their owning processes (collective).

        Args:
            mode: 'insert' or 'add'; must match the staged writes.

        Raises:
            InvalidArgumentError: For an unknown mode or one that does not
                match the staged writes.
        """
        op = self._op("apply")
        storage = self._check_initialized(op)
        if mode not in APPLY_MODES:
            raise InvalidArgumentError(
                op, f"unknown apply mode '{mode}', expected one of {APPLY_MODES}"
            )
        if storage.pending_mode not in (None, mode):
            raise InvalidArgumentError(
                op,
                f"apply mode '{mode}' does not match the pending "
                f"'{storage.pending_mode}' values",
            )
        self._assemble(mode)
        storage.pending_mode = None

    def get_local(
        self, rows: Optional[npt.ArrayLike] = None, out: Optional[np.ndarray] = None
    ) -> np.ndarray:
        """
        Reads values held by this process.

        Args:
            rows: Global rows to read; each must be owned or a ghost. If
                None, all owned values are returned.
            out: Optional array receiving the values; without ``rows`` its
                length must equal ``local_size()``.
        """
        op = self._op("get_local")
        storage = self._check_initialized(op)
        if rows is None:
            values = np.array(self._owned_array(), dtype=float, copy=True)
        else:
            rows = np.asarray(rows, dtype=np.int64).ravel()
            try:
                local = storage.index_map.global_to_local(rows)
            except KeyError as e:
                raise GhostIndexError(op, str(e.args[0])) from e
            values = np.concatenate([self._owned_array(), self._ghost_array()])[local]

        if out is None:
            return values
        if out.size != values.size:
            raise SizeMismatchError(
                op,
                f"length of values array ({out.size}) is not equal to "
                f"number of values read ({values.size})",
            )
        out[:] = values
        return out

    def set_local(self, values: npt.ArrayLike) -> None:
        """Overwrites all owned values; ``len(values)`` must equal ``local_size()``."""
        values = self._check_local_values(self._op("set_local"), values)
        self._write_owned(values)

    def add_local(self, values: npt.ArrayLike) -> None:
        """Adds to all owned values; ``len(values)`` must equal ``local_size()``."""
        values = self._check_local_values(self._op("add_local"), values)
        self._write_owned(np.asarray(self._owned_array(), dtype=float) + values)

    def get(self, rows: npt.ArrayLike) -> np.ndarray:
        """
        Reads values at arbitrary global rows.

        For a distributed vector this is collective: rows owned elsewhere are
        gathered into a temporary local vector first.
        """
        op = self._op("get")
        storage = self._check_initialized(op)
        rows = np.asarray(rows, dtype=np.int64).ravel()
        if storage.index_map.num_processes == 1:
            return self.get_local(rows)

        y = type(self)(vector_type="local")
        self.gather(y, rows)
        if y.size() != rows.size:
            raise SizeMismatchError(
                op, f"gathered {y.size()} values for {rows.size} rows"
            )
        return y.get_local()

    def gather(self, target: "GenericVector", indices: npt.ArrayLike) -> None:
        """
        Fills a local vector with the values at global ``indices`` (collective).

        Args:
            target: A local vector of the same backend; it is resized to
                ``len(indices)``.
            indices: Global rows, owned anywhere.
        """
        op = self._op("gather")
        self._check_initialized(op)
        y = target.down_cast(type(self))
        if y.vector_type != "local":
            raise PreconditionError(op, "target vector must be a local vector")
        indices = np.asarray(indices, dtype=np.int64).ravel()
        n = self.size()
        if indices.size and (indices.min() < 0 or indices.max() >= n):
            raise IndexError(f"{op}: row index outside [0, {n}).")

        values = self._import_values(indices)
        y.resize(indices.size)
        y._write_owned(values)

    def update_ghost_values(self) -> None:
        """Refreshes the ghost cache from the owning processes (collective)."""
        storage = self._check_initialized(self._op("update_ghost_values"))
        self._write_ghosts(self._import_values(storage.index_map.ghosts))

    # =========================================================================
    # Arithmetic
    # =========================================================================

    def inner(self, y: "GenericVector") -> float:
        """Returns the global inner product (collective)."""
        return self._inner(self._check_operand(y, self._op("inner")))

    def axpy(self, a: float, y: "GenericVector") -> None:
        """Computes ``self += a * y``."""
        self._axpy(float(a), self._check_operand(y, self._op("axpy")))

    def __iadd__(self: V, y: "GenericVector") -> V:
        self.axpy(1.0, y)
        return self

    def __isub__(self: V, y: "GenericVector") -> V:
        self.axpy(-1.0, y)
        return self

    def __imul__(self: V, a) -> V:
        """Scales by a number, or multiplies elementwise by another vector."""
        if isinstance(a, numbers.Number):
            self._check_initialized(self._op("__imul__"))
            self._scale(float(a))
        else:
            self._pointwise_mult(self._check_operand(a, self._op("__imul__")))
        return self

    def __itruediv__(self: V, a: float) -> V:
        self *= 1.0 / a
        return self

    def norm(self, norm_type: str = "l2") -> float:
        """Returns the global 'l1', 'l2' or 'linf' norm (collective)."""
        op = self._op("norm")
        self._check_initialized(op)
        if norm_type not in NORM_TYPES:
            raise InvalidArgumentError(
                op, f"unknown norm type '{norm_type}', expected one of {NORM_TYPES}"
            )
        return self._norm(norm_type)

    def min(self) -> float:
        """Returns the global minimum value (collective)."""
        self._check_initialized(self._op("min"))
        return self._min()

    def max(self) -> float:
        """Returns the global maximum value (collective)."""
        self._check_initialized(self._op("max"))
        return self._max()

    def sum(self, rows: Optional[npt.ArrayLike] = None) -> float:
        """
        Returns the global sum of all entries, or of the entries at ``rows``.

        Each row is counted once, however many processes list it. Rows not
        owned locally are passed around the ring of processes (in round
        ``i`` every process sends to ``rank + i`` and receives from
        ``rank - i``) so that every process sums only rows it owns; the
        partial sums are then sum-reduced. Collective.
        """
        op = self._op("sum")
        self._check_initialized(op)
        owned = np.asarray(self._owned_array(), dtype=float)
        if rows is None:
            return float(mpi.global_sum(self._comm, float(owned.sum())))

        r0, r1 = self.local_range()
        rows = np.unique(np.asarray(rows, dtype=np.int64).ravel())
        is_local = (rows >= r0) & (rows < r1)
        local_rows = [rows[is_local]]
        nonlocal_rows = rows[~is_local]

        num_processes = self._comm.size
        process_number = self._comm.rank
        for i in range(1, num_processes):
            source = (process_number - i + num_processes) % num_processes
            dest = (process_number + i) % num_processes
            received = np.asarray(
                self._comm.sendrecv(nonlocal_rows, dest=dest, source=source),
                dtype=np.int64,
            )
            local_rows.append(received[(received >= r0) & (received < r1)])

        local_rows = np.unique(np.concatenate(local_rows))
        local_sum = float(owned[local_rows - r0].sum())
        return float(mpi.global_sum(self._comm, local_sum))

    # =========================================================================
    # Assignment and conversion
    # =========================================================================

    def down_cast(self, cls: Type[V]) -> V:
        """Returns ``self`` as ``cls``, or raises if it is of another backend."""
        if not isinstance(self, cls):
            raise TypeMismatchError(
                "GenericVector.down_cast",
                f"unable to cast {type(self).__name__} to {cls.__name__}",
            )
        return self

    def assign(self: V, other) -> V:
        """
        Assigns a scalar to every owned entry, or copies another vector.

        Copying replaces this handle's storage by an independent copy of the
        other vector's storage (size, layout and values); other handles of
        the old storage are unaffected.
        """
        op = self._op("assign")
        if isinstance(other, numbers.Number):
            self._check_initialized(op)
            self._fill(float(other))
            return self

        y = other.down_cast(type(self))
        if y._storage is None:
            raise UninitializedError(op, "given vector is not initialized")
        if y is not self and y._storage is not self._storage:
            self._attach(self._copy_storage(y._storage))
        return self

    def copy(self: V) -> V:
        """Returns a deep copy with its own storage."""
        storage = self._check_initialized(self._op("copy"))
        new = type(self)(comm=self._comm, vector_type=self.vector_type)
        new._attach(self._copy_storage(storage))
        return new

    def str(self, verbose: bool = False) -> str:
        if verbose and self._storage is not None:
            r0, r1 = self.local_range()
            return (
                f"<{type(self).__name__} of size {self.size()}, "
                f"rows [{r0}, {r1}): {np.array2string(self.get_local())}>"
            )
        return f"<{type(self).__name__} of size {self.size()}>"

    def __str__(self):
        return self.str(False)

    __repr__ = __str__
