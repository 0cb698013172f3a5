# -*- coding: utf-8 -*-
"""
Distributed index maps.

An `IndexMap` describes how a global index space ``[0, N)`` is split into
contiguous, per-process blocks, and which additional *ghost* indices owned by
other processes are cached by the calling process. Mesh entities and vector
entries are both numbered through index maps.

Local numbering follows the usual convention: owned indices come first
(``0 .. size_local-1``), ghosts follow in the order they were supplied
(``size_local .. size_local+num_ghosts-1``).
"""

from typing import Any, Dict, Iterable, Optional, Tuple

import numpy as np
import numpy.typing as npt

from .errors import GhostIndexError, SizeMismatchError
from .mpi import comm_self, local_range


class IndexMap:
    """
    Ownership of a distributed, contiguously partitioned index space.

    Attributes:
        comm: The communicator the index space is distributed over. May be
            ``None`` for maps describing a partition that is only simulated
            in a single process.
        rank (int): The process this map describes.
        ranges (np.ndarray): ``P + 1`` offsets; process ``p`` owns
            ``[ranges[p], ranges[p + 1])``.
    """

    def __init__(
        self,
        ranges: npt.ArrayLike,
        rank: int,
        ghosts: Optional[Iterable[int]] = None,
        comm: Optional[Any] = None,
    ):
        ranges = np.asarray(ranges, dtype=np.int64)
        if ranges.ndim != 1 or ranges.size < 2:
            raise ValueError("ranges must hold at least two offsets.")
        if ranges[0] != 0 or np.any(np.diff(ranges) < 0):
            raise ValueError("ranges must start at 0 and be non-decreasing.")
        if not 0 <= rank < ranges.size - 1:
            raise ValueError(f"Rank {rank} is outside [0, {ranges.size - 1}).")

        self.comm = comm
        self.rank = int(rank)
        self.ranges = ranges
        self._ghosts = np.array([], dtype=np.int64)
        self._ghost_owners = np.array([], dtype=np.int64)
        self._ghost_to_slot: Dict[int, int] = {}

        ghosts = np.asarray(list(ghosts) if ghosts is not None else [], dtype=np.int64)
        if ghosts.size > 0:
            self._init_ghosts(ghosts)

    def _init_ghosts(self, ghosts: np.ndarray) -> None:
        op = "IndexMap"
        if self.num_processes == 1 or self.size_local == self.size_global:
            raise GhostIndexError(
                op, "a map without a distributed partition does not support ghost points"
            )
        if np.any(ghosts < 0) or np.any(ghosts >= self.size_global):
            raise GhostIndexError(
                op, f"ghost indices must lie in [0, {self.size_global})"
            )
        r0, r1 = self.local_range
        if np.any((ghosts >= r0) & (ghosts < r1)):
            raise GhostIndexError(op, "ghost indices must not be owned by this process")

        ghost_to_slot = {int(g): i for i, g in enumerate(ghosts)}
        if len(ghost_to_slot) != ghosts.size:
            raise GhostIndexError(op, "ghost indices must be unique")

        self._ghosts = ghosts
        self._ghost_owners = self.owner(ghosts)
        self._ghost_to_slot = ghost_to_slot

    # =========================================================================
    # Factories
    # =========================================================================

    @classmethod
    def block(
        cls, comm: Any, global_size: int, ghosts: Optional[Iterable[int]] = None
    ) -> "IndexMap":
        """
        Creates a block distribution of ``global_size`` indices over ``comm``.

        No communication is needed: every process evaluates the same formula.
        """
        if global_size < 0:
            raise ValueError("Global size must be non-negative.")
        size = comm.size
        ranges = [local_range(p, global_size, size)[0] for p in range(size)]
        ranges.append(global_size)
        return cls(ranges, comm.rank, ghosts, comm)

    @classmethod
    def from_local_size(
        cls, comm: Any, local_size: int, ghosts: Optional[Iterable[int]] = None
    ) -> "IndexMap":
        """
        Creates a map where each process contributes ``local_size`` indices.

        This is collective: local sizes are gathered from all processes.
        """
        if local_size < 0:
            raise ValueError("Local size must be non-negative.")
        sizes = comm.allgather(int(local_size))
        ranges = np.concatenate([[0], np.cumsum(sizes)])
        return cls(ranges, comm.rank, ghosts, comm)

    @classmethod
    def local(cls, size: int, ghosts: Optional[Iterable[int]] = None) -> "IndexMap":
        """Creates a map for a single process owning all ``size`` indices."""
        if size < 0:
            raise ValueError("Size must be non-negative.")
        return cls([0, size], 0, ghosts, comm_self())

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def num_processes(self) -> int:
        return self.ranges.size - 1

    @property
    def size_global(self) -> int:
        return int(self.ranges[-1])

    @property
    def local_range(self) -> Tuple[int, int]:
        return int(self.ranges[self.rank]), int(self.ranges[self.rank + 1])

    @property
    def size_local(self) -> int:
        r0, r1 = self.local_range
        return r1 - r0

    @property
    def num_ghosts(self) -> int:
        return int(self._ghosts.size)

    @property
    def ghosts(self) -> np.ndarray:
        """Global indices of the ghosts, in local slot order."""
        return self._ghosts.copy()

    def ghost_owners(self) -> np.ndarray:
        """Owning process of each ghost, in local slot order."""
        return self._ghost_owners.copy()

    def local_range_of(self, rank: int) -> Tuple[int, int]:
        """Returns the range owned by another process."""
        return int(self.ranges[rank]), int(self.ranges[rank + 1])

    def owner(self, indices: npt.ArrayLike) -> np.ndarray:
        """Returns the owning process of each global index."""
        indices = np.asarray(indices, dtype=np.int64)
        if indices.size and (indices.min() < 0 or indices.max() >= self.size_global):
            raise IndexError(
                f"Global index outside [0, {self.size_global}) in owner lookup."
            )
        return np.searchsorted(self.ranges, indices, side="right") - 1

    def is_owned(self, indices: npt.ArrayLike) -> np.ndarray:
        r0, r1 = self.local_range
        indices = np.asarray(indices, dtype=np.int64)
        return (indices >= r0) & (indices < r1)

    def ghost_slot(self, index: int) -> int:
        """Returns the ghost slot of a global index, or -1 if it is no ghost."""
        return self._ghost_to_slot.get(int(index), -1)

    def global_to_local(self, indices: npt.ArrayLike) -> np.ndarray:
        """
        Converts global indices to local ones.

        Raises:
            KeyError: If an index is neither owned nor a ghost.
        """
        indices = np.asarray(indices, dtype=np.int64)
        r0, r1 = self.local_range
        local = indices - r0
        for i in np.flatnonzero((indices < r0) | (indices >= r1)):
            slot = self._ghost_to_slot.get(int(indices[i]))
            if slot is None:
                raise KeyError(
                    f"Global index {int(indices[i])} is neither owned nor a ghost."
                )
            local[i] = self.size_local + slot
        return local

    def local_to_global(self, indices: npt.ArrayLike) -> np.ndarray:
        """Converts local indices (owned and ghost) to global ones."""
        indices = np.asarray(indices, dtype=np.int64)
        n = self.size_local
        if indices.size and (indices.min() < 0 or indices.max() >= n + self.num_ghosts):
            raise IndexError("Local index outside the owned and ghost range.")
        r0 = self.local_range[0]
        out = indices + r0
        is_ghost = indices >= n
        out[is_ghost] = self._ghosts[indices[is_ghost] - n]
        return out

    def check_size(self, operation: str, global_size: int) -> None:
        """Raises if the map does not describe ``global_size`` indices."""
        if self.size_global != global_size:
            raise SizeMismatchError(
                operation,
                f"sum of local sizes ({self.size_global}) is not equal to "
                f"global size ({global_size})",
            )

    def __repr__(self) -> str:
        return (
            f"<IndexMap rank {self.rank}/{self.num_processes}, "
            f"range {self.local_range}, {self.num_ghosts} ghosts>"
        )
