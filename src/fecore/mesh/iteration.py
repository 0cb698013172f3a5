# -*- coding: utf-8 -*-
"""
Iteration over mesh entities.

An `EntityRange` is a lazy, restartable sequence of the entities of one
topological dimension. Its iteration state lives in an explicit
`EntityCursor` (a position in the mesh's entity arrays) that the caller owns
and can inspect; Python iteration over a range simply drives a fresh cursor.

Entities are yielded in local index order, so iteration is deterministic and
repeats identically across calls. Owned entities come first; ghost entities
(replicated from other processes) follow and can be skipped.

Entity handles (`MeshEntity`, `Vertex`, `Cell`) are non-owning views: they
hold a weak reference to their mesh and only read from it.
"""

import weakref
from dataclasses import dataclass
from typing import Iterator

import numpy as np

from . import cell_types
from .mesh import Mesh


class MeshEntity:
    """
    A view of one entity of a mesh.

    Attributes:
        dim (int): The topological dimension of the entity.
        index (int): The process-local index of the entity.
    """

    def __init__(self, mesh: Mesh, dim: int, index: int):
        num = mesh.num_entities(dim)
        if not 0 <= index < num:
            raise IndexError(
                f"Entity index {index} outside [0, {num}) for dimension {dim}."
            )
        self._mesh_ref = weakref.ref(mesh)
        self.dim = dim
        self.index = int(index)

    @property
    def mesh(self) -> Mesh:
        mesh = self._mesh_ref()
        if mesh is None:
            raise RuntimeError("The mesh of this entity no longer exists.")
        return mesh

    def entities(self, dim: int) -> np.ndarray:
        """Local indices of the incident entities of dimension ``dim``."""
        topology = self.mesh.topology
        if dim == self.dim:
            return np.array([self.index])
        if dim == 0:
            return topology.connectivity(self.dim, 0)[self.index]
        return topology.connectivity(self.dim, dim)[self.index]

    @property
    def global_index(self) -> int:
        """Global index for vertices and cells, -1 for other dimensions."""
        imap = self.mesh.topology.index_map(self.dim)
        if imap is None:
            return -1
        return int(imap.local_to_global([self.index])[0])

    @property
    def is_ghost(self) -> bool:
        return self.index >= self.mesh.topology.ghost_offset(self.dim)

    def midpoint(self) -> np.ndarray:
        return self.mesh.geometry.x[self.entities(0)].mean(axis=0)

    def __eq__(self, other) -> bool:
        return (
            isinstance(other, MeshEntity)
            and self._mesh_ref() is other._mesh_ref()
            and self.dim == other.dim
            and self.index == other.index
        )

    def __hash__(self) -> int:
        return hash((id(self._mesh_ref()), self.dim, self.index))

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.index} of dimension {self.dim}>"


class Vertex(MeshEntity):
    def __init__(self, mesh: Mesh, index: int):
        super().__init__(mesh, 0, index)

    def point(self) -> np.ndarray:
        return self.mesh.geometry.x[self.index].copy()


class Cell(MeshEntity):
    """A view of one cell, with its geometric quantities."""

    def __init__(self, mesh: Mesh, index: int):
        super().__init__(mesh, mesh.topology.dim, index)

    def points(self) -> np.ndarray:
        """Vertex coordinates of the cell, shape ``(num_vertices, gdim)``."""
        return self.mesh.geometry.x[self.entities(0)]

    def volume(self) -> float:
        return cell_types.simplex_volume(self.points())

    def circumradius(self) -> float:
        return cell_types.circumradius(self.points())

    def inradius(self) -> float:
        return cell_types.inradius(self.points())

    def radius_ratio(self) -> float:
        return cell_types.radius_ratio(self.points())


def _make_entity(mesh: Mesh, dim: int, index: int) -> MeshEntity:
    if dim == mesh.topology.dim:
        return Cell(mesh, index)
    if dim == 0:
        return Vertex(mesh, index)
    return MeshEntity(mesh, dim, index)


@dataclass
class EntityCursor:
    """
    Explicit iteration state over the entities of one dimension.

    Attributes:
        mesh (Mesh): The mesh being traversed.
        dim (int): The topological dimension of the entities.
        position (int): Local index of the current entity.
        end (int): One past the last local index to visit.
    """

    mesh: Mesh
    dim: int
    position: int
    end: int

    @property
    def done(self) -> bool:
        return self.position >= self.end

    def entity(self) -> MeshEntity:
        if self.done:
            raise IndexError("Cursor is past the end of its range.")
        return _make_entity(self.mesh, self.dim, self.position)

    def advance(self) -> None:
        if self.done:
            raise IndexError("Cannot advance a cursor past the end of its range.")
        self.position += 1


class EntityRange:
    """
    A lazy, restartable range over the entities of one dimension.

    Args:
        mesh: The mesh to iterate over.
        dim: The topological dimension of the entities.
        include_ghosts: If False, stop before the first ghost entity.
    """

    def __init__(self, mesh: Mesh, dim: int, include_ghosts: bool = True):
        if not 0 <= dim <= mesh.topology.dim:
            raise ValueError(
                f"Dimension {dim} outside [0, {mesh.topology.dim}] for this mesh."
            )
        self.mesh = mesh
        self.dim = dim
        self.include_ghosts = include_ghosts

    @property
    def end(self) -> int:
        topology = self.mesh.topology
        if self.include_ghosts:
            return topology.num_entities(self.dim)
        return topology.ghost_offset(self.dim)

    def cursor(self) -> EntityCursor:
        """Returns a new cursor at the start of the range."""
        return EntityCursor(self.mesh, self.dim, 0, self.end)

    def indices(self) -> np.ndarray:
        return np.arange(self.end)

    def __iter__(self) -> Iterator[MeshEntity]:
        cursor = self.cursor()
        while not cursor.done:
            yield cursor.entity()
            cursor.advance()

    def __len__(self) -> int:
        return self.end


def entities(mesh: Mesh, dim: int, include_ghosts: bool = True) -> EntityRange:
    return EntityRange(mesh, dim, include_ghosts)


def cells(mesh: Mesh, include_ghosts: bool = True) -> EntityRange:
    return EntityRange(mesh, mesh.topology.dim, include_ghosts)


def vertices(mesh: Mesh, include_ghosts: bool = True) -> EntityRange:
    return EntityRange(mesh, 0, include_ghosts)
