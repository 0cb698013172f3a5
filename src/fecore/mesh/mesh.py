# -*- coding: utf-8 -*-
"""
Core data structures for distributed simplex meshes.

This module defines the `Topology`, `Geometry` and `Mesh` classes. A `Mesh`
is the portion of a (possibly distributed) mesh held by one process: the cells
it owns, followed by any ghost cells replicated from neighbouring processes
for halo exchange.

Key Features:
- Storage of cell-vertex connectivity and vertex coordinates with
  process-local numbering.
- Global numbering of cells and vertices through `IndexMap` objects.
- On-demand creation of edges and facets and of the incidence relations
  between entities of different dimensions.
- Factories for unit interval, square and cube meshes, distributed over a
  communicator when it holds more than one process.
"""

from itertools import combinations
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import numpy.typing as npt

from ..common.index_map import IndexMap
from ..common.mpi import comm_self, comm_world
from .cell_types import cell_type_info, facet_templates


class Topology:
    """
    Incidence relations between the entities of a mesh.

    Cells (dimension ``tdim``) and vertices (dimension 0) always exist.
    Entities of intermediate dimension (edges, and faces of tetrahedra) are
    created on request by `create_entities`, numbered in the order they are
    first met when looping over the cells, so the numbering is deterministic.

    Attributes:
        dim (int): The topological dimension of the cells.
        cell_type (str): The name of the cell type.
    """

    def __init__(
        self,
        cell_type: str,
        cells: npt.ArrayLike,
        num_vertices: int,
        cell_index_map: Optional[IndexMap] = None,
        vertex_index_map: Optional[IndexMap] = None,
    ):
        info = cell_type_info(cell_type)
        cells = np.asarray(cells, dtype=np.int64).reshape(-1, info["num_vertices"])

        if cells.size and (cells.min() < 0 or cells.max() >= num_vertices):
            raise ValueError(
                "Cell connectivity references vertices outside "
                f"[0, {num_vertices})."
            )

        self.dim: int = info["tdim"]
        self.cell_type = cell_type
        self._num_vertices = int(num_vertices)
        self._index_maps: Dict[int, IndexMap] = {
            self.dim: cell_index_map or IndexMap.local(cells.shape[0]),
            0: vertex_index_map or IndexMap.local(num_vertices),
        }
        self._connectivity: Dict[Tuple[int, int], np.ndarray] = {(self.dim, 0): cells}
        self._cell_neighbors: np.ndarray = np.array([])

        for d, imap in self._index_maps.items():
            n = imap.size_local + imap.num_ghosts
            if n != self.num_entities(d):
                raise ValueError(
                    f"Index map for dimension {d} describes {n} local entities, "
                    f"but the topology holds {self.num_entities(d)}."
                )

    def num_entities(self, dim: int) -> int:
        """Returns the number of local (owned and ghost) entities of ``dim``."""
        if dim == 0:
            return self._num_vertices
        if (dim, 0) not in self._connectivity:
            self.create_entities(dim)
        return self._connectivity[(dim, 0)].shape[0]

    def index_map(self, dim: int) -> Optional[IndexMap]:
        """Index map of vertices or cells; ``None`` for other dimensions."""
        return self._index_maps.get(dim)

    def ghost_offset(self, dim: int) -> int:
        """
        Returns the first local index of a ghost entity of ``dim``.

        Entities of intermediate dimension carry no ownership, so all of
        them are reported as regular.
        """
        imap = self._index_maps.get(dim)
        if imap is None:
            return self.num_entities(dim)
        return imap.size_local

    def connectivity(self, d0: int, d1: int) -> np.ndarray:
        """
        Returns the incidence relation ``d0 -> d1`` as a 2D array.

        Supported are ``(d, 0)`` for every ``d``, ``(tdim, d)`` for every
        ``d`` and ``(d, d)`` (identity).
        """
        if d0 == d1:
            return np.arange(self.num_entities(d0)).reshape(-1, 1)
        if d1 == 0 and d0 == 0:
            return np.arange(self._num_vertices).reshape(-1, 1)
        if (d0, d1) not in self._connectivity:
            if d1 == 0 or d0 == self.dim:
                self.create_entities(d1 if d0 == self.dim else d0)
            else:
                raise NotImplementedError(
                    f"Connectivity {d0} -> {d1} is not supported."
                )
        return self._connectivity[(d0, d1)]

    def create_entities(self, dim: int) -> int:
        """
        Creates the entities of dimension ``dim`` and their connectivity.

        Returns:
            The number of entities of that dimension.
        """
        if dim in (0, self.dim):
            return self.num_entities(dim)
        if not 0 < dim < self.dim:
            raise ValueError(f"No entities of dimension {dim} in a {self.dim}D mesh.")
        if (dim, 0) in self._connectivity:
            return self._connectivity[(dim, 0)].shape[0]

        cells = self._connectivity[(self.dim, 0)]
        local_templates = list(combinations(range(cells.shape[1]), dim + 1))

        entity_map: Dict[Tuple[int, ...], int] = {}
        cell_entities = np.zeros((cells.shape[0], len(local_templates)), dtype=np.int64)
        for ci, conn in enumerate(cells):
            for li, template in enumerate(local_templates):
                key = tuple(sorted(int(conn[v]) for v in template))
                cell_entities[ci, li] = entity_map.setdefault(key, len(entity_map))

        entity_vertices = np.array(list(entity_map), dtype=np.int64).reshape(-1, dim + 1)
        self._connectivity[(dim, 0)] = entity_vertices
        self._connectivity[(self.dim, dim)] = cell_entities
        return entity_vertices.shape[0]

    def cell_neighbors(self) -> np.ndarray:
        """
        Indices of the cells across each facet of each cell.

        A value of -1 indicates a boundary facet (or a facet whose
        neighbour lives on another process and is not ghosted here).

        Returns:
            An array of shape ``(num_cells, num_facets_per_cell)``.
        """
        if self._cell_neighbors.size > 0 or self.num_entities(self.dim) == 0:
            return self._cell_neighbors

        cells = self._connectivity[(self.dim, 0)]
        templates = facet_templates(self.cell_type)
        neighbors = -np.ones((cells.shape[0], len(templates)), dtype=np.int64)
        face_map: Dict[Tuple[int, ...], List[int]] = {}

        for ci, conn in enumerate(cells):
            for template in templates:
                key = tuple(sorted(int(conn[v]) for v in template))
                face_map.setdefault(key, []).append(ci)

        for ci, conn in enumerate(cells):
            for fi, template in enumerate(templates):
                key = tuple(sorted(int(conn[v]) for v in template))
                elems = face_map[key]
                if len(elems) == 2:
                    neighbors[ci, fi] = elems[0] if elems[1] == ci else elems[1]

        self._cell_neighbors = neighbors
        return neighbors


class Geometry:
    """
    Vertex coordinates of a mesh.

    Attributes:
        x (np.ndarray): Coordinates, shape ``(num_vertices, gdim)``.
    """

    def __init__(self, x: npt.ArrayLike):
        x = np.asarray(x, dtype=float)
        if x.ndim == 1:
            x = x.reshape(-1, 1)
        self.x = x

    @property
    def gdim(self) -> int:
        return self.x.shape[1]


class Mesh:
    """
    The part of a simplex mesh held by one process.

    Attributes:
        comm: The communicator the mesh is distributed over.
        topology (Topology): Entities and their incidence relations.
        geometry (Geometry): Vertex coordinates.
        ghost_mode (str): How ghost cells were chosen when distributing.
        original_cell_index (np.ndarray): For each local cell, its index in
            the mesh this one was created from.
        original_vertex_index (np.ndarray): For each local vertex, its index
            in the mesh this one was created from.
        send_map (Dict[int, List[int]]): Owned local cells that are ghosts on
            each neighbouring process.
        recv_map (Dict[int, List[int]]): Ghost local cells received from each
            neighbouring process.
    """

    def __init__(
        self,
        comm: Any,
        cell_type: str,
        cells: npt.ArrayLike,
        x: npt.ArrayLike,
        cell_index_map: Optional[IndexMap] = None,
        vertex_index_map: Optional[IndexMap] = None,
        ghost_mode: str = "none",
    ):
        self.comm = comm if comm is not None else comm_world()
        self.geometry = Geometry(x)
        self.topology = Topology(
            cell_type,
            cells,
            self.geometry.x.shape[0],
            cell_index_map=cell_index_map,
            vertex_index_map=vertex_index_map,
        )
        if self.geometry.gdim < self.topology.dim:
            raise ValueError(
                f"Geometric dimension {self.geometry.gdim} is smaller than "
                f"topological dimension {self.topology.dim}."
            )

        self.ghost_mode = ghost_mode
        self.original_cell_index = np.arange(self.num_cells())
        self.original_vertex_index = np.arange(self.num_vertices())
        self.send_map: Dict[int, List[int]] = {}
        self.recv_map: Dict[int, List[int]] = {}

    @property
    def cell_type(self) -> str:
        return self.topology.cell_type

    @property
    def cells(self) -> np.ndarray:
        """Cell-vertex connectivity with local vertex indices."""
        return self.topology.connectivity(self.topology.dim, 0)

    def num_cells(self) -> int:
        return self.topology.num_entities(self.topology.dim)

    def num_vertices(self) -> int:
        return self.topology.num_entities(0)

    def num_entities(self, dim: int) -> int:
        return self.topology.num_entities(dim)

    def num_owned_cells(self) -> int:
        return self.topology.ghost_offset(self.topology.dim)

    def num_ghost_cells(self) -> int:
        return self.num_cells() - self.num_owned_cells()

    def num_global_cells(self) -> int:
        return self.topology.index_map(self.topology.dim).size_global

    def cell_midpoints(self) -> np.ndarray:
        """Computes the centroid of each cell."""
        if self.num_cells() == 0:
            return np.zeros((0, self.geometry.gdim))
        return self.geometry.x[self.cells].mean(axis=1)

    def __repr__(self) -> str:
        return (
            f"<Mesh of topological dimension {self.topology.dim} ({self.cell_type}) "
            f"with {self.num_vertices()} vertices and {self.num_cells()} cells>"
        )

    # =========================================================================
    # Factories
    # =========================================================================

    @classmethod
    def create_unit_interval(
        cls, comm: Any, n: int, partition_method: str = "hierarchical",
        ghost_mode: str = "none",
    ) -> "Mesh":
        """Creates a mesh of ``[0, 1]`` with ``n`` intervals."""
        if n < 1:
            raise ValueError("Number of cells must be positive.")
        x = np.linspace(0.0, 1.0, n + 1).reshape(-1, 1)
        cells = np.column_stack([np.arange(n), np.arange(1, n + 1)])
        return cls._build(comm, "interval", cells, x, partition_method, ghost_mode)

    @classmethod
    def create_unit_square(
        cls, comm: Any, nx: int, ny: int, partition_method: str = "hierarchical",
        ghost_mode: str = "none",
    ) -> "Mesh":
        """
        Creates a triangle mesh of the unit square.

        Each of the ``nx * ny`` squares is split into two triangles along the
        diagonal from its lower-left to its upper-right corner.
        """
        if nx < 1 or ny < 1:
            raise ValueError("Number of cells must be positive.")

        num_nodes_x = nx + 1
        xs = np.linspace(0.0, 1.0, nx + 1)
        ys = np.linspace(0.0, 1.0, ny + 1)
        x = np.array([[xi, yj] for yj in ys for xi in xs])

        cells = []
        for j in range(ny):
            for i in range(nx):
                v0 = j * num_nodes_x + i
                v1 = v0 + 1
                v2 = v0 + num_nodes_x
                v3 = v1 + num_nodes_x
                cells.append([v0, v1, v3])
                cells.append([v0, v2, v3])
        return cls._build(comm, "triangle", cells, x, partition_method, ghost_mode)

    @classmethod
    def create_unit_cube(
        cls, comm: Any, nx: int, ny: int, nz: int,
        partition_method: str = "hierarchical", ghost_mode: str = "none",
    ) -> "Mesh":
        """
        Creates a tetrahedral mesh of the unit cube.

        Each of the ``nx * ny * nz`` cubes is split into six tetrahedra
        sharing the main diagonal of the cube.
        """
        if nx < 1 or ny < 1 or nz < 1:
            raise ValueError("Number of cells must be positive.")

        xs = np.linspace(0.0, 1.0, nx + 1)
        ys = np.linspace(0.0, 1.0, ny + 1)
        zs = np.linspace(0.0, 1.0, nz + 1)
        x = np.array([[xi, yj, zk] for zk in zs for yj in ys for xi in xs])

        sx, sy = nx + 1, (nx + 1) * (ny + 1)
        cells = []
        for k in range(nz):
            for j in range(ny):
                for i in range(nx):
                    v0 = k * sy + j * sx + i
                    v1 = v0 + 1
                    v2 = v0 + sx
                    v3 = v1 + sx
                    v4 = v0 + sy
                    v5 = v1 + sy
                    v6 = v2 + sy
                    v7 = v3 + sy
                    cells.extend(
                        [
                            [v0, v1, v3, v7],
                            [v0, v1, v5, v7],
                            [v0, v4, v5, v7],
                            [v0, v2, v3, v7],
                            [v0, v4, v6, v7],
                            [v0, v2, v6, v7],
                        ]
                    )
        return cls._build(comm, "tetrahedron", cells, x, partition_method, ghost_mode)

    @classmethod
    def _build(
        cls,
        comm: Any,
        cell_type: str,
        cells: npt.ArrayLike,
        x: npt.ArrayLike,
        partition_method: str,
        ghost_mode: str,
    ) -> "Mesh":
        comm = comm if comm is not None else comm_world()
        if comm.size == 1:
            return cls(comm, cell_type, cells, x)

        from .distribute import distribute_mesh

        serial_mesh = cls(comm_self(), cell_type, cells, x)
        return distribute_mesh(
            serial_mesh, comm, partition_method=partition_method, ghost_mode=ghost_mode
        )
