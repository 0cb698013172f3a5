# -*- coding: utf-8 -*-
"""
Distribution of a mesh over processes.

This module provides the `MeshPartitionManager` class, which takes a complete
(serial) mesh and a cell partition, computes the halo (ghost) cells each
partition needs, renumbers cells and vertices so that every process owns a
contiguous block of global indices, and builds the `Mesh` held by each
process.

Ownership rules:
- A cell is owned by the partition it was assigned to.
- A vertex is owned by the lowest partition that owns a cell containing it.
- Global numbers are assigned partition by partition, keeping the original
  relative order inside each partition.
- Locally, owned entities come first (in global order), ghosts follow (in
  global order).
"""

from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import numpy.typing as npt

from ..common.errors import InvalidArgumentError
from ..common.index_map import IndexMap
from ..common.mpi import comm_self
from .mesh import Mesh
from .partition import partition_mesh

GHOST_MODES = ("none", "shared_facet", "shared_vertex")


class MeshPartitionManager:
    """
    Splits a global mesh into the local meshes of each process.

    All methods are class or static methods; the manager keeps no state
    between calls.
    """

    @staticmethod
    def _cell_adjacency(global_mesh: Mesh, ghost_mode: str) -> List[np.ndarray]:
        """
        Neighbouring cells of each cell.

        Cells are adjacent through a shared facet for ``"shared_facet"`` and
        through any shared vertex for ``"shared_vertex"``.
        """
        if ghost_mode == "shared_facet":
            return [
                row[row >= 0] for row in global_mesh.topology.cell_neighbors()
            ]

        conn = global_mesh.cells
        vertex_cells: List[List[int]] = [[] for _ in range(global_mesh.num_vertices())]
        for ci, row in enumerate(conn):
            for v in row:
                vertex_cells[int(v)].append(ci)

        adjacency = []
        for ci, row in enumerate(conn):
            touching = {c for v in row for c in vertex_cells[int(v)]}
            touching.discard(ci)
            adjacency.append(np.array(sorted(touching), dtype=np.int64))
        return adjacency

    @classmethod
    def _find_send_candidates(
        cls,
        global_mesh: Mesh,
        cell_partitions: npt.NDArray[np.int_],
        n_parts: int,
        ghost_mode: str,
    ) -> Dict[int, Dict[int, List[int]]]:
        """
        Finds the owned cells every partition must share with each neighbour.

        A cell is shared with every other partition owning a cell adjacent
        to it (through a facet or a vertex, depending on ``ghost_mode``).

        Returns:
            ``{sender: {receiver: sorted original cell indices}}``.
        """
        send_map: Dict[int, Dict[int, List[int]]] = {p: {} for p in range(n_parts)}
        if ghost_mode == "none" or n_parts <= 1:
            return send_map

        shared: Dict[Tuple[int, int], set] = {}
        adjacency = cls._cell_adjacency(global_mesh, ghost_mode)
        for cell, neighbours in enumerate(adjacency):
            owner = int(cell_partitions[cell])
            for other in np.unique(cell_partitions[neighbours]):
                if other != owner:
                    shared.setdefault((owner, int(other)), set()).add(cell)

        for (sender, receiver) in sorted(shared):
            send_map[sender][receiver] = sorted(shared[(sender, receiver)])
        return send_map

    @staticmethod
    def _compute_halo_indices(
        cell_partitions: npt.NDArray[np.int_],
        n_parts: int,
        global_send_map: Dict[int, Dict[int, List[int]]],
    ) -> Dict[int, Dict[str, Any]]:
        """
        Builds the owned and halo cells of each partition.

        Returns:
            A dictionary keyed by partition ID. Each value holds the
            "owned_cells" and "halo_cells" lists (original cell indices) and
            the "send"/"recv" maps of original cell indices per neighbor.
        """
        halo_data: Dict[int, Dict[str, Any]] = {}
        for rank in range(n_parts):
            recv: Dict[int, List[int]] = {}
            for sender_rank, send_dict in global_send_map.items():
                if rank in send_dict:
                    recv[sender_rank] = send_dict[rank]
            halo_cells = sorted({g for cells in recv.values() for g in cells})
            halo_data[rank] = {
                "owned_cells": np.flatnonzero(cell_partitions == rank).tolist(),
                "halo_cells": halo_cells,
                "send": dict(global_send_map.get(rank, {})),
                "recv": recv,
            }
        return halo_data

    @classmethod
    def compute_halo_indices(
        cls,
        global_mesh: Mesh,
        cell_partitions: npt.NDArray[np.int_],
        ghost_mode: str = "shared_facet",
        n_parts: Optional[int] = None,
    ) -> Dict[int, Dict[str, Any]]:
        """
        Computes the owned and halo cells of every partition.

        Args:
            global_mesh: The complete, unpartitioned mesh.
            cell_partitions: The partition ID of each cell.
            ghost_mode: 'none', 'shared_facet' or 'shared_vertex'.
            n_parts: Number of partitions; inferred from the IDs if None.

        Returns:
            A dictionary keyed by partition ID with the "owned_cells",
            "halo_cells", "send" and "recv" entries (original cell indices).
        """
        cell_partitions = np.asarray(cell_partitions, dtype=np.int64)
        if n_parts is None:
            n_parts = int(cell_partitions.max()) + 1 if cell_partitions.size else 1
        return cls._prepare(global_mesh, cell_partitions, n_parts, ghost_mode)["halo"]

    @staticmethod
    def _compute_vertex_owners(
        global_mesh: Mesh, cell_partitions: npt.NDArray[np.int_], n_parts: int
    ) -> np.ndarray:
        """Owner of each vertex: the lowest partition owning an incident cell."""
        cells = global_mesh.cells
        owners = np.full(global_mesh.num_vertices(), n_parts, dtype=np.int64)
        np.minimum.at(
            owners, cells.ravel(), np.repeat(cell_partitions, cells.shape[1])
        )
        owners[owners == n_parts] = 0
        return owners

    @staticmethod
    def _renumber(owners: np.ndarray, n_parts: int):
        """Contiguous global numbers per owner; returns (new_index, ranges)."""
        order = np.lexsort((np.arange(owners.size), owners))
        new_index = np.empty(owners.size, dtype=np.int64)
        new_index[order] = np.arange(owners.size)
        counts = np.bincount(owners, minlength=n_parts)
        ranges = np.concatenate([[0], np.cumsum(counts)])
        return new_index, ranges

    @classmethod
    def _prepare(
        cls,
        global_mesh: Mesh,
        cell_partitions: npt.NDArray[np.int_],
        n_parts: int,
        ghost_mode: str,
    ) -> Dict[str, Any]:
        if ghost_mode not in GHOST_MODES:
            raise InvalidArgumentError(
                "MeshPartitionManager",
                f"unknown ghost mode '{ghost_mode}', expected one of {GHOST_MODES}",
            )
        cell_partitions = np.asarray(cell_partitions, dtype=np.int64)
        if cell_partitions.shape != (global_mesh.num_cells(),):
            raise ValueError("cell_partitions must hold one partition ID per cell.")
        if cell_partitions.size and (
            cell_partitions.min() < 0 or cell_partitions.max() >= n_parts
        ):
            raise ValueError(f"Partition IDs must lie in [0, {n_parts}).")

        global_send_map = cls._find_send_candidates(
            global_mesh, cell_partitions, n_parts, ghost_mode
        )
        vertex_owners = cls._compute_vertex_owners(global_mesh, cell_partitions, n_parts)
        new_cells, cell_ranges = cls._renumber(cell_partitions, n_parts)
        new_vertices, vertex_ranges = cls._renumber(vertex_owners, n_parts)
        return {
            "ghost_mode": ghost_mode,
            "n_parts": n_parts,
            "halo": cls._compute_halo_indices(cell_partitions, n_parts, global_send_map),
            "vertex_owners": vertex_owners,
            "new_cells": new_cells,
            "cell_ranges": cell_ranges,
            "new_vertices": new_vertices,
            "vertex_ranges": vertex_ranges,
        }

    @staticmethod
    def _extract(
        global_mesh: Mesh, plan: Dict[str, Any], rank: int, comm: Optional[Any]
    ) -> Mesh:
        """Builds the local mesh of one partition from a distribution plan."""
        halo_info = plan["halo"][rank]
        new_cells = plan["new_cells"]
        new_vertices = plan["new_vertices"]

        owned_cells = np.asarray(halo_info["owned_cells"], dtype=np.int64)
        halo_cells = np.asarray(halo_info["halo_cells"], dtype=np.int64)
        halo_cells = halo_cells[np.argsort(new_cells[halo_cells], kind="stable")]
        local_cells = np.concatenate([owned_cells, halo_cells])

        global_conn = global_mesh.cells[local_cells]
        used_vertices = np.unique(global_conn)
        is_owned = plan["vertex_owners"][used_vertices] == rank
        owned_vertices = used_vertices[is_owned]
        ghost_vertices = used_vertices[~is_owned]
        owned_vertices = owned_vertices[np.argsort(new_vertices[owned_vertices], kind="stable")]
        ghost_vertices = ghost_vertices[np.argsort(new_vertices[ghost_vertices], kind="stable")]
        local_vertices = np.concatenate([owned_vertices, ghost_vertices])

        g2l_vertices = np.full(global_mesh.num_vertices(), -1, dtype=np.int64)
        g2l_vertices[local_vertices] = np.arange(local_vertices.size)
        g2l_cells = {int(g): l for l, g in enumerate(local_cells)}

        cell_map = IndexMap(plan["cell_ranges"], rank, new_cells[halo_cells], comm)
        vertex_map = IndexMap(
            plan["vertex_ranges"], rank, new_vertices[ghost_vertices], comm
        )

        local_mesh = Mesh(
            comm if comm is not None else comm_self(),
            global_mesh.cell_type,
            g2l_vertices[global_conn],
            global_mesh.geometry.x[local_vertices],
            cell_index_map=cell_map,
            vertex_index_map=vertex_map,
            ghost_mode=plan["ghost_mode"],
        )
        local_mesh.original_cell_index = local_cells
        local_mesh.original_vertex_index = local_vertices
        local_mesh.send_map = {
            r: [g2l_cells[g] for g in cells] for r, cells in halo_info["send"].items()
        }
        local_mesh.recv_map = {
            r: [g2l_cells[g] for g in cells] for r, cells in halo_info["recv"].items()
        }
        return local_mesh

    @classmethod
    def create_local_mesh(
        cls,
        global_mesh: Mesh,
        cell_partitions: npt.NDArray[np.int_],
        rank: int,
        comm: Optional[Any] = None,
        n_parts: Optional[int] = None,
        ghost_mode: str = "none",
    ) -> Mesh:
        """
        Creates the local mesh of partition ``rank``.

        Args:
            global_mesh: The complete, unpartitioned mesh.
            cell_partitions: The partition ID of each cell.
            rank: The partition to extract.
            comm: Communicator of the resulting mesh. If None, the index
                maps describe the partition without being attached to a
                communicator and the mesh uses COMM_SELF.
            n_parts: Number of partitions; inferred from the IDs if None.
            ghost_mode: 'none', 'shared_facet' or 'shared_vertex'.
        """
        cell_partitions = np.asarray(cell_partitions, dtype=np.int64)
        if n_parts is None:
            n_parts = int(cell_partitions.max()) + 1 if cell_partitions.size else 1
        plan = cls._prepare(global_mesh, cell_partitions, n_parts, ghost_mode)
        return cls._extract(global_mesh, plan, rank, comm)

    @classmethod
    def create_local_meshes(
        cls,
        global_mesh: Mesh,
        n_parts: Optional[int] = None,
        cell_partitions: Optional[npt.NDArray[np.int_]] = None,
        partition_method: str = "hierarchical",
        ghost_mode: str = "shared_facet",
    ) -> List[Mesh]:
        """
        Partitions a global mesh and creates the local mesh of every partition.

        This simulates a distributed run inside one process; ranks that own
        no cells are skipped.

        Args:
            global_mesh: The complete, unpartitioned mesh.
            n_parts: The desired number of partitions. Required if
                `cell_partitions` is not provided.
            cell_partitions: An optional array specifying the partition ID
                for each cell. If provided, `n_parts` is inferred.
            partition_method: The algorithm to use for partitioning if needed.
            ghost_mode: How halo cells are chosen.

        Returns:
            A list of local meshes, one for each non-empty partition.
        """
        if cell_partitions is None:
            if n_parts is None or n_parts <= 0:
                raise ValueError(
                    "n_parts must be a positive integer or cell_partitions must be provided."
                )
            cell_partitions = partition_mesh(global_mesh, n_parts, method=partition_method)
        else:
            cell_partitions = np.asarray(cell_partitions, dtype=np.int64)
            n_parts = int(cell_partitions.max()) + 1 if cell_partitions.size > 0 else 0

        if n_parts == 0:
            return []

        plan = cls._prepare(global_mesh, cell_partitions, n_parts, ghost_mode)
        return [
            cls._extract(global_mesh, plan, rank, None)
            for rank in range(n_parts)
            if plan["halo"][rank]["owned_cells"]
        ]


def distribute_mesh(
    global_mesh: Mesh,
    comm: Any,
    partition_method: str = "hierarchical",
    ghost_mode: str = "none",
) -> Mesh:
    """
    Distributes a mesh that every process holds in full.

    Each process partitions the mesh identically into ``comm.size`` parts and
    keeps its own part, so no communication is needed.

    Returns:
        The local mesh of the calling process.
    """
    cell_partitions = partition_mesh(global_mesh, comm.size, method=partition_method)
    plan = MeshPartitionManager._prepare(
        global_mesh, cell_partitions, comm.size, ghost_mode
    )
    return MeshPartitionManager._extract(global_mesh, plan, comm.rank, comm)
