# -*- coding: utf-8 -*-
"""
Cell partitioning.

The functions here assign every cell of a mesh to one of ``n_parts``
subdomains. Partitioning is deterministic: every process that partitions the
same mesh with the same arguments obtains the same result, which lets
`distribute_mesh` compute the partition redundantly without communication.

Methods
-------
``"hierarchical"``
    Recursive coordinate bisection of the cell midpoints. Each step cuts the
    longest extent of the bounding box so that the two halves carry cell
    weight in proportion to the number of parts each will hold.
``"metis"``
    Graph partitioning of the facet adjacency through the optional ``metis``
    binding.
"""

from __future__ import annotations

import warnings
from typing import List, Optional, TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from .mesh import Mesh

try:
    import metis
except ImportError:
    metis = None


def partition_mesh(
    mesh: Mesh,
    n_parts: int,
    method: str = "hierarchical",
    cell_weights: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Assigns each cell of ``mesh`` to one of ``n_parts`` subdomains.

    Args:
        mesh: The mesh to partition.
        n_parts: The number of subdomains.
        method: 'hierarchical' or 'metis'.
        cell_weights: Optional non-negative weight of each cell.

    Returns:
        The subdomain ID of each cell.
    """
    if n_parts <= 1:
        return np.zeros(mesh.num_cells(), dtype=int)

    if method == "hierarchical":
        return _partition_with_hierarchical(mesh, n_parts, cell_weights)
    if method == "metis":
        return _partition_with_metis(mesh, n_parts, cell_weights)
    raise NotImplementedError(f"Partition method '{method}' not implemented")


def _facet_adjacency(mesh: Mesh) -> List[List[int]]:
    """Sorted neighbour lists of the cells, through shared facets."""
    return [
        sorted({int(nb) for nb in row if nb not in (-1, ci)})
        for ci, row in enumerate(mesh.topology.cell_neighbors())
    ]


def _partition_with_metis(
    mesh: Mesh, n_parts: int, cell_weights: Optional[np.ndarray]
) -> np.ndarray:
    if metis is None:
        raise ImportError("METIS python binding not available")

    node_weights = None
    if cell_weights is not None:
        node_weights = np.asarray(cell_weights).astype(int).tolist()
    try:
        graph = metis.adjlist_to_metis(_facet_adjacency(mesh), nodew=node_weights)
        _, parts = metis.part_graph(graph, nparts=n_parts, recursive=True)
    except Exception as ex:
        raise RuntimeError(f"METIS partitioning failed: {ex}") from ex
    return np.array(parts, dtype=int)


def _partition_with_hierarchical(
    mesh: Mesh, n_parts: int, cell_weights: Optional[np.ndarray]
) -> np.ndarray:
    num_cells = mesh.num_cells()
    if n_parts > num_cells:
        warnings.warn(
            f"Requested {n_parts} partitions for a mesh of {num_cells} cells; "
            "some partitions will be empty."
        )

    if cell_weights is None:
        weights = np.ones(num_cells)
    else:
        weights = np.asarray(cell_weights, dtype=float)

    parts = np.zeros(num_cells, dtype=int)
    _bisect(np.arange(num_cells), 0, n_parts, mesh.cell_midpoints(), weights, parts)
    return parts


def _bisect(
    cells: np.ndarray,
    first_part: int,
    n_parts: int,
    midpoints: np.ndarray,
    weights: np.ndarray,
    parts: np.ndarray,
) -> None:
    """Splits ``cells`` over the parts ``first_part .. first_part + n_parts - 1``."""
    if n_parts == 1 or cells.size == 0:
        parts[cells] = first_part
        return

    n_left = n_parts // 2
    pts = midpoints[cells]
    axis = int(np.argmax(pts.max(axis=0) - pts.min(axis=0)))
    # Stable sort: ties keep the cell order, so the result is reproducible.
    ordered = cells[np.argsort(pts[:, axis], kind="stable")]

    cum_w = np.cumsum(weights[ordered])
    if cum_w[-1] > 0:
        split = int(np.searchsorted(cum_w, cum_w[-1] * n_left / n_parts, side="right"))
    else:
        split = ordered.size * n_left // n_parts

    # Leave at least one cell for every part while cells last
    lo = min(n_left, ordered.size)
    hi = max(ordered.size - (n_parts - n_left), lo)
    split = min(max(split, lo), hi)

    _bisect(ordered[:split], first_part, n_left, midpoints, weights, parts)
    _bisect(ordered[split:], first_part + n_left, n_parts - n_left, midpoints, weights, parts)


def print_partition_summary(parts: np.ndarray) -> None:
    """Prints the number of cells of each partition and the load imbalance."""
    print("--- Partition Summary ---")
    if parts.size == 0:
        print("No partitions found.")
        return

    counts = np.bincount(parts)
    print(f"Number of partitions: {counts.size}")
    for p, count in enumerate(counts):
        print(f"  Partition {p}: {count} cells ({100.0 * count / parts.size:.1f}%)")
    print(f"Load imbalance (max/mean): {counts.max() / counts.mean():.3f}")
