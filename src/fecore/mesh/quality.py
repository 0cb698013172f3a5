# -*- coding: utf-8 -*-
"""
Mesh quality metrics and their distributed reductions.

This module provides the `MeshQuality` class, a stateless collection of
queries computing the shape quality of the cells of a (possibly distributed)
mesh, and the `QualitySummary` data class collecting the global results.

Key Features:
- Radius ratio of simplices (1 for a regular simplex, 0 for a flat one).
- Dihedral angles of tetrahedra.
- Global minimum/maximum and histograms, reduced over the mesh communicator.

All ``*_min_max`` and ``*_histogram_data`` queries are collective: every
process of ``mesh.comm`` must call them together.

Ghost cells are replicated on several processes, so by default they are
skipped (``include_ghosts=False``): each cell is then counted exactly once in
every global reduction. Passing ``include_ghosts=True`` also visits the ghost
cells held by each process.

Classes:
    MeshQuality: Per-cell metrics and their global reductions.
    QualitySummary: Global extrema and histograms of a mesh.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from ..common import mpi
from ..common.errors import DimensionError, InvalidArgumentError
from . import cell_types
from .iteration import Cell, cells
from .mesh import Mesh
from .mesh_function import MeshFunction

# --- Constants for magic numbers ---
RATIO_TOLERANCE = 1e-12
DIHEDRAL_ANGLE_ENTRIES = 6


def _histogram(
    values: np.ndarray, num_bins: int, upper: float, comm
) -> Tuple[np.ndarray, np.ndarray]:
    """Equal-width histogram of ``values`` over ``[0, upper]``, sum-reduced."""
    if num_bins < 1:
        raise InvalidArgumentError(
            "MeshQuality.histogram_data", f"number of bins must be at least 1, got {num_bins}"
        )
    interval = upper / float(num_bins)
    bins = np.arange(num_bins) * interval + interval / 2.0

    counts = np.zeros(num_bins)
    if values.size > 0:
        # Handle special case that the value equals the upper bound
        slots = np.minimum((values / interval).astype(np.int64), num_bins - 1)
        np.add.at(counts, slots, 1.0)

    return bins, mpi.sum_array(comm, counts)


class MeshQuality:
    """
    Computes cell quality metrics of a mesh.

    Every method is a pure query of an already-built mesh; results are
    created fresh on each call.
    """

    @staticmethod
    def _cell_ratios(mesh: Mesh, include_ghosts: bool) -> np.ndarray:
        return np.array(
            [cell.radius_ratio() for cell in cells(mesh, include_ghosts)], dtype=float
        )

    @staticmethod
    def _cell_angles(mesh: Mesh, include_ghosts: bool) -> np.ndarray:
        angles = [MeshQuality.dihedral_angles(cell) for cell in cells(mesh, include_ghosts)]
        if not angles:
            return np.zeros((0, DIHEDRAL_ANGLE_ENTRIES))
        return np.vstack(angles)

    # =========================================================================
    # Radius ratio
    # =========================================================================

    @staticmethod
    def radius_ratios(mesh: Mesh, include_ghosts: bool = False) -> MeshFunction:
        """
        Computes the radius ratio of every cell.

        Returns:
            A cell function holding the ratios. Cells that were not visited
            (ghosts, unless ``include_ghosts``) keep the value 0.0.
        """
        cf = MeshFunction(mesh, mesh.topology.dim, 0.0)
        for cell in cells(mesh, include_ghosts):
            cf[cell] = cell.radius_ratio()
        return cf

    @staticmethod
    def radius_ratio_min_max(
        mesh: Mesh, include_ghosts: bool = False
    ) -> Tuple[float, float]:
        """Returns the global minimum and maximum radius ratio (collective)."""
        ratios = MeshQuality._cell_ratios(mesh, include_ghosts)
        qmin = float(ratios.min()) if ratios.size else float(np.finfo(float).max)
        qmax = float(ratios.max()) if ratios.size else 0.0
        return mpi.global_min(mesh.comm, qmin), mpi.global_max(mesh.comm, qmax)

    @staticmethod
    def radius_ratio_histogram_data(
        mesh: Mesh, num_bins: int = 50, include_ghosts: bool = False
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Computes a histogram of the radius ratios over ``[0, 1]`` (collective).

        Args:
            mesh: The mesh.
            num_bins: Number of equal-width bins.
            include_ghosts: Whether ghost cells are counted too.

        Returns:
            ``(bins, values)``: bin centres and global number of cells per bin.
        """
        ratios = MeshQuality._cell_ratios(mesh, include_ghosts)
        assert ratios.size == 0 or ratios.max() <= 1.0 + RATIO_TOLERANCE
        return _histogram(ratios, num_bins, 1.0, mesh.comm)

    # =========================================================================
    # Dihedral angles
    # =========================================================================

    @staticmethod
    def dihedral_angles(cell: Cell, out: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Computes the six dihedral angles of a tetrahedral cell.

        Args:
            cell: The cell; it must be three-dimensional.
            out: Optional array of length 6 receiving the angles. It is only
                written once all angles have been computed.

        Raises:
            DimensionError: If the cell is not a 3D cell.
        """
        if cell.dim != 3:
            raise DimensionError(
                "MeshQuality.dihedral_angles",
                f"only works for 3D cells, got a cell of dimension {cell.dim}",
            )
        angles = cell_types.dihedral_angles(cell.points())
        if out is not None:
            out[:] = angles
            return out
        return angles

    @staticmethod
    def dihedral_angles_min_max(
        mesh: Mesh, include_ghosts: bool = False
    ) -> Tuple[float, float]:
        """Returns the global minimum and maximum dihedral angle (collective)."""
        angles = MeshQuality._cell_angles(mesh, include_ghosts)
        d_ang_min = float(angles.min()) if angles.size else np.pi + 1.0
        d_ang_max = float(angles.max()) if angles.size else -1.0
        return mpi.global_min(mesh.comm, d_ang_min), mpi.global_max(mesh.comm, d_ang_max)

    @staticmethod
    def dihedral_angles_histogram_data(
        mesh: Mesh, num_bins: int = 50, include_ghosts: bool = False
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Computes a histogram of all dihedral angles over ``[0, pi]`` (collective).

        Each cell contributes its six angles.

        Returns:
            ``(bins, values)``: bin centres and global number of angles per bin.
        """
        angles = MeshQuality._cell_angles(mesh, include_ghosts).ravel()
        assert angles.size == 0 or (angles.min() >= 0.0 and angles.max() <= np.pi)
        return _histogram(angles, num_bins, np.pi, mesh.comm)


@dataclass(frozen=True)
class QualitySummary:
    """
    Global quality metrics of a mesh.

    Instances of this class are created via the `from_mesh` class method.

    Attributes:
        num_cells (int): Global number of cells that were measured.
        radius_ratio_min_max (Tuple[float, float]): Global extrema.
        radius_ratio_histogram (Tuple[np.ndarray, np.ndarray]): Bin centres
            and counts over [0, 1].
        dihedral_angle_min_max (Optional[Tuple[float, float]]): Global
            extrema in radians; None for meshes that are not tetrahedral.
        dihedral_angle_histogram (Optional[Tuple[np.ndarray, np.ndarray]]):
            Bin centres and counts over [0, pi]; None unless tetrahedral.
    """

    num_cells: int
    radius_ratio_min_max: Tuple[float, float]
    radius_ratio_histogram: Tuple[np.ndarray, np.ndarray]
    dihedral_angle_min_max: Optional[Tuple[float, float]] = None
    dihedral_angle_histogram: Optional[Tuple[np.ndarray, np.ndarray]] = None

    @classmethod
    def from_mesh(
        cls, mesh: Mesh, num_bins: int = 10, include_ghosts: bool = False
    ) -> "QualitySummary":
        """Computes all metrics of a mesh (collective)."""
        num_local = len(cells(mesh, include_ghosts))
        num_cells = int(mpi.global_sum(mesh.comm, num_local))

        dihedral_min_max = None
        dihedral_histogram = None
        if mesh.topology.dim == 3:
            dihedral_min_max = MeshQuality.dihedral_angles_min_max(mesh, include_ghosts)
            dihedral_histogram = MeshQuality.dihedral_angles_histogram_data(
                mesh, num_bins, include_ghosts
            )

        return cls(
            num_cells=num_cells,
            radius_ratio_min_max=MeshQuality.radius_ratio_min_max(mesh, include_ghosts),
            radius_ratio_histogram=MeshQuality.radius_ratio_histogram_data(
                mesh, num_bins, include_ghosts
            ),
            dihedral_angle_min_max=dihedral_min_max,
            dihedral_angle_histogram=dihedral_histogram,
        )
