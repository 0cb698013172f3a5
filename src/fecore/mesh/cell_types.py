# -*- coding: utf-8 -*-
"""
Simplex cell types and their pure geometry.

This module holds the reference data of the supported cell types (number of
vertices, topological dimension, facet templates) and the per-cell geometric
quantities the quality metrics are built from. All functions take the vertex
coordinates of one cell as an array of shape ``(num_vertices, gdim)``.
"""

import warnings
from typing import Dict, List

import numpy as np

from ..common.errors import DimensionError, InvalidArgumentError

# --- Constants for magic numbers ---
GEOMETRY_TOLERANCE = 1e-14

CELL_TYPES: Dict[str, Dict] = {
    "interval": {"tdim": 1, "num_vertices": 2, "facets": [[0], [1]]},
    "triangle": {"tdim": 2, "num_vertices": 3, "facets": [[1, 2], [0, 2], [0, 1]]},
    "tetrahedron": {
        "tdim": 3,
        "num_vertices": 4,
        "facets": [[1, 2, 3], [0, 2, 3], [0, 1, 3], [0, 1, 2]],
    },
}

# Edge i of a tetrahedron is opposite to edge 5 - i.
TETRAHEDRON_EDGES = np.array([[2, 3], [1, 3], [1, 2], [0, 3], [0, 2], [0, 1]])


def cell_type_info(cell_type: str) -> Dict:
    try:
        return CELL_TYPES[cell_type]
    except KeyError:
        raise InvalidArgumentError(
            "cell_type_info",
            f"unknown cell type '{cell_type}', expected one of {sorted(CELL_TYPES)}",
        ) from None


def facet_templates(cell_type: str) -> List[List[int]]:
    return cell_type_info(cell_type)["facets"]


def _as_3d(points: np.ndarray) -> np.ndarray:
    points = np.asarray(points, dtype=float)
    if points.shape[1] < 3:
        pad = np.zeros((points.shape[0], 3 - points.shape[1]))
        points = np.hstack([points, pad])
    return points


def simplex_volume(points: np.ndarray) -> float:
    """Length, area or volume of a simplex given by its vertices."""
    p = _as_3d(points)
    n = p.shape[0]
    if n == 2:
        return float(np.linalg.norm(p[1] - p[0]))
    if n == 3:
        return 0.5 * float(np.linalg.norm(np.cross(p[1] - p[0], p[2] - p[0])))
    if n == 4:
        return abs(float(np.dot(p[1] - p[0], np.cross(p[2] - p[0], p[3] - p[0])))) / 6.0
    raise InvalidArgumentError("simplex_volume", f"no simplex with {n} vertices")


def circumradius(points: np.ndarray) -> float:
    """Radius of the circumscribed sphere; 0.0 for a degenerate simplex."""
    p = _as_3d(points)
    n = p.shape[0]
    if n == 2:
        return 0.5 * simplex_volume(p)

    volume = simplex_volume(p)
    if volume < GEOMETRY_TOLERANCE:
        return 0.0

    if n == 3:
        a = np.linalg.norm(p[1] - p[2])
        b = np.linalg.norm(p[0] - p[2])
        c = np.linalg.norm(p[0] - p[1])
        return float(a * b * c / (4.0 * volume))

    # Products of the lengths of opposite edges
    lengths = np.linalg.norm(
        p[TETRAHEDRON_EDGES[:, 1]] - p[TETRAHEDRON_EDGES[:, 0]], axis=1
    )
    la = lengths[0] * lengths[5]
    lb = lengths[1] * lengths[4]
    lc = lengths[2] * lengths[3]
    s = (la + lb + lc) * (la + lb - lc) * (la - lb + lc) * (-la + lb + lc)
    return float(np.sqrt(max(s, 0.0)) / (24.0 * volume))


def inradius(points: np.ndarray) -> float:
    """Radius of the inscribed sphere; 0.0 for a degenerate simplex."""
    p = _as_3d(points)
    n = p.shape[0]
    if n == 2:
        return 0.5 * simplex_volume(p)

    volume = simplex_volume(p)
    if volume < GEOMETRY_TOLERANCE:
        return 0.0

    facets = CELL_TYPES["triangle" if n == 3 else "tetrahedron"]["facets"]
    boundary = sum(simplex_volume(p[f]) for f in facets)
    return float(n - 1) * volume / boundary


def radius_ratio(points: np.ndarray) -> float:
    """
    Normalised inradius-to-circumradius ratio ``tdim * r / R``.

    The ratio is 1 for the regular simplex and tends to 0 as the cell
    degenerates. Degenerate cells return 0.0 with a warning.
    """
    r_out = circumradius(points)
    if r_out < GEOMETRY_TOLERANCE:
        warnings.warn("Degenerate cell detected: radius ratio is zero.", RuntimeWarning)
        return 0.0
    tdim = np.asarray(points).shape[0] - 1
    return tdim * inradius(points) / r_out


def dihedral_angles(points: np.ndarray) -> np.ndarray:
    """
    Computes the six dihedral angles (in radians) of a tetrahedron.

    Angle ``i`` is the angle between the two faces meeting at edge
    ``TETRAHEDRON_EDGES[i]``.

    Raises:
        DimensionError: If the points do not describe a tetrahedron.
    """
    points = np.asarray(points, dtype=float)
    if points.shape[0] != 4 or points.shape[1] != 3:
        raise DimensionError(
            "dihedral_angles", "only works for 3D cells (tetrahedra in 3D space)"
        )

    angles = np.empty(6)
    for i in range(6):
        i0, i1 = TETRAHEDRON_EDGES[i]
        i2, i3 = TETRAHEDRON_EDGES[5 - i]
        p0 = points[i0]
        v1 = points[i1] - p0
        v2 = points[i2] - p0
        v3 = points[i3] - p0
        v1 /= np.linalg.norm(v1)
        v2 /= np.linalg.norm(v2)
        v3 /= np.linalg.norm(v3)
        cphi = (np.dot(v2, v3) - np.dot(v1, v2) * np.dot(v1, v3)) / (
            np.linalg.norm(np.cross(v1, v2)) * np.linalg.norm(np.cross(v1, v3))
        )
        angles[i] = np.arccos(np.clip(cphi, -1.0, 1.0))
    return angles
