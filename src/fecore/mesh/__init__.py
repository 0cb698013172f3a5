# -*- coding: utf-8 -*-
"""
This package provides the distributed mesh: its topology and geometry,
iteration over its entities, partitioning over processes, and cell quality
metrics reduced over all processes.

Key modules:
- cell_types:    Simplex reference data and per-cell geometry.
- mesh:          Topology, Geometry and Mesh, with unit mesh factories.
- iteration:     Entity ranges, cursors and entity views.
- mesh_function: Scalar values attached to mesh entities.
- partition:     Functions for partitioning the cells of a mesh.
- distribute:    Halo computation and creation of per-process meshes.
- quality:       Radius ratio and dihedral angle metrics.
- reporting:     Text summaries of quality metrics.
"""

from .mesh import Mesh, Topology, Geometry
from .iteration import (
    MeshEntity,
    Vertex,
    Cell,
    EntityCursor,
    EntityRange,
    entities,
    cells,
    vertices,
)
from .mesh_function import MeshFunction
from .partition import partition_mesh
from .distribute import MeshPartitionManager, distribute_mesh
from .quality import MeshQuality, QualitySummary
from .reporting import format_quality_summary, print_quality_summary

__all__ = [
    "Mesh",
    "Topology",
    "Geometry",
    "MeshEntity",
    "Vertex",
    "Cell",
    "EntityCursor",
    "EntityRange",
    "entities",
    "cells",
    "vertices",
    "MeshFunction",
    "partition_mesh",
    "MeshPartitionManager",
    "distribute_mesh",
    "MeshQuality",
    "QualitySummary",
    "format_quality_summary",
    "print_quality_summary",
]
