# -*- coding: utf-8 -*-
"""
Shared infrastructure: error types, MPI helpers and distributed index maps.
"""

from . import mpi
from .errors import (
    FECoreError,
    PreconditionError,
    SizeMismatchError,
    UninitializedError,
    AliasedResizeError,
    GhostIndexError,
    DimensionError,
    InvalidArgumentError,
    TypeMismatchError,
    BackendError,
)
from .index_map import IndexMap

__all__ = [
    "mpi",
    "IndexMap",
    "FECoreError",
    "PreconditionError",
    "SizeMismatchError",
    "UninitializedError",
    "AliasedResizeError",
    "GhostIndexError",
    "DimensionError",
    "InvalidArgumentError",
    "TypeMismatchError",
    "BackendError",
]
