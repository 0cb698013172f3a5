# -*- coding: utf-8 -*-
"""
Distributed vectors with interchangeable storage backends.

Key modules:
- generic_vector: The backend-independent vector interface.
- numpy_vector:   The default numpy/mpi4py backend.
- petsc_vector:   A PETSc backend (requires petsc4py).
- context:        Backend selection.
"""

from .generic_vector import GenericVector, Ownership, VectorStorage
from .numpy_vector import NumpyVector
from .petsc_vector import PETScVector
from .context import LinearAlgebraContext, default_context

__all__ = [
    "GenericVector",
    "Ownership",
    "VectorStorage",
    "NumpyVector",
    "PETScVector",
    "LinearAlgebraContext",
    "default_context",
]
