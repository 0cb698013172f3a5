# -*- coding: utf-8 -*-
"""
Selection of the vector backend.

A `LinearAlgebraContext` is an immutable value naming a communicator and a
backend; it is passed explicitly to whatever needs to create vectors. The
default backend can be chosen with the ``FECORE_LA_BACKEND`` environment
variable.
"""

import importlib
import os
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Type

from ..common.errors import InvalidArgumentError
from ..common.mpi import comm_world

ENV_BACKEND = "FECORE_LA_BACKEND"
DEFAULT_BACKEND = "numpy"

# Backends are imported on first use so optional libraries stay optional.
BACKENDS = {
    "numpy": ("fecore.la.numpy_vector", "NumpyVector"),
    "petsc": ("fecore.la.petsc_vector", "PETScVector"),
}


@dataclass(frozen=True)
class LinearAlgebraContext:
    """
    Creates vectors of one backend on one communicator.

    Attributes:
        comm: Communicator of global vectors. Defaults to COMM_WORLD.
        backend (str): Name of the backend, one of ``BACKENDS``.
    """

    comm: Any = None
    backend: str = DEFAULT_BACKEND

    def __post_init__(self):
        if self.backend not in BACKENDS:
            raise InvalidArgumentError(
                "LinearAlgebraContext",
                f"unknown backend '{self.backend}', expected one of {sorted(BACKENDS)}",
            )
        if self.comm is None:
            object.__setattr__(self, "comm", comm_world())

    def vector_class(self) -> Type:
        module_name, class_name = BACKENDS[self.backend]
        return getattr(importlib.import_module(module_name), class_name)

    def create_vector(
        self,
        size: Optional[int] = None,
        local_size: Optional[int] = None,
        ghost_indices: Optional[Sequence[int]] = None,
    ):
        """Creates a distributed vector, allocated if ``size`` is given."""
        return self.vector_class()(
            comm=self.comm,
            size=size,
            local_size=local_size,
            ghost_indices=ghost_indices,
        )

    def create_local_vector(self, size: int = 0):
        """Creates a vector holding a full copy on the calling process."""
        return self.vector_class()(size=size, vector_type="local")


def default_context(comm: Optional[Any] = None) -> LinearAlgebraContext:
    """Returns a context for the backend named by ``FECORE_LA_BACKEND``."""
    return LinearAlgebraContext(comm, os.environ.get(ENV_BACKEND, DEFAULT_BACKEND))
