# -*- coding: utf-8 -*-
"""
Scalar fields indexed by mesh entities.
"""

from typing import Union

import numpy as np

from .iteration import MeshEntity
from .mesh import Mesh


class MeshFunction:
    """
    One scalar value per local entity of a given dimension.

    Attributes:
        dim (int): The topological dimension of the entities.
        values (np.ndarray): The values, indexed by local entity index.
    """

    def __init__(self, mesh: Mesh, dim: int, value: float = 0.0):
        self.mesh = mesh
        self.dim = dim
        self.values = np.full(mesh.num_entities(dim), float(value))

    def _index(self, key: Union[int, MeshEntity]) -> int:
        if isinstance(key, MeshEntity):
            if key.dim != self.dim:
                raise ValueError(
                    f"Entity of dimension {key.dim} used on a MeshFunction "
                    f"of dimension {self.dim}."
                )
            return key.index
        return int(key)

    def __getitem__(self, key: Union[int, MeshEntity]) -> float:
        return float(self.values[self._index(key)])

    def __setitem__(self, key: Union[int, MeshEntity], value: float) -> None:
        self.values[self._index(key)] = value

    def __len__(self) -> int:
        return self.values.size

    def __repr__(self) -> str:
        return f"<MeshFunction of dimension {self.dim} with {len(self)} values>"
