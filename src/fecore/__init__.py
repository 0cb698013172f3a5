"""
fecore

Distributed mesh quality metrics and a backend-independent distributed vector
for finite element solvers.
"""

from . import common
from . import la
from . import mesh

__all__ = [
    "common",
    "la",
    "mesh",
]
