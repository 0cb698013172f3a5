# -*- coding: utf-8 -*-
"""
Exception types raised by fecore.

Every error carries the name of the failing operation and the violated
condition, e.g. ``"NumpyVector.set_local: length of values array (3) is not
equal to local vector size (4)"``. The classes also derive from the builtin
exception a caller would naturally catch (``ValueError``, ``TypeError``,
``IndexError``), so code written against plain builtins keeps working.
"""


class FECoreError(RuntimeError):
    """Base class for all fecore errors."""

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"{operation}: {reason}")


class PreconditionError(FECoreError):
    """An operation was called in a state or with data it does not accept."""


class SizeMismatchError(PreconditionError, ValueError):
    """Lengths of arrays or vectors do not match."""


class UninitializedError(PreconditionError):
    """The underlying storage has not been allocated."""


class AliasedResizeError(PreconditionError):
    """Resize requested while another handle shares the storage."""


class GhostIndexError(PreconditionError, IndexError):
    """Ghost indices given where they are not allowed, or an unknown index."""


class DimensionError(PreconditionError, ValueError):
    """A geometric query was made on a cell of the wrong dimension."""


class InvalidArgumentError(FECoreError, ValueError):
    """Unknown mode, norm type, backend or option string."""


class TypeMismatchError(FECoreError, TypeError):
    """Two objects that must share a concrete type do not."""


class BackendError(FECoreError):
    """A call into the native linear algebra backend failed."""
