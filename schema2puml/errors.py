"""Exceptions raised while building a diagram."""
from __future__ import annotations


class DocumenterError(RuntimeError):
    """Raised when the diagram cannot be produced."""


class ValidationError(DocumenterError, ValueError):
    """Raised when a catalog value is constructed with a missing field."""


class SnapshotError(DocumenterError):
    """Raised when a catalog snapshot cannot be read or fails validation."""
