"""Custom exception types for the mesh fairing engine."""

from __future__ import annotations

from typing import Any


class FairingError(Exception):
    """Base class for domain-specific errors."""


class InvalidEdgeIndexError(FairingError):
    """Raised when attempting to access an edge with an invalid index."""

    def __init__(self, index: int, message: str | None = None) -> None:
        if message is None:
            message = (
                f"Edge index {index} is invalid. "
                "Edge IDs are 1-based; use negative values only for orientation."
            )
        super().__init__(message)
        self.index = index


class InvalidParameterError(FairingError):
    """Raised when a fairing request is malformed (continuity, region, names)."""

    def __init__(self, message: str, *, parameter: str | None = None, value: Any = None):
        super().__init__(message)
        self.parameter = parameter
        self.value = value


class UndefinedWeightError(InvalidParameterError):
    """Raised when a weight in the fairing stencil is undefined or non-finite."""

    def __init__(
        self,
        message: str,
        *,
        vertex_index: int | None = None,
        halfedge: int | None = None,
    ) -> None:
        super().__init__(message, parameter="weights")
        self.vertex_index = vertex_index
        self.halfedge = halfedge


class DuplicateVertexError(FairingError):
    """Raised when a vertex receives two ids in the fairing system."""

    def __init__(self, vertex_index: int) -> None:
        super().__init__(f"Duplicate vertex {vertex_index} found while numbering the system.")
        self.vertex_index = vertex_index


class SingularSystemError(FairingError):
    """Raised when the assembled fairing matrix cannot be factored."""

    def __init__(self, message: str, *, pivot: float | None = None) -> None:
        super().__init__(message)
        self.pivot = pivot


class SolveFailureError(FairingError):
    """Raised when a right-hand side solve fails after factorization."""

    def __init__(self, axis: str, message: str | None = None) -> None:
        if message is None:
            message = f"Linear solve failed for the {axis} coordinate."
        super().__init__(message)
        self.axis = axis


__all__ = [
    "FairingError",
    "InvalidEdgeIndexError",
    "InvalidParameterError",
    "UndefinedWeightError",
    "DuplicateVertexError",
    "SingularSystemError",
    "SolveFailureError",
]
