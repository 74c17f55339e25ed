"""Exception hierarchy for the semantic index.

Hard errors (dimension mismatch, capacity) propagate to the caller. ModelError is
recovered per item during batch embedding and propagated for single queries.
"""

from typing import Any


class SemanticIndexError(Exception):
    """Base exception for all semantic index errors.

    Attributes:
        message: Human-readable error description
        context: Optional diagnostic details (ids, sizes, model names)
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.context:
            details = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({details})"
        return self.message


class DimensionMismatchError(SemanticIndexError, ValueError):
    """Embedding length differs from the configured store dimension."""

    def __init__(self, expected: int, actual: int, operation: str = "insert"):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Dimension mismatch on {operation}: expected {expected}, got {actual}",
            context={"expected": expected, "actual": actual, "operation": operation},
        )


class CapacityExceededError(SemanticIndexError):
    """Vector store already holds max_elements vectors."""

    def __init__(self, max_elements: int):
        self.max_elements = max_elements
        super().__init__(
            f"Vector store is full ({max_elements} vectors); remove pages or clear the store",
            context={"max_elements": max_elements},
        )


class ModelError(SemanticIndexError, RuntimeError):
    """Embedding capability failed to produce a vector."""
