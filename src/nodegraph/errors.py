"""Error hierarchy for graph operations.

Every error carries a short machine code and a human-readable message.
StoreFailure never exposes raw sqlite text in its message; the original
exception stays available on __cause__.
"""

from __future__ import annotations

from typing import Any


class GraphError(Exception):
    """Base class for all nodegraph errors."""

    code = "graph_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"error": {"code": self.code, "message": self.message}}

    def __str__(self) -> str:
        return self.message


class ValidationError(GraphError):
    """Caller input violates a documented constraint. Raised before any write."""

    code = "validation_error"


class NotFound(GraphError):
    code = "not_found"


class DuplicateName(GraphError):
    code = "duplicate_name"


class StoreFailure(GraphError):
    """The database rejected a statement; the enclosing transaction was rolled back."""

    code = "store_failure"

    def __init__(self, message: str = "database rejected the operation") -> None:
        super().__init__(message)


class SynchronizationFailure(GraphError):
    """A mention-driven edge could not be ensured."""

    code = "synchronization_failure"

    def __init__(self, from_id: int, to_id: int, reason: str) -> None:
        super().__init__(f"could not link node {from_id} -> {to_id}: {reason}")
        self.from_id = from_id
        self.to_id = to_id
