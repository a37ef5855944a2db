"""Error types raised by the storage layer and the input boundary."""

from __future__ import annotations

__all__ = ["StorageUnavailable", "MalformedInput"]


class StorageUnavailable(Exception):
    """The database could not be reached or rejected the operation."""

    def __init__(self, operation: str, detail: str | None = None):
        self.operation = operation
        self.detail = detail
        message = f"Storage unavailable during {operation}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class MalformedInput(ValueError):
    """A request body is missing required fields."""
