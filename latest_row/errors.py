"""
Error taxonomy for the latest-row selector.

Only two conditions are modelled as exceptions:

- ``StorageUnavailable``: the store cannot be reached or a query failed for
  infrastructural reasons. Propagated to the caller as-is.
- ``QueryTimeout``: a bounded query exceeded its time budget and was aborted
  by the storage engine. Recovered inside the benchmark runner.

An empty eligibility set and a scope without active rows are normal outcomes
and never raise.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class LatestRowError(Exception):
    """Base class for errors raised by this package."""


class StorageUnavailable(LatestRowError):
    """
    Raised when a storage operation fails.

    Attributes
    ----------
    guild_id : int | None
        Scope the failing operation was serving (None for connection setup).
    operation : str
        Machine-friendly name of the failing operation.
    """

    def __init__(self, guild_id: Optional[int], operation: str, message: str) -> None:
        self.guild_id = guild_id
        self.operation = operation
        self.message = message
        super().__init__(f"{operation} failed for guild_id={guild_id}: {message}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": "storage_unavailable",
            "guild_id": self.guild_id,
            "operation": self.operation,
            "message": self.message,
        }


class QueryTimeout(LatestRowError):
    """Raised when a query is cancelled after exceeding its timeout."""

    def __init__(self, guild_id: Optional[int], operation: str, timeout_seconds: float) -> None:
        self.guild_id = guild_id
        self.operation = operation
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Query timed out after {timeout_seconds:g} seconds")


__all__ = ["LatestRowError", "QueryTimeout", "StorageUnavailable"]
