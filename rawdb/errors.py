"""
Error taxonomy for the RawDb data-access layer.

Every error raised by the executor or its infrastructure derives from
DataAccessError and keeps the underlying driver exception both as `cause`
and as the chained `__cause__`.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence


class DataAccessError(Exception):
    """Base class for all data-access failures."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


class ConnectionFailedError(DataAccessError):
    """A database connection or session could not be opened."""


class QueryExecutionError(DataAccessError):
    """A read query failed inside the driver."""


class RowNotFoundError(DataAccessError):
    """A point lookup expecting one row returned none."""

    def __init__(self, world_id: int) -> None:
        super().__init__(f"No world row with id={world_id}")
        self.world_id = world_id


class BatchUpdateError(DataAccessError):
    """The batched multi-statement update failed as a whole."""

    def __init__(self, count: int, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"Batched update of {count} world rows failed", cause)
        self.count = count


class MalformedRowError(DataAccessError):
    """A result row did not have the expected column count or types."""

    def __init__(
        self,
        message: str,
        row: Optional[Sequence[Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, cause)
        self.row = row


__all__ = [
    "DataAccessError",
    "ConnectionFailedError",
    "QueryExecutionError",
    "RowNotFoundError",
    "BatchUpdateError",
    "MalformedRowError",
]
