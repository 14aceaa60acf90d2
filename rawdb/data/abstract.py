"""
Capability interfaces consumed by the query executor.

The executor never builds its own connections, sessions or random numbers;
it receives objects implementing these protocols. Production wiring lives in
`rawdb.infrastructure` and `rawdb.data.random_source`; tests substitute
in-memory fakes.
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager, AbstractContextManager
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ConnectionProvider(Protocol):
    """
    Hands out exclusively-owned database connections.

    `connection()` yields a psycopg AsyncConnection and `sync_connection()` a
    blocking psycopg Connection. Both must release the connection when the
    context exits, whether normally or through an exception.
    """

    def connection(self) -> AbstractAsyncContextManager[Any]:
        ...

    def sync_connection(self) -> AbstractContextManager[Any]:
        ...


@runtime_checkable
class Session(Protocol):
    """Forward-only, one-statement-at-a-time database session."""

    async def connect(self) -> None:
        ...

    async def execute(self, sql: str) -> None:
        ...

    def read_next(self) -> bool:
        ...

    def read_int32(self) -> int:
        ...

    def read_string(self) -> str:
        ...


@runtime_checkable
class SessionProvider(Protocol):
    """Returns the persistent session owned by the calling worker context."""

    def get_session(self) -> Session:
        ...


@runtime_checkable
class RandomSource(Protocol):
    """Stateful random integer generator."""

    def next(self, low_inclusive: int, high_exclusive: int) -> int:
        ...


__all__ = ["ConnectionProvider", "Session", "SessionProvider", "RandomSource"]
