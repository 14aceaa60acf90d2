"""
Persistent asyncpg sessions for the fortunes workload.

A PersistentSession is a long-lived connection with a forward-only reader
over the result of the last statement it executed. SessionCache keeps one
session per worker context, i.e. per (thread, event loop) pair, because an
asyncpg connection is bound to the loop that opened it.

Sessions connect lazily on first use and are not closed by the executor;
they live as long as their worker. A session runs one statement at a time,
so callers that share a worker context must serialize their calls.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Dict, Optional, Sequence

import asyncpg

from rawdb.errors import ConnectionFailedError, MalformedRowError, QueryExecutionError
from rawdb.utils.logging import get_logger

log = get_logger(__name__)


class PersistentSession:
    """
    asyncpg connection plus a cursor-like reader over the last result.

    Reading mirrors a forward-only data reader: `read_next()` moves to the
    next row, then `read_int32()` / `read_string()` consume that row's
    columns left to right.
    """

    def __init__(self, dsn: str, connect_timeout_s: int = 5) -> None:
        self._dsn = dsn
        self._connect_timeout_s = connect_timeout_s
        self._conn: Optional[asyncpg.Connection] = None
        self._connect_lock = asyncio.Lock()
        self._rows: Sequence[Sequence[Any]] = []
        self._row_index = -1
        self._column = 0

    @property
    def is_connected(self) -> bool:
        return self._conn is not None and not self._conn.is_closed()

    async def connect(self) -> None:
        """Connect once; later calls are no-ops."""
        if self.is_connected:
            return
        async with self._connect_lock:
            if self.is_connected:
                return
            try:
                self._conn = await asyncpg.connect(self._dsn, timeout=self._connect_timeout_s)
            except (OSError, asyncio.TimeoutError, asyncpg.PostgresError) as exc:
                raise ConnectionFailedError("Could not open persistent session", exc) from exc
            log.debug("Persistent session connected", extra={"thread": threading.get_ident()})

    async def execute(self, sql: str) -> None:
        """Run `sql` and position the reader before its first row."""
        if self._conn is None:
            raise QueryExecutionError("Persistent session is not connected")
        try:
            self._rows = await self._conn.fetch(sql)
        except (asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
            raise QueryExecutionError(f"Session query failed: {sql}", exc) from exc
        self._row_index = -1
        self._column = 0

    def read_next(self) -> bool:
        self._row_index += 1
        self._column = 0
        return self._row_index < len(self._rows)

    def _read_column(self) -> Any:
        if not 0 <= self._row_index < len(self._rows):
            raise MalformedRowError("Reader is not positioned on a row")
        row = self._rows[self._row_index]
        if self._column >= len(row):
            raise MalformedRowError(
                f"Row has {len(row)} columns, tried to read column {self._column}",
                row=tuple(row),
            )
        value = row[self._column]
        self._column += 1
        return value

    def read_int32(self) -> int:
        value = self._read_column()
        if not isinstance(value, int) or isinstance(value, bool):
            raise MalformedRowError(f"Expected integer column, got {value!r}")
        return value

    def read_string(self) -> str:
        value = self._read_column()
        if not isinstance(value, str):
            raise MalformedRowError(f"Expected text column, got {value!r}")
        return value

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    def discard(self) -> None:
        """Forget a connection whose event loop has already closed."""
        self._conn = None
        self._rows = []
        self._row_index = -1


class SessionCache:
    """
    Worker-scoped cache of PersistentSession instances.

    Lookup is keyed by the current thread (thread-local storage) and the
    running event loop. A session keeps its loop alive through its
    connection, so entries for loops that have since closed are evicted
    whenever a thread first sees a new loop.
    Creation does not await, so two coroutines on one loop always see the
    same session; the session's own lock guards its first connect.
    """

    def __init__(self, dsn: str, connect_timeout_s: int = 5) -> None:
        self._dsn = dsn
        self._connect_timeout_s = connect_timeout_s
        self._local = threading.local()

    def _sessions(self) -> Dict[asyncio.AbstractEventLoop, PersistentSession]:
        sessions = getattr(self._local, "sessions", None)
        if sessions is None:
            sessions = {}
            self._local.sessions = sessions
        return sessions

    @staticmethod
    def _evict_closed_loops(sessions: Dict[asyncio.AbstractEventLoop, PersistentSession]) -> None:
        for loop in [loop for loop in sessions if loop.is_closed()]:
            sessions.pop(loop).discard()
            log.debug("Evicted session of a closed event loop", extra={"thread": threading.get_ident()})

    def get_session(self) -> PersistentSession:
        loop = asyncio.get_running_loop()
        sessions = self._sessions()
        session = sessions.get(loop)
        if session is None:
            self._evict_closed_loops(sessions)
            session = PersistentSession(self._dsn, self._connect_timeout_s)
            sessions[loop] = session
        return session

    async def close_current(self) -> None:
        """Close and forget the session of the calling worker, if any."""
        loop = asyncio.get_running_loop()
        session: Optional[PersistentSession] = self._sessions().pop(loop, None)
        if session is not None:
            await session.close()


__all__ = ["PersistentSession", "SessionCache"]
