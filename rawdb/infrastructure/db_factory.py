"""
Database connection providers for RawDb Bench.

Two providers hand out exclusively-owned PostgreSQL connections, one per
executor operation:

- DirectConnectionProvider opens a new psycopg connection and closes it when
  the operation ends.
- PooledConnectionProvider borrows from psycopg_pool pools (sync and async)
  and returns the connection when the operation ends.

Both release the connection on every exit path, including errors, and both
translate driver connect failures into ConnectionFailedError. Connect retries
use tenacity but default to a single attempt; raising `DB_CONNECT_ATTEMPTS`
is a hosting-layer decision.
"""

from __future__ import annotations

import asyncio
import threading
from contextlib import asynccontextmanager, contextmanager
from typing import Any, AsyncIterator, Dict, Iterator, Optional

import psycopg
from psycopg import AsyncConnection, Connection
from psycopg_pool import AsyncConnectionPool, ConnectionPool
from tenacity import (
    AsyncRetrying,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from rawdb.config import Settings, get_settings
from rawdb.errors import ConnectionFailedError
from rawdb.utils.logging import get_logger

log = get_logger(__name__)

_TRANSIENT_ERRORS = (psycopg.OperationalError, psycopg.InterfaceError, OSError)


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a DSN string from settings."""
    settings = settings or get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


def _retry_policy(attempts: int) -> Dict[str, Any]:
    return {
        "stop": stop_after_attempt(attempts),
        "wait": wait_exponential(multiplier=1, min=1, max=10),
        "retry": retry_if_exception_type(_TRANSIENT_ERRORS),
        "reraise": True,
    }


def open_sync_connection(dsn: str, attempts: int = 1, connect_timeout_s: int = 5) -> Connection:
    """
    Open a dedicated autocommit connection.

    Raises
    ------
    ConnectionFailedError
        If every attempt fails; the last driver error is the cause.
    """
    try:
        for attempt in Retrying(**_retry_policy(attempts)):
            with attempt:
                return psycopg.connect(dsn, autocommit=True, connect_timeout=connect_timeout_s)
    except _TRANSIENT_ERRORS as exc:
        log.error("Connection failed", extra={"attempts": attempts, "error": str(exc)})
        raise ConnectionFailedError("Could not open database connection", exc) from exc
    raise AssertionError("unreachable")  # pragma: no cover


async def open_async_connection(
    dsn: str, attempts: int = 1, connect_timeout_s: int = 5
) -> AsyncConnection:
    """Async counterpart of open_sync_connection."""
    try:
        async for attempt in AsyncRetrying(**_retry_policy(attempts)):
            with attempt:
                return await AsyncConnection.connect(
                    dsn, autocommit=True, connect_timeout=connect_timeout_s
                )
    except _TRANSIENT_ERRORS as exc:
        log.error("Connection failed", extra={"attempts": attempts, "error": str(exc)})
        raise ConnectionFailedError("Could not open database connection", exc) from exc
    raise AssertionError("unreachable")  # pragma: no cover


class DirectConnectionProvider:
    """Open a fresh connection per operation and close it afterwards."""

    def __init__(
        self,
        dsn: Optional[str] = None,
        connect_attempts: int = 1,
        connect_timeout_s: int = 5,
    ) -> None:
        self._dsn = dsn or build_dsn()
        self._connect_attempts = connect_attempts
        self._connect_timeout_s = connect_timeout_s

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[AsyncConnection]:
        conn = await open_async_connection(
            self._dsn, self._connect_attempts, self._connect_timeout_s
        )
        try:
            yield conn
        finally:
            await conn.close()

    @contextmanager
    def sync_connection(self) -> Iterator[Connection]:
        conn = open_sync_connection(self._dsn, self._connect_attempts, self._connect_timeout_s)
        try:
            yield conn
        finally:
            conn.close()

    async def close_all(self) -> None:
        """Nothing is held between operations."""
        return None


class PooledConnectionProvider:
    """
    Borrow connections from lazily created psycopg_pool pools.

    The sync pool is created under a thread lock; the async pool is created
    and opened under an asyncio lock so concurrent first callers share one
    pool. The pools themselves own socket reuse; this class only scopes a
    borrowed connection to one operation.
    """

    def __init__(
        self,
        dsn: Optional[str] = None,
        min_size: int = 1,
        max_size: int = 10,
        connect_timeout_s: int = 5,
    ) -> None:
        self._dsn = dsn or build_dsn()
        self._min_size = min_size
        self._max_size = max_size
        self._connect_timeout_s = connect_timeout_s
        self._lock = threading.Lock()
        self._async_lock = asyncio.Lock()
        self._sync_pool: Optional[ConnectionPool] = None
        self._async_pool: Optional[AsyncConnectionPool] = None

    def _get_sync_pool(self) -> ConnectionPool:
        with self._lock:
            if self._sync_pool is None:
                self._sync_pool = ConnectionPool(
                    conninfo=self._dsn,
                    min_size=self._min_size,
                    max_size=self._max_size,
                    kwargs={"autocommit": True},
                    open=True,
                )
                log.debug(
                    "Sync pool created",
                    extra={"min_size": self._min_size, "max_size": self._max_size},
                )
            return self._sync_pool

    async def _get_async_pool(self) -> AsyncConnectionPool:
        async with self._async_lock:
            if self._async_pool is None:
                pool = AsyncConnectionPool(
                    conninfo=self._dsn,
                    min_size=self._min_size,
                    max_size=self._max_size,
                    kwargs={"autocommit": True},
                    open=False,
                )
                await pool.open()
                self._async_pool = pool
                log.debug(
                    "Async pool created",
                    extra={"min_size": self._min_size, "max_size": self._max_size},
                )
            return self._async_pool

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[AsyncConnection]:
        pool = await self._get_async_pool()
        try:
            conn = await pool.getconn(timeout=self._connect_timeout_s)
        except _TRANSIENT_ERRORS as exc:
            raise ConnectionFailedError("Could not borrow a pooled connection", exc) from exc
        try:
            yield conn
        finally:
            await pool.putconn(conn)

    @contextmanager
    def sync_connection(self) -> Iterator[Connection]:
        pool = self._get_sync_pool()
        try:
            conn = pool.getconn(timeout=self._connect_timeout_s)
        except _TRANSIENT_ERRORS as exc:
            raise ConnectionFailedError("Could not borrow a pooled connection", exc) from exc
        try:
            yield conn
        finally:
            pool.putconn(conn)

    async def close_all(self) -> None:
        """Close both pools and forget them."""
        with self._lock:
            sync_pool, self._sync_pool = self._sync_pool, None
        if sync_pool is not None:
            # Closing joins the pool workers.
            await asyncio.to_thread(sync_pool.close)
        async with self._async_lock:
            async_pool, self._async_pool = self._async_pool, None
        if async_pool is not None:
            await async_pool.close()


def build_connection_provider(
    settings: Optional[Settings] = None,
    dsn_override: Optional[str] = None,
) -> DirectConnectionProvider | PooledConnectionProvider:
    """Pick the provider named by settings."""
    settings = settings or get_settings()
    dsn = dsn_override or build_dsn(settings)
    if settings.db_pooling:
        return PooledConnectionProvider(
            dsn,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            connect_timeout_s=settings.db_connect_timeout_s,
        )
    return DirectConnectionProvider(
        dsn,
        connect_attempts=settings.db_connect_attempts,
        connect_timeout_s=settings.db_connect_timeout_s,
    )


__all__ = [
    "DirectConnectionProvider",
    "PooledConnectionProvider",
    "build_connection_provider",
    "build_dsn",
    "open_async_connection",
    "open_sync_connection",
]
