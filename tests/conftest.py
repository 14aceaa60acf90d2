"""
Pytest configuration for RawDb Bench.

Provides fixtures for:
- In-memory fakes of the psycopg and asyncpg surfaces the executor touches
- Database connection management for integration tests
- Test data seeding
"""

from __future__ import annotations

import asyncio
import os
from contextlib import asynccontextmanager, contextmanager
from typing import Any, AsyncIterator, Dict, Generator, Iterator, List, Optional, Tuple

import psycopg
import pytest
from psycopg import errors as pg_errors

from rawdb.config import Settings
from rawdb.data import executor as executor_module
from rawdb.data.batch_update import batch_update_sql
from rawdb.data.executor import PREPARED_FORTUNES_SQL, READ_WORLD_SQL, SESSION_FORTUNES_SQL
from rawdb.errors import ConnectionFailedError
from rawdb.infrastructure import session as session_module
from rawdb.infrastructure.session import SessionCache

DEFAULT_FORTUNES: List[Tuple[int, str]] = [
    (1, "fortune: No such file or directory"),
    (2, "A computer scientist is someone who fixes things that aren't broken."),
    (3, "After enough decimal places, nobody gives a damn."),
    (4, "Any program that runs right is obsolete."),
]


class FakeDatabase:
    """Tables plus a log of every statement the fakes received."""

    def __init__(self) -> None:
        self.worlds: Dict[int, Any] = {world_id: world_id * 3 for world_id in range(1, 10_001)}
        self.fortunes: List[Tuple[Any, ...]] = list(DEFAULT_FORTUNES)
        self.statements: List[Tuple[str, Any, Any, Any]] = []
        self.batches: List[Dict[str, int]] = []
        self.fail_reads = False
        self.fail_updates = False
        self.fail_connect = False
        self.opened = 0
        self.closed = 0
        self.sync_opened = 0
        self.sync_closed = 0
        self.session_connects = 0
        self.session_in_flight = 0
        self.session_peak_in_flight = 0
        self.cursors_created = 0

    def world_row(self, world_id: int) -> Optional[Tuple[int, Any]]:
        if world_id not in self.worlds:
            return None
        return (world_id, self.worlds[world_id])


class FakeAsyncCursor:
    def __init__(self, db: FakeDatabase) -> None:
        self._db = db
        self._rows: List[Tuple[Any, ...]] = []
        self.closed = False

    async def execute(
        self, sql: str, params: Optional[Dict[str, Any]] = None, prepare: Optional[bool] = None
    ) -> None:
        self._db.statements.append(("execute", sql, dict(params or {}), prepare))
        if self._db.fail_reads:
            raise psycopg.OperationalError("server closed the connection unexpectedly")
        assert sql == READ_WORLD_SQL
        row = self._db.world_row(params["id"])
        self._rows = [row] if row is not None else []

    async def fetchone(self) -> Optional[Tuple[Any, ...]]:
        return self._rows[0] if self._rows else None

    async def __aenter__(self) -> FakeAsyncCursor:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        del exc_type, exc, tb
        self.closed = True
        return False


class FakeClientCursor:
    """Stands in for psycopg.AsyncClientCursor on the batched update path."""

    def __init__(self, conn: FakeAsyncConnection) -> None:
        self._db = conn.db

    async def execute(self, sql: str, params: Dict[str, int]) -> None:
        self._db.statements.append(("batch", sql, dict(params), None))
        if self._db.fail_updates:
            raise pg_errors.DeadlockDetected("deadlock detected")
        assert sql == batch_update_sql(len(params) // 2)
        self._db.batches.append(dict(params))
        for position in range(len(params) // 2):
            self._db.worlds[params[f"id_{position}"]] = params[f"r_{position}"]

    async def __aenter__(self) -> FakeClientCursor:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        del exc_type, exc, tb
        return False


class FakeAsyncConnection:
    def __init__(self, db: FakeDatabase) -> None:
        self.db = db
        self.cursors: List[FakeAsyncCursor] = []

    def cursor(self) -> FakeAsyncCursor:
        self.db.cursors_created += 1
        cur = FakeAsyncCursor(self.db)
        self.cursors.append(cur)
        return cur


class FakeSyncCursor:
    def __init__(self, db: FakeDatabase) -> None:
        self._db = db
        self._rows: List[Tuple[Any, ...]] = []

    def execute(self, sql: str, params: Any = None, prepare: Optional[bool] = None) -> None:
        self._db.statements.append(("sync", sql, params, prepare))
        if self._db.fail_reads:
            raise psycopg.OperationalError("server closed the connection unexpectedly")
        assert sql == PREPARED_FORTUNES_SQL
        self._rows = list(self._db.fortunes)

    def fetchall(self) -> List[Tuple[Any, ...]]:
        return list(self._rows)

    def __enter__(self) -> FakeSyncCursor:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        del exc_type, exc, tb
        return False


class FakeSyncConnection:
    def __init__(self, db: FakeDatabase) -> None:
        self.db = db

    def cursor(self) -> FakeSyncCursor:
        return FakeSyncCursor(self.db)


class FakeConnectionProvider:
    """Per-operation connection provider that counts opens and closes."""

    def __init__(self, db: FakeDatabase) -> None:
        self._db = db

    def _check(self) -> None:
        if self._db.fail_connect:
            cause = psycopg.OperationalError("connection refused")
            raise ConnectionFailedError("Could not open database connection", cause) from cause

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[FakeAsyncConnection]:
        self._check()
        self._db.opened += 1
        try:
            yield FakeAsyncConnection(self._db)
        finally:
            self._db.closed += 1

    @contextmanager
    def sync_connection(self) -> Iterator[FakeSyncConnection]:
        self._check()
        self._db.sync_opened += 1
        try:
            yield FakeSyncConnection(self._db)
        finally:
            self._db.sync_closed += 1


class FakeAsyncpgConnection:
    """The slice of asyncpg.Connection used by PersistentSession."""

    def __init__(self, db: FakeDatabase) -> None:
        self._db = db
        self._closed = False
        self.queries: List[str] = []
        self.loop = asyncio.get_running_loop()

    async def fetch(self, sql: str) -> List[Tuple[Any, ...]]:
        self.queries.append(sql)
        self._db.statements.append(("session", sql, None, None))
        assert sql == SESSION_FORTUNES_SQL
        self._db.session_in_flight += 1
        self._db.session_peak_in_flight = max(
            self._db.session_peak_in_flight, self._db.session_in_flight
        )
        try:
            await asyncio.sleep(0)
            return list(self._db.fortunes)
        finally:
            self._db.session_in_flight -= 1

    def is_closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        self._closed = True


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def fake_provider(fake_db: FakeDatabase) -> FakeConnectionProvider:
    return FakeConnectionProvider(fake_db)


@pytest.fixture
def fake_client_cursor(monkeypatch) -> type:
    monkeypatch.setattr(executor_module, "AsyncClientCursor", FakeClientCursor)
    return FakeClientCursor


@pytest.fixture
def fake_asyncpg(monkeypatch, fake_db: FakeDatabase) -> List[FakeAsyncpgConnection]:
    """Route asyncpg.connect to in-memory connections; returns the list of connections made."""
    made: List[FakeAsyncpgConnection] = []

    async def fake_connect(*args: Any, **kwargs: Any) -> FakeAsyncpgConnection:
        del args, kwargs
        if fake_db.fail_connect:
            raise OSError("connection refused")
        fake_db.session_connects += 1
        conn = FakeAsyncpgConnection(fake_db)
        made.append(conn)
        return conn

    monkeypatch.setattr(session_module.asyncpg, "connect", fake_connect)
    return made


@pytest.fixture
def session_cache(fake_asyncpg) -> SessionCache:
    del fake_asyncpg
    return SessionCache("postgresql://test")


# Integration fixtures


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "benchmarkdbuser"),
        db_password=os.getenv("DB_PASSWORD", "benchmarkdbpass"),
        db_name=os.getenv("DB_NAME", "hello_world"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a session-scoped autocommit connection for integration tests.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_dsn, autocommit=True)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="function")
def seeded_db(db_connection: psycopg.Connection, test_dsn: str) -> int:
    """
    Recreate and seed the world and fortune tables before each test.

    Returns the number of world rows seeded.
    """
    from scripts.seed_data import seed_database

    return seed_database(test_dsn, seed=42)
