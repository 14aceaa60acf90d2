"""
Query executor for the four benchmark workloads.

Each workload opens (or reuses) a connection, binds parameters, executes,
maps rows to domain models and releases the connection:

- `load_single_row`: one random point lookup (`db`).
- `load_multiple_rows`: `count` point lookups through one prepared statement
  (`queries`).
- `update_rows`: `count` lookups, then one batched multi-statement UPDATE
  (`updates`).
- `load_fortunes`: full scan of `fortune` through the worker's persistent
  session (`fortunes`).
- `load_fortunes_sync`: the same scan on a fresh blocking connection with a
  prepared statement (`fortunes_sync`).

Nothing here retries. Driver failures surface as the typed errors from
`rawdb.errors`, chained to the driver exception.
"""

from __future__ import annotations

from typing import List

import psycopg
from psycopg import AsyncClientCursor, AsyncConnection, AsyncCursor

from rawdb.data.abstract import ConnectionProvider, RandomSource, SessionProvider
from rawdb.data.batch_update import build_batch_update
from rawdb.domain.models import (
    RANDOM_NUMBER_MAX,
    RANDOM_NUMBER_MIN,
    WORLD_MAX_ID,
    WORLD_MIN_ID,
    Fortune,
    World,
    with_extra_fortune,
)
from rawdb.errors import BatchUpdateError, QueryExecutionError, RowNotFoundError
from rawdb.utils.logging import get_logger

log = get_logger(__name__)

READ_WORLD_SQL = "SELECT id, randomnumber FROM world WHERE id = %(id)s"
SESSION_FORTUNES_SQL = "SELECT * FROM fortune;"
PREPARED_FORTUNES_SQL = "SELECT id, message FROM fortune"


def _check_count(count: int) -> None:
    if count < 0:
        raise ValueError(f"count must be >= 0, got {count}")


class QueryExecutor:
    """
    Runs the benchmark queries against injected capabilities.

    Parameters
    ----------
    connections : ConnectionProvider
        Source of per-operation connections.
    sessions : SessionProvider
        Source of the calling worker's persistent session (fortunes only).
    random : RandomSource
        Draws world ids and new random numbers.
    """

    def __init__(
        self,
        connections: ConnectionProvider,
        sessions: SessionProvider,
        random: RandomSource,
    ) -> None:
        self._connections = connections
        self._sessions = sessions
        self._random = random

    def _next_world_id(self) -> int:
        return self._random.next(WORLD_MIN_ID, WORLD_MAX_ID + 1)

    def _next_random_number(self) -> int:
        return self._random.next(RANDOM_NUMBER_MIN, RANDOM_NUMBER_MAX + 1)

    async def _read_world(self, cur: AsyncCursor) -> World:
        world_id = self._next_world_id()
        try:
            await cur.execute(READ_WORLD_SQL, {"id": world_id}, prepare=True)
            row = await cur.fetchone()
        except psycopg.Error as exc:
            raise QueryExecutionError(f"World lookup failed for id={world_id}", exc) from exc
        if row is None:
            raise RowNotFoundError(world_id)
        return World.from_row(row)

    async def _read_worlds(self, conn: AsyncConnection, count: int) -> List[World]:
        # One cursor for the whole loop: the statement is prepared once and only
        # the bound id changes between executions.
        async with conn.cursor() as cur:
            return [await self._read_world(cur) for _ in range(count)]

    async def load_single_row(self) -> World:
        async with self._connections.connection() as conn:
            async with conn.cursor() as cur:
                return await self._read_world(cur)

    async def load_multiple_rows(self, count: int) -> List[World]:
        _check_count(count)
        if count == 0:
            return []
        async with self._connections.connection() as conn:
            worlds = await self._read_worlds(conn, count)
        log.debug("World rows loaded", extra={"count": count})
        return worlds

    async def update_rows(self, count: int) -> List[World]:
        """
        Read `count` random rows, give each a new random number, write them back.

        Rows are sorted by id before any write so that concurrent batches lock
        overlapping rows in the same order. The returned rows carry the new
        values; storage is not re-read.
        """
        _check_count(count)
        if count == 0:
            return []
        async with self._connections.connection() as conn:
            worlds = await self._read_worlds(conn, count)
            worlds.sort(key=lambda world: world.id)
            for world in worlds:
                world.random_number = self._next_random_number()

            sql, params = build_batch_update(worlds)
            try:
                # Multi-statement text needs client-side binding.
                async with AsyncClientCursor(conn) as cur:
                    await cur.execute(sql, params)
            except psycopg.Error as exc:
                log.error("Batched update failed", extra={"count": count, "error": str(exc)})
                raise BatchUpdateError(count, exc) from exc
        log.debug("World rows updated", extra={"count": count})
        return worlds

    async def load_fortunes(self) -> List[Fortune]:
        """
        Read all fortunes through the calling worker's persistent session.

        The session is shared by every call in this worker context and runs one
        statement at a time; concurrent callers in one context must serialize.
        """
        session = self._sessions.get_session()
        await session.connect()
        await session.execute(SESSION_FORTUNES_SQL)
        fortunes: List[Fortune] = []
        while session.read_next():
            fortunes.append(Fortune.from_row((session.read_int32(), session.read_string())))
        return with_extra_fortune(fortunes)

    def load_fortunes_sync(self) -> List[Fortune]:
        """Read all fortunes on a fresh blocking connection using a prepared statement."""
        with self._connections.sync_connection() as conn:
            try:
                with conn.cursor() as cur:
                    cur.execute(PREPARED_FORTUNES_SQL, prepare=True)
                    rows = cur.fetchall()
            except psycopg.Error as exc:
                raise QueryExecutionError("Fortune scan failed", exc) from exc
        return with_extra_fortune(Fortune.from_row(row) for row in rows)


__all__ = [
    "QueryExecutor",
    "READ_WORLD_SQL",
    "SESSION_FORTUNES_SQL",
    "PREPARED_FORTUNES_SQL",
]
