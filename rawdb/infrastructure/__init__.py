"""
Infrastructure package for RawDb Bench.

Centralizes database connectivity concerns: per-operation connection
providers (direct and pooled) and the worker-scoped persistent sessions.
Keep this layer focused on I/O and resource management, decoupled from
query logic.
"""

from rawdb.infrastructure.db_factory import (
    DirectConnectionProvider,
    PooledConnectionProvider,
    build_connection_provider,
    build_dsn,
)
from rawdb.infrastructure.session import PersistentSession, SessionCache

__all__ = [
    "DirectConnectionProvider",
    "PooledConnectionProvider",
    "build_connection_provider",
    "build_dsn",
    "PersistentSession",
    "SessionCache",
]
