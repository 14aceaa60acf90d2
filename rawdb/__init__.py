"""
RawDb Bench - raw SQL data-access layer for web-framework benchmark workloads.

The package runs the standard benchmark query patterns against PostgreSQL:

- Single-row point lookup
- Repeated point lookups through one prepared statement
- Batched read-then-update with id-ordered writes
- Full fortune scan with an in-memory sort, via a per-worker persistent
  session or a fresh prepared-statement connection

Connections, sessions and randomness are injected into the QueryExecutor so
that hosting layers (and tests) decide how resources are provided.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from rawdb.config import Settings, get_settings
from rawdb.data import DefaultRandom, QueryExecutor, SequenceRandom
from rawdb.domain import Fortune, World
from rawdb.errors import (
    BatchUpdateError,
    ConnectionFailedError,
    DataAccessError,
    MalformedRowError,
    QueryExecutionError,
    RowNotFoundError,
)
from rawdb.runner import RunConfig, available_workloads, build_executor, run_benchmark
from rawdb.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Core
    "QueryExecutor",
    "DefaultRandom",
    "SequenceRandom",
    "World",
    "Fortune",
    # Errors
    "DataAccessError",
    "ConnectionFailedError",
    "QueryExecutionError",
    "RowNotFoundError",
    "BatchUpdateError",
    "MalformedRowError",
    # Runner
    "RunConfig",
    "available_workloads",
    "build_executor",
    "run_benchmark",
    # Logging
    "configure_logging",
    "get_logger",
]
