"""
Data-access package for RawDb Bench.

Re-exports the query executor, its capability interfaces and the random
sources so callers can import from `rawdb.data` directly.
"""

from rawdb.data.abstract import ConnectionProvider, RandomSource, Session, SessionProvider
from rawdb.data.executor import QueryExecutor
from rawdb.data.random_source import DefaultRandom, SequenceRandom

__all__ = [
    "QueryExecutor",
    # Capabilities
    "ConnectionProvider",
    "RandomSource",
    "Session",
    "SessionProvider",
    # Random sources
    "DefaultRandom",
    "SequenceRandom",
]
