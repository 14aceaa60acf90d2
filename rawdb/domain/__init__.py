"""
Domain package for RawDb Bench.

Exports the row models returned by the query executor.
Keep this package focused on data definitions and validation concerns.
"""

from rawdb.domain.models import (
    EXTRA_FORTUNE_MESSAGE,
    RANDOM_NUMBER_MAX,
    RANDOM_NUMBER_MIN,
    WORLD_MAX_ID,
    WORLD_MIN_ID,
    Fortune,
    World,
    with_extra_fortune,
)

__all__ = [
    "World",
    "Fortune",
    "with_extra_fortune",
    "EXTRA_FORTUNE_MESSAGE",
    "WORLD_MIN_ID",
    "WORLD_MAX_ID",
    "RANDOM_NUMBER_MIN",
    "RANDOM_NUMBER_MAX",
]
