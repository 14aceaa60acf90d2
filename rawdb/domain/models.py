"""
Domain models for RawDb Bench.

Defines the two row shapes the benchmark workloads read and write, aligned
with the `world` and `fortune` tables created by `scripts/seed_data.py`.
Rows are validated strictly so that a result with unexpected column types
fails loudly instead of being coerced.
"""
from __future__ import annotations

from typing import Any, Iterable, List, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError

from rawdb.errors import MalformedRowError

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1

WORLD_MIN_ID = 1
WORLD_MAX_ID = 10_000
RANDOM_NUMBER_MIN = 1
RANDOM_NUMBER_MAX = 10_000

EXTRA_FORTUNE_MESSAGE = "Additional fortune added at request time."


class World(BaseModel):
    """
    Representation of a single row in the `world` table.

    `random_number` is the only field the update workload overwrites.
    """

    id: int = Field(..., ge=INT32_MIN, le=INT32_MAX, strict=True)
    random_number: int = Field(
        ..., alias="randomNumber", ge=INT32_MIN, le=INT32_MAX, strict=True
    )

    model_config = {
        "populate_by_name": True,
    }

    @classmethod
    def from_row(cls, row: Optional[Sequence[Any]]) -> "World":
        """Build a World from an `(id, randomnumber)` result row."""
        if row is None or len(row) != 2:
            raise MalformedRowError(f"Expected 2 columns for world row, got {row!r}", row=row)
        try:
            return cls(id=row[0], random_number=row[1])
        except ValidationError as exc:
            raise MalformedRowError(f"Invalid world row {row!r}", row=row, cause=exc) from exc


class Fortune(BaseModel):
    """
    Representation of a single row in the `fortune` table.
    """

    id: int = Field(0, ge=INT32_MIN, le=INT32_MAX, strict=True)
    message: str = Field(..., strict=True)

    model_config = {
        "frozen": True,
    }

    @classmethod
    def from_row(cls, row: Optional[Sequence[Any]]) -> "Fortune":
        """Build a Fortune from an `(id, message)` result row."""
        if row is None or len(row) != 2:
            raise MalformedRowError(f"Expected 2 columns for fortune row, got {row!r}", row=row)
        try:
            return cls(id=row[0], message=row[1])
        except ValidationError as exc:
            raise MalformedRowError(f"Invalid fortune row {row!r}", row=row, cause=exc) from exc


def with_extra_fortune(fortunes: Iterable[Fortune]) -> List[Fortune]:
    """
    Append the request-time fortune and sort the whole list by message.

    Python string ordering compares code points, and `sorted` is stable, so
    duplicate messages keep their fetch order.
    """
    result = list(fortunes)
    result.append(Fortune(message=EXTRA_FORTUNE_MESSAGE))
    return sorted(result, key=lambda fortune: fortune.message)


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
