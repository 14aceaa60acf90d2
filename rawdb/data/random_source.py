"""Random sources for the executor."""

from __future__ import annotations

import random
from typing import Iterable, Iterator, Optional


class DefaultRandom:
    """`random.Random` behind the `next(low, high_exclusive)` interface."""

    def __init__(self, seed: Optional[int] = None) -> None:
        self._rng = random.Random(seed)

    def next(self, low_inclusive: int, high_exclusive: int) -> int:
        return self._rng.randrange(low_inclusive, high_exclusive)


class SequenceRandom:
    """
    Replays a fixed sequence of values.

    Each value must fall in the requested range. Running out of values raises
    ValueError so a test notices an unexpected extra draw.
    """

    def __init__(self, values: Iterable[int]) -> None:
        self._values: Iterator[int] = iter(values)
        self.draws = 0

    def next(self, low_inclusive: int, high_exclusive: int) -> int:
        value = next(self._values, None)
        if value is None:
            raise ValueError("random sequence exhausted")
        if not low_inclusive <= value < high_exclusive:
            raise ValueError(f"{value} outside [{low_inclusive}, {high_exclusive})")
        self.draws += 1
        return value


__all__ = ["DefaultRandom", "SequenceRandom"]
