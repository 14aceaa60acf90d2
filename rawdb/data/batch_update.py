"""
Batched UPDATE statement assembly for the update workload.

A batch of `count` updates is one statement text made of `count` fragments,
each with its own pair of named placeholders (`id_<i>`, `r_<i>`) so that no
two fragments share a parameter. Values are always bound by the driver and
never formatted into the text.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Dict, List, Sequence, Tuple

from rawdb.domain.models import World

# Statement texts are cached per batch size; sizes above this are built on demand.
_CACHED_BATCH_SIZES = 512


def id_param(position: int) -> str:
    return f"id_{position}"


def random_param(position: int) -> str:
    return f"r_{position}"


@lru_cache(maxsize=_CACHED_BATCH_SIZES)
def update_fragment(position: int) -> str:
    return (
        f"UPDATE world SET randomnumber = %({random_param(position)})s "
        f"WHERE id = %({id_param(position)})s;"
    )


@lru_cache(maxsize=_CACHED_BATCH_SIZES)
def batch_update_sql(count: int) -> str:
    """Statement text updating `count` rows in one round trip."""
    if count < 1:
        raise ValueError("batch update needs at least one row")
    return "".join(update_fragment(position) for position in range(count))


def build_batch_update(worlds: Sequence[World]) -> Tuple[str, Dict[str, int]]:
    """
    Return statement text and bound parameters for `worlds`, in list order.

    Callers pass rows already sorted by id so the batch takes row locks in
    ascending id order.
    """
    params: Dict[str, int] = {}
    for position, world in enumerate(worlds):
        params[id_param(position)] = world.id
        params[random_param(position)] = world.random_number
    return batch_update_sql(len(worlds)), params


def write_order(params: Dict[str, int]) -> List[int]:
    """Ids in the order the batch writes them."""
    return [params[id_param(position)] for position in range(len(params) // 2)]


__all__ = ["batch_update_sql", "build_batch_update", "update_fragment", "write_order"]
