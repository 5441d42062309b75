# bangumi_crawler/services/prober.py

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from ..config import logger
from .rate_limiter import RateLimiter

ItemT = TypeVar("ItemT")
ValueT = TypeVar("ValueT")


@dataclass(frozen=True)
class ProbeMatch(Generic[ItemT, ValueT]):
    item: ItemT
    value: ValueT


async def find_first(
    items: Iterable[ItemT],
    fetch: Callable[[ItemT], Awaitable[Optional[ValueT]]],
    predicate: Callable[[ValueT], bool],
    *,
    limiter: RateLimiter | None = None,
) -> ProbeMatch[ItemT, ValueT] | None:
    """
    Fetches ``items`` one at a time, in order, and returns the first whose
    fetched value satisfies ``predicate``.

    Nothing after the matching item is fetched. A fetch that yields ``None``
    counts as "not satisfied" and the scan moves on; errors raised by
    ``fetch`` propagate to the caller. Returns ``None`` when the sequence is
    exhausted without a match.
    """
    for index, item in enumerate(items, start=1):
        if limiter is not None:
            async with limiter:
                value = await fetch(item)
        else:
            value = await fetch(item)

        if value is not None and predicate(value):
            logger.debug(f"[PROBER] Item #{index} ({item!r}) satisfied the predicate.")
            return ProbeMatch(item=item, value=value)

    return None
