# bangumi_crawler/services/scrapers/discovery.py

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

import httpx
from bs4 import BeautifulSoup

from ...config import DEFAULT_HTTP_TIMEOUT, logger
from ...errors import SourceUnavailable
from .utils import fetch_soup

T = TypeVar("T")


async def collect_paginated(
    page_url: Callable[[int], str],
    page_count: Callable[[BeautifulSoup], int | None],
    parse_items: Callable[[BeautifulSoup], list[T]],
    *,
    client: httpx.AsyncClient | None = None,
    source: str = "",
    timeout: float = DEFAULT_HTTP_TIMEOUT,
) -> list[T]:
    """
    Scrapes every page of a paginated index and returns the items in page order.

    The number of pages is only known once the first page has been read, so
    pages are requested one after another. A missing or nonsensical page-count
    marker on the first page raises ``SourceUnavailable``.
    """
    first_page = await fetch_soup(
        page_url(1), client=client, source=source, timeout=timeout
    )

    try:
        total = page_count(first_page)
    except (AttributeError, TypeError, ValueError) as exc:
        raise SourceUnavailable(
            f"Could not read the page count: {exc}", source=source
        ) from exc
    if not isinstance(total, int) or total < 1:
        raise SourceUnavailable(
            f"Page-count marker missing or malformed (got {total!r})", source=source
        )

    logger.info(f"[DISCOVERY] {source}: {total} page(s) to scrape.")
    items = list(parse_items(first_page))
    for page in range(2, total + 1):
        soup = await fetch_soup(
            page_url(page), client=client, source=source, timeout=timeout
        )
        items.extend(parse_items(soup))

    logger.info(f"[DISCOVERY] {source}: Collected {len(items)} item(s).")
    return items
