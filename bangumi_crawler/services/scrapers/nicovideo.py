# bangumi_crawler/services/scrapers/nicovideo.py

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx
from bs4 import BeautifulSoup, Tag

from ...config import DEFAULT_HTTP_TIMEOUT, DEFAULT_PROBE_INTERVAL_SECONDS, logger
from ...errors import SourceUnavailable
from ..models import SiteInfo
from ..prober import find_first
from ..rate_limiter import RateLimiter
from .base_scraper import SiteSource
from .discovery import collect_paginated
from .utils import fetch_soup, load_site_config, site_url

_VIDEO_ID_RE = re.compile(r"watch/(\d+)")


@dataclass(frozen=True)
class ThumbInfo:
    video_id: str
    description: str
    first_retrieve: datetime | None


class NicovideoSource(SiteSource):
    """
    niconico anime channels.

    There is no schedule API, so a channel's begin date is taken from the
    first uploaded video that is an actual episode. Episodes cross-reference
    their neighbours (``watch/<id>``) in the description; PVs and CMs that
    are often uploaded first do not.
    """

    name = "nicovideo"

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        limiter: RateLimiter | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        site_config: dict[str, Any] | None = None,
    ) -> None:
        self.config = site_config or load_site_config(self.name)
        self.selectors: dict[str, str] = self.config.get("selectors", {})
        self.client = client
        self.timeout = timeout
        self.limiter = limiter or RateLimiter(DEFAULT_PROBE_INTERVAL_SECONDS)
        self._episode_ref_re = re.compile(
            self.config.get("episode_reference_pattern", r"watch/\d+")
        )

    async def get_all(self) -> list[dict[str, Any]]:
        return await collect_paginated(
            lambda page: site_url(self.config, "portal", page=page),
            self._page_count,
            self._parse_channels,
            client=self.client,
            source=self.name,
            timeout=self.timeout,
        )

    def _page_count(self, soup: BeautifulSoup) -> int | None:
        options = soup.select(self.selectors.get("page_options", ".pages select option"))
        return len(options) or None

    def _parse_channels(self, soup: BeautifulSoup) -> list[dict[str, Any]]:
        channels: list[dict[str, Any]] = []
        for item in soup.select(self.selectors.get("channel_items", ".channels>ul>li")):
            link = item.select_one(self.selectors.get("channel_name", ".channel_name"))
            if not isinstance(link, Tag):
                continue
            href = link.get("href")
            title = link.get("title") or link.get_text(strip=True)
            if not isinstance(href, str) or not href.strip("/"):
                continue
            channels.append({"id": href.strip("/"), "title": title})
        return channels

    async def fetch_video_ids(self, channel_id: str) -> list[str]:
        """Video IDs of a channel, oldest upload first."""
        soup = await fetch_soup(
            site_url(self.config, "videos", channel_id=channel_id),
            client=self.client,
            source=self.name,
            timeout=self.timeout,
        )
        video_ids: list[str] = []
        for anchor in soup.select(self.selectors.get("video_links", ".item .title a")):
            href = anchor.get("href")
            match = _VIDEO_ID_RE.search(href) if isinstance(href, str) else None
            if match:
                video_ids.append(match.group(1))
            else:
                logger.debug(f"[NICOVIDEO] Ignoring non-video link {href!r}")
        return video_ids

    async def fetch_thumb_info(self, video_id: str) -> ThumbInfo:
        soup = await fetch_soup(
            site_url(self.config, "thumb_info", video_id=video_id),
            parser="xml",
            client=self.client,
            source=self.name,
            timeout=self.timeout,
        )
        description = soup.find("description")
        retrieved = soup.find("first_retrieve")
        first_retrieve = None
        if isinstance(retrieved, Tag) and retrieved.get_text(strip=True):
            try:
                first_retrieve = datetime.fromisoformat(retrieved.get_text(strip=True))
            except ValueError as exc:
                raise SourceUnavailable(
                    f"Unreadable first_retrieve for {video_id}: {retrieved.get_text()!r}",
                    source=self.name,
                ) from exc
        return ThumbInfo(
            video_id=video_id,
            description=description.get_text() if isinstance(description, Tag) else "",
            first_retrieve=first_retrieve,
        )

    def is_episode(self, info: ThumbInfo) -> bool:
        return (
            info.first_retrieve is not None
            and self._episode_ref_re.search(info.description) is not None
        )

    async def resolve_begin(self, channel_id: str) -> datetime | None:
        """Upload time of the channel's first real episode, if any."""
        video_ids = await self.fetch_video_ids(channel_id)
        match = await find_first(
            video_ids, self.fetch_thumb_info, self.is_episode, limiter=self.limiter
        )
        if match is None:
            logger.info(
                f"[NICOVIDEO] No episode found among {len(video_ids)} video(s) of {channel_id}."
            )
            return None
        return match.value.first_retrieve

    async def get_info(self, item_id: str) -> dict[str, Any]:
        try:
            begin = await self.resolve_begin(item_id)
        except Exception as e:
            logger.error(f"[NICOVIDEO] Failed to resolve channel {item_id}: {e}")
            return {}
        return SiteInfo(
            begin=begin, official=True, premium_only=True, exist=begin is not None
        ).to_dict()
