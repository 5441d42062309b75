# bangumi_crawler/services/scrapers/bilibili.py

from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx

from ...config import DEFAULT_HTTP_TIMEOUT, logger
from ...errors import MalformedMetadata, SourceUnavailable
from ..models import SiteInfo
from .base_scraper import SiteSource
from .utils import fetch_json, fetch_text, load_site_config, parse_jsonp, site_url


def _unwrap(payload: Any, source: str) -> Any:
    """Returns ``result`` from a ``{code, message, result}`` envelope."""
    if not isinstance(payload, dict):
        raise MalformedMetadata("Response is not a JSON object", source=source)
    if payload.get("code"):
        raise SourceUnavailable(
            str(payload.get("message") or f"code {payload['code']}"), source=source
        )
    result = payload.get("result")
    if not isinstance(result, dict):
        raise MalformedMetadata("Response has no result", source=source)
    return result


class BilibiliSource(SiteSource):
    """Simulcasts on bilibili's bangumi section."""

    name = "bilibili"

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        site_config: dict[str, Any] | None = None,
    ) -> None:
        self.config = site_config or load_site_config(self.name)
        self.client = client
        self.timeout = timeout
        self.official_copyrights = set(
            self.config.get("official_copyrights", ["bilibili", "dujia", "cooperate"])
        )

    async def get_all(self) -> list[dict[str, Any]]:
        payload = await fetch_json(
            site_url(self.config, "index"),
            client=self.client,
            source=self.name,
            timeout=self.timeout,
        )
        result = _unwrap(payload, self.name)
        seasons = result.get("list")
        if not isinstance(seasons, list):
            raise MalformedMetadata("Season index has no list", source=self.name)
        return [
            {
                "id": str(season.get("season_id")),
                "title": season.get("title") or "",
                "img": season.get("cover") or "",
            }
            for season in seasons
            if isinstance(season, dict) and season.get("season_id") is not None
        ]

    async def fetch_season(self, season_id: str) -> SiteInfo:
        text = await fetch_text(
            site_url(self.config, "season_info", season_id=season_id),
            client=self.client,
            source=self.name,
            timeout=self.timeout,
        )
        payload = parse_jsonp(
            text, self.config.get("jsonp_callback", "seasonListCallback"), source=self.name
        )
        result = _unwrap(payload, self.name)

        episodes = result.get("episodes") or []
        payment = result.get("payment") or {}
        try:
            price = float(payment.get("price") or 0)
        except (TypeError, ValueError):
            price = 0.0

        # pub_time is unreliable until the first episode is out.
        begin = self._parse_pub_time(result.get("pub_time")) if episodes else None
        return SiteInfo(
            begin=begin,
            official=result.get("copyright") in self.official_copyrights,
            premium_only=bool(price),
            exist=bool(episodes),
        )

    def _parse_pub_time(self, value: Any) -> datetime | None:
        if not isinstance(value, str) or not value.strip():
            return None
        offset = self.config.get("pub_time_offset", "+08:00")
        try:
            return datetime.fromisoformat(f"{value.strip().replace(' ', 'T')}{offset}")
        except ValueError:
            logger.warning(f"[BILIBILI] Unreadable pub_time {value!r}")
            return None

    async def get_info(self, item_id: str) -> dict[str, Any]:
        try:
            info = await self.fetch_season(item_id)
        except Exception as e:
            logger.error(f"[BILIBILI] Failed to fetch season {item_id}: {e}")
            return {}
        return info.to_dict()
