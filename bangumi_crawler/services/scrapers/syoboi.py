# bangumi_crawler/services/scrapers/syoboi.py

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

import httpx
from bs4 import Tag

from ...config import (
    DEFAULT_CUTOFF_SKEW,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_PROBE_INTERVAL_SECONDS,
    logger,
)
from ...errors import MalformedMetadata, SourceUnavailable
from ...ui.progress import LoggingProgressReporter, ProgressReporter
from ..models import (
    BroadcastProgram,
    CandidateItem,
    ResolvedSchedule,
    SourceResult,
    TitleMetadata,
    from_unix,
)
from ..rate_limiter import RateLimiter
from ..schedule_resolver import Direction, ScheduleResolver
from .base_scraper import ScheduleSource
from .utils import fetch_json, fetch_soup, load_site_config, site_url

# ProgramByCount takes this literal when the episode number is unknown.
UNKNOWN_COUNT = "null"


def _optional_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class SyoboiSource(ScheduleSource):
    """Season schedules from Syoboi Calendar."""

    name = "syoboi"

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        limiter: RateLimiter | None = None,
        reporter: ProgressReporter | None = None,
        clock: Callable[[], datetime] | None = None,
        cutoff_skew: timedelta = DEFAULT_CUTOFF_SKEW,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        site_config: dict[str, Any] | None = None,
    ) -> None:
        self.config = site_config or load_site_config(self.name)
        self.client = client
        self.timeout = timeout
        self.limiter = limiter or RateLimiter(DEFAULT_PROBE_INTERVAL_SECONDS)
        self.categories = {str(c) for c in self.config.get("categories", ["1", "10"])}
        self._preview_re = re.compile(self.config.get("preview_pattern", "先行配信"))
        self._internal_link_re = re.compile(
            self.config.get("internal_link_pattern", r"^/tid/\d+")
        )
        self.resolver = ScheduleResolver(
            self.fetch_program,
            self.limiter,
            reporter=reporter or LoggingProgressReporter(self.name),
            clock=clock,
            cutoff_skew=cutoff_skew,
            source=self.name,
        )

    # --- List discovery ---

    async def fetch_candidates(self, season: str) -> list[CandidateItem]:
        """Reads the quarter page (e.g. ``2016q3``) into title stubs."""
        url = site_url(self.config, "quarter", season=season)
        soup = await fetch_soup(
            url, client=self.client, source=self.name, timeout=self.timeout
        )
        selectors = self.config.get("selectors", {})

        candidates: list[CandidateItem] = []
        for anchor in soup.select(selectors.get("title_anchor", ".titlesDetail > a")):
            tid = anchor.get("name")
            if not isinstance(tid, str) or not tid:
                continue
            candidates.append(
                CandidateItem(external_id=tid, source_link=self._official_link(anchor))
            )

        logger.info(
            f"[SYOBOI] Found {len(candidates)} title(s) on the {season} quarter page."
        )
        return candidates

    def _official_link(self, anchor: Tag) -> str:
        details = anchor.find_next_sibling()
        if not isinstance(details, Tag):
            return ""
        selector = self.config.get("selectors", {}).get(
            "official_link", "td > a:has(> img)"
        )
        link_tag = details.select_one(selector)
        href = link_tag.get("href") if isinstance(link_tag, Tag) else None
        if not isinstance(href, str) or self._internal_link_re.search(href):
            return ""
        return href

    # --- Metadata batch fetch ---

    async def fetch_metadata(
        self, candidates: list[CandidateItem]
    ) -> list[TitleMetadata]:
        """
        Fetches full metadata for all candidates in a single ``TitleFull`` call.

        Only the configured categories survive. The batch fails as a whole:
        a missing ``Titles`` mapping or an entry without ``TID``, ``Title`` or
        ``Cat`` raises ``MalformedMetadata``.
        """
        if not candidates:
            return []

        tids = ",".join(c.external_id for c in candidates)
        payload = await fetch_json(
            site_url(self.config, "json"),
            client=self.client,
            params={"Req": "TitleFull", "TID": tids},
            source=self.name,
            timeout=self.timeout,
        )
        titles = payload.get("Titles") if isinstance(payload, dict) else None
        if not isinstance(titles, dict):
            raise MalformedMetadata("TitleFull response has no Titles", source=self.name)

        links = {c.external_id: c.source_link for c in candidates}
        metas: list[TitleMetadata] = []
        for raw in titles.values():
            if not isinstance(raw, dict) or not all(
                raw.get(key) not in (None, "") for key in ("TID", "Title", "Cat")
            ):
                raise MalformedMetadata(
                    f"TitleFull entry missing TID/Title/Cat: {raw!r}", source=self.name
                )
            category = str(raw["Cat"])
            if category not in self.categories:
                continue
            tid = str(raw["TID"])
            metas.append(
                TitleMetadata(
                    id=tid,
                    title=raw["Title"],
                    title_en=raw.get("TitleEN") or None,
                    category=category,
                    subtitle_text=raw.get("SubTitles") or "",
                    first_end_year=_optional_int(raw.get("FirstEndYear")),
                    first_end_month=_optional_int(raw.get("FirstEndMonth")),
                    official_link=links.get(tid) or "",
                )
            )

        logger.info(
            f"[SYOBOI] {len(metas)} of {len(titles)} title(s) kept after category filter."
        )
        return metas

    # --- Program probe ---

    async def fetch_program(
        self, tid: str, count: int | None
    ) -> BroadcastProgram | None:
        """
        Returns the earliest broadcast of episode ``count`` of title ``tid``.

        Streaming previews are ignored. ``None`` means no qualifying broadcast
        exists, which is a normal outcome; with ``count=None`` the lookup is
        best effort.
        """
        payload = await fetch_json(
            site_url(self.config, "json"),
            client=self.client,
            params={
                "Req": "ProgramByCount",
                "TID": tid,
                "Count": UNKNOWN_COUNT if count is None else count,
            },
            source=self.name,
            timeout=self.timeout,
        )
        raw_programs = payload.get("Programs") if isinstance(payload, dict) else None
        if not isinstance(raw_programs, dict):
            return None

        programs: list[BroadcastProgram] = []
        for raw in raw_programs.values():
            if not isinstance(raw, dict):
                continue
            comment = raw.get("ProgComment") or ""
            if self._preview_re.search(comment):
                continue
            try:
                programs.append(
                    BroadcastProgram(
                        title_id=str(raw.get("TID", tid)),
                        episode_number=_optional_int(raw.get("Count")),
                        start_time=from_unix(raw["StTime"]),
                        end_time=from_unix(raw["EdTime"]),
                        comment=comment,
                    )
                )
            except (KeyError, TypeError, ValueError) as e:
                logger.debug(f"[SYOBOI] Skipping unreadable program for #{tid}: {e}")

        if not programs:
            return None
        programs.sort(key=lambda p: p.start_time)
        return programs[0]

    # --- Whole-source entry points ---

    async def resolve_season(self, season: str) -> SourceResult[list[ResolvedSchedule]]:
        """Runs the full pipeline for ``season``; failures are returned, not raised."""
        try:
            candidates = await self.fetch_candidates(season)
            metas = await self.fetch_metadata(candidates)
            metas = await self.resolver.resolve(metas, Direction.BEGIN)
            metas = await self.resolver.resolve(metas, Direction.END)
        except Exception as e:
            return SourceResult.failure(self.name, e)
        return SourceResult.success(
            self.name, [ResolvedSchedule.from_metadata(m) for m in metas]
        )

    async def get_season(self, season: str) -> list[dict[str, Any]]:
        """
        Public entry point: the season's schedule as output dictionaries.

        Any failure is logged and yields an empty list so that callers can
        carry on with other sources.
        """
        result = await self.resolve_season(season)
        if not result.ok:
            _log_failure(self.name, season, result.error)
            return []
        logger.info(f"[SYOBOI] Resolved {len(result.value or [])} title(s) for {season}.")
        return [schedule.to_dict() for schedule in result.value or []]


def _log_failure(source: str, season: str, error: Exception | None) -> None:
    if isinstance(error, SourceUnavailable):
        logger.error(f"[SYOBOI] Season {season} unavailable: {error}")
    else:
        logger.error(
            f"[SYOBOI] Unexpected error resolving {season} from {source}",
            exc_info=error,
        )
