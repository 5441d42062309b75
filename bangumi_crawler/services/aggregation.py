# bangumi_crawler/services/aggregation.py

from __future__ import annotations

import asyncio
import dataclasses
from typing import Any

import httpx
from thefuzz import fuzz, process

from ..config import DEFAULT_MATCH_THRESHOLD, CrawlerConfig, logger
from ..ui.progress import LoggingProgressReporter, ProgressReporter, safe_report
from .models import ResolvedSchedule, SourceResult
from .rate_limiter import RateLimiter
from .scrapers import (
    BilibiliSource,
    NicovideoSource,
    ScheduleSource,
    SiteSource,
    SyoboiSource,
)


def match_title(
    title: str,
    candidates: list[dict[str, Any]],
    threshold: int = DEFAULT_MATCH_THRESHOLD,
) -> dict[str, Any] | None:
    """
    Finds the catalogue entry whose ``title`` best matches ``title``.

    Returns ``None`` unless the best score reaches ``threshold``.
    """
    if not title or not candidates:
        return None
    choices = {
        index: str(candidate.get("title") or "")
        for index, candidate in enumerate(candidates)
    }
    best = process.extractOne(
        title, choices, scorer=fuzz.token_sort_ratio, score_cutoff=threshold
    )
    if not best:
        return None
    _, _score, index = best
    return candidates[index]


def build_sites(
    config: CrawlerConfig, client: httpx.AsyncClient | None = None
) -> list[SiteSource]:
    """Instantiates the site sources enabled in ``config``, in config order."""
    factories = {
        "bilibili": lambda: BilibiliSource(client=client, timeout=config.http_timeout),
        "nicovideo": lambda: NicovideoSource(
            client=client,
            limiter=RateLimiter(config.probe_interval),
            timeout=config.http_timeout,
        ),
    }
    return [factories[name]() for name in config.enabled_sites if name in factories]


async def _fetch_catalogue(site: SiteSource) -> SourceResult[list[dict[str, Any]]]:
    try:
        return SourceResult.success(site.name, await site.get_all())
    except Exception as e:
        return SourceResult.failure(site.name, e)


def _report_failure(result: SourceResult[Any]) -> None:
    logger.error(
        f"[AGGREGATE] Source '{result.source}' failed and is skipped: {result.error}",
        exc_info=result.error,
    )


async def aggregate_season(
    season: str,
    config: CrawlerConfig,
    *,
    client: httpx.AsyncClient | None = None,
    reporter: ProgressReporter | None = None,
    schedule_source: ScheduleSource | None = None,
    sites: list[SiteSource] | None = None,
) -> list[dict[str, Any]]:
    """
    Resolves ``season`` and attaches the streaming sites carrying each title.

    The schedule source is resolved first; if it fails there is nothing to
    attach sites to and an empty list is returned. Site catalogues are then
    fetched together, and per-title site lookups run one at a time per site.
    A failing site only loses its own entries.
    """
    syoboi = schedule_source or SyoboiSource(
        client=client,
        limiter=RateLimiter(config.probe_interval),
        cutoff_skew=config.cutoff_skew,
        timeout=config.http_timeout,
    )
    schedule_result = await syoboi.resolve_season(season)
    if not schedule_result.ok:
        _report_failure(schedule_result)
        return []
    schedules: list[ResolvedSchedule] = list(schedule_result.value or [])

    site_sources = sites if sites is not None else build_sites(config, client)
    catalogues = await asyncio.gather(
        *(_fetch_catalogue(site) for site in site_sources)
    )

    available: list[tuple[SiteSource, list[dict[str, Any]]]] = []
    for site, catalogue in zip(site_sources, catalogues):
        if catalogue.ok:
            logger.info(
                f"[AGGREGATE] {site.name}: {len(catalogue.value or [])} title(s) listed."
            )
            available.append((site, catalogue.value or []))
        else:
            _report_failure(catalogue)

    reporter = reporter or LoggingProgressReporter("sites")
    limiters = {site.name: RateLimiter(config.probe_interval) for site, _ in available}
    total = len(schedules)
    enriched: list[ResolvedSchedule] = []
    for index, schedule in enumerate(schedules, start=1):
        entries: list[dict[str, Any]] = list(schedule.sites)
        for site, catalogue in available:
            match = match_title(schedule.title, catalogue, config.match_threshold)
            if match is None:
                continue
            async with limiters[site.name]:
                info = await site.get_info(str(match["id"]))
            entries.append({"site": site.name, "id": str(match["id"]), **info})
        safe_report(reporter, index, total, f"Matching sites for {schedule.title}")
        enriched.append(dataclasses.replace(schedule, sites=entries))

    return [schedule.to_dict() for schedule in enriched]
