from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest

from bangumi_crawler.config import CrawlerConfig
from bangumi_crawler.errors import SourceUnavailable
from bangumi_crawler.services.aggregation import aggregate_season, build_sites, match_title
from bangumi_crawler.services.models import ResolvedSchedule, SourceResult
from bangumi_crawler.services.scrapers import BilibiliSource, NicovideoSource

BEGIN = datetime(2023, 4, 1, 15, 0, tzinfo=timezone.utc)


def _config(**kwargs) -> CrawlerConfig:
    kwargs.setdefault("probe_interval", 0)
    return CrawlerConfig(**kwargs)


def _schedule_source(*titles: str):
    schedules = [ResolvedSchedule(title=t, begin=BEGIN) for t in titles]
    return SimpleNamespace(
        resolve_season=AsyncMock(return_value=SourceResult.success("syoboi", schedules))
    )


def _site(name: str, catalogue=None, info=None, error: Exception | None = None):
    site = Mock()
    site.name = name
    site.get_all = AsyncMock(return_value=catalogue or [], side_effect=error)
    site.get_info = AsyncMock(return_value=info or {})
    return site


def test_match_title_picks_best_candidate():
    candidates = [
        {"id": "1", "title": "Oshi no Ko"},
        {"id": "2", "title": "Kimetsu no Yaiba"},
    ]

    assert match_title("Kimetsu no Yaiba", candidates)["id"] == "2"
    assert match_title("yaiba no kimetsu", candidates)["id"] == "2"


def test_match_title_below_threshold_is_none():
    candidates = [{"id": "1", "title": "Completely Different"}]

    assert match_title("Oshi no Ko", candidates, threshold=85) is None
    assert match_title("Oshi no Ko", [], threshold=85) is None


def test_build_sites_follows_config_order():
    sites = build_sites(_config(enabled_sites=["nicovideo", "bilibili"]))

    assert [type(s) for s in sites] == [NicovideoSource, BilibiliSource]


@pytest.mark.asyncio
async def test_aggregate_attaches_matching_sites():
    bilibili = _site(
        "bilibili",
        catalogue=[{"id": "101", "title": "Spring Anime"}],
        info={"begin": "2023-04-01T16:00:00.000Z", "official": True,
              "premiumOnly": False, "exist": True},
    )

    items = await aggregate_season(
        "2023q2",
        _config(),
        schedule_source=_schedule_source("Spring Anime", "Unlisted Show"),
        sites=[bilibili],
        reporter=Mock(),
    )

    assert items[0]["begin"] == "2023-04-01T15:00:00.000Z"
    assert items[0]["sites"] == [
        {"site": "bilibili", "id": "101", "begin": "2023-04-01T16:00:00.000Z",
         "official": True, "premiumOnly": False, "exist": True}
    ]
    assert items[1]["sites"] == []
    bilibili.get_info.assert_awaited_once_with("101")


@pytest.mark.asyncio
async def test_aggregate_skips_failing_site_and_keeps_others():
    broken = _site("nicovideo", error=SourceUnavailable("HTTP 500", source="nicovideo"))
    working = _site("bilibili", catalogue=[{"id": "7", "title": "Spring Anime"}])

    items = await aggregate_season(
        "2023q2",
        _config(),
        schedule_source=_schedule_source("Spring Anime"),
        sites=[broken, working],
        reporter=Mock(),
    )

    assert [entry["site"] for entry in items[0]["sites"]] == ["bilibili"]
    broken.get_info.assert_not_awaited()


@pytest.mark.asyncio
async def test_aggregate_returns_empty_when_schedule_source_fails():
    failing = SimpleNamespace(
        resolve_season=AsyncMock(
            return_value=SourceResult.failure("syoboi", SourceUnavailable("down"))
        )
    )
    site = _site("bilibili")

    assert await aggregate_season(
        "2023q2", _config(), schedule_source=failing, sites=[site]
    ) == []
    site.get_all.assert_not_awaited()


@pytest.mark.asyncio
async def test_aggregate_keeps_unknown_site_info_as_bare_entry():
    site = _site("nicovideo", catalogue=[{"id": "ch9", "title": "Spring Anime"}], info={})

    items = await aggregate_season(
        "2023q2",
        _config(),
        schedule_source=_schedule_source("Spring Anime"),
        sites=[site],
        reporter=Mock(),
    )

    assert items[0]["sites"] == [{"site": "nicovideo", "id": "ch9"}]
