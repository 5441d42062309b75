from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from bs4 import BeautifulSoup

from bangumi_crawler.errors import SourceUnavailable
from bangumi_crawler.services.rate_limiter import RateLimiter
from bangumi_crawler.services.scrapers.nicovideo import NicovideoSource

MODULE = "bangumi_crawler.services.scrapers.nicovideo"
DISCOVERY = "bangumi_crawler.services.scrapers.discovery"


def _portal_page(*channels: tuple[str, str], pages: int = 2) -> BeautifulSoup:
    options = "".join(f"<option>{i}</option>" for i in range(1, pages + 1))
    items = "".join(
        f'<li><a class="channel_name" href="/{cid}" title="{title}">{title}</a></li>'
        for cid, title in channels
    )
    html = (
        f'<div class="pages"><select>{options}</select></div>'
        f'<div class="channels"><ul>{items}</ul></div>'
    )
    return BeautifulSoup(html, "lxml")


VIDEO_LIST_HTML = """
<ul>
  <li class="item"><p class="title"><a href="https://www.nicovideo.jp/watch/1001">PV</a></p></li>
  <li class="item"><p class="title"><a href="https://www.nicovideo.jp/watch/1002">Episode 1</a></p></li>
  <li class="item"><p class="title"><a href="/some/other/page">Not a video</a></p></li>
  <li class="item"><p class="title"><a href="https://www.nicovideo.jp/watch/1003">Episode 2</a></p></li>
</ul>
"""


def _thumb(description: str, retrieved: str = "2023-04-05T23:00:00+09:00") -> BeautifulSoup:
    xml = (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<nicovideo_thumb_response status="ok"><thumb>'
        f"<description>{description}</description>"
        f"<first_retrieve>{retrieved}</first_retrieve>"
        "</thumb></nicovideo_thumb_response>"
    )
    return BeautifulSoup(xml, "xml")


def _source() -> NicovideoSource:
    return NicovideoSource(limiter=RateLimiter(0))


@pytest.mark.asyncio
async def test_get_all_walks_every_page(mocker):
    fetch = mocker.patch(
        f"{DISCOVERY}.fetch_soup",
        new=AsyncMock(
            side_effect=[
                _portal_page(("ch1", "First"), ("ch2", "Second")),
                _portal_page(("ch3", "Third")),
            ]
        ),
    )

    channels = await _source().get_all()

    assert channels == [
        {"id": "ch1", "title": "First"},
        {"id": "ch2", "title": "Second"},
        {"id": "ch3", "title": "Third"},
    ]
    assert [c.args[0] for c in fetch.await_args_list] == [
        "http://ch.nicovideo.jp/portal/anime/list?&page=1",
        "http://ch.nicovideo.jp/portal/anime/list?&page=2",
    ]


@pytest.mark.asyncio
async def test_get_all_without_page_marker_is_unavailable(mocker):
    mocker.patch(
        f"{DISCOVERY}.fetch_soup",
        new=AsyncMock(return_value=_portal_page(("ch1", "First"), pages=0)),
    )

    with pytest.raises(SourceUnavailable):
        await _source().get_all()


@pytest.mark.asyncio
async def test_fetch_video_ids_keeps_upload_order(mocker):
    mocker.patch(
        f"{MODULE}.fetch_soup",
        new=AsyncMock(return_value=BeautifulSoup(VIDEO_LIST_HTML, "lxml")),
    )

    assert await _source().fetch_video_ids("ch1") == ["1001", "1002", "1003"]


@pytest.mark.asyncio
async def test_fetch_thumb_info_parses_description_and_time(mocker):
    mocker.patch(
        f"{MODULE}.fetch_soup",
        new=AsyncMock(return_value=_thumb("next: watch/1003")),
    )

    info = await _source().fetch_thumb_info("1002")

    assert info.description == "next: watch/1003"
    assert info.first_retrieve == datetime(
        2023, 4, 5, 23, 0, tzinfo=timezone(timedelta(hours=9))
    )


@pytest.mark.asyncio
async def test_get_info_skips_promotional_videos(mocker):
    source = _source()
    mocker.patch.object(
        source, "fetch_video_ids", new=AsyncMock(return_value=["v1", "v2", "v3"])
    )
    thumbs = {
        "v1": _thumb("Promotion video", "2023-03-01T12:00:00+09:00"),
        "v2": _thumb("Episode 1. Next: watch/1003", "2023-04-05T23:00:00+09:00"),
        "v3": _thumb("Episode 2. Prev: watch/1002", "2023-04-12T23:00:00+09:00"),
    }
    requested: list[str] = []

    async def fetch_soup(url, **kwargs):
        video_id = url.rsplit("/", 1)[-1]
        requested.append(video_id)
        return thumbs[video_id]

    mocker.patch(f"{MODULE}.fetch_soup", side_effect=fetch_soup)

    info = await source.get_info("ch1")

    assert info == {
        "begin": "2023-04-05T14:00:00.000Z",
        "official": True,
        "premiumOnly": True,
        "exist": True,
    }
    assert requested == ["v1", "v2"]


@pytest.mark.asyncio
async def test_get_info_without_episodes_is_not_existing(mocker):
    source = _source()
    mocker.patch.object(source, "fetch_video_ids", new=AsyncMock(return_value=["v1"]))
    mocker.patch(f"{MODULE}.fetch_soup", new=AsyncMock(return_value=_thumb("PV")))

    info = await source.get_info("ch1")

    assert info["begin"] == ""
    assert info["exist"] is False


@pytest.mark.asyncio
async def test_get_info_returns_empty_dict_on_failure(mocker):
    mocker.patch(
        f"{MODULE}.fetch_soup",
        new=AsyncMock(side_effect=SourceUnavailable("HTTP 404", source="nicovideo")),
    )

    assert await _source().get_info("ch1") == {}
