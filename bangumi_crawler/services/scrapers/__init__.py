from .base_scraper import ScheduleSource, SiteSource
from .bilibili import BilibiliSource
from .discovery import collect_paginated
from .nicovideo import NicovideoSource
from .syoboi import SyoboiSource
from .utils import fetch_json, fetch_soup, fetch_text, load_site_config

__all__ = [
    "ScheduleSource",
    "SiteSource",
    "BilibiliSource",
    "NicovideoSource",
    "SyoboiSource",
    "collect_paginated",
    "fetch_json",
    "fetch_soup",
    "fetch_text",
    "load_site_config",
]
