# bangumi_crawler/config.py

import configparser
import json
import logging
import os
from dataclasses import dataclass, field
from datetime import timedelta

# --- Constants ---
DEFAULT_PROBE_INTERVAL_SECONDS = 0.8
DEFAULT_CUTOFF_SKEW = timedelta(days=1)
DEFAULT_HTTP_TIMEOUT = 30.0
DEFAULT_MATCH_THRESHOLD = 85
KNOWN_SITES = ("bilibili", "nicovideo")
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/115.0 Safari/537.36"
)

# Setup basic logging
logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)
logging.getLogger("httpx").setLevel(logging.WARNING)


@dataclass
class CrawlerConfig:
    """Runtime settings for a crawl, as read from ``config.ini``."""

    probe_interval: float = DEFAULT_PROBE_INTERVAL_SECONDS
    cutoff_skew: timedelta = DEFAULT_CUTOFF_SKEW
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    match_threshold: int = DEFAULT_MATCH_THRESHOLD
    log_level: str = "INFO"
    enabled_sites: list[str] = field(default_factory=lambda: list(KNOWN_SITES))


def get_configuration(config_path: str = "config.ini") -> CrawlerConfig:
    """
    Reads crawler settings from the given INI file.

    A missing file is not an error: the crawler runs with its defaults. Values
    that are present but cannot be parsed raise ``ValueError`` so that a typo
    never silently turns into a default.
    """
    if not os.path.exists(config_path):
        logger.info(
            f"[CONFIG] Configuration file '{config_path}' not found. Using defaults."
        )
        return CrawlerConfig()

    parser = configparser.ConfigParser()
    with open(config_path, encoding="utf-8") as f:
        parser.read_string(f.read())

    config = CrawlerConfig()
    if parser.has_section("crawler"):
        config.probe_interval = _read_number(
            parser, "probe_interval", float, config.probe_interval
        )
        skew_hours = _read_number(
            parser,
            "cutoff_skew_hours",
            float,
            config.cutoff_skew.total_seconds() / 3600,
        )
        config.cutoff_skew = timedelta(hours=skew_hours)
        config.http_timeout = _read_number(
            parser, "http_timeout", float, config.http_timeout
        )
        config.match_threshold = _read_number(
            parser, "match_threshold", int, config.match_threshold
        )
        config.log_level = _read_log_level(parser, config.log_level)

    config.enabled_sites = _load_enabled_sites(parser, config.enabled_sites)

    logger.info(
        f"[CONFIG] Loaded configuration from '{config_path}' "
        f"(probe_interval={config.probe_interval}s, sites={config.enabled_sites})."
    )
    return config


def _read_number(parser: configparser.ConfigParser, key: str, cast, default):
    """Reads a numeric key from the [crawler] section, rejecting negatives."""
    raw = parser.get("crawler", key, fallback=None)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw.strip())
    except ValueError:
        logger.critical(f"[CONFIG] Invalid value for '{key}': {raw!r}")
        raise ValueError(f"Invalid value for '{key}': {raw!r}")
    if value < 0:
        logger.critical(f"[CONFIG] '{key}' must not be negative: {raw!r}")
        raise ValueError(f"'{key}' must not be negative: {raw!r}")
    return value


def _read_log_level(parser: configparser.ConfigParser, default: str) -> str:
    """Reads [crawler] log_level, accepting only the standard level names."""
    raw = parser.get("crawler", "log_level", fallback=None)
    if raw is None or not raw.strip():
        return default
    level = raw.strip().upper()
    if not isinstance(logging.getLevelName(level), int):
        logger.critical(f"[CONFIG] Invalid value for 'log_level': {raw!r}")
        raise ValueError(f"Invalid value for 'log_level': {raw!r}")
    return level


def _load_enabled_sites(
    parser: configparser.ConfigParser, default: list[str]
) -> list[str]:
    """Parses the JSON list held by ``[sites] enabled``."""
    raw = parser.get("sites", "enabled", fallback=None)
    if raw is None:
        return default

    try:
        sites = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.critical(f"Failed to parse JSON from [sites] section: {e}")
        raise ValueError(f"Invalid JSON in [sites] section: {e}")

    if not isinstance(sites, list):
        raise ValueError("[sites] enabled must be a JSON list of site names")

    enabled: list[str] = []
    for site in sites:
        name = site.strip().lower() if isinstance(site, str) else None
        if name not in KNOWN_SITES:
            logger.warning(f"[CONFIG] Skipping unknown site in [sites]: {site!r}")
            continue
        if name not in enabled:
            enabled.append(name)
    return enabled
