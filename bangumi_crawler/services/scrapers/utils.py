# bangumi_crawler/services/scrapers/utils.py

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

import httpx
import yaml  # type: ignore[import-untyped]
from bs4 import BeautifulSoup

from ...config import DEFAULT_HTTP_TIMEOUT, USER_AGENT, logger
from ...errors import SourceUnavailable

CONFIG_DIR = Path(__file__).resolve().parent / "configs"

# Cache for site configurations to avoid repeated disk reads.
_config_cache: dict[Path, dict[str, Any]] = {}

_REQUIRED_CONFIG_KEYS = {"site_name", "base_url", "endpoints"}


def load_site_config(name: str, config_dir: Path | None = None) -> dict[str, Any]:
    """Load and minimally validate the YAML description of a site.

    Configuration files are cached in-memory after the first load, keyed by
    their resolved path.
    """
    resolved_path = ((config_dir or CONFIG_DIR) / f"{name}.yaml").resolve()
    cached = _config_cache.get(resolved_path)
    if cached is not None:
        return cached

    if not resolved_path.exists():
        raise FileNotFoundError(f"Site config not found: {resolved_path}")

    with resolved_path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}

    missing = _REQUIRED_CONFIG_KEYS - data.keys()
    if missing:
        raise ValueError(f"Config missing keys: {', '.join(sorted(missing))}")

    _config_cache[resolved_path] = data
    return data


def site_url(config: dict[str, Any], endpoint: str, **values: Any) -> str:
    """Builds an absolute URL from one of the config's endpoint templates."""
    template = config["endpoints"][endpoint]
    path = template.format(**values)
    if path.startswith(("http://", "https://")):
        return path
    return f"{config['base_url'].rstrip('/')}/{path.lstrip('/')}"


def _default_headers() -> dict[str, str]:
    return {
        "User-Agent": USER_AGENT,
        "Accept-Language": "ja,en-US;q=0.9,en;q=0.8",
    }


async def fetch_text(
    url: str,
    *,
    client: httpx.AsyncClient | None = None,
    params: dict[str, Any] | None = None,
    source: str = "",
    timeout: float = DEFAULT_HTTP_TIMEOUT,
) -> str:
    """
    GETs ``url`` and returns the body.

    When no ``client`` is supplied a short-lived one is opened for this single
    request. Transport failures and non-2xx responses surface as
    ``SourceUnavailable``.
    """
    logger.debug(f"[HTTP] {source or 'fetch'}: GET {url} params={params}")
    try:
        if client is not None:
            response = await client.get(url, params=params, headers=_default_headers())
            response.raise_for_status()
            return response.text

        async with httpx.AsyncClient(
            timeout=timeout, follow_redirects=True
        ) as own_client:
            response = await own_client.get(
                url, params=params, headers=_default_headers()
            )
            response.raise_for_status()
            return response.text
    except httpx.HTTPStatusError as exc:
        raise SourceUnavailable(
            f"GET {url} returned HTTP {exc.response.status_code}", source=source
        ) from exc
    except httpx.HTTPError as exc:
        raise SourceUnavailable(f"GET {url} failed: {exc}", source=source) from exc


async def fetch_soup(
    url: str,
    *,
    parser: str = "lxml",
    client: httpx.AsyncClient | None = None,
    params: dict[str, Any] | None = None,
    source: str = "",
    timeout: float = DEFAULT_HTTP_TIMEOUT,
) -> BeautifulSoup:
    """Fetches ``url`` and parses it; pass ``parser="xml"`` for XML documents."""
    text = await fetch_text(
        url, client=client, params=params, source=source, timeout=timeout
    )
    return BeautifulSoup(text, parser)


async def fetch_json(
    url: str,
    *,
    client: httpx.AsyncClient | None = None,
    params: dict[str, Any] | None = None,
    source: str = "",
    timeout: float = DEFAULT_HTTP_TIMEOUT,
) -> Any:
    text = await fetch_text(
        url, client=client, params=params, source=source, timeout=timeout
    )
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise SourceUnavailable(
            f"Response from {url} is not valid JSON: {exc}", source=source
        ) from exc


def parse_jsonp(text: str, callback: str, *, source: str = "") -> Any:
    """Unwraps ``callback({...});`` and decodes the JSON inside.

    Bodies that are not wrapped are decoded as plain JSON.
    """
    body = text.strip()
    if body.startswith(callback):
        match = re.match(rf"^{re.escape(callback)}\((.*)\);?\s*$", body, re.DOTALL)
        if not match:
            raise SourceUnavailable(
                f"Malformed JSONP wrapper for '{callback}'", source=source
            )
        body = match.group(1)
    try:
        return json.loads(body)
    except json.JSONDecodeError as exc:
        raise SourceUnavailable(f"Invalid JSONP payload: {exc}", source=source) from exc
