import sys
from pathlib import Path
from unittest.mock import Mock

import pytest

# Ensure root path is available for imports
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from bangumi_crawler.services.models import TitleMetadata  # noqa: E402
from bangumi_crawler.services.rate_limiter import RateLimiter  # noqa: E402


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def no_wait_limiter() -> RateLimiter:
    return RateLimiter(0)


@pytest.fixture
def reporter() -> Mock:
    return Mock()


@pytest.fixture
def make_meta():
    def _make(tid: str, title: str | None = None, **kwargs) -> TitleMetadata:
        kwargs.setdefault("category", "1")
        return TitleMetadata(id=tid, title=title or f"Title {tid}", **kwargs)

    return _make
