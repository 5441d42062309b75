# bangumi_crawler/services/scrapers/base_scraper.py

from abc import ABC, abstractmethod
from typing import Any

from ..models import ResolvedSchedule, SourceResult


class ScheduleSource(ABC):
    """
    Abstract base class for sources that list a whole season's schedule.
    """

    name: str = ""

    @abstractmethod
    async def resolve_season(
        self, season: str
    ) -> SourceResult[list[ResolvedSchedule]]:
        """
        Resolve every title of ``season`` with its begin and end times.

        Failures are returned as a failed ``SourceResult``, never raised.
        """
        pass

    @abstractmethod
    async def get_season(self, season: str) -> list[dict[str, Any]]:
        """
        Public entry point for ``season``.

        Returns:
            One output dictionary per title, or ``[]`` when the season could
            not be resolved.
        """
        pass


class SiteSource(ABC):
    """
    Abstract base class for streaming sites that carry individual titles.
    """

    name: str = ""

    @abstractmethod
    async def get_all(self) -> list[dict[str, Any]]:
        """
        List every title the site currently carries.

        Returns:
            A list of dictionaries with at least ``id`` and ``title`` keys.
        """
        pass

    @abstractmethod
    async def get_info(self, item_id: str) -> dict[str, Any]:
        """
        Look up broadcast details for one of the site's titles.

        Returns:
            ``{begin, official, premiumOnly, exist}``, or ``{}`` when the
            details could not be determined. An empty dictionary means
            "unknown" and is never an error.
        """
        pass
