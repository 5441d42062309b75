# bangumi_crawler/services/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Generic, NamedTuple, Optional, TypeVar

T = TypeVar("T")


def to_iso8601(value: datetime | None) -> str:
    """Formats ``value`` as UTC ISO 8601 with millisecond precision, or ``""``."""
    if value is None:
        return ""
    return (
        value.astimezone(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def from_unix(seconds: Any) -> datetime:
    """Converts a unix timestamp (number or numeric string) to an aware datetime."""
    return datetime.fromtimestamp(int(seconds), tz=timezone.utc)


@dataclass(frozen=True)
class CandidateItem:
    """A title stub found on a season index page."""

    external_id: str
    source_link: str = ""


@dataclass(frozen=True)
class TitleMetadata:
    """Full metadata for one title, plus the broadcast times resolved so far."""

    id: str
    title: str
    category: str
    subtitle_text: str = ""
    title_en: Optional[str] = None
    first_end_year: Optional[int] = None
    first_end_month: Optional[int] = None
    official_link: str = ""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @property
    def end_period(self) -> int | None:
        """
        The announced final month as a ``YYYYMM`` integer, if known.

        A year without a month gives ``YYYY00``, which sorts before every
        month of that year.
        """
        if not self.first_end_year:
            return None
        return self.first_end_year * 100 + (self.first_end_month or 0)


class EpisodeBounds(NamedTuple):
    first: int
    last: Optional[int]


@dataclass(frozen=True)
class BroadcastProgram:
    """One broadcast event of a title's episode."""

    title_id: str
    episode_number: Optional[int]
    start_time: datetime
    end_time: datetime
    comment: str = ""


@dataclass(frozen=True)
class ResolvedSchedule:
    title: str
    title_translate: dict[str, list[str]] = field(default_factory=dict)
    official_site: str = ""
    begin: Optional[datetime] = None
    end: Optional[datetime] = None
    lang: str = "ja"
    sites: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_metadata(cls, meta: TitleMetadata) -> "ResolvedSchedule":
        return cls(
            title=meta.title,
            title_translate={"en": [meta.title_en]} if meta.title_en else {},
            official_site=meta.official_link or "",
            begin=meta.start_time,
            end=meta.end_time,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "titleTranslate": {k: list(v) for k, v in self.title_translate.items()},
            "type": "",
            "lang": self.lang,
            "officialSite": self.official_site,
            "begin": to_iso8601(self.begin),
            "end": to_iso8601(self.end),
            "comment": "",
            "sites": [dict(site) for site in self.sites],
        }


@dataclass(frozen=True)
class SiteInfo:
    """What a streaming site knows about one of its titles."""

    begin: Optional[datetime] = None
    official: bool = False
    premium_only: bool = False
    exist: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "begin": to_iso8601(self.begin),
            "official": self.official,
            "premiumOnly": self.premium_only,
            "exist": self.exist,
        }


@dataclass(frozen=True)
class SourceResult(Generic[T]):
    """
    Outcome of one source's pipeline: either a value or the error that stopped it.

    Sources return this instead of raising so that the aggregation layer can
    decide how to report a failure without one outage aborting the others.
    """

    source: str
    value: Optional[T] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, source: str, value: T) -> "SourceResult[T]":
        return cls(source=source, value=value)

    @classmethod
    def failure(cls, source: str, error: Exception) -> "SourceResult[T]":
        return cls(source=source, error=error)
