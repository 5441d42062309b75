# bangumi_crawler/services/schedule_resolver.py

from __future__ import annotations

import dataclasses
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from ..config import DEFAULT_CUTOFF_SKEW, logger
from ..errors import SourceUnavailable
from ..ui.progress import ProgressReporter, safe_report
from .episode_parser import extract_episode_bounds
from .models import BroadcastProgram, TitleMetadata
from .rate_limiter import RateLimiter

# --- Type Aliases for Readability ---
ProgramProbe = Callable[[str, Optional[int]], Awaitable[Optional[BroadcastProgram]]]


class Direction(Enum):
    BEGIN = "begin"
    END = "end"


def month_key(moment: datetime) -> int:
    """``2023-06-15`` -> ``202306``."""
    return moment.year * 100 + moment.month


def merge_programs(
    metas: Sequence[TitleMetadata],
    programs: Sequence[BroadcastProgram],
    direction: Direction,
) -> list[TitleMetadata]:
    """
    Writes each program's time into the metadata entry with the same title ID.

    Returns new records in the original order; the inputs are left untouched.
    Entries without a program keep the field as it was. If several programs
    share a title ID the first one wins.
    """
    by_title: dict[str, BroadcastProgram] = {}
    for program in programs:
        by_title.setdefault(program.title_id, program)

    merged: list[TitleMetadata] = []
    for meta in metas:
        program = by_title.get(meta.id)
        if program is None:
            merged.append(meta)
        elif direction is Direction.BEGIN:
            merged.append(dataclasses.replace(meta, start_time=program.start_time))
        else:
            merged.append(dataclasses.replace(meta, end_time=program.end_time))
    return merged


class ScheduleResolver:
    """
    Resolves begin or end broadcast times for a season's titles, one probe at
    a time.

    Probes run strictly in list order through a shared ``RateLimiter``: the
    remote API throttles bursts without documenting a limit, so no two probes
    are ever in flight together.
    """

    def __init__(
        self,
        probe: ProgramProbe,
        limiter: RateLimiter,
        *,
        reporter: ProgressReporter | None = None,
        clock: Callable[[], datetime] | None = None,
        cutoff_skew: timedelta = DEFAULT_CUTOFF_SKEW,
        source: str = "syoboi",
    ) -> None:
        self.probe = probe
        self.limiter = limiter
        self.reporter = reporter
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.cutoff_skew = cutoff_skew
        self.source = source

    def select_for(
        self,
        metas: Sequence[TitleMetadata],
        direction: Direction,
        now: datetime | None = None,
    ) -> list[TitleMetadata]:
        """
        Picks the entries worth probing.

        Every title has a begin date to look up. End dates are only looked up
        for titles whose announced final month lies strictly before the
        current month; ``now`` is pushed forward by ``cutoff_skew`` so that a
        month boundary in another timezone does not count as "current" too
        early.
        """
        if direction is Direction.BEGIN:
            return list(metas)

        cutoff = month_key((now or self._clock()) + self.cutoff_skew)
        return [
            meta
            for meta in metas
            if meta.end_period is not None and meta.end_period < cutoff
        ]

    async def resolve(
        self, metas: Sequence[TitleMetadata], direction: Direction
    ) -> list[TitleMetadata]:
        targets = self.select_for(metas, direction)
        total = len(targets)
        logger.info(
            f"[RESOLVER] {self.source}: Resolving {direction.value} for "
            f"{total} of {len(metas)} title(s)."
        )

        programs: list[BroadcastProgram] = []
        for index, meta in enumerate(targets, start=1):
            bounds = extract_episode_bounds(meta.subtitle_text)
            episode = bounds.first if direction is Direction.BEGIN else bounds.last

            try:
                async with self.limiter:
                    program = await self.probe(meta.id, episode)
            except SourceUnavailable as e:
                logger.warning(
                    f"[RESOLVER] {self.source}: Probe for '{meta.title}' "
                    f"(#{meta.id}, episode {episode}) failed: {e}"
                )
                program = None

            safe_report(
                self.reporter,
                index,
                total,
                f"Fetching {direction.value} of {meta.title}",
            )
            if program is not None:
                programs.append(program)

        logger.info(
            f"[RESOLVER] {self.source}: Found {len(programs)} {direction.value} "
            f"date(s) for {total} title(s)."
        )
        return merge_programs(metas, programs, direction)
