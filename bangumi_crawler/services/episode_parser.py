# bangumi_crawler/services/episode_parser.py

import re

from .models import EpisodeBounds

# Syoboi lists sub-titles one per line as "*<episode>*<sub-title>".
_EPISODE_MARKER = re.compile(r"\*(\d+)\*")

UNBOUNDED_SEASON = EpisodeBounds(first=1, last=None)


def extract_episode_bounds(subtitle_text: str | None) -> EpisodeBounds:
    """
    Returns the first and last episode numbers found in ``subtitle_text``.

    Markers are taken in document order, so the bounds follow the listing
    rather than numeric order. When no marker is present the title is treated
    as a single season whose end is not yet known: ``(1, None)``.
    """
    if not subtitle_text:
        return UNBOUNDED_SEASON
    numbers = [int(m) for m in _EPISODE_MARKER.findall(subtitle_text)]
    if not numbers:
        return UNBOUNDED_SEASON
    return EpisodeBounds(first=numbers[0], last=numbers[-1])
