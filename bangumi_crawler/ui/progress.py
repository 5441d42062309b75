# bangumi_crawler/ui/progress.py

from typing import Protocol

from ..config import logger


class ProgressReporter(Protocol):
    def report(self, current: int, total: int, label: str) -> None: ...


class LoggingProgressReporter:
    """Writes one INFO line per pipeline step, e.g. ``[syoboi][3/12] ...``."""

    def __init__(self, prefix: str) -> None:
        self.prefix = prefix

    def report(self, current: int, total: int, label: str) -> None:
        logger.info(f"[{self.prefix}][{current}/{total}] {label}")


def safe_report(
    reporter: ProgressReporter | None, current: int, total: int, label: str
) -> None:
    """Forwards to ``reporter`` without letting a broken reporter stop the caller."""
    if reporter is None:
        return
    try:
        reporter.report(current, total, label)
    except Exception as e:
        logger.warning(f"[PROGRESS] Reporter failed on step {current}/{total}: {e}")
