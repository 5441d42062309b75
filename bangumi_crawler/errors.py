# bangumi_crawler/errors.py


class CrawlerError(Exception):
    """Base class for every error raised by the crawler."""


class SourceUnavailable(CrawlerError):
    """
    A remote source could not be fetched or its response could not be parsed.

    This is a source-level failure: it aborts the resolution for that source,
    but never the aggregation across sources.
    """

    def __init__(self, message: str, *, source: str = "") -> None:
        self.source = source
        self.message = message
        super().__init__(f"[{source}] {message}" if source else message)


class MalformedMetadata(SourceUnavailable):
    """A batch payload arrived but is missing fields the pipeline depends on."""
