"""Exception hierarchy for npm-scout.

Only :class:`FeedUnavailable` is fatal to a discovery run. The other
registry errors are raised at the HTTP seam and absorbed by the component
that owns the candidate (resolver or line counter).
"""

from __future__ import annotations


class ScoutError(Exception):
    """Base class for all npm-scout errors."""


class FeedUnavailable(ScoutError):
    """The registry change feed could not be read. Aborts the run."""


class MetadataFetchFailed(ScoutError):
    """A package document could not be fetched or decoded."""

    def __init__(self, name: str, reason: str):
        super().__init__(f"Failed to fetch metadata for {name}: {reason}")
        self.name = name
        self.reason = reason


class ArchiveFetchFailed(ScoutError):
    """A package tarball could not be located or downloaded."""


class ExtractionFailed(ScoutError):
    """A downloaded tarball could not be unpacked."""


class DateRangeError(ScoutError, ValueError):
    """A date range string such as ``2w`` could not be parsed."""


class CsvFormatError(ScoutError, ValueError):
    """A results CSV is missing required columns or rows."""


class WebhookError(ScoutError):
    """A chat webhook rejected a post."""
