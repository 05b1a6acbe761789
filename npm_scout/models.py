"""Core data models shared by the feed, filter and discovery layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple


@dataclass
class PackageInfo:
    name: str
    latest_version: str
    description: str
    first_published_at: datetime
    npm_url: str
    version_count: int
    has_executable: bool = False
    source_line_count: Optional[int] = None
    ai_summary: Optional[str] = None


@dataclass(frozen=True)
class FilterSpec:
    """Filters applied to every eligible package during one run.

    ``min_source_lines`` distinguishes ``None`` (no size filter) from ``0``
    (count lines for reporting, never reject).
    """

    search_terms: Tuple[str, ...] = ()
    partial_match: bool = True
    min_source_lines: Optional[int] = None
    require_executable: bool = False

    @classmethod
    def from_query(
        cls,
        query: str = "",
        partial_match: bool = True,
        min_source_lines: Optional[int] = None,
        require_executable: bool = False,
    ) -> "FilterSpec":
        from .search import parse_search_terms

        return cls(
            search_terms=tuple(parse_search_terms(query)),
            partial_match=partial_match,
            min_source_lines=min_source_lines,
            require_executable=require_executable,
        )


@dataclass(frozen=True)
class DiscoveryBudget:
    page_size: int = 200
    max_results: int = 30
    recency_window_days: int = 7
    max_pages: int = 1000
    concurrency: int = 10

    def __post_init__(self) -> None:
        for name in ("page_size", "max_results", "max_pages", "concurrency"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1, got {getattr(self, name)}")
        if self.recency_window_days < 0:
            raise ValueError(
                f"recency_window_days must not be negative, got {self.recency_window_days}"
            )


@dataclass
class FeedPage:
    ids: List[str]
    next_cursor: Optional[str]


@dataclass
class LineCountResult:
    lines: int = 0
    files: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class DiscoveryResult:
    packages: List[PackageInfo] = field(default_factory=list)
    pages_fetched: int = 0
    candidates_checked: int = 0
    stop_reason: str = "max_pages"
    oldest_seen: Optional[datetime] = None
    newest_seen: Optional[datetime] = None

    def track_published(self, published_at: datetime) -> None:
        """Widen the observed first-publish date range."""
        if self.oldest_seen is None or published_at < self.oldest_seen:
            self.oldest_seen = published_at
        if self.newest_seen is None or published_at > self.newest_seen:
            self.newest_seen = published_at
