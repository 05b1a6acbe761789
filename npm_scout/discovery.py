"""Discovery orchestrator: page through the change feed and fan out workers."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from .eligibility import EligibilityResolver
from .feed import ChangeFeedPaginator
from .filters import FilterChain
from .line_counter import LineCounter
from .models import DiscoveryBudget, DiscoveryResult, FilterSpec, PackageInfo
from .registry import RegistryClient

logger = logging.getLogger(__name__)


class WorkQueue:
    """Shared cursor over one page of candidate ids.

    Workers pull the next index under a lock, so fast workers absorb more of
    the page and no id is handed out twice.
    """

    def __init__(self, items: Sequence[str]):
        self._items = tuple(items)
        self._next = 0
        self._lock = asyncio.Lock()

    async def take(self) -> Optional[str]:
        async with self._lock:
            if self._next >= len(self._items):
                return None
            item = self._items[self._next]
            self._next += 1
            return item

    def __len__(self) -> int:
        return len(self._items)


class ResultSet:
    """Append-only, bounded accumulator of accepted packages."""

    def __init__(self, limit: int):
        self.limit = limit
        self._items: List[PackageInfo] = []
        self._lock = asyncio.Lock()

    @property
    def full(self) -> bool:
        return len(self._items) >= self.limit

    async def add(self, info: PackageInfo) -> bool:
        """Append ``info`` unless the limit is reached. Returns whether it was kept."""
        async with self._lock:
            if len(self._items) >= self.limit:
                return False
            self._items.append(info)
            return True

    def items(self) -> List[PackageInfo]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)


class DiscoveryOrchestrator:
    """Drive pagination and the per-page worker pool."""

    def __init__(
        self,
        paginator: ChangeFeedPaginator,
        resolver: EligibilityResolver,
        line_counter: Optional[LineCounter] = None,
    ):
        self.paginator = paginator
        self.resolver = resolver
        self.line_counter = line_counter

    async def discover(
        self, spec: FilterSpec, budget: DiscoveryBudget, now: datetime
    ) -> DiscoveryResult:
        """Collect up to ``budget.max_results`` new packages passing ``spec``.

        Stops when the result set is full, when a page comes back empty or
        the cursor stops advancing, or after ``budget.max_pages`` pages.

        Raises:
            FeedUnavailable: If any page of the change feed cannot be read.
        """
        chain = FilterChain(spec, self.line_counter)
        accepted = ResultSet(budget.max_results)
        result = DiscoveryResult()
        cursor: Optional[str] = None

        logger.info(
            "Searching for packages first published within the last %d day(s), %d per page",
            budget.recency_window_days,
            budget.page_size,
        )
        if spec.search_terms:
            logger.info("Filtering by name or description containing: %s", " AND ".join(spec.search_terms))
        if spec.min_source_lines is not None:
            logger.info("Filtering by minimum %d source lines", spec.min_source_lines)
        if spec.require_executable:
            logger.info("Filtering for packages with bin entries only")

        while result.pages_fetched < budget.max_pages:
            page = await self.paginator.fetch_page(budget.page_size, cursor)
            result.pages_fetched += 1

            if not page.ids:
                logger.info("No more packages available in changes feed.")
                result.stop_reason = "feed_exhausted"
                break

            logger.info("Page %d: %d unique package ids", result.pages_fetched, len(page.ids))
            result.candidates_checked += len(page.ids)

            queue = WorkQueue(page.ids)
            workers = [
                asyncio.create_task(self._worker(queue, accepted, chain, budget, now, result))
                for _ in range(min(budget.concurrency, len(queue)))
            ]
            await asyncio.gather(*workers)

            logger.info(
                "Page %d complete. Found %d/%d matching packages so far.",
                result.pages_fetched,
                len(accepted),
                budget.max_results,
            )

            if accepted.full:
                result.stop_reason = "max_results"
                break
            if page.next_cursor is None or page.next_cursor == cursor:
                logger.info("Change feed cursor did not advance; stopping.")
                result.stop_reason = "feed_exhausted"
                break
            cursor = page.next_cursor
        else:
            logger.info("Reached maximum page limit (%d pages).", budget.max_pages)
            result.stop_reason = "max_pages"

        result.packages = accepted.items()
        logger.info(
            "Search complete: checked %d packages across %d page(s), found %d.",
            result.candidates_checked,
            result.pages_fetched,
            len(result.packages),
        )
        return result

    async def _worker(
        self,
        queue: WorkQueue,
        accepted: ResultSet,
        chain: FilterChain,
        budget: DiscoveryBudget,
        now: datetime,
        stats: DiscoveryResult,
    ) -> None:
        while not accepted.full:
            name = await queue.take()
            if name is None:
                return
            try:
                info = await self.resolver.resolve(name, budget.recency_window_days, now)
                if info is None:
                    continue
                stats.track_published(info.first_published_at)
                if not await chain.evaluate(info):
                    continue
                if await accepted.add(info):
                    lines = (
                        f" ({info.source_line_count} source lines)"
                        if info.source_line_count is not None
                        else ""
                    )
                    logger.info(
                        "Found: %s@%s%s [%d/%d]",
                        info.name,
                        info.latest_version,
                        lines,
                        len(accepted),
                        accepted.limit,
                    )
            except Exception:
                logger.exception("Error checking %s", name)


async def discover_packages(
    spec: FilterSpec,
    budget: DiscoveryBudget,
    now: datetime,
    registry: Optional[RegistryClient] = None,
) -> DiscoveryResult:
    """Build the default component graph around one registry client and run it."""
    owns_registry = registry is None
    if registry is None:
        registry = RegistryClient(max_connections=max(20, budget.concurrency))
    try:
        orchestrator = DiscoveryOrchestrator(
            paginator=ChangeFeedPaginator(registry),
            resolver=EligibilityResolver(registry),
            line_counter=LineCounter(registry),
        )
        return await orchestrator.discover(spec, budget, now)
    finally:
        if owns_registry:
            await registry.close()
