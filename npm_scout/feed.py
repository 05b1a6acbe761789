"""Paginated walker over the registry's global change feed."""

from __future__ import annotations

import logging
from typing import List, Optional

from .errors import FeedUnavailable
from .models import FeedPage
from .registry import RegistryClient

logger = logging.getLogger(__name__)

INTERNAL_ID_PREFIX = "_design/"


class ChangeFeedPaginator:
    """Return one de-duplicated batch of package names per call."""

    def __init__(self, registry: RegistryClient):
        self.registry = registry

    async def fetch_page(self, page_size: int, cursor: Optional[str] = None) -> FeedPage:
        """Fetch ``page_size`` most recent changes after ``cursor``.

        Ids are de-duplicated within the page only, first-seen order kept.

        Raises:
            FeedUnavailable: If the feed cannot be read.
        """
        data = await self.registry.get_changes(page_size, since=cursor)
        if not isinstance(data, dict):
            raise FeedUnavailable("_changes returned an unexpected payload")

        seen = set()
        ids: List[str] = []
        results = data.get("results") or []
        if not isinstance(results, list):
            raise FeedUnavailable("_changes returned results that are not a list")
        for row in results:
            doc_id = row.get("id") if isinstance(row, dict) else None
            if not isinstance(doc_id, str) or not doc_id or doc_id.startswith(INTERNAL_ID_PREFIX):
                continue
            if doc_id not in seen:
                seen.add(doc_id)
                ids.append(doc_id)

        last_seq = data.get("last_seq")
        next_cursor = str(last_seq) if last_seq is not None else None
        logger.debug("Feed page after %s: %d unique ids, next=%s", cursor, len(ids), next_cursor)
        return FeedPage(ids=ids, next_cursor=next_cursor)
