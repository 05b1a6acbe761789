"""Ordered, short-circuiting filter chain applied to eligible packages.

Stages run cheapest first. Each stage's synchronous ``check`` returns a
:class:`Verdict`; a stage that needs network data answers ``NEEDS_DATA`` and
is then awaited through ``resolve``. The line-count stage is always appended
last by :class:`FilterChain`, so a download only happens for candidates that
survived everything else.
"""

from __future__ import annotations

import enum
import logging
from typing import List, Optional

from .line_counter import LineCounter
from .models import FilterSpec, PackageInfo
from .search import matches_search

logger = logging.getLogger(__name__)


class Verdict(enum.Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    NEEDS_DATA = "needs_data"


class FilterStage:
    """Base class for a single filter predicate."""

    name = "stage"

    def check(self, info: PackageInfo) -> Verdict:
        raise NotImplementedError

    async def resolve(self, info: PackageInfo) -> Verdict:
        """Finish a ``NEEDS_DATA`` check. Pure stages never reach this."""
        return self.check(info)


class ExecutableStage(FilterStage):
    name = "executable"

    def check(self, info: PackageInfo) -> Verdict:
        return Verdict.ACCEPT if info.has_executable else Verdict.REJECT


class TextStage(FilterStage):
    name = "text"

    def __init__(self, terms, partial_match: bool = True):
        self.terms = list(terms)
        self.partial_match = partial_match

    def check(self, info: PackageInfo) -> Verdict:
        if matches_search(info.name, self.terms, self.partial_match):
            return Verdict.ACCEPT
        if matches_search(info.description, self.terms, self.partial_match):
            return Verdict.ACCEPT
        return Verdict.REJECT


class SourceSizeStage(FilterStage):
    """Reject packages with fewer source lines than ``minimum``.

    A minimum of 0 still counts and records lines but never rejects. A failed
    count is recorded as 0 lines, so it rejects under any positive minimum.
    """

    name = "source-size"

    def __init__(self, line_counter: LineCounter, minimum: int):
        self.line_counter = line_counter
        self.minimum = minimum

    def check(self, info: PackageInfo) -> Verdict:
        if info.source_line_count is None:
            return Verdict.NEEDS_DATA
        return Verdict.ACCEPT if info.source_line_count >= self.minimum else Verdict.REJECT

    async def resolve(self, info: PackageInfo) -> Verdict:
        logger.info("Counting source lines for %s@%s...", info.name, info.latest_version)
        result = await self.line_counter.measure(info.name, info.latest_version)
        if not result.ok:
            logger.warning(
                "Treating %s as 0 lines after failed count: %s", info.name, result.error
            )
        info.source_line_count = result.lines
        verdict = self.check(info)
        if verdict is Verdict.REJECT:
            logger.info("  Skipped: %s has only %d source lines", info.name, result.lines)
        return verdict


class FilterChain:
    """Evaluate a :class:`FilterSpec` against package records."""

    def __init__(self, spec: FilterSpec, line_counter: Optional[LineCounter] = None):
        self.spec = spec
        self.stages: List[FilterStage] = []
        if spec.require_executable:
            self.stages.append(ExecutableStage())
        if spec.search_terms:
            self.stages.append(TextStage(spec.search_terms, spec.partial_match))
        if spec.min_source_lines is not None:
            if line_counter is None:
                raise ValueError("min_source_lines requires a LineCounter")
            self.stages.append(SourceSizeStage(line_counter, spec.min_source_lines))

    async def evaluate(self, info: PackageInfo) -> bool:
        """Return True if ``info`` passes every stage, stopping at the first rejection."""
        for stage in self.stages:
            verdict = stage.check(info)
            if verdict is Verdict.NEEDS_DATA:
                verdict = await stage.resolve(info)
            if verdict is Verdict.REJECT:
                logger.debug("%s rejected by %s filter", info.name, stage.name)
                return False
        return True
