"""Free-text matching of package names and descriptions."""

from __future__ import annotations

import re
from typing import Iterable, List


def parse_search_terms(query: str) -> List[str]:
    """Split a query on whitespace into lowercase, de-duplicated terms."""
    terms: List[str] = []
    for token in query.split():
        term = token.lower()
        if term not in terms:
            terms.append(term)
    return terms


def matches_search(text: str, terms: Iterable[str], partial_match: bool = True) -> bool:
    """Return True if every term occurs in ``text`` (AND, case-insensitive).

    With ``partial_match`` a term may occur inside a longer word
    (``react`` matches ``ReactRouter``); otherwise it must stand on word
    boundaries. No terms always match; blank text never matches a term.
    """
    terms = list(terms)
    if not terms:
        return True
    if not text or not text.strip():
        return False

    haystack = text.lower()
    for term in terms:
        needle = term.lower()
        if partial_match:
            if needle not in haystack:
                return False
        elif not re.search(rf"\b{re.escape(needle)}\b", haystack):
            return False
    return True
