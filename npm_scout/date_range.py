"""Parse compact date ranges such as ``3d``, ``2w``, ``1m`` or ``14``."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

from .errors import DateRangeError

DAYS_PER_WEEK = 7
DAYS_PER_MONTH = 30
DAYS_PER_YEAR = 365

_UNIT_DAYS = {"d": 1, "w": DAYS_PER_WEEK, "m": DAYS_PER_MONTH, "y": DAYS_PER_YEAR}
_RANGE_PATTERN = re.compile(r"^(\d+)\s*([dwmy])$", re.IGNORECASE)


@dataclass(frozen=True)
class ParsedDateRange:
    days: int
    original: str


def parse_date_range(text: str) -> ParsedDateRange:
    """Convert a range string into a whole number of days.

    A plain positive number is taken as days (fractions are floored).

    Raises:
        DateRangeError: If the string is empty, malformed or not positive.
    """
    trimmed = (text or "").strip()
    if not trimmed:
        raise DateRangeError("Date range cannot be empty")

    try:
        number = float(trimmed)
    except ValueError:
        number = None
    if number is not None and math.isfinite(number) and number > 0:
        return ParsedDateRange(days=math.floor(number), original=trimmed)

    match = _RANGE_PATTERN.match(trimmed)
    if not match:
        raise DateRangeError(
            f'Invalid date range format: "{trimmed}". '
            'Valid formats: "3d" (days), "2w" (weeks), "1m" (months), "2y" (years), '
            'or plain number like "14"'
        )

    amount = int(match.group(1))
    if amount <= 0:
        raise DateRangeError(f"Date range amount must be positive, got: {amount}")
    return ParsedDateRange(days=amount * _UNIT_DAYS[match.group(2).lower()], original=trimmed)


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'}"


def format_days_as_range(days: int) -> str:
    """Render a day count as "2 weeks", "1 month and 3 days", and so on."""
    if days < DAYS_PER_WEEK:
        return _plural(days, "day")
    if days < DAYS_PER_MONTH:
        size, unit = DAYS_PER_WEEK, "week"
    elif days < DAYS_PER_YEAR:
        size, unit = DAYS_PER_MONTH, "month"
    else:
        size, unit = DAYS_PER_YEAR, "year"

    whole, rest = divmod(days, size)
    if rest == 0:
        return _plural(whole, unit)
    return f"{_plural(whole, unit)} and {_plural(rest, 'day')}"
