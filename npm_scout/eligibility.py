"""Decide whether a package's first version falls inside the recency window."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from . import config
from .errors import MetadataFetchFailed
from .models import PackageInfo
from .registry import RegistryClient, package_path

logger = logging.getLogger(__name__)

MS_PER_DAY = 86_400_000
_ONE_MS = timedelta(milliseconds=1)
_WHITESPACE_RUN = re.compile(r"[\r\n\t]+")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a registry ISO-8601 timestamp into an aware UTC datetime."""
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def age_in_days(created: datetime, now: datetime) -> int:
    """Whole days between ``created`` and ``now``, truncated toward zero."""
    delta_ms = (now - created) // _ONE_MS
    return int(delta_ms / MS_PER_DAY)


def within_window(created: datetime, now: datetime, window_days: int) -> bool:
    if created > now:
        return False
    return 0 <= age_in_days(created, now) <= window_days


def normalize_description(text: Any) -> str:
    if not isinstance(text, str):
        return ""
    return _WHITESPACE_RUN.sub(" ", text).strip()


def _declares_executable(version_data: Any) -> bool:
    if not isinstance(version_data, dict):
        return False
    bin_entry = version_data.get("bin")
    if isinstance(bin_entry, dict):
        return len(bin_entry) > 0
    # "bin": "./cli.js" is npm shorthand for one executable named after the package
    return isinstance(bin_entry, str) and bool(bin_entry.strip())


def build_package_info(
    name: str, document: Dict[str, Any], window_days: int, now: datetime
) -> Optional[PackageInfo]:
    """Apply the eligibility rules to an already fetched registry document."""
    versions = document.get("versions") or {}
    if not isinstance(versions, dict) or not versions:
        return None

    time_map = document.get("time") or {}
    created = parse_timestamp(time_map.get("created") if isinstance(time_map, dict) else None)
    if created is None or not within_window(created, now, window_days):
        return None

    dist_tags = document.get("dist-tags") or {}
    latest = dist_tags.get("latest") if isinstance(dist_tags, dict) else None
    if not latest:
        latest = list(versions.keys())[-1]
    latest_data = versions.get(latest)

    description = document.get("description")
    if not description and isinstance(latest_data, dict):
        description = latest_data.get("description")

    return PackageInfo(
        name=name,
        latest_version=latest,
        description=normalize_description(description),
        first_published_at=created,
        npm_url=f"{config.NPM_PACKAGE_URL}/{package_path(name)}",
        version_count=len(versions),
        has_executable=_declares_executable(latest_data),
    )


class EligibilityResolver:
    """Fetch registry metadata and keep only recently created packages."""

    def __init__(self, registry: RegistryClient):
        self.registry = registry

    async def resolve(self, name: str, window_days: int, now: datetime) -> Optional[PackageInfo]:
        """Return package info if its first version is within ``window_days`` of ``now``.

        Metadata fetch failures are logged and treated as ineligible.
        """
        try:
            document = await self.registry.get_document(name)
        except MetadataFetchFailed as exc:
            logger.warning("%s", exc)
            return None
        return build_package_info(name, document, window_days, now)
