"""CSV export and import of discovery results."""

from __future__ import annotations

import csv
import io
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from . import config
from .errors import CsvFormatError
from .models import PackageInfo
from .registry import package_path

logger = logging.getLogger(__name__)

LINE_COLUMNS = ("Source Lines", "JS Lines")


def render_csv(packages: Sequence[PackageInfo]) -> str:
    """Render packages as CSV text.

    ``Source Lines`` and ``AI Summary`` columns appear only when at least one
    package carries the value.
    """
    has_lines = any(pkg.source_line_count is not None for pkg in packages)
    has_summaries = any(pkg.ai_summary for pkg in packages)

    headers = ["Name", "Version", "Description", "Published", "Versions", "Has CLI"]
    if has_lines:
        headers.append("Source Lines")
    if has_summaries:
        headers.append("AI Summary")
    headers.append("URL")

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)
    for pkg in packages:
        row = [
            pkg.name,
            pkg.latest_version,
            pkg.description,
            pkg.first_published_at.date().isoformat(),
            str(pkg.version_count),
            "Yes" if pkg.has_executable else "No",
        ]
        if has_lines:
            row.append(str(pkg.source_line_count or 0))
        if has_summaries:
            row.append(pkg.ai_summary or "")
        row.append(pkg.npm_url)
        writer.writerow(row)
    return buffer.getvalue()


def write_csv(packages: Sequence[PackageInfo], out_dir: str | Path = "out") -> Path:
    """Write ``npm-packages-<epoch ms>.csv`` into ``out_dir`` and return its path."""
    directory = Path(out_dir)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"npm-packages-{int(time.time() * 1000)}.csv"
    path.write_text(render_csv(packages), encoding="utf-8")
    logger.info("Wrote %d package(s) to %s", len(packages), path)
    return path


def _parse_date(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return datetime.now(timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None or not value.strip():
        return None
    try:
        return int(value)
    except ValueError:
        return None


def read_csv(path: str | Path) -> List[PackageInfo]:
    """Load packages from a CSV written by :func:`write_csv`.

    Raises:
        CsvFormatError: If the file has no data rows or lacks Name/Version.
    """
    # undecodable bytes become U+FFFD rather than aborting the import
    text = Path(path).read_text(encoding="utf-8", errors="replace")
    reader = csv.DictReader(io.StringIO(text))
    try:
        headers = [h.strip() for h in (reader.fieldnames or [])]
        raw_rows = list(reader)
    except csv.Error as exc:
        raise CsvFormatError(f"Malformed CSV: {exc}") from exc
    if "Name" not in headers or "Version" not in headers:
        raise CsvFormatError("CSV must have Name and Version columns")

    packages: List[PackageInfo] = []
    for raw in raw_rows:
        row: Dict[str, str] = {(k or "").strip(): (v or "") for k, v in raw.items()}
        name = row.get("Name", "")
        if not name:
            continue
        lines = next(
            (_parse_int(row.get(col)) for col in LINE_COLUMNS if col in row), None
        )
        packages.append(
            PackageInfo(
                name=name,
                latest_version=row.get("Version", ""),
                description=row.get("Description", ""),
                first_published_at=_parse_date(row.get("Published", "")),
                npm_url=row.get("URL") or f"{config.NPM_PACKAGE_URL}/{package_path(name)}",
                version_count=_parse_int(row.get("Versions")) or 1,
                has_executable=row.get("Has CLI") == "Yes",
                source_line_count=lines,
                ai_summary=row.get("AI Summary") or None,
            )
        )

    if not packages:
        raise CsvFormatError("CSV file is empty or has no data rows")
    return packages
