"""Count source lines in an npm package by downloading its tarball."""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tarfile
import tempfile
import zlib
from pathlib import Path, PurePosixPath
from typing import Iterable, Optional, Set, Tuple

from . import config
from .errors import ArchiveFetchFailed, ExtractionFailed, MetadataFetchFailed, ScoutError
from .models import LineCountResult
from .registry import RegistryClient

logger = logging.getLogger(__name__)


def _is_safe_member(member: tarfile.TarInfo) -> bool:
    path = PurePosixPath(member.name)
    return not path.is_absolute() and ".." not in path.parts


def extract_tarball(archive: Path, dest: Path) -> int:
    """Unpack regular files from ``archive`` into ``dest``.

    Links, devices and members escaping ``dest`` are ignored.

    Returns:
        Number of files written.

    Raises:
        ExtractionFailed: If the archive is corrupt or cannot be written out.
    """
    written = 0
    dest.mkdir(parents=True, exist_ok=True)
    try:
        with tarfile.open(archive, "r:*") as tar:
            for member in tar:
                if not member.isfile() or not _is_safe_member(member):
                    continue
                target = dest.joinpath(*PurePosixPath(member.name).parts)
                target.parent.mkdir(parents=True, exist_ok=True)
                source = tar.extractfile(member)
                if source is None:
                    continue
                with source, open(target, "wb") as out:
                    shutil.copyfileobj(source, out)
                written += 1
    except (tarfile.TarError, EOFError, zlib.error, OSError) as exc:
        raise ExtractionFailed(f"Could not extract {archive.name}: {exc}") from exc
    return written


def count_source_lines(root: Path, extensions: Iterable[str] = config.SOURCE_EXTENSIONS) -> Tuple[int, int]:
    """Sum line counts of source files under ``root``.

    A file with ``n`` newline characters counts as ``n + 1`` lines.
    ``node_modules`` and dot-directories are skipped at any depth, as are
    files that cannot be read.

    Returns:
        Tuple of (total lines, files counted).
    """
    wanted = {ext.lower() for ext in extensions}
    total_lines = 0
    file_count = 0

    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [
            d for d in dirnames if d not in config.SKIP_DIRS and not d.startswith(".")
        ]
        for filename in filenames:
            if os.path.splitext(filename)[1].lower() not in wanted:
                continue
            try:
                with open(os.path.join(dirpath, filename), "r", encoding="utf-8", errors="replace") as fh:
                    content = fh.read()
            except OSError:
                continue
            total_lines += content.count("\n") + 1
            file_count += 1

    return total_lines, file_count


class LineCounter:
    """Download, unpack and measure one package version at a time.

    Every call works in its own temporary directory, removed on return.
    """

    def __init__(
        self,
        registry: RegistryClient,
        extensions: Optional[Set[str]] = None,
        scratch_root: Optional[Path] = None,
    ):
        self.registry = registry
        self.extensions = extensions or set(config.SOURCE_EXTENSIONS)
        self.scratch_root = scratch_root

    async def count(self, name: str, version: str) -> int:
        """Return the source line count, or 0 if counting failed."""
        result = await self.measure(name, version)
        return result.lines

    async def measure(self, name: str, version: str) -> LineCountResult:
        """Count source lines, reporting failures instead of raising."""
        with tempfile.TemporaryDirectory(
            prefix="npm-scout-", dir=self.scratch_root, ignore_cleanup_errors=True
        ) as tmp:
            scratch = Path(tmp)
            try:
                tarball_url = await self._tarball_url(name, version)
                archive = scratch / "package.tgz"
                await self.registry.download(tarball_url, archive)
                extract_dir = scratch / "extracted"
                await asyncio.to_thread(extract_tarball, archive, extract_dir)
                lines, files = await asyncio.to_thread(
                    count_source_lines, extract_dir, self.extensions
                )
            except (ScoutError, OSError) as exc:
                logger.warning("Line count failed for %s@%s: %s", name, version, exc)
                return LineCountResult(error=str(exc) or type(exc).__name__)

        logger.debug("%s@%s: %d lines in %d files", name, version, lines, files)
        return LineCountResult(lines=lines, files=files)

    async def _tarball_url(self, name: str, version: str) -> str:
        try:
            document = await self.registry.get_document(name)
        except MetadataFetchFailed as exc:
            raise ArchiveFetchFailed(str(exc)) from exc

        versions = document.get("versions")
        version_data = versions.get(version) if isinstance(versions, dict) else None
        dist = version_data.get("dist") if isinstance(version_data, dict) else None
        tarball = dist.get("tarball") if isinstance(dist, dict) else None
        if not isinstance(tarball, str) or not tarball:
            raise ArchiveFetchFailed(f"No tarball found for {name}@{version}")
        return tarball
