"""One-line AI summaries of packages through the ``claude`` CLI."""

from __future__ import annotations

import logging
import shutil
import subprocess
from typing import Sequence

from .models import PackageInfo

logger = logging.getLogger(__name__)

CLAUDE_BINARY = "claude"
SUMMARY_MODEL = "haiku"
SUMMARY_TIMEOUT = 180

PROMPT_TEMPLATE = """Research this npm package and any technologies it integrates with. Then summarize in 10 words max. Sacrifice grammar for extreme brevity. Focus on what it does and what it integrates with, not quality.

Package: {name}
Description: {description}
URL: {url}

Response format: Just the summary, nothing else."""


def claude_available() -> bool:
    """Check whether the ``claude`` CLI is installed and runs."""
    if shutil.which(CLAUDE_BINARY) is None:
        return False
    try:
        result = subprocess.run(
            [CLAUDE_BINARY, "--version"], capture_output=True, text=True, timeout=15
        )
    except (OSError, subprocess.TimeoutExpired):
        return False
    return result.returncode == 0


def summarize_package(pkg: PackageInfo) -> str | None:
    """Return a short summary of ``pkg``, or None if the CLI failed."""
    prompt = PROMPT_TEMPLATE.format(name=pkg.name, description=pkg.description, url=pkg.npm_url)
    try:
        result = subprocess.run(
            [CLAUDE_BINARY, "--dangerously-skip-permissions", "--print", "--model", SUMMARY_MODEL, prompt],
            capture_output=True,
            text=True,
            timeout=SUMMARY_TIMEOUT,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        logger.warning("Summary failed for %s: %s", pkg.name, exc)
        return None

    if result.returncode != 0:
        logger.warning(
            "Summary failed for %s: exit code %d %s", pkg.name, result.returncode, result.stderr.strip()
        )
        return None
    return result.stdout.strip() or None


def summarize_packages(packages: Sequence[PackageInfo]) -> int:
    """Fill ``ai_summary`` in place and return how many succeeded."""
    done = 0
    for pkg in packages:
        summary = summarize_package(pkg)
        if summary:
            pkg.ai_summary = summary
            done += 1
    return done
