"""Paths and registry endpoints for npm-scout."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("NPM_SCOUT_HOME", str(Path.home() / ".npm-scout"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"
LOG_DIR = BASE_DIR / "logs"

REGISTRY_URL = os.environ.get("NPM_SCOUT_REGISTRY_URL", "https://registry.npmjs.org").rstrip("/")
CHANGES_URL = os.environ.get("NPM_SCOUT_CHANGES_URL", "https://replicate.npmjs.com/registry/_changes")
NPM_PACKAGE_URL = "https://www.npmjs.com/package"

# httpx timeout in seconds; the only bound on any network call
HTTP_TIMEOUT = float(os.environ.get("NPM_SCOUT_TIMEOUT", "30"))
USER_AGENT = "npm-scout (+https://github.com/npm-scout/npm-scout)"

SOURCE_EXTENSIONS = {".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs"}
SKIP_DIRS = {"node_modules"}


def ensure_base_dirs() -> None:
    """Create base directories for local state if needed."""
    BASE_DIR.mkdir(parents=True, exist_ok=True)
    LOG_DIR.mkdir(parents=True, exist_ok=True)
