"""Configuration manager for npm-scout using a TOML file."""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict

import toml

from . import config

logger = logging.getLogger(__name__)


# Defaults for every recognised setting, grouped by TOML section
DEFAULT_CONFIG: Dict[str, Dict[str, Any]] = {
    "discovery": {
        "page_size": 200,
        "max_results": 30,
        "max_pages": 1000,
        "concurrency": 10,
        "range": "7d",
    },
    "output": {
        "out_dir": "out",
        "webhook_url": "",
    },
}


def load_full_config() -> Dict[str, Any]:
    """Load the raw TOML config (all sections), or an empty dict."""
    if not config.CONFIG_FILE.exists():
        return {}
    try:
        with open(config.CONFIG_FILE, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", config.CONFIG_FILE, exc)
        return {}


def load_config() -> Dict[str, Dict[str, Any]]:
    """Load configuration merged over the built-in defaults.

    Unknown sections and keys in the file are ignored.

    Returns:
        Dict keyed by section (``discovery``, ``output``).
    """
    merged = copy.deepcopy(DEFAULT_CONFIG)
    stored = load_full_config()
    for section, values in merged.items():
        overrides = stored.get(section, {})
        if not isinstance(overrides, dict):
            continue
        for key in values:
            if key in overrides:
                values[key] = overrides[key]
    return merged


def _save_full_config(data: Dict[str, Any]) -> bool:
    """Write the entire config dict to TOML, preserving all sections."""
    config.CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    try:
        with open(config.CONFIG_FILE, "w", encoding="utf-8") as f:
            toml.dump(data, f)
        return True
    except OSError as exc:
        logger.warning("Could not write config %s: %s", config.CONFIG_FILE, exc)
        return False


def set_value(dotted_key: str, raw_value: str) -> Any:
    """Persist ``section.key = value`` and return the coerced value.

    The value is coerced to the type of the built-in default.

    Raises:
        KeyError: If the key is not a recognised setting.
        ValueError: If the value cannot be coerced.
    """
    section, _, key = dotted_key.partition(".")
    if section not in DEFAULT_CONFIG or key not in DEFAULT_CONFIG[section]:
        raise KeyError(dotted_key)

    default = DEFAULT_CONFIG[section][key]
    value: Any = int(raw_value) if isinstance(default, int) else raw_value

    data = load_full_config()
    data.setdefault(section, {})[key] = value
    if not _save_full_config(data):
        raise OSError(f"Could not write {config.CONFIG_FILE}")
    return value


def reset_config() -> bool:
    """Remove the config file, falling back to defaults."""
    if config.CONFIG_FILE.exists():
        config.CONFIG_FILE.unlink()
        return True
    return False
