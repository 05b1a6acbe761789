"""Command groups for the npm-scout CLI.

Provides logical grouping of commands under:
  npm-scout config   — Show and edit ~/.npm-scout/config.toml
"""

from __future__ import annotations

import typer

# ── Configuration group ──────────────────────────────────────
config_grp = typer.Typer(
    help="⚙️  Configuration — discovery defaults and output settings.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
