"""Typer-based CLI for npm-scout."""

from __future__ import annotations

import asyncio
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from . import __version__, config_manager
from .cli_config import print_error, print_info, print_success, print_warning
from .cli_groups import config_grp
from .csv_export import read_csv, write_csv
from .date_range import format_days_as_range, parse_date_range
from .discovery import discover_packages
from .errors import CsvFormatError, DateRangeError, FeedUnavailable, WebhookError
from .logging_setup import configure_logging
from .mattermost import post_packages
from .models import DiscoveryBudget, FilterSpec, PackageInfo
from .summaries import claude_available, summarize_packages

console = Console()

app = typer.Typer(
    help="📦 npm-scout — find truly new packages on the npm registry.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.add_typer(config_grp, name="config")


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"npm-scout v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log progress to the console."),
):
    """npm-scout: discover packages whose first version was published recently."""
    load_dotenv()
    configure_logging(verbose=verbose)


# ------------------------------------------------------------------
# Interactive prompts
# ------------------------------------------------------------------

def _prompt_range(default: str) -> int:
    while True:
        text = typer.prompt("Date range for packages (e.g. 7d, 2w, 1m, 2y)", default=default)
        try:
            return parse_date_range(text).days
        except DateRangeError as exc:
            print_error(str(exc))


def _prompt_min_lines() -> Optional[int]:
    while True:
        text = typer.prompt(
            "Minimum source lines (leave empty to skip this filter)",
            default="",
            show_default=False,
        ).strip()
        if not text:
            return None
        try:
            value = int(text)
        except ValueError:
            value = -1
        if value >= 0:
            return value
        print_error("Must be a non-negative number or empty")


def _select_packages(packages: Sequence[PackageInfo]) -> List[PackageInfo]:
    for idx, pkg in enumerate(packages, 1):
        desc = pkg.description[:60] + ("..." if len(pkg.description) > 60 else "")
        typer.echo(f"  {idx}) {pkg.name} - {desc}")
    while True:
        choice = typer.prompt("Packages to summarize (comma-separated numbers, or 'all')", default="all")
        if choice.strip().lower() == "all":
            return list(packages)
        try:
            picks = [int(part) for part in choice.split(",") if part.strip()]
        except ValueError:
            print_error("Enter numbers separated by commas, or 'all'")
            continue
        if all(1 <= n <= len(packages) for n in picks):
            return [packages[n - 1] for n in dict.fromkeys(picks)]
        print_error(f"Numbers must be between 1 and {len(packages)}")


# ------------------------------------------------------------------
# Output steps shared by `search` and `process-csv`
# ------------------------------------------------------------------

def _render_table(packages: Sequence[PackageInfo]) -> None:
    show_lines = any(pkg.source_line_count is not None for pkg in packages)
    table = Table(show_lines=False)
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Version")
    table.add_column("Published")
    table.add_column("Versions", justify="right")
    table.add_column("CLI")
    if show_lines:
        table.add_column("Lines", justify="right")
    table.add_column("Description")
    for pkg in packages:
        row = [
            pkg.name,
            pkg.latest_version,
            pkg.first_published_at.date().isoformat(),
            str(pkg.version_count),
            "yes" if pkg.has_executable else "",
        ]
        if show_lines:
            row.append(str(pkg.source_line_count or 0))
        row.append(pkg.description or "-")
        table.add_row(*row)
    console.print(table)


def _maybe_summarize(packages: List[PackageInfo], summaries: Optional[bool], interactive: bool) -> None:
    if summaries is False or (summaries is None and not interactive):
        return
    available = claude_available()
    if summaries is None:
        message = "Generate AI summaries for selected packages?"
        if not available:
            message += " (Note: Claude Code CLI not detected)"
        summaries = typer.confirm(message, default=False)
    if not summaries:
        return
    if not available:
        print_error("Claude Code CLI not found. Please install it or ensure it's in your PATH.")
        return

    selected = _select_packages(packages) if interactive else packages
    if not selected:
        return
    with console.status("Generating AI summaries..."):
        done = summarize_packages(selected)
    print_info(f"Summarized {done}/{len(selected)} package(s)")


def _webhook_url(settings: dict) -> str:
    return os.environ.get("MATTERMOST_WEBHOOK_URL") or settings["output"].get("webhook_url") or ""


def _finish(packages: List[PackageInfo], out_dir: Path, webhook_url: str) -> None:
    csv_path = write_csv(packages, out_dir)
    print_info(f"CSV file saved: {csv_path}")

    if not webhook_url:
        return
    try:
        with console.status("Posting to Mattermost..."):
            posts = post_packages(packages, webhook_url)
    except WebhookError as exc:
        print_error(str(exc))
        raise typer.Exit(code=1)
    print_success(f"Posted to Mattermost ({posts} message(s))")


# ------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------

@app.command("search")
def search(
    query: Optional[str] = typer.Option(
        None, "--search", "-s", help="Terms to match in name or description (all must match)."
    ),
    date_range: Optional[str] = typer.Option(
        None, "--range", "-r", help="How recent the first publish must be: 3d, 2w, 1m, 2y or days."
    ),
    partial_match: Optional[bool] = typer.Option(
        None, "--partial-match/--whole-word", help="Match terms inside words, or whole words only."
    ),
    min_lines: Optional[int] = typer.Option(
        None, "--min-lines", min=0, help="Minimum source lines (0 counts without filtering)."
    ),
    max_results: Optional[int] = typer.Option(None, "--max-results", min=1, help="Stop after this many matches."),
    page_size: Optional[int] = typer.Option(
        None, "--page-size", "--changes-limit", min=1, help="Change-feed entries per page."
    ),
    max_pages: Optional[int] = typer.Option(None, "--max-pages", min=1, help="Maximum feed pages to walk."),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", "-c", min=1, help="Parallel package checks."),
    require_bin: Optional[bool] = typer.Option(
        None, "--require-bin/--no-require-bin", help="Only keep packages with executables."
    ),
    out_dir: Optional[Path] = typer.Option(None, "--out-dir", "-o", help="Directory for the CSV file."),
    summaries: Optional[bool] = typer.Option(
        None, "--summaries/--no-summaries", help="Generate AI summaries with the claude CLI."
    ),
    no_input: bool = typer.Option(False, "--no-input", help="Never prompt; use defaults for unset options."),
):
    """Find packages whose first version was published recently."""
    settings = config_manager.load_config()
    defaults = settings["discovery"]
    interactive = not no_input

    window_days: Optional[int] = None
    if date_range is not None:
        try:
            window_days = parse_date_range(date_range).days
        except DateRangeError as exc:
            raise typer.BadParameter(str(exc), param_hint="--range")

    if query is None:
        query = (
            typer.prompt(
                "Search for packages by name or description (leave empty to skip)",
                default="",
                show_default=False,
            )
            if interactive
            else ""
        )
    if window_days is None:
        if interactive:
            window_days = _prompt_range(str(defaults["range"]))
        else:
            try:
                window_days = parse_date_range(str(defaults["range"])).days
            except DateRangeError as exc:
                print_error(f"Invalid discovery.range in config: {exc}")
                raise typer.Exit(code=1)
    if partial_match is None:
        partial_match = True
        if interactive and query.strip():
            partial_match = typer.confirm(
                "Enable partial word matching? (e.g., 'react' matches 'reactivity')", default=True
            )
    if min_lines is None and interactive:
        min_lines = _prompt_min_lines()
    if require_bin is None:
        require_bin = typer.confirm("Only show packages with CLI binaries?", default=False) if interactive else False

    spec = FilterSpec.from_query(
        query,
        partial_match=partial_match,
        min_source_lines=min_lines,
        require_executable=require_bin,
    )
    try:
        budget = DiscoveryBudget(
            page_size=page_size or int(defaults["page_size"]),
            max_results=max_results or int(defaults["max_results"]),
            recency_window_days=window_days,
            max_pages=max_pages or int(defaults["max_pages"]),
            concurrency=concurrency or int(defaults["concurrency"]),
        )
    except ValueError as exc:
        print_error(f"Invalid discovery settings: {exc}")
        raise typer.Exit(code=1)

    print_info(f"Looking for packages first published in the last {format_days_as_range(window_days)}")
    now = datetime.now(timezone.utc)
    try:
        with console.status("Fetching recent npm packages..."):
            result = asyncio.run(discover_packages(spec, budget, now))
    except FeedUnavailable as exc:
        print_error(f"Change feed unavailable: {exc}")
        raise typer.Exit(code=1)

    typer.echo(
        f"Checked {result.candidates_checked} package(s) across {result.pages_fetched} page(s)."
    )
    if result.oldest_seen and result.newest_seen:
        typer.echo(
            f"Date range examined: {result.oldest_seen.date().isoformat()} "
            f"to {result.newest_seen.date().isoformat()}"
        )

    packages = result.packages
    if not packages:
        print_warning("No new packages found matching your criteria.")
        raise typer.Exit(code=0)

    print_success(f"Found {len(packages)} package(s)!")
    _render_table(packages)
    _maybe_summarize(packages, summaries, interactive)
    _finish(packages, out_dir or Path(settings["output"]["out_dir"]), _webhook_url(settings))


@app.command("process-csv")
def process_csv(
    csv_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="CSV written by a previous search."),
    out_dir: Optional[Path] = typer.Option(None, "--out-dir", "-o", help="Directory for the new CSV file."),
    summaries: Optional[bool] = typer.Option(
        None, "--summaries/--no-summaries", help="Generate AI summaries with the claude CLI."
    ),
    no_input: bool = typer.Option(False, "--no-input", help="Never prompt."),
):
    """Reload a results CSV, optionally summarize, then save and post it again."""
    settings = config_manager.load_config()
    try:
        packages = read_csv(csv_path)
    except CsvFormatError as exc:
        print_error(f"Failed to process CSV: {exc}")
        raise typer.Exit(code=1)

    print_success(f"Loaded {len(packages)} package(s) from CSV!")
    _maybe_summarize(packages, summaries, not no_input)
    _finish(packages, out_dir or Path(settings["output"]["out_dir"]), _webhook_url(settings))


if __name__ == "__main__":
    app()
