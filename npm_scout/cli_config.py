"""Config commands and shared message helpers for the npm-scout CLI."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from . import config, config_manager
from .cli_groups import config_grp

console = Console()


def print_success(message: str):
    """Print success message."""
    typer.echo(typer.style(f"✅ {message}", fg=typer.colors.GREEN))


def print_error(message: str):
    """Print error message."""
    typer.echo(typer.style(f"❌ {message}", fg=typer.colors.RED), err=True)


def print_info(message: str):
    """Print info message."""
    typer.echo(typer.style(f"ℹ️  {message}", fg=typer.colors.BLUE))


def print_warning(message: str):
    typer.echo(typer.style(f"⚠️  {message}", fg=typer.colors.YELLOW))


@config_grp.command("show")
def show_config():
    """Show effective configuration values."""
    settings = config_manager.load_config()

    table = Table(title=f"Configuration ({config.CONFIG_FILE})")
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for section, values in settings.items():
        for key, value in values.items():
            shown = "(set)" if key == "webhook_url" and value else str(value)
            table.add_row(f"{section}.{key}", shown)
    console.print(table)


@config_grp.command("set")
def set_config(
    key: str = typer.Argument(..., help="Setting such as discovery.page_size or output.out_dir."),
    value: str = typer.Argument(..., help="New value."),
):
    """Persist a configuration value."""
    try:
        stored = config_manager.set_value(key, value)
    except KeyError:
        known = ", ".join(
            f"{section}.{name}"
            for section, values in config_manager.DEFAULT_CONFIG.items()
            for name in values
        )
        print_error(f"Unknown setting '{key}'. Known settings: {known}")
        raise typer.Exit(code=1)
    except ValueError:
        print_error(f"'{value}' is not a valid value for {key}")
        raise typer.Exit(code=1)
    except OSError as exc:
        print_error(str(exc))
        raise typer.Exit(code=1)

    print_success(f"{key} = {stored}")


@config_grp.command("reset")
def reset_config():
    """Delete the config file and go back to defaults."""
    if config_manager.reset_config():
        print_success("Configuration reset to defaults")
    else:
        print_info("No configuration file to reset")
