"""
TrendWatch CLI - Main entry point.

A terminal-first feed of trending repositories with pagination,
deduplication and rate-limit recovery.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.traceback import install as install_rich_traceback

from trendwatch import __app_name__, __version__

# Load environment variables from .env (if present)
load_dotenv()

# Install rich traceback for better error display
install_rich_traceback(show_locals=False, width=120)

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name=__app_name__,
    help="Terminal-first trending repository feed",
    rich_markup_mode="rich",
    no_args_is_help=True,
    pretty_exceptions_show_locals=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold cyan]{__app_name__}[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """TrendWatch - trending repository feed."""
    pass


# =============================================================================
# Import and register subcommand modules
# =============================================================================

from .commands import config, feed  # noqa: E402

app.add_typer(feed.app, name="feed", help="Load the repository feed")
app.add_typer(config.app, name="config", help="Inspect and validate configuration")


# =============================================================================
# Init Command
# =============================================================================


@app.command()
def init(
    path: Path = typer.Option(
        Path("configs/app.yaml"),
        "--path",
        "-p",
        help="Where to write the configuration",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite existing configuration",
    ),
) -> None:
    """Write a default configuration file."""
    from trendwatch.core.config import write_default_config

    if path.exists() and not force:
        err_console.print(f"[yellow]{path} already exists.[/yellow] Use --force to overwrite.")
        raise typer.Exit(1)

    write_default_config(path)

    console.print(Panel.fit(
        "[bold green]OK - TrendWatch initialized![/bold green]\n\n"
        f"Created [cyan]{path}[/cyan]\n\n"
        "Next steps:\n"
        "  1. Optionally export [yellow]GITHUB_TOKEN[/yellow] for a higher rate limit\n"
        "  2. Load the feed: [yellow]trendwatch feed run[/yellow]",
        title="[bold]Initialization Complete[/bold]",
        border_style="green",
    ))


# =============================================================================
# Entry Point
# =============================================================================


def run() -> None:
    """Run the CLI application."""
    app()


if __name__ == "__main__":
    run()
