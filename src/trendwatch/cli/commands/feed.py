"""
Feed commands for loading repository pages.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, Any, Mapping, Optional

import typer
from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from trendwatch.core.config.models import AppConfig, DisplayConfig
    from trendwatch.core.orchestrator.runner import RunStats

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="Load the repository feed",
    no_args_is_help=True,
)


def _load_config(
    config_path: Path,
    days: int | None = None,
    per_page: int | None = None,
) -> AppConfig:
    """Load app configuration and apply command-line overrides."""
    from trendwatch.core.config import ConfigError, load_app_config
    from trendwatch.core.logging import setup_logging

    try:
        config = load_app_config(config_path)
    except ConfigError as e:
        err_console.print(f"[red]Error loading config:[/red] {e}")
        if e.details:
            err_console.print(f"[dim]{e.details}[/dim]")
        raise typer.Exit(1)

    github_updates: dict[str, Any] = {}
    if days is not None:
        github_updates["created_since_days"] = days
    if per_page is not None:
        github_updates["per_page"] = per_page
    if github_updates:
        config = config.model_copy(
            update={"github": config.github.model_copy(update=github_updates)}
        )

    setup_logging(
        level=config.logging.level,
        log_file=config.logging.file,
        json_format=config.logging.json_format,
        rich_console=config.logging.rich_console,
    )
    return config


def _render_items(items: tuple[Mapping[str, Any], ...], display: DisplayConfig) -> Table:
    """Build a table of repositories honoring the display toggles."""
    table = Table(title=f"Trending repositories ({len(items)})", show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Repository", style="cyan", no_wrap=True)
    if display.show_avatar:
        table.add_column("Owner", style="magenta")
    if display.show_tags:
        table.add_column("Language", style="green")
    if display.show_stars:
        table.add_column("Stars", justify="right", style="yellow")
    if display.show_description:
        table.add_column("Description", overflow="fold")

    for index, item in enumerate(items, start=1):
        owner = item.get("owner") or {}
        row = [str(index), str(item.get("full_name") or item.get("name") or item.get("id"))]
        if display.show_avatar:
            row.append(str(owner.get("login") or "-"))
        if display.show_tags:
            row.append(str(item.get("language") or "-"))
        if display.show_stars:
            row.append(f"{item.get('stargazers_count') or 0:,}")
        if display.show_description:
            row.append(str(item.get("description") or ""))
        table.add_row(*row)

    return table


def _show_summary(stats: RunStats) -> None:
    table = Table(title="Feed Summary")
    table.add_column("Pages", justify="right")
    table.add_column("Items", justify="right", style="green")
    table.add_column("Empty pages", justify="right")
    table.add_column("Rate limits", justify="right", style="yellow")
    table.add_column("Failures", justify="right", style="red")
    table.add_column("Stopped", justify="center")
    table.add_column("Duration", justify="right")

    duration = f"{stats.duration_seconds:.1f}s" if stats.duration_seconds is not None else "-"
    table.add_row(
        str(stats.pages_loaded),
        str(stats.items_total),
        str(stats.empty_pages),
        str(stats.rate_limits),
        str(stats.pages_failed),
        stats.stop_reason or "-",
        duration,
    )
    console.print(table)


async def _run_feed(config: AppConfig, max_pages: int) -> tuple[tuple[Mapping[str, Any], ...], RunStats]:
    from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

    from trendwatch.core.feed.state import FeedState, FeedStatus, cooldown_seconds_remaining
    from trendwatch.core.fetch.retries import RetryConfig
    from trendwatch.core.orchestrator.runner import FeedRunner, build_github_controller

    controller = build_github_controller(config)
    runner = FeedRunner(
        controller,
        max_pages=max_pages,
        retry_config=RetryConfig.from_policy(config.retry),
    )

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=err_console,
        transient=True,
    ) as progress:
        task = progress.add_task("[cyan]Loading repositories...[/cyan]", total=None)

        def on_state(state: FeedState) -> None:
            if state.status is FeedStatus.FAILED and state.cooldown_until is not None:
                remaining = cooldown_seconds_remaining(state, controller.clock.now())
                description = f"[yellow]Rate limited - retrying page {state.last_attempted_page} in {remaining}s[/yellow]"
            elif state.status is FeedStatus.LOADING:
                description = f"[cyan]Loading page {state.page} ({len(state.items)} repositories)...[/cyan]"
            else:
                description = f"[cyan]{len(state.items)} repositories loaded[/cyan]"
            progress.update(task, description=description)

        controller.subscribe(on_state)
        try:
            stats = await runner.run()
        finally:
            await controller.close()
            await controller.fetcher.source.close()

    return controller.items, stats


@app.command("run")
def run_feed(
    config_path: Path = typer.Option(
        Path("configs/app.yaml"),
        "--config",
        "-c",
        help="Path to app.yaml",
    ),
    max_pages: Optional[int] = typer.Option(
        None,
        "--max-pages",
        "-n",
        min=1,
        help="Maximum pages to load (default: feed.max_pages)",
    ),
    days: Optional[int] = typer.Option(
        None,
        "--days",
        "-d",
        min=1,
        help="Repositories created within the last N days",
    ),
    per_page: Optional[int] = typer.Option(
        None,
        "--per-page",
        min=1,
        max=100,
        help="Repositories per page",
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print items as JSON lines instead of a table",
    ),
) -> None:
    """Load trending repositories page by page.

    Waits out rate limits and retries transport failures with backoff.

    Examples:
        trendwatch feed run
        trendwatch feed run --max-pages 3 --days 30
        trendwatch feed run --json > repos.jsonl
    """
    from trendwatch.core.logging import json_dumps

    config = _load_config(config_path, days=days, per_page=per_page)
    pages = max_pages or config.feed.max_pages

    items, stats = asyncio.run(_run_feed(config, pages))

    if as_json:
        for item in items:
            typer.echo(json_dumps(item))
    else:
        console.print(_render_items(items, config.display))
        console.print()
        _show_summary(stats)

    if not stats.ok:
        for error in stats.errors:
            err_console.print(f"[red]{error}[/red]")
        raise typer.Exit(1)


@app.command("page")
def fetch_page(
    page: int = typer.Argument(..., min=1, help="Page number to fetch"),
    config_path: Path = typer.Option(
        Path("configs/app.yaml"),
        "--config",
        "-c",
        help="Path to app.yaml",
    ),
    days: Optional[int] = typer.Option(
        None,
        "--days",
        "-d",
        min=1,
        help="Repositories created within the last N days",
    ),
) -> None:
    """Fetch a single page and show the outcome."""
    from trendwatch.core.fetch.page_fetcher import Failed, Ok, RateLimited
    from trendwatch.core.orchestrator.runner import build_github_controller

    config = _load_config(config_path, days=days)

    async def _fetch():
        controller = build_github_controller(config)
        try:
            return await controller.fetcher.fetch_page(page, frozenset())
        finally:
            await controller.close()
            await controller.fetcher.source.close()

    outcome = asyncio.run(_fetch())

    if isinstance(outcome, Ok):
        console.print(_render_items(outcome.new_items, config.display))
    elif isinstance(outcome, RateLimited):
        from datetime import datetime, timezone

        reset = datetime.fromtimestamp(outcome.reset_at_epoch_millis / 1000, tz=timezone.utc)
        err_console.print(
            f"[yellow]Rate limited on page {outcome.page_number}; "
            f"resets at {reset.isoformat()}[/yellow]"
        )
        raise typer.Exit(2)
    elif isinstance(outcome, Failed):
        err_console.print(f"[red]Page {outcome.page_number} failed:[/red] {outcome.message}")
        raise typer.Exit(1)
