"""
Configuration commands.
"""

from __future__ import annotations

from pathlib import Path

import typer
import yaml
from rich.console import Console
from rich.syntax import Syntax

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="Inspect and validate configuration",
    no_args_is_help=True,
)


@app.command("show")
def show_config(
    config_path: Path = typer.Option(
        Path("configs/app.yaml"),
        "--config",
        "-c",
        help="Path to app.yaml",
    ),
) -> None:
    """Show the effective configuration (defaults filled in)."""
    from trendwatch.core.config import ConfigError, load_app_config

    try:
        config = load_app_config(config_path)
    except ConfigError as e:
        err_console.print(f"[red]{e}[/red]")
        if e.details:
            err_console.print(f"[dim]{e.details}[/dim]")
        raise typer.Exit(1)

    data = config.model_dump(mode="json")
    if data["github"].get("token"):
        data["github"]["token"] = "***"

    console.print(Syntax(yaml.safe_dump(data, sort_keys=False), "yaml"))


@app.command("validate")
def validate_config(
    path: Path = typer.Argument(..., help="Configuration file to validate"),
) -> None:
    """Validate a configuration file."""
    from trendwatch.core.config import validate_config_file

    errors = validate_config_file(path)
    if errors:
        err_console.print(f"[red]{path} is invalid:[/red]")
        for error in errors:
            err_console.print(f"  - {error}")
        raise typer.Exit(1)

    console.print(f"[green]OK[/green] {path} is valid")
