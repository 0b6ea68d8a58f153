"""Options and configuration loading shared by the subcommands."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console

from buildsvc.config import ServiceConfig, load_config
from buildsvc.utils.logging import configure_logging

console = Console()

EnvFileOption = Annotated[
    Optional[Path],
    typer.Option("--env-file", "-e", help="Path to .env file to load"),
]
UrlOption = Annotated[
    Optional[str],
    typer.Option("--url", help="Database URL (default: BUILDSVC_DATABASE_URL)"),
]


def setup(env_file: Path | None, db_url: str | None = None) -> ServiceConfig:
    """Load configuration, apply a ``--url`` override and configure logging."""
    try:
        config = load_config(env_file)
    except FileNotFoundError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc
    if env_file is not None:
        console.print(f"[green]Loaded environment from: {env_file}[/green]")
    if db_url is not None:
        config = config.model_copy(update={"database_url": db_url})
    configure_logging(config.log_level)
    return config
