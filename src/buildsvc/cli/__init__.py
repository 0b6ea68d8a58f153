"""Console script for buildsvc."""

from __future__ import annotations

import typer
from rich.console import Console

app = typer.Typer(
    name="buildsvc",
    help="Build service orchestration core - projects, packages and source commands",
    no_args_is_help=True,
)
console = Console()

# Import subcommand apps
from buildsvc.cli.db_commands import db_app  # noqa: E402
from buildsvc.cli.source_commands import source_app  # noqa: E402

# Register subcommands
app.add_typer(db_app, name="db", help="Database management operations")
app.add_typer(source_app, name="source", help="Project and package operations")


if __name__ == "__main__":
    app()
