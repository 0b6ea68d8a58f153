"""Database management commands."""

from __future__ import annotations

import typer
from rich.table import Table

from buildsvc.cli.options import EnvFileOption, UrlOption, console, setup

db_app = typer.Typer(
    name="db",
    help="Database management operations",
    no_args_is_help=True,
)


@db_app.command(name="init")
def init_database(
    db_url: UrlOption = None,
    env_file: EnvFileOption = None,
) -> None:
    """
    Initialize database schema (idempotent).

    Safe to run multiple times - existing tables are left untouched.
    """
    from buildsvc.db import create_database

    config = setup(env_file, db_url)
    console.print("[bold blue]Checking database...[/bold blue]")
    with create_database(config.database_url, echo=config.sql_echo) as db:
        console.print(f"Database: {db.engine.url}")
        existing = db.table_names()
        db.create_tables()
        created = len(db.table_names()) - len(existing)
    if created:
        console.print(f"[green]✓[/green] Created {created} tables")
    else:
        console.print(
            f"[green]✓[/green] Database already initialized ({len(existing)} tables)"
        )


@db_app.command(name="stats")
def database_stats(
    db_url: UrlOption = None,
    env_file: EnvFileOption = None,
) -> None:
    """
    Display row counts of the main tables.
    """
    from sqlalchemy import func, select

    from buildsvc.db import create_database
    from buildsvc.models.orm import (
        ChangeRequest,
        HistoryElement,
        Package,
        PathElement,
        Project,
        Repository,
    )

    config = setup(env_file, db_url)
    with create_database(config.database_url, echo=config.sql_echo) as db:
        if not db.table_names():
            console.print("[bold red]Error:[/bold red] Database is not initialized")
            raise typer.Exit(code=1)
        console.print(f"[bold blue]Database:[/bold blue] {db.engine.url} ({db.dialect})")

        table = Table(title="Table Statistics")
        table.add_column("Table", style="cyan")
        table.add_column("Rows", style="magenta", justify="right")
        with db.session() as session:
            for model in (
                Project,
                Package,
                Repository,
                PathElement,
                ChangeRequest,
                HistoryElement,
            ):
                count = session.execute(select(func.count()).select_from(model)).scalar()
                table.add_row(model.__tablename__, str(count))
    console.print(table)
