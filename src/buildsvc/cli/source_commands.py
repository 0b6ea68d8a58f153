"""Project and package commands."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Optional

import typer
from rich.markup import escape
from rich.table import Table

from buildsvc.cli.options import EnvFileOption, UrlOption, console, setup

if TYPE_CHECKING:
    from collections.abc import Generator

    from buildsvc.backend.client import BackendClient
    from buildsvc.config import ServiceConfig
    from buildsvc.dispatch import Dispatcher
    from buildsvc.models.schemas import CommandResult

source_app = typer.Typer(
    name="source",
    help="Project and package operations",
    no_args_is_help=True,
)

UserOption = Annotated[
    str,
    typer.Option("--user", "-u", envvar="BUILDSVC_USER", help="Acting user login"),
]
CommentOption = Annotated[
    Optional[str], typer.Option("--comment", "-m", help="Comment recorded in history")
]


def make_client(config: ServiceConfig) -> BackendClient:
    """Backend client used by the source commands."""
    from buildsvc.backend import HttpBackendClient

    return HttpBackendClient(config.backend_url, timeout=config.backend_timeout)


@contextmanager
def open_dispatcher(config: ServiceConfig) -> Generator[Dispatcher, None, None]:
    """
    Build a dispatcher for one CLI invocation.

    Jobs queued by the command run before the dispatcher is closed.
    """
    from buildsvc.authz import RoleAuthorizationOracle
    from buildsvc.backend import BackendGateway, HttpBackendClient
    from buildsvc.db import create_database
    from buildsvc.dispatch import Dispatcher
    from buildsvc.services import InMemoryJobQueue

    db = create_database(config.database_url, echo=config.sql_echo)
    client = make_client(config)
    try:
        if not db.table_names():
            console.print(
                "[bold red]Error:[/bold red] Database is not initialized, run 'buildsvc db init'"
            )
            raise typer.Exit(code=1)
        dispatcher = Dispatcher(
            db,
            BackendGateway(client),
            RoleAuthorizationOracle(config.admins),
            InMemoryJobQueue(),
        )
        yield dispatcher
        ran = dispatcher.run_jobs()
        if ran:
            console.print(f"Ran {ran} queued job(s)")
    finally:
        if isinstance(client, HttpBackendClient):
            client.close()
        db.close()


def print_result(result: CommandResult) -> None:
    """Print a command result; exit with code 1 if it failed."""
    if not result.ok:
        label = escape(f"[{result.code}]")
        console.print(f"[bold red]Error[/bold red] {label}: {escape(result.message)}")
        if result.data:
            console.print_json(data=result.data)
        raise typer.Exit(code=1)
    label = "queued" if result.code == "invoked" else "done"
    console.print(f"[green]✓[/green] {escape(result.message or label)}")
    if result.data:
        console.print_json(data=result.data)


def parse_params(values: list[str] | None) -> dict[str, str]:
    """Parse ``key=value`` pairs; a bare ``key`` means ``key=1``."""
    params: dict[str, str] = {}
    for value in values or []:
        key, sep, val = value.partition("=")
        if not key:
            console.print(f"[bold red]Error:[/bold red] Invalid parameter '{value}'")
            raise typer.Exit(code=2)
        params[key] = val if sep else "1"
    return params


@source_app.command(name="cmd")
def run_command(
    verb: Annotated[str, typer.Argument(help="Command verb, e.g. branch")],
    project: Annotated[str, typer.Argument(help="Addressed project")],
    package: Annotated[Optional[str], typer.Argument(help="Addressed package")] = None,
    param: Annotated[
        Optional[list[str]],
        typer.Option("--param", "-p", help="Command parameter as key=value (repeatable)"),
    ] = None,
    body_file: Annotated[
        Optional[Path],
        typer.Option("--body-file", "-B", help="Send this file as request body"),
    ] = None,
    user: UserOption = "admin",
    comment: CommentOption = None,
    db_url: UrlOption = None,
    env_file: EnvFileOption = None,
) -> None:
    """
    Execute a command on a project or package.

    Examples
    --------
    buildsvc source cmd branch openSUSE:Factory gcc -u tom

    buildsvc source cmd set_flag home:tom -p flag=build -p status=disable

    buildsvc source cmd importchannel Channels chan -B channel.json
    """
    from buildsvc.context import Actor, RequestContext
    from buildsvc.models.schemas import Command

    config = setup(env_file, db_url)
    if body_file is not None and not body_file.exists():
        console.print(f"[bold red]Error:[/bold red] File not found: {escape(str(body_file))}")
        raise typer.Exit(code=1)
    command = Command(
        verb=verb,
        project=project,
        package=package,
        params=parse_params(param),
        body=body_file.read_text() if body_file is not None else None,
    )
    with open_dispatcher(config) as dispatcher:
        result = dispatcher.execute(command, Actor(user), RequestContext(comment=comment))
    print_result(result)


@source_app.command(name="meta")
def meta(
    project: Annotated[str, typer.Argument(help="Project name")],
    package: Annotated[Optional[str], typer.Argument(help="Package name")] = None,
    file: Annotated[
        Optional[Path],
        typer.Option("--file", "-F", help="Write this JSON document instead of showing"),
    ] = None,
    force: Annotated[
        bool, typer.Option("--force", help="Repair repositories using removed ones")
    ] = False,
    remove_linking_repositories: Annotated[
        bool,
        typer.Option(
            "--remove-linking-repositories",
            help="Remove dependent repositories instead of rewriting their paths",
        ),
    ] = False,
    user: UserOption = "admin",
    comment: CommentOption = None,
    db_url: UrlOption = None,
    env_file: EnvFileOption = None,
) -> None:
    """
    Show or write the metadata document of a project or package.
    """
    from buildsvc.context import Actor

    config = setup(env_file, db_url)
    if file is not None and not file.exists():
        console.print(f"[bold red]Error:[/bold red] File not found: {file}")
        raise typer.Exit(code=1)
    actor = Actor(user)
    with open_dispatcher(config) as dispatcher:
        if file is None:
            if package is None:
                result = dispatcher.show_project_meta(project, actor)
            else:
                result = dispatcher.show_package_meta(project, package, actor)
        elif package is None:
            result = dispatcher.update_project_meta(
                project,
                file.read_text(),
                actor,
                force=force,
                remove_linking_repositories=remove_linking_repositories,
                comment=comment,
            )
        else:
            result = dispatcher.update_package_meta(
                project, package, file.read_text(), actor, comment=comment
            )
    print_result(result)


@source_app.command(name="history")
def history(
    project: Annotated[str, typer.Argument(help="Project name")],
    package: Annotated[Optional[str], typer.Argument(help="Package name")] = None,
    user: UserOption = "admin",
    db_url: UrlOption = None,
    env_file: EnvFileOption = None,
) -> None:
    """
    List the history records of a project or package.
    """
    from buildsvc.context import Actor

    config = setup(env_file, db_url)
    with open_dispatcher(config) as dispatcher:
        result = dispatcher.history(project, package, Actor(user))
    if not result.ok:
        print_result(result)

    entries = result.data["entries"]
    table = Table(title=f"History of {project}/{package}" if package else f"History of {project}")
    table.add_column("Rev", style="cyan", justify="right")
    table.add_column("Kind", style="magenta")
    table.add_column("User")
    table.add_column("Comment")
    for entry in entries:
        table.add_row(str(entry["revision"]), entry["kind"], entry["user"], entry["comment"] or "")
    console.print(table)
    console.print(f"{len(entries)} record(s)")


@source_app.command(name="delete")
def delete(
    project: Annotated[str, typer.Argument(help="Project name")],
    package: Annotated[Optional[str], typer.Argument(help="Package name")] = None,
    force: Annotated[
        bool, typer.Option("--force", help="Delete even if other entities depend on it")
    ] = False,
    remove_linking_repositories: Annotated[
        bool,
        typer.Option(
            "--remove-linking-repositories",
            help="Remove dependent repositories instead of rewriting their paths",
        ),
    ] = False,
    user: UserOption = "admin",
    comment: CommentOption = None,
    db_url: UrlOption = None,
    env_file: EnvFileOption = None,
) -> None:
    """
    Delete a project or package.
    """
    from buildsvc.context import Actor

    config = setup(env_file, db_url)
    actor = Actor(user)
    with open_dispatcher(config) as dispatcher:
        if package is None:
            result = dispatcher.delete_project(
                project,
                actor,
                force=force,
                remove_linking_repositories=remove_linking_repositories,
                comment=comment,
            )
        else:
            result = dispatcher.delete_package(
                project, package, actor, force=force, comment=comment
            )
    print_result(result)
