"""Command dispatcher.

Resolution order for a command:

1. unknown verb or unsupported scope -> ``illegal_request``
2. invalid names -> ``invalid_project_name`` / ``invalid_package_name``
3. missing parameters -> ``missing_parameter``
4. target resolution (skipped must-exist checks for creating verbs)
5. authorization predicate -> ``cmd_execution_no_permission``
6. lock check, unless the verb is lock exempt
7. handler

Every :class:`~buildsvc.exceptions.BuildServiceError` raised on the way is
returned as a :class:`~buildsvc.models.schemas.CommandResult`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from loguru import logger

from buildsvc.constants import CommandScope, Verb
from buildsvc.context import Actor, RequestContext
from buildsvc.db.repository import HistoryRepository, PackageRepository, ProjectRepository
from buildsvc.dispatch.commands import COMMANDS, Target
from buildsvc.dispatch.predicates import Subject
from buildsvc.exceptions import (
    BuildServiceError,
    CmdExecutionNoPermission,
    IllegalRequestError,
    MissingParameterError,
)
from buildsvc.models.metadata import PackageMeta, ProjectMeta, load_meta, meta_to_dict
from buildsvc.models.schemas import Command, CommandResult, HistoryEntryResponse
from buildsvc.services.base import ServiceEnv
from buildsvc.services.coordinator import Coordinator
from buildsvc.services.saga import Saga
from buildsvc.utils.names import check_package_name, check_project_name

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.orm import Session

    from buildsvc.authz import AuthorizationOracle
    from buildsvc.backend.gateway import BackendGateway
    from buildsvc.db.database import Database
    from buildsvc.dispatch.commands import CommandSpec
    from buildsvc.services.jobs import InMemoryJobQueue, Job

__all__ = ["Dispatcher"]

# parameters naming other projects and packages
_PROJECT_PARAMS = ("target_project", "oproject")
_PACKAGE_PARAMS = ("target_package", "opackage")


class Dispatcher:
    """
    Entry point for commands and metadata operations.

    Every call runs in its own session and saga. Errors never escape as
    exceptions; they come back as a failed :class:`CommandResult`.

    Parameters
    ----------
    database : Database
        Metadata store
    gateway : BackendGateway
        Source backend
    oracle : AuthorizationOracle
        Permission checks
    jobs : InMemoryJobQueue
        Queue for deferred sagas

    Attributes
    ----------
    last_saga : Saga | None
        Saga of the most recent call

    Examples
    --------
    >>> dispatcher = Dispatcher(db, gateway, RoleAuthorizationOracle(["admin"]), jobs)
    >>> cmd = Command(verb="branch", project="openSUSE:Factory", package="gcc")
    >>> dispatcher.execute(cmd, Actor("tom")).code
    'ok'
    """

    def __init__(
        self,
        database: Database,
        gateway: BackendGateway,
        oracle: AuthorizationOracle,
        jobs: InMemoryJobQueue,
    ) -> None:
        self.database = database
        self.gateway = gateway
        self.oracle = oracle
        self.jobs = jobs
        self.last_saga: Saga | None = None

    # ------------------------------------------------------------ commands

    def execute(
        self, command: Command, actor: Actor, context: RequestContext | None = None
    ) -> CommandResult:
        """Run one ``cmd=<verb>`` command against a project or package."""
        context = context or RequestContext()
        if context.comment is None and command.param("comment"):
            context = context.with_comment(command.param("comment"))
        return self._guarded(
            command.verb,
            actor,
            context,
            lambda coordinator, session: self._execute(coordinator, session, command),
        )

    def _execute(
        self, coordinator: Coordinator, session: Session, command: Command
    ) -> CommandResult:
        try:
            verb = Verb(command.verb)
        except ValueError:
            msg = f"unknown command '{command.verb}'"
            raise IllegalRequestError(msg) from None
        spec = COMMANDS[verb]
        scope = CommandScope.PACKAGE if command.package else CommandScope.PROJECT
        route = spec.routes.get(scope)
        if route is None:
            msg = f"command '{verb.value}' is not supported for a {scope.value}"
            raise IllegalRequestError(msg)

        self._check_names(command, spec)
        missing = [name for name in route.required if command.param(name) is None]
        if missing:
            msg = f"missing parameter(s) for {verb.value}: " + ", ".join(missing)
            raise MissingParameterError(msg)

        target = self._resolve(session, command, scope, spec)
        saga = coordinator.env.saga
        subject = Subject(coordinator.env.oracle, saga.actor, target.project, target.package)
        if not route.authorize(subject):
            msg = f"no permission to execute command '{verb.value}' on {command.target_label}"
            raise CmdExecutionNoPermission(msg)
        saga.authorized()
        if not spec.lock_exempt and target.entity is not None:
            coordinator.meta.locks.assert_unlocked(target.entity)
        logger.debug(f"[{saga.context.request_id}] {verb.value} {command.target_label} by {saga.actor}")
        return route.handler(coordinator, target, command)

    def _check_names(self, command: Command, spec: CommandSpec) -> None:
        check_project_name(command.project)
        if command.package is not None:
            check_package_name(command.package, allow_multibuild=not spec.creates_target)
        for name in _PROJECT_PARAMS:
            if command.param(name) is not None:
                check_project_name(command.param(name))
        for name in _PACKAGE_PARAMS:
            if command.param(name) is not None:
                check_package_name(command.param(name))

    def _resolve(
        self, session: Session, command: Command, scope: CommandScope, spec: CommandSpec
    ) -> Target:
        projects = ProjectRepository(session)
        if scope is CommandScope.PROJECT and spec.creates_target:
            return Target(projects.get_by_name(command.project))
        project = projects.require(command.project)
        if scope is CommandScope.PROJECT:
            return Target(project)
        packages = PackageRepository(session)
        # multibuild flavors resolve to their base package
        name = command.package.split(":", 1)[0]
        if spec.creates_target:
            package = packages.find(project, name, spec.follow_project_links)
        else:
            package = packages.require(project, name, spec.follow_project_links)
        return Target(project, package)

    # ------------------------------------------------------------ metadata

    def show_project_meta(self, name: str, actor: Actor) -> CommandResult:
        return self._guarded(
            "show_project_meta",
            actor,
            RequestContext(),
            lambda c, s: CommandResult(code="ok", data=meta_to_dict(c.meta.show_project_meta(name))),
        )

    def show_package_meta(self, project: str, package: str, actor: Actor) -> CommandResult:
        return self._guarded(
            "show_package_meta",
            actor,
            RequestContext(),
            lambda c, s: CommandResult(
                code="ok", data=meta_to_dict(c.meta.show_package_meta(project, package))
            ),
        )

    def update_project_meta(
        self,
        name: str,
        meta: ProjectMeta | str | dict,
        actor: Actor,
        force: bool = False,
        remove_linking_repositories: bool = False,
        comment: str | None = None,
    ) -> CommandResult:
        """
        Create or replace a project from a metadata document.

        Parameters
        ----------
        name : str
            Addressed project
        meta : ProjectMeta | str | dict
            Document, as dataclass, JSON text or decoded JSON
        actor : Actor
            Caller
        force : bool, optional
            Repair repositories depending on removed ones, by default False
        remove_linking_repositories : bool, optional
            Remove dependent repositories instead of rewriting them
        comment : str | None, optional
            History comment
        """

        def work(c: Coordinator, s: Session) -> CommandResult:
            document = meta if isinstance(meta, ProjectMeta) else load_meta(meta, ProjectMeta)
            return c.meta.update_project_meta(
                name,
                document,
                force=force,
                remove_linking_repositories=remove_linking_repositories,
            )

        return self._guarded("update_project_meta", actor, RequestContext(comment=comment), work)

    def update_package_meta(
        self,
        project: str,
        package: str,
        meta: PackageMeta | str | dict,
        actor: Actor,
        comment: str | None = None,
    ) -> CommandResult:
        def work(c: Coordinator, s: Session) -> CommandResult:
            document = meta if isinstance(meta, PackageMeta) else load_meta(meta, PackageMeta)
            return c.meta.update_package_meta(project, package, document)

        return self._guarded("update_package_meta", actor, RequestContext(comment=comment), work)

    # ------------------------------------------------------------ deletion

    def delete_project(
        self,
        name: str,
        actor: Actor,
        force: bool = False,
        remove_linking_repositories: bool = False,
        comment: str | None = None,
    ) -> CommandResult:
        return self._guarded(
            "delete_project",
            actor,
            RequestContext(comment=comment),
            lambda c, s: c.deletion.delete_project(
                check_project_name(name),
                force=force,
                remove_linking_repositories=remove_linking_repositories,
            ),
        )

    def delete_package(
        self,
        project: str,
        package: str,
        actor: Actor,
        force: bool = False,
        comment: str | None = None,
    ) -> CommandResult:
        return self._guarded(
            "delete_package",
            actor,
            RequestContext(comment=comment),
            lambda c, s: c.deletion.delete_package(
                check_project_name(project), check_package_name(package), force=force
            ),
        )

    # ------------------------------------------------------------- history

    def history(self, project: str, package: str | None, actor: Actor) -> CommandResult:
        """History records of a project or package, oldest first."""

        def work(c: Coordinator, s: Session) -> CommandResult:
            entity_type = "package" if package else "project"
            elements = HistoryRepository(s).for_entity(entity_type, project, package)
            entries = [
                HistoryEntryResponse.model_validate(e).model_dump() for e in elements
            ]
            return CommandResult.success(entries=entries)

        return self._guarded("history", actor, RequestContext(), work)

    # ---------------------------------------------------------------- jobs

    def run_jobs(self) -> int:
        """Run the queued sagas; returns the number of jobs run."""
        return self.jobs.run_pending(self._run_job)

    def _run_job(self, job: Job) -> None:
        params = job.params
        context = RequestContext(request_id=params["request_id"], comment=params.get("comment"))
        saga = Saga(job.saga, Actor(params["actor"]), context)
        self.last_saga = saga
        with self.database.session() as session:
            saga.bind(session)
            self._coordinator(session, saga).run_job(job)

    # ------------------------------------------------------------- helpers

    def _coordinator(self, session: Session, saga: Saga) -> Coordinator:
        return Coordinator(ServiceEnv(session, saga, self.gateway, self.oracle, self.jobs))

    def _guarded(
        self,
        name: str,
        actor: Actor,
        context: RequestContext,
        work: Callable[[Coordinator, Session], Any],
    ) -> CommandResult:
        saga = Saga(name, actor, context)
        self.last_saga = saga
        try:
            with self.database.session() as session:
                saga.bind(session)
                return work(self._coordinator(session, saga), session)
        except BuildServiceError as exc:
            saga.reject(exc.message)
            logger.info(f"[{context.request_id}] {name} failed: {exc.code}: {exc.message}")
            return CommandResult.from_error(exc)
        except Exception:
            logger.exception(f"[{context.request_id}] {name} failed unexpectedly")
            return CommandResult.internal_error()
