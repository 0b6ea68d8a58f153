"""Copy sagas for projects and packages."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from loguru import logger

from buildsvc.backend.gateway import source_path
from buildsvc.constants import FlagKind, HistoryKind, RefState, Role
from buildsvc.exceptions import (
    CmdExecutionNoPermission,
    ProjectCopyNoPermission,
    RemoteProjectError,
    SourceAccessNoPermission,
)
from buildsvc.models.orm import (
    Flag,
    Package,
    PathElement,
    Project,
    ProjectRole,
    Repository,
    RepositoryArchitecture,
)
from buildsvc.models.schemas import CommandResult
from buildsvc.services.base import SagaService

if TYPE_CHECKING:
    from buildsvc.models.schemas import Command

__all__ = ["CopyService"]

COPY_PROJECT_JOB = "copy_project"


class CopyService(SagaService):
    """
    Copy projects and packages from an origin project.

    A project copy creates the target project row with the origin's
    configuration right away; the package copies follow in the same saga
    with ``nodelay`` or in a queued job otherwise.
    """

    def copy_project(self, name: str, cmd: Command) -> CommandResult:
        origin = self._origin_project(cmd.param("oproject"))
        self._check_copy_options(origin, cmd)
        if not self.is_admin:
            protected = [
                p.name for p in origin.packages if self.flags.is_disabled(p, FlagKind.SOURCEACCESS)
            ]
            if protected:
                msg = (
                    "no permission to copy project due to source protected package "
                    f"{protected[0]}"
                )
                raise ProjectCopyNoPermission(msg)

        target = self.projects.get_by_name(name, for_update=True)
        if target is not None:
            self.require_modify(target, message=f"no permission to copy into project {name}")
        else:
            parent = self.projects.nearest_parent(name)
            if not self.oracle.can_create(name, self.actor, parent):
                msg = f"no permission to create project {name}"
                raise CmdExecutionNoPermission(msg)
        self.saga.authorized()
        self.saga.precondition_checked()

        if target is None:
            target = self._clone_project(name, origin)
            self.store_meta(target)

        options = _copy_options(cmd)
        if cmd.flag("nodelay"):
            copied = self.copy_project_packages(target, origin, options)
            self.finish(HistoryKind.COPY, target, {"origin": origin.name, "packages": copied})
            return CommandResult.success(f"project {origin.name} copied to {name}", packages=copied)

        self.finish(HistoryKind.COPY, target, {"origin": origin.name, "deferred": True})
        job = self.jobs.enqueue(
            COPY_PROJECT_JOB,
            {
                "project": name,
                "oproject": origin.name,
                "actor": self.actor.login,
                "request_id": self.saga.context.request_id,
                "comment": self.comment,
                **options,
            },
        )
        return CommandResult.invoked(f"copy of {origin.name} queued", job=job.id)

    def copy_project_packages(
        self, target: Project, origin: Project, options: dict[str, Any]
    ) -> list[str]:
        """Copy every package of ``origin`` into ``target`` on the backend and locally."""
        self.saga.invoke(
            lambda: self.gateway.post(
                source_path(target.name),
                **self.backend_params(cmd="copy", oproject=origin.name, **options),
            )
        )
        copied = []
        for package in origin.packages:
            if self.packages.get_by_name(target, package.name) is None:
                clone = self._clone_package(target, package.name, package)
                self.store_meta(clone)
            copied.append(package.name)
        logger.info(f"copied {len(copied)} packages from {origin.name} to {target.name}")
        return copied

    def run_copy_project_job(self, params: dict[str, Any]) -> None:
        target = self.projects.require(params["project"])
        origin = self.projects.require(params["oproject"])
        options = {k: v for k, v in params.items() if k in _OPTION_NAMES}
        self.saga.authorized()
        copied = self.copy_project_packages(target, origin, options)
        self.finish(HistoryKind.COPY, target, {"origin": origin.name, "packages": copied})

    def copy_package(self, project: Project, cmd: Command) -> CommandResult:
        name = cmd.package
        origin_project = self._origin_project(cmd.param("oproject"))
        origin = self.packages.require(
            origin_project, cmd.param("opackage", name), follow_project_links=True
        )
        if self.flags.is_disabled(origin, FlagKind.SOURCEACCESS) and not self.oracle.can_modify(
            origin, self.actor
        ):
            msg = f"no read access to sources of {origin.full_name}"
            raise SourceAccessNoPermission(msg)
        self._check_copy_options(origin, cmd)

        target = self.packages.get_by_name(project, name, for_update=True)
        self.require_modify(
            target if target is not None else project,
            message=f"no permission to copy into {project.name}/{name}",
        )
        self.saga.authorized()
        self.saga.precondition_checked()

        if target is None:
            target = self._clone_package(project, name, origin)
            self.store_meta(target)
        self.saga.invoke(
            lambda: self.gateway.post(
                source_path(project.name, name),
                **self.backend_params(
                    cmd="copy",
                    oproject=origin.project.name,
                    opackage=origin.name,
                    orev=cmd.param("orev"),
                    expand=cmd.flag("expand"),
                    keeplink=cmd.flag("keeplink"),
                    **_copy_options(cmd),
                ),
            )
        )
        self.finish(HistoryKind.COPY, target, {"origin": origin.full_name})
        return CommandResult.success(f"package {origin.full_name} copied to {target.full_name}")

    # ------------------------------------------------------------- helpers

    def _origin_project(self, name: str) -> Project:
        origin = self.projects.get_by_name(name)
        if origin is None:
            if self.projects.is_remote_name(name):
                msg = "The copy from remote projects is currently not supported"
                raise RemoteProjectError(msg)
            origin = self.projects.require(name)
        if origin.is_remote:
            msg = "The copy from remote projects is currently not supported"
            raise RemoteProjectError(msg)
        return origin

    def _check_copy_options(self, origin: Project | Package, cmd: Command) -> None:
        if cmd.flag("withbinaries") and not self.is_admin:
            msg = "no permission to execute command 'copy' with binaries"
            raise CmdExecutionNoPermission(msg)
        if cmd.flag("makeolder") and not self.can_modify(origin):
            name = origin.full_name if isinstance(origin, Package) else origin.name
            msg = f"no permission to execute command 'copy' with makeolder on {name}"
            raise CmdExecutionNoPermission(msg)

    def _clone_project(self, name: str, origin: Project) -> Project:
        project = self.projects.create(
            Project(name=name, title=origin.title, description=origin.description)
        )
        project.roles.append(ProjectRole(login=self.actor.login, role=Role.MAINTAINER.value))
        _copy_flags(origin.flags, project.flags)
        for source_repo in origin.repositories:
            project.repositories.append(
                Repository(
                    name=source_repo.name,
                    download_url=source_repo.download_url,
                    rebuild=source_repo.rebuild,
                    block=source_repo.block,
                    linkedbuild=source_repo.linkedbuild,
                    architectures=[
                        RepositoryArchitecture(name=a.name, position=a.position)
                        for a in source_repo.architectures
                    ],
                )
            )
        self.session.flush()
        for source_repo in origin.repositories:
            repo = project.repository(source_repo.name)
            for element in source_repo.path_elements:
                clone = PathElement(position=element.position)
                link = element.link
                if link is not None and link.project is origin:
                    # paths inside the origin move along with the copy
                    link = project.repository(link.name)
                if element.state == RefState.LINKED.value and link is not None:
                    clone.point_to(link)
                elif element.state == RefState.DANGLING.value:
                    clone.mark_dangling(element.ref_project, element.ref_repository)
                else:
                    clone.mark_broken()
                repo.path_elements.append(clone)
        self.session.flush()
        logger.debug(f"cloned project {origin.name} as {name}")
        return project

    def _clone_package(self, project: Project, name: str, origin: Package) -> Package:
        package = self.packages.create(
            Package(
                project=project, name=name, title=origin.title, description=origin.description
            )
        )
        _copy_flags(origin.flags, package.flags)
        self.session.flush()
        return package


_OPTION_NAMES = ("withbinaries", "makeolder", "withhistory")


def _copy_options(cmd: Command) -> dict[str, bool]:
    return {name: cmd.flag(name) for name in _OPTION_NAMES}


def _copy_flags(source: list[Flag], target: list[Flag]) -> None:
    for flag in source:
        if flag.flag == FlagKind.LOCK.value:
            continue
        target.append(
            Flag(
                flag=flag.flag,
                status=flag.status,
                repo=flag.repo,
                architecture=flag.architecture,
                position=flag.position,
            )
        )
