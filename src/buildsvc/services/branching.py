"""Branch saga."""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from buildsvc.backend.gateway import source_path
from buildsvc.constants import FlagKind, HistoryKind, Role
from buildsvc.exceptions import (
    CmdExecutionNoPermission,
    NotMissingError,
    PackageExistsError,
    SourceAccessNoPermission,
    UnknownPackageError,
)
from buildsvc.models.orm import (
    Package,
    PathElement,
    Project,
    ProjectRole,
    Repository,
    RepositoryArchitecture,
)
from buildsvc.models.schemas import CommandResult
from buildsvc.services.base import SagaService
from buildsvc.utils.names import check_package_name, check_project_name

if TYPE_CHECKING:
    from buildsvc.models.schemas import Command

__all__ = ["BranchService", "default_branch_project"]


def default_branch_project(login: str, project_name: str) -> str:
    """
    Default target project of a branch.

    Examples
    --------
    >>> default_branch_project("tom", "openSUSE:Factory")
    'home:tom:branches:openSUSE:Factory'
    """
    return f"home:{login}:branches:{project_name}"


class BranchService(SagaService):
    """
    Create a package that links back to its origin.

    The source is resolved through project links. The target project is
    created on demand with repositories mirroring the source project; each
    new repository builds against the corresponding source repository.
    """

    def branch_package(self, project: Project, cmd: Command) -> CommandResult:
        package_name = cmd.package
        source = self.packages.find(project, package_name, follow_project_links=True)
        missingok = cmd.flag("missingok")
        if source is None and not missingok:
            msg = f"package '{project.name}/{package_name}' does not exist"
            raise UnknownPackageError(msg)
        if source is not None and missingok:
            msg = (
                f"Branch call with missingok parameter but branched source "
                f"({source.full_name}) exists."
            )
            raise NotMissingError(msg)
        if (
            source is not None
            and self.flags.is_disabled(source, FlagKind.SOURCEACCESS)
            and not self.oracle.can_modify(source, self.actor)
        ):
            msg = f"no read access to sources of {source.full_name}"
            raise SourceAccessNoPermission(msg)

        origin_project = source.project if source is not None else project
        origin_package = source.name if source is not None else package_name
        target_project_name = cmd.param(
            "target_project", default_branch_project(self.actor.login, project.name)
        )
        target_package_name = cmd.param("target_package", package_name)
        check_project_name(target_project_name)
        check_package_name(target_package_name)

        target_project = self.projects.get_by_name(target_project_name, for_update=True)
        existing = None
        if target_project is not None:
            if not self.oracle.can_modify(target_project, self.actor):
                msg = f"no permission to branch into project {target_project_name}"
                raise CmdExecutionNoPermission(msg)
            self.locks.assert_unlocked(target_project)
            existing = self.packages.get_by_name(target_project, target_package_name)
        else:
            parent = self.projects.nearest_parent(target_project_name)
            if not self.oracle.can_create(target_project_name, self.actor, parent):
                msg = f"no permission to create project {target_project_name}"
                raise CmdExecutionNoPermission(msg)
        if existing is not None:
            if not cmd.flag("force"):
                msg = (
                    f"branch target package already exists: "
                    f"{target_project_name}/{target_package_name}"
                )
                raise PackageExistsError(msg)
            self.locks.assert_unlocked(existing)
        self.saga.authorized()

        data = {
            "targetproject": target_project_name,
            "targetpackage": target_package_name,
            "sourceproject": origin_project.name,
            "sourcepackage": origin_package,
        }
        if cmd.flag("dryrun"):
            return CommandResult.success(
                "dryrun",
                create_project=target_project is None,
                replace=existing is not None,
                **data,
            )
        self.saga.precondition_checked()

        created_project = target_project is None
        if created_project:
            target_project = self._create_branch_project(target_project_name, origin_project)
        package = existing
        if package is None:
            package = self.packages.create(
                Package(
                    project=target_project,
                    name=target_package_name,
                    title=source.title if source is not None else None,
                    description=source.description if source is not None else None,
                )
            )
        package.link_project = origin_project.name
        package.link_package = origin_package
        package.link_revision = cmd.param("rev")
        self.session.flush()

        if created_project:
            self.store_meta(target_project)
        self.store_meta(package)
        self.saga.invoke(
            lambda: self.gateway.post(
                source_path(target_project_name, target_package_name),
                **self.backend_params(
                    cmd="branch",
                    oproject=origin_project.name,
                    opackage=origin_package,
                    orev=cmd.param("rev"),
                    missingok=missingok,
                ),
            )
        )
        self.finish(HistoryKind.BRANCH, package, data)
        logger.info(
            f"branched {origin_project.name}/{origin_package} to "
            f"{target_project_name}/{target_package_name}"
        )
        return CommandResult.success("branched", **data)

    def _create_branch_project(self, name: str, origin: Project) -> Project:
        project = self.projects.create(
            Project(
                name=name,
                title=f"Branch project for {origin.name}",
                description=f"This project was created for package branches of {origin.name}",
            )
        )
        project.roles.append(ProjectRole(login=self.actor.login, role=Role.MAINTAINER.value))
        for source_repo in origin.repositories:
            repo = Repository(name=source_repo.name)
            repo.architectures = [
                RepositoryArchitecture(name=arch.name, position=arch.position)
                for arch in source_repo.architectures
            ]
            element = PathElement(position=1)
            element.point_to(source_repo)
            repo.path_elements.append(element)
            project.repositories.append(repo)
        self.session.flush()
        logger.debug(f"created branch project {name} with {len(origin.repositories)} repositories")
        return project
