"""Release saga."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from loguru import logger

from buildsvc.backend.gateway import build_path, source_path
from buildsvc.constants import HistoryKind, ReleaseTrigger
from buildsvc.exceptions import (
    CmdExecutionNoPermission,
    MissingParameterError,
    NoMatchingReleaseTargetError,
    UnknownRepositoryError,
)
from buildsvc.models.orm import Package
from buildsvc.models.refs import RepoRef
from buildsvc.models.schemas import CommandResult
from buildsvc.services.base import SagaService

if TYPE_CHECKING:
    from buildsvc.models.orm import Project, Repository

__all__ = ["ReleaseService", "ReleasePair"]

RELEASE_JOB = "release"


@dataclass(frozen=True)
class ReleasePair:
    source: Repository
    target: Repository


class ReleaseService(SagaService):
    """
    Promote build results along release targets.

    Gating, per repository and release target: the actor must be able to
    modify the target project and the trigger must be ``manual``. An
    explicit target given with ``target_project``, ``target_repository``
    and ``repository`` skips the trigger check but still needs modify
    rights on the target.
    """

    def release(self, project: Project, package: Package | None, params: dict[str, Any]) -> CommandResult:
        pairs = self.release_pairs(project, params)
        self.saga.authorized()
        self.saga.precondition_checked()
        if params.get("nodelay"):
            released = self.perform_release(project, package, pairs, params.get("setrelease"))
            return CommandResult.success("released", targets=released)

        job = self.jobs.enqueue(
            RELEASE_JOB,
            {
                "project": project.name,
                "package": package.name if package is not None else None,
                "actor": self.actor.login,
                "request_id": self.saga.context.request_id,
                "comment": self.comment,
                **{k: v for k, v in params.items() if v is not None},
            },
        )
        return CommandResult.invoked("release queued", job=job.id)

    def release_pairs(self, project: Project, params: dict[str, Any]) -> list[ReleasePair]:
        """
        Resolve and gate the (source, target) repository pairs.

        Raises
        ------
        MissingParameterError
            An explicit target without ``target_repository`` or ``repository``
        UnknownRepositoryError
            A named repository that does not exist
        CmdExecutionNoPermission
            Target not modifiable, or trigger not ``manual``
        NoMatchingReleaseTargetError
            No release target matched
        """
        repository_name = params.get("repository")
        if params.get("target_project"):
            if not params.get("target_repository") or not repository_name:
                msg = (
                    "release with target_project requires target_repository and "
                    "repository parameters"
                )
                raise MissingParameterError(msg)
            target_project = self.projects.require(params["target_project"])
            target = target_project.repository(params["target_repository"])
            if target is None:
                msg = f"unknown repository '{target_project.name}/{params['target_repository']}'"
                raise UnknownRepositoryError(msg)
            source = self._source_repository(project, repository_name)
            self._check_target_project(target_project)
            return [ReleasePair(source, target)]

        if repository_name is not None:
            self._source_repository(project, repository_name)
        pairs = []
        for repo in project.repositories:
            if repository_name is not None and repo.name != repository_name:
                continue
            for edge in repo.release_targets:
                if not isinstance(edge.target, RepoRef):
                    continue
                self._check_target_project(edge.link.project)
                if edge.trigger != ReleaseTrigger.MANUAL.value:
                    msg = f"Trigger is not set to manual in repository {repo.full_name}"
                    raise CmdExecutionNoPermission(msg)
                pairs.append(ReleasePair(repo, edge.link))
        if not pairs:
            msg = "No defined or matching release target"
            raise NoMatchingReleaseTargetError(msg)
        return pairs

    def perform_release(
        self,
        project: Project,
        package: Package | None,
        pairs: list[ReleasePair],
        setrelease: str | None = None,
    ) -> list[str]:
        """Copy sources and binaries for every pair, then commit and record."""
        packages = [package] if package is not None else list(project.packages)
        released = []
        for pair in pairs:
            target_project = pair.target.project
            for pkg in packages:
                target_pkg = self.packages.get_by_name(target_project, pkg.name)
                if target_pkg is None:
                    target_pkg = self.packages.create(
                        Package(
                            project=target_project,
                            name=pkg.name,
                            title=pkg.title,
                            description=pkg.description,
                        )
                    )
                    self.store_meta(target_pkg)
                self.saga.invoke(
                    lambda pkg=pkg: self.gateway.post(
                        source_path(target_project.name, pkg.name),
                        **self.backend_params(
                            cmd="copy",
                            oproject=project.name,
                            opackage=pkg.name,
                            expand=True,
                            withvrev=True,
                            noservice=True,
                        ),
                    )
                )
                for arch in pair.source.architecture_names:
                    self.saga.invoke(
                        lambda pkg=pkg, arch=arch: self.gateway.post(
                            build_path(target_project.name, pair.target.name, arch, pkg.name),
                            cmd="copy",
                            oproject=project.name,
                            opackage=pkg.name,
                            orepository=pair.source.name,
                            setrelease=setrelease,
                            resign=True,
                        )
                    )
                released.append(f"{pair.target.full_name}/{pkg.name}")
        entity = package if package is not None else project
        self.finish(HistoryKind.RELEASE, entity, {"targets": released, "setrelease": setrelease})
        logger.info(f"released {len(released)} package targets from {project.name}")
        return released

    def run_release_job(self, params: dict[str, Any]) -> None:
        project = self.projects.require(params["project"])
        package = None
        if params.get("package"):
            package = self.packages.require(project, params["package"], follow_project_links=True)
        pairs = self.release_pairs(project, params)
        self.saga.authorized()
        self.perform_release(project, package, pairs, params.get("setrelease"))

    def _source_repository(self, project: Project, name: str) -> Repository:
        repo = project.repository(name)
        if repo is None:
            msg = f"unknown repository '{project.name}/{name}'"
            raise UnknownRepositoryError(msg)
        return repo

    def _check_target_project(self, target_project: Project) -> None:
        if not self.can_modify(target_project):
            msg = f"no permission to write in project {target_project.name}"
            raise CmdExecutionNoPermission(msg)
