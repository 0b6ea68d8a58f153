"""Delete and undelete sagas."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from loguru import logger

from buildsvc.backend.gateway import source_path
from buildsvc.constants import PROJECT_META_PACKAGE, HistoryKind, RequestState
from buildsvc.exceptions import (
    CreatePackageNoPermission,
    CreateProjectNoPermission,
    DeleteError,
    DeletePackageNoPermission,
    DeleteProjectNoPermission,
    PackageExistsError,
    ProjectExistsError,
    UnknownPackageError,
    UnknownProjectError,
)
from buildsvc.models.metadata import PackageMeta, ProjectMeta, load_meta
from buildsvc.models.orm import Package, Project
from buildsvc.models.schemas import CommandResult
from buildsvc.services.base import SagaService

if TYPE_CHECKING:
    from buildsvc.models.orm import ChangeRequest

__all__ = ["DeletionService"]


class DeletionService(SagaService):
    """
    Remove projects and packages, and bring them back from the backend.

    Deleting runs as

    1. check dependents and devel/link users (abort unless forced),
    2. with force, repair referrers and commit that step,
    3. revoke open requests and delete the rows,
    4. delete on the backend,
    5. commit and record history.

    A backend failure in step 4 rolls back step 3; the repair committed in
    step 2 stays.
    """

    # -------------------------------------------------------------- delete

    def delete_project(
        self,
        name: str,
        force: bool = False,
        remove_linking_repositories: bool = False,
    ) -> CommandResult:
        project = self.projects.require(name, for_update=True)
        if not self.oracle.can_modify(project, self.actor):
            msg = f"no permission to delete project {name}"
            raise DeleteProjectNoPermission(msg)
        self.locks.assert_unlocked(project)
        self.saga.authorized()

        devel_users = self.projects.devel_users(project)
        linking = [p for p in self.projects.linking_projects(project) if p.pk != project.pk]
        package_users = self.packages.devel_users(list(project.packages))
        if not force:
            problems = []
            if devel_users:
                problems.append(
                    "used as devel project by: " + ", ".join(p.name for p in devel_users)
                )
            if linking:
                problems.append("linked by projects: " + ", ".join(p.name for p in linking))
            if package_users:
                problems.append(
                    "packages are used as devel package by: "
                    + ", ".join(p.full_name for p in package_users)
                )
            if problems:
                msg = f"Unable to delete project {name}; " + "; ".join(problems)
                raise DeleteError(msg)

        repositories = list(project.repositories)
        affected = {
            p.pk: p
            for p in self.graph.check_and_remove_repositories(
                repositories, force=force, remove_linking_repositories=remove_linking_repositories
            )
        }
        for other in devel_users:
            other.develproject = None
            affected[other.pk] = other
        for other in linking:
            for link in [lp for lp in other.linked_projects if lp.linked_db_project is project]:
                other.linked_projects.remove(link)
            affected[other.pk] = other
        for package in package_users:
            package.develpackage = None
        self.saga.precondition_checked()

        if affected or package_users:
            for other in affected.values():
                self.store_meta(other)
            for package in package_users:
                self.store_meta(package)
            self.saga.checkpoint("repair")
            logger.info(
                f"repaired {len(affected)} projects and {len(package_users)} packages "
                f"referring to {name}"
            )

        self._close_requests(self.requests.open_referencing(name), name)
        for package in project.packages:
            package.develpackage = None
        project.develproject = None
        for repo in project.repositories:
            repo.hostsystem = None
        self.session.flush()
        self.projects.delete(project)

        self.saga.invoke(
            lambda: self.gateway.delete(source_path(name), **self.backend_params()),
            allow_not_found=True,
        )
        self.saga.commit()
        self._record_removed(name, None, {"repaired_projects": sorted(p.name for p in affected.values())})
        logger.info(f"deleted project {name}")
        return CommandResult.success(f"project {name} deleted")

    def delete_package(
        self, project_name: str, package_name: str, force: bool = False
    ) -> CommandResult:
        if package_name == PROJECT_META_PACKAGE:
            msg = f"{PROJECT_META_PACKAGE} package can not be deleted."
            raise DeletePackageNoPermission(msg)
        project = self.projects.require(project_name)
        package = self.packages.get_by_name(project, package_name, for_update=True)
        if package is None:
            msg = f"package '{project_name}/{package_name}' does not exist"
            raise UnknownPackageError(msg)
        if not self.oracle.can_modify(package, self.actor):
            msg = f"no permission to delete package {package.full_name}"
            raise DeletePackageNoPermission(msg)
        self.locks.assert_unlocked(package)
        self.saga.authorized()

        users = self.packages.devel_users([package])
        if users and not force:
            msg = "Package is used by following packages as devel package: " + ", ".join(
                p.full_name for p in users
            )
            raise DeleteError(msg)
        self.saga.precondition_checked()

        if users:
            for other in users:
                other.develpackage = None
                self.store_meta(other)
            self.saga.checkpoint("repair")

        self._close_requests(
            self.requests.open_referencing(project_name, package_name),
            f"{project_name}/{package_name}",
        )
        full_name = package.full_name
        project.packages.remove(package)
        self.session.flush()

        self.saga.invoke(
            lambda: self.gateway.delete(
                source_path(project_name, package_name), **self.backend_params()
            ),
            allow_not_found=True,
        )
        self.saga.commit()
        self._record_removed(project_name, package_name, {"devel_users_cleared": [p.full_name for p in users]})
        logger.info(f"deleted package {full_name}")
        return CommandResult.success(f"package {full_name} deleted")

    def _close_requests(self, requests: list[ChangeRequest], label: str) -> None:
        for request in requests:
            removed_project = label.split("/", 1)[0]
            removed_package = label.split("/", 1)[1] if "/" in label else None
            is_target = request.target_project == removed_project and (
                removed_package is None or request.target_package == removed_package
            )
            if is_target:
                request.state = RequestState.DECLINED.value
                request.state_comment = f"The target {label} has been removed"
            else:
                request.state = RequestState.REVOKED.value
                request.state_comment = f"The source {label} has been removed"
            logger.info(f"request {request.pk} {request.state}: {label} removed")

    def _record_removed(self, project_name: str, package_name: str | None, payload: dict) -> None:
        payload = {"request_id": self.saga.context.request_id, **payload}
        self.recorder.record_names(
            HistoryKind.DELETE, project_name, package_name, self.actor.login, self.comment, payload
        )
        self.session.commit()
        self.saga.recorded()

    # ------------------------------------------------------------ undelete

    def undelete_project(self, name: str) -> CommandResult:
        if self.projects.exists(name):
            msg = f"project '{name}' already exists"
            raise ProjectExistsError(msg)
        parent = self.projects.nearest_parent(name)
        if not self.oracle.can_create(name, self.actor, parent):
            msg = f"no permission to undelete project {name}"
            raise CreateProjectNoPermission(msg)
        self.saga.authorized()
        self.saga.precondition_checked()

        result = self.saga.invoke(
            lambda: self.gateway.post(
                source_path(name), **self.backend_params(cmd="undelete")
            ),
            allow_not_found=True,
        )
        if result.is_not_found:
            msg = f"project '{name}' is unknown to the backend"
            raise UnknownProjectError(msg)

        meta = load_meta(self._read(source_path(name, None, "_meta")), ProjectMeta)
        project = self.projects.create(Project(name=name))
        self.mapper.apply_project_meta(project, meta, strict=False)

        for entry in json.loads(self._read(source_path(name)) or "[]"):
            if entry.startswith("_"):
                continue
            meta_path = source_path(name, entry, "_meta")
            package = self.packages.create(Package(project=project, name=entry))
            text = self._read(meta_path, required=False)
            if text is not None:
                self.mapper.apply_package_meta(package, load_meta(text, PackageMeta), strict=False)

        self.finish(HistoryKind.UNDELETE, project, {"packages": [p.name for p in project.packages]})
        logger.info(f"undeleted project {name}")
        return CommandResult.success(f"project {name} restored")

    def undelete_package(self, project: Project, package_name: str) -> CommandResult:
        if self.packages.get_by_name(project, package_name) is not None:
            msg = f"package '{project.name}/{package_name}' already exists"
            raise PackageExistsError(msg)
        if not self.oracle.can_modify(project, self.actor):
            msg = f"no permission to create package in project {project.name}"
            raise CreatePackageNoPermission(msg)
        self.locks.assert_unlocked(project)
        self.saga.authorized()
        self.saga.precondition_checked()

        result = self.saga.invoke(
            lambda: self.gateway.post(
                source_path(project.name, package_name), **self.backend_params(cmd="undelete")
            ),
            allow_not_found=True,
        )
        if result.is_not_found:
            msg = f"package '{project.name}/{package_name}' is unknown to the backend"
            raise UnknownPackageError(msg)

        package = self.packages.create(Package(project=project, name=package_name))
        text = self._read(source_path(project.name, package_name, "_meta"), required=False)
        if text is not None:
            meta = load_meta(text, PackageMeta)
            self.mapper.apply_package_meta(package, meta, strict=False)

        self.finish(HistoryKind.UNDELETE, package)
        logger.info(f"undeleted package {package.full_name}")
        return CommandResult.success(f"package {package.full_name} restored")

    def _read(self, path: str, required: bool = True) -> str | None:
        result = self.saga.invoke(lambda: self.gateway.get(path), allow_not_found=not required)
        if result.is_not_found:
            return None
        return result.payload
