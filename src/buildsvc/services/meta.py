"""Metadata read and write operations."""

from __future__ import annotations

from loguru import logger

from buildsvc.constants import PROJECT_META_PACKAGE, HistoryKind, Role
from buildsvc.exceptions import (
    ChangePackageNoPermission,
    ChangeProjectNoPermission,
    CreatePackageNoPermission,
    CreateProjectNoPermission,
    PackageNameMismatchError,
    ProjectNameMismatchError,
)
from buildsvc.models.metadata import PackageMeta, ProjectMeta
from buildsvc.models.orm import Package, Project, ProjectRole
from buildsvc.models.schemas import CommandResult
from buildsvc.policy.flags import PROTECTION_FLAGS, parse_flag_kind, parse_flag_status
from buildsvc.services.base import SagaService
from buildsvc.utils.names import check_package_name, check_project_name

__all__ = ["MetaService"]


class MetaService(SagaService):
    """
    Write and read project and package metadata documents.

    A write is one saga: permission and lock checks, graph validation,
    removal of dropped repositories (with dependent repair when forced),
    applying the document, storing it on the backend, commit, history.
    """

    # ---------------------------------------------------------------- read

    def show_project_meta(self, name: str) -> ProjectMeta:
        return self.mapper.project_to_meta(self.projects.require(name))

    def show_package_meta(self, project_name: str, package_name: str) -> PackageMeta:
        project = self.projects.require(project_name)
        package = self.packages.require(project, package_name)
        return self.mapper.package_to_meta(package)

    # --------------------------------------------------------------- write

    def update_project_meta(
        self,
        name: str,
        meta: ProjectMeta,
        force: bool = False,
        remove_linking_repositories: bool = False,
    ) -> CommandResult:
        check_project_name(name)
        if meta.name != name:
            msg = f"project name in document ('{meta.name}') does not match '{name}'"
            raise ProjectNameMismatchError(msg)

        project = self.projects.get_by_name(name, for_update=True)
        if project is None:
            parent = self.projects.nearest_parent(name)
            if not self.oracle.can_create(name, self.actor, parent):
                msg = f"no permission to create project '{name}'"
                raise CreateProjectNoPermission(msg)
        else:
            if not self.oracle.can_modify(project, self.actor):
                msg = f"no permission to change project '{name}'"
                raise ChangeProjectNoPermission(msg)
            self.locks.assert_unlocked(project)
        self.saga.authorized()

        self._check_admin_only_attributes(project, meta)
        _check_flag_syntax(meta.flags)
        if project is not None:
            self._check_protection(project, meta.flags)
        self.graph.validate_links(meta)

        removed = []
        if project is not None:
            removed = [repo for repo in project.repositories if meta.repository(repo.name) is None]
        affected = []
        if removed:
            self._drop_internal_edges(project, removed)
            affected = self.graph.check_and_remove_repositories(
                removed, force=force, remove_linking_repositories=remove_linking_repositories
            )
            for repo in removed:
                project.repositories.remove(repo)
            self.session.flush()

        created = project is None
        if created:
            project = self.projects.create(Project(name=name))
        self.mapper.apply_project_meta(project, meta)
        if created and not meta.persons:
            project.roles.append(ProjectRole(login=self.actor.login, role=Role.MAINTAINER.value))
        self.saga.precondition_checked()

        for other in affected:
            self.store_meta(other)
        self.store_meta(project)
        self.finish(
            HistoryKind.META,
            project,
            {
                "created": created,
                "removed_repositories": [repo.name for repo in removed],
                "repaired_projects": [p.name for p in affected],
            },
        )
        logger.info(f"{'created' if created else 'updated'} project {name}")
        return CommandResult.success(f"project {name} saved", created=created)

    def update_package_meta(
        self, project_name: str, package_name: str, meta: PackageMeta
    ) -> CommandResult:
        check_project_name(project_name)
        check_package_name(package_name)
        if meta.name != package_name or meta.project != project_name:
            msg = (
                f"package name in document ('{meta.project}/{meta.name}') does not "
                f"match '{project_name}/{package_name}'"
            )
            raise PackageNameMismatchError(msg)
        if package_name == PROJECT_META_PACKAGE:
            msg = f"package name '{PROJECT_META_PACKAGE}' is reserved"
            raise CreatePackageNoPermission(msg)

        project = self.projects.require(project_name)
        package = self.packages.get_by_name(project, package_name, for_update=True)
        if package is None:
            if not self.oracle.can_modify(project, self.actor):
                msg = f"no permission to create package in project '{project_name}'"
                raise CreatePackageNoPermission(msg)
            self.locks.assert_unlocked(project)
        else:
            if not self.oracle.can_modify(package, self.actor):
                msg = f"no permission to change package '{package.full_name}'"
                raise ChangePackageNoPermission(msg)
            self.locks.assert_unlocked(package)
        self.saga.authorized()

        _check_flag_syntax(meta.flags)
        if package is not None:
            self._check_protection(package, meta.flags)

        created = package is None
        if created:
            package = self.packages.create(Package(project=project, name=package_name))
        self.mapper.apply_package_meta(package, meta)
        self.saga.precondition_checked()

        self.store_meta(package)
        self.finish(HistoryKind.META, package, {"created": created})
        logger.info(f"{'created' if created else 'updated'} package {package.full_name}")
        return CommandResult.success(f"package {package.full_name} saved", created=created)

    def _drop_internal_edges(self, project: Project, removed: list) -> None:
        # edges between repositories of the saved project are rebuilt from the document
        for repo in project.repositories:
            if repo in removed:
                continue
            for edge in [*repo.path_elements, *repo.release_targets]:
                if edge.link is not None and edge.link in removed:
                    edge.detach()
            if repo.hostsystem is not None and repo.hostsystem in removed:
                repo.hostsystem = None

    # -------------------------------------------------------------- checks

    def _check_admin_only_attributes(self, project: Project | None, meta: ProjectMeta) -> None:
        if self.is_admin:
            return
        old_remote = (project.remote_url, project.remote_project) if project else (None, None)
        if (meta.remote_url, meta.remote_project) != old_remote:
            msg = "admin rights are required to change projects using remote resources"
            raise ChangeProjectNoPermission(msg)
        for repo_meta in meta.repositories:
            current = project.repository(repo_meta.name) if project else None
            old_url = current.download_url if current is not None else None
            if repo_meta.download_url != old_url:
                msg = "admin rights are required to change download on demand repositories"
                raise ChangeProjectNoPermission(msg)

    def _check_protection(self, entity: Project | Package, flags) -> None:
        for flag in flags:
            kind = parse_flag_kind(flag.flag)
            if kind in PROTECTION_FLAGS:
                self.flags.check_protection_change(
                    entity,
                    kind,
                    parse_flag_status(flag.status),
                    self.actor,
                    self.oracle,
                    flag.repository,
                    flag.arch,
                )


def _check_flag_syntax(flags) -> None:
    for flag in flags:
        parse_flag_kind(flag.flag)
        parse_flag_status(flag.status)

