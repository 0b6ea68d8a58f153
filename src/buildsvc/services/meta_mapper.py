"""Conversion between ORM rows and metadata documents."""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from buildsvc.constants import BROKEN_SENTINEL, Role
from buildsvc.db.repository import PackageRepository, ProjectRepository
from buildsvc.exceptions import (
    ProjectSaveError,
    UnknownPackageError,
    UnknownProjectError,
    UnknownRepositoryError,
    ValidationFailedError,
)
from buildsvc.graph.validator import GraphValidator
from buildsvc.models.metadata import (
    ChannelBinaryMeta,
    ChannelMeta,
    ChannelTargetMeta,
    DevelMeta,
    FlagMeta,
    LinkMeta,
    PackageMeta,
    PathMeta,
    PersonMeta,
    ProjectMeta,
    ReleaseTargetMeta,
    RepositoryMeta,
)
from buildsvc.models.orm import (
    ChannelBinary,
    ChannelTarget,
    Flag,
    LinkedProject,
    PackageRole,
    PathElement,
    ProjectRole,
    ReleaseTarget,
    Repository,
    RepositoryArchitecture,
)
from buildsvc.models.refs import BrokenRef, DanglingRef
from buildsvc.policy.flags import parse_flag_kind, parse_flag_status

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from buildsvc.models.orm import Package, Project

__all__ = ["MetaMapper"]


class MetaMapper:
    """
    Render and apply metadata documents.

    ``apply_*`` methods expect an already validated document. With
    ``strict=False`` unresolvable devel, link and channel references are
    skipped instead of raising, which is what rebuilding rows from a
    backend copy after undelete needs.
    """

    def __init__(self, session: Session) -> None:
        self.session = session
        self.projects = ProjectRepository(session)
        self.packages = PackageRepository(session)
        self.graph = GraphValidator(session)

    # -------------------------------------------------------------- render

    def project_to_meta(self, project: Project) -> ProjectMeta:
        return ProjectMeta(
            name=project.name,
            title=project.title or "",
            description=project.description or "",
            remote_url=project.remote_url,
            remote_project=project.remote_project,
            devel=DevelMeta(project.develproject.name) if project.develproject else None,
            links=[link.linked_name for link in project.linked_projects],
            persons=[PersonMeta(r.login, r.role) for r in _sorted_roles(project.roles)],
            flags=[_flag_meta(f) for f in project.flags],
            repositories=[_repository_meta(repo) for repo in project.repositories],
        )

    def package_to_meta(self, package: Package) -> PackageMeta:
        devel = None
        if package.develpackage is not None:
            devel = DevelMeta(package.develpackage.project.name, package.develpackage.name)
        link = None
        if package.is_link:
            link = LinkMeta(package.link_project, package.link_package, package.link_revision)
        channel = None
        if package.is_channel:
            channel = ChannelMeta(
                targets=[
                    ChannelTargetMeta(t.repository.project.name, t.repository.name, t.disabled)
                    for t in package.channel_targets
                ],
                binaries=[
                    ChannelBinaryMeta(
                        name=b.name,
                        project=b.binary_project,
                        repository=b.binary_repository,
                        arch=b.architecture,
                        package=b.binary_package,
                    )
                    for b in package.channel_binaries
                ],
            )
        return PackageMeta(
            name=package.name,
            project=package.project.name,
            title=package.title or "",
            description=package.description or "",
            devel=devel,
            link=link,
            persons=[PersonMeta(r.login, r.role) for r in _sorted_roles(package.roles)],
            flags=[_flag_meta(f) for f in package.flags],
            channel=channel,
        )

    # --------------------------------------------------------------- apply

    def apply_project_meta(
        self, project: Project, meta: ProjectMeta, strict: bool = True
    ) -> None:
        """
        Make ``project`` match ``meta``.

        Repositories missing from ``meta`` must have been removed by the
        caller; repositories are matched by name and created in a first
        pass so that edges between them resolve in the second.
        """
        project.title = meta.title or None
        project.description = meta.description or None
        project.remote_url = meta.remote_url
        project.remote_project = meta.remote_project

        self._apply_devel_project(project, meta, strict)
        self._apply_links(project, meta, strict)
        _sync_roles(project.roles, meta.persons, ProjectRole)
        _replace_flags(project.flags, meta.flags)

        for repo_meta in meta.repositories:
            repo = project.repository(repo_meta.name)
            if repo is None:
                repo = Repository(name=repo_meta.name)
                project.repositories.append(repo)
            repo.download_url = repo_meta.download_url
            repo.rebuild = repo_meta.rebuild
            repo.block = repo_meta.block
            repo.linkedbuild = repo_meta.linkedbuild
            repo.architectures = [
                RepositoryArchitecture(name=arch, position=i)
                for i, arch in enumerate(repo_meta.architectures, start=1)
            ]
        self.session.flush()

        for repo_meta in meta.repositories:
            repo = project.repository(repo_meta.name)
            repo.path_elements.clear()
            for i, path in enumerate(repo_meta.paths, start=1):
                element = PathElement(position=i)
                self._resolve(element, project, path.project, path.repository, path.is_broken)
                repo.path_elements.append(element)

            host = repo_meta.hostsystem
            repo.hostsystem = None
            if host is not None and not host.is_broken:
                repo.hostsystem = self._lookup(project, host.project, host.repository)

            repo.release_targets.clear()
            for target in repo_meta.release_targets:
                edge = ReleaseTarget(trigger=target.trigger)
                self._resolve(
                    edge, project, target.project, target.repository, target.is_broken
                )
                repo.release_targets.append(edge)
        self.session.flush()

    def apply_package_meta(
        self, package: Package, meta: PackageMeta, strict: bool = True
    ) -> None:
        package.title = meta.title or None
        package.description = meta.description or None

        package.develpackage = None
        if meta.devel is not None:
            devel = self._lookup_package(meta.devel.project, meta.devel.package or package.name)
            if devel is None and strict:
                msg = f"unknown devel package '{meta.devel.project}/{meta.devel.package or package.name}'"
                raise UnknownPackageError(msg)
            if devel is not None:
                self.graph.check_devel_package(package.project.name, package.name, devel)
                package.develpackage = devel

        if meta.link is not None:
            package.link_project = meta.link.project
            package.link_package = meta.link.package or package.name
            package.link_revision = meta.link.revision
        else:
            package.link_project = package.link_package = package.link_revision = None

        _sync_roles(package.roles, meta.persons, PackageRole)
        _replace_flags(package.flags, meta.flags)
        self.apply_channel(package, meta.channel or ChannelMeta(), strict)
        self.session.flush()

    # ------------------------------------------------------------- helpers

    def _apply_devel_project(self, project: Project, meta: ProjectMeta, strict: bool) -> None:
        project.develproject = None
        if meta.devel is None:
            return
        devel = self.projects.get_by_name(meta.devel.project)
        if devel is None:
            if strict:
                msg = f"unknown devel project '{meta.devel.project}'"
                raise UnknownProjectError(msg)
            return
        self.graph.check_devel_project(project.name, devel)
        project.develproject = devel

    def _apply_links(self, project: Project, meta: ProjectMeta, strict: bool) -> None:
        wanted = []
        for name in meta.links:
            if name == project.name:
                msg = f"project links against itself, this is not allowed: '{name}'"
                raise ProjectSaveError(msg)
            linked = self.projects.get_by_name(name)
            if linked is None and strict and not self.projects.is_remote_name(name):
                msg = f"linked project '{name}' does not exist"
                raise UnknownProjectError(msg)
            wanted.append((name, linked))
        project.linked_projects.clear()
        for position, (name, linked) in enumerate(wanted, start=1):
            project.linked_projects.append(
                LinkedProject(
                    linked_db_project=linked,
                    linked_remote_project_name=None if linked is not None else name,
                    position=position,
                )
            )

    def apply_channel(
        self, package: Package, channel: ChannelMeta, strict: bool = True
    ) -> None:
        """Replace the channel targets and binaries of ``package``."""
        targets = []
        for target in channel.targets:
            repo = self.projects.get_repository(target.project, target.repository)
            if repo is None:
                if strict:
                    msg = f"unknown channel target repository '{target.project}/{target.repository}'"
                    raise UnknownRepositoryError(msg)
                continue
            targets.append(ChannelTarget(repository=repo, disabled=target.disabled))

        binaries = []
        for binary in channel.binaries:
            if strict:
                source = self.projects.get_by_name(binary.project)
                if source is None:
                    msg = f"unknown project '{binary.project}' in channel binary {binary.name}"
                    raise UnknownProjectError(msg)
                if binary.repository and source.repository(binary.repository) is None:
                    msg = f"unknown repository '{binary.project}/{binary.repository}'"
                    raise UnknownRepositoryError(msg)
                if binary.package and self.packages.find(source, binary.package, True) is None:
                    msg = f"unknown package '{binary.project}/{binary.package}'"
                    raise UnknownPackageError(msg)
            binaries.append(
                ChannelBinary(
                    name=binary.name,
                    binary_project=binary.project,
                    binary_repository=binary.repository,
                    architecture=binary.arch,
                    binary_package=binary.package,
                )
            )
        package.channel_targets = targets
        package.channel_binaries = binaries

    def _lookup(self, project: Project, ref_project: str, ref_repository: str) -> Repository | None:
        if ref_project == project.name:
            return project.repository(ref_repository)
        return self.projects.get_repository(ref_project, ref_repository)

    def _lookup_package(self, project_name: str, package_name: str) -> Package | None:
        project = self.projects.get_by_name(project_name)
        if project is None:
            return None
        return self.packages.get_by_name(project, package_name)

    def _resolve(
        self,
        edge: PathElement | ReleaseTarget,
        project: Project,
        ref_project: str,
        ref_repository: str,
        broken: bool,
    ) -> None:
        if broken:
            edge.mark_broken()
            return
        target = self._lookup(project, ref_project, ref_repository)
        if target is None:
            logger.debug(f"edge to {ref_project}/{ref_repository} left unresolved")
            edge.mark_dangling(ref_project, ref_repository)
        else:
            edge.point_to(target)


def _flag_meta(flag: Flag) -> FlagMeta:
    return FlagMeta(flag.flag, flag.status, flag.repo, flag.architecture)


def _sorted_roles(roles):
    return sorted(roles, key=lambda r: (r.role, r.login))


def _sync_roles(current: list, persons: list[PersonMeta], role_cls: type) -> None:
    wanted = []
    for person in persons:
        try:
            Role(person.role)
        except ValueError:
            msg = f"unknown role '{person.role}' for user {person.login}"
            raise ValidationFailedError(msg) from None
        key = (person.login, person.role)
        if key not in wanted:
            wanted.append(key)
    for role in [r for r in current if (r.login, r.role) not in wanted]:
        current.remove(role)
    present = {(r.login, r.role) for r in current}
    for login, role in wanted:
        if (login, role) not in present:
            current.append(role_cls(login=login, role=role))


def _replace_flags(current: list[Flag], flags: list[FlagMeta]) -> None:
    new = [
        Flag(
            flag=parse_flag_kind(f.flag).value,
            status=parse_flag_status(f.status).value,
            repo=f.repository,
            architecture=f.arch,
            position=i,
        )
        for i, f in enumerate(flags, start=1)
    ]
    current.clear()
    current.extend(new)


def _path_meta(target) -> PathMeta:
    if isinstance(target, BrokenRef):
        return PathMeta(BROKEN_SENTINEL, BROKEN_SENTINEL)
    if isinstance(target, DanglingRef):
        return PathMeta(target.project, target.repository, missing_ok=True)
    return PathMeta(target.project, target.repository)


def _repository_meta(repo: Repository) -> RepositoryMeta:
    hostsystem = None
    if repo.hostsystem is not None:
        hostsystem = PathMeta(repo.hostsystem.project.name, repo.hostsystem.name)
    release_targets = []
    for edge in repo.release_targets:
        path = _path_meta(edge.target)
        release_targets.append(ReleaseTargetMeta(path.project, path.repository, edge.trigger))
    return RepositoryMeta(
        name=repo.name,
        paths=[_path_meta(pe.target) for pe in repo.path_elements],
        hostsystem=hostsystem,
        release_targets=release_targets,
        architectures=repo.architecture_names,
        download_url=repo.download_url,
        rebuild=repo.rebuild,
        block=repo.block,
        linkedbuild=repo.linkedbuild,
    )
