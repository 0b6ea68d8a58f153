"""Repository dependency graph validation and repair.

The graph has repositories as nodes and two kinds of edges owned by the
source repository: path elements (build dependencies, ordered) and release
targets (promotion destinations). A hostsystem reference is a third,
optional, single edge.

Deleting a repository never cascades through the graph: only direct
referrers are repaired, either by rewriting the edge to a broken
reference or by removing it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger
from sqlalchemy import select

from buildsvc.constants import RepairMode
from buildsvc.exceptions import (
    CycleError,
    NotMissingError,
    ProjectCycleError,
    ProjectSaveError,
    RepoDependencyError,
    RepositoryAccessFailure,
)
from buildsvc.db.repository import ProjectRepository
from buildsvc.models.orm import ChannelTarget, PathElement, ReleaseTarget, Repository
from buildsvc.models.refs import RepoRef
from buildsvc.utils.names import parent_namespaces

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.orm import Session

    from buildsvc.models.metadata import PathMeta, ProjectMeta, ReleaseTargetMeta
    from buildsvc.models.orm import Package, Project

__all__ = ["Edge", "GraphValidator"]

Edge = PathElement | ReleaseTarget

_Node = tuple[str, str]


class GraphValidator:
    """
    Keep the repository graph well formed.

    Parameters
    ----------
    session : Session
        Session of the running saga step

    Examples
    --------
    >>> validator = GraphValidator(session)
    >>> validator.validate_links(meta)
    >>> dependents = validator.find_dependents(project.repositories)
    """

    def __init__(self, session: Session) -> None:
        self.session = session
        self.projects = ProjectRepository(session)

    # ------------------------------------------------------------------ save

    def validate_links(self, meta: ProjectMeta) -> None:
        """
        Check every edge of a project document before it is applied.

        Repositories of the document count as existing targets even when
        they are not stored yet. Broken sentinel edges are accepted as they
        are.

        Raises
        ------
        ProjectSaveError
            Self reference, or an architecture used twice in a repository
        RepositoryAccessFailure
            A path, hostsystem or release target that does not resolve
        NotMissingError
            A ``missing_ok`` path whose target exists
        CycleError
            A path cycle reachable from the saved repositories
        """
        local = {repo.name for repo in meta.repositories}
        for repo in meta.repositories:
            seen_archs: set[str] = set()
            for arch in repo.architectures:
                if arch in seen_archs:
                    msg = f"double use of architecture: '{arch}'"
                    raise ProjectSaveError(msg)
                seen_archs.add(arch)

            for path in repo.paths:
                if path.is_broken:
                    continue
                if _is_self(meta.name, repo.name, path.project, path.repository):
                    msg = "Using same repository as path element is not allowed"
                    raise ProjectSaveError(msg)
                self._check_target(meta, local, path, "path")

            host = repo.hostsystem
            if host is not None and not host.is_broken:
                if _is_self(meta.name, repo.name, host.project, host.repository):
                    msg = "Using same repository as hostsystem element is not allowed"
                    raise ProjectSaveError(msg)
                self._check_target(meta, local, host, "hostsystem")

            for target in repo.release_targets:
                if not target.is_broken:
                    self._check_target(meta, local, target, "releasetarget")

        self._check_path_cycles(meta)

    def target_exists(
        self, meta: ProjectMeta, project: str, repository: str
    ) -> tuple[bool, bool]:
        """
        Resolve a target for ``meta``.

        Returns
        -------
        tuple[bool, bool]
            ``(exists, remote)``; remote targets are never checked
        """
        if project == meta.name:
            return meta.repository(repository) is not None, False
        target_project = self.projects.get_by_name(project)
        if target_project is None:
            remote = any(
                parent is not None and parent.is_remote
                for parent in map(self.projects.get_by_name, parent_namespaces(project))
            )
            return False, remote
        if target_project.is_remote:
            return False, True
        return target_project.repository(repository) is not None, False

    def _check_target(
        self,
        meta: ProjectMeta,
        local: set[str],
        ref: PathMeta | ReleaseTargetMeta,
        kind: str,
    ) -> None:
        exists, remote = self.target_exists(meta, ref.project, ref.repository)
        if remote:
            return
        label = f"{ref.project}/{ref.repository}"
        if getattr(ref, "missing_ok", False):
            if exists:
                msg = f"path element '{label}' is marked missing_ok but exists"
                raise NotMissingError(msg)
            return
        if exists:
            return
        if kind == "path":
            msg = f"unable to walk on path '{label}'"
        elif kind == "hostsystem":
            msg = f"Unknown target repository '{label}'"
        else:
            msg = f"Unknown release target repository '{label}'"
        raise RepositoryAccessFailure(msg)

    def _check_path_cycles(self, meta: ProjectMeta) -> None:
        """Reject any path cycle reachable from the document's repositories."""

        def neighbours(node: _Node) -> list[_Node]:
            project, repository = node
            if project == meta.name:
                repo_meta = meta.repository(repository)
                if repo_meta is None:
                    return []
                return [
                    (p.project, p.repository)
                    for p in repo_meta.paths
                    if not p.is_broken and not p.missing_ok
                ]
            repo = self.projects.get_repository(project, repository)
            if repo is None:
                return []
            return [
                (target.project, target.repository)
                for target in (pe.target for pe in repo.path_elements)
                if isinstance(target, RepoRef)
            ]

        done: set[_Node] = set()
        for repo in meta.repositories:
            start = (meta.name, repo.name)
            if start in done:
                continue
            stack: list[tuple[_Node, list[_Node]]] = [(start, neighbours(start))]
            on_path = [start]
            while stack:
                node, pending = stack[-1]
                if not pending:
                    stack.pop()
                    on_path.pop()
                    done.add(node)
                    continue
                nxt = pending.pop(0)
                if nxt in on_path:
                    cycle = on_path[on_path.index(nxt):] + [nxt]
                    msg = "repository path cycle detected: " + " -> ".join(
                        f"{p}/{r}" for p, r in cycle
                    )
                    raise CycleError(msg)
                if nxt in done:
                    continue
                stack.append((nxt, neighbours(nxt)))
                on_path.append(nxt)

    # -------------------------------------------------------------- removal

    def find_dependents(self, repositories: Sequence[Repository]) -> list[Edge]:
        """
        Edges owned by other repositories that point at ``repositories``.

        Only direct referrers are returned. Edges owned by the repositories
        themselves are excluded since they disappear with them.
        """
        pks = [repo.pk for repo in repositories if repo.pk is not None]
        if not pks:
            return []
        self.session.flush()
        paths = select(PathElement).where(
            PathElement.link_fk.in_(pks), PathElement.repository_fk.not_in(pks)
        )
        targets = select(ReleaseTarget).where(
            ReleaseTarget.link_fk.in_(pks), ReleaseTarget.repository_fk.not_in(pks)
        )
        return [
            *self.session.execute(paths.order_by(PathElement.pk)).scalars(),
            *self.session.execute(targets.order_by(ReleaseTarget.pk)).scalars(),
        ]

    def repair_dangling(self, edges: Sequence[Edge], mode: RepairMode) -> list[Project]:
        """
        Repair edges whose target is about to disappear.

        Parameters
        ----------
        edges : Sequence[Edge]
            Edges returned by :meth:`find_dependents`
        mode : RepairMode
            ``RETARGET_TO_SENTINEL`` rewrites to a broken reference,
            ``FULL_REMOVE`` deletes the edge

        Returns
        -------
        list[Project]
            Projects owning a repaired edge, for re-storing their metadata
        """
        affected: dict[int, Project] = {}
        for edge in edges:
            owner = edge.repository
            logger.info(
                f"repairing {type(edge).__name__} {owner.full_name} -> {edge.target} ({mode.value})"
            )
            if mode is RepairMode.FULL_REMOVE:
                edge.detach()
            else:
                edge.mark_broken()
            affected[owner.project.pk] = owner.project
        self.session.flush()
        return list(affected.values())

    def check_and_remove_repositories(
        self,
        repositories: Sequence[Repository],
        force: bool = False,
        remove_linking_repositories: bool = False,
    ) -> list[Project]:
        """
        Prepare ``repositories`` for removal.

        Without ``force`` any dependent edge aborts with
        :class:`RepoDependencyError`. With ``force`` dependents are rewritten
        to the broken sentinel, or removed when
        ``remove_linking_repositories`` is set. Hostsystem references and
        channel targets on the repositories are released in both cases.

        Returns
        -------
        list[Project]
            Other projects whose metadata changed
        """
        dependents = self.find_dependents(repositories)
        if dependents and not force:
            raise _dependency_error(dependents)

        mode = (
            RepairMode.FULL_REMOVE
            if remove_linking_repositories
            else RepairMode.RETARGET_TO_SENTINEL
        )
        affected = {p.pk: p for p in self.repair_dangling(dependents, mode)}
        for project in self._release_hostsystems(repositories):
            affected[project.pk] = project
        self._drop_channel_targets(repositories)
        own = {repo.project_fk for repo in repositories}
        return [p for pk, p in affected.items() if pk not in own]

    def _release_hostsystems(self, repositories: Sequence[Repository]) -> list[Project]:
        pks = [repo.pk for repo in repositories]
        stmt = select(Repository).where(Repository.hostsystem_fk.in_(pks))
        affected = []
        for repo in self.session.execute(stmt).scalars():
            repo.hostsystem = None
            affected.append(repo.project)
        self.session.flush()
        return affected

    def _drop_channel_targets(self, repositories: Sequence[Repository]) -> None:
        pks = [repo.pk for repo in repositories]
        stmt = select(ChannelTarget).where(ChannelTarget.repository_fk.in_(pks))
        for target in self.session.execute(stmt).scalars():
            target.package.channel_targets.remove(target)
        self.session.flush()

    # --------------------------------------------------------------- devel

    def check_devel_project(self, project_name: str, devel: Project | None) -> None:
        """
        Reject a devel project reference that would close a cycle.

        Raises
        ------
        ProjectCycleError
            If ``devel`` is the project itself or leads back to it
        """
        chain = [project_name]
        current = devel
        while current is not None:
            chain.append(current.name)
            if current.name == project_name:
                msg = "Project devel cycle detected: " + " -> ".join(chain)
                raise ProjectCycleError(msg)
            if current.name in chain[:-1]:
                break
            current = current.develproject

    def check_devel_package(
        self, project_name: str, package_name: str, devel: Package | None
    ) -> None:
        """
        Reject a devel package reference that would close a cycle.

        Raises
        ------
        CycleError
            If ``devel`` is the package itself or leads back to it
        """
        start = f"{project_name}/{package_name}"
        chain = [start]
        current = devel
        while current is not None:
            name = current.full_name
            chain.append(name)
            if name == start:
                msg = "Package devel cycle detected: " + " -> ".join(chain)
                raise CycleError(msg)
            if name in chain[:-1]:
                break
            current = current.develpackage


def _is_self(project: str, repository: str, ref_project: str, ref_repository: str) -> bool:
    return (
        project.lower() == ref_project.lower()
        and repository.lower() == ref_repository.lower()
    )


def _dependency_error(dependents: Sequence[Edge]) -> RepoDependencyError:
    names = sorted({edge.repository.full_name for edge in dependents})
    if any(isinstance(edge, PathElement) for edge in dependents):
        head = "following repositories depend on this project:"
    else:
        head = "following target repositories depend on this project:"
    msg = "Unable to delete repository; " + head + "\n" + "\n".join(names)
    return RepoDependencyError(msg, dependents=names)
