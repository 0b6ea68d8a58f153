"""Repository pattern for data access layer."""

from __future__ import annotations

from typing import TYPE_CHECKING, Generic, TypeVar

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError

from buildsvc.constants import RequestState
from buildsvc.exceptions import (
    PackageExistsError,
    ProjectExistsError,
    UnknownPackageError,
    UnknownProjectError,
)
from buildsvc.models.orm import (
    ChangeRequest,
    HistoryElement,
    LinkedProject,
    Package,
    Project,
    Repository,
)
from buildsvc.utils.names import parent_namespaces

if TYPE_CHECKING:
    from sqlalchemy.orm import DeclarativeBase, Session

__all__ = [
    "BaseRepository",
    "ChangeRequestRepository",
    "HistoryRepository",
    "PackageRepository",
    "ProjectRepository",
]

T = TypeVar("T", bound="DeclarativeBase")


class BaseRepository(Generic[T]):
    """
    Base repository providing write operations.

    Parameters
    ----------
    session : Session
        SQLAlchemy database session
    model_class : type[T]
        ORM model class

    Examples
    --------
    >>> repo = ProjectRepository(session)
    >>> repo.delete(repo.require("home:user:old"))
    """

    def __init__(self, session: Session, model_class: type[T]) -> None:
        self.session = session
        self.model_class = model_class

    def create(self, obj: T) -> T:
        """
        Create new entity.

        Returns
        -------
        T
            Created entity (with DB-generated fields populated)
        """
        self.session.add(obj)
        self.session.flush()
        self.session.refresh(obj)
        return obj

    def update(self, obj: T) -> T:
        """Flush modifications of an existing entity."""
        self.session.add(obj)
        self.session.flush()
        return obj

    def delete(self, obj: T) -> None:
        """Delete entity."""
        self.session.delete(obj)
        self.session.flush()


class ProjectRepository(BaseRepository[Project]):
    """
    Project lookups.

    Examples
    --------
    >>> repo = ProjectRepository(session)
    >>> project = repo.require("openSUSE:Factory")
    """

    def __init__(self, session: Session) -> None:
        super().__init__(session, Project)

    def get_by_name(self, name: str, for_update: bool = False) -> Project | None:
        """
        Get project by unique name.

        Parameters
        ----------
        name : str
            Project name
        for_update : bool, optional
            Lock the row until the transaction ends, by default False.
            Dialects without row locks ignore this.
        """
        stmt = select(Project).where(Project.name == name)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalars().first()

    def require(self, name: str, for_update: bool = False) -> Project:
        """Get project by name or raise :class:`UnknownProjectError`."""
        project = self.get_by_name(name, for_update=for_update)
        if project is None:
            msg = f"project '{name}' does not exist"
            raise UnknownProjectError(msg)
        return project

    def exists(self, name: str) -> bool:
        stmt = select(Project.pk).where(Project.name == name)
        return self.session.execute(stmt).first() is not None

    def create(self, obj: Project) -> Project:
        try:
            return super().create(obj)
        except IntegrityError as exc:
            msg = f"project '{obj.name}' already exists"
            raise ProjectExistsError(msg) from exc

    def get_repository(self, project_name: str, repository_name: str) -> Repository | None:
        """Get repository by project and repository name."""
        stmt = (
            select(Repository)
            .join(Project, Repository.project_fk == Project.pk)
            .where(Project.name == project_name, Repository.name == repository_name)
        )
        return self.session.execute(stmt).scalars().first()

    def nearest_parent(self, name: str) -> Project | None:
        """Closest existing enclosing namespace project of ``name``."""
        for parent in parent_namespaces(name):
            project = self.get_by_name(parent)
            if project is not None:
                return project
        return None

    def is_remote_name(self, name: str) -> bool:
        """Whether ``name`` lies below a remote-origin project."""
        parent = self.nearest_parent(name)
        return parent is not None and parent.is_remote

    def linking_projects(self, project: Project) -> list[Project]:
        """Projects carrying a project link to ``project``."""
        stmt = (
            select(Project)
            .join(LinkedProject, LinkedProject.project_fk == Project.pk)
            .where(LinkedProject.linked_db_project_fk == project.pk)
            .order_by(Project.name)
        )
        return list(self.session.execute(stmt).scalars().unique().all())

    def devel_users(self, project: Project) -> list[Project]:
        """Projects using ``project`` as devel project."""
        stmt = select(Project).where(
            Project.develproject_fk == project.pk, Project.pk != project.pk
        )
        return list(self.session.execute(stmt).scalars().all())


class PackageRepository(BaseRepository[Package]):
    """Package lookups, including lookups through project links."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, Package)

    def get_by_name(
        self, project: Project, name: str, for_update: bool = False
    ) -> Package | None:
        stmt = select(Package).where(
            Package.project_fk == project.pk, Package.name == name
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalars().first()

    def find(
        self, project: Project, name: str, follow_project_links: bool = False
    ) -> Package | None:
        """
        Find a package in ``project`` or, optionally, in its linked projects.

        Linked projects are searched depth first in link order; each project
        is visited once.

        Parameters
        ----------
        project : Project
            Project to start from
        name : str
            Package name
        follow_project_links : bool, optional
            Search linked projects too, by default False
        """
        package = self.get_by_name(project, name)
        if package is not None or not follow_project_links:
            return package
        seen = {project.pk}
        stack = [link.linked_db_project for link in reversed(project.linked_projects)]
        while stack:
            linked = stack.pop()
            if linked is None or linked.pk in seen:
                continue
            seen.add(linked.pk)
            package = self.get_by_name(linked, name)
            if package is not None:
                return package
            stack.extend(
                link.linked_db_project for link in reversed(linked.linked_projects)
            )
        return None

    def require(
        self, project: Project, name: str, follow_project_links: bool = False
    ) -> Package:
        """Find a package or raise :class:`UnknownPackageError`."""
        package = self.find(project, name, follow_project_links=follow_project_links)
        if package is None:
            msg = f"package '{project.name}/{name}' does not exist"
            raise UnknownPackageError(msg)
        return package

    def create(self, obj: Package) -> Package:
        msg = f"package '{obj.project.name}/{obj.name}' already exists"
        try:
            return super().create(obj)
        except IntegrityError as exc:
            raise PackageExistsError(msg) from exc

    def linking_packages(self, project_name: str, package_name: str) -> list[Package]:
        """Packages whose link record points at ``project_name/package_name``."""
        stmt = select(Package).where(
            Package.link_project == project_name,
            Package.link_package == package_name,
        )
        return list(self.session.execute(stmt).scalars().all())

    def devel_users(self, packages: list[Package]) -> list[Package]:
        """Packages outside ``packages`` using one of them as devel package."""
        pks = [p.pk for p in packages]
        if not pks:
            return []
        stmt = select(Package).where(
            Package.develpackage_fk.in_(pks), Package.pk.not_in(pks)
        )
        return list(self.session.execute(stmt).scalars().all())


class ChangeRequestRepository(BaseRepository[ChangeRequest]):
    """Change request lookups."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, ChangeRequest)

    def open_referencing(
        self, project_name: str, package_name: str | None = None
    ) -> list[ChangeRequest]:
        """
        Open requests naming the project (or one package of it) as source or target.
        """
        source = ChangeRequest.source_project == project_name
        target = ChangeRequest.target_project == project_name
        if package_name is not None:
            source = source & (ChangeRequest.source_package == package_name)
            target = target & (ChangeRequest.target_package == package_name)
        stmt = (
            select(ChangeRequest)
            .where(
                or_(source, target),
                ChangeRequest.state.in_(
                    [RequestState.NEW.value, RequestState.REVIEW.value]
                ),
            )
            .order_by(ChangeRequest.pk)
        )
        return list(self.session.execute(stmt).scalars().all())


class HistoryRepository(BaseRepository[HistoryElement]):
    """Read access to the append-only history."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, HistoryElement)

    def for_entity(
        self, entity_type: str, project_name: str, package_name: str | None = None
    ) -> list[HistoryElement]:
        stmt = (
            select(HistoryElement)
            .where(
                HistoryElement.entity_type == entity_type,
                HistoryElement.project_name == project_name,
                HistoryElement.package_name.is_(None)
                if package_name is None
                else HistoryElement.package_name == package_name,
            )
            .order_by(HistoryElement.revision)
        )
        return list(self.session.execute(stmt).scalars().all())

    def latest_revision(
        self, entity_type: str, project_name: str, package_name: str | None = None
    ) -> int:
        stmt = select(func.max(HistoryElement.revision)).where(
            HistoryElement.entity_type == entity_type,
            HistoryElement.project_name == project_name,
            HistoryElement.package_name.is_(None)
            if package_name is None
            else HistoryElement.package_name == package_name,
        )
        return self.session.execute(stmt).scalar() or 0
