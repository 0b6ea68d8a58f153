"""Repository graph models: Repository, RepositoryArchitecture, PathElement, ReleaseTarget."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from buildsvc.constants import RefState
from buildsvc.models.orm.base import Base
from buildsvc.models.refs import BrokenRef, DanglingRef, RepoRef
from buildsvc.utils import EntityName, LongStr, Pk, Position, fk

if TYPE_CHECKING:
    from buildsvc.models.orm.project import Project
    from buildsvc.models.refs import EdgeTarget


class Repository(Base):
    """
    Build configuration owned by a project.

    Attributes
    ----------
    pk : int
        Integer primary key
    project_fk : int
        Owning project
    name : str
        Repository name, unique within the project
    hostsystem_fk : int | None
        Repository providing the host build environment
    download_url : str | None
        Download-on-demand source for binaries
    rebuild, block, linkedbuild : str | None
        Scheduler modes, passed through to the backend
    """

    __tablename__ = "repository"

    pk: Mapped[Pk]

    project_fk: Mapped[int] = fk("project", nullable=False, index=True)

    name: Mapped[EntityName]

    hostsystem_fk: Mapped[int | None] = fk("repository", nullable=True)

    download_url: Mapped[LongStr | None]

    rebuild: Mapped[str | None] = mapped_column(String(16))

    block: Mapped[str | None] = mapped_column(String(16))

    linkedbuild: Mapped[str | None] = mapped_column(String(16))

    # Relationships
    project: Mapped[Project] = relationship(back_populates="repositories")

    hostsystem: Mapped[Repository | None] = relationship(
        remote_side="Repository.pk",
        foreign_keys="Repository.hostsystem_fk",
    )

    path_elements: Mapped[list[PathElement]] = relationship(
        back_populates="repository",
        cascade="all, delete-orphan",
        foreign_keys="PathElement.repository_fk",
        order_by="PathElement.position",
    )

    release_targets: Mapped[list[ReleaseTarget]] = relationship(
        back_populates="repository",
        cascade="all, delete-orphan",
        foreign_keys="ReleaseTarget.repository_fk",
        order_by="ReleaseTarget.pk",
    )

    architectures: Mapped[list[RepositoryArchitecture]] = relationship(
        back_populates="repository",
        cascade="all, delete-orphan",
        order_by="RepositoryArchitecture.position",
    )

    __table_args__ = (
        UniqueConstraint("project_fk", "name", name="uq_repository_project_name"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.project.name}/{self.name}"

    @property
    def architecture_names(self) -> list[str]:
        return [arch.name for arch in self.architectures]

    def __repr__(self) -> str:
        return f"Repository({self.name!r})"


class RepositoryArchitecture(Base):
    """Ordered architecture binding of a repository."""

    __tablename__ = "repository_architecture"

    pk: Mapped[Pk]

    repository_fk: Mapped[int] = fk("repository", nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(32))

    position: Mapped[Position]

    repository: Mapped[Repository] = relationship(back_populates="architectures")


class _EdgeMixin:
    """Typed access to the target of a graph edge.

    Subclasses map ``state``, ``ref_project``, ``ref_repository`` and a
    ``link`` relationship to the target repository.
    """

    @property
    def target(self) -> EdgeTarget:
        if self.state == RefState.BROKEN.value:
            return BrokenRef()
        if self.state == RefState.DANGLING.value or self.link is None:
            return DanglingRef(self.ref_project or "", self.ref_repository or "")
        return RepoRef(self.link.project.name, self.link.name)

    def point_to(self, repository: Repository) -> None:
        self.link = repository
        self.state = RefState.LINKED.value
        self.ref_project = None
        self.ref_repository = None

    def mark_broken(self) -> None:
        self.link = None
        self.state = RefState.BROKEN.value
        self.ref_project = None
        self.ref_repository = None

    def mark_dangling(self, project: str, repository: str) -> None:
        self.link = None
        self.state = RefState.DANGLING.value
        self.ref_project = project
        self.ref_repository = repository


class PathElement(_EdgeMixin, Base):
    """
    Ordered dependency edge from a repository to another repository.

    Attributes
    ----------
    repository_fk : int
        Owning repository (edge source)
    link_fk : int | None
        Target repository when resolved locally
    state : str
        One of :class:`~buildsvc.constants.RefState`
    ref_project, ref_repository : str | None
        Target names of a dangling edge
    """

    __tablename__ = "path_element"

    pk: Mapped[Pk]

    repository_fk: Mapped[int] = fk("repository", nullable=False, index=True)

    link_fk: Mapped[int | None] = fk("repository", nullable=True, index=True)

    position: Mapped[Position]

    state: Mapped[str] = mapped_column(String(16), default=RefState.LINKED.value)

    ref_project: Mapped[str | None] = mapped_column(String(200))

    ref_repository: Mapped[str | None] = mapped_column(String(200))

    repository: Mapped[Repository] = relationship(
        back_populates="path_elements",
        foreign_keys=[repository_fk],
    )

    link: Mapped[Repository | None] = relationship(foreign_keys=[link_fk])

    def detach(self) -> None:
        self.repository.path_elements.remove(self)


class ReleaseTarget(_EdgeMixin, Base):
    """
    Promotion destination of a repository's build output.

    Attributes
    ----------
    repository_fk : int
        Owning repository
    link_fk : int | None
        Target repository when resolved locally
    trigger : str | None
        ``manual``, ``maintenance`` or an automatic mode; None means automatic
    """

    __tablename__ = "release_target"

    pk: Mapped[Pk]

    repository_fk: Mapped[int] = fk("repository", nullable=False, index=True)

    link_fk: Mapped[int | None] = fk("repository", nullable=True, index=True)

    trigger: Mapped[str | None] = mapped_column(String(16))

    state: Mapped[str] = mapped_column(String(16), default=RefState.LINKED.value)

    ref_project: Mapped[str | None] = mapped_column(String(200))

    ref_repository: Mapped[str | None] = mapped_column(String(200))

    repository: Mapped[Repository] = relationship(
        back_populates="release_targets",
        foreign_keys=[repository_fk],
    )

    link: Mapped[Repository | None] = relationship(foreign_keys=[link_fk])

    def detach(self) -> None:
        self.repository.release_targets.remove(self)
