"""Project models: Project, LinkedProject."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from buildsvc.models.orm.base import Base
from buildsvc.utils import (
    Created_at,
    Desc,
    EntityKey,
    LongStr,
    Pk,
    Position,
    Title,
    Updated_at,
    fk,
)

if TYPE_CHECKING:
    from buildsvc.models.orm.flag import Flag
    from buildsvc.models.orm.package import Package
    from buildsvc.models.orm.repository import Repository
    from buildsvc.models.orm.role import ProjectRole


class Project(Base):
    """
    Top-level namespace owning packages and repositories.

    Names are colon separated hierarchies (``home:user:branches:devel``).
    A project is remote-origin when ``remote_url`` is set: it proxies a
    project hosted elsewhere and edges into it are tolerated unresolved.

    Attributes
    ----------
    pk : int
        Integer primary key
    name : str
        Unique project name
    title : str | None
        Display title
    description : str | None
        Free text description
    remote_url : str | None
        Base URL of the remote instance for remote-origin projects
    remote_project : str | None
        Project name on the remote instance
    develproject_fk : int | None
        Project where development of this project happens
    """

    __tablename__ = "project"

    pk: Mapped[Pk]

    name: Mapped[EntityKey]

    title: Mapped[Title | None]

    description: Mapped[Desc | None]

    remote_url: Mapped[LongStr | None]

    remote_project: Mapped[LongStr | None]

    develproject_fk: Mapped[int | None] = fk("project", nullable=True)

    created_at: Mapped[Created_at]

    updated_at: Mapped[Updated_at]

    # Relationships
    develproject: Mapped[Project | None] = relationship(
        remote_side="Project.pk",
        foreign_keys="Project.develproject_fk",
    )

    packages: Mapped[list[Package]] = relationship(
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="Package.name",
    )

    repositories: Mapped[list[Repository]] = relationship(
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="Repository.pk",
    )

    flags: Mapped[list[Flag]] = relationship(
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="Flag.position",
    )

    roles: Mapped[list[ProjectRole]] = relationship(
        back_populates="project",
        cascade="all, delete-orphan",
    )

    linked_projects: Mapped[list[LinkedProject]] = relationship(
        back_populates="project",
        cascade="all, delete-orphan",
        foreign_keys="LinkedProject.project_fk",
        order_by="LinkedProject.position",
    )

    @property
    def is_remote(self) -> bool:
        return bool(self.remote_url)

    def repository(self, name: str) -> Repository | None:
        """Return the owned repository called ``name``, if any."""
        for repo in self.repositories:
            if repo.name == name:
                return repo
        return None

    def package(self, name: str) -> Package | None:
        """Return the owned package called ``name``, if any."""
        for pkg in self.packages:
            if pkg.name == name:
                return pkg
        return None

    def __repr__(self) -> str:
        return f"Project({self.name!r})"


class LinkedProject(Base):
    """
    Ordered project link making another project's packages visible.

    The link target is either a local project (``linked_db_project_fk``) or a
    name on a remote instance (``linked_remote_project_name``).
    """

    __tablename__ = "linked_project"

    pk: Mapped[Pk]

    project_fk: Mapped[int] = fk("project", nullable=False, index=True)

    linked_db_project_fk: Mapped[int | None] = fk("project", nullable=True)

    linked_remote_project_name: Mapped[str | None] = mapped_column(String(200))

    position: Mapped[Position]

    project: Mapped[Project] = relationship(
        back_populates="linked_projects",
        foreign_keys=[project_fk],
    )

    linked_db_project: Mapped[Project | None] = relationship(
        foreign_keys=[linked_db_project_fk],
    )

    @property
    def linked_name(self) -> str:
        if self.linked_db_project is not None:
            return self.linked_db_project.name
        return self.linked_remote_project_name or ""
