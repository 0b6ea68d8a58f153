"""Role assignment models: ProjectRole, PackageRole."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from buildsvc.models.orm.base import Base
from buildsvc.utils import Login, Pk, fk

if TYPE_CHECKING:
    from buildsvc.models.orm.package import Package
    from buildsvc.models.orm.project import Project


class ProjectRole(Base):
    """User role on a project."""

    __tablename__ = "project_role"

    pk: Mapped[Pk]

    project_fk: Mapped[int] = fk("project", nullable=False, index=True)

    login: Mapped[Login]

    role: Mapped[str] = mapped_column(String(32))

    project: Mapped[Project] = relationship(back_populates="roles")

    __table_args__ = (
        UniqueConstraint("project_fk", "login", "role", name="uq_project_role"),
    )


class PackageRole(Base):
    """User role on a package."""

    __tablename__ = "package_role"

    pk: Mapped[Pk]

    package_fk: Mapped[int] = fk("package", nullable=False, index=True)

    login: Mapped[Login]

    role: Mapped[str] = mapped_column(String(32))

    package: Mapped[Package] = relationship(back_populates="roles")

    __table_args__ = (
        UniqueConstraint("package_fk", "login", "role", name="uq_package_role"),
    )
