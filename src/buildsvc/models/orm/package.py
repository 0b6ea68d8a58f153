"""Package model."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from buildsvc.models.orm.base import Base
from buildsvc.utils import Created_at, Desc, EntityName, Pk, Title, Updated_at, fk

if TYPE_CHECKING:
    from buildsvc.models.orm.channel import ChannelBinary, ChannelTarget
    from buildsvc.models.orm.flag import Flag
    from buildsvc.models.orm.project import Project
    from buildsvc.models.orm.role import PackageRole


class Package(Base):
    """
    Named source container inside a project.

    A branched package carries a link record (``link_project``,
    ``link_package``, ``link_revision``); the backend resolves the link into
    content. The record is kept by name so it survives deletion of the
    link target.

    Attributes
    ----------
    pk : int
        Integer primary key
    project_fk : int
        Owning project
    name : str
        Package name, unique within the project
    develpackage_fk : int | None
        Package where development happens (may be cross-project)
    link_project, link_package : str | None
        Link target written by branch
    link_revision : str | None
        Pinned revision of the link target
    """

    __tablename__ = "package"

    pk: Mapped[Pk]

    project_fk: Mapped[int] = fk("project", nullable=False, index=True)

    name: Mapped[EntityName]

    title: Mapped[Title | None]

    description: Mapped[Desc | None]

    develpackage_fk: Mapped[int | None] = fk("package", nullable=True)

    link_project: Mapped[str | None] = mapped_column(String(200))

    link_package: Mapped[str | None] = mapped_column(String(200))

    link_revision: Mapped[str | None] = mapped_column(String(64))

    created_at: Mapped[Created_at]

    updated_at: Mapped[Updated_at]

    # Relationships
    project: Mapped[Project] = relationship(back_populates="packages")

    develpackage: Mapped[Package | None] = relationship(
        remote_side="Package.pk",
        foreign_keys="Package.develpackage_fk",
    )

    flags: Mapped[list[Flag]] = relationship(
        back_populates="package",
        cascade="all, delete-orphan",
        order_by="Flag.position",
    )

    roles: Mapped[list[PackageRole]] = relationship(
        back_populates="package",
        cascade="all, delete-orphan",
    )

    channel_targets: Mapped[list[ChannelTarget]] = relationship(
        back_populates="package",
        cascade="all, delete-orphan",
        order_by="ChannelTarget.pk",
    )

    channel_binaries: Mapped[list[ChannelBinary]] = relationship(
        back_populates="package",
        cascade="all, delete-orphan",
        order_by="ChannelBinary.pk",
    )

    __table_args__ = (
        UniqueConstraint("project_fk", "name", name="uq_package_project_name"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.project.name}/{self.name}"

    @property
    def is_link(self) -> bool:
        return self.link_project is not None

    @property
    def is_channel(self) -> bool:
        return bool(self.channel_binaries or self.channel_targets)

    def __repr__(self) -> str:
        return f"Package({self.project_fk!r}, {self.name!r})"
