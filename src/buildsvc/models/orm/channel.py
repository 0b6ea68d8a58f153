"""Channel models: ChannelTarget, ChannelBinary."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from buildsvc.models.orm.base import Base
from buildsvc.utils import Pk, fk

if TYPE_CHECKING:
    from buildsvc.models.orm.package import Package
    from buildsvc.models.orm.repository import Repository


class ChannelTarget(Base):
    """Repository a channel package publishes into."""

    __tablename__ = "channel_target"

    pk: Mapped[Pk]

    package_fk: Mapped[int] = fk("package", nullable=False, index=True)

    repository_fk: Mapped[int] = fk("repository", nullable=False, index=True)

    disabled: Mapped[bool] = mapped_column(Boolean, default=False)

    package: Mapped[Package] = relationship(back_populates="channel_targets")

    repository: Mapped[Repository] = relationship()


class ChannelBinary(Base):
    """
    Binary a channel package mirrors from another repository.

    Attributes
    ----------
    name : str
        Binary name
    binary_project : str
        Project providing the binary
    binary_repository : str | None
        Repository providing the binary
    architecture : str | None
        Architecture filter
    binary_package : str | None
        Source package building the binary
    """

    __tablename__ = "channel_binary"

    pk: Mapped[Pk]

    package_fk: Mapped[int] = fk("package", nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(200))

    binary_project: Mapped[str] = mapped_column(String(200), index=True)

    binary_repository: Mapped[str | None] = mapped_column(String(200))

    architecture: Mapped[str | None] = mapped_column(String(32))

    binary_package: Mapped[str | None] = mapped_column(String(200))

    package: Mapped[Package] = relationship(back_populates="channel_binaries")
