"""Flag model."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from buildsvc.models.orm.base import Base
from buildsvc.utils import Pk, Position, fk

if TYPE_CHECKING:
    from buildsvc.models.orm.package import Package
    from buildsvc.models.orm.project import Project


class Flag(Base):
    """
    Flag rule attached to a project or a package.

    A rule without ``repo`` and ``architecture`` is global; the most
    specific matching rule decides the effective status for a concrete
    (repository, architecture) pair.

    Attributes
    ----------
    flag : str
        One of :class:`~buildsvc.constants.FlagKind`
    status : str
        ``enable`` or ``disable``
    repo : str | None
        Repository name scope
    architecture : str | None
        Architecture scope
    """

    __tablename__ = "flag"

    pk: Mapped[Pk]

    flag: Mapped[str] = mapped_column(String(32), index=True)

    status: Mapped[str] = mapped_column(String(16))

    repo: Mapped[str | None] = mapped_column(String(200))

    architecture: Mapped[str | None] = mapped_column(String(32))

    project_fk: Mapped[int | None] = fk("project", nullable=True, index=True)

    package_fk: Mapped[int | None] = fk("package", nullable=True, index=True)

    position: Mapped[Position]

    project: Mapped[Project | None] = relationship(back_populates="flags")

    package: Mapped[Package | None] = relationship(back_populates="flags")

    __table_args__ = (
        CheckConstraint(
            "project_fk IS NOT NULL OR package_fk IS NOT NULL",
            name="ck_flag_owner",
        ),
    )

    @property
    def specificity(self) -> int:
        """0 global, 1 architecture, 2 repository, 3 repository and architecture."""
        return (2 if self.repo else 0) + (1 if self.architecture else 0)

    def matches(self, repository: str | None, architecture: str | None) -> bool:
        if self.repo is not None and self.repo != repository:
            return False
        if self.architecture is not None and self.architecture != architecture:
            return False
        return True

    def __repr__(self) -> str:
        scope = "/".join(part for part in (self.repo, self.architecture) if part)
        return f"Flag({self.flag}={self.status}{' @' + scope if scope else ''})"
