"""History model: HistoryElement."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from buildsvc.models.orm.base import Base
from buildsvc.utils import Context, Created_at, Desc, Login, Pk


class HistoryElement(Base):
    """
    Append-only record of a state-changing operation.

    Entities are referenced by name, not by foreign key, so records outlive
    the rows they describe. Rows are never updated or deleted.

    Attributes
    ----------
    seq : int
        Autoincrement sequence number
    kind : str
        One of :class:`~buildsvc.constants.HistoryKind`
    entity_type : str
        ``project`` or ``package``
    project_name : str
        Project name at the time of the change
    package_name : str | None
        Package name for package history
    revision : int
        Per-entity revision counter
    user : str
        Actor login
    comment : str | None
        Free text comment given with the command
    payload : dict | None
        Command parameters and results
    created_at : datetime
        Record timestamp
    """

    __tablename__ = "history_element"

    seq: Mapped[Pk]

    kind: Mapped[str] = mapped_column(String(32), index=True)

    entity_type: Mapped[str] = mapped_column(String(16))

    project_name: Mapped[str] = mapped_column(String(200))

    package_name: Mapped[str | None] = mapped_column(String(200))

    revision: Mapped[int] = mapped_column(Integer)

    user: Mapped[Login]

    comment: Mapped[Desc | None]

    payload: Mapped[Context]

    created_at: Mapped[Created_at]

    __table_args__ = (
        Index(
            "ix_history_entity",
            "entity_type",
            "project_name",
            "package_name",
            "revision",
        ),
    )
