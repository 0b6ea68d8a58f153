"""SQLAlchemy mapped type helpers for consistent column definitions."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import mapped_column
from sqlalchemy.types import JSON

from buildsvc.utils.time import utcnow

__all__ = [
    "Pk",
    "EntityName",
    "EntityKey",
    "Login",
    "Title",
    "Desc",
    "LongStr",
    "Position",
    "Context",
    "Created_at",
    "Updated_at",
    "fk",
]

# Primary key
Pk = Annotated[
    int,
    mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
        comment="Primary key",
    ),
]

# Project, package and repository names may be up to 200 characters
EntityName = Annotated[
    str,
    mapped_column(
        String(200),
        index=True,
        comment="Name",
    ),
]

EntityKey = Annotated[
    str,
    mapped_column(
        String(200),
        unique=True,
        index=True,
        comment="Unique name",
    ),
]

Login = Annotated[
    str,
    mapped_column(
        String(64),
        index=True,
        comment="User login",
    ),
]

Title = Annotated[
    str,
    mapped_column(
        String(250),
        nullable=True,
        comment="Display title",
    ),
]

Desc = Annotated[
    str,
    mapped_column(
        Text,
        nullable=True,
        comment="Description",
    ),
]

LongStr = Annotated[
    str,
    mapped_column(
        String(512),
        comment="Long string (URLs, remote names, etc.)",
    ),
]

Position = Annotated[
    int,
    mapped_column(
        Integer,
        default=0,
        comment="Ordering position",
    ),
]

# JSON Field Type
Context = Annotated[
    dict[str, Any] | None,
    mapped_column(
        JSON,
        nullable=True,
        comment="Additional context (JSON)",
    ),
]

# Timestamp Types
Created_at = Annotated[
    datetime,
    mapped_column(
        DateTime(timezone=True),
        server_default=utcnow(),
        index=True,
        comment="Creation timestamp",
    ),
]

Updated_at = Annotated[
    datetime,
    mapped_column(
        DateTime(timezone=True),
        server_default=utcnow(),
        server_onupdate=utcnow(),
        comment="Last update timestamp",
    ),
]


def fk(
    target_table: str,
    **kwargs,
):
    """
    Create a foreign key column referencing ``{target_table}.pk``.

    Referential actions are not declared: removal of referenced rows is
    done by the application (repair of path elements, devel references
    and so on) so that every cascade is explicit and logged.

    Parameters
    ----------
    target_table : str
        Target table name (will reference {table}.pk)
    **kwargs
        Additional mapped_column arguments

    Returns
    -------
    mapped_column
        Configured foreign key column (integer)

    Examples
    --------
    >>> project_fk: Mapped[int] = fk("project", nullable=False)
    >>> develproject_fk: Mapped[int | None] = fk("project", nullable=True)
    """
    kwargs.setdefault("comment", f"Foreign key to {target_table}.pk")

    return mapped_column(
        ForeignKey(f"{target_table}.pk"),
        **kwargs,
    )
