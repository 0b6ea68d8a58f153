"""Declarative base of the metadata store."""

from __future__ import annotations

from sqlalchemy import MetaData, event
from sqlalchemy.orm import DeclarativeBase

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Base class of projects, packages, repositories and their satellites."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)


@event.listens_for(Base.metadata, "before_create")
def _comment_tables(target, connection, **kw):
    """Use the summary line of each model docstring as its table comment."""
    owners = {m.local_table: m.class_ for m in Base.registry.mappers}
    for table in target.tables.values():
        model = owners.get(table)
        if model is not None and model.__doc__ and table.comment is None:
            table.comment = model.__doc__.strip().splitlines()[0].strip()
