"""Server-side UTC timestamps for history and audit columns."""

from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql import expression

__all__ = ["utcnow"]


class utcnow(expression.FunctionElement):  # noqa: N801
    """
    Current UTC time as evaluated by the database.

    Used as ``server_default`` so that history records are stamped by the
    store that commits them, not by the clock of the issuing process.
    """

    type = sa.DateTime(timezone=True)
    inherit_cache = True


@compiles(utcnow, "postgresql")
def _utcnow_postgresql(element, compiler, **kw):
    return "(NOW() AT TIME ZONE 'utc')"


@compiles(utcnow)
def _utcnow_default(element, compiler, **kw):
    # SQLite's CURRENT_TIMESTAMP is already UTC
    return "CURRENT_TIMESTAMP"
