"""Utility functions for buildsvc."""

from __future__ import annotations

__all__ = [
    "check_package_name",
    "check_project_name",
    "configure_logging",
    "is_valid_package_name",
    "is_valid_project_name",
    "parent_namespaces",
    "utcnow",
    # Mapped types
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

from .logging import configure_logging
from .mapped_types import (
    Context,
    Created_at,
    Desc,
    EntityKey,
    EntityName,
    Login,
    LongStr,
    Pk,
    Position,
    Title,
    Updated_at,
    fk,
)
from .names import (
    check_package_name,
    check_project_name,
    is_valid_package_name,
    is_valid_project_name,
    parent_namespaces,
)
from .time import utcnow
