"""Database package for buildsvc."""

from __future__ import annotations

__all__ = [
    "Database",
    "SQLiteDatabase",
    "PostgreSQLDatabase",
    "create_database",
    # Repositories
    "BaseRepository",
    "ChangeRequestRepository",
    "HistoryRepository",
    "PackageRepository",
    "ProjectRepository",
]

from .database import Database, PostgreSQLDatabase, SQLiteDatabase, create_database
from .repository import (
    BaseRepository,
    ChangeRequestRepository,
    HistoryRepository,
    PackageRepository,
    ProjectRepository,
)
