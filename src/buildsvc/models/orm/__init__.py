"""SQLAlchemy 2.0 ORM models for buildsvc.

Split into logical modules:
- base.py - Base class
- project.py - Project, LinkedProject
- package.py - Package
- repository.py - Repository graph (Repository, RepositoryArchitecture,
  PathElement, ReleaseTarget)
- flag.py - Flag rules
- role.py - ProjectRole, PackageRole
- channel.py - ChannelTarget, ChannelBinary
- request.py - ChangeRequest
- history.py - HistoryElement (append-only audit log)
"""

from __future__ import annotations

from buildsvc.models.orm.base import Base
from buildsvc.models.orm.channel import ChannelBinary, ChannelTarget
from buildsvc.models.orm.flag import Flag
from buildsvc.models.orm.history import HistoryElement
from buildsvc.models.orm.package import Package
from buildsvc.models.orm.project import LinkedProject, Project
from buildsvc.models.orm.repository import (
    PathElement,
    ReleaseTarget,
    Repository,
    RepositoryArchitecture,
)
from buildsvc.models.orm.request import ChangeRequest
from buildsvc.models.orm.role import PackageRole, ProjectRole

__all__ = [
    "Base",
    "ChangeRequest",
    "ChannelBinary",
    "ChannelTarget",
    "Flag",
    "HistoryElement",
    "LinkedProject",
    "Package",
    "PackageRole",
    "PathElement",
    "Project",
    "ProjectRole",
    "ReleaseTarget",
    "Repository",
    "RepositoryArchitecture",
]
