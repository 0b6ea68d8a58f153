"""Typed targets of repository graph edges.

A path element or release target points at one of three variants:

- :class:`RepoRef` - a resolved local repository;
- :class:`BrokenRef` - the target was force-deleted; on the wire this is
  written as the ``deleted``/``deleted`` sentinel pair;
- :class:`DanglingRef` - a tolerated unresolved target (``missing_ok`` at
  write time, or a repository inside a remote-origin project).

Consumers match on the variant instead of comparing strings.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from buildsvc.constants import BROKEN_SENTINEL

__all__ = ["BrokenRef", "DanglingRef", "EdgeTarget", "RepoRef", "parse_wire_ref"]


@dataclass(frozen=True)
class RepoRef:
    project: str
    repository: str

    def to_wire(self) -> tuple[str, str]:
        return self.project, self.repository

    def __str__(self) -> str:
        return f"{self.project}/{self.repository}"


@dataclass(frozen=True)
class BrokenRef:
    def to_wire(self) -> tuple[str, str]:
        return BROKEN_SENTINEL, BROKEN_SENTINEL

    def __str__(self) -> str:
        return f"{BROKEN_SENTINEL}/{BROKEN_SENTINEL}"


@dataclass(frozen=True)
class DanglingRef:
    project: str
    repository: str

    def to_wire(self) -> tuple[str, str]:
        return self.project, self.repository

    def __str__(self) -> str:
        return f"{self.project}/{self.repository}"


EdgeTarget = Union[RepoRef, BrokenRef, DanglingRef]


def parse_wire_ref(project: str, repository: str) -> RepoRef | BrokenRef:
    """
    Parse a ``(project, repository)`` pair read from a metadata document.

    Examples
    --------
    >>> parse_wire_ref("deleted", "deleted")
    BrokenRef()
    >>> parse_wire_ref("openSUSE:Factory", "standard")
    RepoRef(project='openSUSE:Factory', repository='standard')
    """
    if project == BROKEN_SENTINEL and repository == BROKEN_SENTINEL:
        return BrokenRef()
    return RepoRef(project, repository)
