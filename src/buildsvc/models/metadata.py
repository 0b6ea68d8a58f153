"""Typed metadata documents for projects and packages.

A metadata document is what a client writes with a ``_meta`` PUT and what
is stored on the source backend next to the sources. The documents are plain
dataclasses converted with a shared adaptix :class:`~adaptix.Retort`;
:func:`dump_meta` and :func:`load_meta` give the JSON wire form.

Broken graph edges are written with the ``deleted``/``deleted`` sentinel
pair in :class:`PathMeta` and :class:`ReleaseTargetMeta` so documents stay
well formed after a forced deletion.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TypeVar

from adaptix import Retort
from adaptix.load_error import LoadError

from buildsvc.constants import BROKEN_SENTINEL
from buildsvc.exceptions import ValidationFailedError

# Global retort for metadata conversions
_retort = Retort()

__all__ = [
    "_retort",
    "ChannelBinaryMeta",
    "ChannelMeta",
    "ChannelTargetMeta",
    "DevelMeta",
    "FlagMeta",
    "LinkMeta",
    "PackageMeta",
    "PathMeta",
    "PersonMeta",
    "ProjectMeta",
    "ReleaseTargetMeta",
    "RepositoryMeta",
    "dump_meta",
    "load_meta",
    "meta_to_dict",
]

T = TypeVar("T")


@dataclass
class PathMeta:
    """Path element or hostsystem reference."""

    project: str
    repository: str
    missing_ok: bool = False

    @property
    def is_broken(self) -> bool:
        return self.project == BROKEN_SENTINEL and self.repository == BROKEN_SENTINEL


@dataclass
class ReleaseTargetMeta:
    project: str
    repository: str
    trigger: str | None = None

    @property
    def is_broken(self) -> bool:
        return self.project == BROKEN_SENTINEL and self.repository == BROKEN_SENTINEL


@dataclass
class RepositoryMeta:
    """
    Repository definition inside a project document.

    Examples
    --------
    >>> RepositoryMeta(
    ...     name="standard",
    ...     paths=[PathMeta("openSUSE:Factory", "standard")],
    ...     architectures=["x86_64", "i586"],
    ... )
    """

    name: str
    paths: list[PathMeta] = field(default_factory=list)
    hostsystem: PathMeta | None = None
    release_targets: list[ReleaseTargetMeta] = field(default_factory=list)
    architectures: list[str] = field(default_factory=list)
    download_url: str | None = None
    rebuild: str | None = None
    block: str | None = None
    linkedbuild: str | None = None


@dataclass
class FlagMeta:
    flag: str
    status: str
    repository: str | None = None
    arch: str | None = None


@dataclass
class PersonMeta:
    login: str
    role: str


@dataclass
class DevelMeta:
    """Devel reference; ``package`` defaults to the package's own name."""

    project: str
    package: str | None = None


@dataclass
class LinkMeta:
    """Package link record written by branch."""

    project: str
    package: str | None = None
    revision: str | None = None


@dataclass
class ChannelTargetMeta:
    project: str
    repository: str
    disabled: bool = False


@dataclass
class ChannelBinaryMeta:
    name: str
    project: str
    repository: str | None = None
    arch: str | None = None
    package: str | None = None


@dataclass
class ChannelMeta:
    targets: list[ChannelTargetMeta] = field(default_factory=list)
    binaries: list[ChannelBinaryMeta] = field(default_factory=list)


@dataclass
class ProjectMeta:
    """
    Project metadata document.

    Attributes
    ----------
    name : str
        Project name; must match the addressed project
    links : list[str]
        Names of linked projects, in lookup order
    """

    name: str
    title: str = ""
    description: str = ""
    remote_url: str | None = None
    remote_project: str | None = None
    devel: DevelMeta | None = None
    links: list[str] = field(default_factory=list)
    persons: list[PersonMeta] = field(default_factory=list)
    flags: list[FlagMeta] = field(default_factory=list)
    repositories: list[RepositoryMeta] = field(default_factory=list)

    def repository(self, name: str) -> RepositoryMeta | None:
        for repo in self.repositories:
            if repo.name == name:
                return repo
        return None


@dataclass
class PackageMeta:
    """Package metadata document."""

    name: str
    project: str
    title: str = ""
    description: str = ""
    devel: DevelMeta | None = None
    link: LinkMeta | None = None
    persons: list[PersonMeta] = field(default_factory=list)
    flags: list[FlagMeta] = field(default_factory=list)
    channel: ChannelMeta | None = None


def meta_to_dict(meta: ProjectMeta | PackageMeta | ChannelMeta) -> dict:
    """Dump a metadata document to plain JSON-compatible data."""
    return _retort.dump(meta)


def dump_meta(meta: ProjectMeta | PackageMeta | ChannelMeta) -> str:
    """Serialize a metadata document to its JSON wire form."""
    return json.dumps(meta_to_dict(meta), sort_keys=True)


def load_meta(data: str | bytes | dict, meta_type: type[T]) -> T:
    """
    Load a metadata document.

    Parameters
    ----------
    data : str | bytes | dict
        JSON text or already decoded data
    meta_type : type[T]
        :class:`ProjectMeta` or :class:`PackageMeta`

    Raises
    ------
    ValidationFailedError
        If the document is not valid JSON or does not match the schema
    """
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except ValueError as exc:
            msg = f"metadata is not valid JSON: {exc}"
            raise ValidationFailedError(msg) from exc
    try:
        return _retort.load(data, meta_type)
    except LoadError as exc:
        msg = f"metadata does not validate: {exc}"
        raise ValidationFailedError(msg) from exc
