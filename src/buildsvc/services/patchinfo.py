"""Patchinfo packages of maintenance projects.

A patchinfo package carries a ``_patchinfo`` document describing an update:
who packaged it, its category and rating, a summary and the packages of the
project it ships.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from loguru import logger

from buildsvc.backend.gateway import source_path
from buildsvc.constants import HistoryKind
from buildsvc.exceptions import PatchinfoFileExistsError, UnknownPackageError
from buildsvc.models.orm import Package
from buildsvc.models.schemas import CommandResult
from buildsvc.services.base import SagaService
from buildsvc.utils.names import check_package_name

if TYPE_CHECKING:
    from buildsvc.models.orm import Project
    from buildsvc.models.schemas import Command

__all__ = ["PATCHINFO_FILE", "PATCHINFO_PACKAGE", "PatchinfoService"]

PATCHINFO_PACKAGE = "patchinfo"
PATCHINFO_FILE = "_patchinfo"


class PatchinfoService(SagaService):
    """Create and refresh patchinfo packages."""

    def create_patchinfo(self, project: Project, cmd: Command) -> CommandResult:
        """
        Create the patchinfo package ``name`` (default ``patchinfo``).

        An existing package is only overwritten with ``force``.
        """
        name = cmd.param("name", PATCHINFO_PACKAGE)
        check_package_name(name)
        package = self.packages.get_by_name(project, name)
        if package is not None and not cmd.flag("force"):
            msg = f"patchinfo package '{project.name}/{name}' already exists"
            raise PatchinfoFileExistsError(msg)
        self.saga.precondition_checked()

        if package is None:
            package = self.packages.create(Package(project=project, name=name, title="Patchinfo"))
            self.store_meta(package)
        document = {
            "packager": self.actor.login,
            "category": cmd.param("category", "recommended"),
            "rating": cmd.param("rating", "low"),
            "summary": self.comment or "",
            "packages": _shipped(project, name),
        }
        self._store(package, document)
        self.finish(HistoryKind.PATCHINFO, package, {"packages": document["packages"]})
        logger.info(f"created patchinfo {package.full_name}")
        return CommandResult.success(
            f"patchinfo {package.full_name} created",
            targetproject=project.name,
            targetpackage=name,
        )

    def update_patchinfo(self, package: Package) -> CommandResult:
        """Refresh the shipped package list of an existing ``_patchinfo``."""
        project = package.project
        path = source_path(project.name, package.name, PATCHINFO_FILE)
        self.saga.precondition_checked()
        result = self.saga.invoke(lambda: self.gateway.get(path), allow_not_found=True)
        if result.is_not_found:
            msg = f"package '{package.full_name}' has no {PATCHINFO_FILE} file"
            raise UnknownPackageError(msg)

        document = json.loads(result.payload or "{}")
        document["packages"] = _shipped(project, package.name)
        self._store(package, document)
        self.finish(HistoryKind.PATCHINFO, package, {"packages": document["packages"]})
        return CommandResult.success("patchinfo updated", packages=document["packages"])

    def _store(self, package: Package, document: dict) -> None:
        body = json.dumps(document, sort_keys=True)
        self.saga.invoke(
            lambda: self.gateway.put(
                source_path(package.project.name, package.name, PATCHINFO_FILE),
                body,
                **self.backend_params(),
            )
        )


def _shipped(project: Project, patchinfo: str) -> list[str]:
    return sorted(p.name for p in project.packages if p.name != patchinfo)
