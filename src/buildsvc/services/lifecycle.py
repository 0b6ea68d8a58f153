"""Move, instantiate, flag and lock operations, and link listings."""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from buildsvc.backend.gateway import source_path
from buildsvc.constants import HistoryKind
from buildsvc.exceptions import (
    InvalidFlagError,
    PackageExistsError,
    ProjectExistsError,
    UnknownPackageError,
)
from buildsvc.models.orm import Package, Project
from buildsvc.models.schemas import CommandResult
from buildsvc.policy.flags import parse_flag_kind, parse_flag_status
from buildsvc.services.base import SagaService

if TYPE_CHECKING:
    from buildsvc.models.schemas import Command

__all__ = ["LifecycleService"]


class LifecycleService(SagaService):
    """Single-entity operations that do not fit the bigger sagas."""

    # ---------------------------------------------------------------- move

    def move_project(self, name: str, cmd: Command) -> CommandResult:
        """Rename project ``oproject`` to ``name``."""
        origin_name = cmd.param("oproject")
        if self.projects.exists(name):
            msg = f"project '{name}' already exists"
            raise ProjectExistsError(msg)
        origin = self.projects.require(origin_name, for_update=True)
        self.locks.assert_unlocked(origin)
        self.saga.authorized()
        self.saga.precondition_checked()

        origin.name = name
        self.projects.update(origin)
        self.saga.invoke(
            lambda: self.gateway.post(
                source_path(name), **self.backend_params(cmd="move", oproject=origin_name)
            )
        )
        self.store_meta(origin)
        for package in origin.packages:
            self.store_meta(package)
        self.finish(HistoryKind.MOVE, origin, {"from": origin_name})
        logger.info(f"moved project {origin_name} to {name}")
        return CommandResult.success(f"project {origin_name} moved to {name}")

    # --------------------------------------------------------- instantiate

    def instantiate_package(self, project: Project, cmd: Command) -> CommandResult:
        """Turn a package visible through a project link into a local package."""
        name = cmd.package
        if self.packages.get_by_name(project, name) is not None:
            msg = f"package '{project.name}/{name}' is already instantiated"
            raise PackageExistsError(msg)
        origin = self.packages.find(project, name, follow_project_links=True)
        if origin is None:
            msg = f"package '{project.name}/{name}' does not exist"
            raise UnknownPackageError(msg)
        self.saga.authorized()
        self.saga.precondition_checked()

        package = self.packages.create(
            Package(
                project=project,
                name=name,
                title=origin.title,
                description=origin.description,
            )
        )
        self.store_meta(package)
        self.saga.invoke(
            lambda: self.gateway.post(
                source_path(project.name, name),
                **self.backend_params(
                    cmd="instantiate",
                    makeoriginolder=cmd.flag("makeoriginolder"),
                ),
            )
        )
        self.finish(HistoryKind.INSTANTIATE, package, {"origin": origin.full_name})
        return CommandResult.success(f"package {origin.full_name} instantiated in {project.name}")

    # --------------------------------------------------------------- flags

    def set_flag(self, entity: Project | Package, cmd: Command) -> CommandResult:
        _reject_product(cmd)
        kind = parse_flag_kind(cmd.param("flag"))
        status = parse_flag_status(cmd.param("status"))
        repository, arch = cmd.param("repository"), cmd.param("arch")
        self.flags.check_protection_change(
            entity, kind, status, self.actor, self.oracle, repository, arch
        )
        self.saga.authorized()
        self.saga.precondition_checked()

        self.flags.add_flag(entity, kind, status, repository, arch)
        self.store_meta(entity)
        payload = {"flag": kind.value, "status": status.value, "repository": repository, "arch": arch}
        self.finish(HistoryKind.FLAG, entity, payload)
        return CommandResult.success(f"flag {kind.value} set to {status.value}")

    def remove_flag(self, entity: Project | Package, cmd: Command) -> CommandResult:
        _reject_product(cmd)
        kind = parse_flag_kind(cmd.param("flag"))
        repository, arch = cmd.param("repository"), cmd.param("arch")
        self.saga.authorized()
        self.saga.precondition_checked()

        removed = self.flags.remove_flag(entity, kind, repository, arch)
        self.store_meta(entity)
        self.finish(
            HistoryKind.FLAG,
            entity,
            {"flag": kind.value, "removed": removed, "repository": repository, "arch": arch},
        )
        return CommandResult.success(f"removed {removed} {kind.value} rules", removed=removed)

    def unlock(self, entity: Project | Package, cmd: Command) -> CommandResult:
        self.saga.authorized()
        self.locks.unlock(entity, cmd.param("comment") or self.comment)
        self.saga.precondition_checked()
        self.store_meta(entity)
        self.finish(HistoryKind.UNLOCK, entity, {"comment": cmd.param("comment") or self.comment})
        return CommandResult.success("unlocked")

    # ----------------------------------------------------------- showlinked

    def showlinked(self, entity: Project | Package) -> CommandResult:
        if isinstance(entity, Package):
            linking = self.packages.linking_packages(entity.project.name, entity.name)
            return CommandResult.success(
                packages=[{"project": p.project.name, "name": p.name} for p in linking]
            )
        linking = self.projects.linking_projects(entity)
        return CommandResult.success(projects=[p.name for p in linking])


def _reject_product(cmd: Command) -> None:
    if cmd.param("product") is not None:
        msg = "flags can not be set for a product"
        raise InvalidFlagError(msg)
