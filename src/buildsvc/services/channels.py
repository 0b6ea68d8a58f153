"""Maintenance channel operations."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from loguru import logger
from sqlalchemy import or_, select

from buildsvc.backend.gateway import source_path
from buildsvc.constants import HistoryKind
from buildsvc.exceptions import (
    MissingParameterError,
    UnknownRepositoryError,
    ValidationFailedError,
)
from buildsvc.models.metadata import ChannelMeta, ChannelTargetMeta, dump_meta, load_meta
from buildsvc.models.orm import (
    ChannelBinary,
    ChannelTarget,
    Package,
    PathElement,
    Repository,
    RepositoryArchitecture,
)
from buildsvc.models.schemas import CommandResult
from buildsvc.services.base import SagaService

if TYPE_CHECKING:
    from buildsvc.models.orm import Project
    from buildsvc.models.schemas import Command

__all__ = ["ChannelMode", "ChannelService"]


class ChannelMode(str, Enum):
    ADD_DISABLED = "add_disabled"
    SKIP_DISABLED = "skip_disabled"
    ENABLE_ALL = "enable_all"


_DISABLED_BY_MODE = {ChannelMode.ADD_DISABLED: True, ChannelMode.ENABLE_ALL: False}


def parse_mode(value: str | None) -> ChannelMode:
    try:
        return ChannelMode(value or ChannelMode.ADD_DISABLED.value)
    except ValueError:
        msg = f"unknown channel mode '{value}'"
        raise ValidationFailedError(msg) from None


def channel_repository_name(repo: Repository) -> str:
    """
    Name of the local repository that builds against a channel target.

    Examples
    --------
    >>> channel_repository_name(repo)  # SUSE:Updates:SLE/update
    'SUSE_Updates_SLE_update'
    """
    return f"{repo.project.name.replace(':', '_')}_{repo.name}"


class ChannelService(SagaService):
    """
    Channel packages list binaries to publish and the repositories they go to.

    ``addchannels`` brings the channels that mention a project's packages
    into that project; ``modifychannels`` adjusts target state of existing
    channel packages; ``enablechannel`` enables a channel package and adds
    repositories building against its targets; ``importchannel`` replaces
    a channel definition with a posted document.
    """

    def addchannels(self, project: Project, cmd: Command) -> CommandResult:
        mode = parse_mode(cmd.param("mode"))
        self.saga.authorized()
        self.saga.precondition_checked()

        added = []
        for channel in self._channels_for(project):
            if channel.project is project or project.package(channel.name) is not None:
                continue
            package = self.packages.create(
                Package(
                    project=project,
                    name=channel.name,
                    title=channel.title,
                    description=channel.description,
                    link_project=channel.project.name,
                    link_package=channel.name,
                )
            )
            for binary in channel.channel_binaries:
                package.channel_binaries.append(
                    ChannelBinary(
                        name=binary.name,
                        binary_project=binary.binary_project,
                        binary_repository=binary.binary_repository,
                        architecture=binary.architecture,
                        binary_package=binary.binary_package,
                    )
                )
            for target in channel.channel_targets:
                if mode is ChannelMode.SKIP_DISABLED and target.disabled:
                    continue
                package.channel_targets.append(
                    ChannelTarget(
                        repository=target.repository,
                        disabled=_DISABLED_BY_MODE.get(mode, target.disabled),
                    )
                )
            self.store_meta(package)
            self.saga.invoke(
                lambda package=package, channel=channel: self.gateway.post(
                    source_path(project.name, package.name),
                    **self.backend_params(
                        cmd="branch", oproject=channel.project.name, opackage=channel.name
                    ),
                )
            )
            added.append(package.name)

        self.finish(HistoryKind.CHANNEL, project, {"added": added, "mode": mode.value})
        logger.info(f"added {len(added)} channels to {project.name}")
        return CommandResult.success(f"added {len(added)} channels", channels=added)

    def modifychannels(self, project: Project, cmd: Command) -> CommandResult:
        mode = parse_mode(cmd.param("mode"))
        self.saga.authorized()
        self.saga.precondition_checked()

        changed = []
        for package in project.packages:
            if not package.channel_targets:
                continue
            before = [(t.repository_fk, t.disabled) for t in package.channel_targets]
            if mode is ChannelMode.ENABLE_ALL:
                for target in package.channel_targets:
                    target.disabled = False
            elif mode is ChannelMode.SKIP_DISABLED:
                package.channel_targets = [t for t in package.channel_targets if not t.disabled]
            if before != [(t.repository_fk, t.disabled) for t in package.channel_targets]:
                self.store_meta(package)
                changed.append(package.name)

        self.finish(HistoryKind.CHANNEL, project, {"changed": changed, "mode": mode.value})
        return CommandResult.success(f"modified {len(changed)} channels", channels=changed)

    def enablechannel(self, package: Package) -> CommandResult:
        project = package.project
        self.saga.authorized()
        self.saga.precondition_checked()

        added_repos = []
        for target in package.channel_targets:
            target.disabled = False
            name = channel_repository_name(target.repository)
            if project.repository(name) is not None:
                continue
            repo = Repository(name=name)
            repo.architectures = [
                RepositoryArchitecture(name=a.name, position=a.position)
                for a in target.repository.architectures
            ]
            element = PathElement(position=1)
            element.point_to(target.repository)
            repo.path_elements.append(element)
            project.repositories.append(repo)
            added_repos.append(name)
        self.session.flush()

        if added_repos:
            self.store_meta(project)
        self.store_meta(package)
        self.finish(HistoryKind.CHANNEL, package, {"repositories": added_repos})
        return CommandResult.success("channel enabled", repositories=added_repos)

    def importchannel(self, package: Package, cmd: Command) -> CommandResult:
        """
        Replace the channel definition of ``package`` with the request body.

        ``target_project``/``target_repository`` add one more publish target
        on top of those listed in the document.
        """
        if cmd.body is None:
            msg = "importchannel needs a channel document as request body"
            raise MissingParameterError(msg)
        channel = load_meta(cmd.body, ChannelMeta)
        target_project = cmd.param("target_project")
        if target_project is not None:
            target_repository = cmd.param("target_repository")
            if target_repository is None:
                msg = "target_repository is required together with target_project"
                raise MissingParameterError(msg)
            if self.projects.get_repository(target_project, target_repository) is None:
                msg = f"unknown repository '{target_project}/{target_repository}'"
                raise UnknownRepositoryError(msg)
            known = {(t.project, t.repository) for t in channel.targets}
            if (target_project, target_repository) not in known:
                channel.targets.append(ChannelTargetMeta(target_project, target_repository))
        self.saga.authorized()
        self.mapper.apply_channel(package, channel)
        self.saga.precondition_checked()

        self.store_meta(package)
        body = dump_meta(channel)
        self.saga.invoke(
            lambda: self.gateway.put(
                source_path(package.project.name, package.name, "_channel"),
                body,
                **self.backend_params(),
            )
        )
        targets = [t.repository.full_name for t in package.channel_targets]
        binaries = [b.name for b in package.channel_binaries]
        self.finish(HistoryKind.CHANNEL, package, {"targets": targets, "binaries": binaries})
        logger.info(f"imported channel {package.full_name} with {len(binaries)} binaries")
        return CommandResult.success("channel imported", targets=targets, binaries=binaries)

    def _channels_for(self, project: Project) -> list[Package]:
        """Channel packages listing binaries built by packages of ``project``."""
        origins = set()
        for package in project.packages:
            origins.add((project.name, package.name))
            if package.is_link:
                origins.add((package.link_project, package.link_package))
        if not origins:
            return []
        clauses = [
            (ChannelBinary.binary_project == prj) & (ChannelBinary.binary_package == pkg)
            for prj, pkg in origins
        ]
        stmt = (
            select(Package)
            .join(ChannelBinary, ChannelBinary.package_fk == Package.pk)
            .where(or_(*clauses))
            .order_by(Package.pk)
        )
        return list(self.session.execute(stmt).scalars().unique().all())
