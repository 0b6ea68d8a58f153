"""Closed command table.

Every :class:`~buildsvc.constants.Verb` maps to one :class:`CommandSpec`
holding, per supported scope, the required parameters, the authorization
predicate and the handler. The table is checked when this module is
imported; a verb without a spec or a route without a handler or predicate
fails the import.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from buildsvc.constants import CommandScope, Verb
from buildsvc.dispatch.predicates import (
    Subject,
    always,
    can_modify_project,
    can_modify_target,
    is_admin,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from buildsvc.models.orm import Package, Project
    from buildsvc.models.schemas import Command, CommandResult
    from buildsvc.services.coordinator import Coordinator

    Handler = Callable[[Coordinator, "Target", Command], CommandResult]

__all__ = ["COMMANDS", "CommandSpec", "Route", "Target", "check_table"]


@dataclass(frozen=True)
class Target:
    """Resolved addressee of a command; either part may be missing for creating verbs."""

    project: Project | None
    package: Package | None = None

    @property
    def entity(self) -> Project | Package | None:
        return self.package if self.package is not None else self.project


@dataclass(frozen=True)
class Route:
    handler: Handler
    authorize: Callable[[Subject], bool]
    required: tuple[str, ...] = ()


@dataclass(frozen=True)
class CommandSpec:
    """
    Table entry of one verb.

    Attributes
    ----------
    creates_target : bool
        Addressed entity need not exist
    follow_project_links : bool
        Resolve the addressed package through project links
    lock_exempt : bool
        Allowed on locked entities
    """

    verb: Verb
    routes: Mapping[CommandScope, Route] = field(default_factory=dict)
    creates_target: bool = False
    follow_project_links: bool = False
    lock_exempt: bool = False


def _release_params(cmd: Command) -> dict[str, Any]:
    return {
        "repository": cmd.param("repository"),
        "target_project": cmd.param("target_project"),
        "target_repository": cmd.param("target_repository"),
        "setrelease": cmd.param("setrelease"),
        "nodelay": cmd.flag("nodelay"),
    }


def _passthrough(verb: Verb) -> Handler:
    return lambda c, t, cmd: c.passthrough.source_command(verb, t.package, cmd)


def _build(verb: Verb) -> Handler:
    return lambda c, t, cmd: c.passthrough.build_command(verb, t.package, cmd)


def _key(verb: Verb) -> Handler:
    return lambda c, t, cmd: c.passthrough.key_command(verb, t.project)


def _both(handler: Handler, authorize, required: tuple[str, ...] = ()) -> dict:
    route = Route(handler, authorize, required)
    return {CommandScope.PROJECT: route, CommandScope.PACKAGE: route}


_P = CommandScope.PROJECT
_K = CommandScope.PACKAGE

_SPECS = [
    CommandSpec(
        Verb.BRANCH,
        {_K: Route(lambda c, t, cmd: c.branching.branch_package(t.project, cmd), always)},
        creates_target=True,
        follow_project_links=True,
        lock_exempt=True,
    ),
    CommandSpec(
        Verb.COPY,
        {
            _P: Route(
                lambda c, t, cmd: c.copying.copy_project(cmd.project, cmd), always, ("oproject",)
            ),
            _K: Route(
                lambda c, t, cmd: c.copying.copy_package(t.project, cmd), always, ("oproject",)
            ),
        },
        creates_target=True,
    ),
    CommandSpec(
        Verb.RELEASE,
        _both(
            lambda c, t, cmd: c.releasing.release(t.project, t.package, _release_params(cmd)),
            always,
        ),
        follow_project_links=True,
        lock_exempt=True,
    ),
    CommandSpec(
        Verb.UNDELETE,
        {
            _P: Route(lambda c, t, cmd: c.deletion.undelete_project(cmd.project), always),
            _K: Route(
                lambda c, t, cmd: c.deletion.undelete_package(t.project, cmd.package), always
            ),
        },
        creates_target=True,
    ),
    CommandSpec(
        Verb.SET_FLAG,
        _both(
            lambda c, t, cmd: c.lifecycle.set_flag(t.entity, cmd),
            can_modify_target,
            ("flag", "status"),
        ),
    ),
    CommandSpec(
        Verb.REMOVE_FLAG,
        _both(lambda c, t, cmd: c.lifecycle.remove_flag(t.entity, cmd), can_modify_target, ("flag",)),
    ),
    CommandSpec(
        Verb.UNLOCK,
        _both(lambda c, t, cmd: c.lifecycle.unlock(t.entity, cmd), can_modify_target, ("comment",)),
        lock_exempt=True,
    ),
    CommandSpec(
        Verb.MOVE,
        {_P: Route(lambda c, t, cmd: c.lifecycle.move_project(cmd.project, cmd), is_admin, ("oproject",))},
        creates_target=True,
    ),
    CommandSpec(
        Verb.SHOWLINKED,
        _both(lambda c, t, cmd: c.lifecycle.showlinked(t.entity), always),
        lock_exempt=True,
    ),
    CommandSpec(
        Verb.INSTANTIATE,
        {_K: Route(lambda c, t, cmd: c.lifecycle.instantiate_package(t.project, cmd), can_modify_project)},
        creates_target=True,
    ),
    CommandSpec(Verb.CREATEKEY, {_P: Route(_key(Verb.CREATEKEY), can_modify_target)}),
    CommandSpec(Verb.EXTENDKEY, {_P: Route(_key(Verb.EXTENDKEY), can_modify_target)}),
    CommandSpec(
        Verb.ADDCHANNELS,
        {_P: Route(lambda c, t, cmd: c.channels.addchannels(t.project, cmd), can_modify_target)},
    ),
    CommandSpec(
        Verb.MODIFYCHANNELS,
        {_P: Route(lambda c, t, cmd: c.channels.modifychannels(t.project, cmd), can_modify_target)},
    ),
    CommandSpec(
        Verb.ENABLECHANNEL,
        {_K: Route(lambda c, t, cmd: c.channels.enablechannel(t.package), can_modify_target)},
    ),
    *(
        CommandSpec(
            verb,
            {_K: Route(_passthrough(verb), always)},
            follow_project_links=True,
            lock_exempt=True,
        )
        for verb in (Verb.DIFF, Verb.LINKDIFF, Verb.SERVICEDIFF, Verb.GETPROJECTSERVICES)
    ),
    *(
        CommandSpec(verb, {_K: Route(_passthrough(verb), can_modify_target)})
        for verb in (
            Verb.COMMIT,
            Verb.COMMITFILELIST,
            Verb.RUNSERVICE,
            Verb.DELETEUPLOADREV,
            Verb.LINKTOBRANCH,
        )
    ),
    CommandSpec(Verb.REBUILD, {_K: Route(_build(Verb.REBUILD), can_modify_target)}),
    CommandSpec(Verb.WIPE, {_K: Route(_build(Verb.WIPE), can_modify_target)}),
    CommandSpec(
        Verb.CREATE_SPEC_FILE_TEMPLATE,
        {
            _K: Route(
                lambda c, t, cmd: c.passthrough.spec_file_template(t.package), can_modify_target
            )
        },
    ),
    CommandSpec(
        Verb.IMPORTCHANNEL,
        {_K: Route(lambda c, t, cmd: c.channels.importchannel(t.package, cmd), can_modify_target)},
    ),
    CommandSpec(
        Verb.CREATEPATCHINFO,
        {
            _P: Route(
                lambda c, t, cmd: c.patchinfo.create_patchinfo(t.project, cmd), can_modify_target
            )
        },
    ),
    CommandSpec(
        Verb.UPDATEPATCHINFO,
        {_K: Route(lambda c, t, cmd: c.patchinfo.update_patchinfo(t.package), can_modify_target)},
    ),
    CommandSpec(
        Verb.COLLECTBUILDENV,
        {
            _K: Route(
                _passthrough(Verb.COLLECTBUILDENV), can_modify_target, ("oproject", "opackage")
            )
        },
    ),
]


def check_table(specs: list[CommandSpec]) -> dict[Verb, CommandSpec]:
    """
    Index ``specs`` by verb and verify the table is complete.

    Raises
    ------
    RuntimeError
        A verb is missing or listed twice, or a route lacks a handler or predicate
    """
    table: dict[Verb, CommandSpec] = {}
    for spec in specs:
        if spec.verb in table:
            msg = f"verb '{spec.verb.value}' is listed twice"
            raise RuntimeError(msg)
        if not spec.routes:
            msg = f"verb '{spec.verb.value}' has no route"
            raise RuntimeError(msg)
        for scope, route in spec.routes.items():
            if not callable(route.handler) or not callable(route.authorize):
                msg = f"verb '{spec.verb.value}' has an incomplete {scope.value} route"
                raise RuntimeError(msg)
        table[spec.verb] = spec
    missing = [verb.value for verb in Verb if verb not in table]
    if missing:
        msg = "verbs without command spec: " + ", ".join(missing)
        raise RuntimeError(msg)
    return table


COMMANDS: dict[Verb, CommandSpec] = check_table(_SPECS)
