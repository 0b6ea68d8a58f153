"""Authorization oracle.

The core asks three questions of an :class:`AuthorizationOracle`: is the
actor an administrator, may the actor modify a project or package, and may
the actor create an entity in a namespace. Locks are not the oracle's
concern; they are enforced by :class:`~buildsvc.policy.locks.LockEngine`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from sqlalchemy import select
from sqlalchemy.orm import object_session

from buildsvc.constants import Role
from buildsvc.models.orm import Package, Project, ProjectRole
from buildsvc.utils.names import parent_namespaces

if TYPE_CHECKING:
    from collections.abc import Iterable

    from buildsvc.context import Actor

__all__ = ["AuthorizationOracle", "RoleAuthorizationOracle"]


@runtime_checkable
class AuthorizationOracle(Protocol):
    def is_admin(self, actor: Actor) -> bool: ...

    def can_modify(self, entity: Project | Package, actor: Actor) -> bool: ...

    def can_create(
        self, namespace: str, actor: Actor, parent: Project | None = None
    ) -> bool: ...


class RoleAuthorizationOracle:
    """
    Oracle based on maintainer roles stored with projects and packages.

    Rules:

    - administrators may do anything;
    - a project is modifiable by maintainers of the project or of any
      enclosing namespace project (``a`` for ``a:b:c``);
    - a package is modifiable by its maintainers or by anyone who may
      modify its project;
    - projects may be created below ``home:<login>`` or below an existing
      project the actor may modify.

    Parameters
    ----------
    admins : Iterable[str]
        Administrator logins
    """

    def __init__(self, admins: Iterable[str] = ()) -> None:
        self.admins = frozenset(admins)

    def is_admin(self, actor: Actor) -> bool:
        return actor.login in self.admins

    def can_modify(self, entity: Project | Package, actor: Actor) -> bool:
        if self.is_admin(actor):
            return True
        if isinstance(entity, Package):
            if _has_role(entity.roles, actor.login):
                return True
            return self.can_modify(entity.project, actor)
        if _has_role(entity.roles, actor.login):
            return True
        if _in_home(entity.name, actor.login):
            return True
        return self._maintains_parent(entity, actor)

    def can_create(
        self, namespace: str, actor: Actor, parent: Project | None = None
    ) -> bool:
        if self.is_admin(actor):
            return True
        if _in_home(namespace, actor.login):
            return True
        return parent is not None and self.can_modify(parent, actor)

    def _maintains_parent(self, project: Project, actor: Actor) -> bool:
        session = object_session(project)
        parents = parent_namespaces(project.name)
        if session is None or not parents:
            return False
        stmt = (
            select(ProjectRole.pk)
            .join(Project, ProjectRole.project_fk == Project.pk)
            .where(
                Project.name.in_(parents),
                ProjectRole.login == actor.login,
                ProjectRole.role == Role.MAINTAINER.value,
            )
            .limit(1)
        )
        return session.execute(stmt).first() is not None


def _has_role(roles, login: str, role: Role = Role.MAINTAINER) -> bool:
    return any(r.login == login and r.role == role.value for r in roles)


def _in_home(name: str, login: str) -> bool:
    home = f"home:{login}"
    return name == home or name.startswith(home + ":")
