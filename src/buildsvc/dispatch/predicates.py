"""Authorization predicates used by the command table."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from buildsvc.authz import AuthorizationOracle
    from buildsvc.context import Actor
    from buildsvc.models.orm import Package, Project

__all__ = [
    "Subject",
    "always",
    "can_modify_project",
    "can_modify_target",
    "is_admin",
]


@dataclass(frozen=True)
class Subject:
    """What a predicate looks at: the actor and the resolved target."""

    oracle: AuthorizationOracle
    actor: Actor
    project: Project | None
    package: Package | None

    @property
    def entity(self) -> Project | Package | None:
        return self.package if self.package is not None else self.project


def always(subject: Subject) -> bool:
    """Reading commands, and commands whose sagas check their own targets."""
    return True


def is_admin(subject: Subject) -> bool:
    return subject.oracle.is_admin(subject.actor)


def can_modify_target(subject: Subject) -> bool:
    """Modify rights on the addressed package, or on the project if none."""
    entity = subject.entity
    return entity is not None and subject.oracle.can_modify(entity, subject.actor)


def can_modify_project(subject: Subject) -> bool:
    return subject.project is not None and subject.oracle.can_modify(
        subject.project, subject.actor
    )
