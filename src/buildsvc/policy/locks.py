"""Lock state of projects and packages.

``unlocked -> locked`` is an ordinary metadata write (a global ``lock``
flag with status ``enable``). ``locked -> unlocked`` only happens through
:meth:`LockEngine.unlock`, which requires a comment; metadata writes on a
locked entity are refused, so a lock cannot be dropped by rewriting the
document.
"""

from __future__ import annotations

from loguru import logger

from buildsvc.constants import FlagKind, FlagStatus
from buildsvc.exceptions import (
    ChangePackageNoPermission,
    ChangeProjectNoPermission,
    MissingParameterError,
    NotLockedError,
)
from buildsvc.models.orm import Package, Project
from buildsvc.policy.flags import FlagEngine

__all__ = ["LockEngine"]


class LockEngine:
    """
    Enforce and change lock state.

    Parameters
    ----------
    flags : FlagEngine, optional
        Flag engine used to read and write ``lock`` rules
    """

    def __init__(self, flags: FlagEngine | None = None) -> None:
        self.flags = flags or FlagEngine()

    def is_locked_itself(self, entity: Project | Package) -> bool:
        """Whether the entity carries its own global ``lock enable`` rule."""
        return self.flags.own_status(entity, FlagKind.LOCK) is FlagStatus.ENABLE

    def is_locked(self, entity: Project | Package) -> bool:
        """Whether the entity or, for a package, its project is locked."""
        if self.is_locked_itself(entity):
            return True
        return isinstance(entity, Package) and self.is_locked_itself(entity.project)

    def assert_unlocked(self, entity: Project | Package) -> None:
        """
        Raise a permission error when ``entity`` may not be mutated.

        Raises
        ------
        ChangeProjectNoPermission
            The project is locked
        ChangePackageNoPermission
            The package or its project is locked
        """
        if not self.is_locked(entity):
            return
        if isinstance(entity, Package):
            if self.is_locked_itself(entity):
                msg = f"The package {entity.full_name} is locked"
            else:
                msg = f"The project {entity.project.name} is locked"
            raise ChangePackageNoPermission(msg)
        msg = f"The project {entity.name} is locked"
        raise ChangeProjectNoPermission(msg)

    def lock(self, entity: Project | Package) -> None:
        self.flags.add_flag(entity, FlagKind.LOCK, FlagStatus.ENABLE)

    def unlock(self, entity: Project | Package, comment: str | None) -> None:
        """
        Remove the entity's lock.

        Raises
        ------
        MissingParameterError
            No comment given
        NotLockedError
            The entity carries no lock of its own
        """
        if not comment:
            msg = "Unlock command requires a comment"
            raise MissingParameterError(msg)
        if not self.is_locked_itself(entity):
            kind = "package" if isinstance(entity, Package) else "project"
            name = entity.full_name if isinstance(entity, Package) else entity.name
            msg = f"{kind} '{name}' is not locked"
            raise NotLockedError(msg)
        removed = [f for f in entity.flags if f.flag == FlagKind.LOCK.value]
        for flag in removed:
            entity.flags.remove(flag)
        logger.info(f"unlocked {entity!r}: {comment}")
