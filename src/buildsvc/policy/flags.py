"""Flag rules: expansion, effective status and mutation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from buildsvc.constants import FLAG_DEFAULTS, FlagKind, FlagStatus
from buildsvc.exceptions import (
    ChangePackageProtectionLevel,
    ChangeProjectProtectionLevel,
    InvalidFlagError,
)
from buildsvc.models.orm import Flag, Package, Project

if TYPE_CHECKING:
    from buildsvc.authz import AuthorizationOracle
    from buildsvc.context import Actor

__all__ = ["PROTECTION_FLAGS", "FlagEngine", "FlagRule", "parse_flag_kind", "parse_flag_status"]

# Flags whose disabling hides the entity or its sources
PROTECTION_FLAGS = frozenset({FlagKind.ACCESS, FlagKind.SOURCEACCESS})


@dataclass(frozen=True)
class FlagRule:
    """
    One flag rule in resolution order.

    Attributes
    ----------
    status : FlagStatus
        Rule status
    repository, architecture : str | None
        Rule scope; both None for a global rule
    owner : str
        ``project`` or ``package``
    """

    status: FlagStatus
    repository: str | None
    architecture: str | None
    owner: str

    @property
    def specificity(self) -> int:
        return (2 if self.repository else 0) + (1 if self.architecture else 0)

    def matches(self, repository: str | None, architecture: str | None) -> bool:
        if self.repository is not None and self.repository != repository:
            return False
        if self.architecture is not None and self.architecture != architecture:
            return False
        return True


def parse_flag_kind(value: str | None) -> FlagKind:
    try:
        return FlagKind(value)
    except ValueError:
        msg = f"Error: unknown flag type '{value}' not found."
        raise InvalidFlagError(msg) from None


def parse_flag_status(value: str | None) -> FlagStatus:
    try:
        return FlagStatus(value)
    except ValueError:
        msg = f"Error: unknown status for flag '{value}'"
        raise InvalidFlagError(msg) from None


class FlagEngine:
    """
    Compute and change flag rules of projects and packages.

    Resolution for a concrete ``(repository, architecture)`` pair walks the
    expanded rule list from least to most specific (global, architecture,
    repository, repository and architecture), project rules before package
    rules at the same specificity, and keeps the last matching rule.

    Examples
    --------
    >>> engine = FlagEngine()
    >>> engine.add_flag(project, FlagKind.BUILD, FlagStatus.DISABLE, repository="old")
    >>> engine.effective_status(package, FlagKind.BUILD, "old", "x86_64")
    <FlagStatus.DISABLE: 'disable'>
    """

    def expand_flags(self, entity: Project | Package, kind: FlagKind) -> list[FlagRule]:
        """Ordered rule list for ``kind``, least specific first."""
        owners: list[tuple[str, list[Flag]]] = []
        if isinstance(entity, Package):
            owners.append(("project", entity.project.flags))
            owners.append(("package", entity.flags))
        else:
            owners.append(("project", entity.flags))

        rules = [
            FlagRule(FlagStatus(f.status), f.repo, f.architecture, owner)
            for owner, flags in owners
            for f in flags
            if f.flag == kind.value
        ]
        owner_rank = {"project": 0, "package": 1}
        # stable sort keeps insertion order within equal keys
        return sorted(rules, key=lambda r: (r.specificity, owner_rank[r.owner]))

    def effective_status(
        self,
        entity: Project | Package,
        kind: FlagKind,
        repository: str | None = None,
        architecture: str | None = None,
    ) -> FlagStatus:
        """
        Effective status of ``kind`` for a repository/architecture pair.

        Falls back to the kind's default when no rule matches.
        """
        status = FLAG_DEFAULTS[kind]
        for rule in self.expand_flags(entity, kind):
            if rule.matches(repository, architecture):
                status = rule.status
        return status

    def is_disabled(
        self,
        entity: Project | Package,
        kind: FlagKind,
        repository: str | None = None,
        architecture: str | None = None,
    ) -> bool:
        return self.effective_status(entity, kind, repository, architecture) is FlagStatus.DISABLE

    def own_status(self, entity: Project | Package, kind: FlagKind) -> FlagStatus | None:
        """Status of the entity's own global rule for ``kind``, if any."""
        for flag in entity.flags:
            if flag.flag == kind.value and flag.repo is None and flag.architecture is None:
                return FlagStatus(flag.status)
        return None

    def add_flag(
        self,
        entity: Project | Package,
        kind: FlagKind,
        status: FlagStatus,
        repository: str | None = None,
        architecture: str | None = None,
    ) -> Flag:
        """
        Set a rule, replacing any rule with the same kind and scope.

        Returns
        -------
        Flag
            The new rule
        """
        self.remove_flag(entity, kind, repository, architecture)
        position = max((f.position for f in entity.flags), default=0) + 1
        flag = Flag(
            flag=kind.value,
            status=status.value,
            repo=repository,
            architecture=architecture,
            position=position,
        )
        entity.flags.append(flag)
        return flag

    def remove_flag(
        self,
        entity: Project | Package,
        kind: FlagKind,
        repository: str | None = None,
        architecture: str | None = None,
    ) -> int:
        """Remove rules of ``kind`` with exactly this scope; return the count."""
        doomed = [
            f
            for f in entity.flags
            if f.flag == kind.value
            and f.repo == repository
            and f.architecture == architecture
        ]
        for flag in doomed:
            entity.flags.remove(flag)
        return len(doomed)

    def check_protection_change(
        self,
        entity: Project | Package,
        kind: FlagKind,
        new_status: FlagStatus,
        actor: Actor,
        oracle: AuthorizationOracle,
        repository: str | None = None,
        architecture: str | None = None,
    ) -> None:
        """
        Require administrator rights to raise a protection level.

        Disabling ``access`` or ``sourceaccess`` where it is currently
        enabled for the given repository and architecture hides data and
        needs an administrator; lowering a protection is allowed to anyone
        who may modify the entity.
        """
        if kind not in PROTECTION_FLAGS or new_status is not FlagStatus.DISABLE:
            return
        if self.effective_status(entity, kind, repository, architecture) is FlagStatus.DISABLE:
            return
        if oracle.is_admin(actor):
            return
        if isinstance(entity, Package):
            msg = "admin rights are required to raise the protection level of a package"
            raise ChangePackageProtectionLevel(msg)
        msg = "admin rights are required to raise the protection level of a project"
        raise ChangeProjectProtectionLevel(msg)
