"""History recorder."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from loguru import logger

from buildsvc.constants import EntityType, HistoryKind
from buildsvc.db.repository import HistoryRepository
from buildsvc.models.orm import HistoryElement, Package, Project

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


class HistoryRecorder:
    """
    Append records to the history table.

    Revisions count per entity, starting at 1. Records are only ever
    added; nothing here updates or deletes a row.
    """

    def __init__(self, session: Session) -> None:
        self.session = session
        self.history = HistoryRepository(session)

    def record(
        self,
        kind: HistoryKind,
        entity: Project | Package,
        user: str,
        comment: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> HistoryElement:
        if isinstance(entity, Package):
            return self.record_names(
                kind, entity.project.name, entity.name, user, comment, payload
            )
        return self.record_names(kind, entity.name, None, user, comment, payload)

    def record_names(
        self,
        kind: HistoryKind,
        project_name: str,
        package_name: str | None,
        user: str,
        comment: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> HistoryElement:
        """Record by name; used for entities that no longer exist."""
        entity_type = EntityType.PROJECT if package_name is None else EntityType.PACKAGE
        revision = (
            self.history.latest_revision(entity_type.value, project_name, package_name) + 1
        )
        element = HistoryElement(
            kind=kind.value,
            entity_type=entity_type.value,
            project_name=project_name,
            package_name=package_name,
            revision=revision,
            user=user,
            comment=comment,
            payload=payload,
        )
        self.session.add(element)
        self.session.flush()
        label = project_name if package_name is None else f"{project_name}/{package_name}"
        logger.debug(f"history {kind.value} {label} r{revision} by {user}")
        return element
