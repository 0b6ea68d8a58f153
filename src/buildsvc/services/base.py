"""Shared environment of the coordinator services."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from buildsvc.backend.gateway import source_path
from buildsvc.constants import HistoryKind
from buildsvc.db.repository import (
    ChangeRequestRepository,
    PackageRepository,
    ProjectRepository,
)
from buildsvc.exceptions import CmdExecutionNoPermission
from buildsvc.graph.validator import GraphValidator
from buildsvc.models.metadata import dump_meta
from buildsvc.models.orm import Package, Project
from buildsvc.policy.flags import FlagEngine
from buildsvc.policy.locks import LockEngine
from buildsvc.services.history import HistoryRecorder
from buildsvc.services.meta_mapper import MetaMapper

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from buildsvc.authz import AuthorizationOracle
    from buildsvc.backend.client import BackendResult
    from buildsvc.backend.gateway import BackendGateway
    from buildsvc.services.jobs import JobQueue
    from buildsvc.services.saga import Saga

__all__ = ["SagaService", "ServiceEnv"]


@dataclass
class ServiceEnv:
    """
    Collaborators of one saga execution.

    Attributes
    ----------
    session : Session
        Session of the running saga
    saga : Saga
        Saga bookkeeping; carries the actor and request context
    gateway : BackendGateway
        Source backend
    oracle : AuthorizationOracle
        Permission checks
    jobs : JobQueue
        Queue for deferred sagas
    """

    session: Session
    saga: Saga
    gateway: BackendGateway
    oracle: AuthorizationOracle
    jobs: JobQueue


class SagaService:
    """Base class of the coordinator services."""

    def __init__(self, env: ServiceEnv) -> None:
        self.env = env
        self.session = env.session
        self.saga = env.saga
        self.actor = env.saga.actor
        self.gateway = env.gateway
        self.oracle = env.oracle
        self.jobs = env.jobs
        self.projects = ProjectRepository(env.session)
        self.packages = PackageRepository(env.session)
        self.requests = ChangeRequestRepository(env.session)
        self.graph = GraphValidator(env.session)
        self.flags = FlagEngine()
        self.locks = LockEngine(self.flags)
        self.mapper = MetaMapper(env.session)
        self.recorder = HistoryRecorder(env.session)

    @property
    def comment(self) -> str | None:
        return self.saga.context.comment

    @property
    def is_admin(self) -> bool:
        return self.oracle.is_admin(self.actor)

    # ------------------------------------------------------------- helpers

    def require_modify(
        self,
        entity: Project | Package,
        error: type[Exception] = CmdExecutionNoPermission,
        message: str | None = None,
    ) -> None:
        """Raise ``error`` unless the actor may modify ``entity`` and it is unlocked."""
        if not self.oracle.can_modify(entity, self.actor):
            name = entity.full_name if isinstance(entity, Package) else entity.name
            raise error(message or f"no permission to modify {name}")
        self.locks.assert_unlocked(entity)

    def can_modify(self, entity: Project | Package) -> bool:
        return self.oracle.can_modify(entity, self.actor) and not self.locks.is_locked(
            entity
        )

    def backend_params(self, **params: Any) -> dict[str, Any]:
        return {"user": self.actor.login, "comment": self.comment, **params}

    def store_meta(self, entity: Project | Package) -> BackendResult:
        """Write the entity's metadata document to the backend."""
        self.session.flush()
        if isinstance(entity, Package):
            path = source_path(entity.project.name, entity.name, "_meta")
            body = dump_meta(self.mapper.package_to_meta(entity))
        else:
            path = source_path(entity.name, None, "_meta")
            body = dump_meta(self.mapper.project_to_meta(entity))
        return self.saga.invoke(
            lambda: self.gateway.put(path, body, **self.backend_params())
        )

    def record(
        self,
        kind: HistoryKind,
        entity: Project | Package,
        payload: dict[str, Any] | None = None,
    ) -> None:
        """Append a history record and commit it."""
        payload = {"request_id": self.saga.context.request_id, **(payload or {})}
        self.recorder.record(kind, entity, self.actor.login, self.comment, payload)
        self.session.commit()
        self.saga.recorded()

    def finish(
        self,
        kind: HistoryKind,
        entity: Project | Package,
        payload: dict[str, Any] | None = None,
    ) -> None:
        """Commit the local transaction and record history."""
        self.saga.commit()
        self.record(kind, entity, payload)
