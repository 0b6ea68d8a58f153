"""Saga services coordinating the metadata store and the source backend."""

from __future__ import annotations

from buildsvc.services.base import SagaService, ServiceEnv
from buildsvc.services.coordinator import Coordinator
from buildsvc.services.history import HistoryRecorder
from buildsvc.services.jobs import InMemoryJobQueue, Job, JobQueue, JobStatus
from buildsvc.services.saga import Saga

__all__ = [
    "Coordinator",
    "HistoryRecorder",
    "InMemoryJobQueue",
    "Job",
    "JobQueue",
    "JobStatus",
    "Saga",
    "SagaService",
    "ServiceEnv",
]
