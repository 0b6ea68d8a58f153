"""Deferred execution of long-running sagas.

Only the enqueue/status contract is part of the core. Jobs carry plain,
serialisable parameters; the runner reopens a fresh saga for them.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from loguru import logger

if TYPE_CHECKING:
    from collections.abc import Callable

__all__ = ["InMemoryJobQueue", "Job", "JobQueue", "JobStatus"]


class JobStatus(str, Enum):
    QUEUED = "queued"
    DONE = "done"
    FAILED = "failed"


@dataclass
class Job:
    """
    Queued saga.

    Attributes
    ----------
    id : int
        Queue-assigned id
    saga : str
        Saga name (``release``, ``copy_project``)
    params : dict
        Saga parameters, including ``actor`` and ``request_id``
    """

    id: int
    saga: str
    params: dict[str, Any] = field(default_factory=dict)
    status: JobStatus = JobStatus.QUEUED
    error: str | None = None


@runtime_checkable
class JobQueue(Protocol):
    def enqueue(self, saga: str, params: dict[str, Any]) -> Job: ...

    def status(self, job_id: int) -> JobStatus: ...


class InMemoryJobQueue:
    """
    FIFO job queue kept in memory.

    Examples
    --------
    >>> queue = InMemoryJobQueue()
    >>> job = queue.enqueue("release", {"project": "A"})
    >>> queue.run_pending(runner)
    1
    >>> queue.status(job.id)
    <JobStatus.DONE: 'done'>
    """

    def __init__(self) -> None:
        self.jobs: dict[int, Job] = {}
        self._ids = itertools.count(1)

    def enqueue(self, saga: str, params: dict[str, Any]) -> Job:
        job = Job(id=next(self._ids), saga=saga, params=dict(params))
        self.jobs[job.id] = job
        logger.info(f"queued job {job.id} ({saga})")
        return job

    def status(self, job_id: int) -> JobStatus:
        return self.jobs[job_id].status

    def pending(self) -> list[Job]:
        return [job for job in self.jobs.values() if job.status is JobStatus.QUEUED]

    def run_pending(self, runner: Callable[[Job], None]) -> int:
        """
        Run every queued job once.

        A failing job is marked failed with its error; the remaining jobs
        still run.

        Returns
        -------
        int
            Number of jobs run
        """
        ran = 0
        for job in self.pending():
            ran += 1
            try:
                runner(job)
            except Exception as exc:
                job.status = JobStatus.FAILED
                job.error = str(exc)
                logger.exception(f"job {job.id} ({job.saga}) failed")
                continue
            job.status = JobStatus.DONE
        return ran
