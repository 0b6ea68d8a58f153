"""Consistency coordinator: one entry point over the saga services."""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from buildsvc.services.base import ServiceEnv
from buildsvc.services.branching import BranchService
from buildsvc.services.channels import ChannelService
from buildsvc.services.copying import COPY_PROJECT_JOB, CopyService
from buildsvc.services.deletion import DeletionService
from buildsvc.services.lifecycle import LifecycleService
from buildsvc.services.meta import MetaService
from buildsvc.services.passthrough import PassthroughService
from buildsvc.services.patchinfo import PatchinfoService
from buildsvc.services.releasing import RELEASE_JOB, ReleaseService

if TYPE_CHECKING:
    from buildsvc.services.jobs import Job

__all__ = ["Coordinator"]


class Coordinator:
    """
    Services bound to one saga execution.

    Parameters
    ----------
    env : ServiceEnv
        Session, saga, gateway, oracle and job queue of the execution

    Examples
    --------
    >>> coordinator = Coordinator(env)
    >>> coordinator.deletion.delete_project("home:user:old", force=True)
    """

    def __init__(self, env: ServiceEnv) -> None:
        self.env = env
        self.meta = MetaService(env)
        self.deletion = DeletionService(env)
        self.branching = BranchService(env)
        self.copying = CopyService(env)
        self.releasing = ReleaseService(env)
        self.lifecycle = LifecycleService(env)
        self.channels = ChannelService(env)
        self.passthrough = PassthroughService(env)
        self.patchinfo = PatchinfoService(env)

    def run_job(self, job: Job) -> None:
        """Execute a queued saga inside this coordinator's saga."""
        logger.info(f"running job {job.id} ({job.saga})")
        if job.saga == RELEASE_JOB:
            self.releasing.run_release_job(job.params)
        elif job.saga == COPY_PROJECT_JOB:
            self.copying.run_copy_project_job(job.params)
        else:
            msg = f"unknown job saga '{job.saga}'"
            raise ValueError(msg)
