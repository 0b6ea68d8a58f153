"""pytest configuration for buildsvc tests."""

from __future__ import annotations

import pytest

from buildsvc.authz import RoleAuthorizationOracle
from buildsvc.backend import BackendGateway, InMemoryBackend
from buildsvc.config import ENV_PREFIX, ServiceConfig
from buildsvc.context import Actor
from buildsvc.db import create_database
from buildsvc.dispatch import Dispatcher
from buildsvc.models.metadata import (
    PackageMeta,
    PersonMeta,
    ProjectMeta,
    RepositoryMeta,
)
from buildsvc.models.schemas import Command
from buildsvc.services import InMemoryJobQueue


@pytest.fixture
def database():
    """In-memory SQLite metadata store with all tables."""
    db = create_database("sqlite:///:memory:")
    db.create_tables()
    yield db
    db.close()


@pytest.fixture
def backend():
    return InMemoryBackend()


@pytest.fixture
def gateway(backend):
    return BackendGateway(backend)


@pytest.fixture
def jobs():
    return InMemoryJobQueue()


@pytest.fixture
def oracle():
    """Oracle with ``admin`` as the only administrator."""
    return RoleAuthorizationOracle(["admin"])


@pytest.fixture
def dispatcher(database, gateway, oracle, jobs):
    return Dispatcher(database, gateway, oracle, jobs)


@pytest.fixture
def admin():
    return Actor("admin")


@pytest.fixture
def tom():
    """Regular user without any roles."""
    return Actor("tom")


@pytest.fixture
def make_project(dispatcher, admin):
    """Create or replace a project through the dispatcher, asserting success.

    Repositories are given as ``{name: [(project, repository), ...]}``
    path lists; every repository builds for ``x86_64``.
    """

    def make(name, repositories=None, actor=None, maintainers=(), **fields):
        repos = [
            RepositoryMeta(name=repo, paths=list(paths), architectures=["x86_64"])
            if not isinstance(paths, RepositoryMeta)
            else paths
            for repo, paths in (repositories or {}).items()
        ]
        persons = [PersonMeta(login, "maintainer") for login in maintainers]
        meta = ProjectMeta(name=name, repositories=repos, persons=persons, **fields)
        result = dispatcher.update_project_meta(name, meta, actor or admin)
        assert result.ok, f"{result.code}: {result.message}"
        return result

    return make


@pytest.fixture
def make_package(dispatcher, admin):
    """Create or replace a package through the dispatcher, asserting success."""

    def make(project, name, actor=None, **fields):
        meta = PackageMeta(name=name, project=project, **fields)
        result = dispatcher.update_package_meta(project, name, meta, actor or admin)
        assert result.ok, f"{result.code}: {result.message}"
        return result

    return make


@pytest.fixture
def run(dispatcher, admin):
    """Execute a command verb, by default as ``admin``."""

    def execute(verb, project, package=None, actor=None, **params):
        command = Command(verb=verb, project=project, package=package, params=params)
        return dispatcher.execute(command, actor or admin)

    return execute


@pytest.fixture
def clean_env(monkeypatch):
    """Unset ``BUILDSVC_*`` settings; values loaded from .env files are undone too."""
    for name in ServiceConfig.model_fields:
        key = ENV_PREFIX + name.upper()
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    return monkeypatch
