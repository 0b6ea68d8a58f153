"""Tests for the repository layer over the metadata store."""

from __future__ import annotations

import pytest

from buildsvc.db import PackageRepository, ProjectRepository
from buildsvc.exceptions import PackageExistsError, ProjectExistsError
from buildsvc.models.orm import Package, Project


class TestConcurrentCreate:
    """Test that the second of two writers loses on the unique constraint."""

    def test_project_exists(self, database):
        with database.session() as session:
            ProjectRepository(session).create(Project(name="A"))

        with pytest.raises(ProjectExistsError, match="'A' already exists"):
            with database.session() as session:
                ProjectRepository(session).create(Project(name="A"))

        with database.session() as session:
            assert ProjectRepository(session).exists("A")

    def test_package_exists(self, database):
        with database.session() as session:
            project = ProjectRepository(session).create(Project(name="A"))
            PackageRepository(session).create(Package(project=project, name="pkg"))

        with pytest.raises(PackageExistsError, match="'A/pkg' already exists") as info:
            with database.session() as session:
                project = ProjectRepository(session).require("A")
                PackageRepository(session).create(Package(project=project, name="pkg"))

        assert info.value.code == "package_exists"
        assert info.value.status == 400
        with database.session() as session:
            project = ProjectRepository(session).require("A")
            assert [p.name for p in project.packages] == ["pkg"]


class TestWrites:
    def test_update_and_delete(self, database):
        """Test that update flushes renames and delete removes the row."""
        with database.session() as session:
            repo = ProjectRepository(session)
            project = repo.create(Project(name="A"))
            project.name = "B"
            repo.update(project)
            assert repo.get_by_name("A") is None
            repo.delete(repo.require("B"))
            assert not repo.exists("B")
