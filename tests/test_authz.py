"""Tests for the role based authorization oracle."""

from __future__ import annotations

import pytest

from buildsvc.authz import AuthorizationOracle
from buildsvc.context import Actor
from buildsvc.db import PackageRepository, ProjectRepository
from buildsvc.models.metadata import PersonMeta


@pytest.fixture
def projects(make_project, make_package):
    make_project("A", maintainers=["jane"])
    make_project("A:sub")
    make_project("home:tom:work")
    make_package("A", "pkg", persons=[PersonMeta("tom", "maintainer")])
    make_package("A", "other")


class TestRoleAuthorizationOracle:
    def test_protocol(self, oracle):
        """Test that the oracle satisfies the protocol."""
        assert isinstance(oracle, AuthorizationOracle)

    def test_admin(self, oracle, admin, tom):
        """Test administrator detection."""
        assert oracle.is_admin(admin)
        assert not oracle.is_admin(tom)

    def test_project_maintainer(self, oracle, database, tom, projects):
        """Test that maintainers may modify their project and its children."""
        jane = Actor("jane")
        with database.session() as session:
            repo = ProjectRepository(session)
            assert oracle.can_modify(repo.require("A"), jane)
            assert oracle.can_modify(repo.require("A:sub"), jane)
            assert not oracle.can_modify(repo.require("A"), tom)
            assert not oracle.can_modify(repo.require("A:sub"), tom)

    def test_home_namespace(self, oracle, database, tom, projects):
        """Test that users own their home namespace."""
        with database.session() as session:
            project = ProjectRepository(session).require("home:tom:work")
            assert oracle.can_modify(project, tom)
            assert not oracle.can_modify(project, Actor("jane"))

    def test_package_roles(self, oracle, database, tom, projects):
        """Test that package maintainers may modify only their package."""
        with database.session() as session:
            project = ProjectRepository(session).require("A")
            packages = PackageRepository(session)
            assert oracle.can_modify(packages.require(project, "pkg"), tom)
            assert not oracle.can_modify(packages.require(project, "other"), tom)
            assert oracle.can_modify(packages.require(project, "other"), Actor("jane"))

    def test_can_create(self, oracle, database, tom, projects):
        """Test namespace creation rules."""
        jane = Actor("jane")
        assert oracle.can_create("home:tom:new", tom)
        assert oracle.can_create("home:tom", tom)
        assert not oracle.can_create("home:tomcat", tom)
        assert not oracle.can_create("B", tom)
        with database.session() as session:
            parent = ProjectRepository(session).require("A")
            assert oracle.can_create("A:new", jane, parent=parent)
            assert not oracle.can_create("A:new", tom, parent=parent)
