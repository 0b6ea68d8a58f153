"""Tests for the branch saga."""

from __future__ import annotations

import json

from buildsvc.db import PackageRepository, ProjectRepository
from buildsvc.models.refs import RepoRef
from buildsvc.services.branching import default_branch_project


def test_default_branch_project():
    """Test the default target project name."""
    assert default_branch_project("tom", "openSUSE:Factory") == (
        "home:tom:branches:openSUSE:Factory"
    )


class TestBranch:
    """Test branching packages."""

    def test_branch_creates_project(self, run, database, tom, make_project, make_package):
        """Test that the branch project mirrors the origin repositories."""
        make_project("A", {"std": []})
        make_package("A", "pkg", title="Package")
        result = run("branch", "A", "pkg", actor=tom)

        assert result.ok
        assert result.data["targetproject"] == "home:tom:branches:A"
        with database.session() as session:
            project = ProjectRepository(session).require("home:tom:branches:A")
            repo = project.repository("std")
            assert repo.architecture_names == ["x86_64"]
            assert repo.path_elements[0].target == RepoRef("A", "std")
            assert [(r.login, r.role) for r in project.roles] == [("tom", "maintainer")]
            package = PackageRepository(session).require(project, "pkg")
            assert (package.link_project, package.link_package) == ("A", "pkg")
            assert package.title == "Package"

    def test_backend_link_written(self, run, backend, tom, make_project, make_package):
        """Test that the backend receives the branch command."""
        make_project("A")
        make_package("A", "pkg")
        run("branch", "A", "pkg", actor=tom, rev="3")

        link = json.loads(backend.files["/source/home:tom:branches:A/pkg/_link"])
        assert link == {"project": "A", "package": "pkg", "rev": "3"}

    def test_branch_twice(self, run, database, tom, make_project, make_package):
        """Test that a repeated branch needs force and then replaces the link."""
        make_project("A")
        make_package("A", "pkg")
        assert run("branch", "A", "pkg", actor=tom).ok

        assert run("branch", "A", "pkg", actor=tom).code == "package_exists"
        assert run("branch", "A", "pkg", actor=tom, force=True, rev="7").ok
        with database.session() as session:
            project = ProjectRepository(session).require("home:tom:branches:A")
            assert PackageRepository(session).require(project, "pkg").link_revision == "7"

    def test_dryrun(self, run, database, tom, make_project, make_package):
        """Test that a dry run reports without creating anything."""
        make_project("A")
        make_package("A", "pkg")
        result = run("branch", "A", "pkg", actor=tom, dryrun=True)

        assert result.ok
        assert result.data["create_project"] is True
        assert result.data["replace"] is False
        with database.session() as session:
            assert not ProjectRepository(session).exists("home:tom:branches:A")

    def test_missingok(self, run, database, tom, make_project):
        """Test branching a package that does not exist yet."""
        make_project("A")
        result = run("branch", "A", "new", actor=tom, missingok=True)

        assert result.ok
        with database.session() as session:
            project = ProjectRepository(session).require("home:tom:branches:A")
            assert PackageRepository(session).require(project, "new").link_project == "A"

    def test_missingok_but_exists(self, run, tom, make_project, make_package):
        """Test that missingok on an existing package is a conflict."""
        make_project("A")
        make_package("A", "pkg")

        assert run("branch", "A", "pkg", actor=tom, missingok=True).code == "not_missing"

    def test_unknown_source(self, run, tom, make_project):
        """Test branching a package that does not exist."""
        make_project("A")

        assert run("branch", "A", "ghost", actor=tom).code == "unknown_package"

    def test_through_project_link(self, run, tom, make_project, make_package):
        """Test that the source is found through project links."""
        make_project("Base")
        make_package("Base", "pkg")
        make_project("Derived", links=["Base"])
        result = run("branch", "Derived", "pkg", actor=tom)

        assert result.ok
        assert result.data["sourceproject"] == "Base"
        assert result.data["targetproject"] == "home:tom:branches:Derived"

    def test_foreign_target_project(self, run, tom, make_project, make_package):
        """Test that branching into a project of someone else is refused."""
        make_project("A")
        make_package("A", "pkg")
        make_project("B")
        result = run("branch", "A", "pkg", actor=tom, target_project="B")

        assert result.code == "cmd_execution_no_permission"

    def test_source_protected(self, run, tom, make_project, make_package):
        """Test that hidden sources cannot be branched by others."""
        make_project("A")
        make_package("A", "pkg")
        assert run("set_flag", "A", "pkg", flag="sourceaccess", status="disable").ok

        result = run("branch", "A", "pkg", actor=tom)
        assert result.code == "source_access_no_permission"

    def test_branch_recorded(self, dispatcher, run, admin, tom, make_project, make_package):
        """Test that the branch is recorded on the new package."""
        make_project("A")
        make_package("A", "pkg")
        run("branch", "A", "pkg", actor=tom)
        entries = dispatcher.history("home:tom:branches:A", "pkg", admin).data["entries"]

        assert [e["kind"] for e in entries] == ["branch"]
        assert entries[0]["user"] == "tom"
