"""Tests for the copy and release sagas, synchronous and queued."""

from __future__ import annotations

import pytest

from buildsvc.db import PackageRepository, ProjectRepository
from buildsvc.models.metadata import PathMeta, ReleaseTargetMeta, RepositoryMeta
from buildsvc.models.refs import RepoRef
from buildsvc.services import JobStatus


@pytest.fixture
def origin(make_project, make_package):
    """Project ``A`` with two repositories and two packages."""
    make_project("A", {"r1": [], "r2": [PathMeta("A", "r1")]}, title="Origin")
    make_package("A", "p1")
    make_package("A", "p2")


def _package_names(database, project_name):
    with database.session() as session:
        project = ProjectRepository(session).require(project_name)
        return [p.name for p in project.packages]


class TestCopyProject:
    """Test copying whole projects."""

    def test_copy_nodelay(self, run, database, origin):
        """Test a synchronous project copy."""
        result = run("copy", "B", oproject="A", nodelay=True)

        assert result.ok
        assert result.data["packages"] == ["p1", "p2"]
        assert _package_names(database, "B") == ["p1", "p2"]
        with database.session() as session:
            project = ProjectRepository(session).require("B")
            assert project.title == "Origin"
            assert [r.name for r in project.repositories] == ["r1", "r2"]
            edge = project.repository("r2").path_elements[0]
            assert edge.target == RepoRef("B", "r1")

    def test_copy_queued(self, dispatcher, run, database, jobs, admin, origin):
        """Test that a queued copy finishes when the job runs."""
        result = run("copy", "B", oproject="A")

        assert result.code == "invoked"
        assert _package_names(database, "B") == []

        assert dispatcher.run_jobs() == 1
        assert jobs.status(result.data["job"]) is JobStatus.DONE
        assert _package_names(database, "B") == ["p1", "p2"]
        entries = dispatcher.history("B", None, admin).data["entries"]
        assert [e["kind"] for e in entries] == ["copy", "copy"]
        assert entries[0]["payload"]["deferred"] is True

    def test_failed_job(self, dispatcher, run, backend, jobs, origin):
        """Test that a failing job is marked failed."""
        result = run("copy", "B", oproject="A")
        backend.fail("POST", "/source/B")

        assert dispatcher.run_jobs() == 1
        assert jobs.status(result.data["job"]) is JobStatus.FAILED
        assert "backend call failed" in jobs.jobs[result.data["job"]].error

    def test_remote_origin(self, run, make_project):
        """Test that copying from a remote project is refused."""
        make_project("Remote", remote_url="https://api.example.org/public")

        assert run("copy", "B", oproject="Remote").code == "remote_project"

    def test_withbinaries_needs_admin(self, run, tom, origin):
        """Test that binary copies are reserved for administrators."""
        result = run("copy", "home:tom:A", actor=tom, oproject="A", withbinaries=True)

        assert result.code == "cmd_execution_no_permission"

    def test_protected_sources(self, run, tom, origin):
        """Test that projects with hidden sources cannot be copied by users."""
        assert run("set_flag", "A", "p2", flag="sourceaccess", status="disable").ok
        result = run("copy", "home:tom:A", actor=tom, oproject="A")

        assert result.code == "project_copy_no_permission"
        assert "p2" in result.message

    def test_lock_not_copied(self, run, database, origin):
        """Test that the lock flag stays behind."""
        assert run("set_flag", "A", flag="lock", status="enable").ok
        assert run("copy", "B", oproject="A", nodelay=True).ok

        with database.session() as session:
            project = ProjectRepository(session).require("B")
            assert [f.flag for f in project.flags] == []


class TestCopyPackage:
    """Test copying single packages."""

    def test_copy_package(self, run, backend, database, origin, make_project):
        """Test copying a package under a new name."""
        make_project("B")
        result = run("copy", "B", "pkg", oproject="A", opackage="p1")

        assert result.ok
        post = backend.calls_to("POST", "/source/B/pkg")[-1]
        assert post.params["oproject"] == "A"
        assert post.params["opackage"] == "p1"
        assert _package_names(database, "B") == ["pkg"]

    def test_unknown_origin_package(self, run, origin, make_project):
        """Test copying a package that does not exist."""
        make_project("B")

        assert run("copy", "B", "pkg", oproject="A").code == "unknown_package"

    def test_target_not_modifiable(self, run, tom, origin, make_project):
        """Test that copying into a foreign project is refused."""
        make_project("B")

        assert run("copy", "B", "p1", actor=tom, oproject="A").code == (
            "cmd_execution_no_permission"
        )


@pytest.fixture
def releasable(make_project, make_package):
    """Project ``A`` releasing manually into ``Target/std``."""

    def make(trigger="manual", owner=None):
        make_project("Target", {"std": []})
        repo = RepositoryMeta(
            "std",
            architectures=["x86_64", "i586"],
            release_targets=[ReleaseTargetMeta("Target", "std", trigger)],
        )
        name = owner or "A"
        make_project(name, {"std": repo})
        make_package(name, "pkg")
        return name

    return make


class TestRelease:
    """Test release gating and execution."""

    def test_release_nodelay(self, run, backend, database, releasable):
        """Test a synchronous release into the target repository."""
        releasable()
        result = run("release", "A", nodelay=True)

        assert result.ok
        assert result.data["targets"] == ["Target/std/pkg"]
        assert _package_names(database, "Target") == ["pkg"]
        builds = [c.path for c in backend.calls_to("POST", "/build/Target")]
        assert builds == ["/build/Target/std/x86_64/pkg", "/build/Target/std/i586/pkg"]

    def test_release_queued(self, dispatcher, run, database, admin, releasable):
        """Test that a release without nodelay is queued."""
        releasable()
        result = run("release", "A", "pkg")

        assert result.code == "invoked"
        assert _package_names(database, "Target") == []
        assert dispatcher.run_jobs() == 1
        assert _package_names(database, "Target") == ["pkg"]
        entries = dispatcher.history("A", "pkg", admin).data["entries"]
        assert entries[-1]["kind"] == "release"

    def test_trigger_not_manual(self, run, releasable):
        """Test that automatic release targets cannot be released by hand."""
        releasable(trigger=None)
        result = run("release", "A", nodelay=True)

        assert result.code == "cmd_execution_no_permission"
        assert "manual" in result.message

    def test_target_not_modifiable(self, run, tom, releasable):
        """Test that the target project must be writable."""
        releasable(owner="home:tom")
        result = run("release", "home:tom", actor=tom, nodelay=True)

        assert result.code == "cmd_execution_no_permission"
        assert "Target" in result.message

    def test_explicit_target(self, run, database, releasable, make_project):
        """Test that an explicit target skips the trigger check."""
        releasable(trigger=None)
        make_project("Other", {"std": []})
        result = run(
            "release",
            "A",
            nodelay=True,
            target_project="Other",
            target_repository="std",
            repository="std",
        )

        assert result.ok
        assert result.data["targets"] == ["Other/std/pkg"]

    def test_explicit_target_incomplete(self, run, releasable):
        """Test that an explicit target needs both repositories."""
        releasable()
        result = run("release", "A", target_project="Target")

        assert result.code == "missing_parameter"

    def test_no_matching_target(self, run, make_project):
        """Test releasing a project without release targets."""
        make_project("A", {"std": []})
        result = run("release", "A", nodelay=True)

        assert result.code == "no_matching_release_target"
        assert result.status == 404

    def test_unknown_repository(self, run, releasable):
        """Test releasing a repository that does not exist."""
        releasable()

        assert run("release", "A", repository="nope").code == "unknown_repository"

    def test_release_locked_project(self, run, releasable):
        """Test that releasing from a locked project is allowed."""
        releasable()
        assert run("set_flag", "A", flag="lock", status="enable").ok

        assert run("release", "A", nodelay=True).ok
