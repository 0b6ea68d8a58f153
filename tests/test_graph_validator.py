"""Tests for repository graph validation on metadata writes."""

from __future__ import annotations

from buildsvc.db import ProjectRepository
from buildsvc.graph import GraphValidator
from buildsvc.models.metadata import (
    DevelMeta,
    PackageMeta,
    PathMeta,
    ProjectMeta,
    ReleaseTargetMeta,
    RepositoryMeta,
)
from buildsvc.models.refs import DanglingRef


def _save(dispatcher, admin, name, *repositories, **fields):
    meta = ProjectMeta(name=name, repositories=list(repositories), **fields)
    return dispatcher.update_project_meta(name, meta, admin)


class TestEdgeValidation:
    """Test checks of individual edges."""

    def test_self_path_rejected(self, dispatcher, admin):
        """Test that a repository cannot use itself, ignoring case."""
        result = _save(
            dispatcher, admin, "A", RepositoryMeta("r1", paths=[PathMeta("a", "R1")])
        )

        assert result.code == "project_save_error"
        assert result.status == 400
        assert "same repository as path element" in result.message

    def test_self_hostsystem_rejected(self, dispatcher, admin):
        """Test that a repository cannot be its own hostsystem."""
        result = _save(
            dispatcher, admin, "A", RepositoryMeta("r1", hostsystem=PathMeta("A", "r1"))
        )

        assert result.code == "project_save_error"
        assert "hostsystem" in result.message

    def test_double_architecture(self, dispatcher, admin):
        """Test that an architecture may appear once per repository."""
        result = _save(
            dispatcher, admin, "A", RepositoryMeta("r1", architectures=["x86_64", "x86_64"])
        )

        assert result.code == "project_save_error"
        assert "x86_64" in result.message

    def test_unknown_path_target(self, dispatcher, admin):
        """Test that a path to a missing repository fails."""
        result = _save(
            dispatcher, admin, "A", RepositoryMeta("r1", paths=[PathMeta("Nowhere", "std")])
        )

        assert result.code == "repository_access_failure"
        assert "Nowhere/std" in result.message

    def test_unknown_release_target(self, dispatcher, admin):
        """Test that a release target must exist."""
        repo = RepositoryMeta("r1", release_targets=[ReleaseTargetMeta("Nowhere", "std")])
        result = _save(dispatcher, admin, "A", repo)

        assert result.code == "repository_access_failure"
        assert "release target" in result.message

    def test_local_target_in_same_document(self, dispatcher, admin):
        """Test that repositories of the saved document count as existing."""
        result = _save(
            dispatcher,
            admin,
            "A",
            RepositoryMeta("r1"),
            RepositoryMeta("r2", paths=[PathMeta("A", "r1")]),
        )

        assert result.ok

    def test_missing_ok_accepted(self, dispatcher, database, admin):
        """Test that a missing_ok path may point nowhere."""
        path = PathMeta("Later", "std", missing_ok=True)
        assert _save(dispatcher, admin, "A", RepositoryMeta("r1", paths=[path])).ok

        with database.session() as session:
            repo = ProjectRepository(session).require("A").repository("r1")
            assert repo.path_elements[0].target == DanglingRef("Later", "std")
        meta = dispatcher.show_project_meta("A", admin)
        assert meta.data["repositories"][0]["paths"][0]["missing_ok"] is True

    def test_missing_ok_but_exists(self, dispatcher, admin, make_project):
        """Test that missing_ok on an existing target is a conflict."""
        make_project("B", {"std": []})
        path = PathMeta("B", "std", missing_ok=True)
        result = _save(dispatcher, admin, "A", RepositoryMeta("r1", paths=[path]))

        assert result.code == "not_missing"

    def test_broken_sentinel_accepted(self, dispatcher, admin):
        """Test that a document may carry broken edges."""
        path = PathMeta("deleted", "deleted")
        result = _save(dispatcher, admin, "A", RepositoryMeta("r1", paths=[path]))

        assert result.ok

    def test_remote_targets_not_checked(self, dispatcher, admin, make_project):
        """Test that repositories below a remote project are taken as given."""
        make_project("Remote", remote_url="https://api.example.org/public")
        path = PathMeta("Remote:Factory", "standard")
        result = _save(dispatcher, admin, "A", RepositoryMeta("r1", paths=[path]))

        assert result.ok


class TestCycles:
    """Test cycle detection."""

    def test_path_cycle(self, dispatcher, admin, make_project):
        """Test that closing a path loop is rejected."""
        make_project("A", {"r1": []})
        make_project("B", {"r2": [PathMeta("A", "r1")]})
        result = _save(dispatcher, admin, "A", RepositoryMeta("r1", paths=[PathMeta("B", "r2")]))

        assert result.code == "cycle_error"
        assert "A/r1 -> B/r2 -> A/r1" in result.message

    def test_internal_path_cycle(self, dispatcher, admin):
        """Test a loop between repositories of one document."""
        result = _save(
            dispatcher,
            admin,
            "A",
            RepositoryMeta("r1", paths=[PathMeta("A", "r2")]),
            RepositoryMeta("r2", paths=[PathMeta("A", "r1")]),
        )

        assert result.code == "cycle_error"

    def test_devel_project_cycle(self, dispatcher, admin, make_project):
        """Test that devel project loops are rejected."""
        make_project("A")
        make_project("B", devel=DevelMeta("A"))
        result = dispatcher.update_project_meta(
            "A", ProjectMeta("A", devel=DevelMeta("B")), admin
        )

        assert result.code == "project_cycle"

    def test_devel_project_self(self, dispatcher, admin, make_project):
        """Test that a project cannot be its own devel project."""
        make_project("A")
        result = dispatcher.update_project_meta(
            "A", ProjectMeta("A", devel=DevelMeta("A")), admin
        )

        assert result.code == "project_cycle"

    def test_devel_package_cycle(self, dispatcher, make_project, make_package, admin):
        """Test that devel package loops are rejected."""
        make_project("A")
        make_project("B")
        make_package("B", "pkg")
        make_package("A", "pkg", devel=DevelMeta("B", "pkg"))
        result = dispatcher.update_package_meta(
            "B", "pkg", PackageMeta("pkg", "B", devel=DevelMeta("A")), admin
        )

        assert result.code == "cycle_error"


class TestDependents:
    """Test the lookup of dependent edges."""

    def test_direct_referrers_only(self, database, make_project):
        """Test that own edges and indirect referrers are excluded."""
        make_project("A", {"r1": [], "r0": [PathMeta("A", "r1")]})
        make_project("B", {"r2": [PathMeta("A", "r1")]})
        make_project("C", {"r3": [PathMeta("B", "r2")]})

        with database.session() as session:
            project = ProjectRepository(session).require("A")
            edges = GraphValidator(session).find_dependents(project.repositories)
            assert [edge.repository.full_name for edge in edges] == ["B/r2"]

    def test_project_links_to_self(self, dispatcher, admin, make_project):
        """Test that a project cannot link to itself."""
        make_project("A")
        result = dispatcher.update_project_meta("A", ProjectMeta("A", links=["A"]), admin)

        assert result.code == "project_save_error"
