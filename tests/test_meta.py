"""Tests for metadata writes and reads through the dispatcher."""

from __future__ import annotations

import json

from buildsvc.constants import SagaState
from buildsvc.models.metadata import PackageMeta, PathMeta, ProjectMeta, RepositoryMeta


class TestProjectMeta:
    """Test project metadata writes."""

    def test_create_and_show(self, dispatcher, backend, admin, make_project):
        """Test that a created project is stored locally and on the backend."""
        result = make_project("A", {"std": []}, title="Project A")
        saga = dispatcher.last_saga

        assert result.data["created"] is True
        assert saga.state is SagaState.RECORDED
        shown = dispatcher.show_project_meta("A", admin).data
        assert shown["title"] == "Project A"
        assert shown["repositories"][0]["architectures"] == ["x86_64"]
        stored = json.loads(backend.files["/source/A/_meta"])
        assert stored["name"] == "A"

    def test_update(self, dispatcher, admin, make_project):
        """Test that a second write replaces the document."""
        make_project("A", title="one")
        result = make_project("A", title="two")

        assert result.data["created"] is False
        assert dispatcher.show_project_meta("A", admin).data["title"] == "two"

    def test_json_document(self, dispatcher, admin):
        """Test that documents may be given as JSON text."""
        result = dispatcher.update_project_meta("A", '{"name": "A"}', admin)

        assert result.ok
        assert dispatcher.update_project_meta("A", "{", admin).code == "validation_failed"

    def test_name_mismatch(self, dispatcher, admin):
        """Test that the document must name the addressed project."""
        result = dispatcher.update_project_meta("A", ProjectMeta(name="B"), admin)

        assert result.code == "project_name_mismatch"

    def test_invalid_name(self, dispatcher, admin):
        result = dispatcher.update_project_meta("_A", ProjectMeta(name="_A"), admin)

        assert result.code == "invalid_project_name"

    def test_creator_becomes_maintainer(self, dispatcher, tom, make_project):
        """Test that a project without persons is maintained by its creator."""
        make_project("home:tom:new", actor=tom)

        persons = dispatcher.show_project_meta("home:tom:new", tom).data["persons"]
        assert persons == [{"login": "tom", "role": "maintainer"}]

    def test_create_needs_permission(self, dispatcher, tom):
        """Test that users cannot create projects outside their home."""
        result = dispatcher.update_project_meta("B", ProjectMeta(name="B"), tom)

        assert result.code == "create_project_no_permission"
        assert dispatcher.last_saga.state is SagaState.REJECTED

    def test_change_needs_permission(self, dispatcher, tom, make_project):
        make_project("A")

        result = dispatcher.update_project_meta("A", ProjectMeta(name="A", title="x"), tom)
        assert result.code == "change_project_no_permission"

    def test_remote_url_admin_only(self, dispatcher, tom):
        """Test that remote projects are reserved for administrators."""
        meta = ProjectMeta(name="home:tom:remote", remote_url="https://api.example.org/public")

        result = dispatcher.update_project_meta("home:tom:remote", meta, tom)
        assert result.code == "change_project_no_permission"
        assert "remote" in result.message

    def test_download_url_admin_only(self, dispatcher, tom):
        """Test that download on demand repositories are reserved for administrators."""
        repo = RepositoryMeta("dod", download_url="https://download.example.org/repo")
        meta = ProjectMeta(name="home:tom:dod", repositories=[repo])

        assert dispatcher.update_project_meta("home:tom:dod", meta, tom).code == (
            "change_project_no_permission"
        )

    def test_unknown_flag(self, dispatcher, admin):
        """Test that flag syntax is checked before anything is written."""
        document = {"name": "A", "flags": [{"flag": "colour", "status": "enable"}]}

        assert dispatcher.update_project_meta("A", document, admin).code == "invalid_flag"


class TestRepositoryRemoval:
    """Test removing repositories other projects depend on."""

    def test_dependency_blocks(self, dispatcher, admin, make_project):
        """Test that a used repository cannot be removed without force."""
        make_project("A", {"std": [], "other": []})
        make_project("B", {"std": [PathMeta("A", "std")]})

        result = dispatcher.update_project_meta(
            "A", ProjectMeta(name="A", repositories=[RepositoryMeta("other")]), admin
        )
        assert result.code == "repo_dependency"
        assert result.data["dependents"] == ["B/std"]
        assert len(dispatcher.show_project_meta("A", admin).data["repositories"]) == 2

    def test_force_rewrites_dependents(self, dispatcher, backend, admin, make_project):
        """Test that forced removal points dependents at the sentinel."""
        make_project("A", {"std": [], "other": []})
        make_project("B", {"std": [PathMeta("A", "std")]})

        result = dispatcher.update_project_meta(
            "A", ProjectMeta(name="A", repositories=[RepositoryMeta("other")]), admin, force=True
        )
        assert result.ok
        path = dispatcher.show_project_meta("B", admin).data["repositories"][0]["paths"][0]
        assert (path["project"], path["repository"]) == ("deleted", "deleted")
        stored = json.loads(backend.files["/source/B/_meta"])
        assert stored["repositories"][0]["paths"][0]["project"] == "deleted"

    def test_remove_linking_repositories(self, dispatcher, admin, make_project):
        """Test that dependents can be removed instead of rewritten."""
        make_project("A", {"std": []})
        make_project("B", {"std": [PathMeta("A", "std")]})

        assert dispatcher.update_project_meta(
            "A", ProjectMeta(name="A"), admin, force=True, remove_linking_repositories=True
        ).ok
        repo = dispatcher.show_project_meta("B", admin).data["repositories"][0]
        assert repo["name"] == "std"
        assert repo["paths"] == []

    def test_internal_edges(self, dispatcher, admin, make_project):
        """Test that edges inside the saved project do not block removal."""
        make_project("A", {"base": [], "std": [PathMeta("A", "base")]})

        result = dispatcher.update_project_meta(
            "A", ProjectMeta(name="A", repositories=[RepositoryMeta("std")]), admin
        )
        assert result.ok
        repos = dispatcher.show_project_meta("A", admin).data["repositories"]
        assert [(r["name"], r["paths"]) for r in repos] == [("std", [])]


class TestPackageMeta:
    """Test package metadata writes."""

    def test_create_and_show(self, dispatcher, backend, admin, make_project, make_package):
        make_project("A")
        make_package("A", "pkg", title="Hello")

        assert dispatcher.show_package_meta("A", "pkg", admin).data["title"] == "Hello"
        assert "/source/A/pkg/_meta" in backend.files

    def test_unknown_project(self, dispatcher, admin):
        result = dispatcher.update_package_meta("A", "pkg", PackageMeta("pkg", "A"), admin)

        assert result.code == "unknown_project"

    def test_name_mismatch(self, dispatcher, admin, make_project):
        make_project("A")
        result = dispatcher.update_package_meta("A", "pkg", PackageMeta("other", "A"), admin)

        assert result.code == "package_name_mismatch"

    def test_reserved_name(self, dispatcher, admin, make_project):
        """Test that the project meta package name cannot be used."""
        make_project("A")
        meta = PackageMeta("_project", "A")
        result = dispatcher.update_package_meta("A", "_project", meta, admin)

        assert result.code == "create_package_no_permission"

    def test_create_needs_permission(self, dispatcher, tom, make_project):
        make_project("A")
        result = dispatcher.update_package_meta("A", "pkg", PackageMeta("pkg", "A"), tom)

        assert result.code == "create_package_no_permission"

    def test_show_unknown(self, dispatcher, admin, make_project):
        make_project("A")

        assert dispatcher.show_package_meta("A", "ghost", admin).code == "unknown_package"


class TestHistory:
    """Test history records of metadata writes."""

    def test_revisions(self, dispatcher, admin, make_project):
        """Test that every write adds a revision with the comment."""
        make_project("A")
        meta = ProjectMeta(name="A", title="t")
        dispatcher.update_project_meta("A", meta, admin, comment="retitle")

        entries = dispatcher.history("A", None, admin).data["entries"]
        assert [e["revision"] for e in entries] == [1, 2]
        assert [e["kind"] for e in entries] == ["meta", "meta"]
        assert entries[1]["comment"] == "retitle"
        assert entries[1]["user"] == "admin"
        assert entries[0]["payload"]["created"] is True

    def test_separate_entities(self, dispatcher, admin, make_project, make_package):
        """Test that package history is kept apart from project history."""
        make_project("A")
        make_package("A", "pkg")
        make_package("A", "pkg", title="again")

        assert len(dispatcher.history("A", None, admin).data["entries"]) == 1
        package_entries = dispatcher.history("A", "pkg", admin).data["entries"]
        assert [e["revision"] for e in package_entries] == [1, 2]
