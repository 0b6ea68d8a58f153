"""Tests for commands forwarded to the source backend."""

from __future__ import annotations

import json

import pytest


@pytest.fixture
def package(make_project, make_package):
    make_project("A", {"std": []})
    make_package("A", "pkg")


class TestSourceCommands:
    def test_diff_returns_payload(self, run, package):
        """Test that read-only verbs return the backend payload."""
        result = run("diff", "A", "pkg", orev="2")

        assert result.ok
        payload = json.loads(result.data["payload"])
        assert payload["cmd"] == "diff"
        assert payload["orev"] == "2"

    def test_commit_recorded(self, dispatcher, run, admin, package):
        """Test that source-changing verbs are recorded as commits."""
        assert run("commit", "A", "pkg", comment="fix build").ok
        entry = dispatcher.history("A", "pkg", admin).data["entries"][-1]

        assert entry["kind"] == "commit"
        assert entry["comment"] == "fix build"
        assert entry["payload"]["cmd"] == "commit"

    def test_diff_not_recorded(self, dispatcher, run, admin, package):
        """Test that reading leaves no history."""
        run("diff", "A", "pkg")
        entries = dispatcher.history("A", "pkg", admin).data["entries"]

        assert [e["kind"] for e in entries] == ["meta"]

    def test_commit_needs_modify(self, run, tom, package):
        """Test that committing needs modify rights."""
        assert run("commit", "A", "pkg", actor=tom).code == "cmd_execution_no_permission"

    def test_hidden_sources(self, run, tom, package):
        """Test that hidden sources cannot be read by others."""
        assert run("set_flag", "A", "pkg", flag="sourceaccess", status="disable").ok

        assert run("diff", "A", "pkg", actor=tom).code == "source_access_no_permission"
        assert run("diff", "A", "pkg").ok

    def test_collectbuildenv_parameters(self, run, package):
        """Test that collectbuildenv needs its origin parameters."""
        result = run("collectbuildenv", "A", "pkg", oproject="B")

        assert result.code == "missing_parameter"
        assert "opackage" in result.message

    def test_project_scope_unsupported(self, run, package):
        """Test that package verbs need a package."""
        assert run("diff", "A").code == "illegal_request"

    def test_backend_failure(self, run, backend, package):
        """Test that a transport error becomes a backend error."""
        backend.fail("POST", "/source/A/pkg")
        result = run("commit", "A", "pkg")

        assert result.code == "backend_error"
        assert result.status == 502


class TestBuildCommands:
    def test_rebuild(self, run, backend, package):
        """Test that rebuild is sent to the build service with its scope."""
        assert run("rebuild", "A", "pkg", repository="std", arch="x86_64").ok

        call = backend.calls_to("POST", "/build/A")[-1]
        assert call.params == {
            "cmd": "rebuild",
            "package": "pkg",
            "repository": "std",
            "arch": "x86_64",
        }

    def test_wipe_recorded(self, dispatcher, run, admin, package):
        """Test that build commands are recorded."""
        run("wipe", "A", "pkg")
        entry = dispatcher.history("A", "pkg", admin).data["entries"][-1]

        assert entry["kind"] == "build"
        assert entry["payload"]["cmd"] == "wipe"


class TestKeyCommands:
    def test_createkey(self, dispatcher, run, backend, admin, package):
        """Test that key commands go to the project and are recorded."""
        assert run("createkey", "A").ok

        assert backend.calls_to("POST", "/source/A")[-1].params["cmd"] == "createkey"
        assert dispatcher.history("A", None, admin).data["entries"][-1]["kind"] == "key"

    def test_key_needs_modify(self, run, tom, package):
        """Test that key commands need modify rights."""
        assert run("extendkey", "A", actor=tom).code == "cmd_execution_no_permission"
