"""Tests for patchinfo packages and spec file templates."""

from __future__ import annotations

import json

import pytest


@pytest.fixture
def maintenance(make_project, make_package):
    make_project("Maint")
    make_package("Maint", "hello")
    make_package("Maint", "world")


class TestCreatePatchinfo:
    def test_create(self, dispatcher, run, backend, admin, maintenance):
        """Test that the package is created with a _patchinfo listing the others."""
        result = run("createpatchinfo", "Maint", comment="security update")

        assert result.ok, result.message
        assert result.data == {"targetproject": "Maint", "targetpackage": "patchinfo"}
        document = json.loads(backend.files["/source/Maint/patchinfo/_patchinfo"])
        assert document["packager"] == "admin"
        assert document["summary"] == "security update"
        assert document["packages"] == ["hello", "world"]
        assert "/source/Maint/patchinfo/_meta" in backend.files
        entry = dispatcher.history("Maint", "patchinfo", admin).data["entries"][-1]
        assert entry["kind"] == "patchinfo"

    def test_named(self, run, backend, maintenance):
        result = run("createpatchinfo", "Maint", name="patchinfo.1", category="security")

        assert result.data["targetpackage"] == "patchinfo.1"
        document = json.loads(backend.files["/source/Maint/patchinfo.1/_patchinfo"])
        assert document["category"] == "security"

    def test_exists(self, run, backend, maintenance):
        """Test that an existing patchinfo is only replaced with force."""
        assert run("createpatchinfo", "Maint").ok
        backend.calls.clear()

        assert run("createpatchinfo", "Maint").code == "patchinfo_file_exists"
        assert backend.calls == []
        assert run("createpatchinfo", "Maint", force=True).ok

    def test_invalid_name(self, run, maintenance):
        assert run("createpatchinfo", "Maint", name="_bad").code == "invalid_package_name"

    def test_needs_modify(self, run, tom, maintenance):
        result = run("createpatchinfo", "Maint", actor=tom)

        assert result.code == "cmd_execution_no_permission"

    def test_project_only(self, run, maintenance):
        """Test that the verb addresses projects, not packages."""
        assert run("createpatchinfo", "Maint", "hello").code == "illegal_request"


class TestUpdatePatchinfo:
    def test_update(self, run, backend, make_package, maintenance):
        """Test that the shipped package list is refreshed and other fields kept."""
        run("createpatchinfo", "Maint", comment="first")
        make_package("Maint", "more")

        result = run("updatepatchinfo", "Maint", "patchinfo")

        assert result.ok, result.message
        assert result.data["packages"] == ["hello", "more", "world"]
        document = json.loads(backend.files["/source/Maint/patchinfo/_patchinfo"])
        assert document["packages"] == ["hello", "more", "world"]
        assert document["summary"] == "first"

    def test_not_a_patchinfo(self, run, maintenance):
        assert run("updatepatchinfo", "Maint", "hello").code == "unknown_package"


class TestSpecFileTemplate:
    def test_created_once(self, run, backend, maintenance):
        """Test that the template is written and not overwritten."""
        result = run("createSpecFileTemplate", "Maint", "hello")

        assert result.ok, result.message
        spec = backend.files["/source/Maint/hello/hello.spec"]
        assert spec.startswith("#\n# spec file for package")
        assert "%changelog" in spec

        result = run("createSpecFileTemplate", "Maint", "hello")
        assert result.code == "spec_file_exists"
        assert result.message == "SPEC file already exists."

    def test_needs_modify(self, run, tom, maintenance):
        result = run("createSpecFileTemplate", "Maint", "hello", actor=tom)

        assert result.code == "cmd_execution_no_permission"
