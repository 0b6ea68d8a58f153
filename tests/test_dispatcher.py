"""Tests for the command dispatcher and the verb table.

Tests verify:
1. Table completeness checks
2. Resolution order: verb, names, parameters, target, predicate, lock
3. Error translation into command results
"""

from __future__ import annotations

import pytest

from buildsvc.constants import CommandScope, SagaState, Verb
from buildsvc.dispatch.commands import COMMANDS, CommandSpec, Route, check_table
from buildsvc.dispatch.predicates import always
from buildsvc.models.metadata import PathMeta
from buildsvc.services.lifecycle import LifecycleService


def _handler(coordinator, target, cmd):
    return None


class TestCommandTable:
    """Test the closed verb table."""

    def test_every_verb_has_a_spec(self):
        """Test that the table covers every verb."""
        assert set(COMMANDS) == set(Verb)
        assert len(COMMANDS) > 30

    def test_every_route_is_complete(self):
        """Test that every route has a handler and a predicate."""
        for spec in COMMANDS.values():
            assert spec.routes
            for route in spec.routes.values():
                assert callable(route.handler)
                assert callable(route.authorize)

    def test_duplicate_verb_rejected(self):
        """Test that listing a verb twice fails the check."""
        specs = [CommandSpec(v, {CommandScope.PROJECT: Route(_handler, always)}) for v in Verb]
        specs.append(CommandSpec(Verb.BRANCH, {CommandScope.PACKAGE: Route(_handler, always)}))
        with pytest.raises(RuntimeError, match="listed twice"):
            check_table(specs)

    def test_missing_verb_rejected(self):
        """Test that a verb without spec fails the check."""
        specs = [
            CommandSpec(v, {CommandScope.PROJECT: Route(_handler, always)})
            for v in Verb
            if v is not Verb.WIPE
        ]
        with pytest.raises(RuntimeError, match="wipe"):
            check_table(specs)

    def test_incomplete_route_rejected(self):
        """Test that a route without predicate fails the check."""
        specs = [CommandSpec(v, {CommandScope.PROJECT: Route(_handler, None)}) for v in Verb]
        with pytest.raises(RuntimeError, match="incomplete"):
            check_table(specs)

    def test_creating_verbs(self):
        """Test which verbs skip the must-exist check."""
        creating = {verb for verb, spec in COMMANDS.items() if spec.creates_target}
        assert creating == {
            Verb.BRANCH,
            Verb.COPY,
            Verb.UNDELETE,
            Verb.MOVE,
            Verb.INSTANTIATE,
        }


class TestResolution:
    """Test the order of dispatcher checks."""

    def test_unknown_verb(self, run, make_project):
        """Test that an unknown verb is an illegal request."""
        make_project("A")
        result = run("explode", "A")

        assert result.code == "illegal_request"
        assert result.status == 400

    def test_unsupported_scope(self, run, make_project):
        """Test that branch on a project is an illegal request."""
        make_project("A")
        result = run("branch", "A")

        assert result.code == "illegal_request"

    def test_invalid_project_name(self, run):
        """Test that names are checked before anything is resolved."""
        result = run("showlinked", "_invalid")

        assert result.code == "invalid_project_name"

    def test_invalid_package_name(self, run, make_project):
        """Test package name validation."""
        make_project("A")
        result = run("showlinked", "A", "-bad")

        assert result.code == "invalid_package_name"

    def test_invalid_parameter_project_name(self, run, make_project):
        """Test that project names in parameters are validated."""
        make_project("A")
        result = run("copy", "B", oproject="A::x")

        assert result.code == "invalid_project_name"

    def test_missing_parameter(self, run, make_project):
        """Test that required parameters are checked before target resolution."""
        result = run("copy", "B")

        assert result.code == "missing_parameter"
        assert "oproject" in result.message

    def test_unknown_project(self, run):
        """Test that a missing project returns not found."""
        result = run("showlinked", "Nowhere")

        assert result.code == "unknown_project"
        assert result.status == 404

    def test_unknown_package(self, run, make_project):
        """Test that a missing package returns not found."""
        make_project("A")
        result = run("diff", "A", "ghost")

        assert result.code == "unknown_package"

    def test_predicate_denies(self, run, make_project, tom):
        """Test that move needs an administrator."""
        make_project("Old")
        result = run("move", "New", actor=tom, oproject="Old")

        assert result.code == "cmd_execution_no_permission"
        assert result.status == 403

    def test_modify_predicate_denies(self, run, make_project, tom):
        """Test that set_flag needs modify rights on the target."""
        make_project("A")
        result = run("set_flag", "A", actor=tom, flag="build", status="disable")

        assert result.code == "cmd_execution_no_permission"

    def test_rejected_saga_state(self, dispatcher, run, make_project, tom):
        """Test that a failed gate leaves the saga rejected."""
        make_project("A")
        run("set_flag", "A", actor=tom, flag="build", status="disable")

        assert dispatcher.last_saga.state is SagaState.REJECTED

    def test_project_link_resolution(self, run, make_project, make_package):
        """Test that diff finds packages through project links."""
        make_project("Base")
        make_package("Base", "pkg")
        make_project("Derived", links=["Base"])
        result = run("diff", "Derived", "pkg")

        assert result.ok

    def test_multibuild_flavor_resolves_base(self, run, make_project, make_package):
        """Test that a multibuild flavor addresses its base package."""
        make_project("A")
        make_package("A", "pkg")
        result = run("rebuild", "A", "pkg:flavor")

        assert result.ok


class TestErrorTranslation:
    """Test translation of exceptions into results."""

    def test_unexpected_exception(self, run, make_project, monkeypatch):
        """Test that unexpected failures become internal errors."""
        make_project("A")

        def boom(self, entity):
            raise ValueError("boom")

        monkeypatch.setattr(LifecycleService, "showlinked", boom)
        result = run("showlinked", "A")

        assert result.code == "internal_error"
        assert result.status == 500
        assert "boom" not in result.message

    def test_error_details_in_data(self, dispatcher, admin, make_project):
        """Test that structured error details are returned as data."""
        make_project("A", {"r1": []})
        make_project("B", {"r2": [PathMeta("A", "r1")]})
        result = dispatcher.delete_project("A", admin)

        assert result.code == "repo_dependency"
        assert result.data == {"dependents": ["B/r2"]}

    def test_comment_parameter_reaches_history(self, dispatcher, run, make_project, admin):
        """Test that a comment parameter is recorded with the change."""
        make_project("A")
        run("set_flag", "A", flag="build", status="disable", comment="too slow")
        result = dispatcher.history("A", None, admin)

        assert result.data["entries"][-1]["comment"] == "too slow"
