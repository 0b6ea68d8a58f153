"""Tests for maintenance channel commands."""

from __future__ import annotations

import json

import pytest

from buildsvc.db import PackageRepository, ProjectRepository
from buildsvc.models.metadata import (
    ChannelBinaryMeta,
    ChannelMeta,
    ChannelTargetMeta,
    PathMeta,
    RepositoryMeta,
    dump_meta,
)
from buildsvc.models.refs import RepoRef
from buildsvc.models.schemas import Command


@pytest.fixture
def channel(make_project, make_package):
    """Channel ``Channels/chan`` publishing ``Maint/hello`` to two update repositories."""
    make_project("SUSE:Updates", {"update": RepositoryMeta("update", architectures=["x86_64"])})
    make_project("Old", {"update": []})
    make_project("Maint")
    make_package("Maint", "hello")
    make_project("Channels")
    make_package(
        "Channels",
        "chan",
        channel=ChannelMeta(
            targets=[
                ChannelTargetMeta("SUSE:Updates", "update"),
                ChannelTargetMeta("Old", "update", disabled=True),
            ],
            binaries=[ChannelBinaryMeta("hello", "Maint", package="hello")],
        ),
    )


def _targets(database, project_name, package_name):
    with database.session() as session:
        project = ProjectRepository(session).require(project_name)
        package = PackageRepository(session).require(project, package_name)
        return [(t.repository.full_name, t.disabled) for t in package.channel_targets]


class TestAddChannels:
    """Test adding channels to a project."""

    def test_add_disabled(self, run, database, backend, channel):
        """Test that by default channel targets are added disabled."""
        result = run("addchannels", "Maint")

        assert result.ok
        assert result.data["channels"] == ["chan"]
        assert _targets(database, "Maint", "chan") == [
            ("SUSE:Updates/update", True),
            ("Old/update", True),
        ]
        assert "/source/Maint/chan/_link" in backend.files

    def test_skip_disabled(self, run, database, channel):
        """Test that disabled targets can be left out."""
        assert run("addchannels", "Maint", mode="skip_disabled").ok

        assert _targets(database, "Maint", "chan") == [("SUSE:Updates/update", False)]

    def test_enable_all(self, run, database, channel):
        """Test that all targets can be enabled right away."""
        assert run("addchannels", "Maint", mode="enable_all").ok

        assert _targets(database, "Maint", "chan") == [
            ("SUSE:Updates/update", False),
            ("Old/update", False),
        ]

    def test_existing_channel_skipped(self, run, channel):
        """Test that a second call adds nothing."""
        run("addchannels", "Maint")

        assert run("addchannels", "Maint").data["channels"] == []

    def test_unknown_mode(self, run, channel):
        """Test rejection of an unknown mode."""
        assert run("addchannels", "Maint", mode="sometimes").code == "validation_failed"


class TestModifyChannels:
    """Test changing channel target state."""

    def test_enable_all(self, run, database, channel):
        """Test enabling every target of the project's channels."""
        run("addchannels", "Maint")
        result = run("modifychannels", "Maint", mode="enable_all")

        assert result.data["channels"] == ["chan"]
        assert all(not disabled for _, disabled in _targets(database, "Maint", "chan"))

    def test_skip_disabled(self, run, database, channel):
        """Test dropping disabled targets."""
        run("addchannels", "Maint", mode="enable_all")
        assert run("modifychannels", "Maint", mode="skip_disabled").data["channels"] == []


class TestEnableChannel:
    """Test enabling a channel package."""

    def test_repositories_added(self, run, database, channel):
        """Test that a repository per target builds against it."""
        run("addchannels", "Maint")
        result = run("enablechannel", "Maint", "chan")

        assert result.data["repositories"] == ["SUSE_Updates_update", "Old_update"]
        with database.session() as session:
            project = ProjectRepository(session).require("Maint")
            repo = project.repository("SUSE_Updates_update")
            assert repo.architecture_names == ["x86_64"]
            assert repo.path_elements[0].target == RepoRef("SUSE:Updates", "update")
        assert all(not disabled for _, disabled in _targets(database, "Maint", "chan"))

        assert run("enablechannel", "Maint", "chan").data["repositories"] == []


class TestRepositoryRemoval:
    """Test references released when repositories disappear."""

    def test_channel_targets_dropped(self, dispatcher, database, admin, channel):
        """Test that channel targets on a deleted repository are removed."""
        assert dispatcher.delete_project("SUSE:Updates", admin).ok

        assert _targets(database, "Channels", "chan") == [("Old/update", True)]

    def test_hostsystem_cleared(self, dispatcher, database, admin, make_project):
        """Test that hostsystem references to a deleted repository are cleared."""
        make_project("A", {"r1": []})
        make_project("H", {"h": RepositoryMeta("h", hostsystem=PathMeta("A", "r1"))})

        assert dispatcher.delete_project("A", admin).ok
        with database.session() as session:
            assert ProjectRepository(session).require("H").repository("h").hostsystem is None
        repo = dispatcher.show_project_meta("H", admin).data["repositories"][0]
        assert repo["hostsystem"] is None


class TestImportChannel:
    """Test replacing a channel definition with a posted document."""

    @pytest.fixture
    def post(self, dispatcher, admin):
        def execute(body, actor=None, **params):
            command = Command(
                verb="importchannel", project="Channels", package="chan", params=params, body=body
            )
            return dispatcher.execute(command, actor or admin)

        return execute

    def test_import(self, post, database, backend, channel):
        """Test that targets and binaries are replaced and the document stored."""
        document = ChannelMeta(
            targets=[ChannelTargetMeta("Old", "update")],
            binaries=[ChannelBinaryMeta("hello-devel", "Maint", package="hello")],
        )

        result = post(dump_meta(document))

        assert result.ok, result.message
        assert result.data == {"targets": ["Old/update"], "binaries": ["hello-devel"]}
        assert _targets(database, "Channels", "chan") == [("Old/update", False)]
        stored = json.loads(backend.files["/source/Channels/chan/_channel"])
        assert stored["binaries"][0]["name"] == "hello-devel"

    def test_extra_target(self, post, database, channel):
        """Test that target_project/target_repository add a publish target."""
        body = dump_meta(ChannelMeta())

        result = post(body, target_project="SUSE:Updates", target_repository="update")

        assert result.ok, result.message
        assert _targets(database, "Channels", "chan") == [("SUSE:Updates/update", False)]

    def test_missing_body(self, post, channel):
        assert post(None).code == "missing_parameter"

    def test_unknown_target(self, post, database, channel):
        """Test that an unknown target repository changes nothing."""
        document = ChannelMeta(targets=[ChannelTargetMeta("Nowhere", "update")])

        assert post(dump_meta(document)).code == "unknown_repository"
        assert _targets(database, "Channels", "chan") == [
            ("SUSE:Updates/update", False),
            ("Old/update", True),
        ]

    def test_needs_modify(self, post, tom, channel):
        result = post(dump_meta(ChannelMeta()), actor=tom)

        assert result.code == "cmd_execution_no_permission"
