"""Commands executed by the backend without local model changes."""

from __future__ import annotations

from typing import TYPE_CHECKING

from buildsvc.backend.gateway import build_path, source_path
from buildsvc.constants import FlagKind, HistoryKind, Verb
from buildsvc.exceptions import (
    SourceAccessNoPermission,
    SpecFileExistsError,
    UnknownPackageError,
)
from buildsvc.models.schemas import CommandResult
from buildsvc.services.base import SagaService

if TYPE_CHECKING:
    from buildsvc.models.orm import Package, Project
    from buildsvc.models.schemas import Command

__all__ = ["PassthroughService"]

# verbs changing sources, recorded as commits
SOURCE_CHANGING = frozenset(
    {
        Verb.COMMIT,
        Verb.COMMITFILELIST,
        Verb.RUNSERVICE,
        Verb.DELETEUPLOADREV,
        Verb.LINKTOBRANCH,
        Verb.COLLECTBUILDENV,
    }
)

SPEC_FILE_TEMPLATE = """\
#
# spec file for package
#

Name:
Version:
Release:        0
Summary:
License:
Group:
Url:
Source:
BuildRequires:
BuildRoot:      %{_tmppath}/%{name}-%{version}-build

%description

%prep
%setup -q

%build
%configure
make %{?_smp_mflags}

%install
make install DESTDIR=%{buildroot}

%files
%defattr(-,root,root)
%doc ChangeLog README COPYING

%changelog
"""


class PassthroughService(SagaService):
    """
    Forward a command to the backend.

    Read-only verbs return the backend payload; source-changing verbs are
    recorded in history. No local rows change.
    """

    def source_command(self, verb: Verb, package: Package, cmd: Command) -> CommandResult:
        project_name = cmd.project
        params = {k: v for k, v in cmd.params.items() if k != "cmd"}
        if (
            verb not in SOURCE_CHANGING
            and self.flags.is_disabled(package, FlagKind.SOURCEACCESS)
            and not self.oracle.can_modify(package, self.actor)
        ):
            msg = f"no read access to sources of {package.full_name}"
            raise SourceAccessNoPermission(msg)
        self.saga.authorized()
        result = self.saga.invoke(
            lambda: self.gateway.post(
                source_path(project_name, cmd.package),
                **self.backend_params(cmd=verb.value, **params),
            ),
            allow_not_found=True,
        )
        if result.is_not_found:
            msg = f"package '{project_name}/{cmd.package}' is unknown to the backend"
            raise UnknownPackageError(msg)
        if verb in SOURCE_CHANGING:
            self.finish(HistoryKind.COMMIT, package, {"cmd": verb.value, **params})
        return CommandResult.success(payload=result.payload)

    def build_command(self, verb: Verb, package: Package, cmd: Command) -> CommandResult:
        """``rebuild`` and ``wipe``, scoped by optional repository and arch."""
        self.saga.authorized()
        self.saga.invoke(
            lambda: self.gateway.post(
                build_path(package.project.name),
                cmd=verb.value,
                package=package.name,
                repository=cmd.param("repository"),
                arch=cmd.param("arch"),
            )
        )
        payload = {
            "cmd": verb.value,
            "repository": cmd.param("repository"),
            "arch": cmd.param("arch"),
        }
        self.finish(HistoryKind.BUILD, package, payload)
        return CommandResult.success(f"{verb.value} triggered")

    def key_command(self, verb: Verb, project: Project) -> CommandResult:
        """``createkey`` and ``extendkey`` for the project's signing key."""
        self.saga.authorized()
        result = self.saga.invoke(
            lambda: self.gateway.post(
                source_path(project.name), **self.backend_params(cmd=verb.value)
            )
        )
        self.finish(HistoryKind.KEY, project, {"cmd": verb.value})
        return CommandResult.success(f"{verb.value} done", payload=result.payload)

    def spec_file_template(self, package: Package) -> CommandResult:
        """Add ``<package>.spec`` from the stock template unless it exists."""
        path = source_path(package.project.name, package.name, f"{package.name}.spec")
        self.saga.precondition_checked()
        existing = self.saga.invoke(lambda: self.gateway.get(path), allow_not_found=True)
        if existing.ok:
            msg = "SPEC file already exists."
            raise SpecFileExistsError(msg)
        self.saga.invoke(
            lambda: self.gateway.put(path, SPEC_FILE_TEMPLATE, **self.backend_params())
        )
        self.finish(HistoryKind.COMMIT, package, {"cmd": Verb.CREATE_SPEC_FILE_TEMPLATE.value})
        return CommandResult.success(f"{package.name}.spec created")
