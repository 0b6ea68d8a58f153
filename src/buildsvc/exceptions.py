"""buildsvc exception hierarchy.

Every error carries a stable ``code`` for programmatic handling, an HTTP-like
``status`` and a human readable message. The command dispatcher turns them
into :class:`~buildsvc.models.schemas.CommandResult` values; nothing below
is expected to escape to a caller as an unstructured crash.
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "BuildServiceError",
    # not found
    "NotFoundError",
    "UnknownProjectError",
    "UnknownPackageError",
    "UnknownRepositoryError",
    "RepositoryAccessFailure",
    "NoMatchingReleaseTargetError",
    "RemoteProjectError",
    # permission
    "PermissionDeniedError",
    "CmdExecutionNoPermission",
    "ChangeProjectNoPermission",
    "ChangePackageNoPermission",
    "CreateProjectNoPermission",
    "CreatePackageNoPermission",
    "DeleteProjectNoPermission",
    "DeletePackageNoPermission",
    "ChangeProjectProtectionLevel",
    "ChangePackageProtectionLevel",
    "ProjectCopyNoPermission",
    "SourceAccessNoPermission",
    # conflict
    "ConflictError",
    "PackageExistsError",
    "ProjectExistsError",
    "RepoDependencyError",
    "ProjectCycleError",
    "CycleError",
    "NotMissingError",
    "NotLockedError",
    "DeleteError",
    "ProjectSaveError",
    "SpecFileExistsError",
    "PatchinfoFileExistsError",
    # validation
    "ValidationFailedError",
    "InvalidProjectNameError",
    "InvalidPackageNameError",
    "MissingParameterError",
    "InvalidFlagError",
    "IllegalRequestError",
    "ProjectNameMismatchError",
    "PackageNameMismatchError",
    # upstream
    "UpstreamError",
    "BackendError",
    "PartiallyAppliedError",
]


class BuildServiceError(Exception):
    """Base exception for all buildsvc errors.

    Parameters
    ----------
    message : str
        Human readable summary
    code : str, optional
        Override of the class level error code
    details : dict, optional
        Extra structured data returned to the caller
    """

    code: str = "internal_error"
    status: int = 500

    def __init__(
        self,
        message: str = "",
        *,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        if code is not None:
            self.code = code
        self.details = details or {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


# ---------------------------------------------------------------- not found


class NotFoundError(BuildServiceError):
    """Raised when an entity cannot be resolved."""

    code = "not_found"
    status = 404


class UnknownProjectError(NotFoundError):
    code = "unknown_project"


class UnknownPackageError(NotFoundError):
    code = "unknown_package"


class UnknownRepositoryError(NotFoundError):
    code = "unknown_repository"


class RepositoryAccessFailure(NotFoundError):
    """Raised when a path, hostsystem or release target cannot be walked."""

    code = "repository_access_failure"


class NoMatchingReleaseTargetError(NotFoundError):
    code = "no_matching_release_target"


class RemoteProjectError(NotFoundError):
    """Raised for operations that are unsupported on remote-origin projects."""

    code = "remote_project"


# --------------------------------------------------------------- permission


class PermissionDeniedError(BuildServiceError):
    """Raised when an authorization predicate fails or an entity is locked."""

    code = "permission_denied"
    status = 403


class CmdExecutionNoPermission(PermissionDeniedError):
    code = "cmd_execution_no_permission"


class ChangeProjectNoPermission(PermissionDeniedError):
    code = "change_project_no_permission"


class ChangePackageNoPermission(PermissionDeniedError):
    code = "change_package_no_permission"


class CreateProjectNoPermission(PermissionDeniedError):
    code = "create_project_no_permission"


class CreatePackageNoPermission(PermissionDeniedError):
    code = "create_package_no_permission"


class DeleteProjectNoPermission(PermissionDeniedError):
    code = "delete_project_no_permission"


class DeletePackageNoPermission(PermissionDeniedError):
    code = "delete_package_no_permission"


class ChangeProjectProtectionLevel(PermissionDeniedError):
    code = "change_project_protection_level"


class ChangePackageProtectionLevel(PermissionDeniedError):
    code = "change_package_protection_level"


class ProjectCopyNoPermission(PermissionDeniedError):
    code = "project_copy_no_permission"


class SourceAccessNoPermission(PermissionDeniedError):
    code = "source_access_no_permission"


# ----------------------------------------------------------------- conflict


class ConflictError(BuildServiceError):
    """Raised when a state invariant would be violated."""

    code = "conflict"
    status = 400


class PackageExistsError(ConflictError):
    code = "package_exists"


class ProjectExistsError(ConflictError):
    code = "project_exists"


class RepoDependencyError(ConflictError):
    """Raised when removing repositories that other repositories still use.

    Parameters
    ----------
    dependents : list[str]
        ``project/repository`` names of the referring repositories
    """

    code = "repo_dependency"

    def __init__(self, message: str, dependents: list[str]) -> None:
        super().__init__(message, details={"dependents": list(dependents)})
        self.dependents = list(dependents)


class ProjectCycleError(ConflictError):
    code = "project_cycle"


class CycleError(ConflictError):
    code = "cycle_error"


class NotMissingError(ConflictError):
    code = "not_missing"


class NotLockedError(ConflictError):
    code = "not_locked"


class DeleteError(ConflictError):
    code = "delete_error"


class ProjectSaveError(ConflictError):
    code = "project_save_error"


class SpecFileExistsError(ConflictError):
    code = "spec_file_exists"


class PatchinfoFileExistsError(ConflictError):
    code = "patchinfo_file_exists"


# --------------------------------------------------------------- validation


class ValidationFailedError(BuildServiceError):
    """Raised for malformed requests, always before any mutation."""

    code = "validation_failed"
    status = 400


class InvalidProjectNameError(ValidationFailedError):
    code = "invalid_project_name"


class InvalidPackageNameError(ValidationFailedError):
    code = "invalid_package_name"


class MissingParameterError(ValidationFailedError):
    code = "missing_parameter"


class InvalidFlagError(ValidationFailedError):
    code = "invalid_flag"


class IllegalRequestError(ValidationFailedError):
    code = "illegal_request"


class ProjectNameMismatchError(ValidationFailedError):
    code = "project_name_mismatch"


class PackageNameMismatchError(ValidationFailedError):
    code = "package_name_mismatch"


# ----------------------------------------------------------------- upstream


class UpstreamError(BuildServiceError):
    """Raised when the source backend cannot complete a call."""

    code = "upstream_error"
    status = 502


class BackendError(UpstreamError):
    code = "backend_error"


class PartiallyAppliedError(UpstreamError):
    """Raised when the backend was mutated but the local commit failed."""

    code = "partially_applied"
