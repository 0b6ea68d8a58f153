"""Pydantic schemas for CLI/API boundaries.

These schemas are used ONLY at external boundaries: a :class:`Command`
enters the dispatcher, a :class:`CommandResult` leaves it. Internal
operations work on ORM objects and metadata dataclasses.

Examples
--------
>>> cmd = Command(verb="branch", project="openSUSE:Factory", package="gcc")
>>> result = dispatcher.execute(cmd, actor, context)
>>> print(result.model_dump_json(indent=2))
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from buildsvc.exceptions import BuildServiceError

__all__ = [
    "Command",
    "CommandResult",
    "HistoryEntryResponse",
]

_TRUE_VALUES = {"1", "true", "yes", "on"}


class Command(BaseModel):
    """
    Inbound command addressed to a project or a package.

    Parameter values are kept as strings, as they arrive from a query string;
    use :meth:`flag` and :meth:`param` to read them.
    """

    model_config = ConfigDict(frozen=True)

    verb: str = Field(..., description="Command verb (cmd=<verb>)")
    project: str = Field(..., description="Addressed project")
    package: str | None = Field(None, description="Addressed package")
    params: dict[str, str] = Field(default_factory=dict)
    body: str | None = Field(None, description="Request body, e.g. a channel document")

    @field_validator("params", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {
                str(k): ("1" if v is True else "0" if v is False else str(v))
                for k, v in value.items()
                if v is not None
            }
        return value

    def param(self, name: str, default: str | None = None) -> str | None:
        value = self.params.get(name)
        return value if value not in (None, "") else default

    def flag(self, name: str) -> bool:
        return str(self.params.get(name, "")).lower() in _TRUE_VALUES

    @property
    def target_label(self) -> str:
        return f"{self.project}/{self.package}" if self.package else self.project


class CommandResult(BaseModel):
    """
    Structured outcome of a command.

    ``code`` is ``ok`` for synchronous success, ``invoked`` when the work was
    queued, and an error code otherwise.
    """

    code: str
    status: int = 200
    message: str = ""
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status < 400

    @classmethod
    def success(cls, message: str = "", **data: Any) -> CommandResult:
        return cls(code="ok", status=200, message=message, data=data)

    @classmethod
    def invoked(cls, message: str = "", **data: Any) -> CommandResult:
        return cls(code="invoked", status=200, message=message, data=data)

    @classmethod
    def from_error(cls, exc: BuildServiceError) -> CommandResult:
        return cls(
            code=exc.code,
            status=exc.status,
            message=exc.message,
            data=dict(exc.details),
        )

    @classmethod
    def internal_error(cls) -> CommandResult:
        return cls(
            code="internal_error",
            status=500,
            message="internal error while processing the command",
        )


class HistoryEntryResponse(BaseModel):
    """History record for export."""

    model_config = ConfigDict(from_attributes=True)

    seq: int
    kind: str
    entity_type: str
    project_name: str
    package_name: str | None = None
    revision: int
    user: str
    comment: str | None = None
    payload: dict[str, Any] | None = None
