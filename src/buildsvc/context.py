"""Explicit caller and request context threaded through every call."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

__all__ = ["Actor", "RequestContext"]


@dataclass(frozen=True)
class Actor:
    """Authenticated caller."""

    login: str

    def __str__(self) -> str:
        return self.login


@dataclass(frozen=True)
class RequestContext:
    """
    Per-request values.

    Attributes
    ----------
    request_id : str
        Correlation id used in logs and history payloads
    comment : str | None
        Free text comment recorded in history
    """

    request_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    comment: str | None = None

    def with_comment(self, comment: str | None) -> RequestContext:
        return RequestContext(request_id=self.request_id, comment=comment)
