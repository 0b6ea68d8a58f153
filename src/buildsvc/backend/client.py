"""Source backend clients.

A client performs exactly one synchronous request per call and reports the
outcome as a :class:`BackendResult`; it never retries.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import httpx

from buildsvc.exceptions import BackendError

if TYPE_CHECKING:
    from collections.abc import Mapping

__all__ = [
    "BackendClient",
    "BackendOutcome",
    "BackendResult",
    "HttpBackendClient",
]


class BackendOutcome(str, Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    TRANSPORT_ERROR = "transport_error"


@dataclass(frozen=True)
class BackendResult:
    """
    Outcome of a single backend call.

    Attributes
    ----------
    outcome : BackendOutcome
        success, not_found or transport_error
    payload : str | None
        Response body on success
    detail : str | None
        Error description for failed calls
    """

    outcome: BackendOutcome
    payload: str | None = None
    detail: str | None = None

    @classmethod
    def success(cls, payload: str | None = None) -> BackendResult:
        return cls(BackendOutcome.SUCCESS, payload=payload)

    @classmethod
    def not_found(cls, detail: str | None = None) -> BackendResult:
        return cls(BackendOutcome.NOT_FOUND, detail=detail)

    @classmethod
    def transport_error(cls, detail: str) -> BackendResult:
        return cls(BackendOutcome.TRANSPORT_ERROR, detail=detail)

    @property
    def ok(self) -> bool:
        return self.outcome is BackendOutcome.SUCCESS

    @property
    def is_not_found(self) -> bool:
        return self.outcome is BackendOutcome.NOT_FOUND

    def unwrap(self) -> str | None:
        """
        Return the payload of a successful call.

        Raises
        ------
        BackendError
            For not_found and transport_error outcomes
        """
        if self.ok:
            return self.payload
        raise BackendError(f"backend call failed ({self.outcome.value}): {self.detail}")


@runtime_checkable
class BackendClient(Protocol):
    def request(
        self,
        method: str,
        path: str,
        params: Mapping[str, str] | None = None,
        body: str | None = None,
    ) -> BackendResult: ...


class HttpBackendClient:
    """
    Backend client over HTTP.

    2xx responses are successes, 404 is not_found, every other status and
    every :class:`httpx.HTTPError` is a transport error.

    Parameters
    ----------
    base_url : str
        Backend base URL
    timeout : float, optional
        Per-request timeout in seconds, by default 30.0
    transport : httpx.BaseTransport, optional
        Custom transport (e.g. :class:`httpx.MockTransport` in tests)

    Examples
    --------
    >>> with HttpBackendClient("http://localhost:5352") as client:
    ...     result = client.request("GET", "/source/home:admin/_meta")
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"User-Agent": "buildsvc"},
        )

    def request(
        self,
        method: str,
        path: str,
        params: Mapping[str, str] | None = None,
        body: str | None = None,
    ) -> BackendResult:
        try:
            response = self._client.request(
                method,
                path,
                params=dict(params or {}),
                content=body.encode() if body is not None else None,
            )
        except httpx.HTTPError as exc:
            return BackendResult.transport_error(f"{type(exc).__name__}: {exc}")
        if response.status_code == 404:
            return BackendResult.not_found(response.text or path)
        if response.is_success:
            return BackendResult.success(response.text)
        return BackendResult.transport_error(
            f"HTTP {response.status_code}: {response.text[:200]}"
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpBackendClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
