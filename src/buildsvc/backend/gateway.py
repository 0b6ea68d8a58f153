"""Gateway to the source backend.

All backend traffic of the core goes through :class:`BackendGateway`. Each
call is one synchronous, non-transactional operation. The gateway does not
retry; callers decide how an outcome maps onto their saga.

Ordering discipline: a destructive local change is flushed first and the
backend mutation is issued while the local transaction is still open, so a
transport error rolls the local change back. The reverse window (backend
mutated, local commit failed) is reported as ``partially_applied`` by the
saga, not hidden.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from loguru import logger

from buildsvc.backend.client import BackendResult

if TYPE_CHECKING:
    from buildsvc.backend.client import BackendClient

__all__ = ["BackendGateway", "build_path", "source_path"]


def source_path(project: str, package: str | None = None, filename: str | None = None) -> str:
    """
    Backend path of a project, package or file.

    Examples
    --------
    >>> source_path("home:user", "hello", "_meta")
    '/source/home:user/hello/_meta'
    """
    parts = ["source", project]
    if package is not None:
        parts.append(package)
    if filename is not None:
        parts.append(filename)
    return "/" + "/".join(quote(part, safe=":+_.-") for part in parts)


def build_path(project: str, *parts: str) -> str:
    """Backend path below ``/build/<project>``."""
    return "/" + "/".join(quote(p, safe=":+_.-") for p in ("build", project, *parts))


def _params(params: dict[str, Any]) -> dict[str, str]:
    out = {}
    for key, value in params.items():
        if value is None or value is False:
            continue
        out[key] = "1" if value is True else str(value)
    return out


class BackendGateway:
    """
    Thin adapter issuing get/put/post/delete calls.

    Parameters
    ----------
    client : BackendClient
        HTTP client or an in-process backend

    Examples
    --------
    >>> gateway = BackendGateway(HttpBackendClient("http://localhost:5352"))
    >>> gateway.post(source_path("home:user", "hello"), cmd="branch").unwrap()
    """

    def __init__(self, client: BackendClient) -> None:
        self.client = client

    def get(self, path: str, **params: Any) -> BackendResult:
        return self._call("GET", path, params)

    def put(self, path: str, body: str, **params: Any) -> BackendResult:
        return self._call("PUT", path, params, body)

    def post(self, path: str, body: str | None = None, **params: Any) -> BackendResult:
        return self._call("POST", path, params, body)

    def delete(self, path: str, **params: Any) -> BackendResult:
        return self._call("DELETE", path, params)

    def _call(
        self, method: str, path: str, params: dict[str, Any], body: str | None = None
    ) -> BackendResult:
        query = _params(params)
        logger.debug(f"backend {method} {path} {query}")
        result = self.client.request(method, path, params=query, body=body)
        if not result.ok:
            logger.warning(f"backend {method} {path}: {result.outcome.value} {result.detail}")
        return result
