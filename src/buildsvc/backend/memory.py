"""In-process source backend.

Implements the part of the backend protocol the core relies on: file
storage below ``/source``, directory listings, delete with tombstones and
undelete, ``branch``/``copy``/``move`` commands, and accepting build
commands. Every call is logged in :attr:`InMemoryBackend.calls` and
failures can be injected per method and path prefix.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import unquote

from buildsvc.backend.client import BackendResult

if TYPE_CHECKING:
    from collections.abc import Mapping

__all__ = ["BackendCall", "InMemoryBackend"]


@dataclass(frozen=True)
class BackendCall:
    method: str
    path: str
    params: dict[str, str]
    body: str | None = None


@dataclass
class _Failure:
    method: str
    prefix: str
    remaining: int | None
    detail: str


class InMemoryBackend:
    """
    Backend double keeping sources in a dict.

    Examples
    --------
    >>> backend = InMemoryBackend()
    >>> backend.fail("DELETE", "/source/A")
    >>> BackendGateway(backend).delete("/source/A").outcome
    <BackendOutcome.TRANSPORT_ERROR: 'transport_error'>
    """

    def __init__(self) -> None:
        self.files: dict[str, str] = {}
        self.tombstones: dict[str, dict[str, str]] = {}
        self.calls: list[BackendCall] = []
        self._failures: list[_Failure] = []

    # -------------------------------------------------------------- control

    def fail(
        self,
        method: str,
        prefix: str,
        times: int | None = None,
        detail: str = "connection refused",
    ) -> None:
        """Make matching calls return a transport error (``times`` None: always)."""
        self._failures.append(_Failure(method.upper(), prefix, times, detail))

    def clear_failures(self) -> None:
        self._failures.clear()

    def calls_to(self, method: str, prefix: str = "/") -> list[BackendCall]:
        return [c for c in self.calls if c.method == method and c.path.startswith(prefix)]

    def exists(self, path: str) -> bool:
        prefix = path.rstrip("/") + "/"
        return path in self.files or any(k.startswith(prefix) for k in self.files)

    # ------------------------------------------------------------- protocol

    def request(
        self,
        method: str,
        path: str,
        params: Mapping[str, str] | None = None,
        body: str | None = None,
    ) -> BackendResult:
        method = method.upper()
        path = unquote(path)
        params = dict(params or {})
        self.calls.append(BackendCall(method, path, params, body))

        for failure in self._failures:
            if failure.method == method and path.startswith(failure.prefix):
                if failure.remaining is not None:
                    if failure.remaining <= 0:
                        continue
                    failure.remaining -= 1
                return BackendResult.transport_error(failure.detail)

        if method == "GET":
            return self._get(path)
        if method == "PUT":
            self.files[path] = body or ""
            return BackendResult.success(body)
        if method == "DELETE":
            return self._delete(path)
        if method == "POST":
            return self._post(path, params, body)
        return BackendResult.transport_error(f"unsupported method {method}")

    def _get(self, path: str) -> BackendResult:
        if path in self.files:
            return BackendResult.success(self.files[path])
        prefix = path.rstrip("/") + "/"
        depth = prefix.count("/")
        entries = sorted(
            {
                key[len(prefix):].split("/", 1)[0]
                for key in self.files
                if key.startswith(prefix) and key.count("/") >= depth
            }
        )
        if not entries:
            return BackendResult.not_found(path)
        return BackendResult.success(json.dumps(entries))

    def _delete(self, path: str) -> BackendResult:
        prefix = path.rstrip("/") + "/"
        doomed = {k: v for k, v in self.files.items() if k.startswith(prefix)}
        if not doomed:
            return BackendResult.not_found(path)
        for key in doomed:
            del self.files[key]
        self.tombstones[path.rstrip("/")] = doomed
        return BackendResult.success()

    def _post(self, path: str, params: dict[str, str], body: str | None) -> BackendResult:
        cmd = params.get("cmd")
        segments = path.strip("/").split("/")
        if segments[0] != "source" or cmd is None:
            return BackendResult.success(json.dumps({"path": path, **params}))

        if cmd == "undelete":
            tomb = self.tombstones.pop(path.rstrip("/"), None)
            if tomb is None:
                return BackendResult.not_found(path)
            self.files.update(tomb)
            return BackendResult.success()

        if cmd == "branch" and len(segments) == 3:
            link = {
                "project": params.get("oproject"),
                "package": params.get("opackage"),
                "rev": params.get("orev"),
            }
            self.files[f"{path}/_link"] = json.dumps(link)
            return BackendResult.success(json.dumps(link))

        if cmd in ("copy", "move") and not params.get("oproject"):
            return BackendResult.transport_error(f"{cmd} of {path} without oproject")

        if cmd == "copy":
            origin = "/source/" + params["oproject"]
            if len(segments) == 3:
                origin += "/" + params.get("opackage", segments[2])
            if not self.exists(origin):
                return BackendResult.not_found(origin)
            self._copy_tree(origin, path, skip_meta=True)
            return BackendResult.success()

        if cmd == "move" and len(segments) == 2:
            origin = "/source/" + params["oproject"]
            if not self.exists(origin):
                return BackendResult.not_found(origin)
            self._copy_tree(origin, path, skip_meta=False)
            for key in [k for k in self.files if k.startswith(origin + "/")]:
                del self.files[key]
            return BackendResult.success()

        return BackendResult.success(json.dumps({"path": path, **params}))

    def _copy_tree(self, origin: str, target: str, skip_meta: bool) -> None:
        # metadata of copies is written by the coordinator, not copied
        prefix = origin.rstrip("/") + "/"
        for key, value in list(self.files.items()):
            if not key.startswith(prefix):
                continue
            rel = key[len(prefix):]
            if skip_meta and rel.rsplit("/", 1)[-1] == "_meta":
                continue
            self.files[f"{target.rstrip('/')}/{rel}"] = value
