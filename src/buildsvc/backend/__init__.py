"""Source backend access."""

from __future__ import annotations

__all__ = [
    "BackendCall",
    "BackendClient",
    "BackendGateway",
    "BackendOutcome",
    "BackendResult",
    "HttpBackendClient",
    "InMemoryBackend",
    "build_path",
    "source_path",
]

from .client import BackendClient, BackendOutcome, BackendResult, HttpBackendClient
from .gateway import BackendGateway, build_path, source_path
from .memory import BackendCall, InMemoryBackend
