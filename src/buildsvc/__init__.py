"""Orchestration core of a package/source build service."""

from __future__ import annotations

__version__ = "0.1.0"
