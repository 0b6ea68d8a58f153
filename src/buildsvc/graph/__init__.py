"""Repository dependency graph: validation and repair."""

from __future__ import annotations

__all__ = ["Edge", "GraphValidator"]

from .validator import Edge, GraphValidator
