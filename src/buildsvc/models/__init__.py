"""Data models for buildsvc: ORM rows, metadata documents and boundary schemas."""

from __future__ import annotations
