"""Lock and flag policy engine."""

from __future__ import annotations

__all__ = [
    "PROTECTION_FLAGS",
    "FlagEngine",
    "FlagRule",
    "LockEngine",
    "parse_flag_kind",
    "parse_flag_status",
]

from .flags import (
    PROTECTION_FLAGS,
    FlagEngine,
    FlagRule,
    parse_flag_kind,
    parse_flag_status,
)
from .locks import LockEngine
