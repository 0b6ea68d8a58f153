"""Logging setup for buildsvc processes."""

from __future__ import annotations

import sys

from loguru import logger

__all__ = ["configure_logging"]

_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def configure_logging(level: str = "INFO", colorize: bool | None = None) -> None:
    """
    Replace the default loguru sink with a stderr sink at ``level``.

    Parameters
    ----------
    level : str, optional
        Minimum level name, by default "INFO"
    colorize : bool | None, optional
        Force or disable colors; ``None`` lets loguru detect a tty
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=_FORMAT,
        colorize=colorize,
        backtrace=False,
        diagnose=False,
    )
