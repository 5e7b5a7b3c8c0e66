"""Logging utilities."""

from __future__ import annotations

import logging
import sys


def setup_logging(level: int | str = logging.INFO, format_str: str | None = None) -> logging.Logger:
    """
    Configure the ``guardian`` logger hierarchy.

    Args:
        level: Logging level, as an int or a name such as "DEBUG"
        format_str: Custom format string

    Returns:
        The package logger
    """
    if format_str is None:
        format_str = "[%(asctime)s] %(levelname)s %(name)s - %(message)s"

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    logger = logging.getLogger("guardian")
    logger.setLevel(level)
    return logger
