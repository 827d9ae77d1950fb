"""Logging and console output shared by the whole package."""

from __future__ import annotations

import logging

from rich.console import Console


def build_logger() -> logging.Logger:
    """Configure the package logger with safe defaults.

    The logger writes to stderr at INFO level.  Calling this more than once
    returns the already configured logger instead of stacking handlers.
    """

    logger = logging.getLogger("wegem_tutor")
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(threadName)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    return logger


LOGGER = build_logger()
CONSOLE = Console()
