"""
Shared logger for the solver and the path finder.
Results go to stdout with print(); log records go to stderr.
"""

from __future__ import annotations

import logging

LOGGER_NAME = "graphsearch"


def get_logger() -> logging.Logger:
    """Package logger; installs a stderr handler at INFO the first time."""
    logger = logging.getLogger(LOGGER_NAME)

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)

    return logger


def set_verbosity(verbose: bool) -> None:
    get_logger().setLevel(logging.DEBUG if verbose else logging.INFO)
