#!/usr/bin/env python3
"""Logging setup shared by the deploy and install entry points."""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = '[%(levelname)s] %(message)s'


class _MaxLevelFilter(logging.Filter):
    def __init__(self, max_level: int) -> None:
        super().__init__()
        self.max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < self.max_level


def configure_logging(log_level: str = "INFO") -> None:
    """
    Configure the root logger.

    INFO and DEBUG records go to stdout; WARNING and above go to stderr so
    fatal messages land on the error stream.
    """
    level_map = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR
    }

    level = level_map.get(str(log_level).upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    stdout_handler.addFilter(_MaxLevelFilter(logging.WARNING))

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(formatter)
    stderr_handler.setLevel(logging.WARNING)

    logging.basicConfig(
        level=level,
        handlers=[stdout_handler, stderr_handler],
        force=True  # Reconfigure if already configured
    )

    logging.getLogger(__name__).debug(f"Logging configured: {str(log_level).upper()}")
