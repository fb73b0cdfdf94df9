#!/usr/bin/env python3
"""Fixed-interval readiness polling."""

from __future__ import annotations

import logging
import time
from typing import Callable

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 10


def await_ready(
    name: str,
    check: Callable[[], object],
    max_attempts: int,
    interval: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """
    Poll check() until it returns a truthy value or max_attempts is used up.

    One attempt per interval; a check that raises counts as not ready.
    Returns True on the first success, False once the budget is exhausted.

    Example:
        await_ready("PostgreSQL", lambda: probe_db(), 180)
    """
    logger.info(f"Waiting for {name} to be ready...")
    for attempt in range(1, max_attempts + 1):
        try:
            ok = check()
        except Exception as e:
            logger.debug(f"  {name} check raised: {e}")
            ok = False

        if ok:
            logger.info(f"{name} is ready ({attempt}s)")
            return True

        if attempt % PROGRESS_EVERY == 0:
            logger.info(f"  ...waited {attempt}s for {name}")

        if attempt < max_attempts:
            sleep(interval)

    logger.debug(f"{name} readiness budget exhausted after {max_attempts} attempts")
    return False
