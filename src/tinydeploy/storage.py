#!/usr/bin/env python3
"""MinIO readiness probe and bucket initialization."""

from __future__ import annotations

import logging
from typing import Callable, Mapping

import requests

from .compose import Compose
from .config_constants import MINIO_INTERNAL_URL, OBJECT_STORE_SERVICE

logger = logging.getLogger(__name__)

ALIAS = 'local'


def _alias_command(secret_set: Mapping[str, str]) -> list[str]:
    return [
        'mc', 'alias', 'set', ALIAS, MINIO_INTERNAL_URL,
        secret_set['MINIO_ROOT_USER'], secret_set['MINIO_ROOT_PASSWORD'],
    ]


def check_health_url(url: str, timeout: float = 2.0) -> bool:
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException:
        return False
    return response.ok


def make_minio_check(
    compose: Compose,
    secret_set: Mapping[str, str],
    health_url: str,
    http_check: Callable[[str], bool] = check_health_url,
) -> Callable[[], bool]:
    """mc alias inside the container, falling back to the host health endpoint."""
    def check() -> bool:
        result = compose.exec(OBJECT_STORE_SERVICE, _alias_command(secret_set))
        if result.returncode == 0:
            return True
        return http_check(health_url)

    return check


def ensure_bucket(compose: Compose, secret_set: Mapping[str, str], bucket: str) -> bool:
    """
    Create bucket if missing and allow anonymous downloads.

    Best effort: a failure is logged as a warning and False is returned,
    the deployment continues either way.
    """
    logger.info("Initializing MinIO bucket...")
    target = f"{ALIAS}/{bucket}"
    steps = [
        ('alias', _alias_command(secret_set)),
        ('create bucket', ['mc', 'mb', target, '--ignore-existing']),
        ('set anonymous download policy', ['mc', 'anonymous', 'set', 'download', target]),
    ]

    ok = True
    for label, command in steps:
        try:
            result = compose.exec(OBJECT_STORE_SERVICE, command)
        except OSError as e:
            logger.warning(f"MinIO {label} failed: {e}")
            ok = False
            continue
        if result.returncode != 0:
            details = (result.stderr or result.stdout or '').strip()
            logger.warning(f"MinIO {label} failed (exit {result.returncode}) {details}".rstrip())
            ok = False

    if ok:
        logger.info(f"MinIO bucket ready: {bucket}")
    else:
        logger.warning("MinIO bucket initialization may have failed; Storage may be affected")
    return ok
