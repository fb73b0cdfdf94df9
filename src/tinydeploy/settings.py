#!/usr/bin/env python3
"""
Run settings.

Settings are resolved exactly once at startup from (highest first):
1. Command-line flags
2. Environment variables (snapshot taken at startup)
3. tinydeploy.toml [deploy] table in the install directory
4. Built-in defaults

The resulting Settings value is immutable and passed explicitly to every
component; nothing below the CLI reads os.environ directly.
"""

from __future__ import annotations

import os
import sys
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional

from .config_constants import (
    COMPOSE_FILE,
    COMPOSE_TINY_FILE,
    DEFAULT_BUCKET,
    DEFAULT_DB_WAIT_SECONDS,
    DEFAULT_MINIO_HEALTH_URL,
    DEFAULT_MINIO_WAIT_SECONDS,
    DEFAULT_ROLE_WAIT_SECONDS,
    ENV_FILE,
    GATEWAY_CONFIG,
    GATEWAY_TEMPLATE,
    CADDYFILE,
    PROFILE_STANDARD,
    SETTINGS_FILE,
)
from .errors import ConfigurationError


@dataclass(frozen=True)
class Settings:
    root: Path
    config_only: bool = False
    recreate: bool = False
    profile: Optional[str] = None
    log_level: str = "INFO"
    db_wait_seconds: int = DEFAULT_DB_WAIT_SECONDS
    role_wait_seconds: int = DEFAULT_ROLE_WAIT_SECONDS
    minio_wait_seconds: int = DEFAULT_MINIO_WAIT_SECONDS
    bucket: str = DEFAULT_BUCKET
    minio_health_url: str = DEFAULT_MINIO_HEALTH_URL
    interactive: bool = False
    environ: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def env_file(self) -> Path:
        return self.root / ENV_FILE

    @property
    def gateway_template(self) -> Path:
        return self.root / GATEWAY_TEMPLATE

    @property
    def gateway_config(self) -> Path:
        return self.root / GATEWAY_CONFIG

    @property
    def caddyfile(self) -> Path:
        return self.root / CADDYFILE

    @property
    def compose_files(self) -> list[Path]:
        """Compose files passed to docker compose, base file first."""
        files = [self.root / COMPOSE_FILE]
        tiny = self.root / COMPOSE_TINY_FILE
        if self.profile != PROFILE_STANDARD and tiny.exists():
            files.append(tiny)
        return files


def parse_toml(file_path: Path) -> dict:
    """Parse an optional TOML settings file (missing file means no settings)."""
    if not file_path.exists():
        return {}

    try:
        with open(file_path, 'rb') as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Failed to parse {file_path}: {e}") from e


def _int_setting(name: str, value: object) -> int:
    try:
        parsed = int(str(value).strip())
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer (got {value!r})") from None
    if parsed < 1:
        raise ConfigurationError(f"{name} must be at least 1 (got {parsed})")
    return parsed


def load_settings(
    root: Path,
    config_only: bool = False,
    recreate: bool = False,
    profile: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
    interactive: Optional[bool] = None,
) -> Settings:
    """Build the immutable Settings for one run."""
    root = Path(root).resolve()
    env = dict(os.environ if environ is None else environ)
    file_settings = parse_toml(root / SETTINGS_FILE).get('deploy', {})

    def pick(env_name: str, file_key: str, default: object) -> object:
        if env.get(env_name):
            return env[env_name]
        if file_key in file_settings:
            return file_settings[file_key]
        return default

    if interactive is None:
        interactive = sys.stdin is not None and sys.stdin.isatty()

    return Settings(
        root=root,
        config_only=config_only,
        recreate=recreate,
        profile=profile,
        log_level=str(pick('TINYDEPLOY_LOG_LEVEL', 'log_level', 'INFO')),
        db_wait_seconds=_int_setting(
            'DB_WAIT_SECONDS', pick('DB_WAIT_SECONDS', 'db_wait_seconds', DEFAULT_DB_WAIT_SECONDS)
        ),
        role_wait_seconds=_int_setting(
            'ROLE_WAIT_SECONDS', pick('ROLE_WAIT_SECONDS', 'role_wait_seconds', DEFAULT_ROLE_WAIT_SECONDS)
        ),
        minio_wait_seconds=_int_setting(
            'MINIO_WAIT_SECONDS', pick('MINIO_WAIT_SECONDS', 'minio_wait_seconds', DEFAULT_MINIO_WAIT_SECONDS)
        ),
        bucket=str(file_settings.get('bucket', DEFAULT_BUCKET)),
        minio_health_url=str(file_settings.get('minio_health_url', DEFAULT_MINIO_HEALTH_URL)),
        interactive=interactive,
        environ=MappingProxyType(env),
    )
