#!/usr/bin/env python3
"""
Secret set persistence (.env).

The .env file in the install directory is the single persisted state of a
deployment. A run loads it, fills in anything missing or structurally
invalid, and writes it back. Re-running against a fully populated file
changes nothing.

Value precedence per key (an empty value counts as unset):
1. Persisted .env value
2. Environment override (pre-seeded by the operator)
3. Freshly generated value

Token keys must additionally pass tokens.is_well_formed(); a persisted or
environment value that fails the check is replaced.
"""

from __future__ import annotations

import logging
import os
import re
import secrets
import tempfile
import time
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Dict, Mapping, Optional

from . import tokens
from .config_constants import (
    DEFAULT_PUBLIC_DOMAIN,
    HEX_SECRETS,
    LEGACY_FOLDER_MIGRATIONS,
    REQUIRED_KEYS,
    STATIC_DEFAULTS,
    TOKEN_ALIASES,
)
from .errors import MissingCapabilityError
from .settings import Settings

logger = logging.getLogger(__name__)

KEY_PATTERN = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')


def generate_hex(nbytes: int) -> str:
    """Random hex string of 2*nbytes characters."""
    try:
        return secrets.token_hex(nbytes)
    except NotImplementedError as e:
        raise MissingCapabilityError(
            "No source of randomness available; cannot generate secrets"
        ) from e


def ensure_entropy() -> None:
    """Fail before touching any state if secrets cannot be generated."""
    generate_hex(1)


def parse_env_text(text: str, source: str = '.env') -> Dict[str, str]:
    """
    Parse KEY=value lines.

    Blank lines and # comments are skipped, surrounding quotes are removed,
    malformed lines are skipped with a warning. Nothing is ever evaluated.
    """
    values: Dict[str, str] = {}
    for line_num, raw in enumerate(text.splitlines(), 1):
        line = raw.strip()
        if not line or line.startswith('#'):
            continue
        if line.startswith('export '):
            line = line[len('export '):].lstrip()

        if '=' not in line:
            logger.warning(f"Skipping invalid line {line_num} in {source}: '{line}'")
            continue

        key, val = line.split('=', 1)
        key = key.strip()
        val = val.strip()
        if not KEY_PATTERN.match(key):
            logger.warning(f"Skipping invalid key on line {line_num} in {source}: '{key}'")
            continue

        if len(val) >= 2 and val[0] == val[-1] and val[0] in ('"', "'"):
            val = val[1:-1]

        values[key] = val
    return values


def derive_public_domain(caddyfile: Path) -> str:
    """First site address in the Caddyfile, else the default domain."""
    if not caddyfile.is_file():
        return DEFAULT_PUBLIC_DOMAIN

    for raw in caddyfile.read_text(encoding='utf-8').splitlines():
        fields = raw.split()
        if not fields or fields[0].startswith('#'):
            continue
        domain = fields[0].replace('{', '')
        return domain or DEFAULT_PUBLIC_DOMAIN
    return DEFAULT_PUBLIC_DOMAIN


class EnvStore:
    """Load, resolve and persist the secret set."""

    def __init__(self, path: Path, environ: Optional[Mapping[str, str]] = None) -> None:
        self.path = Path(path)
        self.environ = environ or {}
        self.persisted: Dict[str, str] = {}
        self.values: Dict[str, str] = {}

    def load(self) -> Dict[str, str]:
        if self.path.is_dir():
            raise MissingCapabilityError(f"{self.path} is a directory, expected an env file")
        if not self.path.exists():
            logger.debug(f"No existing {self.path.name}; starting from empty state")
            self.persisted = {}
        else:
            self.persisted = parse_env_text(self.path.read_text(encoding='utf-8'), str(self.path))
            logger.debug(f"Loaded {len(self.persisted)} keys from {self.path}")
        self.values = {}
        return dict(self.persisted)

    def resolve(
        self,
        key: str,
        generator: Callable[[], str],
        validator: Optional[Callable[[str], bool]] = None,
    ) -> str:
        """Return the current value of key, generating it only when needed."""
        if key in self.values:
            return self.values[key]

        for source, candidates in (('persisted', self.persisted), ('environment', self.environ)):
            # Empty counts as unset
            value = candidates.get(key, '')
            if value == '':
                continue
            if validator is None or validator(value):
                self.values[key] = value
                return value
            logger.info(f"Replacing structurally invalid {key} from {source}")

        value = generator()
        logger.debug(f"Generated {key}")
        self.values[key] = value
        return value

    def set(self, key: str, value: str) -> None:
        self.values[key] = value

    def render(self) -> str:
        lines = [f"{key}={self.values.get(key, '')}" for key in REQUIRED_KEYS]
        for key, value in self.persisted.items():
            if key not in REQUIRED_KEYS:
                lines.append(f"{key}={self.values.get(key, value)}")
        return "\n".join(lines) + "\n"

    def persist(self) -> None:
        """Atomically rewrite the env file with the merged state."""
        missing = [key for key in REQUIRED_KEYS if key not in self.values]
        if missing:
            raise ValueError(f"Refusing to persist incomplete secret set, missing: {', '.join(missing)}")

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(self.render())
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.info(f"Persisted {len(self.values)} keys into {self.path}")

    def secret_set(self) -> Mapping[str, str]:
        return MappingProxyType(dict(self.values))


def _prompt_public_domain(default: str) -> str:
    answer = input(f"Enter SUPABASE_PUBLIC_DOMAIN [{default}]: ").strip()
    return answer or default


def generate_secret_set(
    settings: Settings,
    clock: Callable[[], float] = time.time,
    prompt: Callable[[str], str] = _prompt_public_domain,
) -> Mapping[str, str]:
    """
    Generation phase: load .env, fill missing values, persist.

    Returns the read-only secret set used by every later step.
    """
    store = EnvStore(settings.env_file, settings.environ)
    store.load()
    logger.info(f"Generating/updating {settings.env_file.name} file...")

    for key, nbytes in HEX_SECRETS.items():
        store.resolve(key, lambda n=nbytes: generate_hex(n))

    for key, default in STATIC_DEFAULTS.items():
        store.resolve(key, lambda d=default: d)

    def _public_domain() -> str:
        derived = derive_public_domain(settings.caddyfile)
        if settings.interactive:
            return prompt(derived)
        logger.warning(
            f"SUPABASE_PUBLIC_DOMAIN not set; using {derived}. Set it in the environment to override."
        )
        return derived

    store.resolve('SUPABASE_PUBLIC_DOMAIN', _public_domain)

    for key, (legacy, current) in LEGACY_FOLDER_MIGRATIONS.items():
        if store.values.get(key) == legacy:
            logger.info(f"Migrating legacy {key} {legacy} -> {current}")
            store.set(key, current)

    # One issued-at for both keys so they share an epoch
    now = int(clock())
    issued: Dict[str, str] = {}

    def _issue(key: str) -> str:
        if not issued:
            issued.update(tokens.issue_pair(store.values['JWT_SECRET'], now))
        logger.info(f"Generating {key} (JWT)...")
        return issued[key]

    for key in ('ANON_KEY', 'SERVICE_ROLE_KEY'):
        store.resolve(key, lambda k=key: _issue(k), validator=tokens.is_well_formed)

    for alias, canonical in TOKEN_ALIASES.items():
        store.set(alias, store.values[canonical])

    store.persist()
    logger.info(f"{settings.env_file.name} generated/updated.")
    return store.secret_set()
