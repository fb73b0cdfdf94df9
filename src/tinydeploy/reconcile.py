#!/usr/bin/env python3
"""
Post-readiness database reconciliation.

Every statement is conditional, so the script can run on every deploy:
- _supabase database (Supavisor) is created only if missing
- _realtime schema (Realtime) uses CREATE SCHEMA IF NOT EXISTS
- service account passwords follow POSTGRES_PASSWORD, but only for roles
  that already exist; roles created later by the image's own migrations are
  picked up on the next run
"""

from __future__ import annotations

import logging
from typing import Mapping, Sequence

from .compose import Compose
from .config_constants import (
    DB_SERVICE,
    SECONDARY_DATABASE,
    SECONDARY_SCHEMA,
    SERVICE_ACCOUNT_ROLES,
)
from .errors import ReconciliationError

logger = logging.getLogger(__name__)


def psql_command(secret_set: Mapping[str, str], *extra: str) -> list[str]:
    return [
        'psql',
        '-U', secret_set['POSTGRES_USER'],
        '-d', secret_set['POSTGRES_DB'],
        *extra,
    ]


def psql_env(secret_set: Mapping[str, str]) -> dict:
    return {'PGPASSWORD': secret_set['POSTGRES_PASSWORD']}


def build_reconcile_sql(roles: Sequence[str] = SERVICE_ACCOUNT_ROLES) -> str:
    """
    psql script using \\gexec; owner and password come in as psql variables
    (:'owner', :'pgpass') so they are quoted by psql, never interpolated here.
    """
    statements = [
        f"-- Supavisor requires the {SECONDARY_DATABASE} database (create if missing)",
        f"SELECT format('CREATE DATABASE {SECONDARY_DATABASE} OWNER %I', :'owner')",
        f"WHERE NOT EXISTS (SELECT 1 FROM pg_database WHERE datname = '{SECONDARY_DATABASE}')",
        "\\gexec",
        "",
        f"-- Realtime requires the {SECONDARY_SCHEMA} schema (create if missing)",
        f"SELECT format('CREATE SCHEMA IF NOT EXISTS {SECONDARY_SCHEMA} AUTHORIZATION %I', :'owner')",
        "\\gexec",
    ]
    for role in roles:
        statements += [
            "",
            f"-- Keep {role} in sync with POSTGRES_PASSWORD",
            f"SELECT format('ALTER ROLE {role} WITH PASSWORD %L', :'pgpass')",
            f"WHERE EXISTS (SELECT 1 FROM pg_roles WHERE rolname = '{role}')",
            "\\gexec",
        ]
    return "\n".join(statements) + "\n"


def reconcile(compose: Compose, secret_set: Mapping[str, str]) -> None:
    """Apply the reconciliation script; any failed statement is fatal."""
    logger.info("Syncing system DB and service account passwords...")
    command = psql_command(
        secret_set,
        '-v', 'ON_ERROR_STOP=1',
        '-v', f"owner={secret_set['POSTGRES_USER']}",
        '-v', f"pgpass={secret_set['POSTGRES_PASSWORD']}",
    )
    result = compose.exec(DB_SERVICE, command, env=psql_env(secret_set), input=build_reconcile_sql())

    if result.returncode != 0:
        details = (result.stderr or result.stdout or '').strip().splitlines()
        last_line = details[-1] if details else f"psql exited with code {result.returncode}"
        raise ReconciliationError(f"database reconciliation failed: {last_line}")

    logger.info("Database reconciliation complete")
