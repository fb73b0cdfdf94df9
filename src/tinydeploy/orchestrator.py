#!/usr/bin/env python3
"""
Deployment orchestration.

A run moves through these stages, in order:

    INIT -> SECRETS_READY -> CONFIG_RENDERED -> PHASE1_STARTING -> PHASE1_READY
         -> RECONCILING -> OBJECT_STORE_READY -> PHASE2_STARTING -> COMPLETE

Any DeployError moves the run to FAILED and is re-raised. There is no retry
across stages and no rollback: services that were already started keep
running, and re-running the whole deployment is safe because every step is
idempotent.

Phase 1 starts only the database and MinIO. Phase 2 (all services) starts
only after both are ready and the database has been reconciled.
"""

from __future__ import annotations

import logging
import time
import uuid
from enum import Enum
from typing import Callable, Mapping, Optional

from .compose import Compose, check_runtime_dependencies
from .config_constants import (
    DB_SERVICE,
    LOG_TAIL_LINES,
    OBJECT_STORE_SERVICE,
    PHASE1_SERVICES,
    SERVICE_ACCOUNT_ROLES,
)
from .env_store import ensure_entropy, generate_secret_set
from .errors import DeployError, MissingCapabilityError, ReadinessTimeoutError, ServiceStartError
from .readiness import await_ready
from .reconcile import psql_command, psql_env, reconcile
from .render import ensure_runtime_dirs, render_summary, write_gateway_config
from .settings import Settings
from .storage import ensure_bucket, make_minio_check

logger = logging.getLogger(__name__)


class Stage(Enum):
    INIT = "init"
    SECRETS_READY = "secrets-ready"
    CONFIG_RENDERED = "config-rendered"
    PHASE1_STARTING = "phase1-starting"
    PHASE1_READY = "phase1-ready"
    RECONCILING = "reconciling"
    OBJECT_STORE_READY = "object-store-ready"
    PHASE2_STARTING = "phase2-starting"
    COMPLETE = "complete"
    FAILED = "failed"


TERMINAL_STAGES = (Stage.COMPLETE, Stage.FAILED)


class DeploymentContext:
    """Track deployment progress for reporting and error handling."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self.deployment_id = uuid.uuid4().hex[:8]
        self.clock = clock
        self.start_time = clock()
        self.stage = Stage.INIT
        self.history: list[Stage] = [Stage.INIT]
        self.error: Optional[DeployError] = None

    def advance(self, stage: Stage) -> None:
        if self.stage in TERMINAL_STAGES:
            raise RuntimeError(f"Deployment already finished ({self.stage.value})")
        logger.debug(f"Stage: {self.stage.value} -> {stage.value}")
        self.stage = stage
        self.history.append(stage)

    def fail(self, error: DeployError) -> None:
        self.error = error
        if self.stage not in TERMINAL_STAGES:
            self.advance(Stage.FAILED)

    @property
    def duration_seconds(self) -> int:
        return int(self.clock() - self.start_time)


def role_count(compose: Compose, secret_set: Mapping[str, str]) -> Optional[int]:
    """Number of expected service account roles present, None if unknown."""
    names = ", ".join(f"'{role}'" for role in SERVICE_ACCOUNT_ROLES)
    query = f"SELECT count(*) FROM pg_roles WHERE rolname IN ({names})"
    result = compose.exec(DB_SERVICE, psql_command(secret_set, '-Atc', query), env=psql_env(secret_set))
    if result.returncode != 0:
        return None
    text = "".join((result.stdout or '').split())
    return int(text) if text.isdigit() else None


class Orchestrator:
    """Run the full provisioning flow for one install directory."""

    def __init__(
        self,
        settings: Settings,
        compose: Optional[Compose] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
        dependency_check: Callable[[], None] = check_runtime_dependencies,
    ) -> None:
        self.settings = settings
        self.compose = compose or Compose(settings.compose_files, settings.env_file, settings.root)
        self.sleep = sleep
        self.clock = clock
        self.dependency_check = dependency_check
        self.context = DeploymentContext(clock)
        self.secret_set: Mapping[str, str] = {}

    def run(self) -> DeploymentContext:
        try:
            self._run()
        except DeployError as e:
            self.context.fail(e)
            raise
        return self.context

    def _run(self) -> None:
        settings = self.settings

        # Capability checks happen before any file is written
        ensure_entropy()
        if not settings.config_only:
            self.dependency_check()

        self.secret_set = generate_secret_set(settings, clock=self.clock)
        self.context.advance(Stage.SECRETS_READY)

        write_gateway_config(settings.gateway_template, settings.gateway_config, self.secret_set)
        ensure_runtime_dirs(settings.root)
        logger.info("Kong config is ready. Runtime bind-mount directories are initialized under ./volumes.")
        self.context.advance(Stage.CONFIG_RENDERED)

        if settings.config_only:
            logger.info("Skipped service startup (--config-only mode)")
            self.context.advance(Stage.COMPLETE)
            return

        compose_file = settings.compose_files[0]
        if not compose_file.is_file():
            raise MissingCapabilityError(f"{compose_file.name} not found in {settings.root}")

        self.context.advance(Stage.PHASE1_STARTING)
        logger.info("Starting database and object storage...")
        self._up(PHASE1_SERVICES)

        self._wait_or_fail("PostgreSQL", self._db_ready, settings.db_wait_seconds, DB_SERVICE)
        logger.info("Waiting for Supabase DB initialization (default roles)...")
        self._wait_or_fail(
            "Supabase DB roles",
            self._roles_ready,
            settings.role_wait_seconds,
            DB_SERVICE,
            message=(
                "Supabase initialization timed out: "
                f"{' / '.join(SERVICE_ACCOUNT_ROLES)} roles not detected"
            ),
        )
        self.context.advance(Stage.PHASE1_READY)

        self.context.advance(Stage.RECONCILING)
        reconcile(self.compose, self.secret_set)

        self._wait_or_fail(
            "MinIO",
            make_minio_check(self.compose, self.secret_set, settings.minio_health_url),
            settings.minio_wait_seconds,
            OBJECT_STORE_SERVICE,
        )
        self.context.advance(Stage.OBJECT_STORE_READY)
        ensure_bucket(self.compose, self.secret_set, settings.bucket)

        self.context.advance(Stage.PHASE2_STARTING)
        logger.info("Starting all services...")
        self._up(())

        self.context.advance(Stage.COMPLETE)
        logger.info(
            f"Deployment complete (id {self.context.deployment_id}, {self.context.duration_seconds}s)."
        )
        print(render_summary(self.secret_set, settings.env_file.name), flush=True)

    def _up(self, services) -> None:
        result = self.compose.up(services, recreate=self.settings.recreate)
        if result.returncode != 0:
            target = ", ".join(services) if services else "all services"
            raise ServiceStartError(f"docker compose up failed for {target} (exit {result.returncode})")

    def _db_ready(self) -> bool:
        result = self.compose.exec(
            DB_SERVICE,
            psql_command(self.secret_set, '-c', 'SELECT 1'),
            env=psql_env(self.secret_set),
        )
        return result.returncode == 0

    def _roles_ready(self) -> bool:
        # A partial count (one of two roles) is not ready
        count = role_count(self.compose, self.secret_set)
        if count is not None:
            logger.debug(f"  current role count: {count} (target={len(SERVICE_ACCOUNT_ROLES)})")
        return count == len(SERVICE_ACCOUNT_ROLES)

    def _wait_or_fail(
        self,
        name: str,
        check: Callable[[], bool],
        budget: int,
        service: str,
        message: Optional[str] = None,
    ) -> None:
        if await_ready(name, check, budget, sleep=self.sleep):
            return

        logger.warning(f"Check {service} logs (last {LOG_TAIL_LINES} lines):")
        try:
            tail = self.compose.logs_tail(service, LOG_TAIL_LINES)
        except OSError as e:
            tail = f"(unable to read logs: {e})"
        for line in tail.splitlines():
            logger.warning(f"  {line}")
        raise ReadinessTimeoutError(service, budget, message)
