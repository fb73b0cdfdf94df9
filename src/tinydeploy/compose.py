#!/usr/bin/env python3
"""docker compose wrapper bound to the install directory and its .env file."""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence

from .errors import MissingCapabilityError

logger = logging.getLogger(__name__)

Runner = Callable[..., subprocess.CompletedProcess]


def check_runtime_dependencies(runner: Runner = subprocess.run) -> None:
    """
    Validate that docker and the compose v2 plugin are installed.
    """
    if shutil.which('docker') is None:
        raise MissingCapabilityError(
            "docker command not found; install Docker Engine (https://docs.docker.com/engine/install/)"
        )

    try:
        result = runner(
            ['docker', 'compose', 'version'],
            capture_output=True,
            text=True,
            timeout=10
        )
    except (FileNotFoundError, subprocess.TimeoutExpired) as e:
        raise MissingCapabilityError(f"docker compose plugin check failed: {e}") from e

    if result.returncode != 0:
        raise MissingCapabilityError(
            "docker compose plugin is unavailable (https://docs.docker.com/compose/install/)"
        )


class Compose:
    """Run docker compose commands with a fixed set of compose files and env file."""

    def __init__(self, compose_files: Sequence[Path], env_file: Path, cwd: Path, runner: Runner = subprocess.run) -> None:
        self.compose_files = list(compose_files)
        self.env_file = env_file
        self.cwd = cwd
        self.runner = runner

    def base_command(self) -> list[str]:
        cmd = ['docker', 'compose']
        for compose_file in self.compose_files:
            cmd += ['-f', str(compose_file)]
        cmd += ['--env-file', str(self.env_file)]
        return cmd

    def run(self, args: Sequence[str], input: Optional[str] = None, capture: bool = True) -> subprocess.CompletedProcess:
        cmd = self.base_command() + list(args)
        logger.debug(f"Running: {' '.join(cmd)}")
        return self.runner(
            cmd,
            cwd=self.cwd,
            input=input,
            capture_output=capture,
            text=True,
            check=False,
        )

    def up(self, services: Iterable[str] = (), recreate: bool = False) -> subprocess.CompletedProcess:
        args = ['up', '-d']
        if recreate:
            args.append('--force-recreate')
        args += list(services)
        return self.run(args, capture=False)

    def exec(
        self,
        service: str,
        command: Sequence[str],
        env: Optional[dict] = None,
        input: Optional[str] = None,
    ) -> subprocess.CompletedProcess:
        args = ['exec', '-T']
        for key, value in (env or {}).items():
            args += ['-e', f"{key}={value}"]
        args.append(service)
        args += list(command)
        return self.run(args, input=input)

    def logs_tail(self, service: str, lines: int) -> str:
        result = self.run(['logs', f'--tail={lines}', service])
        return (result.stdout or '') + (result.stderr or '')
