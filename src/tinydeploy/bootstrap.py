#!/usr/bin/env python3
"""
tinydeploy-install: fetch deployment assets and hand over to tinydeploy.

Options:
    --tiny        Tiny profile (Studio Go, lower memory)
    --standard    Standard profile (official Studio image)
    --yes         Do not ask for confirmation before deploying

Any other argument is passed through to tinydeploy unchanged.

Environment:
    INSTALL_DIR     Target directory (default: ~/supabase-tiny, /root/supabase-tiny as root)
    REPO_RAW_BASE   Base URL the assets are downloaded from
"""

from __future__ import annotations

import logging
import os
import shlex
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Mapping, Optional

import requests

from . import cli
from .compose import check_runtime_dependencies
from .config_constants import (
    COMPOSE_TINY_FILE,
    DEFAULT_INSTALL_DIRNAME,
    DEFAULT_REPO_RAW_BASE,
    OPTIONAL_ASSETS,
    PROFILE_STANDARD,
    PROFILE_TINY,
    REQUIRED_ASSETS,
)
from .errors import DeployError, DownloadError
from .logs import configure_logging

logger = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT = 30


@dataclass
class InstallOptions:
    profile: Optional[str] = None
    yes: bool = False
    passthrough: list[str] = field(default_factory=list)

    @property
    def profile_selected(self) -> bool:
        return self.profile is not None


def parse_arguments(argv: Optional[list] = None) -> InstallOptions:
    """Split installer arguments from the ones forwarded to tinydeploy."""
    options = InstallOptions()
    for arg in (sys.argv[1:] if argv is None else argv):
        if arg == '--tiny':
            options.profile = PROFILE_TINY
        elif arg == '--standard':
            options.profile = PROFILE_STANDARD
        elif arg == '--yes':
            options.yes = True
        else:
            options.passthrough.append(arg)
    return options


def default_install_dir(environ: Mapping[str, str]) -> Path:
    if environ.get('INSTALL_DIR'):
        return Path(environ['INSTALL_DIR'])
    if hasattr(os, 'geteuid') and os.geteuid() == 0:
        return Path('/root') / DEFAULT_INSTALL_DIRNAME
    return Path.home() / DEFAULT_INSTALL_DIRNAME


def download_file(session: requests.Session, base_url: str, rel_path: str, install_dir: Path) -> Path:
    """Download base_url/rel_path into install_dir/rel_path."""
    url = f"{base_url.rstrip('/')}/{rel_path}"
    dest = install_dir / rel_path
    dest.parent.mkdir(parents=True, exist_ok=True)
    logger.info(f"Downloading {rel_path}")

    try:
        response = session.get(url, timeout=DOWNLOAD_TIMEOUT)
        response.raise_for_status()
    except requests.RequestException as e:
        raise DownloadError(f"failed to download {url}: {e}") from e

    tmp = dest.with_name(f".{dest.name}.tmp")
    tmp.write_bytes(response.content)
    os.replace(tmp, dest)
    return dest


def download_file_optional(session: requests.Session, base_url: str, rel_path: str, install_dir: Path) -> bool:
    logger.info(f"Downloading (optional) {rel_path}")
    try:
        download_file(session, base_url, rel_path, install_dir)
    except DownloadError as e:
        logger.warning(f"Optional file unavailable: {rel_path} ({e})")
        return False
    return True


def select_profile(ask: Callable[[str], str]) -> str:
    """Ask for a profile until a valid choice is made (default: tiny)."""
    print("\nChoose deployment profile:", file=sys.stderr)
    print("  1) tiny (Studio Go, lower memory)", file=sys.stderr)
    print("  2) standard (Official Studio image)", file=sys.stderr)
    while True:
        try:
            choice = ask("Enter choice [1/2] (default: 1): ").strip() or '1'
        except EOFError:
            logger.warning("Unable to read your choice; defaulting to tiny profile.")
            return PROFILE_TINY
        if choice == '1':
            return PROFILE_TINY
        if choice == '2':
            return PROFILE_STANDARD
        print("Invalid choice. Please enter 1 or 2.", file=sys.stderr)


def confirm_deploy(ask: Callable[[str], str]) -> bool:
    while True:
        try:
            answer = ask("Proceed with deployment now? [y/N]: ").strip().lower()
        except EOFError:
            answer = ''
        if answer in ('y', 'yes'):
            return True
        if answer in ('', 'n', 'no'):
            return False
        print("Invalid choice. Please enter y or n.", file=sys.stderr)


def build_deploy_args(options: InstallOptions, fallback_args: list[str], install_dir: Path) -> list[str]:
    args = list(fallback_args)
    if options.profile:
        args.append(f"--{options.profile}")
    args += options.passthrough
    args += ['--dir', str(install_dir)]
    return args


def install(
    options: InstallOptions,
    environ: Optional[Mapping[str, str]] = None,
    session: Optional[requests.Session] = None,
    interactive: Optional[bool] = None,
    ask: Callable[[str], str] = input,
    dependency_check: Callable[[], None] = check_runtime_dependencies,
    deploy: Callable[[list], int] = cli.main,
) -> int:
    """Download assets into the install directory, then run tinydeploy."""
    environ = os.environ if environ is None else environ
    if interactive is None:
        interactive = sys.stdin is not None and sys.stdin.isatty()

    install_dir = default_install_dir(environ).expanduser().resolve()
    base_url = environ.get('REPO_RAW_BASE') or DEFAULT_REPO_RAW_BASE

    logger.info(f"Install directory: {install_dir}")
    logger.info(f"Asset source: {base_url}")

    if not options.profile_selected:
        if interactive:
            options.profile = select_profile(ask)
            logger.info(f"Profile selected: {options.profile}")
        else:
            logger.info("No interactive terminal detected; defaulting to tiny profile.")

    dependency_check()

    session = session or requests.Session()
    fallback_args: list[str] = []
    for rel_path in REQUIRED_ASSETS:
        download_file(session, base_url, rel_path, install_dir)

    for rel_path in OPTIONAL_ASSETS:
        if download_file_optional(session, base_url, rel_path, install_dir):
            continue
        if rel_path != COMPOSE_TINY_FILE:
            continue
        if options.profile == PROFILE_TINY:
            raise DownloadError(
                f"Tiny profile was selected, but {COMPOSE_TINY_FILE} is unavailable from {base_url}."
            )
        if not options.profile_selected:
            logger.warning("Tiny compose is missing; falling back to standard profile.")
            fallback_args = [f"--{PROFILE_STANDARD}"]

    logger.info("Bootstrap files are ready.")
    deploy_args = build_deploy_args(options, fallback_args, install_dir)

    if not options.yes and interactive and not confirm_deploy(ask):
        logger.info("Deployment skipped.")
        print("Run later: " + shlex.join(['tinydeploy', *deploy_args]), flush=True)
        return 0

    logger.info("Starting deployment...")
    return deploy(deploy_args)


def main(argv: Optional[list] = None) -> int:
    options = parse_arguments(argv)
    configure_logging(os.environ.get('TINYDEPLOY_LOG_LEVEL', 'INFO'))
    try:
        return install(options)
    except DeployError as e:
        print(f"[ERROR] {e}", file=sys.stderr, flush=True)
        return 1


def run() -> None:
    raise SystemExit(main())


if __name__ == '__main__':
    run()
