#!/usr/bin/env python3
"""
tinydeploy CLI entry point.

Generates/updates .env, renders config/kong.yml and brings the stack up in
two phases from the current directory.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .config_constants import PROFILE_STANDARD, PROFILE_TINY
from .errors import DeployError
from .logs import configure_logging
from .orchestrator import Orchestrator
from .settings import load_settings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='tinydeploy',
        allow_abbrev=False,
        description='One-click deploy of the self-hosted Supabase stack',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
  # Generate .env and config/kong.yml, then start everything
  %(prog)s

  # Only (re)generate configuration
  %(prog)s --config-only

  # Force recreation of all containers
  %(prog)s --recreate
        '''
    )

    parser.add_argument(
        '--config-only',
        action='store_true',
        help='Generate config only, do not start services'
    )

    parser.add_argument(
        '--recreate',
        action='store_true',
        help='Force recreate all containers'
    )

    profile = parser.add_mutually_exclusive_group()
    profile.add_argument(
        '--tiny',
        dest='profile',
        action='store_const',
        const=PROFILE_TINY,
        help='Tiny profile, the default (adds docker-compose.tiny.yml when present)'
    )
    profile.add_argument(
        '--standard',
        dest='profile',
        action='store_const',
        const=PROFILE_STANDARD,
        help='Standard profile (docker-compose.yml only)'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '-d', '--dir',
        type=Path,
        default=None,
        metavar='PATH',
        help='Install directory (default: current directory)'
    )

    return parser


def parse_arguments(argv: Optional[list] = None) -> argparse.Namespace:
    """
    Parse command-line arguments for tinydeploy.

    Unknown arguments are reported and cause exit code 1.
    """
    parser = build_parser()
    args, unknown = parser.parse_known_args(argv)
    if unknown:
        print(f"[ERROR] Unknown argument: {unknown[0]}", file=sys.stderr, flush=True)
        raise SystemExit(1)
    return args


def main(argv: Optional[list] = None) -> int:
    try:
        args = parse_arguments(argv)
    except SystemExit as e:
        # --help exits 0; argparse usage errors exit 2, reported as 1
        return 0 if e.code in (0, None) else 1

    try:
        settings = load_settings(
            root=args.dir or Path.cwd(),
            config_only=args.config_only,
            recreate=args.recreate,
            profile=args.profile,
        )
        configure_logging(settings.log_level)
        Orchestrator(settings).run()
    except DeployError as e:
        print(f"[ERROR] {e}", file=sys.stderr, flush=True)
        return 1
    except KeyboardInterrupt:
        print("[WARN] Interrupted; re-run to resume (all steps are idempotent)", file=sys.stderr, flush=True)
        return 1

    return 0


def run() -> None:
    raise SystemExit(main())


if __name__ == '__main__':
    run()
