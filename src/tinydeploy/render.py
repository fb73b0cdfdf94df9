#!/usr/bin/env python3
"""Rendering helpers: gateway config, runtime directories, deploy summary."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from importlib import resources
from pathlib import Path
from typing import Iterable, Mapping

from jinja2 import Template

from .config_constants import (
    DEFAULT_FUNCTIONS,
    FUNCTIONS_DIR,
    GATEWAY_PLACEHOLDERS,
    SNIPPETS_DIR,
)
from .errors import MissingTemplateError

logger = logging.getLogger(__name__)


def render(
    template_text: str,
    substitutions: Mapping[str, str],
    placeholders: Iterable[str] = GATEWAY_PLACEHOLDERS,
) -> str:
    """
    Replace each $NAME placeholder with its value.

    Only the given placeholder names are substituted; any other $NAME in the
    template is left verbatim.
    """
    rendered = template_text
    for name in placeholders:
        rendered = rendered.replace(f"${name}", substitutions.get(name, ""))
    return rendered


def write_atomic(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(content)
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def write_gateway_config(template_path: Path, output_path: Path, secret_set: Mapping[str, str]) -> Path:
    """Render the gateway template into output_path."""
    if not template_path.is_file():
        raise MissingTemplateError(
            f"Missing {template_path}; please pull the latest deployment files."
        )

    logger.info("Generating Kong config...")
    rendered = render(template_path.read_text(encoding='utf-8'), secret_set)

    if output_path.is_dir():
        logger.warning(f"Detected {output_path} is a directory; cleaning up...")
        shutil.rmtree(output_path)

    write_atomic(output_path, rendered)
    return output_path


def _asset_text(function_name: str) -> str:
    asset = resources.files("tinydeploy") / "assets" / "functions" / function_name / "index.ts"
    return asset.read_text(encoding='utf-8')


def ensure_runtime_dirs(root: Path) -> list[Path]:
    """
    Create bind-mount directories and default edge function handlers.

    Existing files are never overwritten. Returns the files created.
    """
    functions_dir = root / FUNCTIONS_DIR
    snippets_dir = root / SNIPPETS_DIR
    created: list[Path] = []

    snippets_dir.mkdir(parents=True, exist_ok=True)
    for name in DEFAULT_FUNCTIONS:
        handler = functions_dir / name / "index.ts"
        handler.parent.mkdir(parents=True, exist_ok=True)
        if handler.exists():
            continue
        handler.write_text(_asset_text(name), encoding='utf-8')
        created.append(handler)
        logger.debug(f"Created default edge function: {handler}")

    return created


SUMMARY_TEMPLATE = """\
==========================================
  Supabase self-hosted deployment info
==========================================

Access URLs:
  Studio (recommended): https://{{ domain }}/
  Kong gateway:         http://127.0.0.1:13780

Database connections:
  Direct:  postgresql://{{ db_user }}:****@127.0.0.1:13732/{{ db_name }}
  Pooler:  postgresql://{{ db_user }}:****@127.0.0.1:13743/{{ db_name }}

Dashboard login:
  Username: {{ dashboard_user }}
  Password: {{ dashboard_password }}

API Keys (saved in {{ env_file }}):
  ANON_KEY:         {{ anon_key[:20] }}...
  SERVICE_ROLE_KEY: {{ service_key[:20] }}...

Tips:
  - View service logs: docker compose logs -f [service]
  - Restart services:  docker compose restart [service]
  - Stop all services: docker compose down
=========================================="""


def render_summary(secret_set: Mapping[str, str], env_file_name: str = ".env") -> str:
    """Human-readable summary printed after a successful deployment."""
    return Template(SUMMARY_TEMPLATE).render(
        domain=secret_set.get('SUPABASE_PUBLIC_DOMAIN', ''),
        db_user=secret_set.get('POSTGRES_USER', ''),
        db_name=secret_set.get('POSTGRES_DB', ''),
        dashboard_user=secret_set.get('DASHBOARD_USERNAME', ''),
        dashboard_password=secret_set.get('DASHBOARD_PASSWORD', ''),
        env_file=env_file_name,
        anon_key=secret_set.get('ANON_KEY', ''),
        service_key=secret_set.get('SERVICE_ROLE_KEY', ''),
    )
