"""Shared fixtures: a fake docker compose runner and an install directory."""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path
from typing import Callable, Optional

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from tinydeploy.settings import load_settings  # noqa: E402

JWT_SECRET = "a" * 64

KONG_TEMPLATE = """\
consumers:
  - username: anon
    keyauth_credentials:
      - key: $SUPABASE_ANON_KEY
  - username: service_role
    keyauth_credentials:
      - key: $SUPABASE_SERVICE_KEY
basicauth_credentials:
  - consumer: DASHBOARD
    username: $DASHBOARD_USERNAME
    password: $DASHBOARD_PASSWORD
"""


class FakeRunner:
    """
    Stand-in for subprocess.run.

    Each rule is (predicate, responder); the first rule whose predicate
    matches the command decides the result. Unmatched commands succeed.
    """

    def __init__(self) -> None:
        self.calls: list[dict] = []
        self.rules: list[tuple[Callable[[list], bool], Callable[[list], subprocess.CompletedProcess]]] = []

    def on(self, predicate: Callable[[list], bool], returncode: int = 0, stdout: str = "", stderr: str = "",
           responder: Optional[Callable[[list], subprocess.CompletedProcess]] = None) -> None:
        if responder is None:
            def responder(cmd, rc=returncode, out=stdout, err=stderr):
                return subprocess.CompletedProcess(cmd, rc, out, err)
        self.rules.append((predicate, responder))

    def __call__(self, cmd, **kwargs):
        self.calls.append({"cmd": list(cmd), **kwargs})
        for predicate, responder in self.rules:
            if predicate(cmd):
                return responder(cmd)
        return subprocess.CompletedProcess(cmd, 0, "", "")

    def commands(self) -> list[list]:
        return [call["cmd"] for call in self.calls]

    def find(self, predicate: Callable[[list], bool]) -> list[dict]:
        return [call for call in self.calls if predicate(call["cmd"])]


def has(*tokens: str) -> Callable[[list], bool]:
    """Predicate: every token appears somewhere in the command."""
    def predicate(cmd) -> bool:
        joined = " ".join(cmd)
        return all(token in joined for token in tokens)
    return predicate


def is_up(cmd) -> bool:
    return "up" in cmd and "-d" in cmd


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def install_dir(tmp_path: Path) -> Path:
    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "kong.yml.template").write_text(KONG_TEMPLATE, encoding="utf-8")
    (tmp_path / "docker-compose.yml").write_text("services: {}\n", encoding="utf-8")
    (tmp_path / "Caddyfile").write_text("# site\nsupa.example.org {\n  reverse_proxy kong:8000\n}\n", encoding="utf-8")
    return tmp_path


@pytest.fixture
def make_settings(install_dir: Path):
    def _make(environ: Optional[dict] = None, **kwargs):
        kwargs.setdefault("interactive", False)
        return load_settings(install_dir, environ=environ or {}, **kwargs)
    return _make
