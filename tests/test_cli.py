#!/usr/bin/env python3
"""
tinydeploy command-line tests.
"""

import sys
from pathlib import Path
from unittest.mock import patch

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))
from tinydeploy import cli  # noqa: E402
from tinydeploy.config_constants import REQUIRED_KEYS  # noqa: E402
from tinydeploy.env_store import parse_env_text  # noqa: E402


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch("tinydeploy.cli.configure_logging"):
        yield


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for key in (*REQUIRED_KEYS, "TINYDEPLOY_LOG_LEVEL", "DB_WAIT_SECONDS", "ROLE_WAIT_SECONDS", "MINIO_WAIT_SECONDS"):
        monkeypatch.delenv(key, raising=False)


class TestParseArguments:
    def test_defaults(self):
        args = cli.parse_arguments([])

        assert args.config_only is False
        assert args.recreate is False
        assert args.profile is None
        assert args.dir is None

    def test_flags(self):
        args = cli.parse_arguments(["--config-only", "--recreate", "--standard", "--dir", "/srv/x"])

        assert args.config_only and args.recreate
        assert args.profile == "standard"
        assert args.dir == Path("/srv/x")

    def test_unknown_argument(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            cli.parse_arguments(["--bogus"])

        assert excinfo.value.code == 1
        assert "Unknown argument: --bogus" in capsys.readouterr().err

    def test_abbreviations_rejected(self):
        with pytest.raises(SystemExit):
            cli.parse_arguments(["--config"])


class TestMain:
    def test_help_exits_zero(self, capsys):
        assert cli.main(["-h"]) == 0
        assert "--config-only" in capsys.readouterr().out

    def test_version_exits_zero(self, capsys):
        assert cli.main(["--version"]) == 0
        assert capsys.readouterr().out.startswith("tinydeploy ")

    def test_unknown_flag_exits_one(self):
        assert cli.main(["--nope"]) == 1

    def test_conflicting_profiles_exit_one(self):
        assert cli.main(["--tiny", "--standard"]) == 1

    def test_fresh_config_only(self, install_dir):
        assert cli.main(["--config-only", "--dir", str(install_dir)]) == 0

        persisted = parse_env_text((install_dir / ".env").read_text(encoding="utf-8"))
        assert set(REQUIRED_KEYS) <= set(persisted)
        kong = (install_dir / "config" / "kong.yml").read_text(encoding="utf-8")
        assert persisted["SUPABASE_ANON_KEY"] in kong
        assert persisted["SUPABASE_SERVICE_KEY"] in kong
        assert f"password: {persisted['DASHBOARD_PASSWORD']}" in kong
        assert "$" not in kong

    def test_second_config_only_run_changes_nothing(self, install_dir):
        cli.main(["--config-only", "--dir", str(install_dir)])
        env_before = (install_dir / ".env").read_bytes()
        kong_before = (install_dir / "config" / "kong.yml").read_bytes()

        assert cli.main(["--config-only", "--dir", str(install_dir)]) == 0

        assert (install_dir / ".env").read_bytes() == env_before
        assert (install_dir / "config" / "kong.yml").read_bytes() == kong_before

    def test_empty_secrets_in_env_file_are_regenerated(self, install_dir):
        (install_dir / ".env").write_text("POSTGRES_PASSWORD=\nJWT_SECRET=\n", encoding="utf-8")

        assert cli.main(["--config-only", "--dir", str(install_dir)]) == 0

        persisted = parse_env_text((install_dir / ".env").read_text(encoding="utf-8"))
        assert persisted["POSTGRES_PASSWORD"] and persisted["JWT_SECRET"]

    def test_uses_current_directory(self, install_dir, monkeypatch):
        monkeypatch.chdir(install_dir)

        assert cli.main(["--config-only"]) == 0
        assert (install_dir / ".env").is_file()

    def test_missing_template_reports_error(self, install_dir, capsys):
        (install_dir / "config" / "kong.yml.template").unlink()

        assert cli.main(["--config-only", "--dir", str(install_dir)]) == 1
        assert "[ERROR] environment:" in capsys.readouterr().err

    def test_invalid_budget_reports_error(self, install_dir, monkeypatch, capsys):
        monkeypatch.setenv("ROLE_WAIT_SECONDS", "soon")

        assert cli.main(["--config-only", "--dir", str(install_dir)]) == 1
        assert "ROLE_WAIT_SECONDS" in capsys.readouterr().err
