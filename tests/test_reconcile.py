#!/usr/bin/env python3
"""
Database reconciliation tests.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))
from conftest import has  # noqa: E402
from tinydeploy.compose import Compose  # noqa: E402
from tinydeploy.errors import ReconciliationError  # noqa: E402
from tinydeploy.reconcile import build_reconcile_sql, psql_command, reconcile  # noqa: E402

SECRETS = {
    "POSTGRES_USER": "supabase_admin",
    "POSTGRES_DB": "postgres",
    "POSTGRES_PASSWORD": "pw'; DROP",
}


@pytest.fixture
def compose(tmp_path, fake_runner):
    return Compose([tmp_path / "docker-compose.yml"], tmp_path / ".env", tmp_path, runner=fake_runner)


class TestBuildReconcileSql:
    def test_conditional_statements(self):
        sql = build_reconcile_sql()

        assert "CREATE DATABASE _supabase OWNER %I" in sql
        assert "WHERE NOT EXISTS (SELECT 1 FROM pg_database WHERE datname = '_supabase')" in sql
        assert "CREATE SCHEMA IF NOT EXISTS _realtime AUTHORIZATION %I" in sql
        assert sql.count("\\gexec") == 4

    def test_only_service_account_roles(self):
        sql = build_reconcile_sql()

        assert "ALTER ROLE supabase_auth_admin WITH PASSWORD %L" in sql
        assert "ALTER ROLE supabase_storage_admin WITH PASSWORD %L" in sql
        assert sql.count("ALTER ROLE") == 2
        assert "rolname = 'supabase_auth_admin'" in sql

    def test_password_is_not_interpolated(self):
        assert "pw'; DROP" not in build_reconcile_sql()


class TestReconcile:
    def test_exec_command(self, compose, fake_runner):
        reconcile(compose, SECRETS)

        call = fake_runner.calls[0]
        cmd = call["cmd"]
        assert cmd[cmd.index("exec"):cmd.index("exec") + 4] == ["exec", "-T", "-e", "PGPASSWORD=pw'; DROP"]
        assert cmd[cmd.index("db") + 1:cmd.index("db") + 5] == ["psql", "-U", "supabase_admin", "-d"]
        assert "ON_ERROR_STOP=1" in cmd
        assert "owner=supabase_admin" in cmd
        assert "pgpass=pw'; DROP" in cmd
        assert call["input"] == build_reconcile_sql()

    def test_failure_is_fatal(self, compose, fake_runner):
        fake_runner.on(has("psql"), returncode=3, stderr="NOTICE: x\nERROR:  permission denied\n")

        with pytest.raises(ReconciliationError, match="permission denied"):
            reconcile(compose, SECRETS)

    def test_psql_command(self):
        assert psql_command(SECRETS, "-tAc", "SELECT 1") == [
            "psql", "-U", "supabase_admin", "-d", "postgres", "-tAc", "SELECT 1",
        ]
