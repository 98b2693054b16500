"""
Engine options and health check
"""

from unittest.mock import patch

import pytest

from kalustovahti.core.database import POOL_ONLY_OPTIONS, _engine_options, check_database_health


def test_postgres_url_uses_asyncpg_and_keeps_pool_options():
    url, options = _engine_options("postgresql://kalusto:secret@db:5432/kalustovahti")

    assert url == "postgresql+asyncpg://kalusto:secret@db:5432/kalustovahti"
    assert all(key in options for key in POOL_ONLY_OPTIONS)
    assert options["connect_args"]["server_settings"]["application_name"] == "kalustovahti-api"


def test_sqlite_url_drops_pool_options():
    url, options = _engine_options("sqlite+aiosqlite:///./local.db")

    assert url == "sqlite+aiosqlite:///./local.db"
    assert not any(key in options for key in POOL_ONLY_OPTIONS)
    assert "connect_args" not in options
    assert options["pool_pre_ping"] is True


@pytest.mark.asyncio
async def test_health_check_reports_connectivity():
    assert await check_database_health() is True


@pytest.mark.asyncio
async def test_health_check_is_false_when_engine_fails():
    with patch("kalustovahti.core.database.engine") as engine:
        engine.connect.side_effect = RuntimeError("connection refused")

        assert await check_database_health() is False
