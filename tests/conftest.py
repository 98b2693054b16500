"""
Shared test fixtures
The environment is set before any kalustovahti module is imported so the
engine and settings pick up the test values.
"""

import asyncio
import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./kalustovahti_test.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-kalustovahti-unit-tests-0123456789")
os.environ.setdefault("PERMISSION_RESOLUTION_TIMEOUT_SECONDS", "1")
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "10000")

from typing import Iterable, Optional, Set
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from kalustovahti.core.permission_resolver import PermissionResolver, PermissionSource
from kalustovahti.core.rbac import Grant
from kalustovahti.models.user import User


class FakePermissionSource(PermissionSource):
    """
    In-memory PermissionSource. Each read can be delayed or made to fail,
    and calls are counted per principal.
    """

    def __init__(
        self,
        roles: Optional[dict] = None,
        grants: Iterable[Grant] = (),
        super_admins: Iterable[str] = (),
        delay: float = 0.0,
        fail_with: Optional[Exception] = None,
        fail_reads: Iterable[str] = ("roles_of", "all_grants"),
    ):
        self.roles = {str(k): set(v) for k, v in (roles or {}).items()}
        self.grants = list(grants)
        self.super_admins = {str(p) for p in super_admins}
        self.delay = delay
        self.fail_with = fail_with
        self.fail_reads = set(fail_reads)
        self.calls: list[str] = []

    async def _read(self, name: str):
        self.calls.append(name)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None and name in self.fail_reads:
            raise self.fail_with

    async def is_super_admin(self, principal_id: str) -> bool:
        await self._read("is_super_admin")
        return principal_id in self.super_admins

    async def roles_of(self, principal_id: str) -> Set[str]:
        await self._read("roles_of")
        return set(self.roles.get(principal_id, set()))

    async def all_grants(self) -> list:
        await self._read("all_grants")
        return list(self.grants)


@pytest.fixture
def fake_source_factory():
    return FakePermissionSource


@pytest.fixture
def make_resolver():
    def _make(source: PermissionSource, timeout: float = 1.0) -> PermissionResolver:
        return PermissionResolver(source, timeout=timeout)
    return _make


@pytest.fixture
def mock_db():
    """Mock async database session"""
    db = AsyncMock()
    db.add = MagicMock()
    db.add_all = MagicMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.refresh = AsyncMock()
    db.flush = AsyncMock()
    return db


@pytest.fixture
def make_user():
    def _make(email: str = "kayttaja@kalustovahti.fi", roles: Iterable[str] = ()) -> User:
        user = MagicMock(spec=User)
        user.id = uuid4()
        user.email = email
        user.full_name = "Testi Käyttäjä"
        user.is_active = True
        user.role_names = sorted(set(roles))
        user.created_at = None
        user.last_login_at = None
        return user
    return _make
