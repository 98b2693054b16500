"""
Tests for Role Service
"""

from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

from fastapi import HTTPException
import pytest

from kalustovahti.core.pages import ALL_PAGES, PageKey
from kalustovahti.models.role import Role, RolePagePermission
from kalustovahti.schemas.role import GrantUpdateRequest, RoleCreateRequest, RoleUpdateRequest
from kalustovahti.services.role import RoleService


@pytest.fixture
def role_service():
    return RoleService()


@pytest.fixture
def repos():
    with patch("kalustovahti.services.role.role_repository") as role_repo, \
         patch("kalustovahti.services.role.audit_log_repository") as audit_repo, \
         patch("kalustovahti.services.role.permission_sessions") as sessions:
        role_repo.get = AsyncMock(return_value=None)
        role_repo.get_by_name = AsyncMock(return_value=None)
        role_repo.get_grants_for_page = AsyncMock(return_value=[])
        role_repo.update = AsyncMock(side_effect=lambda db, db_obj, obj_in: db_obj)
        role_repo.delete = AsyncMock()
        audit_repo.record = MagicMock()
        yield MagicMock(role=role_repo, audit=audit_repo, sessions=sessions)


@pytest.fixture
def admin(make_user):
    return make_user("admin@kalustovahti.fi", roles=["system_admin"])


def _role(is_system_role=False):
    role = MagicMock(spec=Role)
    role.id = uuid4()
    role.name = "dispatcher"
    role.display_name = "Ajojärjestelijä"
    role.description = None
    role.is_system_role = is_system_role
    return role


class TestCreateRole:

    @pytest.mark.asyncio
    async def test_new_role_gets_all_false_grant_for_every_page(self, role_service, mock_db, repos, admin):
        data = RoleCreateRequest(name="Dispatcher", display_name="Ajojärjestelijä")

        role = await role_service.create_role(mock_db, data, acting_user=admin)

        assert role.name == "dispatcher"
        assert role.is_system_role is False
        grants = mock_db.add_all.call_args.args[0]
        assert {g.page_key for g in grants} == {page.value for page in ALL_PAGES}
        assert all(g.can_view is False and g.can_edit is False for g in grants)
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_duplicate_role_name(self, role_service, mock_db, repos, admin):
        repos.role.get_by_name.return_value = _role()

        with pytest.raises(HTTPException) as exc_info:
            await role_service.create_role(
                mock_db, RoleCreateRequest(name="dispatcher", display_name="X"), acting_user=admin
            )

        assert exc_info.value.status_code == 409


class TestUpdateAndDeleteRole:

    @pytest.mark.asyncio
    async def test_update_role_display_name(self, role_service, mock_db, repos, admin):
        role = _role()
        repos.role.get.return_value = role

        await role_service.update_role(
            mock_db, role.id, RoleUpdateRequest(display_name="Uusi nimi"), acting_user=admin
        )

        assert repos.role.update.call_args.kwargs["obj_in"] == {"display_name": "Uusi nimi"}
        repos.sessions.invalidate_all.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_update_missing_role(self, role_service, mock_db, repos, admin):
        with pytest.raises(HTTPException) as exc_info:
            await role_service.update_role(mock_db, uuid4(), RoleUpdateRequest(), acting_user=admin)

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_system_role_cannot_be_deleted(self, role_service, mock_db, repos, admin):
        repos.role.get.return_value = _role(is_system_role=True)

        with pytest.raises(HTTPException) as exc_info:
            await role_service.delete_role(mock_db, uuid4(), acting_user=admin)

        assert exc_info.value.status_code == 400
        repos.role.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_custom_role_invalidates_sessions(self, role_service, mock_db, repos, admin):
        role = _role()
        repos.role.get.return_value = role

        await role_service.delete_role(mock_db, role.id, acting_user=admin)

        repos.role.delete.assert_awaited_once_with(mock_db, db_obj=role)
        repos.sessions.invalidate_all.assert_called_once_with()


class TestSetGrant:

    @pytest.mark.asyncio
    async def test_updates_every_duplicate_row(self, role_service, mock_db, repos, admin):
        role = _role()
        repos.role.get.return_value = role
        rows = [
            RolePagePermission(role_id=role.id, page_key="users", can_view=True, can_edit=False),
            RolePagePermission(role_id=role.id, page_key="users", can_view=False, can_edit=False),
        ]
        repos.role.get_grants_for_page.return_value = rows

        result = await role_service.set_grant(
            mock_db, role.id, PageKey.USERS, GrantUpdateRequest(can_view=False, can_edit=True), acting_user=admin
        )

        assert result == rows
        assert all(r.can_view is False and r.can_edit is True for r in rows)
        mock_db.add.assert_not_called()
        repos.sessions.invalidate_all.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_creates_missing_row(self, role_service, mock_db, repos, admin):
        role = _role()
        repos.role.get.return_value = role

        result = await role_service.set_grant(
            mock_db, role.id, PageKey.FLEET, GrantUpdateRequest(can_view=True, can_edit=False), acting_user=admin
        )

        assert len(result) == 1
        assert (result[0].page_key, result[0].can_view, result[0].can_edit) == ("fleet", True, False)
        mock_db.add.assert_called_once_with(result[0])
