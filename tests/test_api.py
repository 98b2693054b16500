"""
HTTP layer tests: permission queries, page gate and guarded admin actions
"""

from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

from fastapi.testclient import TestClient
import pytest
from starlette.websockets import WebSocketDisconnect

from kalustovahti.core.database import get_db
from kalustovahti.core.deps import get_current_user, get_optional_user
from kalustovahti.core.pages import ALL_PAGES
from kalustovahti.core.permission_resolver import get_permission_resolver
from kalustovahti.core.rbac import Grant
from kalustovahti.core.security import create_access_token
from kalustovahti.main import app

GRANTS = [
    Grant("support", "documents", True, False),
    Grant("support", "users", True, False),
    Grant("admin", "users", True, True),
]


@pytest.fixture
def client():
    async def _db():
        yield AsyncMock()

    app.dependency_overrides[get_db] = _db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def as_user(make_user, make_resolver, fake_source_factory):
    """Sign in as a user holding the given roles, backed by a fake grant table"""
    def _as(*roles, super_admin=False, **source_kwargs):
        user = make_user(roles=roles)
        source = fake_source_factory(
            roles={str(user.id): set(roles)},
            grants=GRANTS,
            super_admins=[str(user.id)] if super_admin else [],
            **source_kwargs,
        )
        # A delayed source is expected to time out
        resolver = make_resolver(source, timeout=0.01 if source_kwargs.get("delay") else 1.0)
        app.dependency_overrides[get_current_user] = lambda: user
        app.dependency_overrides[get_optional_user] = lambda: user
        app.dependency_overrides[get_permission_resolver] = lambda: resolver
        return user
    return _as


@pytest.fixture
def anonymous(make_resolver, fake_source_factory):
    app.dependency_overrides[get_optional_user] = lambda: None
    app.dependency_overrides[get_permission_resolver] = lambda: make_resolver(fake_source_factory())


class TestPermissionQueries:

    def test_list_pages(self, client):
        response = client.get("/api/v1/pages/")

        assert response.status_code == 200
        assert [p["key"] for p in response.json()] == [page.value for page in ALL_PAGES]

    def test_anonymous_gets_everything_denied(self, client, anonymous):
        response = client.get("/api/v1/permissions/me")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "resolved"
        assert body["is_super_admin"] is False
        assert all(p == {"can_view": False, "can_edit": False} for p in body["permissions"].values())

    def test_single_page_query(self, client, as_user):
        as_user("support")

        documents = client.get("/api/v1/permissions/me/documents").json()
        fleet = client.get("/api/v1/permissions/me/fleet").json()

        assert documents == {"can_view": True, "can_edit": False, "pending": False}
        assert fleet == {"can_view": False, "can_edit": False, "pending": False}

    def test_unknown_page_is_404(self, client, as_user):
        as_user("support")

        assert client.get("/api/v1/permissions/me/companies").status_code == 404
        assert client.get("/api/v1/pages/companies").status_code == 404

    def test_pending_query_reports_pending(self, client, as_user):
        as_user("support", delay=0.5)

        body = client.get("/api/v1/permissions/me/documents").json()

        assert body == {"can_view": False, "can_edit": False, "pending": True}

    def test_failed_query_is_not_a_denial(self, client, as_user):
        as_user()
        denied = client.get("/api/v1/permissions/me/documents")

        as_user("support", fail_with=RuntimeError("grant table down"))
        failed = client.get("/api/v1/permissions/me/documents")

        assert denied.status_code == 200
        assert denied.json() == {"can_view": False, "can_edit": False, "pending": False}
        assert failed.status_code == 503
        assert failed.json()["detail"]["state"] == "error"
        assert "can_view" not in failed.json()["detail"]


class TestPageGate:

    def test_view_only_user_is_denied_edit_level(self, client, as_user):
        as_user("support")

        body = client.get("/api/v1/pages/users", params={"require_edit": True}).json()

        assert body["state"] == "denied"
        assert body["fallback"]["path"] == "/dashboard"
        assert "content" not in body

    def test_granted_page_includes_content(self, client, as_user):
        as_user("support")

        body = client.get("/api/v1/pages/documents").json()

        assert body["state"] == "granted"
        assert body["content"]["page_key"] == "documents"

    def test_failed_resolution_is_error(self, client, as_user):
        as_user("support", fail_with=RuntimeError("db down"))

        body = client.get("/api/v1/pages/documents").json()

        assert body["state"] == "error"
        assert "content" not in body


class TestAdminUsers:

    def test_unauthenticated_is_401(self, client):
        response = client.get("/api/v1/admin/users/emails")

        assert response.status_code == 401

    def test_view_grant_lists_emails(self, client, as_user):
        as_user("support")

        with patch("kalustovahti.api.v1.endpoints.users.user_service") as service:
            service.list_emails = AsyncMock(return_value={"id-1": "a@kalustovahti.fi"})
            response = client.get("/api/v1/admin/users/emails")

        assert response.status_code == 200
        assert response.json() == {"emails": {"id-1": "a@kalustovahti.fi"}}

    def test_create_requires_edit(self, client, as_user):
        as_user("support")

        response = client.post(
            "/api/v1/admin/users/",
            json={"email": "uusi@kalustovahti.fi", "password": "salasana", "full_name": "Uusi"},
        )

        assert response.status_code == 403
        assert response.json()["detail"]["state"] == "denied"

    def test_create_with_edit_grant(self, client, as_user):
        as_user("admin")
        created = MagicMock()
        created.id = "new-user-id"

        with patch("kalustovahti.api.v1.endpoints.users.user_service") as service:
            service.create_user = AsyncMock(return_value=created)
            response = client.post(
                "/api/v1/admin/users/",
                json={"email": "uusi@kalustovahti.fi", "password": "salasana", "full_name": "Uusi"},
            )

        assert response.status_code == 201
        assert response.json() == {"success": True, "user_id": "new-user-id"}

    def test_view_grant_lists_users_with_roles(self, client, as_user, make_user):
        as_user("support")
        listed = make_user("kuljettaja@kalustovahti.fi", roles=["driver", "support"])

        with patch("kalustovahti.api.v1.endpoints.users.user_service") as service:
            service.list_users = AsyncMock(return_value=[listed])
            response = client.get("/api/v1/admin/users/")

        assert response.status_code == 200
        [body] = response.json()
        assert body["id"] == str(listed.id)
        assert body["email"] == "kuljettaja@kalustovahti.fi"
        assert body["roles"] == ["driver", "support"]

    def test_update_requires_edit(self, client, as_user):
        as_user("support")

        with patch("kalustovahti.api.v1.endpoints.users.user_service") as service:
            service.update_user = AsyncMock()
            response = client.patch(f"/api/v1/admin/users/{uuid4()}", json={"role": "admin"})

        assert response.status_code == 403
        service.update_user.assert_not_awaited()

    def test_update_with_edit_grant(self, client, as_user, make_user):
        admin = as_user("admin")
        target = make_user("kuljettaja@kalustovahti.fi", roles=["admin"])

        with patch("kalustovahti.api.v1.endpoints.users.user_service") as service:
            service.update_user = AsyncMock(return_value=target)
            response = client.patch(
                f"/api/v1/admin/users/{target.id}",
                json={"full_name": "Kuljettaja", "role": "Admin"},
            )

        assert response.status_code == 200
        assert response.json()["roles"] == ["admin"]
        kwargs = service.update_user.call_args.kwargs
        assert kwargs["user_id"] == target.id
        assert kwargs["data"].role == "admin"
        assert kwargs["acting_user"] is admin

    def test_invalid_payload_is_422(self, client, as_user):
        as_user("admin")

        response = client.post(
            "/api/v1/admin/users/",
            json={"email": "uusi@kalustovahti.fi", "password": "123", "full_name": "Uusi"},
        )

        assert response.status_code == 422

    def test_pending_resolution_is_503_with_retry(self, client, as_user):
        as_user("admin", delay=0.5)

        response = client.get("/api/v1/admin/users/emails")

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "1"
        assert response.json()["detail"]["state"] == "pending"

    def test_failed_resolution_is_503_not_403(self, client, as_user):
        as_user("admin", fail_with=RuntimeError("db down"))

        response = client.get("/api/v1/admin/users/emails")

        assert response.status_code == 503
        assert response.json()["detail"]["state"] == "error"


class TestRoles:

    def test_non_super_admin_is_forbidden(self, client, as_user):
        as_user("admin")

        assert client.get("/api/v1/roles/").status_code == 403

    def test_super_admin_lists_roles(self, client, as_user):
        as_user(super_admin=True)

        with patch("kalustovahti.api.v1.endpoints.roles.role_service") as service:
            service.list_roles = AsyncMock(return_value=[])
            response = client.get("/api/v1/roles/")

        assert response.status_code == 200
        assert response.json() == []

    def test_unknown_page_grant_is_404(self, client, as_user):
        as_user(super_admin=True)

        response = client.put(
            "/api/v1/roles/00000000-0000-4000-8000-000000000000/grants/companies",
            json={"can_view": True, "can_edit": False},
        )

        assert response.status_code == 404


class TestOptionalAuthentication:

    def test_database_error_is_500_not_anonymous(self, client):
        token = create_access_token(subject=str(uuid4()))

        with patch("kalustovahti.core.deps.load_active_user", AsyncMock(side_effect=RuntimeError("db down"))):
            response = client.get("/api/v1/permissions/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 500
        assert response.json()["detail"] == "Authentication service error"

    def test_unknown_user_is_anonymous(self, client, make_resolver, fake_source_factory):
        token = create_access_token(subject=str(uuid4()))
        app.dependency_overrides[get_permission_resolver] = lambda: make_resolver(fake_source_factory())

        with patch("kalustovahti.core.deps.load_active_user", AsyncMock(return_value=None)):
            response = client.get("/api/v1/permissions/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json()["principal_id"] is None


class TestPermissionWebSocket:

    def test_deleted_user_token_is_rejected(self, client):
        token = create_access_token(subject=str(uuid4()))

        with patch("kalustovahti.api.v1.endpoints.ws.load_active_user", AsyncMock(return_value=None)):
            with pytest.raises(WebSocketDisconnect) as exc_info:
                with client.websocket_connect(f"/api/v1/ws/permissions?token={token}"):
                    pass

        assert exc_info.value.code == 1008

    def test_invalid_token_is_rejected(self, client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/api/v1/ws/permissions?token=not-a-token"):
                pass

        assert exc_info.value.code == 1008

    def test_active_user_receives_snapshots(self, client, make_user, make_resolver, fake_source_factory):
        user = make_user(roles=["support"])
        resolver = make_resolver(fake_source_factory(roles={str(user.id): {"support"}}, grants=GRANTS))
        token = create_access_token(subject=str(user.id))

        with patch("kalustovahti.api.v1.endpoints.ws.load_active_user", AsyncMock(return_value=user)), \
             patch("kalustovahti.api.v1.endpoints.ws.get_permission_resolver", return_value=resolver):
            with client.websocket_connect(f"/api/v1/ws/permissions?token={token}") as websocket:
                first = websocket.receive_json()
                second = websocket.receive_json()

        assert first["data"]["status"] == "pending"
        assert second["data"]["status"] == "resolved"
        assert second["data"]["principal_id"] == str(user.id)
        assert second["data"]["permissions"]["documents"] == {"can_view": True, "can_edit": False}
