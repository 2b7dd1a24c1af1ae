"""HTTP tests for the auth blueprint and error envelope."""
import pytest
from sqlalchemy import delete

from api import create_app
from models.user import User
from tests.conftest import ADMIN_PASSWORD, EMPLOYEE_PASSWORD


def _login(client, email="ayse@example.com", password=EMPLOYEE_PASSWORD):
    return client.post("/auth/login", json={"email": email, "password": password})


class TestLoginEndpoint:
    def test_success(self, client, employee):
        resp = _login(client)

        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["id"] == 42
        assert data["email"] == "ayse@example.com"
        assert data["role"] == "employee"
        assert data["department_id"] == 3
        assert data["accessToken"]
        assert data["refreshToken"]
        assert "password" not in data

    @pytest.mark.parametrize(
        "body",
        [{}, {"email": "ayse@example.com"}, {"password": "x"}, {"email": "not-an-email", "password": "x"}],
    )
    def test_missing_or_invalid_fields(self, client, employee, body):
        resp = client.post("/auth/login", json=body)

        assert resp.status_code == 400
        assert resp.get_json()["error"] == "VALIDATION_ERROR"

    def test_unknown_email(self, client, employee):
        resp = _login(client, email="nobody@example.com")
        assert resp.status_code == 404

    def test_wrong_password(self, client, employee):
        resp = _login(client, password="wrong-password")

        assert resp.status_code == 401
        body = resp.get_json()
        assert body["error"] == "INVALID_CREDENTIALS"
        assert "wrong-password" not in resp.get_data(as_text=True)


class TestRefreshEndpoint:
    def test_rotation(self, client, employee):
        old = _login(client).get_json()["data"]["refreshToken"]

        resp = client.post("/auth/refresh-token", json={"refreshToken": old})
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["accessToken"]
        assert data["refreshToken"] != old

        replay = client.post("/auth/refresh-token", json={"refreshToken": old})
        assert replay.status_code == 403
        assert old not in replay.get_data(as_text=True)

    def test_missing_field(self, client):
        resp = client.post("/auth/refresh-token", json={})
        assert resp.status_code == 400

    def test_unknown_token(self, client):
        resp = client.post("/auth/refresh-token", json={"refreshToken": "garbage"})
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "INVALID_TOKEN"

    def test_deleted_user_is_not_found(self, client, services, employee):
        token = _login(client).get_json()["data"]["refreshToken"]
        with services.storage.unit_of_work() as session:
            session.execute(delete(User).where(User.id == employee.id))

        resp = client.post("/auth/refresh-token", json={"refreshToken": token})
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "NOT_FOUND"

        replay = client.post("/auth/refresh-token", json={"refreshToken": token})
        assert replay.status_code == 403


class TestLogoutEndpoint:
    def test_logout_revokes_and_is_idempotent(self, client, services, employee):
        token = _login(client).get_json()["data"]["refreshToken"]

        for _ in range(2):
            resp = client.post("/auth/logout", json={"refreshToken": token})
            assert resp.status_code == 200
        assert services.store.find_live(token) is None
        assert client.post("/auth/refresh-token", json={"refreshToken": token}).status_code == 403

    def test_missing_field(self, client):
        assert client.post("/auth/logout", json={}).status_code == 400


class TestRevokeEndpoint:
    def test_requires_bearer_token(self, client, employee):
        resp = client.post("/auth/users/42/revoke")
        assert resp.status_code == 401

    def test_rejects_refresh_token_as_bearer(self, client, admin):
        refresh = _login(client, "admin@example.com", ADMIN_PASSWORD).get_json()["data"]["refreshToken"]
        resp = client.post("/auth/users/42/revoke", headers={"Authorization": f"Bearer {refresh}"})
        assert resp.status_code == 401

    def test_non_admin_forbidden(self, client, employee):
        access = _login(client).get_json()["data"]["accessToken"]
        resp = client.post("/auth/users/42/revoke", headers={"Authorization": f"Bearer {access}"})
        assert resp.status_code == 403

    def test_admin_revokes_sessions(self, client, employee, admin):
        refresh = _login(client).get_json()["data"]["refreshToken"]
        access = _login(client, "admin@example.com", ADMIN_PASSWORD).get_json()["data"]["accessToken"]

        resp = client.post("/auth/users/42/revoke", headers={"Authorization": f"Bearer {access}"})
        assert resp.status_code == 200
        assert resp.get_json()["data"] == {"revoked": 1}
        assert client.post("/auth/refresh-token", json={"refreshToken": refresh}).status_code == 403


class TestHealth:
    def test_health_reports_unkeyed_by_default(self, client):
        resp = client.get("/api/v1/health")
        assert resp.status_code == 200
        assert resp.get_json() == {"status": "ok", "version": "1.0.0", "token_hashing": "unkeyed"}

    def test_health_reports_keyed_when_secret_set(self, tmp_path):
        app = create_app(
            "testing",
            {"DATABASE_URL": f"sqlite:///{tmp_path / 'keyed.db'}", "REFRESH_TOKEN_SECRET": "pepper"},
        )
        try:
            assert app.test_client().get("/api/v1/health").get_json()["token_hashing"] == "keyed"
        finally:
            app.extensions["credentials"].storage.dispose()

    def test_unknown_route_uses_envelope(self, client):
        resp = client.get("/nope")
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "NOT_FOUND"
