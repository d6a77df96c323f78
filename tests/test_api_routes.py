"""
tests/test_api_routes.py -- Integration tests for the auth and task routes.

These tests exercise the full stack: FastAPI routing -> auth dependency injection
-> AuthGate/SessionStore/UserStore -> response model serialization. Unit testing
individual route functions would miss middleware, dependency injection, and
response model validation -- integration tests are the right tool here.

Coverage:
  - Auth failures: 401 + WWW-Authenticate on protected routes without/with bad tokens
  - Signup/login happy path, 409 on duplicate signup, 401 on bad login
  - Logout invalidates exactly the presented token; logout-all invalidates every one
  - Session store failure during login or signup: 500, no token, no leftover account
  - Tasks: public catalog, admin-only creation (403 for users), 202 solution queueing

Fixtures used (from conftest.py):
  - api_client: (client, token, uid) -- TestClient with an admin bearer token.
    The fixture creates an admin user with username="testadmin", password="testpass123".
"""

from __future__ import annotations

import itertools
from unittest.mock import patch

from fastapi.testclient import TestClient

from auth.errors import SessionStoreError
from core.config import get_settings

_names = itertools.count()


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _signup(client: TestClient, password: str = "secret-pw") -> tuple[str, dict]:
    """Sign up a fresh user; return (username, response json)."""
    username = f"user{next(_names)}"
    resp = client.post("/api/v1/auth/signup", json={"username": username, "password": password})
    assert resp.status_code == 201, resp.text
    return username, resp.json()


class TestApiAuthFailure:
    """Unauthenticated requests to protected API routes must return 401."""

    def test_get_me_unauthenticated(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        resp = client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        assert resp.headers["WWW-Authenticate"] == "Bearer"
        assert resp.json()["error"]["code"] == "unauthorized"

    def test_garbage_token(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        resp = client.get("/api/v1/auth/me", headers=_bearer("not.a.token"))
        assert resp.status_code == 401
        assert resp.headers["WWW-Authenticate"] == "Bearer"

    def test_wrong_scheme(self, api_client: tuple[TestClient, str, int]) -> None:
        client, token, _uid = api_client
        resp = client.get("/api/v1/auth/me", headers={"Authorization": f"Basic {token}"})
        assert resp.status_code == 401

    def test_cookie_is_not_a_credential(self, api_client: tuple[TestClient, str, int]) -> None:
        client, token, _uid = api_client
        resp = client.get("/api/v1/auth/me", headers={"Cookie": f"access_token={token}"})
        assert resp.status_code == 401

    def test_submit_solution_unauthenticated(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        resp = client.post("/api/v1/tasks/1/solutions", json={"source": "print(1)"})
        assert resp.status_code == 401

    def test_logout_unauthenticated(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        assert client.post("/api/v1/auth/logout").status_code == 401


class TestApiAuthRoutes:
    def test_signup_returns_usable_token(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        username, data = _signup(client)

        assert data["token_type"] == "bearer"
        assert 0 < data["expires_in"] <= 1800
        me = client.get("/api/v1/auth/me", headers=_bearer(data["access_token"]))
        assert me.status_code == 200
        assert me.json()["username"] == username
        assert me.json()["is_admin"] is False

    def test_signup_duplicate(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        resp = client.post("/api/v1/auth/signup", json={"username": "testadmin", "password": "whatever"})
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "conflict"

    def test_signup_disabled(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        closed = get_settings().model_copy(update={"self_registration_enabled": False})
        with patch("api.routes.v1.auth.get_settings", return_value=closed):
            resp = client.post("/api/v1/auth/signup", json={"username": "latecomer", "password": "pw"})
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "registration_disabled"

    def test_signup_validation(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        resp = client.post("/api/v1/auth/signup", json={"username": "", "password": "pw"})
        assert resp.status_code == 422

    def test_login_valid(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, uid = api_client
        resp = client.post("/api/v1/auth/login", json={"username": "testadmin", "password": "testpass123"})
        assert resp.status_code == 200, resp.text
        assert resp.headers["Cache-Control"] == "no-store"
        data = resp.json()
        assert data["user_id"] == uid
        assert data["access_token"]

    def test_login_invalid(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        wrong_pw = client.post("/api/v1/auth/login", json={"username": "testadmin", "password": "nope"})
        unknown = client.post("/api/v1/auth/login", json={"username": "ghost", "password": "nope"})
        assert wrong_pw.status_code == unknown.status_code == 401
        assert wrong_pw.json() == unknown.json()
        assert wrong_pw.json()["error"]["code"] == "bad_credentials"

    def test_login_session_store_down(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        sessions = client.app.state.sessions
        with patch.object(sessions, "register", side_effect=SessionStoreError("down")):
            resp = client.post("/api/v1/auth/login", json={"username": "testadmin", "password": "testpass123"})
        assert resp.status_code == 500
        assert "access_token" not in resp.text
        assert resp.json()["error"]["code"] == "internal_error"

    def test_signup_session_store_down(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        body = {"username": "unlucky", "password": "secret-pw"}
        with patch.object(client.app.state.sessions, "register", side_effect=SessionStoreError("down")):
            resp = client.post("/api/v1/auth/signup", json=body)
        assert resp.status_code == 500
        assert "access_token" not in resp.text
        assert client.app.state.user_store.get_by_username("unlucky") is None

        retry = client.post("/api/v1/auth/signup", json=body)
        assert retry.status_code == 201, retry.text

    def test_get_me(self, api_client: tuple[TestClient, str, int]) -> None:
        client, token, uid = api_client
        resp = client.get("/api/v1/auth/me", headers=_bearer(token))
        assert resp.status_code == 200
        data = resp.json()
        assert data["user_id"] == uid
        assert data["username"] == "testadmin"
        assert data["is_admin"] is True
        assert data["session_expires_at"] > 0

    def test_logout_invalidates_only_that_token(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        username, first = _signup(client)
        second = client.post("/api/v1/auth/login", json={"username": username, "password": "secret-pw"}).json()

        resp = client.post("/api/v1/auth/logout", headers=_bearer(first["access_token"]))
        assert resp.status_code == 200

        assert client.get("/api/v1/auth/me", headers=_bearer(first["access_token"])).status_code == 401
        assert client.get("/api/v1/auth/me", headers=_bearer(second["access_token"])).status_code == 200

    def test_logout_all(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        username, first = _signup(client)
        second = client.post("/api/v1/auth/login", json={"username": username, "password": "secret-pw"}).json()

        resp = client.post("/api/v1/auth/logout-all", headers=_bearer(second["access_token"]))
        assert resp.status_code == 200
        assert resp.json()["sessions_closed"] == 2

        for data in (first, second):
            assert client.get("/api/v1/auth/me", headers=_bearer(data["access_token"])).status_code == 401


class TestApiTaskRoutes:
    def _create_task(self, client: TestClient, admin_token: str, name: str = "Two Sum") -> dict:
        resp = client.post(
            "/api/v1/tasks",
            json={"name": name, "description": "Add two numbers."},
            headers=_bearer(admin_token),
        )
        assert resp.status_code == 201, resp.text
        return resp.json()

    def test_admin_creates_task(self, api_client: tuple[TestClient, str, int]) -> None:
        client, token, _uid = api_client
        task = self._create_task(client, token, name="FizzBuzz")

        detail = client.get(f"/api/v1/tasks/{task['id']}")
        assert detail.status_code == 200
        assert detail.json()["name"] == "FizzBuzz"
        listing = client.get("/api/v1/tasks")
        assert listing.status_code == 200
        assert {"id": task["id"], "name": "FizzBuzz"} in listing.json()

    def test_non_admin_cannot_create_task(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        _, data = _signup(client)
        resp = client.post("/api/v1/tasks", json={"name": "Sneaky"}, headers=_bearer(data["access_token"]))
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "forbidden"

    def test_create_task_unauthenticated(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        assert client.post("/api/v1/tasks", json={"name": "Anon"}).status_code == 401

    def test_get_missing_task(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        resp = client.get("/api/v1/tasks/999999")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "not_found"

    def test_submit_solution_queues(self, api_client: tuple[TestClient, str, int]) -> None:
        client, token, _uid = api_client
        task = self._create_task(client, token)
        _, data = _signup(client)

        resp = client.post(
            f"/api/v1/tasks/{task['id']}/solutions",
            json={"source": "print(sum(map(int, input().split())))"},
            headers=_bearer(data["access_token"]),
        )

        assert resp.status_code == 202, resp.text
        accepted = resp.json()
        assert accepted["status"] == "new"
        stored = client.app.state.tasks.get_solution(accepted["id"])
        assert stored.user_id == data["user_id"]
        assert stored.task_id == task["id"]
        assert stored.solution == b"print(sum(map(int, input().split())))"

    def test_submit_solution_missing_task(self, api_client: tuple[TestClient, str, int]) -> None:
        client, token, _uid = api_client
        resp = client.post("/api/v1/tasks/999999/solutions", json={"source": "x"}, headers=_bearer(token))
        assert resp.status_code == 404

    def test_submit_after_logout_rejected(self, api_client: tuple[TestClient, str, int]) -> None:
        client, token, _uid = api_client
        task = self._create_task(client, token)
        _, data = _signup(client)
        client.post("/api/v1/auth/logout", headers=_bearer(data["access_token"]))

        resp = client.post(
            f"/api/v1/tasks/{task['id']}/solutions",
            json={"source": "x"},
            headers=_bearer(data["access_token"]),
        )
        assert resp.status_code == 401
