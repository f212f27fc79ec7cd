"""
tests/test_api_routes.py -- Integration tests for the /api/v1/users routes.

These tests exercise the full stack: FastAPI routing -> dependency injection
-> AuthGate / AuthService / PasswordRecovery -> UserStore -> response models
and the error handlers. Unit tests cover each component; these catch wiring
regressions (wrong status, missing cookie, error envelope shape).

Fixtures used (from conftest.py):
  - api_client: (client, admin_token, admin_id, mailer)
    The fixture creates admin@example.com / adminpass123 with role=admin.

TestClient keeps cookies between requests, so an autouse fixture clears
them (and the rate limiter) before every test.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from core.config import get_settings
from tests.helpers import RecordingMailer, reset_secret_from

ApiClient = tuple[TestClient, str, int, RecordingMailer]


@pytest.fixture(autouse=True)
def _fresh_client_state(api_client: ApiClient) -> None:
    client, _token, _uid, mailer = api_client
    client.cookies.clear()
    limiter.reset()
    mailer.fail = False


def _signup(client: TestClient, email: str, password: str = "pass1234", **extra):
    body = {"name": "Route Tester", "email": email, "password": password, "confirmPassword": password}
    body.update(extra)
    return client.post("/api/v1/users/signup", json=body)


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class TestSignupLogin:
    def test_signup_returns_201_session(self, api_client: ApiClient) -> None:
        client, _token, _uid, _mailer = api_client
        resp = _signup(client, "signup@example.com")
        assert resp.status_code == 201, resp.text
        body = resp.json()
        assert body["status"] == "success"
        assert body["token"]
        user = body["data"]["user"]
        assert user["email"] == "signup@example.com"
        assert user["role"] == "user"
        assert "hashed_password" not in user
        set_cookie = resp.headers["set-cookie"]
        assert set_cookie.startswith("jwt=")
        assert "httponly" in set_cookie.lower()
        assert "secure" not in set_cookie.lower()
        assert resp.headers["cache-control"] == "no-store"

    def test_signup_accepts_snake_case(self, api_client: ApiClient) -> None:
        client, _token, _uid, _mailer = api_client
        resp = client.post(
            "/api/v1/users/signup",
            json={"name": "Snake", "email": "snake@example.com", "password": "pass1234", "confirm_password": "pass1234"},
        )
        assert resp.status_code == 201, resp.text

    def test_signup_validation_error_is_400(self, api_client: ApiClient) -> None:
        client, _token, _uid, _mailer = api_client
        resp = _signup(client, "mismatch@example.com", confirmPassword="different1")
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "validation_error"

    def test_signup_duplicate_is_400(self, api_client: ApiClient) -> None:
        client, _token, _uid, _mailer = api_client
        assert _signup(client, "dupe@example.com").status_code == 201
        assert _signup(client, "DUPE@example.com").status_code == 400

    def test_login_success(self, api_client: ApiClient) -> None:
        client, _token, uid, _mailer = api_client
        resp = client.post("/api/v1/users/login", json={"email": "admin@example.com", "password": "adminpass123"})
        assert resp.status_code == 200, resp.text
        assert resp.json()["data"]["user"]["id"] == uid
        assert "jwt=" in resp.headers["set-cookie"]

    def test_login_missing_fields_is_400(self, api_client: ApiClient) -> None:
        client, _token, _uid, _mailer = api_client
        resp = client.post("/api/v1/users/login", json={"email": "admin@example.com"})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "missing_credentials"

    def test_login_bad_credentials_is_401_either_way(self, api_client: ApiClient) -> None:
        client, _token, _uid, _mailer = api_client
        wrong = client.post("/api/v1/users/login", json={"email": "admin@example.com", "password": "nope-nope"})
        unknown = client.post("/api/v1/users/login", json={"email": "ghost@example.com", "password": "nope-nope"})
        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json()

    def test_logout_clears_cookie(self, api_client: ApiClient) -> None:
        client, _token, _uid, _mailer = api_client
        resp = client.post("/api/v1/users/logout")
        assert resp.status_code == 200
        set_cookie = resp.headers["set-cookie"]
        assert set_cookie.startswith("jwt=")
        assert "max-age=0" in set_cookie.lower()


class TestProtectedRoutes:
    def test_me_requires_auth(self, api_client: ApiClient) -> None:
        client, _token, _uid, _mailer = api_client
        resp = client.get("/api/v1/users/me")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "no_access"

    def test_me_with_bearer(self, api_client: ApiClient) -> None:
        client, token, uid, _mailer = api_client
        resp = client.get("/api/v1/users/me", headers=_bearer(token))
        assert resp.status_code == 200
        assert resp.json()["data"]["user"]["id"] == uid

    def test_me_with_cookie(self, api_client: ApiClient) -> None:
        client, _token, _uid, _mailer = api_client
        _signup(client, "cookie@example.com")
        resp = client.get("/api/v1/users/me")
        assert resp.status_code == 200
        assert resp.json()["data"]["user"]["email"] == "cookie@example.com"

    def test_me_with_garbage_token(self, api_client: ApiClient) -> None:
        client, _token, _uid, _mailer = api_client
        assert client.get("/api/v1/users/me", headers=_bearer("garbage")).status_code == 401

    def test_list_users_admin_only(self, api_client: ApiClient) -> None:
        client, admin_token, _uid, _mailer = api_client
        user_token = _signup(client, "plain@example.com").json()["token"]
        client.cookies.clear()

        forbidden = client.get("/api/v1/users", headers=_bearer(user_token))
        assert forbidden.status_code == 403
        assert forbidden.json()["error"]["code"] == "forbidden"

        allowed = client.get("/api/v1/users", headers=_bearer(admin_token))
        assert allowed.status_code == 200
        body = allowed.json()
        assert body["results"] == len(body["data"]["users"])
        assert "$2b$" not in allowed.text

    def test_update_my_password(self, api_client: ApiClient) -> None:
        client, _token, _uid, _mailer = api_client
        old_token = _signup(client, "rotate@example.com").json()["token"]
        client.cookies.clear()

        wrong = client.patch(
            "/api/v1/users/updateMyPassword",
            json={"currentPassword": "not-it-at-all", "password": "brandnew99", "confirmPassword": "brandnew99"},
            headers=_bearer(old_token),
        )
        assert wrong.status_code == 401
        assert wrong.json()["error"]["code"] == "wrong_password"

        resp = client.patch(
            "/api/v1/users/updateMyPassword",
            json={"currentPassword": "pass1234", "password": "brandnew99", "confirmPassword": "brandnew99"},
            headers=_bearer(old_token),
        )
        assert resp.status_code == 200, resp.text
        new_token = resp.json()["token"]
        client.cookies.clear()

        stale = client.get("/api/v1/users/me", headers=_bearer(old_token))
        assert stale.status_code == 401
        assert stale.json()["error"]["code"] == "stale_password"
        assert client.get("/api/v1/users/me", headers=_bearer(new_token)).status_code == 200


class TestPasswordReset:
    def test_forgot_and_reset(self, api_client: ApiClient) -> None:
        client, _token, _uid, mailer = api_client
        _signup(client, "reset@example.com")
        client.cookies.clear()

        resp = client.post("/api/v1/users/forgotPassword", json={"email": "reset@example.com"})
        assert resp.status_code == 200, resp.text
        assert resp.json()["message"] == "Token sent to email!"
        mail = mailer.sent[-1]
        assert mail.recipient == "reset@example.com"
        assert "http://testserver/api/v1/users/resetPassword/" in mail.body
        secret = reset_secret_from(mail.body)
        assert secret not in resp.text

        reset = client.patch(
            f"/api/v1/users/resetPassword/{secret}",
            json={"password": "brandnew99", "confirmPassword": "brandnew99"},
        )
        assert reset.status_code == 200, reset.text
        assert reset.json()["data"]["user"]["email"] == "reset@example.com"

        reused = client.patch(
            f"/api/v1/users/resetPassword/{secret}",
            json={"password": "another99", "confirmPassword": "another99"},
        )
        assert reused.status_code == 400
        assert reused.json()["error"]["code"] == "invalid_or_expired_token"

        login = client.post("/api/v1/users/login", json={"email": "reset@example.com", "password": "brandnew99"})
        assert login.status_code == 200

    def test_forgot_unknown_email_is_404(self, api_client: ApiClient) -> None:
        client, _token, _uid, _mailer = api_client
        resp = client.post("/api/v1/users/forgotPassword", json={"email": "nobody@example.com"})
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "unknown_email"

    def test_forgot_delivery_failure_is_500(self, api_client: ApiClient) -> None:
        client, _token, _uid, mailer = api_client
        _signup(client, "unlucky@example.com")
        mailer.fail = True
        resp = client.post("/api/v1/users/forgotPassword", json={"email": "unlucky@example.com"})
        assert resp.status_code == 500
        assert resp.json()["error"]["code"] == "notification_failed"

    def test_reset_with_unknown_token_is_400(self, api_client: ApiClient) -> None:
        client, _token, _uid, _mailer = api_client
        resp = client.patch(
            f"/api/v1/users/resetPassword/{'f' * 64}",
            json={"password": "brandnew99", "confirmPassword": "brandnew99"},
        )
        assert resp.status_code == 400

    def test_forgot_password_is_rate_limited(self, api_client: ApiClient) -> None:
        client, _token, _uid, _mailer = api_client
        statuses = [
            client.post("/api/v1/users/forgotPassword", json={"email": "nobody@example.com"}).status_code
            for _ in range(6)
        ]
        assert statuses[:5] == [404] * 5
        assert statuses[5] == 429
        limited = client.post("/api/v1/users/forgotPassword", json={"email": "nobody@example.com"})
        assert limited.json()["error"]["code"] == "rate_limited"
        assert "retry-after" in limited.headers

    def test_login_is_rate_limited(self, api_client: ApiClient, monkeypatch: pytest.MonkeyPatch) -> None:
        client, _token, _uid, _mailer = api_client
        monkeypatch.setattr(get_settings(), "login_rate_limit", "3/minute")
        statuses = [
            client.post("/api/v1/users/login", json={"email": "admin@example.com", "password": "wrong-pass"}).status_code
            for _ in range(4)
        ]
        assert statuses == [401, 401, 401, 429]
