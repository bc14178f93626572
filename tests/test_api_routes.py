"""
tests/test_api_routes.py -- Integration tests for the auth routes.

These tests exercise the full stack: FastAPI routing -> session dependency ->
AuthService -> UserStore -> response model serialization -> cookie handling.

Coverage:
  - signup sets the session cookie, lowercases email, 409 on duplicates
  - signin: 200 + cookie, 401 invalid_password, 404 user_not_found
  - me: null when anonymous, the user with a cookie or Bearer header,
    401 invalid_session on a forged cookie
  - end-to-end signup -> me -> signout -> me is null
  - request-reset / reset-password including mismatch, expiry and reuse
  - users list and permission updates gated by ADMIN / PERMISSIONUPDATE
  - signin and request-reset answer 429 once their rate limit is spent
  - store outages surface as a generic 500 without leaking the exception

Fixtures used (from conftest.py):
  - api: ApiHarness (client, stores, issuer, mailer, admin, shopper)
  - client: the harness client with an empty cookie jar
"""

from __future__ import annotations

import re

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from api.limiter import limiter
from api.main import app
from auth.reset import RESET_TOKEN_TTL_MS, now_ms
from auth.tokens import SESSION_COOKIE_NAME, SessionTokenIssuer
from core.config import get_settings


def _error_code(resp) -> str | None:
    return resp.json().get("error", {}).get("code")


class TestSignupSignin:
    def test_signup_sets_cookie_and_lowercases(self, client: TestClient, api) -> None:
        resp = client.post(
            "/api/v1/auth/signup",
            json={"email": "New.Buyer@Shop.TEST", "password": "pw-123", "name": "New Buyer"},
        )
        assert resp.status_code == 201, resp.text
        data = resp.json()
        assert data["email"] == "new.buyer@shop.test"
        assert data["permissions"] == ["USER"]
        assert "password_hash" not in data and "reset_token" not in data
        token = resp.cookies.get(SESSION_COOKIE_NAME)
        assert token
        assert api.issuer.verify(token) == data["id"]
        assert resp.headers["Cache-Control"] == "no-store"

    def test_signup_duplicate_email(self, client: TestClient, api) -> None:
        resp = client.post("/api/v1/auth/signup", json={"email": api.shopper.email.upper(), "password": "pw"})
        assert resp.status_code == 409
        assert _error_code(resp) == "email_taken"

    def test_signup_rejects_invalid_email(self, client: TestClient) -> None:
        resp = client.post("/api/v1/auth/signup", json={"email": "not-an-email", "password": "pw"})
        assert resp.status_code == 422
        assert _error_code(resp) == "validation_error"

    def test_signup_rejects_password_over_72_bytes(self, client: TestClient) -> None:
        resp = client.post("/api/v1/auth/signup", json={"email": "long@shop.test", "password": "x" * 73})
        assert resp.status_code == 422

    def test_signin_valid(self, client: TestClient, api) -> None:
        resp = client.post("/api/v1/auth/signin", json={"email": api.shopper.email, "password": api.shopper_password})
        assert resp.status_code == 200, resp.text
        assert resp.json()["id"] == api.shopper.id
        assert api.issuer.verify(resp.cookies.get(SESSION_COOKIE_NAME)) == api.shopper.id

    def test_signin_wrong_password(self, client: TestClient, api) -> None:
        resp = client.post("/api/v1/auth/signin", json={"email": api.shopper.email, "password": "wrong"})
        assert resp.status_code == 401
        assert _error_code(resp) == "invalid_password"
        assert SESSION_COOKIE_NAME not in resp.cookies

    def test_signin_unknown_email(self, client: TestClient) -> None:
        resp = client.post("/api/v1/auth/signin", json={"email": "ghost@shop.test", "password": "pw"})
        assert resp.status_code == 404
        assert _error_code(resp) == "user_not_found"


class TestMe:
    def test_anonymous_is_null(self, client: TestClient) -> None:
        resp = client.get("/api/v1/auth/me")
        assert resp.status_code == 200
        assert resp.json() is None

    def test_cookie_session(self, client: TestClient, api) -> None:
        client.cookies.set(SESSION_COOKIE_NAME, api.token_for(api.shopper))
        resp = client.get("/api/v1/auth/me")
        assert resp.status_code == 200
        assert resp.json()["email"] == api.shopper.email

    def test_bearer_session(self, client: TestClient, api) -> None:
        resp = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {api.token_for(api.admin)}"})
        assert resp.status_code == 200
        assert resp.json()["email"] == api.admin.email

    def test_forged_cookie_is_invalid_session(self, client: TestClient, api) -> None:
        forged = SessionTokenIssuer("attacker-secret-" + "q" * 32).issue(api.admin.id)
        client.cookies.set(SESSION_COOKIE_NAME, forged)
        resp = client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        assert _error_code(resp) == "invalid_session"


def test_signup_me_signout_flow(client: TestClient) -> None:
    """signup -> me returns the new user; signout -> me returns null."""
    resp = client.post("/api/v1/auth/signup", json={"email": "flow@shop.test", "password": "flow-pw"})
    assert resp.status_code == 201
    created_id = resp.json()["id"]

    me = client.get("/api/v1/auth/me")
    assert me.json()["id"] == created_id

    out = client.post("/api/v1/auth/signout")
    assert out.status_code == 200
    assert out.json() == {"message": "Goodbye!"}
    cleared = out.headers["set-cookie"].lower()
    assert "max-age=0" in cleared and "httponly" in cleared and "samesite=lax" in cleared
    assert SESSION_COOKIE_NAME not in client.cookies

    assert client.get("/api/v1/auth/me").json() is None


class TestPasswordReset:
    def _request_token(self, client: TestClient, api, email: str) -> str:
        resp = client.post("/api/v1/auth/request-reset", json={"email": email})
        assert resp.status_code == 200, resp.text
        assert resp.json() == {"message": "Thanks!"}
        return api.user_store.find_user_by_email(email).reset_token

    def test_request_reset_stores_token_and_mails_link(self, client: TestClient, api) -> None:
        before = now_ms()
        token = self._request_token(client, api, api.shopper.email)
        stored = api.user_store.find_user_by_email(api.shopper.email)
        assert re.fullmatch(r"[0-9a-f]{40}", token)
        assert before + RESET_TOKEN_TTL_MS <= stored.reset_token_expiry <= now_ms() + RESET_TOKEN_TTL_MS
        assert f"/reset?resetToken={token}" in api.mailer.sent[-1]["html"]
        assert api.mailer.sent[-1]["to"] == api.shopper.email

    def test_request_reset_unknown_email(self, client: TestClient) -> None:
        resp = client.post("/api/v1/auth/request-reset", json={"email": "ghost@shop.test"})
        assert resp.status_code == 404
        assert _error_code(resp) == "user_not_found"

    def test_request_reset_survives_mail_outage(self, client: TestClient, api) -> None:
        api.mailer.fail = True
        try:
            resp = client.post("/api/v1/auth/request-reset", json={"email": api.shopper.email})
        finally:
            api.mailer.fail = False
        assert resp.status_code == 200

    def test_mismatched_passwords(self, client: TestClient) -> None:
        resp = client.post(
            "/api/v1/auth/reset-password",
            json={"resetToken": "a" * 40, "password": "one", "confirmPassword": "two"},
        )
        assert resp.status_code == 400
        assert _error_code(resp) == "password_mismatch"

    def test_full_reset_then_reuse_fails(self, client: TestClient, api) -> None:
        client.post("/api/v1/auth/signup", json={"email": "forgetful@shop.test", "password": "old-pw"})
        client.cookies.clear()
        token = self._request_token(client, api, "forgetful@shop.test")

        resp = client.post(
            "/api/v1/auth/reset-password",
            json={"resetToken": token, "password": "new-pw", "confirmPassword": "new-pw"},
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["email"] == "forgetful@shop.test"
        assert resp.cookies.get(SESSION_COOKIE_NAME)
        stored = api.user_store.find_user_by_email("forgetful@shop.test")
        assert stored.reset_token is None and stored.reset_token_expiry is None

        # The new password works, the old one does not.
        client.cookies.clear()
        ok = client.post("/api/v1/auth/signin", json={"email": "forgetful@shop.test", "password": "new-pw"})
        assert ok.status_code == 200
        bad = client.post("/api/v1/auth/signin", json={"email": "forgetful@shop.test", "password": "old-pw"})
        assert bad.status_code == 401

        again = client.post(
            "/api/v1/auth/reset-password",
            json={"resetToken": token, "password": "x", "confirmPassword": "x"},
        )
        assert again.status_code == 400
        assert _error_code(again) == "invalid_or_expired_token"

    def test_expired_token(self, client: TestClient, api) -> None:
        token = self._request_token(client, api, api.admin.email)
        api.user_store.update_user(
            {"email": api.admin.email},
            reset_token_expiry=now_ms() - RESET_TOKEN_TTL_MS - 60_000,
        )
        resp = client.post(
            "/api/v1/auth/reset-password",
            json={"resetToken": token, "password": "new-pw", "confirmPassword": "new-pw"},
        )
        assert resp.status_code == 400
        assert _error_code(resp) == "invalid_or_expired_token"
        # Admin can still sign in with the original password.
        ok = client.post("/api/v1/auth/signin", json={"email": api.admin.email, "password": api.admin_password})
        assert ok.status_code == 200


class TestUserAdministration:
    def test_list_users_requires_session(self, client: TestClient) -> None:
        resp = client.get("/api/v1/auth/users")
        assert resp.status_code == 401
        assert _error_code(resp) == "not_authenticated"

    def test_list_users_forbidden_for_plain_user(self, client: TestClient, api) -> None:
        client.cookies.set(SESSION_COOKIE_NAME, api.token_for(api.shopper))
        resp = client.get("/api/v1/auth/users")
        assert resp.status_code == 403
        assert _error_code(resp) == "forbidden"

    def test_list_users_as_admin(self, client: TestClient, api) -> None:
        client.cookies.set(SESSION_COOKIE_NAME, api.token_for(api.admin))
        resp = client.get("/api/v1/auth/users")
        assert resp.status_code == 200, resp.text
        emails = {u["email"] for u in resp.json()}
        assert {api.admin.email, api.shopper.email} <= emails
        assert len(emails) == len(api.user_store.list_users())

    def test_update_permissions_as_admin(self, client: TestClient, api) -> None:
        target = client.post("/api/v1/auth/signup", json={"email": "promote@shop.test", "password": "pw"}).json()
        client.cookies.clear()
        client.cookies.set(SESSION_COOKIE_NAME, api.token_for(api.admin))
        resp = client.patch(
            f"/api/v1/auth/users/{target['id']}/permissions",
            json={"permissions": ["USER", "PERMISSIONUPDATE"]},
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["permissions"] == ["USER", "PERMISSIONUPDATE"]

        # The promoted user can now list users.
        client.cookies.set(SESSION_COOKIE_NAME, api.issuer.issue(target["id"]))
        assert client.get("/api/v1/auth/users").status_code == 200

    def test_update_permissions_rejects_unknown_tag(self, client: TestClient, api) -> None:
        client.cookies.set(SESSION_COOKIE_NAME, api.token_for(api.admin))
        resp = client.patch(
            f"/api/v1/auth/users/{api.shopper.id}/permissions",
            json={"permissions": ["SUPERUSER"]},
        )
        assert resp.status_code == 422

    def test_update_permissions_forbidden_for_plain_user(self, client: TestClient, api) -> None:
        client.cookies.set(SESSION_COOKIE_NAME, api.token_for(api.shopper))
        resp = client.patch(
            f"/api/v1/auth/users/{api.shopper.id}/permissions",
            json={"permissions": ["ADMIN"]},
        )
        assert resp.status_code == 403


def _limit_count(limit: str) -> int:
    """'10/minute' -> 10."""
    return int(limit.split("/")[0].split()[0])


@pytest.fixture
def live_limiter():
    """Turn the shared limiter on with empty counters for one test."""
    limiter.reset()
    limiter.enabled = True
    yield limiter
    limiter.enabled = False
    limiter.reset()


class TestRateLimits:
    def test_signin_limit(self, client: TestClient, api, live_limiter) -> None:
        allowed = _limit_count(get_settings().signin_rate_limit)
        for _ in range(allowed):
            resp = client.post("/api/v1/auth/signin", json={"email": api.shopper.email, "password": "wrong"})
            assert resp.status_code == 401
        resp = client.post(
            "/api/v1/auth/signin",
            json={"email": api.shopper.email, "password": api.shopper_password},
        )
        assert resp.status_code == 429
        assert _error_code(resp) == "rate_limited"
        assert "Retry-After" in resp.headers
        assert SESSION_COOKIE_NAME not in resp.cookies

    def test_request_reset_limit(self, client: TestClient, live_limiter) -> None:
        allowed = _limit_count(get_settings().reset_rate_limit)
        for _ in range(allowed):
            resp = client.post("/api/v1/auth/request-reset", json={"email": "ghost@shop.test"})
            assert resp.status_code == 404
        resp = client.post("/api/v1/auth/request-reset", json={"email": "ghost@shop.test"})
        assert resp.status_code == 429
        assert _error_code(resp) == "rate_limited"

    def test_disabled_limiter_never_throttles(self, client: TestClient) -> None:
        allowed = _limit_count(get_settings().reset_rate_limit)
        codes = {
            client.post("/api/v1/auth/request-reset", json={"email": "ghost@shop.test"}).status_code
            for _ in range(allowed + 2)
        }
        assert codes == {404}


def test_store_outage_is_generic_500(api, monkeypatch) -> None:
    """Infrastructure faults are not auth failures: 500, generic body, no details."""

    def unreachable(email):
        raise OperationalError("SELECT users", {}, Exception("database is locked"))

    monkeypatch.setattr(api.user_store, "find_user_by_email", unreachable)
    # Shares app.state with the module client; no second lifespan run.
    lenient = TestClient(app, raise_server_exceptions=False)
    resp = lenient.post("/api/v1/auth/signin", json={"email": api.shopper.email, "password": "pw"})
    assert resp.status_code == 500
    body = resp.json()
    assert body["error"]["code"] == "internal_error"
    assert body["error"]["message"] == "An unexpected error occurred."
    assert "database is locked" not in resp.text
    assert "OperationalError" not in resp.text
