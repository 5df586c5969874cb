"""Tests for auth API routes - full app with in-memory persistence."""

import pytest

from auth.exceptions import RateLimitedError
from auth.security_logger import SecurityEvent
from auth.types import Role
from clients.email_client import EmailGatewayError

PASSWORD = "correct-horse-battery"

REGISTER_BODY = {
    "name": "Grace Hopper",
    "username": "grace",
    "email": "grace@example.com",
    "password": PASSWORD,
}


def _register_and_verify(client, sent_verification_token, body=REGISTER_BODY):
    assert client.post("/auth/register", json=body).status_code == 201
    response = client.get("/auth/verify-email", params={"token": sent_verification_token()})
    assert response.status_code == 200


def _use_refresh_cookie(client, token):
    """Replace whatever refresh cookie the client holds."""
    client.cookies.clear()
    client.cookies.set("refreshToken", token)


def _login(client, email="grace@example.com", password=PASSWORD):
    return client.post("/auth/login", json={"email": email, "password": password})


class TestRegister:
    def test_created(self, client):
        response = client.post("/auth/register", json=REGISTER_BODY)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["user"]["email"] == "grace@example.com"
        assert set(body["user"]) == {"id", "name", "email", "role"}

    def test_email_sent_in_background(self, client, mock_email_client):
        client.post("/auth/register", json=REGISTER_BODY)

        mock_email_client.send_verification_email.assert_called_once()

    def test_email_failure_still_created(self, client, mock_email_client):
        mock_email_client.send_verification_email.side_effect = EmailGatewayError("down")

        response = client.post("/auth/register", json=REGISTER_BODY)

        assert response.status_code == 201

    def test_duplicate_email(self, client):
        client.post("/auth/register", json=REGISTER_BODY)

        response = client.post("/auth/register", json={**REGISTER_BODY, "username": "other"})

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "message": "Email already registered",
            "code": "ALREADY_EXISTS",
        }

    @pytest.mark.parametrize(
        "overrides",
        [
            {"name": "G"},
            {"email": "not-an-email"},
            {"password": "12345"},
            {"username": ""},
        ],
    )
    def test_validation_is_400(self, client, auth_db, overrides):
        response = client.post("/auth/register", json={**REGISTER_BODY, **overrides})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["code"] == "VALIDATION_ERROR"
        assert auth_db.users == {}

    def test_rate_limited(self, client, mock_rate_limiter, mock_security_logger):
        mock_rate_limiter.check_rate_limit.side_effect = RateLimitedError(retry_after_seconds=120)

        response = client.post("/auth/register", json=REGISTER_BODY)

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "120"
        assert response.json()["code"] == "RATE_LIMITED"
        assert mock_security_logger.log.call_args.args[0] == SecurityEvent.RATE_LIMITED

    def test_rate_limit_uses_api_then_auth_scope(self, client, mock_rate_limiter):
        client.post("/auth/register", json=REGISTER_BODY)

        scopes = [c.args[0] for c in mock_rate_limiter.check_rate_limit.call_args_list]
        assert scopes == ["api", "auth"]


class TestVerifyEmail:
    def test_verifies(self, client, sent_verification_token):
        client.post("/auth/register", json=REGISTER_BODY)

        response = client.get("/auth/verify-email", params={"token": sent_verification_token()})

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Email verified successfully"}

    def test_repeat_click(self, client, sent_verification_token):
        client.post("/auth/register", json=REGISTER_BODY)
        token = sent_verification_token()
        client.get("/auth/verify-email", params={"token": token})

        response = client.get("/auth/verify-email", params={"token": token})

        assert response.status_code == 200
        assert response.json()["message"] == "Email already verified"

    def test_missing_token(self, client):
        response = client.get("/auth/verify-email")

        assert response.status_code == 400
        assert response.json()["message"] == "Verification token missing"

    def test_invalid_token(self, client):
        response = client.get("/auth/verify-email", params={"token": "nope"})

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid or expired verification token"


class TestLogin:
    def test_success_body_and_cookie(self, client, sent_verification_token, codec):
        _register_and_verify(client, sent_verification_token)

        response = _login(client)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["user"]["email"] == "grace@example.com"
        assert codec.verify_access(body["accessToken"]).email == "grace@example.com"

        cookie = response.headers["set-cookie"]
        assert cookie.startswith("refreshToken=")
        assert "HttpOnly" in cookie
        assert "Path=/" in cookie
        assert "Max-Age=604800" in cookie
        assert "samesite=lax" in cookie.lower()
        # Not production, so not Secure
        assert "Secure" not in cookie

    def test_unverified(self, client):
        client.post("/auth/register", json=REGISTER_BODY)

        response = _login(client)

        assert response.status_code == 403
        assert response.json()["code"] == "EMAIL_NOT_VERIFIED"
        assert "set-cookie" not in response.headers

    def test_wrong_password_and_unknown_email_match(self, client, sent_verification_token):
        _register_and_verify(client, sent_verification_token)

        wrong = _login(client, password="wrong-password")
        unknown = _login(client, email="nobody@example.com")

        assert wrong.status_code == unknown.status_code == 400
        assert wrong.json() == unknown.json()

    def test_production_cookie_attributes(self, client, config, sent_verification_token):
        _register_and_verify(client, sent_verification_token)
        config.environment = "production"
        config.cookie_domain = "example.com"

        cookie = _login(client).headers["set-cookie"]

        assert "Secure" in cookie
        assert "samesite=none" in cookie.lower()
        assert "Domain=example.com" in cookie


class TestRefresh:
    def test_rotates_cookie(self, client, sent_verification_token, codec):
        _register_and_verify(client, sent_verification_token)
        _login(client)
        original = client.cookies.get("refreshToken")

        response = client.post("/auth/refresh")

        assert response.status_code == 200
        assert codec.verify_access(response.json()["accessToken"]).username == "grace"
        assert client.cookies.get("refreshToken") != original

    def test_missing_cookie(self, client):
        response = client.post("/auth/refresh")

        assert response.status_code == 401
        assert response.json()["message"] == "Missing refresh token"

    def test_malformed_cookie(self, client):
        _use_refresh_cookie(client, "garbage")

        response = client.post("/auth/refresh")

        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_TOKEN"

    def test_replay_after_rotation(self, client, sent_verification_token):
        _register_and_verify(client, sent_verification_token)
        _login(client)
        stolen = client.cookies.get("refreshToken")
        client.post("/auth/refresh")

        _use_refresh_cookie(client, stolen)
        response = client.post("/auth/refresh")

        assert response.status_code == 403
        assert response.json()["code"] == "REFRESH_TOKEN_REUSED"

    def test_second_login_invalidates_first_cookie(self, client, sent_verification_token):
        _register_and_verify(client, sent_verification_token)
        _login(client)
        first = client.cookies.get("refreshToken")
        _login(client)

        _use_refresh_cookie(client, first)
        response = client.post("/auth/refresh")

        assert response.status_code == 403


class TestLogout:
    def test_clears_cookie_and_session(self, client, auth_db, sent_verification_token):
        _register_and_verify(client, sent_verification_token)
        _login(client)
        token = client.cookies.get("refreshToken")

        response = client.post("/auth/logout")

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Logged out successfully"}
        cookie = response.headers["set-cookie"]
        assert cookie.startswith("refreshToken=")
        assert "Max-Age=0" in cookie
        assert auth_db.get_user_by_email("grace@example.com").refresh_token is None

        _use_refresh_cookie(client, token)
        assert client.post("/auth/refresh").status_code == 403

    def test_without_cookie_still_ok(self, client):
        response = client.post("/auth/logout")

        assert response.status_code == 200


class TestMe:
    def test_returns_claims(self, client, sent_verification_token):
        _register_and_verify(client, sent_verification_token)
        access_token = _login(client).json()["accessToken"]

        response = client.get("/auth/me", headers={"Authorization": f"Bearer {access_token}"})

        assert response.status_code == 200
        user = response.json()["user"]
        assert user["email"] == "grace@example.com"
        assert user["username"] == "grace"
        assert user["role"] == "user"

    def test_requires_token(self, client):
        response = client.get("/auth/me")

        assert response.status_code == 401
        assert response.json()["code"] == "NOT_AUTHENTICATED"

    def test_refresh_token_is_not_a_bearer(self, client, sent_verification_token):
        _register_and_verify(client, sent_verification_token)
        _login(client)
        refresh_token = client.cookies.get("refreshToken")

        response = client.get("/auth/me", headers={"Authorization": f"Bearer {refresh_token}"})

        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_TOKEN"


class TestSecurityEvents:
    def _bearer(self, client, auth_db, sent_verification_token, role=Role.USER):
        _register_and_verify(client, sent_verification_token)
        user = auth_db.get_user_by_email("grace@example.com")
        auth_db.promote(user.id, role)
        access_token = _login(client).json()["accessToken"]
        return {"Authorization": f"Bearer {access_token}"}

    def test_forbidden_for_users(self, client, auth_db, sent_verification_token):
        headers = self._bearer(client, auth_db, sent_verification_token)

        response = client.get("/auth/security-events", headers=headers)

        assert response.status_code == 403
        assert response.json()["code"] == "FORBIDDEN"

    def test_admin_can_query(self, client, auth_db, sent_verification_token, mock_security_logger):
        headers = self._bearer(client, auth_db, sent_verification_token, role=Role.ADMIN)
        mock_security_logger.get_recent_events.return_value = [
            {"id": 1, "event_type": "logout", "email": "grace@example.com"}
        ]

        response = client.get(
            "/auth/security-events",
            params={"event_type": "logout", "limit": 5},
            headers=headers,
        )

        assert response.status_code == 200
        assert response.json()["events"][0]["event_type"] == "logout"
        mock_security_logger.get_recent_events.assert_called_once_with(
            email=None, event_type=SecurityEvent.LOGOUT, limit=5
        )


class TestApiRateLimit:
    """Every mounted route counts against the per-IP api scope."""

    @pytest.mark.parametrize(
        "method, path",
        [
            ("get", "/auth/verify-email?token=x"),
            ("post", "/auth/refresh"),
            ("post", "/auth/logout"),
            ("get", "/health"),
            ("get", "/health/db"),
        ],
    )
    def test_counted_in_api_scope(self, client, mock_rate_limiter, method, path):
        getattr(client, method)(path)

        mock_rate_limiter.check_rate_limit.assert_any_call("api", "unknown")

    def test_verify_and_refresh_each_counted(self, client, mock_rate_limiter):
        client.get("/auth/verify-email", params={"token": "x"})
        client.post("/auth/refresh")

        scopes = [c.args[0] for c in mock_rate_limiter.check_rate_limit.call_args_list]
        assert scopes == ["api", "api"]

    def test_verify_email_over_limit(self, client, mock_rate_limiter, mock_security_logger):
        mock_rate_limiter.check_rate_limit.side_effect = RateLimitedError(retry_after_seconds=60)

        response = client.get("/auth/verify-email", params={"token": "guess"})

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "60"
        details = mock_security_logger.log.call_args.kwargs["details"]
        assert details == {"path": "/auth/verify-email", "scope": "api"}

    def test_root_not_counted(self, client, mock_rate_limiter):
        client.get("/")

        mock_rate_limiter.check_rate_limit.assert_not_called()
