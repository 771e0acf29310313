"""
Auth gate API tests
- POST /api/auth/register, /verify-email, /login, /logout
- POST /api/auth/google (tokeninfo is monkeypatched)
- POST /api/auth/forgot-password, /reset-password
- GET /api/auth/me
"""
import pytest

from app.core.config import Settings
from app.core.errors import AuthError
from app.models.user import User
from app.services import auth as auth_service
from app.services.auth import IdentityProvider
from tests.fakes import TEST_EMAIL, TEST_PASSWORD, latest_token


class FakeTokenInfo:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def json(self):
        return self.payload


@pytest.fixture
def google_tokeninfo(monkeypatch):
    claims = {
        "aud": "imaginarium-web",
        "email": "painter@gmail.com",
        "email_verified": "true",
        "name": "Painter",
    }

    def fake_get(url, params=None, timeout=None):
        if params["id_token"] == "bad-token":
            return FakeTokenInfo({"error": "invalid_token"}, status_code=400)
        return FakeTokenInfo(claims)

    monkeypatch.setattr(auth_service.requests, "get", fake_get)
    return claims


class TestSignUp:

    def test_register_does_not_grant_session(self, client):
        resp = client.post("/api/auth/register", json={"email": TEST_EMAIL, "password": TEST_PASSWORD})
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["access_token"] is None
        assert data["user"]["email_verified"] is False
        assert "verification email" in data["message"]

    def test_duplicate_email(self, client):
        client.post("/api/auth/register", json={"email": TEST_EMAIL, "password": TEST_PASSWORD})
        resp = client.post("/api/auth/register", json={"email": TEST_EMAIL, "password": TEST_PASSWORD})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "This email is already in use."

    def test_weak_password(self, client):
        resp = client.post("/api/auth/register", json={"email": TEST_EMAIL, "password": "123"})
        assert resp.status_code == 400
        assert "too weak" in resp.json()["detail"]

    def test_invalid_email_format(self, client):
        resp = client.post("/api/auth/register", json={"email": "not-an-email", "password": TEST_PASSWORD})
        assert resp.status_code == 422


class TestSignIn:

    def test_unverified_sign_in_is_rejected(self, client):
        client.post("/api/auth/register", json={"email": TEST_EMAIL, "password": TEST_PASSWORD})
        resp = client.post("/api/auth/login", json={"email": TEST_EMAIL, "password": TEST_PASSWORD})
        assert resp.status_code == 401
        assert "verify your email" in resp.json()["detail"]

    def test_verified_sign_in(self, client, db):
        client.post("/api/auth/register", json={"email": TEST_EMAIL, "password": TEST_PASSWORD})
        client.post("/api/auth/verify-email", json={"token": latest_token(db, "verify_email")})

        resp = client.post("/api/auth/login", json={"email": TEST_EMAIL, "password": TEST_PASSWORD})
        assert resp.status_code == 200, resp.text
        token = resp.json()["access_token"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"}).json()
        assert me["user"]["email"] == TEST_EMAIL
        assert me["loading"] is False

    def test_wrong_password(self, client, auth_headers):
        resp = client.post("/api/auth/login", json={"email": TEST_EMAIL, "password": "wrong-pass"})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid email or password."

    def test_unknown_user(self, client):
        resp = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": TEST_PASSWORD})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid email or password."

    def test_email_password_disabled(self, client, settings):
        settings.email_password_enabled = False
        resp = client.post("/api/auth/register", json={"email": TEST_EMAIL, "password": TEST_PASSWORD})
        assert resp.status_code == 400
        assert "not enabled" in resp.json()["detail"]

    def test_verification_token_single_use(self, client, db):
        client.post("/api/auth/register", json={"email": TEST_EMAIL, "password": TEST_PASSWORD})
        token = latest_token(db, "verify_email")
        assert client.post("/api/auth/verify-email", json={"token": token}).status_code == 200
        assert client.post("/api/auth/verify-email", json={"token": token}).status_code == 400


class TestGoogleSignIn:

    def test_creates_verified_user(self, client, google_tokeninfo):
        resp = client.post("/api/auth/google", json={"id_token": "good-token"})
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["user"]["provider"] == "google.com"
        assert data["user"]["email_verified"] is True
        assert data["access_token"]

    def test_popup_closed(self, client, google_tokeninfo):
        resp = client.post("/api/auth/google", json={})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Google Sign-In popup was closed. Please try again."

    def test_invalid_token(self, client, google_tokeninfo):
        resp = client.post("/api/auth/google", json={"id_token": "bad-token"})
        assert resp.status_code == 401
        assert resp.json()["detail"].startswith("Invalid credentials.")

    def test_wrong_audience(self, client, google_tokeninfo):
        google_tokeninfo["aud"] = "someone-elses-app"
        resp = client.post("/api/auth/google", json={"id_token": "good-token"})
        assert resp.status_code == 401

    def test_non_json_tokeninfo(self, client, monkeypatch):
        class HtmlResponse:
            status_code = 200

            def json(self):
                raise ValueError("Expecting value: line 1 column 1 (char 0)")

        monkeypatch.setattr(auth_service.requests, "get", lambda url, params=None, timeout=None: HtmlResponse())
        resp = client.post("/api/auth/google", json={"id_token": "good-token"})
        assert resp.status_code == 401
        assert resp.json()["detail"].startswith("Invalid credentials.")


class TestSignOut:

    def test_logout_revokes_session(self, client, auth_headers):
        assert client.get("/api/gallery", headers=auth_headers).status_code == 200
        assert client.post("/api/auth/logout", headers=auth_headers).status_code == 200
        assert client.get("/api/gallery", headers=auth_headers).status_code == 401
        assert client.get("/api/auth/me", headers=auth_headers).json()["user"] is None

    def test_protected_routes_require_token(self, client):
        assert client.get("/api/gallery").status_code == 401
        assert client.get("/api/settings/s3", headers={"Authorization": "Bearer nope"}).status_code == 401


class TestPasswordReset:

    def test_unknown_email_same_message(self, client, auth_headers):
        known = client.post("/api/auth/forgot-password", json={"email": TEST_EMAIL})
        unknown = client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"})
        assert known.status_code == unknown.status_code == 200
        assert known.json()["message"] == unknown.json()["message"]

    def test_reset_flow(self, client, db, auth_headers):
        client.post("/api/auth/forgot-password", json={"email": TEST_EMAIL})
        token = latest_token(db, "reset_password")

        resp = client.post("/api/auth/reset-password", json={"token": token, "password": "brand-new-pass"})
        assert resp.status_code == 200, resp.text

        old = client.post("/api/auth/login", json={"email": TEST_EMAIL, "password": TEST_PASSWORD})
        assert old.status_code == 401
        new = client.post("/api/auth/login", json={"email": TEST_EMAIL, "password": "brand-new-pass"})
        assert new.status_code == 200

        reused = client.post("/api/auth/reset-password", json={"token": token, "password": "another-pass"})
        assert reused.status_code == 400

    def test_reset_weak_password(self, client):
        resp = client.post("/api/auth/reset-password", json={"token": "whatever", "password": "1"})
        assert resp.status_code == 400


class TestIdentityProvider:

    def test_concurrent_sign_up_hits_unique_email(self, db, monkeypatch):
        provider = IdentityProvider(db, Settings())
        provider.create_user(TEST_EMAIL, TEST_PASSWORD)

        # 두 번째 요청이 중복 검사를 먼저 통과한 상황
        monkeypatch.setattr(provider, "find_by_email", lambda email: None)
        with pytest.raises(AuthError) as exc:
            provider.create_user(TEST_EMAIL, TEST_PASSWORD)
        assert exc.value.code == "auth/email-already-in-use"
        assert db.query(User).count() == 1
