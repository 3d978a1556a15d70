"""
Tests for login, logout and the current-user endpoint
"""

from fastapi import status

from tenanthub.domain.sqlalchemy_models import SessionToken, TenantStatus
from tenanthub.core.security import hash_token

from helpers import PASSWORD, bearer, login, make_user


class TestLogin:
    """Test POST /auth/login"""

    def test_login_success(self, client, seed):
        """Valid credentials return the profile, the token and a session cookie"""
        response = client.post("/auth/login", json={"email": "user@acme.io", "password": PASSWORD})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert data["user"]["email"] == "user@acme.io"
        assert data["user"]["role"] == "USER"
        assert data["user"]["tenant"]["slug"] == "acme"
        assert "password_hash" not in data["user"]
        assert len(data["token"]) == 64

        cookie = response.headers["set-cookie"]
        assert f"session={data['token']}" in cookie
        assert "HttpOnly" in cookie
        assert "Max-Age=604800" in cookie
        assert "Path=/" in cookie
        assert "samesite=lax" in cookie.lower()

    def test_login_stores_only_token_digest(self, client, seed, db_session):
        token = login(client, "user@acme.io")

        rows = db_session.query(SessionToken).all()
        assert len(rows) == 1
        assert rows[0].token_hash == hash_token(token)
        assert rows[0].token_hash != token

    def test_login_updates_last_login(self, client, seed, db_session):
        assert seed.acme_user.last_login is None
        login(client, "user@acme.io")

        db_session.expire_all()
        db_session.refresh(seed.acme_user)
        assert seed.acme_user.last_login is not None

    def test_login_wrong_password(self, client, seed):
        """Wrong password gets a generic 401 and no session"""
        response = client.post("/auth/login", json={"email": "user@acme.io", "password": "nope"})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        body = response.json()
        assert body["detail"]["code"] == "unauthorized"
        assert body["detail"]["message"] == "Invalid credentials"
        assert "token" not in body
        assert "user" not in body
        assert "set-cookie" not in response.headers

    def test_unknown_email_indistinguishable_from_wrong_password(self, client, seed):
        wrong_password = client.post("/auth/login", json={"email": "user@acme.io", "password": "nope"})
        unknown_email = client.post("/auth/login", json={"email": "ghost@acme.io", "password": "nope"})

        assert wrong_password.status_code == unknown_email.status_code == status.HTTP_401_UNAUTHORIZED
        assert wrong_password.json() == unknown_email.json()

    def test_inactive_user_rejected(self, client, seed, db_session):
        make_user(db_session, "gone@acme.io", tenant=seed.acme, is_active=False)
        db_session.commit()

        response = client.post("/auth/login", json={"email": "gone@acme.io", "password": PASSWORD})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["detail"]["message"] == "Invalid credentials"

    def test_suspended_tenant_rejected(self, client, seed, db_session):
        seed.acme.status = TenantStatus.SUSPENDED
        db_session.commit()

        response = client.post("/auth/login", json={"email": "user@acme.io", "password": PASSWORD})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_missing_fields(self, client, seed):
        response = client.post("/auth/login", json={"email": "user@acme.io"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        detail = response.json()["detail"]
        assert detail["code"] == "validation_error"
        assert "password" in detail["meta"]["fields"]

    def test_empty_password(self, client, seed):
        response = client.post("/auth/login", json={"email": "user@acme.io", "password": ""})

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_same_email_in_two_tenants(self, client, seed, db_session):
        """The tenant slug picks the account; without it the login is ambiguous"""
        make_user(db_session, "shared@x.io", tenant=seed.acme, name="Acme Shared")
        make_user(db_session, "shared@x.io", tenant=seed.globex, name="Globex Shared")
        db_session.commit()

        ambiguous = client.post("/auth/login", json={"email": "shared@x.io", "password": PASSWORD})
        assert ambiguous.status_code == status.HTTP_401_UNAUTHORIZED

        response = client.post(
            "/auth/login",
            json={"email": "shared@x.io", "password": PASSWORD, "tenantSlug": "globex"},
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["user"]["name"] == "Globex Shared"

    def test_tenant_slug_must_match(self, client, seed):
        response = client.post(
            "/auth/login",
            json={"email": "user@acme.io", "password": PASSWORD, "tenantSlug": "globex"},
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_super_admin_has_no_tenant(self, client, seed):
        response = client.post("/auth/login", json={"email": "root@hub.io", "password": PASSWORD})

        assert response.status_code == status.HTTP_200_OK
        user = response.json()["user"]
        assert user["role"] == "SUPER_ADMIN"
        assert user["tenant_id"] is None
        assert user["tenant"] is None


class TestMe:
    """Test GET /auth/me"""

    def test_me_with_cookie(self, client, seed):
        login(client, "admin@acme.io")

        response = client.get("/auth/me")

        assert response.status_code == status.HTTP_200_OK
        user = response.json()["user"]
        assert user["email"] == "admin@acme.io"
        assert user["role"] == "ADMIN"
        assert user["tenant"]["id"] == seed.acme.id

    def test_me_with_bearer_token(self, client, seed):
        token = login(client, "user@globex.io")
        client.cookies.clear()

        response = client.get("/auth/me", headers=bearer(token))

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["user"]["email"] == "user@globex.io"

    def test_bearer_wins_over_stale_cookie(self, client, seed):
        """A browser cookie from an old session does not shadow an explicit token"""
        token = login(client, "user@globex.io")
        client.cookies.clear()

        response = client.get("/auth/me", headers={**bearer(token), "Cookie": "session=" + "f" * 64})

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["user"]["email"] == "user@globex.io"

    def test_me_without_session(self, client, seed):
        response = client.get("/auth/me")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["detail"]["code"] == "unauthorized"

    def test_me_invalid_session_clears_cookie(self, client, seed):
        response = client.get("/auth/me", headers=bearer("f" * 64))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert "Max-Age=0" in response.headers["set-cookie"]

    def test_me_after_user_deactivated(self, client, seed, db_session):
        token = login(client, "user@acme.io")
        seed.acme_user.is_active = False
        db_session.commit()

        response = client.get("/auth/me", headers=bearer(token))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestLogout:
    """Test POST and GET /auth/logout"""

    def test_logout_revokes_session(self, client, seed):
        token = login(client, "user@acme.io")

        response = client.post("/auth/logout", headers=bearer(token))

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"success": True}
        assert "Max-Age=0" in response.headers["set-cookie"]

        client.cookies.clear()
        assert client.get("/auth/me", headers=bearer(token)).status_code == status.HTTP_401_UNAUTHORIZED

    def test_logout_without_session(self, client, seed):
        response = client.post("/auth/logout")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"success": True}

    def test_logout_twice(self, client, seed):
        token = login(client, "user@acme.io")
        client.cookies.clear()

        first = client.post("/auth/logout", headers=bearer(token))
        second = client.post("/auth/logout", headers=bearer(token))

        assert first.status_code == second.status_code == status.HTTP_200_OK

    def test_logout_leaves_other_sessions(self, client, seed):
        first = login(client, "user@acme.io")
        second = login(client, "user@acme.io")
        client.cookies.clear()

        client.post("/auth/logout", headers=bearer(first))

        assert client.get("/auth/me", headers=bearer(first)).status_code == status.HTTP_401_UNAUTHORIZED
        assert client.get("/auth/me", headers=bearer(second)).status_code == status.HTTP_200_OK

    def test_logout_redirect_to_product_login(self, client, seed):
        """redirect=educational sends the browser to the configured login page"""
        token = login(client, "user@acme.io")

        response = client.get("/auth/logout?redirect=educational", follow_redirects=False)

        assert response.status_code == status.HTTP_307_TEMPORARY_REDIRECT
        assert response.headers["location"] == "http://edu.example.com/login"
        assert "Max-Age=0" in response.headers["set-cookie"]

        client.cookies.clear()
        assert client.get("/auth/me", headers=bearer(token)).status_code == status.HTTP_401_UNAUTHORIZED

    def test_logout_redirect_return_url_wins(self, client, seed):
        response = client.get(
            "/auth/logout",
            params={"redirect": "educational", "returnUrl": "http://shop.example.com/bye"},
            follow_redirects=False,
        )

        assert response.status_code == status.HTTP_307_TEMPORARY_REDIRECT
        assert response.headers["location"] == "http://shop.example.com/bye"

    def test_logout_redirect_unknown_product(self, client, seed):
        response = client.get("/auth/logout?redirect=nope", follow_redirects=False)

        assert response.status_code == status.HTTP_307_TEMPORARY_REDIRECT
        assert response.headers["location"] == "/"
