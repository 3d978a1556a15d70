"""
Tests for the session service: issue, verify, revoke, expire
"""

from datetime import timedelta

from fastapi import status

from tenanthub.domain.sqlalchemy_models import SessionToken, utcnow
from tenanthub.services import session_service

from helpers import bearer, login


class TestSessionLifecycle:
    """Issue -> verify -> revoke against the service layer"""

    def test_verify_fresh_session(self, db_session, seed):
        token = session_service.create_session(db_session, seed.acme_admin.id)
        db_session.commit()

        auth = session_service.verify(db_session, token)

        assert auth is not None
        assert auth.user_id == seed.acme_admin.id
        assert auth.role == "ADMIN"
        assert auth.tenant_id == seed.acme.id
        assert auth.tenant.slug == "acme"
        assert auth.tenant.status == "ACTIVE"

    def test_session_lifetime_is_seven_days(self, db_session, seed):
        before = utcnow()
        session_service.create_session(db_session, seed.acme_user.id)
        db_session.commit()

        row = db_session.query(SessionToken).one()
        assert before + timedelta(days=7) <= row.expires_at <= utcnow() + timedelta(days=7)
        assert row.revoked_at is None

    def test_verify_rejects_missing_and_unknown(self, db_session, seed):
        assert session_service.verify(db_session, None) is None
        assert session_service.verify(db_session, "") is None
        assert session_service.verify(db_session, "0" * 64) is None

    def test_verify_after_revoke(self, db_session, seed):
        token = session_service.create_session(db_session, seed.acme_user.id)
        session_service.revoke(db_session, token)
        db_session.commit()
        db_session.expire_all()

        assert session_service.verify(db_session, token) is None
        assert db_session.query(SessionToken).one().revoked_at is not None

    def test_revoke_is_idempotent(self, db_session, seed):
        token = session_service.create_session(db_session, seed.acme_user.id)
        session_service.revoke(db_session, token)
        first = db_session.query(SessionToken).one().revoked_at

        session_service.revoke(db_session, token)
        session_service.revoke(db_session, "not-a-session")
        session_service.revoke(db_session, None)
        db_session.expire_all()

        assert db_session.query(SessionToken).one().revoked_at == first

    def test_expired_session_rejected(self, db_session, seed, monkeypatch):
        token = session_service.create_session(db_session, seed.acme_user.id)
        db_session.commit()

        later = utcnow() + timedelta(days=7, minutes=1)
        monkeypatch.setattr(session_service, "utcnow", lambda: later)

        assert session_service.verify(db_session, token) is None

    def test_session_valid_just_before_expiry(self, db_session, seed, monkeypatch):
        token = session_service.create_session(db_session, seed.acme_user.id)
        db_session.commit()

        later = utcnow() + timedelta(days=6, hours=23)
        monkeypatch.setattr(session_service, "utcnow", lambda: later)

        assert session_service.verify(db_session, token) is not None

    def test_verify_does_not_write(self, db_session, seed):
        token = session_service.create_session(db_session, seed.acme_user.id)
        db_session.commit()

        session_service.verify(db_session, token)

        assert not db_session.dirty
        assert not db_session.new


class TestSessionCleanup:
    """Test POST /auth/sessions/cleanup"""

    def test_cleanup_deletes_only_expired(self, client, seed, db_session):
        db_session.add_all([
            SessionToken(user_id=seed.acme_user.id, token_hash="a" * 64, expires_at=utcnow() - timedelta(days=1)),
            SessionToken(user_id=seed.acme_user.id, token_hash="b" * 64, expires_at=utcnow() + timedelta(days=1)),
        ])
        db_session.commit()
        token = login(client, "root@hub.io")

        response = client.post("/auth/sessions/cleanup", headers=bearer(token))

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"deleted": 1}
        db_session.expire_all()
        hashes = {r.token_hash for r in db_session.query(SessionToken).all()}
        assert "b" * 64 in hashes
        assert "a" * 64 not in hashes

    def test_cleanup_requires_super_admin(self, client, seed):
        token = login(client, "admin@acme.io")

        response = client.post("/auth/sessions/cleanup", headers=bearer(token))

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["detail"]["code"] == "forbidden"
