"""
Session issuance, verification and revocation.

A session is an opaque random token handed to the client (cookie or bearer
header). Only its SHA-256 digest is persisted. Verification never writes.
"""
from __future__ import annotations
from datetime import timedelta
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from tenanthub.core.config import settings
from tenanthub.core.logger import log_security_event, logger
from tenanthub.core.security import generate_session_token, hash_token
from tenanthub.domain.models import Authed, TenantRef
from tenanthub.domain.sqlalchemy_models import utcnow
from tenanthub.repositories import session_repo


def create_session(db: Session, user_id: str) -> str:
    """Persist a new session for `user_id` and return the raw token."""
    token = generate_session_token()
    session_repo.create(
        db,
        user_id=user_id,
        token_hash=hash_token(token),
        expires_at=utcnow() + timedelta(days=settings.SESSION_TTL_DAYS),
    )
    return token


def verify(db: Session, token: str | None) -> Authed | None:
    """
    Resolve a raw session token to the caller's identity.

    Returns None when the token is missing, unknown, expired or revoked, or
    when its user has been deactivated.
    """
    if not token:
        return None
    row = session_repo.get_with_user(db, hash_token(token))
    if row is None or row.revoked_at is not None or row.expires_at <= utcnow():
        return None
    user = row.user
    if user is None or not user.is_active:
        return None
    tenant = user.tenant
    return Authed(
        user_id=user.id,
        email=user.email,
        name=user.name,
        role=user.role.value,
        tenant_id=user.tenant_id,
        tenant=TenantRef(
            id=tenant.id,
            name=tenant.name,
            slug=tenant.slug,
            status=tenant.status.value,
        ) if tenant else None,
    )


def revoke(db: Session, token: str | None) -> None:
    """Revoke a session. Idempotent; never raises."""
    if not token:
        return
    try:
        n = session_repo.mark_revoked(db, hash_token(token), utcnow())
        db.flush()
    except SQLAlchemyError:
        logger.exception("Session revocation failed (ignored)")
        db.rollback()
        return
    log_security_event(action="logout", result="success" if n else "noop")


def cleanup_expired_sessions(db: Session) -> int:
    n = session_repo.delete_expired(db, utcnow())
    logger.info("Expired sessions removed", extra={"meta": {"count": n}})
    return n
