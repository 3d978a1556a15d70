"""
Authentication service for user login.

Rules:
- Validates credentials securely
- Returns a uniform failure (no "user not found vs wrong password" distinction)
- Logs security events (login attempts)
- NEVER logs plaintext passwords, hashes or tokens

Email policy: an email is unique within a tenant. A login carrying a tenant
slug resolves the account of that tenant. Without one, the cross-tenant
(tenant-less) account wins; otherwise a single tenant-scoped account is
used, and several are treated as ambiguous.
"""
from __future__ import annotations
from sqlalchemy.orm import Session
from tenanthub.core.logger import log_security_event
from tenanthub.core.security import verify_password
from tenanthub.domain.models import AuthUser, TenantRef
from tenanthub.domain.sqlalchemy_models import TenantStatus, User, utcnow
from tenanthub.repositories import user_repo
from tenanthub.services import session_service


def _fail(reason: str, email: str, user: User | None = None) -> None:
    log_security_event(
        action="login",
        result="failure",
        user_id=user.id if user else None,
        tenant_id=user.tenant_id if user else None,
        meta={"reason": reason, "email": email},
        level="warning",
    )
    return None


def public_profile(user: User) -> AuthUser:
    tenant = user.tenant
    return AuthUser(
        id=user.id,
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


def authenticate(
    db: Session,
    email: str,
    password: str,
    tenant_slug: str | None = None,
) -> dict | None:
    """
    Authenticate a user and open a session.

    Args:
        db: Database session
        email: Login email
        password: Plaintext password
        tenant_slug: Optional tenant the account belongs to

    Returns:
        {"user": AuthUser, "token": raw session token}, or None on any failure.
        Unknown email, wrong password, inactive user or inactive tenant all
        return the same None.
    """
    candidates = user_repo.find_login_candidates(db, email, tenant_slug)
    user = user_repo.pick_account(candidates, tenant_slug)

    if not verify_password(password, user.password_hash if user else None):
        return _fail("invalid_credentials" if user else "user_not_found", email, user)

    if not user.is_active:
        return _fail("user_disabled", email, user)

    if user.tenant is not None and user.tenant.status != TenantStatus.ACTIVE:
        return _fail("tenant_inactive", email, user)

    token = session_service.create_session(db, user.id)
    user_repo.touch_last_login(db, user, utcnow())

    log_security_event(
        action="login",
        result="success",
        user_id=user.id,
        tenant_id=user.tenant_id,
        meta={"role": user.role.value},
    )

    return {"user": public_profile(user), "token": token}
