# tenanthub/repositories/user_repo.py
from datetime import datetime
from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload
from tenanthub.domain.sqlalchemy_models import Tenant, User


def find_login_candidates(db: Session, email: str, tenant_slug: str | None = None) -> list[User]:
    """Accounts a login with this email could mean, tenant eager-loaded."""
    stmt = select(User).options(joinedload(User.tenant)).where(User.email == email)
    if tenant_slug:
        stmt = stmt.join(Tenant, User.tenant_id == Tenant.id).where(Tenant.slug == tenant_slug)
    return list(db.scalars(stmt).unique().all())


def pick_account(candidates: list[User], tenant_slug: str | None) -> User | None:
    """
    The account an email (and optional tenant slug) resolves to.

    Candidates already filtered by slug resolve to their first entry. Without
    a slug the tenant-less account wins, then a lone tenant account; several
    tenant accounts are ambiguous and resolve to None.
    """
    if tenant_slug:
        return candidates[0] if candidates else None
    global_accounts = [u for u in candidates if u.tenant_id is None]
    if global_accounts:
        return global_accounts[0]
    if len(candidates) == 1:
        return candidates[0]
    return None


def touch_last_login(db: Session, user: User, when: datetime) -> None:
    user.last_login = when
    db.flush()


def count_active(db: Session, tenant_id: str, since: datetime | None = None) -> int:
    stmt = select(func.count(User.id)).where(User.tenant_id == tenant_id, User.is_active.is_(True))
    if since is not None:
        stmt = stmt.where(User.last_login >= since)
    return db.scalar(stmt) or 0
