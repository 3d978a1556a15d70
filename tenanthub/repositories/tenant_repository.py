# tenanthub/repositories/tenant_repository.py
from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload
from tenanthub.core.cache import cached, invalidate_on_commit
from tenanthub.core.config import settings
from tenanthub.domain.sqlalchemy_models import (
    Plan, PlanProduct, Tenant, TenantProduct, TenantStatus, User,
)

_SLUG_KEY = "tenant:by-slug:{slug}"


def tenant_to_dict(t: Tenant, active_users: int | None = None) -> dict:
    data = {
        "id": t.id,
        "name": t.name,
        "slug": t.slug,
        "status": t.status.value,
        "max_users": t.max_users,
        "created_at": t.created_at.isoformat() if t.created_at else None,
        "plan": {"id": t.plan.id, "name": t.plan.name, "slug": t.plan.slug} if t.plan else None,
    }
    if active_users is not None:
        data["active_users"] = active_users
    return data


def _active_user_rows(db: Session, tenant_id: str) -> list[dict]:
    rows = db.scalars(
        select(User).where(User.tenant_id == tenant_id, User.is_active.is_(True)).order_by(User.email)
    ).all()
    return [
        {
            "id": u.id,
            "email": u.email,
            "name": u.name,
            "role": u.role.value,
            "last_login": u.last_login.isoformat() if u.last_login else None,
        }
        for u in rows
    ]


@cached(_SLUG_KEY, ttl=settings.TENANT_CACHE_TTL)
def get_summary_by_slug(db: Session, *, slug: str) -> dict | None:
    """Tenant fields and plan only; this is the part that is cached."""
    t = db.scalars(select(Tenant).options(joinedload(Tenant.plan)).where(Tenant.slug == slug)).first()
    return tenant_to_dict(t) if t else None


def get_by_slug(db: Session, slug: str) -> dict | None:
    data = get_summary_by_slug(db, slug=slug)
    if data is None:
        return None
    return {**data, "users": _active_user_rows(db, data["id"])}


def get_by_id(db: Session, tenant_id: str) -> dict | None:
    t = db.scalars(select(Tenant).options(joinedload(Tenant.plan)).where(Tenant.id == tenant_id)).first()
    if not t:
        return None
    data = tenant_to_dict(t)
    data["users"] = _active_user_rows(db, t.id)
    return data


def get_row(db: Session, tenant_id: str) -> Tenant | None:
    return db.get(Tenant, tenant_id)


def list_all(db: Session) -> list[dict]:
    counts = (
        select(User.tenant_id, func.count(User.id).label("n"))
        .where(User.is_active.is_(True))
        .group_by(User.tenant_id)
        .subquery()
    )
    stmt = (
        select(Tenant, func.coalesce(counts.c.n, 0))
        .options(joinedload(Tenant.plan))
        .outerjoin(counts, counts.c.tenant_id == Tenant.id)
        .order_by(Tenant.created_at.desc())
    )
    return [tenant_to_dict(t, active_users=n) for t, n in db.execute(stmt).unique().all()]


def slug_exists(db: Session, slug: str) -> bool:
    return db.scalar(select(func.count(Tenant.id)).where(Tenant.slug == slug)) > 0


def forget_cached(db: Session, *slugs: str) -> None:
    """Drop the by-slug cache entries once the current transaction commits."""
    invalidate_on_commit(db, *(_SLUG_KEY.format(slug=s) for s in slugs))


def set_status(db: Session, tenant: Tenant, status: TenantStatus) -> Tenant:
    tenant.status = status
    db.flush()
    forget_cached(db, tenant.slug)
    return tenant


def count_users_by_role(db: Session, tenant_id: str) -> dict[str, int]:
    stmt = select(User.role, func.count(User.id)).where(User.tenant_id == tenant_id).group_by(User.role)
    return {role.value: n for role, n in db.execute(stmt).all()}


def load_with_entitlements(db: Session, tenant_id: str) -> Tenant | None:
    """Tenant, its plan's PlanProducts and its own TenantProducts in one round trip."""
    stmt = (
        select(Tenant)
        .options(
            joinedload(Tenant.plan).joinedload(Plan.plan_products).joinedload(PlanProduct.product),
            joinedload(Tenant.tenant_products).joinedload(TenantProduct.product),
        )
        .where(Tenant.id == tenant_id)
    )
    return db.execute(stmt).unique().scalars().first()


def list_active_with_entitlements(db: Session) -> list[Tenant]:
    stmt = (
        select(Tenant)
        .options(
            joinedload(Tenant.plan).joinedload(Plan.plan_products),
            joinedload(Tenant.tenant_products),
        )
        .where(Tenant.status == TenantStatus.ACTIVE)
    )
    return list(db.execute(stmt).unique().scalars().all())
