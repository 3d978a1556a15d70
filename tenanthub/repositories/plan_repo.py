# tenanthub/repositories/plan_repo.py
from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload
from tenanthub.domain.sqlalchemy_models import Plan, PlanProduct, Tenant, TenantProduct


def get(db: Session, plan_id: str) -> Plan | None:
    return db.get(Plan, plan_id)


def list_active_with_tenant_counts(db: Session) -> list[tuple[Plan, int]]:
    counts = (
        select(Tenant.plan_id, func.count(Tenant.id).label("n"))
        .group_by(Tenant.plan_id)
        .subquery()
    )
    stmt = (
        select(Plan, func.coalesce(counts.c.n, 0))
        .outerjoin(counts, counts.c.plan_id == Plan.id)
        .where(Plan.is_active.is_(True))
        .order_by(Plan.price.asc(), Plan.name)
    )
    return [(p, n) for p, n in db.execute(stmt).all()]


def load_with_tenants(db: Session, plan_id: str) -> Plan | None:
    stmt = select(Plan).options(joinedload(Plan.tenants)).where(Plan.id == plan_id)
    return db.execute(stmt).unique().scalars().first()


def count_tenants(db: Session, plan_id: str) -> int:
    return db.scalar(select(func.count(Tenant.id)).where(Tenant.plan_id == plan_id)) or 0


def list_plan_products(db: Session, plan_id: str) -> list[PlanProduct]:
    stmt = (
        select(PlanProduct)
        .options(joinedload(PlanProduct.product), joinedload(PlanProduct.plan))
        .where(PlanProduct.plan_id == plan_id)
        .order_by(PlanProduct.created_at.desc())
    )
    return list(db.scalars(stmt).all())


def get_plan_product(db: Session, plan_id: str, product_id: str) -> PlanProduct | None:
    stmt = (
        select(PlanProduct)
        .options(joinedload(PlanProduct.product))
        .where(PlanProduct.plan_id == plan_id, PlanProduct.product_id == product_id)
    )
    return db.scalars(stmt).first()


def count_tenants_using(db: Session, plan_id: str, product_id: str) -> int:
    """Tenants on the plan holding an active activation of the product."""
    stmt = (
        select(func.count(TenantProduct.id))
        .join(Tenant, Tenant.id == TenantProduct.tenant_id)
        .where(
            Tenant.plan_id == plan_id,
            TenantProduct.product_id == product_id,
            TenantProduct.is_active.is_(True),
        )
    )
    return db.scalar(stmt) or 0
