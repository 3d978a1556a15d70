"""
Plan catalog and plan-product associations.

A plan in use by any tenant cannot be deleted, and a product cannot leave a
plan while tenants on that plan still hold an active activation of it.
"""
from __future__ import annotations
from sqlalchemy.orm import Session
from tenanthub.core.db import flush_or_conflict
from tenanthub.core.errors import ConflictError, NotFoundError, ValidationError
from tenanthub.core.logger import log_security_event
from tenanthub.domain.sqlalchemy_models import Plan, PlanProduct
from tenanthub.repositories import plan_repo, product_repo, tenant_repository
from tenanthub.services.product_service import product_out

_UPDATABLE = ("name", "slug", "description", "features", "price", "max_users", "is_active")


def plan_out(p: Plan) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "slug": p.slug,
        "description": p.description,
        "features": p.features,
        "price": float(p.price) if p.price is not None else None,
        "max_users": p.max_users,
        "is_active": p.is_active,
        "created_at": p.created_at.isoformat() if p.created_at else None,
    }


def _get_or_404(db: Session, plan_id: str) -> Plan:
    plan = plan_repo.load_with_tenants(db, plan_id)
    if plan is None:
        raise NotFoundError("Plan not found")
    return plan


def list_plans(db: Session) -> list[dict]:
    """Active plans, cheapest first, each with its tenant count."""
    return [
        {**plan_out(p), "stats": {"total_tenants": n}}
        for p, n in plan_repo.list_active_with_tenant_counts(db)
    ]


def get_plan(db: Session, plan_id: str) -> dict:
    plan = _get_or_404(db, plan_id)
    tenants = sorted(plan.tenants, key=lambda t: t.created_at, reverse=True)
    return {
        **plan_out(plan),
        "tenants": [
            {
                "id": t.id,
                "name": t.name,
                "slug": t.slug,
                "status": t.status.value,
                "created_at": t.created_at.isoformat() if t.created_at else None,
            }
            for t in tenants
        ],
        "stats": {"total_tenants": len(tenants)},
    }


def create_plan(db: Session, fields: dict, actor_id: str | None = None) -> dict:
    if not fields.get("name") or not fields.get("slug"):
        raise ValidationError("name and slug are required")
    plan = Plan(**{k: v for k, v in fields.items() if k in _UPDATABLE and v is not None})
    db.add(plan)
    flush_or_conflict(db, "Slug already exists", {"slug": fields["slug"]})
    log_security_event(
        action="plan_create",
        result="success",
        user_id=actor_id,
        meta={"plan_id": plan.id, "slug": plan.slug},
    )
    return plan_out(plan)


def update_plan(db: Session, plan_id: str, changes: dict, actor_id: str | None = None) -> dict:
    """
    Partial update; only keys present in `changes` are written.

    Tenant lookups cache their plan's name and slug, so those entries are
    dropped when the transaction commits.
    """
    plan = _get_or_404(db, plan_id)
    for key in _UPDATABLE:
        if key in changes:
            setattr(plan, key, changes[key])
    flush_or_conflict(db, "Slug already exists", {"slug": changes.get("slug")})
    if plan.tenants:
        tenant_repository.forget_cached(db, *(t.slug for t in plan.tenants))
    log_security_event(
        action="plan_update",
        result="success",
        user_id=actor_id,
        meta={"plan_id": plan.id, "fields": sorted(k for k in changes if k in _UPDATABLE)},
    )
    return plan_out(plan)


def delete_plan(db: Session, plan_id: str, actor_id: str | None = None) -> None:
    """
    Raises:
        NotFoundError: unknown plan
        ConflictError: tenants still subscribe to the plan
    """
    plan = _get_or_404(db, plan_id)
    if plan.tenants:
        raise ConflictError(
            "Plan is in use by tenants",
            meta={"tenants_count": len(plan.tenants)},
        )
    db.delete(plan)
    db.flush()
    log_security_event(
        action="plan_delete",
        result="success",
        user_id=actor_id,
        meta={"plan_id": plan_id},
    )


def plan_product_out(pp: PlanProduct) -> dict:
    return {
        "id": pp.id,
        "plan_id": pp.plan_id,
        "product_id": pp.product_id,
        "config": pp.config,
        "is_active": pp.is_active,
        "product": product_out(pp.product),
    }


def list_plan_products(db: Session, plan_id: str) -> list[dict]:
    return [plan_product_out(pp) for pp in plan_repo.list_plan_products(db, plan_id)]


def add_plan_product(
    db: Session,
    plan_id: str,
    product_id: str | None,
    config=None,
    is_active: bool = True,
) -> dict:
    if not product_id:
        raise ValidationError("product_id is required")
    if plan_repo.get(db, plan_id) is None:
        raise NotFoundError("Plan not found")
    if product_repo.get(db, product_id) is None:
        raise NotFoundError("Product not found")
    pp = PlanProduct(plan_id=plan_id, product_id=product_id, config=config, is_active=is_active)
    db.add(pp)
    flush_or_conflict(db, "Product already associated with this plan", {"product_id": product_id})
    db.refresh(pp)
    return plan_product_out(pp)


def _plan_product_or_404(db: Session, plan_id: str, product_id: str) -> PlanProduct:
    pp = plan_repo.get_plan_product(db, plan_id, product_id)
    if pp is None:
        raise NotFoundError("Product is not part of this plan")
    return pp


def update_plan_product(
    db: Session,
    plan_id: str,
    product_id: str,
    config=None,
    is_active: bool | None = None,
    *,
    set_config: bool = False,
) -> dict:
    pp = _plan_product_or_404(db, plan_id, product_id)
    if set_config:
        pp.config = config
    if is_active is not None:
        pp.is_active = is_active
    db.flush()
    return plan_product_out(pp)


def remove_plan_product(db: Session, plan_id: str, product_id: str, actor_id: str | None = None) -> None:
    """
    Raises:
        NotFoundError: the product is not part of the plan
        ConflictError: tenants on the plan still have the product active
    """
    pp = _plan_product_or_404(db, plan_id, product_id)
    in_use = plan_repo.count_tenants_using(db, plan_id, product_id)
    if in_use:
        raise ConflictError(
            "Product is active for tenants on this plan",
            meta={"tenants_count": in_use},
        )
    db.delete(pp)
    db.flush()
    log_security_event(
        action="plan_product_remove",
        result="success",
        user_id=actor_id,
        meta={"plan_id": plan_id, "product_id": product_id},
    )
