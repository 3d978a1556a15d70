"""
Product catalog.

Slugs are unique; duplicates are detected on insert (unique constraint),
not by a read-then-write check.
"""
from __future__ import annotations
from sqlalchemy.orm import Session
from tenanthub.core.db import flush_or_conflict
from tenanthub.core.errors import NotFoundError, ValidationError
from tenanthub.core.logger import log_security_event
from tenanthub.domain.models import ProductOut
from tenanthub.domain.sqlalchemy_models import Product
from tenanthub.repositories import product_repo

_UPDATABLE = ("name", "slug", "description", "icon", "color", "base_url", "default_config", "is_active")


def product_out(p: Product) -> dict:
    return ProductOut.model_validate(p).model_dump()


def list_products(db: Session) -> list[dict]:
    return [product_out(p) for p in product_repo.list_active(db)]


def get_product(db: Session, product_id: str) -> dict:
    p = product_repo.get(db, product_id)
    if p is None:
        raise NotFoundError("Product not found")
    data = product_out(p)
    data["plans"] = [
        {"id": pp.plan.id, "name": pp.plan.name, "slug": pp.plan.slug, "config": pp.config}
        for pp in p.plan_products
    ]
    data["tenants"] = [
        {"id": tp.tenant.id, "name": tp.tenant.name, "slug": tp.tenant.slug, "is_active": tp.is_active}
        for tp in p.tenant_products
    ]
    return data


def create_product(db: Session, fields: dict, actor_id: str | None = None) -> dict:
    if not fields.get("name") or not fields.get("slug"):
        raise ValidationError("name and slug are required")
    p = Product(**{k: fields.get(k) for k in _UPDATABLE if k != "is_active"})
    db.add(p)
    flush_or_conflict(db, "Slug already exists", {"slug": fields["slug"]})
    log_security_event(
        action="product_create",
        result="success",
        user_id=actor_id,
        meta={"product_id": p.id, "slug": p.slug},
    )
    return product_out(p)


def update_product(db: Session, product_id: str, changes: dict, actor_id: str | None = None) -> dict:
    p = product_repo.get(db, product_id)
    if p is None:
        raise NotFoundError("Product not found")
    for key in _UPDATABLE:
        if key in changes:
            setattr(p, key, changes[key])
    flush_or_conflict(db, "Slug already exists", {"slug": changes.get("slug")})
    log_security_event(
        action="product_update",
        result="success",
        user_id=actor_id,
        meta={"product_id": p.id, "fields": sorted(k for k in changes if k in _UPDATABLE)},
    )
    return product_out(p)


def deactivate_product(db: Session, product_id: str, actor_id: str | None = None) -> None:
    """Soft delete: products stay referenced by plans and tenants."""
    p = product_repo.get(db, product_id)
    if p is None:
        raise NotFoundError("Product not found")
    p.is_active = False
    db.flush()
    log_security_event(
        action="product_deactivate",
        result="success",
        user_id=actor_id,
        meta={"product_id": p.id},
    )

