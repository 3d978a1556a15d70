"""
Tenant-to-product entitlement resolution.

A tenant's products are the products of its plan (PlanProduct rows). For
each of them the tenant may hold a TenantProduct row: access requires that
row to exist and be active, and its config overrides the plan's.
TenantProduct rows for products outside the plan are not surfaced.
"""
from __future__ import annotations
from sqlalchemy.orm import Session
from tenanthub.core.db import flush_or_conflict
from tenanthub.core.errors import NotFoundError, ValidationError
from tenanthub.core.logger import logger
from tenanthub.domain.models import Entitlement, ProductOut
from tenanthub.domain.sqlalchemy_models import Tenant, TenantProduct, User, UserRole, utcnow
from tenanthub.repositories import product_repo, tenant_repository, user_repo


def _merge(plan_products, tenant_products) -> list[Entitlement]:
    by_product = {tp.product_id: tp for tp in tenant_products}
    out = []
    for pp in plan_products:
        tp = by_product.get(pp.product_id)
        out.append(Entitlement(
            product=ProductOut.model_validate(pp.product),
            has_access=tp is not None and tp.is_active,
            effective_config=tp.config if tp is not None and tp.config is not None else pp.config,
            plan_config=pp.config,
            tenant_config=tp.config if tp is not None else None,
        ))
    out.sort(key=lambda e: e.product.name)
    return out


def _plan_summary(tenant: Tenant) -> dict:
    return {
        "id": tenant.id,
        "name": tenant.name,
        "slug": tenant.slug,
        "plan": {"id": tenant.plan.id, "name": tenant.plan.name, "slug": tenant.plan.slug},
    }


def resolve_tenant_products(db: Session, tenant_id: str) -> list[Entitlement]:
    """
    One entry per PlanProduct of the tenant's plan, ordered by product name.

    Raises:
        NotFoundError: unknown tenant
    """
    return resolve_tenant_view(db, tenant_id)["products"]


def resolve_tenant_view(db: Session, tenant_id: str) -> dict:
    """Like resolve_tenant_products, with the tenant/plan summary alongside."""
    tenant = tenant_repository.load_with_entitlements(db, tenant_id)
    if tenant is None:
        raise NotFoundError("Tenant not found")
    return {
        "tenant": _plan_summary(tenant),
        "products": _merge(tenant.plan.plan_products, tenant.tenant_products),
    }


def _resolve_user(db: Session, email: str, tenant_slug: str | None) -> tuple[User | None, int]:
    """
    Active account for `email`, scoped to `tenant_slug` when one is given.

    A tenant-less account still matches under a slug, so a SUPER_ADMIN can
    be checked against any tenant. Returns the account (None when nothing
    or, without a slug, several tenant accounts match) and the match count.
    """
    candidates = [u for u in user_repo.find_login_candidates(db, email, tenant_slug) if u.is_active]
    if tenant_slug and not candidates:
        candidates = [
            u for u in user_repo.find_login_candidates(db, email)
            if u.is_active and u.tenant_id is None
        ]
    return user_repo.pick_account(candidates, tenant_slug), len(candidates)


def validate_access(
    db: Session,
    product_slug: str | None,
    user_email: str | None = None,
    tenant_slug: str | None = None,
) -> dict:
    """
    Access check for external products.

    Denials come back as {"has_access": False, "error": ...}; only bad input
    (ValidationError) and unknown or inactive products (NotFoundError) raise.
    """
    if not product_slug or not (user_email or tenant_slug):
        raise ValidationError("productSlug and one of userEmail or tenantSlug are required")

    product = product_repo.get_by_slug(db, product_slug)
    if product is None or not product.is_active:
        raise NotFoundError("Product not found or inactive")

    user = None
    tenant = None
    if user_email:
        user, matches = _resolve_user(db, user_email, tenant_slug)
        if user is None and matches > 1:
            return {"has_access": False, "error": "Several accounts use this email; tenantSlug is required"}
        if user is None:
            return {"has_access": False, "error": "User not found or inactive"}
        tenant = user.tenant

    if tenant_slug and tenant is None:
        row = tenant_repository.get_summary_by_slug(db, slug=tenant_slug)
        tenant = tenant_repository.get_row(db, row["id"]) if row else None
        if tenant is None:
            return {"has_access": False, "error": "Tenant not found"}

    user_out = {
        "id": user.id, "email": user.email, "name": user.name, "role": user.role.value,
    } if user else None

    if user is not None and user.role == UserRole.SUPER_ADMIN:
        return {"has_access": True, "reason": "super_admin", "user": user_out}

    if tenant is None:
        return {"has_access": False, "error": "User does not belong to a tenant"}

    tenant_out = _plan_summary(tenant)
    plan_product = next(
        (pp for pp in tenant.plan.plan_products if pp.product_id == product.id and pp.is_active),
        None,
    )
    if plan_product is None:
        return {
            "has_access": False,
            "error": f"Tenant {tenant.name!r} has no access to {product.name}",
            "tenant": tenant_out,
        }

    tenant_product = product_repo.get_tenant_product(db, tenant.id, product.id)
    if tenant_product is None or not tenant_product.is_active:
        return {
            "has_access": False,
            "error": f"{product.name} is not active for tenant {tenant.name!r}",
            "tenant": tenant_out,
        }

    product_repo.bump_access(db, tenant.id, product.id, utcnow())
    body = {
        "has_access": True,
        "product": {
            "id": product.id,
            "name": product.name,
            "slug": product.slug,
            "description": product.description,
        },
        "tenant": tenant_out,
        "config": {"plan": plan_product.config, "tenant": tenant_product.config},
    }
    if user_out:
        body["user"] = user_out
    logger.info("Product access validated", extra={
        "tenant_id": tenant.id, "meta": {"product": product.slug},
    })
    return body


def sync_plan_products(db: Session) -> dict:
    """
    Align every ACTIVE tenant's TenantProduct rows with its plan.

    Missing or inactive plan products are activated with the plan's config;
    active rows for products no longer in the plan are deactivated.
    """
    tenants = tenant_repository.list_active_with_entitlements(db)
    tenants_updated = 0
    products_activated = 0

    for tenant in tenants:
        active_plan_products = [pp for pp in tenant.plan.plan_products if pp.is_active]
        plan_ids = {pp.product_id for pp in tenant.plan.plan_products}
        by_product = {tp.product_id: tp for tp in tenant.tenant_products}

        missing = [
            pp for pp in active_plan_products
            if pp.product_id not in by_product or not by_product[pp.product_id].is_active
        ]
        for pp in missing:
            tp = by_product.get(pp.product_id)
            if tp is None:
                tenant.tenant_products.append(TenantProduct(
                    product_id=pp.product_id, is_active=True, config=pp.config or {},
                ))
            else:
                tp.is_active = True
                tp.config = pp.config or {}
            products_activated += 1
        if missing:
            tenants_updated += 1

        for tp in tenant.tenant_products:
            if tp.is_active and tp.product_id not in plan_ids:
                tp.is_active = False

    db.flush()
    logger.info("Plan products synchronized", extra={"meta": {
        "tenants": len(tenants), "tenants_updated": tenants_updated,
        "products_activated": products_activated,
    }})
    return {
        "total_tenants": len(tenants),
        "tenants_updated": tenants_updated,
        "products_activated": products_activated,
    }


def update_tenant_product(
    db: Session,
    tenant_id: str,
    product_id: str,
    config=None,
    is_active: bool | None = None,
    *,
    set_config: bool = False,
) -> TenantProduct:
    tp = product_repo.get_tenant_product(db, tenant_id, product_id)
    if tp is None:
        raise NotFoundError("Product is not enabled for this tenant")
    if set_config:
        tp.config = config
    if is_active is not None:
        tp.is_active = is_active
    db.flush()
    return tp


def remove_tenant_product(db: Session, tenant_id: str, product_id: str) -> int:
    """Delete the tenant's activation and revoke its users' open SSO tokens for the product."""
    tp = product_repo.get_tenant_product(db, tenant_id, product_id)
    if tp is None:
        raise NotFoundError("Product is not enabled for this tenant")
    revoked = product_repo.revoke_tenant_product_tokens(db, tenant_id, product_id)
    db.delete(tp)
    db.flush()
    return revoked


def apply_plan(tenant: Tenant) -> int:
    """
    Reset the tenant's activations to its current plan.

    Every existing row is deactivated, then each active plan product is
    activated (or created) with the plan's config. Returns the number of
    products activated. Expects plan products and tenant products loaded.
    """
    by_product = {tp.product_id: tp for tp in tenant.tenant_products}
    for tp in tenant.tenant_products:
        tp.is_active = False
    activated = 0
    for pp in tenant.plan.plan_products:
        if not pp.is_active:
            continue
        tp = by_product.get(pp.product_id)
        if tp is None:
            tenant.tenant_products.append(TenantProduct(
                product_id=pp.product_id, is_active=True, config=pp.config or {},
            ))
        else:
            tp.is_active = True
            tp.config = pp.config or {}
        activated += 1
    return activated


def tenant_product_out(tp: TenantProduct) -> dict:
    tenant = tp.tenant
    return {
        "id": tp.id,
        "tenant_id": tp.tenant_id,
        "product_id": tp.product_id,
        "config": tp.config,
        "is_active": tp.is_active,
        "access_count": tp.access_count,
        "last_accessed": tp.last_accessed.isoformat() if tp.last_accessed else None,
        "tenant": {
            "id": tenant.id,
            "name": tenant.name,
            "slug": tenant.slug,
            "status": tenant.status.value,
            "plan": {"id": tenant.plan.id, "name": tenant.plan.name, "slug": tenant.plan.slug},
        },
    }


def list_product_tenants(db: Session, product_id: str) -> list[dict]:
    if product_repo.get(db, product_id) is None:
        raise NotFoundError("Product not found")
    return [tenant_product_out(tp) for tp in product_repo.list_tenant_products(db, product_id)]


def activate_tenant_product(db: Session, product_id: str, tenant_id: str | None, config=None) -> dict:
    """
    Grant a product to one tenant whose plan includes it.

    Without a config the product's default config is stored.

    Raises:
        ValidationError: missing tenant id, or the tenant's plan lacks the product
        NotFoundError: unknown product or tenant
        ConflictError: the tenant already holds an activation row
    """
    if not tenant_id:
        raise ValidationError("tenant_id is required")
    product = product_repo.get(db, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    tenant = tenant_repository.get_row(db, tenant_id)
    if tenant is None:
        raise NotFoundError("Tenant not found")
    in_plan = any(pp.product_id == product_id and pp.is_active for pp in tenant.plan.plan_products)
    if not in_plan:
        raise ValidationError("The tenant's plan does not include this product")
    tp = TenantProduct(
        tenant_id=tenant.id,
        product_id=product.id,
        is_active=True,
        config=config if config is not None else product.default_config,
    )
    db.add(tp)
    flush_or_conflict(db, "Product already enabled for this tenant", {"tenant_id": tenant.id})
    db.refresh(tp)
    return tenant_product_out(tp)
