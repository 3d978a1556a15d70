"""
Tenant directory: lookups, status changes, provisioning, edits and usage stats.
"""
from __future__ import annotations
from datetime import timedelta
from sqlalchemy.orm import Session
from tenanthub.core.db import flush_or_conflict
from tenanthub.core.errors import ConflictError, NotFoundError, ValidationError
from tenanthub.core.logger import log_security_event
from tenanthub.core.security import hash_password
from tenanthub.domain.sqlalchemy_models import Tenant, TenantStatus, User, UserRole, utcnow
from tenanthub.repositories import plan_repo, tenant_repository, user_repo
from tenanthub.services import entitlement_service

ACTIVE_WINDOW = timedelta(days=30)


def get_tenant_by_slug(db: Session, slug: str) -> dict:
    data = tenant_repository.get_by_slug(db, slug=slug)
    if data is None:
        raise NotFoundError("Tenant not found")
    return data


def get_tenant_by_id(db: Session, tenant_id: str) -> dict:
    data = tenant_repository.get_by_id(db, tenant_id)
    if data is None:
        raise NotFoundError("Tenant not found")
    return data


def list_tenants(db: Session) -> list[dict]:
    return tenant_repository.list_all(db)


def is_slug_available(db: Session, slug: str) -> bool:
    return not tenant_repository.slug_exists(db, slug)


def update_tenant_status(db: Session, tenant_id: str, status: str, actor_id: str | None = None) -> dict:
    try:
        new_status = TenantStatus(status)
    except ValueError:
        raise ValidationError(
            "Invalid status",
            meta={"allowed": [s.value for s in TenantStatus]},
        )
    tenant = tenant_repository.get_row(db, tenant_id)
    if tenant is None:
        raise NotFoundError("Tenant not found")
    tenant_repository.set_status(db, tenant, new_status)
    log_security_event(
        action="tenant_status_update",
        result="success",
        user_id=actor_id,
        tenant_id=tenant.id,
        meta={"status": new_status.value},
    )
    return tenant_repository.tenant_to_dict(tenant)


def get_tenant_stats(db: Session, tenant_id: str) -> dict:
    """
    Active-user counts for a tenant.

    `active_users` counts users whose last login is at or after now - 30 days,
    with the cutoff taken at call time.
    """
    if tenant_repository.get_row(db, tenant_id) is None:
        raise NotFoundError("Tenant not found")
    cutoff = utcnow() - ACTIVE_WINDOW
    return {
        "total_users": user_repo.count_active(db, tenant_id),
        "active_users": user_repo.count_active(db, tenant_id, since=cutoff),
    }


def create_tenant(
    db: Session,
    *,
    name: str,
    slug: str,
    plan_id: str,
    admin_email: str,
    admin_name: str,
    admin_password: str,
    actor_id: str | None = None,
) -> dict:
    """
    Create a tenant together with its first ADMIN user.

    Slug uniqueness is enforced by the unique constraint; a duplicate
    surfaces as ConflictError and nothing is written.
    """
    plan = plan_repo.get(db, plan_id)
    if plan is None:
        raise NotFoundError("Plan not found")

    tenant = Tenant(
        name=name,
        slug=slug,
        plan=plan,
        max_users=plan.max_users,
        status=TenantStatus.ACTIVE,
    )
    admin = User(
        email=admin_email,
        name=admin_name,
        password_hash=hash_password(admin_password),
        role=UserRole.ADMIN,
        tenant=tenant,
    )
    db.add(tenant)
    db.add(admin)
    flush_or_conflict(db, "Slug already exists", {"slug": slug})

    log_security_event(
        action="tenant_create",
        result="success",
        user_id=actor_id,
        tenant_id=tenant.id,
        meta={"slug": slug, "admin_user_id": admin.id},
    )
    return {
        "tenant": tenant_repository.tenant_to_dict(tenant),
        "admin": {"id": admin.id, "email": admin.email, "name": admin.name, "role": admin.role.value},
    }


def update_tenant(db: Session, tenant_id: str, changes: dict, actor_id: str | None = None) -> dict:
    """
    Edit a tenant's name, slug, user cap or plan.

    Moving to another plan resets the tenant's activations to that plan's
    active products. The by-slug cache entries for the old and new slug are
    dropped on commit.

    Raises:
        NotFoundError: unknown tenant or plan
        ValidationError: the target plan is inactive
        ConflictError: the new slug is taken
    """
    tenant = tenant_repository.load_with_entitlements(db, tenant_id)
    if tenant is None:
        raise NotFoundError("Tenant not found")
    old_slug = tenant.slug

    products_activated = None
    plan_id = changes.get("plan_id")
    if plan_id and plan_id != tenant.plan_id:
        plan = plan_repo.get(db, plan_id)
        if plan is None:
            raise NotFoundError("Plan not found")
        if not plan.is_active:
            raise ValidationError("Plan is not active", meta={"plan_id": plan_id})
        tenant.plan = plan
        products_activated = entitlement_service.apply_plan(tenant)

    for key in ("name", "slug", "max_users"):
        if changes.get(key) is not None:
            setattr(tenant, key, changes[key])
    flush_or_conflict(db, "Slug already exists", {"slug": changes.get("slug")})
    tenant_repository.forget_cached(db, old_slug, tenant.slug)

    meta = {"fields": sorted(k for k, v in changes.items() if v is not None)}
    if products_activated is not None:
        meta["products_activated"] = products_activated
    log_security_event(
        action="tenant_update",
        result="success",
        user_id=actor_id,
        tenant_id=tenant.id,
        meta=meta,
    )
    return tenant_repository.tenant_to_dict(tenant)


def delete_tenant(db: Session, tenant_id: str, actor_id: str | None = None) -> None:
    """
    Delete a tenant that has no users besides its admins.

    The admins, their sessions and the tenant's activations go with it.

    Raises:
        NotFoundError: unknown tenant
        ConflictError: the tenant still has non-admin users
    """
    tenant = tenant_repository.get_row(db, tenant_id)
    if tenant is None:
        raise NotFoundError("Tenant not found")
    by_role = tenant_repository.count_users_by_role(db, tenant_id)
    others = sum(n for role, n in by_role.items() if role != UserRole.ADMIN.value)
    if others:
        raise ConflictError(
            "Remove the tenant's non-admin users first",
            meta={"users_count": others},
        )
    for user in list(tenant.users):
        db.delete(user)
    db.delete(tenant)
    db.flush()
    tenant_repository.forget_cached(db, tenant.slug)
    log_security_event(
        action="tenant_delete",
        result="success",
        user_id=actor_id,
        tenant_id=tenant_id,
        meta={"slug": tenant.slug, "admins_removed": by_role.get(UserRole.ADMIN.value, 0)},
    )
