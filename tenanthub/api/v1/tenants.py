"""
Tenant endpoints: directory, entitlements and stats.

Rules:
- Tenant-scoped reads → SUPER_ADMIN or a member of that tenant
- Directory writes and cross-tenant listings → SUPER_ADMIN
- Never allow cross-tenant access
"""
from __future__ import annotations
from typing import Any
from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from sqlalchemy.orm import Session
from tenanthub.core.auth import session_required
from tenanthub.core.db import get_db
from tenanthub.core.roles import SUPER_ADMIN, ensure_tenant_access, require_roles
from tenanthub.domain.models import Authed
from tenanthub.services import entitlement_service, tenant_service

router = APIRouter(prefix="/tenants", tags=["tenants"])


class TenantCreate(BaseModel):
    """Request schema for tenant provisioning (tenant + first admin)."""
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, description="Tenant name")
    slug: str = Field(..., min_length=1, pattern=r"^[a-z0-9][a-z0-9-]*$", description="Unique tenant slug")
    plan_id: str = Field(..., alias="planId", description="Plan identifier")
    admin_email: EmailStr = Field(..., alias="adminEmail")
    admin_name: str = Field(..., min_length=1, alias="adminName")
    admin_password: str = Field(..., min_length=8, alias="adminPassword")


class TenantUpdate(BaseModel):
    """Request schema for tenant edits; omitted fields are left unchanged."""
    model_config = ConfigDict(populate_by_name=True)

    name: str | None = Field(default=None, min_length=1)
    slug: str | None = Field(default=None, min_length=1, pattern=r"^[a-z0-9][a-z0-9-]*$")
    plan_id: str | None = Field(default=None, alias="planId")
    max_users: int | None = Field(default=None, ge=1, alias="maxUsers")


class TenantStatusIn(BaseModel):
    status: str = Field(..., description="ACTIVE | SUSPENDED | INACTIVE")


class TenantProductUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    config: Any | None = None
    is_active: bool | None = Field(default=None, alias="isActive")


@router.get("")
def list_tenants(
    auth: Authed = Depends(require_roles(SUPER_ADMIN)),
    db: Session = Depends(get_db),
) -> dict:
    return {"tenants": tenant_service.list_tenants(db)}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_tenant(
    t: TenantCreate,
    auth: Authed = Depends(require_roles(SUPER_ADMIN)),
    db: Session = Depends(get_db),
) -> dict:
    """
    Create a tenant with its first ADMIN user.

    Raises:
        ConflictError: 400 if the slug is taken
        NotFoundError: 404 if the plan does not exist
    """
    return tenant_service.create_tenant(
        db,
        name=t.name,
        slug=t.slug,
        plan_id=t.plan_id,
        admin_email=t.admin_email,
        admin_name=t.admin_name,
        admin_password=t.admin_password,
        actor_id=auth.user_id,
    )


@router.get("/slug-available")
def slug_available(
    slug: str = Query(..., min_length=1),
    auth: Authed = Depends(require_roles(SUPER_ADMIN)),
    db: Session = Depends(get_db),
) -> dict:
    return {"slug": slug, "available": tenant_service.is_slug_available(db, slug)}


@router.get("/by-slug/{slug}")
def tenant_by_slug(
    slug: str,
    auth: Authed = Depends(require_roles(SUPER_ADMIN)),
    db: Session = Depends(get_db),
) -> dict:
    return {"tenant": tenant_service.get_tenant_by_slug(db, slug)}


@router.post("/sync-products")
def sync_products(
    auth: Authed = Depends(require_roles(SUPER_ADMIN)),
    db: Session = Depends(get_db),
) -> dict:
    """Activate plan products missing for each active tenant and deactivate ones outside the plan."""
    return {"success": True, "stats": entitlement_service.sync_plan_products(db)}


@router.get("/{tenant_id}")
def tenant_detail(
    tenant_id: str,
    auth: Authed = Depends(session_required),
    db: Session = Depends(get_db),
) -> dict:
    ensure_tenant_access(auth, tenant_id)
    return {"tenant": tenant_service.get_tenant_by_id(db, tenant_id)}


@router.put("/{tenant_id}")
def update_tenant(
    tenant_id: str,
    t: TenantUpdate,
    auth: Authed = Depends(require_roles(SUPER_ADMIN)),
    db: Session = Depends(get_db),
) -> dict:
    """
    Raises:
        ConflictError: 400 if the new slug is taken
        NotFoundError: 404 for an unknown tenant or plan
        ValidationError: 400 if the new plan is inactive
    """
    changes = t.model_dump(exclude_unset=True)
    return {"tenant": tenant_service.update_tenant(db, tenant_id, changes, actor_id=auth.user_id)}


@router.delete("/{tenant_id}")
def delete_tenant(
    tenant_id: str,
    auth: Authed = Depends(require_roles(SUPER_ADMIN)),
    db: Session = Depends(get_db),
) -> dict:
    tenant_service.delete_tenant(db, tenant_id, actor_id=auth.user_id)
    return {"success": True}


@router.get("/{tenant_id}/products")
def tenant_products(
    tenant_id: str,
    auth: Authed = Depends(session_required),
    db: Session = Depends(get_db),
) -> dict:
    """
    Products of the tenant's plan with the tenant's access flag and effective config.

    Raises:
        AuthorizationError: 403 unless SUPER_ADMIN or member of the tenant
        NotFoundError: 404 for an unknown tenant
    """
    ensure_tenant_access(auth, tenant_id)
    view = entitlement_service.resolve_tenant_view(db, tenant_id)
    return {
        "tenant": view["tenant"],
        "products": [e.model_dump() for e in view["products"]],
    }


@router.put("/{tenant_id}/products/{product_id}")
def tenant_product_update(
    tenant_id: str,
    product_id: str,
    p: TenantProductUpdate,
    auth: Authed = Depends(require_roles(SUPER_ADMIN, status_code=401)),
    db: Session = Depends(get_db),
) -> dict:
    tp = entitlement_service.update_tenant_product(
        db, tenant_id, product_id,
        config=p.config,
        is_active=p.is_active,
        set_config="config" in p.model_fields_set,
    )
    return {
        "tenant_product": {
            "tenant_id": tp.tenant_id,
            "product_id": tp.product_id,
            "config": tp.config,
            "is_active": tp.is_active,
        }
    }


@router.delete("/{tenant_id}/products/{product_id}")
def tenant_product_remove(
    tenant_id: str,
    product_id: str,
    auth: Authed = Depends(require_roles(SUPER_ADMIN, status_code=401)),
    db: Session = Depends(get_db),
) -> dict:
    revoked = entitlement_service.remove_tenant_product(db, tenant_id, product_id)
    return {"success": True, "revoked_tokens": revoked}


@router.patch("/{tenant_id}/status")
def tenant_status(
    tenant_id: str,
    p: TenantStatusIn,
    auth: Authed = Depends(require_roles(SUPER_ADMIN)),
    db: Session = Depends(get_db),
) -> dict:
    return {"tenant": tenant_service.update_tenant_status(db, tenant_id, p.status, actor_id=auth.user_id)}


@router.get("/{tenant_id}/stats")
def tenant_stats(
    tenant_id: str,
    auth: Authed = Depends(session_required),
    db: Session = Depends(get_db),
) -> dict:
    ensure_tenant_access(auth, tenant_id)
    return tenant_service.get_tenant_stats(db, tenant_id)
