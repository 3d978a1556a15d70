"""
Product catalog endpoints.

Rules:
- Reads require a session
- Writes require SUPER_ADMIN (answered with 401 otherwise)
- ALWAYS use Pydantic models for request bodies
"""
from __future__ import annotations
from typing import Any
from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session
from tenanthub.core.auth import session_required
from tenanthub.core.db import get_db
from tenanthub.core.roles import SUPER_ADMIN, require_roles
from tenanthub.domain.models import Authed
from tenanthub.services import entitlement_service, product_service, sso_service

router = APIRouter(prefix="/products", tags=["products"])

super_admin = require_roles(SUPER_ADMIN, status_code=401)


class ProductIn(BaseModel):
    """Request schema for product creation."""
    model_config = ConfigDict(populate_by_name=True)

    name: str | None = None
    slug: str | None = None
    description: str | None = None
    icon: str | None = None
    color: str | None = None
    base_url: str | None = Field(default=None, alias="baseUrl")
    default_config: Any | None = Field(default=None, alias="defaultConfig")


class ProductUpdate(ProductIn):
    """Request schema for product update; only fields present are changed."""
    is_active: bool | None = Field(default=None, alias="isActive")


@router.get("")
def list_products(auth: Authed = Depends(session_required), db: Session = Depends(get_db)) -> dict:
    return {"products": product_service.list_products(db)}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_product(p: ProductIn, auth: Authed = Depends(super_admin), db: Session = Depends(get_db)) -> dict:
    """
    Create a product.

    Raises:
        ValidationError: 400 if name or slug is missing
        ConflictError: 400 if the slug is taken (by an active or inactive product)
    """
    product = product_service.create_product(db, p.model_dump(), actor_id=auth.user_id)
    return {"product": product}


@router.get("/{product_id}")
def get_product(product_id: str, auth: Authed = Depends(session_required), db: Session = Depends(get_db)) -> dict:
    return {"product": product_service.get_product(db, product_id)}


@router.put("/{product_id}")
def update_product(
    product_id: str,
    p: ProductUpdate,
    auth: Authed = Depends(super_admin),
    db: Session = Depends(get_db),
) -> dict:
    changes = p.model_dump(exclude_unset=True)
    for key in ("name", "slug"):
        if not changes.get(key, True):
            changes.pop(key)
    return {"product": product_service.update_product(db, product_id, changes, actor_id=auth.user_id)}


@router.delete("/{product_id}")
def delete_product(product_id: str, auth: Authed = Depends(super_admin), db: Session = Depends(get_db)) -> dict:
    product_service.deactivate_product(db, product_id, actor_id=auth.user_id)
    return {"success": True}


class TenantActivationIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tenant_id: str | None = Field(default=None, alias="tenantId")
    config: Any | None = None


@router.get("/{product_id}/tenants")
def product_tenants(product_id: str, auth: Authed = Depends(super_admin), db: Session = Depends(get_db)) -> dict:
    return {"tenant_products": entitlement_service.list_product_tenants(db, product_id)}


@router.post("/{product_id}/tenants", status_code=status.HTTP_201_CREATED)
def product_tenant_activate(
    product_id: str,
    p: TenantActivationIn,
    auth: Authed = Depends(super_admin),
    db: Session = Depends(get_db),
) -> dict:
    """
    Enable the product for one tenant.

    Raises:
        ValidationError: 400 without tenantId, or when the tenant's plan lacks the product
        ConflictError: 400 if the tenant already holds an activation
    """
    tp = entitlement_service.activate_tenant_product(db, product_id, p.tenant_id, p.config)
    return {"tenant_product": tp}


@router.post("/sso/{product_slug}")
def issue_sso_token(
    product_slug: str,
    auth: Authed = Depends(session_required),
    db: Session = Depends(get_db),
) -> dict:
    return sso_service.issue_product_token(db, auth, product_slug)


@router.get("/sso/{product_slug}")
def validate_sso_token(
    product_slug: str,
    token: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> dict:
    return sso_service.validate_product_token(db, product_slug, token)
