"""
Plan catalog endpoints.

Rules:
- Listing and reading plans requires a session
- Writes and plan-product reads require SUPER_ADMIN (answered with 401 otherwise)
"""
from __future__ import annotations
from typing import Any
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session
from tenanthub.core.auth import session_required
from tenanthub.core.db import get_db
from tenanthub.core.roles import SUPER_ADMIN, require_roles
from tenanthub.domain.models import Authed
from tenanthub.services import plan_service

router = APIRouter(prefix="/plans", tags=["plans"])

super_admin = require_roles(SUPER_ADMIN, status_code=401)


class PlanIn(BaseModel):
    """Request schema for plan creation."""
    model_config = ConfigDict(populate_by_name=True)

    name: str | None = None
    slug: str | None = Field(default=None, pattern=r"^[a-z0-9][a-z0-9-]*$")
    description: str | None = None
    features: list[str] | None = None
    price: float | None = Field(default=None, ge=0)
    max_users: int | None = Field(default=None, ge=1, alias="maxUsers")


class PlanUpdate(PlanIn):
    """Request schema for plan update; only fields present are changed."""
    is_active: bool | None = Field(default=None, alias="isActive")


class PlanProductIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: str | None = Field(default=None, alias="productId")
    config: Any | None = None
    is_active: bool = Field(default=True, alias="isActive")


class PlanProductUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    config: Any | None = None
    is_active: bool | None = Field(default=None, alias="isActive")


@router.get("")
def list_plans(auth: Authed = Depends(session_required), db: Session = Depends(get_db)) -> dict:
    plans = plan_service.list_plans(db)
    return {"plans": plans, "total": len(plans)}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_plan(p: PlanIn, auth: Authed = Depends(super_admin), db: Session = Depends(get_db)) -> dict:
    """
    Create a plan.

    Raises:
        ValidationError: 400 if name or slug is missing
        ConflictError: 400 if the slug is taken
    """
    return {"plan": plan_service.create_plan(db, p.model_dump(), actor_id=auth.user_id)}


@router.get("/{plan_id}")
def get_plan(plan_id: str, auth: Authed = Depends(session_required), db: Session = Depends(get_db)) -> dict:
    return {"plan": plan_service.get_plan(db, plan_id)}


@router.put("/{plan_id}")
def update_plan(
    plan_id: str,
    p: PlanUpdate,
    auth: Authed = Depends(super_admin),
    db: Session = Depends(get_db),
) -> dict:
    changes = p.model_dump(exclude_unset=True)
    for key in ("name", "slug", "max_users", "is_active"):
        if key in changes and changes[key] is None:
            changes.pop(key)
    return {"plan": plan_service.update_plan(db, plan_id, changes, actor_id=auth.user_id)}


@router.delete("/{plan_id}")
def delete_plan(plan_id: str, auth: Authed = Depends(super_admin), db: Session = Depends(get_db)) -> dict:
    """
    Raises:
        ConflictError: 400 while tenants subscribe to the plan
    """
    plan_service.delete_plan(db, plan_id, actor_id=auth.user_id)
    return {"success": True}


@router.get("/{plan_id}/products")
def plan_products(plan_id: str, auth: Authed = Depends(super_admin), db: Session = Depends(get_db)) -> dict:
    return {"plan_products": plan_service.list_plan_products(db, plan_id)}


@router.post("/{plan_id}/products", status_code=status.HTTP_201_CREATED)
def plan_product_add(
    plan_id: str,
    p: PlanProductIn,
    auth: Authed = Depends(super_admin),
    db: Session = Depends(get_db),
) -> dict:
    pp = plan_service.add_plan_product(db, plan_id, p.product_id, p.config, p.is_active)
    return {"plan_product": pp}


@router.put("/{plan_id}/products/{product_id}")
def plan_product_update(
    plan_id: str,
    product_id: str,
    p: PlanProductUpdate,
    auth: Authed = Depends(super_admin),
    db: Session = Depends(get_db),
) -> dict:
    pp = plan_service.update_plan_product(
        db, plan_id, product_id,
        config=p.config,
        is_active=p.is_active,
        set_config="config" in p.model_fields_set,
    )
    return {"plan_product": pp}


@router.delete("/{plan_id}/products/{product_id}")
def plan_product_remove(
    plan_id: str,
    product_id: str,
    auth: Authed = Depends(super_admin),
    db: Session = Depends(get_db),
) -> dict:
    """
    Raises:
        ConflictError: 400 while tenants on the plan have the product active
    """
    plan_service.remove_plan_product(db, plan_id, product_id, actor_id=auth.user_id)
    return {"success": True}
