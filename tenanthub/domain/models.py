from typing import Any, Optional
from pydantic import BaseModel, ConfigDict


class TenantRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: str
    status: str


class AuthUser(BaseModel):
    """Public profile of a user. Never carries the password hash."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str
    role: str
    tenant_id: Optional[str] = None
    tenant: Optional[TenantRef] = None


class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: str
    description: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    base_url: Optional[str] = None
    default_config: Optional[Any] = None
    is_active: bool


class Entitlement(BaseModel):
    """One resolved plan product for a tenant."""
    product: ProductOut
    has_access: bool
    effective_config: Optional[Any] = None
    plan_config: Optional[Any] = None
    tenant_config: Optional[Any] = None


class Authed(BaseModel):
    """Identity of a verified session: enough for authorization checks, no secrets."""
    user_id: str
    email: str
    name: str
    role: str
    tenant_id: Optional[str] = None
    tenant: Optional[TenantRef] = None
