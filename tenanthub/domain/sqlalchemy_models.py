"""
SQLAlchemy models for the TenantHub multi-tenant administration schema.

Users belong to at most one tenant (cross-tenant admins have no tenant), a
tenant subscribes to one plan, and products reach a tenant through two join
tables: PlanProduct (the plan's entitlement template) and TenantProduct (the
tenant-specific activation and config override).
"""
from __future__ import annotations
import uuid
from datetime import datetime, timezone
from enum import Enum as PyEnum
from sqlalchemy import (
    Column, String, Boolean, Integer, Numeric, ForeignKey, Text, JSON,
    DateTime, Enum as SQLEnum, UniqueConstraint
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC now; every timestamp column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _uuid() -> str:
    return str(uuid.uuid4())


class UserRole(str, PyEnum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    USER = "USER"


class TenantStatus(str, PyEnum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    INACTIVE = "INACTIVE"


class Plan(Base):
    """Entitlement template a tenant subscribes to."""
    __tablename__ = "plans"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, nullable=False)
    description = Column(Text, nullable=True)
    features = Column(JSON, nullable=True)
    price = Column(Numeric(10, 2), nullable=True)
    max_users = Column(Integer, nullable=False, default=10)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    tenants = relationship("Tenant", back_populates="plan")
    plan_products = relationship("PlanProduct", back_populates="plan", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Plan(id={self.id}, slug={self.slug})>"


class Tenant(Base):
    """
    Isolated customer organization.

    The slug is globally unique and treated as a stable external identifier.
    """
    __tablename__ = "tenants"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, nullable=False, index=True)
    status = Column(SQLEnum(TenantStatus, native_enum=False), nullable=False, default=TenantStatus.ACTIVE)
    plan_id = Column(String(36), ForeignKey("plans.id"), nullable=False)
    max_users = Column(Integer, nullable=False, default=10)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    plan = relationship("Plan", back_populates="tenants")
    users = relationship("User", back_populates="tenant")
    tenant_products = relationship("TenantProduct", back_populates="tenant", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, slug={self.slug})>"


class User(Base):
    """
    System user. Email is unique within a tenant; tenant_id is NULL for cross-tenant admins.

    Users are deactivated rather than deleted; deleting a tenant removes its admins.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    name = Column(String, nullable=False)
    role = Column(SQLEnum(UserRole, native_enum=False), nullable=False, default=UserRole.USER)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("tenant_id", "email", name="uq_user_tenant_email"),
    )

    tenant = relationship("Tenant", back_populates="users")
    sessions = relationship("SessionToken", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"


class Product(Base):
    """Application/module tenants may be granted access to."""
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    icon = Column(String, nullable=True)
    color = Column(String, nullable=True)
    base_url = Column(String, nullable=True)
    default_config = Column(JSON, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    plan_products = relationship("PlanProduct", back_populates="product")
    tenant_products = relationship("TenantProduct", back_populates="product")

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, slug={self.slug})>"


class PlanProduct(Base):
    """'This plan grants this product, with this default configuration.'"""
    __tablename__ = "plan_products"

    id = Column(String(36), primary_key=True, default=_uuid)
    plan_id = Column(String(36), ForeignKey("plans.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    config = Column(JSON, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("plan_id", "product_id", name="uq_plan_product"),
    )

    plan = relationship("Plan", back_populates="plan_products")
    product = relationship("Product", back_populates="plan_products")


class TenantProduct(Base):
    """Tenant-specific activation of a product; its config overrides the plan's."""
    __tablename__ = "tenant_products"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    config = Column(JSON, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    last_accessed = Column(DateTime, nullable=True)
    access_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("tenant_id", "product_id", name="uq_tenant_product"),
    )

    tenant = relationship("Tenant", back_populates="tenant_products")
    product = relationship("Product", back_populates="tenant_products")


class SessionToken(Base):
    """Login session. Only the SHA-256 digest of the bearer token is stored."""
    __tablename__ = "session_tokens"

    id = Column(String(36), primary_key=True, default=_uuid)
    token_hash = Column(String(64), unique=True, nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    expires_at = Column(DateTime, nullable=False)
    revoked_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="sessions")


class ProductToken(Base):
    """Short-lived SSO token handed to an external product."""
    __tablename__ = "product_tokens"

    id = Column(String(36), primary_key=True, default=_uuid)
    token = Column(String(1024), unique=True, nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    is_revoked = Column(Boolean, nullable=False, default=False)
    last_used = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    user = relationship("User")
    product = relationship("Product")
