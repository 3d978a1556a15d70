"""
Single sign-on tokens for external products.

A signed-in user asks for a short-lived JWT scoped to one product; the
product later presents it back to validate the user. Tokens are persisted
so they can be revoked when a tenant loses the product.
"""
from __future__ import annotations
from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload
from tenanthub.core.auth import decode_jwt, sign_jwt
from tenanthub.core.config import settings
from tenanthub.core.errors import AuthenticationError, AuthorizationError, NotFoundError, ValidationError
from tenanthub.core.logger import log_security_event
from tenanthub.core.roles import SUPER_ADMIN
from tenanthub.domain.models import Authed
from tenanthub.domain.sqlalchemy_models import ProductToken, User, utcnow
from tenanthub.repositories import product_repo


def _fetch_product_token(db: Session, token: str) -> ProductToken | None:
    stmt = (
        select(ProductToken)
        .options(
            joinedload(ProductToken.user).joinedload(User.tenant),
            joinedload(ProductToken.product),
        )
        .where(ProductToken.token == token)
    )
    return db.scalars(stmt).first()


def issue_product_token(db: Session, auth: Authed, product_slug: str) -> dict:
    """
    Issue an SSO token for `product_slug`.

    Raises:
        NotFoundError: unknown or inactive product
        AuthorizationError: the caller's tenant has no active access to it
    """
    product = product_repo.get_by_slug(db, product_slug)
    if product is None or not product.is_active:
        raise NotFoundError("Product not found")

    has_access = auth.role == SUPER_ADMIN
    if not has_access and auth.tenant_id:
        tp = product_repo.get_tenant_product(db, auth.tenant_id, product.id)
        has_access = tp is not None and tp.is_active
    if not has_access:
        log_security_event(
            action="sso_issue",
            result="denied",
            user_id=auth.user_id,
            tenant_id=auth.tenant_id,
            meta={"product": product.slug},
            level="warning",
        )
        raise AuthorizationError("User has no access to this product")

    token, expires_at = sign_jwt({
        "sub": auth.user_id,
        "email": auth.email,
        "name": auth.name,
        "role": auth.role,
        "tenant_id": auth.tenant_id,
        "tenant_slug": auth.tenant.slug if auth.tenant else None,
        "product_id": product.id,
        "product_slug": product.slug,
    })
    db.add(ProductToken(token=token, user_id=auth.user_id, product_id=product.id, expires_at=expires_at))
    if auth.tenant_id:
        product_repo.bump_access(db, auth.tenant_id, product.id, utcnow())
    db.flush()

    log_security_event(
        action="sso_issue",
        result="success",
        user_id=auth.user_id,
        tenant_id=auth.tenant_id,
        meta={"product": product.slug},
    )

    base = product.base_url or f"/products/{product.slug}"
    return {
        "token": token,
        "redirect_url": f"{base}?token={token}",
        "expires_in": settings.SSO_TOKEN_EXP_MIN * 60,
    }


def validate_product_token(db: Session, product_slug: str, token: str | None) -> dict:
    """
    Validate an SSO token presented by an external product.

    Raises:
        ValidationError: no token given
        AuthenticationError: unknown, revoked, expired, or issued for another product
    """
    if not token:
        raise ValidationError("token is required")

    row = _fetch_product_token(db, token)
    if row is None or row.is_revoked or row.expires_at <= utcnow() or decode_jwt(token) is None:
        raise AuthenticationError("Invalid or expired token")
    if row.product.slug != product_slug:
        raise AuthenticationError("Token is not valid for this product")

    row.last_used = utcnow()
    db.flush()

    user = row.user
    return {
        "valid": True,
        "user": {
            "id": user.id,
            "email": user.email,
            "name": user.name,
            "role": user.role.value,
            "tenant": {
                "id": user.tenant.id,
                "name": user.tenant.name,
                "slug": user.tenant.slug,
            } if user.tenant else None,
        },
    }
