"""
Authentication endpoints.

Rules:
- Validate input with Pydantic schemas
- Return minimal information on failure (no "user not found vs wrong password" distinction)
- The session token is set as an HTTP-only cookie and echoed in the body for external systems
"""
from __future__ import annotations
from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from sqlalchemy.orm import Session
from tenanthub.core.auth import (
    clear_session_cookie, extract_token, session_optional, set_session_cookie,
)
from tenanthub.core.config import settings
from tenanthub.core.db import get_db
from tenanthub.core.errors import AuthenticationError, ErrorCode, error_detail
from tenanthub.core.logger import logger
from tenanthub.core.roles import SUPER_ADMIN, require_roles
from tenanthub.domain.models import Authed, AuthUser
from tenanthub.services import auth_service, entitlement_service, session_service

router = APIRouter(prefix="/auth", tags=["auth"])


class LoginIn(BaseModel):
    """Request schema for user login."""
    model_config = ConfigDict(populate_by_name=True)

    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=1, description="User password")
    tenant_slug: str | None = Field(default=None, alias="tenantSlug", description="Tenant the account belongs to")


class LoginOut(BaseModel):
    """Response schema for successful login."""
    success: bool
    user: AuthUser
    token: str


class MeOut(BaseModel):
    user: AuthUser


class ValidateAccessIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_slug: str | None = Field(default=None, alias="productSlug")
    user_email: str | None = Field(default=None, alias="userEmail")
    tenant_slug: str | None = Field(default=None, alias="tenantSlug")


@router.post("/login", response_model=LoginOut)
def login(body: LoginIn, response: Response, db: Session = Depends(get_db)) -> dict:
    """
    Authenticate a user and open a session.

    Returns:
        Dict with the public user profile and the raw session token

    Raises:
        AuthenticationError: 401 with a generic message for any credential failure
    """
    result = auth_service.authenticate(db, body.email, body.password, body.tenant_slug)
    if result is None:
        raise AuthenticationError("Invalid credentials")

    set_session_cookie(response, result["token"])
    return {"success": True, "user": result["user"], "token": result["token"]}


@router.post("/logout")
def logout(req: Request, response: Response, db: Session = Depends(get_db)) -> dict:
    """Revoke the current session (if any) and clear the cookie."""
    session_service.revoke(db, extract_token(req))
    clear_session_cookie(response)
    return {"success": True}


@router.get("/logout")
def logout_redirect(
    req: Request,
    redirect: str | None = Query(default=None),
    return_url: str | None = Query(default=None, alias="returnUrl"),
    db: Session = Depends(get_db),
) -> RedirectResponse:
    """
    Browser logout for external products.

    Redirects to `returnUrl` if given, else to the login URL configured for
    the `redirect` product key, else to "/". The cookie is cleared either way.
    """
    try:
        session_service.revoke(db, extract_token(req))
        target = return_url or settings.PRODUCT_LOGIN_URLS.get(redirect or "") or "/"
    except Exception:
        logger.exception("Logout redirect failed")
        target = "/"
    response = RedirectResponse(url=target, status_code=307)
    clear_session_cookie(response)
    return response


@router.get("/me", response_model=MeOut)
def me(auth: Authed | None = Depends(session_optional)):
    """Current user profile; an invalid session also clears the cookie."""
    if auth is None:
        response = JSONResponse(
            status_code=401,
            content={"detail": error_detail(ErrorCode.UNAUTHORIZED, "Invalid session")},
        )
        clear_session_cookie(response)
        return response
    return {
        "user": AuthUser(
            id=auth.user_id,
            email=auth.email,
            name=auth.name,
            role=auth.role,
            tenant_id=auth.tenant_id,
            tenant=auth.tenant,
        )
    }


@router.post("/validate-access")
def validate_access(body: ValidateAccessIn, db: Session = Depends(get_db)) -> dict:
    """Product access check for external systems (no session required)."""
    return entitlement_service.validate_access(db, body.product_slug, body.user_email, body.tenant_slug)


@router.get("/validate-access")
def validate_access_query(
    product: str | None = Query(default=None),
    email: str | None = Query(default=None),
    tenant: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> dict:
    return entitlement_service.validate_access(db, product, email, tenant)


@router.post("/sessions/cleanup")
def cleanup_sessions(
    auth: Authed = Depends(require_roles(SUPER_ADMIN)),
    db: Session = Depends(get_db),
) -> dict:
    """Delete expired session rows (SUPER_ADMIN)."""
    return {"deleted": session_service.cleanup_expired_sessions(db)}
