"""
RBAC (Role-Based Access Control) module for the TenantHub backend.

Rules:
- Roles are: SUPER_ADMIN (cross-tenant), ADMIN, USER (tenant-scoped)
- RBAC logic MUST live in this dedicated module, not scattered
- Never trust role or tenant information from the client; always from the verified session
"""
from __future__ import annotations
from typing import Callable
from fastapi import Depends
from tenanthub.core.auth import session_required
from tenanthub.core.errors import AuthorizationError
from tenanthub.domain.models import Authed

SUPER_ADMIN = "SUPER_ADMIN"


def require_roles(*allowed: str, status_code: int = 403) -> Callable:
    """
    Dependency that ensures the caller's role is in `allowed`.

    Args:
        *allowed: Allowed role names
        status_code: 403 by default; some routes answer 401 instead

    Example:
        @router.post("")
        def create(auth: Authed = Depends(require_roles("SUPER_ADMIN", status_code=401))):
            ...
    """
    def _inner(auth: Authed = Depends(session_required)) -> Authed:
        if auth.role not in allowed:
            raise AuthorizationError(
                "You do not have permission for this action",
                status_code=status_code,
                meta={"required_roles": list(allowed)},
            )
        return auth
    return _inner


def ensure_tenant_access(auth: Authed, tenant_id: str) -> Authed:
    """
    Only a SUPER_ADMIN or a member of `tenant_id` may read tenant-scoped data.

    Raises:
        AuthorizationError: 403 otherwise
    """
    if auth.role == SUPER_ADMIN or auth.tenant_id == tenant_id:
        return auth
    raise AuthorizationError("Access denied to this tenant")
