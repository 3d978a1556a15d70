"""
Request authentication and token helpers.

Rules:
- Sessions are read from `Authorization: Bearer <token>` when the header is
  present (external systems that cannot send cookies), else from the `session` cookie
- Product SSO tokens are signed with the private key from settings (never hardcoded)
- Session cookies are HTTP-only, SameSite=Lax, secure in production
"""
from __future__ import annotations
import datetime
import uuid
import jwt
from fastapi import Depends, Request, Response
from sqlalchemy.orm import Session
from tenanthub.core.config import settings
from tenanthub.core.db import get_db
from tenanthub.core.errors import AuthenticationError
from tenanthub.domain.models import Authed
from tenanthub.services import session_service


def extract_token(req: Request) -> str | None:
    """An explicit bearer header wins over the cookie the browser may still hold."""
    auth = req.headers.get("authorization")
    if auth and auth.lower().startswith("bearer "):
        token = auth.split(" ", 1)[1].strip()
        if token:
            return token
    return req.cookies.get(settings.SESSION_COOKIE_NAME) or None


def session_optional(req: Request, db: Session = Depends(get_db)) -> Authed | None:
    """FastAPI dependency: the caller's identity, or None."""
    return session_service.verify(db, extract_token(req))


def session_required(auth: Authed | None = Depends(session_optional)) -> Authed:
    """
    FastAPI dependency that requires a valid session.

    Raises:
        AuthenticationError: 401 if the token is missing, unknown, expired or revoked
    """
    if auth is None:
        raise AuthenticationError("Not authenticated")
    return auth


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.SESSION_TTL_DAYS * 24 * 60 * 60,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def clear_session_cookie(response: Response) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value="",
        max_age=0,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def sign_jwt(claims: dict, minutes: int | None = None) -> tuple[str, datetime.datetime]:
    """
    Sign a product SSO token.

    Returns:
        (encoded token, naive UTC expiry)
    """
    now = datetime.datetime.now(datetime.timezone.utc)
    exp = now + datetime.timedelta(minutes=minutes or settings.SSO_TOKEN_EXP_MIN)
    payload = {**claims, "jti": uuid.uuid4().hex, "iat": now, "exp": exp}
    token = jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")
    return token, exp.replace(tzinfo=None)


def decode_jwt(token: str) -> dict | None:
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=["HS256"])
    except jwt.InvalidTokenError:
        return None
