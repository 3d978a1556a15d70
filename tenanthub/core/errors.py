from typing import Any, Dict, Optional
from fastapi import HTTPException
from enum import Enum

class ErrorCode(str, Enum):
    UNAUTHORIZED = "unauthorized"        # 401
    FORBIDDEN = "forbidden"              # 403
    NOT_FOUND = "not_found"              # 404
    CONFLICT = "conflict"                # 400 (duplicate slug)
    VALIDATION_ERROR = "validation_error"# 400
    INTERNAL_ERROR = "internal_error"    # 500

def error_detail(
    code: ErrorCode,
    message: str,
    meta: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    detail = {
        "code": code.value,
        "message": message,
    }
    if meta:
        detail["meta"] = meta
    return detail

def http_error(
    *,
    status_code: int,
    code: ErrorCode,
    message: str,
    meta: Optional[Dict[str, Any]] = None,
) -> HTTPException:
    """
    Standardized HTTPException factory.
    Frontend should key on `detail.code` for i18n and behavior.
    """
    return HTTPException(status_code=status_code, detail=error_detail(code, message, meta))


class AppError(Exception):
    """
    Base of the domain error taxonomy.

    Services raise these; the handler registered in main.py turns them into
    the same `{"detail": {"code", "message"}}` shape http_error produces.
    """
    status_code = 500
    code = ErrorCode.INTERNAL_ERROR
    default_message = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        status_code: Optional[int] = None,
        meta: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.meta = meta
        super().__init__(self.message)

    def to_http(self) -> HTTPException:
        return http_error(
            status_code=self.status_code,
            code=self.code,
            message=self.message,
            meta=self.meta,
        )


class ValidationError(AppError):
    status_code = 400
    code = ErrorCode.VALIDATION_ERROR
    default_message = "Missing or invalid fields"


class AuthenticationError(AppError):
    status_code = 401
    code = ErrorCode.UNAUTHORIZED
    default_message = "Invalid credentials"


class AuthorizationError(AppError):
    status_code = 403
    code = ErrorCode.FORBIDDEN
    default_message = "You do not have permission for this action"


class NotFoundError(AppError):
    status_code = 404
    code = ErrorCode.NOT_FOUND
    default_message = "Not found"


class ConflictError(AppError):
    status_code = 400
    code = ErrorCode.CONFLICT
    default_message = "Already exists"

