"""
Centralized logging module for the TenantHub backend.

Rules:
- Structured JSON logs suitable for Loki/ELK
- Appropriate log levels (info, warning, error)
- NEVER logs passwords, password hashes, session tokens or SSO tokens;
  `meta` keys that look like credentials are masked before output
- Security-sensitive actions emit structured logs with user_id, tenant_id, action, result, timestamp
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from tenanthub.core.config import settings

_EXTRA_FIELDS = ("user_id", "tenant_id", "action", "result", "meta")
_SENSITIVE_KEYS = ("password", "token", "secret", "hash", "cookie", "authorization")
_MASK = "***"


def _scrub(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            k: _MASK if any(s in str(k).lower() for s in _SENSITIVE_KEYS) else _scrub(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_scrub(v) for v in value]
    return value


class JSONFormatter(logging.Formatter):
    """One JSON object per line; extra fields from `_EXTRA_FIELDS` are lifted to the top level."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in _EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = _scrub(value) if field == "meta" else value
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, default=str)


def _build_logger() -> logging.Logger:
    log = logging.getLogger("tenanthub")
    log.setLevel(settings.LOG_LEVEL.upper())
    if not log.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(JSONFormatter())
        log.addHandler(handler)
    # Prevent duplicate logs through uvicorn's root handlers
    log.propagate = False
    return log


logger = _build_logger()


def log_security_event(
    action: str,
    result: str,
    user_id: Optional[str] = None,
    tenant_id: Optional[str] = None,
    meta: Optional[Dict[str, Any]] = None,
    level: str = "info",
) -> None:
    """
    Log security-sensitive actions (login, logout, role-gated writes, SSO issuance).

    Args:
        action: Action name (e.g., "login", "logout", "tenant_status_update")
        result: Result status (e.g., "success", "failure", "denied")
        user_id: Acting user, when known
        tenant_id: Tenant the action concerns, when known
        meta: Additional metadata; credential-like keys are masked
        level: Log level ("info", "warning", "error")
    """
    log_method = getattr(logger, level.lower(), logger.info)
    log_method(
        f"Security event: {action} {result}",
        extra={
            "action": action,
            "result": result,
            "user_id": user_id,
            "tenant_id": tenant_id,
            "meta": meta,
        },
    )
