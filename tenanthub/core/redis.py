"""
Redis/Valkey client for the tenant lookup cache.

Rules:
- All configuration from centralized settings (config.py)
- Never use os.getenv directly
- Cache keys are namespaced with REDIS_KEY_PREFIX so several deployments can share one server
"""
from __future__ import annotations
import redis
from tenanthub.core.config import settings


def build_client() -> redis.Redis:
    use_ssl = settings.REDIS_SSL.lower() in ("1", "true", "yes")
    return redis.Redis(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        password=settings.REDIS_PASSWORD,
        ssl=use_ssl,
        ssl_cert_reqs=None,
        decode_responses=True,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
        socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
    )


def namespaced(key: str) -> str:
    return f"{settings.REDIS_KEY_PREFIX}{key}"


rds = build_client()
