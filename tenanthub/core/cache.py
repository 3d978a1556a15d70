# tenanthub/core/cache.py
import functools
import json
import redis
from sqlalchemy import event
from sqlalchemy.orm import Session
from tenanthub.core import redis as redis_client
from tenanthub.core.logger import logger

_PENDING = "cache_invalidate"


def _store():
    return redis_client.rds


def cached(key: str, ttl: int):
    """
    Read-through cache for JSON-serializable results.

    `key` is formatted with the call's keyword arguments. None results are not
    stored, so a tenant created after a miss is visible on the next lookup.
    When Redis is unreachable the wrapped function is called directly.
    """
    def deco(fn):
        @functools.wraps(fn)
        def wrap(*args, **kwargs):
            k = redis_client.namespaced(key.format(**kwargs))
            try:
                hit = _store().get(k)
            except redis.RedisError:
                logger.warning("Cache read failed", extra={"meta": {"key": k}})
                return fn(*args, **kwargs)
            if hit is not None:
                return json.loads(hit)
            res = fn(*args, **kwargs)
            if res is not None:
                try:
                    _store().setex(k, ttl, json.dumps(res, default=str))
                except redis.RedisError:
                    logger.warning("Cache write failed", extra={"meta": {"key": k}})
            return res
        return wrap
    return deco


def invalidate(*keys: str) -> int:
    """Drop cached entries. Raises if Redis is down, so stale data is never silently kept."""
    if not keys:
        return 0
    return _store().delete(*(redis_client.namespaced(k) for k in keys))


def invalidate_on_commit(db: Session, *keys: str) -> None:
    """
    Drop cached entries once `db` commits.

    Dropping them earlier lets a concurrent reader cache the pre-commit row
    again. A rollback discards the queued keys.
    """
    db.info.setdefault(_PENDING, set()).update(keys)


@event.listens_for(Session, "after_commit")
def _invalidate_committed(session: Session) -> None:
    keys = session.info.pop(_PENDING, None)
    if not keys:
        return
    try:
        invalidate(*keys)
    except redis.RedisError:
        # The write is already committed; the entry expires with its TTL.
        logger.error("Cache invalidation failed", extra={"meta": {"keys": sorted(keys)}})


@event.listens_for(Session, "after_rollback")
def _discard_pending(session: Session) -> None:
    session.info.pop(_PENDING, None)
