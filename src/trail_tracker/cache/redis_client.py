"""Redis connection for the backup slot.

Connection problems never break tracking: ``get_redis`` returns ``None`` and
the caller falls back to another backend.
"""
from __future__ import annotations

import logging
from typing import Optional

log = logging.getLogger(__name__)

_redis_client = None
_redis_checked = False


def get_redis(redis_url: Optional[str] = None):
    """Lazy singleton.  Returns ``redis.Redis`` or ``None`` if unavailable."""
    global _redis_client, _redis_checked
    if _redis_checked:
        return _redis_client
    _redis_checked = True
    try:
        from trail_tracker.config import settings

        url = redis_url if redis_url is not None else settings.redis_url
        if not url:
            return None
        import redis

        _redis_client = redis.Redis.from_url(
            url, decode_responses=True, socket_connect_timeout=3
        )
        _redis_client.ping()
        log.info("Redis connected: %s", url)
    except Exception as exc:
        log.warning("Redis unavailable (%s), backups will not use it", exc)
        _redis_client = None
    return _redis_client


def redis_ok() -> bool:
    """Ping the cached client; False when disabled or unreachable."""
    try:
        r = get_redis()
        if r is None:
            return False
        r.ping()
        return True
    except Exception:
        return False
