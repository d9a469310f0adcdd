"""
Cache Clients Module

Key/value caching with per-entry TTL. The application bootstrap builds one
client (`build_cache_client`) and stores it on `app.state`; request handlers
receive it through `deps.get_cache`.

Values are JSON-serialised so both backends behave the same way.
"""
import json
import logging
import threading
import time
from typing import Any, Dict, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)

REDIS_DISABLED_URL = "memory://"


class CacheClient(Protocol):
    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None: ...

    def delete(self, key: str) -> None: ...

    def delete_prefix(self, prefix: str) -> None: ...


class MemoryCache:
    """In-process cache. Entries expire lazily on read."""

    def __init__(self, clock=time.monotonic):
        self._data: Dict[str, Tuple[Optional[float], str]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            expires_at, raw = entry
            if expires_at is not None and expires_at <= self._clock():
                del self._data[key]
                return None
        return json.loads(raw)

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds else None
        raw = json.dumps(value, default=str)
        with self._lock:
            self._data[key] = (expires_at, raw)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def delete_prefix(self, prefix: str) -> None:
        with self._lock:
            for key in [k for k in self._data if k.startswith(prefix)]:
                del self._data[key]


class RedisCache:
    """Redis-backed cache. Errors are logged and treated as cache misses."""

    def __init__(self, client):
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCache":
        import redis

        pool = redis.ConnectionPool.from_url(
            url,
            max_connections=20,
            socket_connect_timeout=2.0,
            socket_timeout=2.0,
            health_check_interval=30,
            retry_on_timeout=True,
        )
        return cls(redis.Redis(connection_pool=pool))

    def get(self, key: str) -> Optional[Any]:
        try:
            raw = self._client.get(key)
        except Exception:
            logger.exception("Cache get failed for %s", key)
            return None
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        raw = json.dumps(value, default=str)
        try:
            if ttl_seconds:
                self._client.setex(key, ttl_seconds, raw)
            else:
                self._client.set(key, raw)
        except Exception:
            logger.exception("Cache set failed for %s", key)

    def delete(self, key: str) -> None:
        try:
            self._client.delete(key)
        except Exception:
            logger.exception("Cache delete failed for %s", key)

    def delete_prefix(self, prefix: str) -> None:
        try:
            keys = list(self._client.scan_iter(match=f"{prefix}*"))
            if keys:
                self._client.delete(*keys)
        except Exception:
            logger.exception("Cache invalidation failed for %s*", prefix)


def build_cache_client(redis_url: Optional[str]) -> CacheClient:
    if not redis_url or redis_url.strip().lower() == REDIS_DISABLED_URL:
        logger.info("Using in-memory cache")
        return MemoryCache()
    logger.info("Using Redis cache")
    return RedisCache.from_url(redis_url.strip())


class DashboardCache:
    """Dashboard aggregates keyed by user and data kind."""

    prefix = "dashboard:"

    def __init__(self, client: CacheClient, ttl_seconds: int):
        self.client = client
        self.ttl_seconds = ttl_seconds

    def _key(self, user_id: str, kind: str) -> str:
        return f"{self.prefix}{user_id}:{kind}"

    def get(self, user_id: str, kind: str) -> Optional[Any]:
        return self.client.get(self._key(user_id, kind))

    def set(self, user_id: str, kind: str, value: Any) -> None:
        self.client.set(self._key(user_id, kind), value, self.ttl_seconds)

    def invalidate_user(self, user_id: str) -> None:
        self.client.delete_prefix(f"{self.prefix}{user_id}:")

    def invalidate_users(self, user_ids) -> None:
        for user_id in set(user_ids):
            if user_id:
                self.invalidate_user(user_id)
