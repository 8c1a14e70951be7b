"""Read-through result cache with swappable backends.

``ResultCache`` wraps a ``CacheBackend``: the in-process LRU backend is the
default, the Redis backend shares entries between workers. Handlers receive
the cache through a FastAPI dependency so tests can inject their own.
"""

from __future__ import annotations

import copy
import hashlib
import json
import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, Optional, Tuple

import redis

from apps.core.exceptions import DataAccessError

logger = logging.getLogger(__name__)


def _normalize(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            str(k): _normalize(v)
            for k, v in value.items()
            if v is not None and v != "" and v != [] and v != ()
        }
    if isinstance(value, (list, tuple, set, frozenset)):
        items = [_normalize(v) for v in value]
        try:
            return sorted(set(items))
        except TypeError:
            return items
    if isinstance(value, str):
        return value.strip()
    return value


def make_cache_key(namespace: str, params: Dict[str, Any]) -> str:
    """Deterministic key: same logical parameters give the same key regardless of order."""
    payload = json.dumps(_normalize(params), sort_keys=True, ensure_ascii=False, default=str)
    digest = hashlib.md5(payload.encode("utf-8")).hexdigest()
    return f"{namespace}:{digest}"


class CacheBackend:
    """Storage port. ``get`` returns None on a miss; None values are never stored."""

    name = "abstract"

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        raise NotImplementedError

    def stats(self) -> Dict[str, Any]:
        return {"backend": self.name}


class InMemoryCacheBackend(CacheBackend):
    """LRU with per-entry TTL, guarded by a lock for the FastAPI thread pool."""

    name = "memory"

    def __init__(self, max_entries: int = 512, clock: Callable[[], float] = time.monotonic):
        self._entries: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
        self._max_entries = max_entries
        self._clock = clock
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if not entry:
                self._misses += 1
                return None
            if self._clock() >= entry["expires_at"]:
                self._entries.pop(key, None)
                self._misses += 1
                return None
            # bump LRU
            self._entries.move_to_end(key, last=True)
            self._hits += 1
            return copy.deepcopy(entry["value"])

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        entry = {"value": copy.deepcopy(value), "expires_at": self._clock() + ttl_seconds}
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = entry
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "backend": self.name,
                "entries": len(self._entries),
                "max_entries": self._max_entries,
                "hits": self._hits,
                "misses": self._misses,
            }


class RedisCacheBackend(CacheBackend):
    """JSON values stored with SETEX so Redis expires them on its own."""

    name = "redis"

    def __init__(self, client: "redis.Redis", key_prefix: str = "directory"):
        self._client = client
        self._prefix = key_prefix

    @classmethod
    def from_url(cls, url: str, key_prefix: str = "directory") -> "RedisCacheBackend":
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            health_check_interval=15,
        )
        return cls(client, key_prefix=key_prefix)

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    def get(self, key: str) -> Optional[Any]:
        try:
            raw = self._client.get(self._key(key))
        except redis.RedisError as exc:
            logger.error("Redis GET failed for %s: %s", key, exc)
            raise DataAccessError("cache backend unavailable") from exc
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        payload = json.dumps(value, ensure_ascii=False, default=str)
        try:
            self._client.setex(self._key(key), ttl_seconds, payload)
        except redis.RedisError as exc:
            logger.error("Redis SETEX failed for %s: %s", key, exc)
            raise DataAccessError("cache backend unavailable") from exc

    def stats(self) -> Dict[str, Any]:
        try:
            self._client.ping()
            status = "connected"
        except redis.RedisError as exc:
            logger.warning("Redis ping failed: %s", exc)
            status = "unreachable"
        return {"backend": self.name, "status": status}


class ResultCache:
    """Read-through cache: compute on miss, store for ``ttl_seconds``, return."""

    def __init__(self, backend: CacheBackend):
        self.backend = backend

    def remember(self, key: str, ttl_seconds: int, compute: Callable[[], Any]) -> Tuple[Any, bool]:
        """Return ``(value, hit)``."""
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")

        cached = self.backend.get(key)
        if cached is not None:
            logger.debug("cache hit %s", key)
            return cached, True

        logger.debug("cache miss %s", key)
        value = compute()
        if value is not None:
            self.backend.set(key, value, ttl_seconds)
        return value, False

    def get_or_compute(self, key: str, ttl_seconds: int, compute: Callable[[], Any]) -> Any:
        value, _ = self.remember(key, ttl_seconds, compute)
        return value

    def stats(self) -> Dict[str, Any]:
        return self.backend.stats()


def build_result_cache(settings) -> ResultCache:
    """Create the cache configured for this process."""
    if settings.cache_backend == "redis":
        logger.info("Result cache: redis")
        return ResultCache(RedisCacheBackend.from_url(settings.redis_url))
    logger.info("Result cache: in-memory (max %d entries)", settings.cache_max_entries)
    return ResultCache(InMemoryCacheBackend(max_entries=settings.cache_max_entries))
