"""
Profile cache backends.

A built UserProfile is a pure function of the interaction store, so caching
it is optional and always safe to drop. Entries live for an explicit TTL and
the last write wins.

Backends:
- InMemoryProfileCache: per-process dict guarded by a lock (dev/testing)
- RedisProfileCache: JSON blobs with SETEX (shared across workers)
"""

import json
import time
from threading import Lock
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

import redis

from core.logging import get_logger
from personalization.models import UserProfile


logger = get_logger(__name__)


class ProfileCache(Protocol):
    def get(self, user_id: str) -> Optional[UserProfile]: ...

    def set(self, profile: UserProfile) -> None: ...

    def invalidate(self, user_id: str) -> None: ...


# =============================================================================
# In-Memory Backend
# =============================================================================

class InMemoryProfileCache:
    """
    In-memory profile cache for development/testing.

    Note: Entries are lost on restart and not shared between workers.
    """

    def __init__(self, ttl_seconds: int = 300, timer: Callable[[], float] = time.monotonic):
        self._entries: Dict[str, Tuple[float, UserProfile]] = {}
        self._lock = Lock()
        self._ttl = ttl_seconds
        self._timer = timer

    def get(self, user_id: str) -> Optional[UserProfile]:
        with self._lock:
            entry = self._entries.get(user_id)
            if entry is None:
                return None
            expires_at, profile = entry
            if self._timer() >= expires_at:
                del self._entries[user_id]
                return None
            return profile

    def set(self, profile: UserProfile) -> None:
        with self._lock:
            self._entries[profile.user_id] = (self._timer() + self._ttl, profile)

    def invalidate(self, user_id: str) -> None:
        with self._lock:
            self._entries.pop(user_id, None)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "backend": "in_memory",
            "entries": len(self._entries),
            "ttl_seconds": self._ttl,
        }


# =============================================================================
# Redis Backend
# =============================================================================

class RedisProfileCache:
    """Redis-based profile cache for production."""

    KEY_PREFIX = "personalization:profile:"

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        ttl_seconds: int = 300,
        client: Optional[redis.Redis] = None,
    ):
        self._ttl = ttl_seconds
        self._redis = client or redis.from_url(redis_url, decode_responses=True)

    def _key(self, user_id: str) -> str:
        return f"{self.KEY_PREFIX}{user_id}"

    def get(self, user_id: str) -> Optional[UserProfile]:
        try:
            data = self._redis.get(self._key(user_id))
        except redis.RedisError as e:
            logger.warning("Profile cache read failed", user_id=user_id, error=str(e))
            return None
        if not data:
            return None
        try:
            return UserProfile.from_dict(json.loads(data))
        except (ValueError, KeyError, TypeError) as e:
            # Unreadable entry: treat as a miss and let it be rebuilt
            logger.warning("Discarding unreadable cached profile", user_id=user_id, error=str(e))
            self.invalidate(user_id)
            return None

    def set(self, profile: UserProfile) -> None:
        try:
            self._redis.setex(
                self._key(profile.user_id), self._ttl, json.dumps(profile.to_dict())
            )
        except redis.RedisError as e:
            logger.warning("Profile cache write failed", user_id=profile.user_id, error=str(e))

    def invalidate(self, user_id: str) -> None:
        try:
            self._redis.delete(self._key(user_id))
        except redis.RedisError as e:
            logger.warning("Profile cache invalidate failed", user_id=user_id, error=str(e))

    def ping(self) -> bool:
        return bool(self._redis.ping())

    def get_stats(self) -> Dict[str, Any]:
        count = 0
        cursor = 0
        while True:
            cursor, keys = self._redis.scan(cursor, match=f"{self.KEY_PREFIX}*", count=1000)
            count += len(keys)
            if cursor == 0:
                break
        return {"backend": "redis", "entries": count, "ttl_seconds": self._ttl}


def create_profile_cache(settings) -> ProfileCache:
    """
    Pick a cache backend from settings.

    Redis when ``redis_enabled`` and reachable, in-memory otherwise.
    """
    ttl = settings.profile_cache_ttl_seconds
    if settings.redis_enabled:
        try:
            cache = RedisProfileCache(settings.redis_url, ttl_seconds=ttl)
            cache.ping()
            logger.info("Using Redis profile cache", url=settings.redis_url.split("@")[-1])
            return cache
        except redis.RedisError as e:
            logger.warning("Redis unavailable, using in-memory profile cache", error=str(e))
    return InMemoryProfileCache(ttl_seconds=ttl)
