import json
import logging
from typing import Any, Dict, Optional

from redis.asyncio import Redis

logger = logging.getLogger(__name__)

_KEY_PREFIX = "crm"


def cache_key(*parts: Any) -> str:
    """Build a namespaced cache key, e.g. ``crm:linkedin:<tenant>:<hash>``."""
    return ":".join([_KEY_PREFIX, *(str(p) for p in parts)])


class LocalCounters:
    """In-process counters standing in for Redis ``INCR``.

    The application keeps one instance on ``app.state`` so round-robin
    positions survive across requests while Redis is down.  Values are
    per worker process.
    """

    def __init__(self) -> None:
        self._values: Dict[str, int] = {}

    def incr(self, key: str) -> int:
        value = self._values.get(key, 0) + 1
        self._values[key] = value
        return value


class CacheService:
    """Best-effort async Redis wrapper.

    With no client configured (or Redis down) reads miss and writes are
    dropped, so callers never branch on availability.  Counters fall back
    to *local_counters*.
    """

    def __init__(
        self,
        redis_client: Optional[Redis] = None,
        local_counters: Optional[LocalCounters] = None,
    ) -> None:
        self._redis: Optional[Redis] = redis_client
        self._local_counters = local_counters or LocalCounters()

    # ------------------------------------------------------------------
    # Raw string values
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Optional[str]:
        if self._redis is None:
            return None
        try:
            return await self._redis.get(key)
        except Exception:
            logger.warning("Redis GET failed for key %s", key)
            return None

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        """Store *value*; ``ttl`` is in seconds."""
        if self._redis is None:
            return
        try:
            if ttl:
                await self._redis.setex(key, ttl, value)
            else:
                await self._redis.set(key, value)
        except Exception:
            logger.warning("Redis SET failed for key %s", key)

    async def delete(self, key: str) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.delete(key)
        except Exception:
            logger.warning("Redis DELETE failed for key %s", key)

    # ------------------------------------------------------------------
    # JSON values (profile lookups, scoring settings)
    # ------------------------------------------------------------------

    async def get_json(self, key: str) -> Optional[Dict[str, Any]]:
        raw = await self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Invalid JSON in cache key %s", key)
            return None

    async def set_json(
        self, key: str, data: Dict[str, Any], ttl: Optional[int] = None
    ) -> None:
        try:
            payload = json.dumps(data, default=str)
        except (TypeError, ValueError):
            logger.warning("Failed to serialise data for cache key %s", key)
            return
        await self.set(key, payload, ttl=ttl)

    # ------------------------------------------------------------------
    # Counters (round-robin owner assignment)
    # ------------------------------------------------------------------

    async def incr(self, key: str, ttl: Optional[int] = None) -> int:
        """Increment a counter and return the new value.

        Uses Redis when reachable, otherwise the local counters; *ttl*
        only applies to the Redis key.
        """
        if self._redis is not None:
            try:
                value = await self._redis.incr(key)
                if ttl:
                    await self._redis.expire(key, ttl)
                return value
            except Exception:
                logger.warning("Redis INCR failed for key %s; using local counter", key)
        return self._local_counters.incr(key)
