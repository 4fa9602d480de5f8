"""
Redis caching service for event read views.

CACHING STRATEGY
================

What we cache:
  - "events:all"                   event list view             TTL 300s
  - "event:{id}"                   event detail view           TTL 300s
  - "event:{id}:availability"      availability snapshot       TTL 60s

  Availability changes with every booking, so it gets the shorter TTL.

Invalidation strategy:
  - Writers (reservations, event updates) delete exactly the keys derived
    from the event they touched, after their transaction committed.
  - TTL-based expiry is the staleness bound: a write whose invalidation
    failed heals within one TTL window.

Failure policy:
  - Nothing in Redis is authoritative. Every cache failure is logged and
    treated as a miss, so a Redis outage degrades to "always read the
    database" instead of failing reads or writes.
  - Every Redis round-trip is bounded by CACHE_TIMEOUT_SECONDS.
"""

import asyncio
import json
from typing import Any, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError
from eventbook.core.config import Settings
from eventbook.core.logging import get_logger
from eventbook.core.metrics import record_cache_operation

logger = get_logger(__name__)

EVENT_LIST_KEY = "events:all"


def event_list_key() -> str:
    return EVENT_LIST_KEY


def event_key(event_id: int) -> str:
    return f"event:{event_id}"


def availability_key(event_id: int) -> str:
    return f"event:{event_id}:availability"


class CacheService:
    """Read-through cache in front of the inventory store."""

    def __init__(self, client: redis.Redis, settings: Settings):
        self.client = client
        self.timeout = settings.CACHE_TIMEOUT_SECONDS
        self.default_ttl = settings.CACHE_TTL_SECONDS
        self.availability_ttl = settings.AVAILABILITY_CACHE_TTL_SECONDS

    @classmethod
    def from_settings(cls, settings: Settings) -> "CacheService":
        client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
        )
        return cls(client, settings)

    async def ping(self) -> None:
        await asyncio.wait_for(self.client.ping(), timeout=self.timeout)
        logger.info("redis_connected", role="cache")

    async def close(self) -> None:
        await self.client.aclose()

    async def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None on miss or cache failure."""
        try:
            data = await asyncio.wait_for(self.client.get(key), timeout=self.timeout)
        except Exception as e:
            logger.error("cache_get_error", key=key, error=str(e) or type(e).__name__)
            record_cache_operation("get", "error")
            return None

        if data is None:
            logger.debug("cache_miss", key=key)
            record_cache_operation("get", "miss")
            return None

        try:
            value = json.loads(data)
        except ValueError:
            logger.warning("cache_corrupt_entry", key=key)
            record_cache_operation("get", "error")
            return None

        logger.debug("cache_hit", key=key)
        record_cache_operation("get", "hit")
        return value

    async def put(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Store a JSON-serializable value with a TTL. Failures are logged only."""
        ttl = ttl or self.default_ttl
        try:
            await asyncio.wait_for(
                self.client.setex(key, ttl, json.dumps(value, default=str)),
                timeout=self.timeout,
            )
            logger.debug("cache_set", key=key, ttl=ttl)
            record_cache_operation("set", "ok")
        except Exception as e:
            logger.error("cache_set_error", key=key, error=str(e) or type(e).__name__)
            record_cache_operation("set", "error")

    async def _delete_matching(self, pattern: str) -> int:
        deleted = 0
        async for key in self.client.scan_iter(match=pattern, count=100):
            deleted += await self.client.delete(key)
        return deleted

    async def invalidate_pattern(self, pattern: str) -> int:
        """
        Delete every key matching a glob pattern (SCAN MATCH).
        Returns the number of keys removed; 0 when the cache is unreachable.
        """
        try:
            deleted = await asyncio.wait_for(self._delete_matching(pattern), timeout=self.timeout)
        except Exception as e:
            logger.error("cache_invalidation_error", pattern=pattern, error=str(e) or type(e).__name__)
            record_cache_operation("invalidate", "error")
            return 0

        logger.info("cache_invalidated", pattern=pattern, keys_deleted=deleted)
        record_cache_operation("invalidate", "ok")
        return deleted

    async def invalidate_event(self, event_id: int) -> int:
        """Drop every view derived from one event: the list, its detail and its sub-keys."""
        deleted = 0
        for pattern in (event_list_key(), event_key(event_id), f"{event_key(event_id)}:*"):
            deleted += await self.invalidate_pattern(pattern)
        return deleted

    async def stats(self) -> dict:
        """Get Redis cache statistics for monitoring."""
        try:
            info = await asyncio.wait_for(self.client.info("stats"), timeout=self.timeout)
        except Exception as e:
            return {"status": "error", "error": str(e) or type(e).__name__}

        try:
            keyspace = await asyncio.wait_for(self.client.info("keyspace"), timeout=self.timeout)
        except (RedisError, asyncio.TimeoutError) as e:
            # Some servers and emulators do not report this section
            logger.debug("cache_keyspace_unavailable", error=str(e) or type(e).__name__)
            keyspace = {}

        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
            "keys": keyspace,
        }
