"""
Redis caching service for the weekly availability view.

CACHING STRATEGY
================

What we cache:
  - The reconciled availability view for one week (JSON-serialized)
  - Cache key pattern: "slots:week={monday}&club={club}&province={p}&locality={l}"

Why:
  - Building the view touches every court, every club and every booking
    of the week; it is by far the most frequent read
  - It only changes when a booking row changes

Invalidation strategy:
  - Any booking write (reserve, cancel, hold confirmation, payment,
    mark paid) and any court change deletes every "slots:*" key
  - Short TTL as safety net

Redis is advisory: on any Redis error the view is rebuilt from the
database, which stays authoritative.
"""

import json
from typing import Optional

import redis.asyncio as redis
from turnolibre.core.config import get_settings
from turnolibre.core.logging import get_logger
from turnolibre.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

_redis_client: Optional[redis.Redis] = None

SLOTS_PREFIX = "slots:"


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            logger.error("redis_connection_failed", error=str(e))
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def _make_slots_key(week_start: str, club: Optional[str], province: Optional[str], locality: Optional[str]) -> str:
    return (
        f"{SLOTS_PREFIX}week={week_start}&club={club or ''}"
        f"&province={province or ''}&locality={locality or ''}"
    )


async def get_cached_slots(
    week_start: str,
    club: Optional[str] = None,
    province: Optional[str] = None,
    locality: Optional[str] = None,
) -> Optional[dict]:
    client = await get_redis()
    if not client:
        return None

    key = _make_slots_key(week_start, club, province, locality)
    try:
        data = await client.get(key)
        record_cache_operation("get", hit=bool(data))
        if data:
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        logger.debug("cache_miss", key=key)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_slots(
    week_start: str,
    data: dict,
    club: Optional[str] = None,
    province: Optional[str] = None,
    locality: Optional[str] = None,
) -> None:
    client = await get_redis()
    if not client:
        return

    key = _make_slots_key(week_start, club, province, locality)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_slot_cache() -> None:
    """Delete every cached availability view."""
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{SLOTS_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
