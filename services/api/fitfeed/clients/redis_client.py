"""
Redis client wrapper.

Responsibilities:
  • Recent searches — LIST keyed by recent:{user_id}
                      each element is a JSON blob {"type", "query", "target_id"}
                      newest first, deduplicated, capped at recent_searches_max

The explore endpoints read and write these lists; nothing else touches Redis.
"""
import json
import logging
from typing import Optional

import redis.asyncio as aioredis

from fitfeed.config import settings

logger = logging.getLogger(__name__)

_redis: Optional[aioredis.Redis] = None


async def init_redis() -> None:
    global _redis
    _redis = aioredis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        decode_responses=True,
    )
    await _redis.ping()
    logger.info("Redis connected at %s:%s", settings.redis_host, settings.redis_port)


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    if _redis is None:
        raise RuntimeError("Redis not initialised — call init_redis() at startup")
    return _redis


# ─────────────────────── Recent Searches (LIST) ───────────────────────────

def _recent_key(user_id: str) -> str:
    return f"recent:{user_id}"


def _encode(entry: dict) -> str:
    # sort_keys keeps the encoding stable so LREM finds duplicates
    return json.dumps(entry, sort_keys=True)


async def get_recent_searches(user_id: str) -> list[dict]:
    r = get_redis()
    raw: list[str] = await r.lrange(_recent_key(user_id), 0, settings.recent_searches_max - 1)
    entries = []
    for item in raw:
        try:
            entries.append(json.loads(item))
        except ValueError:
            logger.warning("Dropping malformed recent search for %s: %r", user_id, item)
    return entries


async def add_recent_search(user_id: str, entry: dict) -> None:
    """Move `entry` to the front of the user's list and trim the tail."""
    r = get_redis()
    key = _recent_key(user_id)
    blob = _encode(entry)
    pipe = r.pipeline()
    pipe.lrem(key, 0, blob)
    pipe.lpush(key, blob)
    pipe.ltrim(key, 0, settings.recent_searches_max - 1)
    pipe.expire(key, settings.recent_searches_ttl)
    await pipe.execute()


async def clear_recent_searches(user_id: str) -> None:
    r = get_redis()
    await r.delete(_recent_key(user_id))
