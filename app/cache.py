import json
from datetime import date

from loguru import logger
from redis.asyncio import Redis

from app.settings import REDIS_URL

_redis: Redis | None = None
SLOTS_TTL = 60  # 1 minute


def get_redis() -> Redis:
    global _redis
    if _redis is None:
        _redis = Redis.from_url(REDIS_URL, decode_responses=True)
    return _redis


def _slots_key(item_id: str, start_date: date, end_date: date) -> str:
    return f"slots:{item_id}:{start_date.isoformat()}:{end_date.isoformat()}"


async def get_slots_cache(item_id: str, start_date: date, end_date: date) -> list | None:
    try:
        data = await get_redis().get(_slots_key(item_id, start_date, end_date))
        return json.loads(data) if data else None
    except Exception:
        logger.opt(exception=True).warning("Redis get failed, skipping slots cache")
        return None


async def set_slots_cache(item_id: str, start_date: date, end_date: date, slots: list) -> None:
    try:
        await get_redis().setex(
            _slots_key(item_id, start_date, end_date), SLOTS_TTL, json.dumps(slots)
        )
    except Exception:
        logger.opt(exception=True).warning("Redis set failed, skipping slots cache")


async def invalidate_slots_cache(item_id: str | None) -> None:
    """Drop every cached range of one item."""
    if item_id is None:
        return
    try:
        redis = get_redis()
        keys = [key async for key in redis.scan_iter(match=f"slots:{item_id}:*")]
        if keys:
            await redis.delete(*keys)
    except Exception:
        logger.opt(exception=True).warning("Redis invalidate failed for slots cache of {}", item_id)
