import logging
from typing import Optional
from redis.asyncio import Redis
from booking_wizard.core.config import settings
from booking_wizard.core.metrics import redis_connected

logger = logging.getLogger(__name__)

redis: Optional[Redis] = None

async def init_redis() -> Optional[Redis]:
    global redis
    if not settings.REDIS_URL:
        logger.info("REDIS_URL not set, distance cache disabled")
        return None
    try:
        redis = Redis.from_url(settings.REDIS_URL, decode_responses=False)
        await redis.ping()
        redis_connected.set(1)
        logger.info("Connected to Redis")
        return redis
    except Exception as e:
        logger.error(f"Failed to connect to Redis: {e}")
        redis = None
        redis_connected.set(0)
        raise

async def close_redis():
    global redis
    if redis:
        await redis.aclose()
        redis = None
    redis_connected.set(0)

def get_redis() -> Optional[Redis]:
    """Current client, or None when the cache is not configured or unreachable."""
    return redis
