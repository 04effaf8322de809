# qr_attendance/core/redis.py
import logging
from typing import Optional

from redis import asyncio as aioredis

from qr_attendance.core.config import settings

logger = logging.getLogger(__name__)

# Redis connection settings
REDIS_URL = settings.REDIS_URL or "redis://localhost:6379"
REDIS_PRESENCE_DB = 0

redis_client: Optional[aioredis.Redis] = None


async def init_redis(url: Optional[str] = None) -> aioredis.Redis:
    """Initialize Redis connection"""
    global redis_client
    try:
        redis_client = aioredis.from_url(
            url or REDIS_URL,
            db=REDIS_PRESENCE_DB,
            decode_responses=True
        )
        # Test connection
        await redis_client.ping()
        logger.info("Redis connection established successfully")
        return redis_client
    except Exception as e:
        logger.error(f"Failed to connect to Redis: {str(e)}")
        raise


async def close_redis():
    """Close Redis connection"""
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None
        logger.info("Redis connection closed")

