# ============================================================================
# Redis Connection
# ============================================================================
from typing import Optional

import redis.asyncio as redis
from app.config import get_settings


def create_redis_client(url: Optional[str] = None) -> redis.Redis:
    """Redis client for the session store, decoding responses to str"""
    return redis.from_url(
        url or get_settings().REDIS_URL,
        encoding="utf-8",
        decode_responses=True
    )
