# social_publisher/infrastructure/redis_cache.py
import os
from typing import Optional
import redis.asyncio as aioredis

# empty REDIS_URL disables redis; the publish lock then stays in-process
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
redis_client: Optional[aioredis.Redis] = aioredis.from_url(REDIS_URL, decode_responses=True) if REDIS_URL else None
