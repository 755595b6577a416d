# social_publisher/services/publish_lock.py
import os
import uuid
from contextlib import asynccontextmanager
from typing import Optional, Set

import redis.asyncio as aioredis
import structlog

from social_publisher.infrastructure.redis_cache import redis_client

logger = structlog.get_logger(__name__)

PUBLISH_LOCK_TTL_SECONDS = int(os.getenv("PUBLISH_LOCK_TTL_SECONDS", "900"))


# deletes the key only while it still holds our owner token
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class PublishInProgressError(Exception):
    pass


def _key(post_id: uuid.UUID) -> str:
    return f"publish_lock:{post_id}"


class RedisPublishLock:
    """Cross-process guard: SET NX EX on publish_lock:<post id>."""

    def __init__(self, client: aioredis.Redis, ttl_seconds: int = PUBLISH_LOCK_TTL_SECONDS):
        self.client = client
        self.ttl_seconds = ttl_seconds

    @asynccontextmanager
    async def hold(self, post_id: uuid.UUID):
        key = _key(post_id)
        owner = str(uuid.uuid4())
        acquired = await self.client.set(key, owner, nx=True, ex=self.ttl_seconds)
        if not acquired:
            raise PublishInProgressError(f"Post {post_id} is already being published")
        try:
            yield
        finally:
            released = await self.client.eval(_RELEASE_SCRIPT, 1, key, owner)
            if not released:
                logger.warning("publish_lock_lost", post_id=str(post_id))


class LocalPublishLock:
    """In-process guard used when redis is not configured."""

    def __init__(self):
        self._held: Set[str] = set()

    @asynccontextmanager
    async def hold(self, post_id: uuid.UUID):
        key = _key(post_id)
        if key in self._held:
            raise PublishInProgressError(f"Post {post_id} is already being published")
        self._held.add(key)
        try:
            yield
        finally:
            self._held.discard(key)


_lock = None


def get_publish_lock():
    global _lock
    if _lock is None:
        _lock = RedisPublishLock(redis_client) if redis_client is not None else LocalPublishLock()
        logger.debug("publish_lock_selected", backend=type(_lock).__name__)
    return _lock


def set_publish_lock(lock: Optional[object]) -> None:
    global _lock
    _lock = lock
