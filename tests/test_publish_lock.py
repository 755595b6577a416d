import uuid

import pytest

from social_publisher.services.publish_lock import (
    _RELEASE_SCRIPT,
    LocalPublishLock,
    PublishInProgressError,
    RedisPublishLock,
)


class InMemoryRedis:
    """Just enough of redis.asyncio for SET NX and the release script."""

    def __init__(self):
        self.store = {}
        self.scripts = []

    async def set(self, key, value, nx=False, ex=None):
        if nx and key in self.store:
            return None
        self.store[key] = value
        return True

    async def eval(self, script, numkeys, *keys_and_args):
        self.scripts.append(script)
        key, owner = keys_and_args
        if self.store.get(key) == owner:
            del self.store[key]
            return 1
        return 0


async def test_redis_lock_blocks_second_holder_and_releases():
    client = InMemoryRedis()
    lock = RedisPublishLock(client, ttl_seconds=30)
    post_id = uuid.uuid4()

    async with lock.hold(post_id):
        with pytest.raises(PublishInProgressError):
            async with lock.hold(post_id):
                pass

    assert client.store == {}
    assert client.scripts == [_RELEASE_SCRIPT]


async def test_redis_lock_never_deletes_a_lock_taken_over_after_expiry():
    client = InMemoryRedis()
    lock = RedisPublishLock(client, ttl_seconds=30)
    post_id = uuid.uuid4()
    key = f"publish_lock:{post_id}"

    async with lock.hold(post_id):
        # ours expired and another worker now owns the key
        client.store[key] = "other-worker"

    assert client.store[key] == "other-worker"


async def test_local_lock_is_released_after_errors():
    lock = LocalPublishLock()
    post_id = uuid.uuid4()

    with pytest.raises(RuntimeError):
        async with lock.hold(post_id):
            raise RuntimeError("boom")

    async with lock.hold(post_id):
        pass
