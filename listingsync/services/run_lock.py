from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as redis


log = logging.getLogger(__name__)

# Delete the key only if we still own it
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class RunAlreadyInProgress(Exception):
    pass


class RunLock:
    """
    At-most-one sync run per collection, shared by the scheduler task and the
    admin endpoint. SET NX with a TTL so a crashed run cannot hold it forever.
    """

    def __init__(self, r: redis.Redis, *, collection_id: str, ttl_seconds: int):
        self.r = r
        self.key = f"listing-sync:run-lock:{collection_id}"
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_url(cls, redis_url: str, *, collection_id: str, ttl_seconds: int) -> "RunLock":
        return cls(redis.from_url(redis_url, decode_responses=True), collection_id=collection_id, ttl_seconds=ttl_seconds)

    async def acquire(self) -> str | None:
        token = uuid.uuid4().hex
        ok = await self.r.set(self.key, token, nx=True, ex=self.ttl_seconds)
        return token if ok else None

    async def release(self, token: str) -> bool:
        released = await self.r.eval(_RELEASE_SCRIPT, 1, self.key, token)
        if not released:
            log.warning("run lock %s was lost before release (expired or taken over)", self.key)
        return bool(released)

    async def aclose(self) -> None:
        await self.r.aclose()

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[str]:
        token = await self.acquire()
        if token is None:
            raise RunAlreadyInProgress(f"a sync run already holds {self.key}")
        try:
            yield token
        finally:
            await self.release(token)
