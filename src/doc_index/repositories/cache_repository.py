import json
import logging
from typing import Optional

from pydantic import BaseModel
from redis import asyncio as redis
from redis.exceptions import RedisError

from doc_index.config import CacheConfig
from doc_index.exceptions import CacheError

logger = logging.getLogger(__name__)


class CachedResponse(BaseModel):
    body: bytes
    headers: dict[str, str]


class ResponseCache:
    """
    Shared cache of file responses keyed by request URL.

    Every key written for a file id is also remembered in a per-file set,
    so deleting the file can drop all of its cached responses at once.
    """
    def __init__(self, cfg: CacheConfig):
        self._pool = redis.from_url(cfg.url)
        self._ttl = cfg.ttl
        self._ns = (cfg.namespace + ":") if cfg.namespace else ""

    def _k(self, url: str) -> str:
        return f"{self._ns}resp:{url}"

    def _members(self, file_id: str) -> str:
        return f"{self._ns}file:{file_id}"

    async def get(self, url: str) -> Optional[CachedResponse]:
        try:
            val = await self._pool.hgetall(self._k(url))
        except RedisError as e:
            raise CacheError(str(e)) from e
        if not val or b"body" not in val:
            return None
        return CachedResponse(body=val[b"body"], headers=json.loads(val.get(b"headers") or b"{}"))

    async def put(self, file_id: str, url: str, entry: CachedResponse) -> None:
        key = self._k(url)
        try:
            async with self._pool.pipeline(transaction=True) as pipe:
                pipe.hset(key, mapping={"body": entry.body, "headers": json.dumps(entry.headers)})
                pipe.expire(key, self._ttl)
                pipe.sadd(self._members(file_id), key)
                pipe.expire(self._members(file_id), self._ttl)
                await pipe.execute()
        except RedisError as e:
            raise CacheError(str(e)) from e

    async def invalidate(self, file_id: str) -> int:
        members = self._members(file_id)
        try:
            keys = await self._pool.smembers(members)
            if keys:
                await self._pool.delete(*keys)
            await self._pool.delete(members)
        except RedisError as e:
            raise CacheError(str(e)) from e
        return len(keys)

    async def check_connection(self) -> None:
        try:
            await self._pool.ping()
        except RedisError as e:
            raise CacheError(str(e)) from e

    async def aclose(self) -> None:
        await self._pool.aclose()
