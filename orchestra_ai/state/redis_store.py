"""Redis checkpoint store."""

from __future__ import annotations

import logging
import math
from datetime import timedelta
from typing import Any, Optional, Type

from pydantic import BaseModel
from redis.asyncio import Redis
from redis.exceptions import RedisError

from ..orchestration.errors import CheckpointError
from .base import ModelT, StateStoreStatistics, StoreCounters, decode, encode

logger = logging.getLogger(__name__)


class RedisStateStore:
    """
    Store snapshots in Redis.

    TTLs are applied with ``SETEX`` and enforced by Redis itself, so
    ``cleanup_expired`` has nothing to do. The client is created lazily from
    ``url`` on first use unless one is passed in.
    """

    def __init__(self, url: str, *, client: Optional[Redis] = None) -> None:
        self._url = url
        self._client: Optional[Redis] = client
        self._counters = StoreCounters()

    @property
    def client(self) -> Redis:
        if self._client is None:
            self._client = Redis.from_url(self._url, decode_responses=True)
            logger.info(f"Redis checkpoint store connected: {self._url.split('@')[-1]}")
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.debug("Redis connection closed")

    async def get(self, key: str, model: Type[ModelT]) -> Optional[ModelT]:
        try:
            raw: Any = await self.client.get(key)
        except RedisError as e:
            raise CheckpointError(f"redis get failed: {e}", key=key) from e
        self._counters.record_read(hit=raw is not None)
        if raw is None:
            return None
        return decode(key, raw if isinstance(raw, str) else raw.decode("utf-8"), model)

    async def set(self, key: str, value: BaseModel, ttl: Optional[timedelta] = None) -> None:
        payload = encode(value)
        # SETEX takes whole seconds; sub-second TTLs round up.
        seconds = math.ceil(ttl.total_seconds()) if ttl else 0
        try:
            if seconds > 0:
                await self.client.setex(key, seconds, payload)
            else:
                await self.client.set(key, payload)
        except RedisError as e:
            raise CheckpointError(f"redis set failed: {e}", key=key) from e
        self._counters.record_write()
        logger.debug(f"State stored: key={key}, ttl={seconds}s")

    async def delete(self, key: str) -> None:
        try:
            await self.client.delete(key)
        except RedisError as e:
            raise CheckpointError(f"redis delete failed: {e}", key=key) from e

    async def exists(self, key: str) -> bool:
        try:
            return bool(await self.client.exists(key))
        except RedisError as e:
            raise CheckpointError(f"redis exists failed: {e}", key=key) from e

    async def is_healthy(self) -> bool:
        try:
            return bool(await self.client.ping())
        except RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    async def cleanup_expired(self) -> int:
        return 0

    async def get_statistics(self) -> StateStoreStatistics:
        try:
            total = await self.client.dbsize()
        except RedisError as e:
            raise CheckpointError(f"redis dbsize failed: {e}") from e
        return self._counters.snapshot(int(total))
