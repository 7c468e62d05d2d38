"""Checkpoint store contract.

A ``StateStore`` is a key-value store for pydantic documents with an optional
per-key TTL. Values are stored as JSON (``model_dump_json(by_alias=True)``)
and decoded with the model class passed to ``get``.

Stores raise ``CheckpointError`` on backend or decoding failures; the stateful
engine logs and swallows them.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError

from ..orchestration.errors import CheckpointError
from ..orchestration.schemas.base import BaseSchema

ModelT = TypeVar("ModelT", bound=BaseModel)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StateStoreStatistics(BaseSchema):
    total_states: int = 0
    total_reads: int = 0
    total_writes: int = 0
    hit_count: int = 0
    miss_count: int = 0
    hit_rate: float = 0.0
    last_cleanup_at: Optional[datetime] = None
    collected_at: datetime = Field(default_factory=_utc_now)


class StateStore(Protocol):
    async def get(self, key: str, model: Type[ModelT]) -> Optional[ModelT]: ...

    async def set(self, key: str, value: BaseModel, ttl: Optional[timedelta] = None) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def exists(self, key: str) -> bool: ...

    async def is_healthy(self) -> bool: ...

    async def cleanup_expired(self) -> int: ...

    async def get_statistics(self) -> StateStoreStatistics: ...


class StoreCounters:
    """Thread-safe read/write/hit/miss counters shared by the store backends."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.reads = 0
        self.writes = 0
        self.hits = 0
        self.misses = 0
        self.last_cleanup_at: Optional[datetime] = None

    def record_read(self, hit: bool) -> None:
        with self._lock:
            self.reads += 1
            if hit:
                self.hits += 1
            else:
                self.misses += 1

    def record_write(self) -> None:
        with self._lock:
            self.writes += 1

    def record_cleanup(self, when: datetime) -> None:
        with self._lock:
            self.last_cleanup_at = when

    def snapshot(self, total_states: int) -> StateStoreStatistics:
        with self._lock:
            return StateStoreStatistics(
                total_states=total_states,
                total_reads=self.reads,
                total_writes=self.writes,
                hit_count=self.hits,
                miss_count=self.misses,
                hit_rate=self.hits / self.reads if self.reads else 0.0,
                last_cleanup_at=self.last_cleanup_at,
            )


def encode(value: BaseModel) -> str:
    return value.model_dump_json(by_alias=True)


def decode(key: str, raw: str, model: Type[ModelT]) -> ModelT:
    try:
        return model.model_validate_json(raw)
    except ValidationError as e:
        raise CheckpointError(f"stored state does not decode as {model.__name__}: {e}", key=key) from e
