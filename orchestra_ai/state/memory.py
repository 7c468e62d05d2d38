"""In-process checkpoint store."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional, Type

from pydantic import BaseModel

from .base import ModelT, StateStoreStatistics, StoreCounters, decode, encode

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class _Entry:
    payload: str
    created_at: datetime
    expires_at: Optional[datetime]

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now


class InMemoryStateStore:
    """
    Dictionary-backed store for development and tests.

    Entries are held as JSON so a stored snapshot never aliases live objects.
    Expired entries are dropped lazily on access and in bulk by
    ``cleanup_expired``. Nothing survives the process.
    """

    def __init__(self, *, clock: Callable[[], datetime] = _utc_now) -> None:
        self._entries: Dict[str, _Entry] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self._counters = StoreCounters()

    def _live(self, key: str, now: datetime) -> Optional[_Entry]:
        entry = self._entries.get(key)
        if entry is not None and entry.is_expired(now):
            del self._entries[key]
            return None
        return entry

    async def get(self, key: str, model: Type[ModelT]) -> Optional[ModelT]:
        with self._lock:
            entry = self._live(key, self._clock())
        self._counters.record_read(hit=entry is not None)
        if entry is None:
            return None
        return decode(key, entry.payload, model)

    async def set(self, key: str, value: BaseModel, ttl: Optional[timedelta] = None) -> None:
        payload = encode(value)
        now = self._clock()
        with self._lock:
            self._entries[key] = _Entry(payload=payload, created_at=now, expires_at=now + ttl if ttl else None)
        self._counters.record_write()
        logger.debug(f"State stored: key={key}, ttl={ttl}")

    async def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    async def exists(self, key: str) -> bool:
        with self._lock:
            return self._live(key, self._clock()) is not None

    async def is_healthy(self) -> bool:
        return True

    async def cleanup_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]
        self._counters.record_cleanup(now)
        logger.debug(f"Expired states removed: {len(expired)}")
        return len(expired)

    async def get_statistics(self) -> StateStoreStatistics:
        now = self._clock()
        with self._lock:
            total = sum(1 for e in self._entries.values() if not e.is_expired(now))
        return self._counters.snapshot(total)
