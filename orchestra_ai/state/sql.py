"""SQL checkpoint store over an async SQLAlchemy engine."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional, Type

from pydantic import BaseModel
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlmodel import select

from ..core.database.entities.session_states import SessionStateRecord
from ..core.database.utils import as_utc, create_all, create_sessionmaker, utc_now
from ..orchestration.errors import CheckpointError
from .base import ModelT, StateStoreStatistics, StoreCounters, decode, encode

logger = logging.getLogger(__name__)


class SqlStateStore:
    """
    Store snapshots in the ``orc_session_states`` table.

    Expiry is enforced on read; expired rows are deleted by
    ``cleanup_expired``. Call ``initialize`` once to create the table when
    the schema is not managed elsewhere.
    """

    def __init__(self, engine: AsyncEngine, *, clock: Callable[[], datetime] = utc_now) -> None:
        self._engine = engine
        self._sessions = create_sessionmaker(engine)
        self._clock = clock
        self._counters = StoreCounters()

    def _now(self) -> datetime:
        return as_utc(self._clock())

    async def initialize(self) -> None:
        try:
            await create_all(self._engine)
        except SQLAlchemyError as e:
            raise CheckpointError(f"failed to create checkpoint table: {e}") from e

    async def dispose(self) -> None:
        await self._engine.dispose()

    async def get(self, key: str, model: Type[ModelT]) -> Optional[ModelT]:
        try:
            async with self._sessions() as session:
                record = await session.get(SessionStateRecord, key)
        except SQLAlchemyError as e:
            raise CheckpointError(f"failed to read state: {e}", key=key) from e

        hit = record is not None and not record.is_expired(self._now())
        self._counters.record_read(hit=hit)
        if not hit:
            return None
        return decode(key, record.payload, model)

    async def set(self, key: str, value: BaseModel, ttl: Optional[timedelta] = None) -> None:
        payload = encode(value)
        now = self._now()
        expires_at = now + ttl if ttl else None
        try:
            async with self._sessions() as session:
                record = await session.get(SessionStateRecord, key)
                if record is None:
                    record = SessionStateRecord(key=key, payload=payload, expires_at=expires_at, created_at=now)
                else:
                    record.payload = payload
                    record.expires_at = expires_at
                record.updated_at = now
                session.add(record)
                await session.commit()
        except SQLAlchemyError as e:
            raise CheckpointError(f"failed to write state: {e}", key=key) from e
        self._counters.record_write()
        logger.debug(f"State stored: key={key}, ttl={ttl}")

    async def delete(self, key: str) -> None:
        try:
            async with self._sessions() as session:
                record = await session.get(SessionStateRecord, key)
                if record is not None:
                    await session.delete(record)
                    await session.commit()
        except SQLAlchemyError as e:
            raise CheckpointError(f"failed to delete state: {e}", key=key) from e

    async def exists(self, key: str) -> bool:
        try:
            async with self._sessions() as session:
                record = await session.get(SessionStateRecord, key)
        except SQLAlchemyError as e:
            raise CheckpointError(f"failed to check state: {e}", key=key) from e
        return record is not None and not record.is_expired(self._now())

    async def is_healthy(self) -> bool:
        try:
            async with self._sessions() as session:
                await session.exec(select(func.count()).select_from(SessionStateRecord))
            return True
        except SQLAlchemyError as e:
            logger.warning(f"SQL checkpoint store health check failed: {e}")
            return False

    async def cleanup_expired(self) -> int:
        now = self._now()
        try:
            async with self._sessions() as session:
                expired = (
                    await session.exec(select(SessionStateRecord).where(SessionStateRecord.expires_at <= now))
                ).all()
                for record in expired:
                    await session.delete(record)
                await session.commit()
        except SQLAlchemyError as e:
            raise CheckpointError(f"failed to clean up expired states: {e}") from e
        self._counters.record_cleanup(self._clock())
        removed = len(expired)
        logger.debug(f"Expired states removed: {removed}")
        return removed

    async def get_statistics(self) -> StateStoreStatistics:
        now = self._now()
        stmt = (
            select(func.count())
            .select_from(SessionStateRecord)
            .where((SessionStateRecord.expires_at.is_(None)) | (SessionStateRecord.expires_at > now))
        )
        try:
            async with self._sessions() as session:
                total = (await session.exec(stmt)).one()
        except SQLAlchemyError as e:
            raise CheckpointError(f"failed to collect statistics: {e}") from e
        return self._counters.snapshot(int(total))
