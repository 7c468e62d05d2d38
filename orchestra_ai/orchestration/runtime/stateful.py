"""Checkpointing decorator around ``OrchestrationEngine``.

``StatefulOrchestrationEngine`` exposes the same ``execute`` / ``continue_``
API as the engine it wraps. After every run it writes a ``SessionState``
snapshot under ``orchestration:{session_id}``; ``continue_`` rehydrates the
session from that snapshot when one exists, so a session survives a process
restart.

Checkpointing is best-effort: a store failure is logged and never changes the
result handed back to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Optional
from uuid import uuid4

from ...state.base import StateStore, StateStoreStatistics
from ..schemas.domain import OrchestrationResult, Session, SessionStatus
from ..schemas.state import SessionState
from .engine import OrchestrationEngine

logger = logging.getLogger(__name__)

STATE_KEY_PREFIX = "orchestration:"
DEFAULT_SUCCESS_TTL = timedelta(hours=24)
DEFAULT_FAILURE_TTL = timedelta(hours=1)


def state_key(session_id: str) -> str:
    return f"{STATE_KEY_PREFIX}{session_id}"


class StatefulOrchestrationEngine:
    """
    Snapshot every run of ``inner`` into ``store``.

    Args:
        inner: The engine doing the work.
        store: Checkpoint store.
        success_ttl: Snapshot lifetime after a completed run (or a cancelled
            one, which can still be continued).
        failure_ttl: Snapshot lifetime after a failed run.
    """

    def __init__(
        self,
        inner: OrchestrationEngine,
        store: StateStore,
        *,
        success_ttl: timedelta = DEFAULT_SUCCESS_TTL,
        failure_ttl: timedelta = DEFAULT_FAILURE_TTL,
    ) -> None:
        self._inner = inner
        self._store = store
        self._success_ttl = success_ttl
        self._failure_ttl = failure_ttl

    @property
    def inner(self) -> OrchestrationEngine:
        return self._inner

    @property
    def store(self) -> StateStore:
        return self._store

    async def execute(self, request: str, *, cancel_event: Optional[asyncio.Event] = None) -> OrchestrationResult:
        session = Session(session_id=str(uuid4()), user_request=request)
        logger.debug(f"Stateful execution started: session={session.session_id}")
        try:
            session = await self._inner.run(session, cancel_event=cancel_event)
        except Exception as e:
            snapshot = SessionState.failure(session.session_id, request, str(e), started_at=session.started_at)
            await self._save(session.session_id, snapshot)
            raise
        result = OrchestrationResult.from_session(session)
        await self._save_run(session, result)
        return result

    async def continue_(
        self, session: Session, *, cancel_event: Optional[asyncio.Event] = None
    ) -> OrchestrationResult:
        snapshot = await self.load_session_state(session.session_id)
        if snapshot is not None:
            logger.info(f"Restored session {session.session_id} from checkpoint ({len(snapshot.execution_steps)} steps)")
            session = snapshot.to_session()

        if session.is_terminal:
            return OrchestrationResult.from_session(session)

        try:
            session = await self._inner.run(session, cancel_event=cancel_event)
        except Exception as e:
            snapshot = SessionState.failure(
                session.session_id, session.user_request, str(e), started_at=session.started_at
            )
            await self._save(session.session_id, snapshot)
            raise
        result = OrchestrationResult.from_session(session)
        await self._save_run(session, result)
        return result

    async def load_session(self, session_id: str) -> Optional[Session]:
        """Rehydrate a session from its checkpoint, if one exists."""
        snapshot = await self.load_session_state(session_id)
        return snapshot.to_session() if snapshot is not None else None

    async def load_session_state(self, session_id: str) -> Optional[SessionState]:
        try:
            return await self._store.get(state_key(session_id), SessionState)
        except Exception as e:
            logger.warning(f"Failed to restore checkpoint for session {session_id}: {e}")
            return None

    async def clear_session_state(self, session_id: str) -> None:
        try:
            await self._store.delete(state_key(session_id))
            logger.debug(f"Checkpoint cleared: session={session_id}")
        except Exception as e:
            logger.warning(f"Failed to clear checkpoint for session {session_id}: {e}")

    async def has_session_state(self, session_id: str) -> bool:
        try:
            return await self._store.exists(state_key(session_id))
        except Exception as e:
            logger.warning(f"Failed to check checkpoint for session {session_id}: {e}")
            return False

    async def is_healthy(self) -> bool:
        try:
            return await self._store.is_healthy()
        except Exception as e:
            logger.warning(f"Checkpoint store health check failed: {e}")
            return False

    async def get_state_statistics(self) -> StateStoreStatistics:
        return await self._store.get_statistics()

    async def cleanup_expired_states(self) -> int:
        removed = await self._store.cleanup_expired()
        logger.info(f"Expired checkpoints removed: {removed}")
        return removed

    async def _save_run(self, session: Session, result: OrchestrationResult) -> None:
        ttl = self._failure_ttl if session.status is SessionStatus.failed else self._success_ttl
        try:
            snapshot = SessionState.capture(session, result)
        except Exception as e:
            logger.warning(f"Failed to build checkpoint for session {session.session_id}: {e}")
            return
        await self._save(session.session_id, snapshot, ttl)

    async def _save(self, session_id: str, snapshot: SessionState, ttl: Optional[timedelta] = None) -> None:
        ttl = ttl or self._failure_ttl
        try:
            await self._store.set(state_key(session_id), snapshot, ttl)
            logger.debug(f"Checkpoint saved: session={session_id}, ttl={ttl}")
        except Exception as e:
            logger.warning(f"Failed to save checkpoint for session {session_id}: {e}")
