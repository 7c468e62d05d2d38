"""Persisted session snapshot.

``SessionState`` is the document the stateful engine writes into a checkpoint
store after every run. It is serialized with camelCase keys; besides the
summary fields of ``OrchestrationResult`` it carries what is needed to
rehydrate a ``Session`` (request, status, shared data and timestamps).
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import Field

from .base import CamelSchema
from .domain import ExecutionStep, OrchestrationResult, Session, SessionStatus


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _json_safe(data: Dict[str, Any]) -> Dict[str, Any]:
    return json.loads(json.dumps(data, default=str))


class SessionState(CamelSchema):
    session_id: str
    is_success: bool = False
    is_completed: bool = False
    final_response: Optional[str] = None
    error_message: Optional[str] = None
    total_duration_ms: float = 0.0
    execution_steps: List[ExecutionStep] = Field(default_factory=list)
    saved_at_utc: datetime = Field(default_factory=_utc_now)

    user_request: str = ""
    status: SessionStatus = SessionStatus.running
    shared_data: Dict[str, Any] = Field(default_factory=dict)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def capture(cls, session: Session, result: OrchestrationResult) -> "SessionState":
        return cls(
            session_id=session.session_id,
            is_success=result.is_success,
            is_completed=result.is_completed,
            final_response=result.final_response,
            error_message=result.error_message,
            total_duration_ms=result.total_duration.total_seconds() * 1000,
            execution_steps=list(result.execution_steps),
            user_request=session.user_request,
            status=session.status,
            shared_data=_json_safe(session.shared_data),
            started_at=session.started_at,
            completed_at=session.completed_at,
            metadata=dict(result.metadata),
        )

    @classmethod
    def failure(
        cls, session_id: str, user_request: str, error: str, *, started_at: Optional[datetime] = None
    ) -> "SessionState":
        """Snapshot written when the inner engine raised instead of returning.

        ``started_at`` is the session's own start time; it defaults to now.
        """
        now = _utc_now()
        return cls(
            session_id=session_id,
            error_message=error,
            is_completed=True,
            user_request=user_request,
            status=SessionStatus.failed,
            started_at=started_at or now,
            completed_at=now,
            metadata={"failure_reason": "unhandled_exception"},
        )

    def to_session(self) -> Session:
        return Session(
            session_id=self.session_id,
            user_request=self.user_request,
            step_history=[step.model_copy(deep=True) for step in self.execution_steps],
            shared_data=dict(self.shared_data),
            status=self.status,
            started_at=self.started_at or self.saved_at_utc,
            completed_at=self.completed_at,
            error_message=self.error_message,
        )
