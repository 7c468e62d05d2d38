"""Core domain models of an orchestration session.

``Session`` is the mutable working set the engine drives: it owns the ordered
step history, the shared scratchpad and the lifecycle status. ``ExecutionStep``
is a single entry of the audit trail and becomes read-only once finished.
``OrchestrationResult`` is the immutable summary handed back to callers.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from ..errors import SessionTerminatedError, StepAlreadyFinishedError
from .base import BaseSchema


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def render_output(value: Any) -> Optional[str]:
    """Render an action output for the step history."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, BaseModel):
        return value.model_dump_json()
    return json.dumps(value, default=str, ensure_ascii=False)


class StepKind(str, Enum):
    planning = "planning"
    llm_action = "llm_action"
    tool_action = "tool_action"


class SessionStatus(str, Enum):
    running = "running"
    completed = "completed"
    failed = "failed"


_TERMINAL_STATUSES = frozenset({SessionStatus.completed, SessionStatus.failed})


class ExecutionStep(BaseSchema):
    """
    One entry of a session's audit trail.

    A step is created when its work begins (``begin``) and closed exactly once
    with ``finish``. Once ``ended_at`` is set every attribute assignment raises
    ``StepAlreadyFinishedError``.
    """

    step_id: str = Field(default_factory=lambda: str(uuid4()))
    kind: StepKind
    name: str

    input: Any = None
    output: Optional[str] = None

    started_at: datetime = Field(default_factory=_utc_now)
    ended_at: Optional[datetime] = None

    success: bool = False
    error_message: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def begin(cls, *, kind: StepKind, name: str, input: Any = None) -> "ExecutionStep":
        return cls(kind=kind, name=name, input=input)

    @property
    def is_finished(self) -> bool:
        return self.ended_at is not None

    @property
    def duration(self) -> timedelta:
        if self.ended_at is None:
            return timedelta(0)
        return self.ended_at - self.started_at

    def finish(
        self,
        *,
        success: bool,
        output: Any = None,
        error_message: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "ExecutionStep":
        if self.is_finished:
            raise StepAlreadyFinishedError(self.step_id)
        self.success = success
        self.output = render_output(output)
        self.error_message = error_message
        if metadata:
            self.metadata = {**self.metadata, **metadata}
        # ended_at goes last: it is what freezes the step.
        self.ended_at = _utc_now()
        return self

    def __setattr__(self, name: str, value: Any) -> None:
        if self.__dict__.get("ended_at") is not None:
            raise StepAlreadyFinishedError(self.step_id)
        super().__setattr__(name, value)


_SESSION_IMMUTABLE_FIELDS = frozenset({"session_id", "user_request", "started_at", "step_history"})


class Session(BaseSchema):
    """
    Working set of one orchestration run.

    Invariants kept by this model:

    - ``session_id``, ``user_request`` and ``started_at`` never change.
    - ``step_history`` only grows, through ``add_step``.
    - ``status`` moves from ``running`` to ``completed`` or ``failed`` exactly
      once and ``completed_at`` is set together with it.
    """

    session_id: str = Field(default_factory=lambda: str(uuid4()))
    user_request: str

    step_history: List[ExecutionStep] = Field(default_factory=list)
    shared_data: Dict[str, Any] = Field(default_factory=dict)

    status: SessionStatus = SessionStatus.running
    started_at: datetime = Field(default_factory=_utc_now)
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in _TERMINAL_STATUSES

    @property
    def steps(self) -> Tuple[ExecutionStep, ...]:
        return tuple(self.step_history)

    @property
    def last_step(self) -> Optional[ExecutionStep]:
        return self.step_history[-1] if self.step_history else None

    def add_step(self, step: ExecutionStep) -> None:
        if self.is_terminal:
            raise SessionTerminatedError(self.session_id)
        if not step.is_finished:
            raise ValueError(f"step {step.step_id} must be finished before it is recorded")
        self.step_history.append(step)

    def complete(self) -> None:
        if self.is_terminal:
            raise SessionTerminatedError(self.session_id)
        self.completed_at = _utc_now()
        self.status = SessionStatus.completed

    def fail(self, message: str) -> None:
        if self.is_terminal:
            raise SessionTerminatedError(self.session_id)
        self.error_message = message
        self.completed_at = _utc_now()
        self.status = SessionStatus.failed

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _SESSION_IMMUTABLE_FIELDS:
            raise AttributeError(f"Session.{name} cannot be reassigned")
        if name in ("status", "completed_at") and self.is_terminal:
            raise SessionTerminatedError(self.session_id)
        super().__setattr__(name, value)


def _final_response(session: Session) -> Optional[str]:
    explicit = session.shared_data.get("final_response")
    if explicit is not None:
        return render_output(explicit)
    for step in reversed(session.step_history):
        if step.kind is not StepKind.planning and step.success:
            return step.output
    last = session.last_step
    return last.output if last is not None else None


class OrchestrationResult(BaseSchema):
    """Immutable summary of a session, produced once the engine returns."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    status: SessionStatus
    is_success: bool
    is_completed: bool
    final_response: Optional[str] = None
    execution_steps: Tuple[ExecutionStep, ...] = ()
    total_duration: timedelta = timedelta(0)
    error_message: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_session(cls, session: Session) -> "OrchestrationResult":
        steps = tuple(step.model_copy(deep=True) for step in session.step_history)
        ended = session.completed_at or _utc_now()
        successful = sum(1 for step in steps if step.success)
        return cls(
            session_id=session.session_id,
            status=session.status,
            is_success=session.status is SessionStatus.completed,
            is_completed=session.is_terminal,
            final_response=_final_response(session),
            execution_steps=steps,
            total_duration=ended - session.started_at,
            error_message=session.error_message,
            metadata={
                "session_id": session.session_id,
                "step_count": len(steps),
                "successful_steps": successful,
                "failed_steps": len(steps) - successful,
                "started_at": session.started_at.isoformat(),
                "completed_at": session.completed_at.isoformat() if session.completed_at else None,
            },
        )
