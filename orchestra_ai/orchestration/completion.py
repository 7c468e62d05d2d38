"""Completion predicate evaluated after every execute phase."""

from __future__ import annotations

import logging
from typing import Protocol

from .schemas.domain import Session, StepKind

logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 20
_USER_INPUT_MARKERS = ("user_response_required", "clarification_needed")


class CompletionChecker(Protocol):
    def is_completed(self, session: Session) -> bool: ...


class DefaultCompletionChecker:
    """
    Decide whether a session is done.

    A session is done when any of these holds:

    - ``shared_data["is_completed"]`` is truthy (set by the planner or an
      action);
    - the history holds at least ``shared_data["max_steps"]`` steps
      (``default_max_steps`` when unset);
    - every action planned in the latest cycle succeeded;
    - the latest step's output asks for user input;
    - at least ``failure_threshold`` of the last ``failure_window`` steps
      failed.
    """

    def __init__(self, *, default_max_steps: int = DEFAULT_MAX_STEPS, failure_window: int = 3, failure_threshold: int = 2):
        self.default_max_steps = default_max_steps
        self.failure_window = failure_window
        self.failure_threshold = failure_threshold

    def is_completed(self, session: Session) -> bool:
        if session.shared_data.get("is_completed"):
            logger.debug(f"Session {session.session_id}: completion flag set")
            return True
        if self._max_steps_reached(session):
            logger.debug(f"Session {session.session_id}: step limit reached")
            return True
        if self._planned_actions_done(session):
            logger.debug(f"Session {session.session_id}: all planned actions completed")
            return True
        if self._awaits_user(session):
            logger.debug(f"Session {session.session_id}: waiting for user input")
            return True
        if self._too_many_recent_failures(session):
            logger.debug(f"Session {session.session_id}: too many recent failures")
            return True
        return False

    def _max_steps_reached(self, session: Session) -> bool:
        limit = session.shared_data.get("max_steps", self.default_max_steps)
        if not isinstance(limit, int) or isinstance(limit, bool):
            limit = self.default_max_steps
        return len(session.step_history) >= limit

    @staticmethod
    def _planned_actions_done(session: Session) -> bool:
        planned = session.shared_data.get("plan_actions")
        if not isinstance(planned, list):
            return False
        succeeded = 0
        for step in reversed(session.step_history):
            if step.kind is StepKind.planning:
                break
            if step.success:
                succeeded += 1
        return succeeded >= len(planned)

    @staticmethod
    def _awaits_user(session: Session) -> bool:
        last = session.last_step
        if last is None or not last.output:
            return False
        output = last.output.lower()
        return any(marker in output for marker in _USER_INPUT_MARKERS)

    def _too_many_recent_failures(self, session: Session) -> bool:
        recent = session.step_history[-self.failure_window:]
        return sum(1 for step in recent if not step.success) >= self.failure_threshold
