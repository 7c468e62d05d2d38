"""Action abstraction.

An action is a transient unit of work built from one planner descriptor. The
engine wraps every ``execute`` call in an ``ExecutionStep``; actions report
problems through ``ActionResult`` and only raise on programming errors.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, ClassVar, Dict, Mapping, Optional

from ..schemas.domain import Session, StepKind


class ActionKind(str, Enum):
    llm = "llm"
    tool = "tool"


@dataclass(frozen=True)
class ActionResult:
    success: bool
    output: Any = None
    duration: timedelta = timedelta(0)
    error: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, output: Any, duration: timedelta, *, data: Optional[Dict[str, Any]] = None) -> "ActionResult":
        return cls(success=True, output=output, duration=duration, data=dict(data or {}))

    @classmethod
    def failure(cls, error: str, duration: timedelta, *, output: Any = None) -> "ActionResult":
        return cls(success=False, output=output, duration=duration, error=error)


class Stopwatch:
    """Monotonic elapsed-time helper for action results."""

    def __init__(self) -> None:
        self._started = time.perf_counter()

    @property
    def elapsed(self) -> timedelta:
        return timedelta(seconds=time.perf_counter() - self._started)


class OrchestrationAction(ABC):
    kind: ClassVar[ActionKind]
    step_kind: ClassVar[StepKind]
    label: ClassVar[str]

    def __init__(self, name: str, parameters: Optional[Mapping[str, Any]] = None, *, output_key: Optional[str] = None):
        if not name or not name.strip():
            raise ValueError("action name must not be empty")
        self.name = name
        self.parameters: Dict[str, Any] = dict(parameters or {})
        self.output_key = output_key or name

    @property
    def display_name(self) -> str:
        return f"{self.label}:{self.name}"

    @abstractmethod
    async def execute(self, session: Session) -> ActionResult:
        """Run the action against ``session`` and report the outcome."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, parameters={self.parameters!r})"
