"""Capability protocols and execution data models.

Two kinds of capabilities are dispatched by the engine:

- an ``LLMFunction`` receives an ``LLMContext`` (request, history, shared data
  and call parameters) and returns a ``CapabilityResult``. The function named
  ``planner`` is the one the engine asks for the next actions; its
  ``CapabilityResult.data`` carries structured hints such as ``plan_actions``.
- a ``Tool`` receives a parameter mapping and returns a ``ToolResult``. A tool
  declares its input contract through ``required_parameters`` and, optionally,
  pydantic ``input_model`` / ``output_model`` classes.

Implementations should report failures through ``success=False`` rather than
raising; the engine turns both into a failed step either way.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, ClassVar, Dict, Mapping, Optional, Protocol, Sequence, Tuple, Type, runtime_checkable

from pydantic import BaseModel

from ..budget.models import TokenUsageEstimate
from ..schemas.domain import ExecutionStep, Session


@dataclass(frozen=True)
class LLMContext:
    """Read-only view of a session handed to LLM functions.

    Attributes
    ----------
    session_id:
        Identifier of the session being driven.
    user_request:
        The original request.
    execution_history:
        Snapshot of the step history at call time.
    shared_data:
        Copy of the session scratchpad.
    parameters:
        Call parameters from the action descriptor.
    """

    session_id: str
    user_request: str
    execution_history: Tuple[ExecutionStep, ...] = ()
    shared_data: Mapping[str, Any] = field(default_factory=dict)
    parameters: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_session(cls, session: Session, *, parameters: Optional[Mapping[str, Any]] = None) -> "LLMContext":
        return cls(
            session_id=session.session_id,
            user_request=session.user_request,
            execution_history=session.steps,
            shared_data=dict(session.shared_data),
            parameters=dict(parameters or {}),
        )


@dataclass(frozen=True)
class CapabilityResult:
    """Outcome of an LLM function call."""

    success: bool
    content: str = ""
    execution_time: timedelta = timedelta(0)
    error: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    usage: Optional[TokenUsageEstimate] = None


@dataclass(frozen=True)
class ToolResult:
    """Outcome of a tool call."""

    success: bool
    data: Any = None
    execution_time: timedelta = timedelta(0)
    error: Optional[str] = None


@runtime_checkable
class LLMFunction(Protocol):
    """Protocol for LLM-backed functions.

    Functions may additionally expose ``estimate_usage(ctx) ->
    TokenUsageEstimate``; when absent the heuristic estimator is used.
    """

    name: str

    async def execute(self, ctx: LLMContext) -> CapabilityResult: ...


@runtime_checkable
class Tool(Protocol):
    """Protocol for tools."""

    name: str
    required_parameters: Sequence[str]

    async def execute(self, parameters: Dict[str, Any]) -> ToolResult: ...


class BaseTool:
    """Convenience base for tools with a declared pydantic contract.

    Subclasses set ``name`` and optionally ``input_model`` / ``output_model``
    and implement ``execute``. ``required_parameters`` defaults to the required
    fields of ``input_model``.
    """

    name: ClassVar[str] = ""
    description: ClassVar[str] = ""
    input_model: ClassVar[Optional[Type[BaseModel]]] = None
    output_model: ClassVar[Optional[Type[BaseModel]]] = None

    @property
    def required_parameters(self) -> Sequence[str]:
        if self.input_model is None:
            return ()
        return tuple(n for n, f in self.input_model.model_fields.items() if f.is_required())

    @property
    def input_schema(self) -> Dict[str, Any]:
        if self.input_model is None:
            return {"type": "object", "properties": {}}
        return self.input_model.model_json_schema()

    async def execute(self, parameters: Dict[str, Any]) -> ToolResult:
        raise NotImplementedError
