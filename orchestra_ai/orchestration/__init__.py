"""Agent orchestration runtime.

Design overview
---------------

A ``Session`` is driven by ``runtime.OrchestrationEngine`` through three
phases per iteration:

- **plan**: the ``planner`` LLM function (looked up in the ``Registry``)
  returns structured hints, among them ``plan_actions``: a list of action
  descriptors for this cycle.
- **execute**: ``actions.ActionFactory`` turns each descriptor into an
  ``LLMAction`` or ``ToolAction``; each is executed in order and recorded as
  an ``ExecutionStep``. LLM actions pass the ``TokenBudgetManager`` gate
  before the capability is invoked.
- **check**: the ``CompletionChecker`` decides whether the session is done.

``runtime.StatefulOrchestrationEngine`` wraps the engine and snapshots every
finished run into a ``state.StateStore`` so that sessions survive restarts.
"""

from .errors import (
    ActionDispatchError,
    ActionExecutionError,
    BudgetExceededError,
    BudgetLimitsImmutableError,
    BudgetManagerClosedError,
    CheckpointError,
    ContractViolationError,
    OrchestrationError,
    PlanningError,
    SessionTerminatedError,
    StepAlreadyFinishedError,
)
from .schemas.domain import (
    ExecutionStep,
    OrchestrationResult,
    Session,
    SessionStatus,
    StepKind,
)

__all__ = [
    "ActionDispatchError",
    "ActionExecutionError",
    "BudgetExceededError",
    "BudgetLimitsImmutableError",
    "BudgetManagerClosedError",
    "CheckpointError",
    "ContractViolationError",
    "ExecutionStep",
    "OrchestrationError",
    "OrchestrationResult",
    "PlanningError",
    "Session",
    "SessionStatus",
    "SessionTerminatedError",
    "StepAlreadyFinishedError",
    "StepKind",
]
