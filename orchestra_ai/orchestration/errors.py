"""Exception hierarchy of the orchestration runtime.

Everything raised on purpose by this package derives from
``OrchestrationError``. Most of these never reach the caller of
``OrchestrationEngine.execute``: the engine converts them into failed steps or
a failed session. The exceptions that do escape are programming errors
(``SessionTerminatedError``, ``StepAlreadyFinishedError``,
``BudgetManagerClosedError``) and malformed descriptors handed straight to the
``ActionFactory`` (``ActionDispatchError``).
"""

from __future__ import annotations

from typing import Optional


class OrchestrationError(Exception):
    """Base class for orchestration failures."""


class PlanningError(OrchestrationError):
    """The planner could not be resolved or did not produce a plan."""


class ActionExecutionError(OrchestrationError):
    """An action failed; recorded as a failed step, the loop continues."""

    def __init__(self, action_name: str, message: str) -> None:
        super().__init__(f"{action_name}: {message}")
        self.action_name = action_name


class ActionDispatchError(OrchestrationError, ValueError):
    """A planner descriptor could not be turned into an action."""


class BudgetExceededError(OrchestrationError):
    """An LLM action was denied by the token budget gate."""

    def __init__(self, function_name: str, total_tokens: int, estimated_cost: float) -> None:
        super().__init__(
            f"token budget exceeded for '{function_name}' "
            f"(requested {total_tokens} tokens, estimated cost {estimated_cost:.4f})"
        )
        self.function_name = function_name
        self.total_tokens = total_tokens
        self.estimated_cost = estimated_cost


class ContractViolationError(OrchestrationError):
    """Tool input or output did not satisfy the tool's declared contract."""

    def __init__(self, tool_name: str, direction: str, detail: str) -> None:
        super().__init__(f"{direction} contract violated for tool '{tool_name}': {detail}")
        self.tool_name = tool_name
        self.direction = direction
        self.detail = detail


class CheckpointError(OrchestrationError):
    """A checkpoint store could not read, write or decode a snapshot."""

    def __init__(self, message: str, *, key: Optional[str] = None) -> None:
        super().__init__(message if key is None else f"{message} (key={key})")
        self.key = key


class BudgetManagerClosedError(OrchestrationError, RuntimeError):
    """The budget manager was used after ``close()``."""


class BudgetLimitsImmutableError(OrchestrationError, NotImplementedError):
    """Budget limits are fixed for the lifetime of a manager."""


class SessionTerminatedError(OrchestrationError):
    """A completed or failed session was mutated."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"session {session_id} is already terminal")
        self.session_id = session_id


class StepAlreadyFinishedError(OrchestrationError):
    """An execution step was modified after it had been finished."""

    def __init__(self, step_id: str) -> None:
        super().__init__(f"execution step {step_id} is already finished")
        self.step_id = step_id
