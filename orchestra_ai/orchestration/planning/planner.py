"""Structured planning for orchestration sessions.

This module defines the default ``planner`` LLM function.

Responsibilities
----------------

- Turn the user request plus the session so far into the next batch of
  action descriptors.
- Report them as structured hints (``CapabilityResult.data``) that the engine
  merges into the session's shared data: ``plan_actions`` and, when the
  planner decides the work is done, ``is_completed`` and ``final_response``.

The planner never executes anything itself.
"""

from __future__ import annotations

import logging
import time
from datetime import timedelta
from typing import Any, Dict, List, Literal, Optional, Sequence

from pydantic import Field
from pydantic_ai import Agent

from ..budget.estimator import estimate_usage
from ..budget.models import TokenUsageEstimate
from ..capabilities.base import CapabilityResult, LLMContext
from ..capabilities.builtin import usage_from_agent_run
from ..schemas.base import BaseSchema
from ..schemas.domain import StepKind

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are the planner of an agent orchestration engine. "
    "Given a user request and the steps taken so far, return the next minimal batch of actions. "
    "Each action is either an LLM function call (type 'llm') or a tool call (type 'tool'). "
    "Set is_completed and final_response once the request is fully answered."
)

_HISTORY_WINDOW = 10
_OUTPUT_PREVIEW = 300


class PlannedAction(BaseSchema):
    type: Literal["llm", "tool"]
    name: str = Field(min_length=1)
    parameters: Dict[str, Any] = Field(default_factory=dict)
    output_key: Optional[str] = None


class PlannerOutput(BaseSchema):
    reasoning: str = ""
    plan_actions: List[PlannedAction] = Field(default_factory=list)
    is_completed: bool = False
    final_response: Optional[str] = None

    def to_hints(self) -> Dict[str, Any]:
        hints: Dict[str, Any] = {
            "plan_actions": [a.model_dump(exclude_none=True) for a in self.plan_actions],
        }
        if self.is_completed:
            hints["is_completed"] = True
        if self.final_response is not None:
            hints["final_response"] = self.final_response
        return hints


class StructuredPlanner:
    """Planner that produces action descriptors.

    The planner supports two modes:

    - ``model=None``: deterministic fallback. The first cycle plans a single
      ``summarize`` LLM action over the request; any later cycle reports the
      session as completed. No LLM call is made.
    - ``model!=None``: uses a Pydantic AI ``Agent`` with
      ``output_type=PlannerOutput``.
    """

    name = "planner"

    def __init__(
        self,
        *,
        model: Any | None = None,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        available_functions: Sequence[str] = (),
        available_tools: Sequence[str] = (),
        fallback_function: str = "summarize",
    ) -> None:
        self._model = model
        self._system_prompt = system_prompt
        self._functions = list(available_functions)
        self._tools = list(available_tools)
        self._fallback_function = fallback_function

    def _fallback_plan(self, ctx: LLMContext) -> PlannerOutput:
        acted = any(step.kind is not StepKind.planning for step in ctx.execution_history)
        if acted:
            return PlannerOutput(reasoning="fallback: work already done", is_completed=True)
        return PlannerOutput(
            reasoning="fallback: summarize the request",
            plan_actions=[
                PlannedAction(type="llm", name=self._fallback_function, parameters={"text": ctx.user_request})
            ],
        )

    def _build_prompt(self, ctx: LLMContext) -> str:
        lines = [f"user_request={ctx.user_request}"]
        if self._functions:
            lines.append(f"llm_functions={', '.join(self._functions)}")
        if self._tools:
            lines.append(f"tools={', '.join(self._tools)}")
        history = ctx.execution_history[-_HISTORY_WINDOW:]
        if history:
            lines.append("steps so far:")
            for step in history:
                status = "ok" if step.success else f"failed: {step.error_message}"
                preview = (step.output or "")[:_OUTPUT_PREVIEW]
                lines.append(f"- [{step.kind.value}] {step.name} ({status}) {preview}")
        if ctx.shared_data:
            lines.append(f"shared_data keys={', '.join(sorted(ctx.shared_data))}")
        return "\n".join(lines)

    def estimate_usage(self, ctx: LLMContext) -> TokenUsageEstimate:
        """Usage the budget gate reserves for one planning call; zero in fallback mode."""
        if self._model is None:
            return TokenUsageEstimate(model="none")
        return estimate_usage(
            self._build_prompt(ctx),
            model=getattr(self._model, "model_name", None),
            system_prompt=self._system_prompt,
        )

    async def execute(self, ctx: LLMContext) -> CapabilityResult:
        started = time.perf_counter()
        usage: Optional[TokenUsageEstimate] = None

        if self._model is None:
            output = self._fallback_plan(ctx)
        else:
            agent: Agent = Agent(self._model, output_type=PlannerOutput, system_prompt=self._system_prompt)
            try:
                result = await agent.run(self._build_prompt(ctx))
            except Exception as e:
                logger.warning(f"Planner model call failed: {e}")
                return CapabilityResult(
                    success=False,
                    error=str(e),
                    execution_time=timedelta(seconds=time.perf_counter() - started),
                )
            output = result.output
            usage = usage_from_agent_run(result, getattr(self._model, "model_name", None))

        logger.debug(f"Planner produced {len(output.plan_actions)} actions (completed={output.is_completed})")
        return CapabilityResult(
            success=True,
            content=output.model_dump_json(),
            execution_time=timedelta(seconds=time.perf_counter() - started),
            data=output.to_hints(),
            usage=usage,
        )
