"""LLM action: a budget-gated call to a registered LLM function."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Mapping, Optional

from ...core.monitoring import log_budget_denied, log_llm_call
from ..budget.estimator import DEFAULT_MAX_OUTPUT_TOKENS, estimate_usage
from ..budget.manager import TokenBudgetManager
from ..budget.models import TokenUsageEstimate
from ..capabilities.base import LLMContext, LLMFunction
from ..capabilities.registry import Registry
from ..errors import BudgetExceededError
from ..schemas.domain import Session, StepKind
from .base import ActionKind, ActionResult, OrchestrationAction, Stopwatch

logger = logging.getLogger(__name__)

UsageEstimator = Callable[[LLMFunction, LLMContext], TokenUsageEstimate]


def default_usage_estimator(fn: LLMFunction, ctx: LLMContext) -> TokenUsageEstimate:
    """Use the function's own estimate when it has one, the heuristic otherwise."""
    own = getattr(fn, "estimate_usage", None)
    if callable(own):
        return own(ctx)
    params = dict(ctx.parameters)
    prompt = ctx.user_request + "\n" + json.dumps(params, default=str, ensure_ascii=False)
    max_tokens = params.get("max_tokens")
    return estimate_usage(
        prompt,
        model=params.get("model"),
        max_output_tokens=max_tokens if isinstance(max_tokens, int) else DEFAULT_MAX_OUTPUT_TOKENS,
    )


class LLMAction(OrchestrationAction):
    kind = ActionKind.llm
    step_kind = StepKind.llm_action
    label = "LLM"

    def __init__(
        self,
        name: str,
        parameters: Optional[Mapping[str, Any]] = None,
        *,
        registry: Registry,
        budget: TokenBudgetManager,
        estimator: UsageEstimator = default_usage_estimator,
        output_key: Optional[str] = None,
    ) -> None:
        super().__init__(name, parameters, output_key=output_key)
        self._registry = registry
        self._budget = budget
        self._estimator = estimator

    async def execute(self, session: Session) -> ActionResult:
        watch = Stopwatch()
        fn = self._registry.get_llm_function(self.name)
        if fn is None:
            return ActionResult.failure(f"LLM function '{self.name}' is not registered", watch.elapsed)

        ctx = LLMContext.from_session(session, parameters=self.parameters)
        estimate = self._estimator(fn, ctx)

        # Admission happens before the capability is touched.
        reservation = await self._budget.reserve(estimate)
        if reservation is None:
            denied = BudgetExceededError(self.name, estimate.total_tokens, estimate.estimated_cost)
            log_budget_denied(self.name, estimate.total_tokens, estimate.estimated_cost)
            logger.warning(f"{self.display_name} denied: {denied}")
            return ActionResult.failure(str(denied), watch.elapsed)

        try:
            result = await fn.execute(ctx)
        except Exception as e:
            await self._budget.release(reservation)
            logger.warning(f"{self.display_name} raised: {e}", exc_info=True)
            return ActionResult.failure(f"LLM function execution failed: {e}", watch.elapsed)

        if result.usage is not None:
            await self._budget.settle(reservation, result.usage)
        elif result.success:
            await self._budget.settle(reservation, estimate)
        else:
            await self._budget.release(reservation)

        if not result.success:
            return ActionResult.failure(
                result.error or f"LLM function '{self.name}' reported failure",
                watch.elapsed,
                output=result.content or None,
            )

        usage = result.usage or estimate
        log_llm_call(usage.model, usage.total_tokens, usage.estimated_cost)
        logger.debug(f"{self.display_name} completed in {watch.elapsed.total_seconds():.3f}s")
        return ActionResult.ok(result.content, watch.elapsed, data=result.data)
