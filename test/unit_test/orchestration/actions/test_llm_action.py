from __future__ import annotations

from datetime import datetime, timezone

import pytest

from orchestra_ai.orchestration.actions.llm import LLMAction, default_usage_estimator
from orchestra_ai.orchestration.budget.manager import TokenBudgetManager
from orchestra_ai.orchestration.budget.models import TokenBudgetLimits, TokenUsageEstimate
from orchestra_ai.orchestration.capabilities.base import CapabilityResult, LLMContext
from orchestra_ai.orchestration.capabilities.registry import Registry
from orchestra_ai.orchestration.schemas.domain import Session

_NOW = datetime(2026, 5, 1, 12, tzinfo=timezone.utc)


class _FakeFunction:
    def __init__(
        self,
        name: str = "summarize",
        *,
        result: CapabilityResult | None = None,
        exc: Exception | None = None,
        estimate: TokenUsageEstimate | None = None,
    ) -> None:
        self.name = name
        self._result = result or CapabilityResult(success=True, content="ok")
        self._exc = exc
        self._estimate = estimate or TokenUsageEstimate(input_tokens=100, estimated_output_tokens=50)
        self.calls: list[LLMContext] = []

    def estimate_usage(self, ctx: LLMContext) -> TokenUsageEstimate:
        return self._estimate

    async def execute(self, ctx: LLMContext) -> CapabilityResult:
        self.calls.append(ctx)
        if self._exc is not None:
            raise self._exc
        return self._result


def _manager(daily_tokens: int = 100_000) -> TokenBudgetManager:
    return TokenBudgetManager(
        TokenBudgetLimits(daily_token_limit=daily_tokens, hourly_token_limit=daily_tokens), clock=lambda: _NOW
    )


def _action(fn: _FakeFunction, budget: TokenBudgetManager, **params) -> LLMAction:
    registry = Registry()
    registry.register_llm_function(fn)
    return LLMAction(fn.name, params, registry=registry, budget=budget)


async def _used(budget: TokenBudgetManager) -> int:
    return (await budget.get_daily_usage(_NOW.date())).total_tokens


@pytest.mark.asyncio
async def test_success_passes_context_and_records_estimate() -> None:
    fn = _FakeFunction(result=CapabilityResult(success=True, content="summary", data={"final_response": "summary"}))
    budget = _manager()
    session = Session(user_request="summarize this", shared_data={"k": 1})

    result = await _action(fn, budget, text="abc").execute(session)

    assert result.success is True
    assert result.output == "summary"
    assert result.data == {"final_response": "summary"}
    ctx = fn.calls[0]
    assert ctx.user_request == "summarize this"
    assert ctx.parameters == {"text": "abc"}
    assert ctx.shared_data == {"k": 1}
    assert await _used(budget) == 150


@pytest.mark.asyncio
async def test_reported_usage_replaces_estimate() -> None:
    fn = _FakeFunction(
        result=CapabilityResult(
            success=True, content="x", usage=TokenUsageEstimate(input_tokens=10, estimated_output_tokens=5)
        )
    )
    budget = _manager()

    await _action(fn, budget).execute(Session(user_request="r"))

    assert await _used(budget) == 15


@pytest.mark.asyncio
async def test_budget_denial_never_calls_the_function() -> None:
    fn = _FakeFunction()
    budget = _manager(daily_tokens=100)

    result = await _action(fn, budget).execute(Session(user_request="r"))

    assert result.success is False
    assert "token budget exceeded for 'summarize'" in result.error
    assert fn.calls == []
    assert await _used(budget) == 0


@pytest.mark.asyncio
async def test_exception_releases_reservation() -> None:
    fn = _FakeFunction(exc=RuntimeError("model down"))
    budget = _manager()

    result = await _action(fn, budget).execute(Session(user_request="r"))

    assert result.success is False
    assert result.error == "LLM function execution failed: model down"
    assert await _used(budget) == 0
    assert (await budget.get_daily_usage(_NOW.date())).request_count == 0


@pytest.mark.asyncio
async def test_reported_failure_without_usage_releases() -> None:
    fn = _FakeFunction(result=CapabilityResult(success=False, error="refused"))
    budget = _manager()

    result = await _action(fn, budget).execute(Session(user_request="r"))

    assert result.success is False
    assert result.error == "refused"
    assert await _used(budget) == 0


@pytest.mark.asyncio
async def test_unregistered_function() -> None:
    action = LLMAction("missing", registry=Registry(), budget=_manager())
    result = await action.execute(Session(user_request="r"))
    assert result.success is False
    assert "not registered" in result.error


def test_default_estimator_heuristic_for_functions_without_estimate() -> None:
    class _Plain:
        name = "plain"

        async def execute(self, ctx: LLMContext) -> CapabilityResult:
            return CapabilityResult(success=True)

    ctx = LLMContext(session_id="s", user_request="x" * 40, parameters={"max_tokens": 64})
    estimate = default_usage_estimator(_Plain(), ctx)

    assert estimate.input_tokens > 0
    assert estimate.estimated_output_tokens == 64
