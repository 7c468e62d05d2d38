from __future__ import annotations

import json
from typing import Any

import pytest

import orchestra_ai.orchestration.planning.planner as planner_mod
from orchestra_ai.orchestration.capabilities.base import LLMContext
from orchestra_ai.orchestration.planning.planner import PlannedAction, PlannerOutput, StructuredPlanner
from orchestra_ai.orchestration.schemas.domain import ExecutionStep, StepKind


def _ctx(*steps: ExecutionStep, request: str = "list files in /tmp") -> LLMContext:
    return LLMContext(session_id="s1", user_request=request, execution_history=tuple(steps))


def _done(kind: StepKind, name: str = "x", **kwargs: Any) -> ExecutionStep:
    return ExecutionStep.begin(kind=kind, name=name).finish(**{"success": True, **kwargs})


class TestFallback:
    @pytest.mark.asyncio
    async def test_first_cycle_plans_summarize(self) -> None:
        result = await StructuredPlanner().execute(_ctx())

        assert result.success is True
        assert result.data["plan_actions"] == [
            {"type": "llm", "name": "summarize", "parameters": {"text": "list files in /tmp"}}
        ]
        assert "is_completed" not in result.data
        assert json.loads(result.content)["plan_actions"][0]["name"] == "summarize"

    @pytest.mark.asyncio
    async def test_later_cycle_reports_completion(self) -> None:
        ctx = _ctx(_done(StepKind.planning, "planner"), _done(StepKind.llm_action, "summarize"))
        result = await StructuredPlanner().execute(ctx)

        assert result.data == {"plan_actions": [], "is_completed": True}

    @pytest.mark.asyncio
    async def test_custom_fallback_function(self) -> None:
        result = await StructuredPlanner(fallback_function="echo").execute(_ctx())
        assert result.data["plan_actions"][0]["name"] == "echo"


class _FakeRun:
    def __init__(self, output: PlannerOutput) -> None:
        self.output = output


class _FakeAgent:
    prompts: list[str] = []
    output = PlannerOutput(
        reasoning="need the listing",
        plan_actions=[PlannedAction(type="tool", name="list_files", parameters={"path": "/tmp"})],
    )
    exc: Exception | None = None

    def __init__(self, model: Any, *, output_type: Any, system_prompt: str) -> None:
        assert output_type is PlannerOutput
        self.model = model

    async def run(self, prompt: str) -> _FakeRun:
        type(self).prompts.append(prompt)
        if type(self).exc is not None:
            raise type(self).exc
        return _FakeRun(type(self).output)


class TestAgentPath:
    @pytest.fixture(autouse=True)
    def _fake_agent(self, monkeypatch: pytest.MonkeyPatch):
        _FakeAgent.prompts = []
        _FakeAgent.exc = None
        monkeypatch.setattr(planner_mod, "Agent", _FakeAgent)

    @pytest.mark.asyncio
    async def test_structured_output_becomes_hints(self) -> None:
        planner = StructuredPlanner(model="fake", available_functions=["summarize"], available_tools=["list_files"])
        history = _done(StepKind.tool_action, "list_files", output="a.txt")

        result = await planner.execute(_ctx(history))

        assert result.success is True
        assert result.data == {
            "plan_actions": [{"type": "tool", "name": "list_files", "parameters": {"path": "/tmp"}}]
        }
        assert result.usage is None
        prompt = _FakeAgent.prompts[0]
        assert "user_request=list files in /tmp" in prompt
        assert "tools=list_files" in prompt
        assert "llm_functions=summarize" in prompt
        assert "[tool_action] list_files (ok) a.txt" in prompt

    @pytest.mark.asyncio
    async def test_model_error_reports_failure(self) -> None:
        _FakeAgent.exc = RuntimeError("rate limited")

        result = await StructuredPlanner(model="fake").execute(_ctx())

        assert result.success is False
        assert result.error == "rate limited"


@pytest.mark.asyncio
async def test_with_pydantic_ai_test_model() -> None:
    from pydantic_ai.models.test import TestModel

    model = TestModel(
        custom_output_args={
            "reasoning": "done already",
            "plan_actions": [],
            "is_completed": True,
            "final_response": "nothing to do",
        }
    )

    result = await StructuredPlanner(model=model).execute(_ctx())

    assert result.success is True
    assert result.data == {"plan_actions": [], "is_completed": True, "final_response": "nothing to do"}
    assert result.usage is not None
    assert result.usage.total_tokens > 0


def test_planner_output_hints_omit_defaults() -> None:
    assert PlannerOutput().to_hints() == {"plan_actions": []}


def test_fallback_estimate_is_free() -> None:
    assert StructuredPlanner().estimate_usage(_ctx()).total_tokens == 0


def test_model_estimate_covers_prompt_and_output() -> None:
    planner = StructuredPlanner(model="fake", available_tools=["list_files"])

    estimate = planner.estimate_usage(_ctx())

    assert estimate.input_tokens > 0
    assert estimate.estimated_output_tokens > 0
