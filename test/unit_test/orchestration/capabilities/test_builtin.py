from __future__ import annotations

import pytest

from orchestra_ai.orchestration.capabilities.base import LLMContext
from orchestra_ai.orchestration.capabilities.builtin import SummarizeFunction, usage_from_agent_run


def _ctx(**kwargs) -> LLMContext:
    return LLMContext(session_id="s1", user_request=kwargs.pop("request", "the request"), **kwargs)


@pytest.mark.asyncio
async def test_without_model_truncates() -> None:
    fn = SummarizeFunction(max_chars=5)
    result = await fn.execute(_ctx(parameters={"text": "abcdefghij"}))

    assert result.success is True
    assert result.content == "abcde"
    assert result.data == {"final_response": "abcde"}
    assert result.usage is None


@pytest.mark.asyncio
async def test_text_source_falls_back_to_last_result_then_request() -> None:
    fn = SummarizeFunction()
    from_shared = await fn.execute(_ctx(shared_data={"last_result": "previous output"}))
    from_request = await fn.execute(_ctx(request="only the request"))

    assert from_shared.content == "previous output"
    assert from_request.content == "only the request"


def test_estimate_without_model_is_free() -> None:
    estimate = SummarizeFunction().estimate_usage(_ctx())
    assert estimate.total_tokens == 0


@pytest.mark.asyncio
async def test_with_test_model() -> None:
    from pydantic_ai.models.test import TestModel

    fn = SummarizeFunction(model=TestModel(custom_output_text="short summary"))

    result = await fn.execute(_ctx(parameters={"text": "a long text"}))

    assert result.success is True
    assert result.content == "short summary"
    assert result.data["final_response"] == "short summary"
    assert result.usage is not None
    assert result.usage.total_tokens > 0
    assert fn.estimate_usage(_ctx(parameters={"text": "a long text"})).total_tokens > 0


def test_usage_from_agent_run_without_usage() -> None:
    assert usage_from_agent_run(object(), "m") is None


def test_usage_from_agent_run_reads_token_counts() -> None:
    class _Usage:
        input_tokens = 12
        output_tokens = 3

    class _Run:
        def usage(self):
            return _Usage()

    usage = usage_from_agent_run(_Run(), "gpt-4o")
    assert usage.input_tokens == 12
    assert usage.estimated_output_tokens == 3
    assert usage.model == "gpt-4o"


def test_usage_from_agent_run_reads_usage_property() -> None:
    class _Usage:
        input_tokens = 51
        output_tokens = 4

    class _Run:
        @property
        def usage(self):
            return _Usage()

    usage = usage_from_agent_run(_Run(), "test")
    assert usage is not None
    assert usage.input_tokens == 51
    assert usage.estimated_output_tokens == 4
