"""
Built-in capabilities.

``SummarizeFunction`` is the LLM function the fallback plan relies on. It
runs through Pydantic AI when a model is configured and truncates otherwise.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Optional

from pydantic_ai import Agent

from ..budget.estimator import estimate_usage
from ..budget.models import TokenUsageEstimate
from .base import CapabilityResult, LLMContext


def usage_from_agent_run(result: Any, model_name: Optional[str]) -> Optional[TokenUsageEstimate]:
    """Convert a Pydantic AI run's usage into a ``TokenUsageEstimate``.

    Older releases expose ``usage`` as a method, newer ones as a property.
    """
    usage = getattr(result, "usage", None)
    if callable(usage):
        usage = usage()
    if usage is None:
        return None
    input_tokens = getattr(usage, "input_tokens", None) or getattr(usage, "request_tokens", None) or 0
    output_tokens = getattr(usage, "output_tokens", None) or getattr(usage, "response_tokens", None) or 0
    return TokenUsageEstimate(input_tokens=input_tokens, estimated_output_tokens=output_tokens, model=model_name)


def _text_to_summarize(ctx: LLMContext) -> str:
    for candidate in (ctx.parameters.get("text"), ctx.shared_data.get("last_result"), ctx.user_request):
        if candidate:
            return str(candidate)
    return ""


@dataclass(frozen=True)
class SummarizeFunction:
    """
    LLM function that summarizes text.

    The text comes from the ``text`` parameter, else the previous action's
    result, else the user request. Without a model the summary is the text
    truncated to ``max_chars``. The summary is also reported as the session's
    ``final_response`` hint.
    """

    name: str = "summarize"
    model: Any = None
    max_chars: int = 200
    system_prompt: str = "Summarize the user's text in a few sentences. Reply with the summary only."

    def estimate_usage(self, ctx: LLMContext) -> TokenUsageEstimate:
        if self.model is None:
            return TokenUsageEstimate(model="none")
        return estimate_usage(
            _text_to_summarize(ctx),
            model=getattr(self.model, "model_name", None),
            system_prompt=self.system_prompt,
        )

    async def execute(self, ctx: LLMContext) -> CapabilityResult:
        """
        Summarize the text in context.

        Returns:
            CapabilityResult:
                - Success: ``content`` holds the summary.
                - Failure: ``error`` holds the model error.
        """
        started = time.perf_counter()
        text = _text_to_summarize(ctx)
        usage: Optional[TokenUsageEstimate] = None

        if self.model is None:
            summary = text[: self.max_chars]
        else:
            agent: Agent = Agent(self.model, output_type=str, system_prompt=self.system_prompt)
            try:
                result = await agent.run(text)
            except Exception as e:
                return CapabilityResult(
                    success=False, error=str(e), execution_time=timedelta(seconds=time.perf_counter() - started)
                )
            summary = result.output
            usage = usage_from_agent_run(result, getattr(self.model, "model_name", None))

        return CapabilityResult(
            success=True,
            content=summary,
            execution_time=timedelta(seconds=time.perf_counter() - started),
            data={"final_response": summary},
            usage=usage,
        )
