"""Heuristic token and cost estimation.

Used by LLM actions whose function does not expose its own
``estimate_usage``. Counting is a character heuristic (about four Latin
characters per token, one and a half tokens per Hangul syllable); it is meant
to be conservative rather than exact.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Optional

from .models import TokenUsageEstimate


@dataclass(frozen=True)
class ModelPricing:
    context_window: int
    max_output_tokens: int
    input_cost_per_1k: float
    output_cost_per_1k: float
    chars_per_token: float = 4.0


MODEL_PRICING: Dict[str, ModelPricing] = {
    "claude-3-5-sonnet-20241022": ModelPricing(200_000, 8192, 0.003, 0.015),
    "claude-3-5-haiku-20241022": ModelPricing(200_000, 8192, 0.00025, 0.00125),
    "claude-3-opus-20240229": ModelPricing(200_000, 4096, 0.015, 0.075),
    "claude-3-sonnet-20240229": ModelPricing(200_000, 4096, 0.003, 0.015),
    "claude-3-haiku-20240307": ModelPricing(200_000, 4096, 0.00025, 0.00125),
    "gpt-4o": ModelPricing(128_000, 16_384, 0.0025, 0.01),
    "gpt-4o-mini": ModelPricing(128_000, 16_384, 0.00015, 0.0006),
}

DEFAULT_MODEL = "claude-3-5-sonnet-20241022"
DEFAULT_MAX_OUTPUT_TOKENS = 1024


def pricing_for(model: Optional[str]) -> ModelPricing:
    if model:
        # Provider-qualified names such as "openai:gpt-4o".
        bare = model.split(":", 1)[-1]
        if bare in MODEL_PRICING:
            return MODEL_PRICING[bare]
    return MODEL_PRICING[DEFAULT_MODEL]


def count_tokens(text: str, model: Optional[str] = None) -> int:
    if not text:
        return 0
    ratio = pricing_for(model).chars_per_token
    hangul = sum(1 for c in text if "가" <= c <= "힣")
    estimated = math.ceil(hangul * 1.5 + (len(text) - hangul) / ratio)
    return max(estimated, 1)


def estimate_cost(input_tokens: int, output_tokens: int, model: Optional[str] = None) -> float:
    pricing = pricing_for(model)
    return input_tokens / 1000 * pricing.input_cost_per_1k + output_tokens / 1000 * pricing.output_cost_per_1k


def estimate_usage(
    prompt: str,
    *,
    model: Optional[str] = None,
    system_prompt: str = "",
    max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
) -> TokenUsageEstimate:
    """
    Estimate the usage of one LLM call.

    The output side is bounded by ``max_output_tokens`` and a quarter of the
    model's output window.
    """
    pricing = pricing_for(model)
    input_tokens = count_tokens(system_prompt, model) + count_tokens(prompt, model)
    output_tokens = min(max_output_tokens, pricing.max_output_tokens // 4)
    return TokenUsageEstimate(
        input_tokens=input_tokens,
        estimated_output_tokens=output_tokens,
        estimated_cost=estimate_cost(input_tokens, output_tokens, model),
        model=model,
    )
