"""Token budget records.

All records are immutable pydantic models; the manager replaces a bucket with
``model_copy(update=...)`` instead of mutating it in place.
"""

from __future__ import annotations

import datetime as dt
from datetime import datetime
from typing import Dict, Optional

from pydantic import ConfigDict, Field, computed_field

from ..schemas.base import BaseSchema


class _FrozenSchema(BaseSchema):
    model_config = ConfigDict(frozen=True)


class TokenBudgetLimits(_FrozenSchema):
    daily_token_limit: int = Field(default=100_000, ge=0)
    hourly_token_limit: int = Field(default=10_000, ge=0)
    daily_budget_limit: float = Field(default=100.0, ge=0)
    hourly_budget_limit: float = Field(default=10.0, ge=0)
    warning_threshold: float = Field(default=0.8, ge=0, le=1)
    block_threshold: float = Field(default=0.95, ge=0, le=1)
    model_priority_weights: Dict[str, float] = Field(default_factory=dict)


class TokenUsageEstimate(_FrozenSchema):
    """Predicted or actual token usage of one LLM call.

    ``total_tokens`` is computed from ``input_tokens`` and
    ``estimated_output_tokens`` and is not accepted as input; express a bare
    token count as ``TokenUsageEstimate(input_tokens=100)``.
    """

    input_tokens: int = Field(default=0, ge=0)
    estimated_output_tokens: int = Field(default=0, ge=0)
    estimated_cost: float = Field(default=0.0, ge=0)
    model: Optional[str] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.estimated_output_tokens


class DailyTokenUsage(_FrozenSchema):
    date: dt.date
    total_tokens: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    total_cost: float = 0.0
    request_count: int = 0
    last_updated_at: Optional[datetime] = None


class HourlyTokenUsage(_FrozenSchema):
    hour: datetime
    total_tokens: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    total_cost: float = 0.0
    request_count: int = 0
    last_updated_at: Optional[datetime] = None


class TokenBudgetStatus(_FrozenSchema):
    daily_usage_ratio: float
    hourly_usage_ratio: float
    daily_remaining_tokens: int
    hourly_remaining_tokens: int
    daily_remaining_budget: float
    hourly_remaining_budget: float
    risk_level: float
    is_warning: bool
    is_blocked: bool
    status_time: datetime
