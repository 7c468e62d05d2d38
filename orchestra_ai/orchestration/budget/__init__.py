"""Token budget admission gate for LLM actions."""

from .estimator import estimate_usage
from .manager import TokenBudgetManager, TokenReservation
from .models import (
    DailyTokenUsage,
    HourlyTokenUsage,
    TokenBudgetLimits,
    TokenBudgetStatus,
    TokenUsageEstimate,
)

__all__ = [
    "DailyTokenUsage",
    "HourlyTokenUsage",
    "TokenBudgetLimits",
    "TokenBudgetManager",
    "TokenBudgetStatus",
    "TokenReservation",
    "TokenUsageEstimate",
    "estimate_usage",
]
