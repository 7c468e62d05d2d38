"""Process-wide token and cost admission gate.

``TokenBudgetManager`` keeps usage buckets per UTC day and per UTC hour and
admits an LLM call only when the call keeps every bucket within its limit
(daily tokens, hourly tokens, daily cost, hourly cost).

Two APIs are offered:

- ``reserve`` / ``settle`` / ``release``: the check and the recording happen
  atomically under the manager's lock, so concurrent sessions cannot both
  pass the check against the same headroom. LLM actions use this path.
- ``can_use`` + ``record_usage``: the historical two-step API. Between the
  two calls another session may consume the headroom; callers that need a
  hard guarantee use ``reserve``.

All counters are mutated under a single ``threading.Lock``; the critical
sections are short and never await.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Dict, Optional
from uuid import uuid4

from ..errors import BudgetLimitsImmutableError, BudgetManagerClosedError
from .models import (
    DailyTokenUsage,
    HourlyTokenUsage,
    TokenBudgetLimits,
    TokenBudgetStatus,
    TokenUsageEstimate,
)

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 30


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def normalize_hour(value: datetime) -> datetime:
    """Truncate to the start of the UTC hour."""
    return _as_utc(value).replace(minute=0, second=0, microsecond=0)


def _ratio(used: float, limit: float) -> float:
    if limit > 0:
        return used / limit
    return math.inf if used > 0 else 0.0


@dataclass
class TokenReservation:
    """Usage admitted by ``reserve`` and not yet settled."""

    estimate: TokenUsageEstimate
    day: date
    hour: datetime
    reservation_id: str = field(default_factory=lambda: str(uuid4()))
    settled: bool = False


class TokenBudgetManager:
    """
    Token and cost budget shared by every session of a process.

    Args:
        limits: Budget limits; fixed for the lifetime of the manager.
        clock: Returns the current time; injected so tests can move across
            hour and day boundaries.
        retention_days: Default age limit for ``cleanup_old_usage``.
    """

    def __init__(
        self,
        limits: Optional[TokenBudgetLimits] = None,
        *,
        clock: Callable[[], datetime] = _utc_now,
        retention_days: int = DEFAULT_RETENTION_DAYS,
    ) -> None:
        self._limits = limits or TokenBudgetLimits()
        self._clock = clock
        self._retention_days = retention_days
        self._daily: Dict[date, DailyTokenUsage] = {}
        self._hourly: Dict[datetime, HourlyTokenUsage] = {}
        self._lock = threading.Lock()
        self._closed = False
        logger.info(
            f"Token budget manager initialized: daily_tokens={self._limits.daily_token_limit}, "
            f"hourly_tokens={self._limits.hourly_token_limit}, "
            f"daily_budget={self._limits.daily_budget_limit}, hourly_budget={self._limits.hourly_budget_limit}"
        )

    @property
    def limits(self) -> TokenBudgetLimits:
        return self._limits

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # internals (call with the lock held)
    # ------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise BudgetManagerClosedError("token budget manager is closed")

    def _current_buckets(self) -> tuple[date, datetime]:
        now = _as_utc(self._clock())
        return now.date(), normalize_hour(now)

    def _violation(self, estimate: TokenUsageEstimate, day: date, hour: datetime) -> Optional[str]:
        daily = self._daily.get(day)
        hourly = self._hourly.get(hour)
        daily_tokens = (daily.total_tokens if daily else 0) + estimate.total_tokens
        hourly_tokens = (hourly.total_tokens if hourly else 0) + estimate.total_tokens
        daily_cost = (daily.total_cost if daily else 0.0) + estimate.estimated_cost
        hourly_cost = (hourly.total_cost if hourly else 0.0) + estimate.estimated_cost

        if daily_tokens > self._limits.daily_token_limit:
            return f"daily token limit exceeded ({daily_tokens}/{self._limits.daily_token_limit})"
        if hourly_tokens > self._limits.hourly_token_limit:
            return f"hourly token limit exceeded ({hourly_tokens}/{self._limits.hourly_token_limit})"
        if daily_cost > self._limits.daily_budget_limit:
            return f"daily budget exceeded ({daily_cost:.4f}/{self._limits.daily_budget_limit})"
        if hourly_cost > self._limits.hourly_budget_limit:
            return f"hourly budget exceeded ({hourly_cost:.4f}/{self._limits.hourly_budget_limit})"
        return None

    def _apply(
        self,
        day: date,
        hour: datetime,
        *,
        input_tokens: int,
        output_tokens: int,
        cost: float,
        requests: int,
    ) -> None:
        now = self._clock()
        daily = self._daily.get(day) or DailyTokenUsage(date=day)
        self._daily[day] = daily.model_copy(
            update={
                "total_tokens": daily.total_tokens + input_tokens + output_tokens,
                "input_tokens": daily.input_tokens + input_tokens,
                "output_tokens": daily.output_tokens + output_tokens,
                "total_cost": daily.total_cost + cost,
                "request_count": daily.request_count + requests,
                "last_updated_at": now,
            }
        )
        hourly = self._hourly.get(hour) or HourlyTokenUsage(hour=hour)
        self._hourly[hour] = hourly.model_copy(
            update={
                "total_tokens": hourly.total_tokens + input_tokens + output_tokens,
                "input_tokens": hourly.input_tokens + input_tokens,
                "output_tokens": hourly.output_tokens + output_tokens,
                "total_cost": hourly.total_cost + cost,
                "request_count": hourly.request_count + requests,
                "last_updated_at": now,
            }
        )

    # ------------------------------------------------------------------
    # admission
    # ------------------------------------------------------------------

    async def can_use(self, estimate: TokenUsageEstimate) -> bool:
        """
        Check whether ``estimate`` fits every limit right now.

        Returns:
            False if any of daily tokens, hourly tokens, daily cost or hourly
            cost would exceed its limit.
        """
        with self._lock:
            self._ensure_open()
            day, hour = self._current_buckets()
            reason = self._violation(estimate, day, hour)
        if reason is not None:
            logger.warning(f"Token budget check failed: {reason}")
            return False
        return True

    async def record_usage(self, usage: TokenUsageEstimate) -> None:
        """Add ``usage`` and one request to the current day and hour buckets."""
        with self._lock:
            self._ensure_open()
            day, hour = self._current_buckets()
            self._apply(
                day,
                hour,
                input_tokens=usage.input_tokens,
                output_tokens=usage.estimated_output_tokens,
                cost=usage.estimated_cost,
                requests=1,
            )
        logger.debug(f"Token usage recorded: tokens={usage.total_tokens}, cost={usage.estimated_cost:.4f}")

    async def reserve(self, estimate: TokenUsageEstimate) -> Optional[TokenReservation]:
        """
        Atomically check ``estimate`` and record it.

        Returns:
            A reservation to ``settle`` or ``release`` once the call is done,
            or None when the estimate does not fit.
        """
        with self._lock:
            self._ensure_open()
            day, hour = self._current_buckets()
            reason = self._violation(estimate, day, hour)
            if reason is None:
                self._apply(
                    day,
                    hour,
                    input_tokens=estimate.input_tokens,
                    output_tokens=estimate.estimated_output_tokens,
                    cost=estimate.estimated_cost,
                    requests=1,
                )
        if reason is not None:
            logger.warning(f"Token budget reservation denied: {reason}")
            return None
        return TokenReservation(estimate=estimate, day=day, hour=hour)

    async def settle(self, reservation: TokenReservation, actual: TokenUsageEstimate) -> None:
        """Replace the reserved amounts with the actual usage of the call."""
        reserved = reservation.estimate
        with self._lock:
            self._ensure_open()
            if reservation.settled:
                raise ValueError(f"reservation {reservation.reservation_id} is already settled")
            self._apply(
                reservation.day,
                reservation.hour,
                input_tokens=actual.input_tokens - reserved.input_tokens,
                output_tokens=actual.estimated_output_tokens - reserved.estimated_output_tokens,
                cost=actual.estimated_cost - reserved.estimated_cost,
                requests=0,
            )
            reservation.settled = True

    async def release(self, reservation: TokenReservation) -> None:
        """Refund a reservation whose call never consumed anything."""
        reserved = reservation.estimate
        with self._lock:
            self._ensure_open()
            if reservation.settled:
                raise ValueError(f"reservation {reservation.reservation_id} is already settled")
            self._apply(
                reservation.day,
                reservation.hour,
                input_tokens=-reserved.input_tokens,
                output_tokens=-reserved.estimated_output_tokens,
                cost=-reserved.estimated_cost,
                requests=-1,
            )
            reservation.settled = True

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------

    async def get_daily_usage(self, day: date) -> DailyTokenUsage:
        with self._lock:
            self._ensure_open()
            return self._daily.get(day) or DailyTokenUsage(date=day)

    async def get_hourly_usage(self, hour: datetime) -> HourlyTokenUsage:
        key = normalize_hour(hour)
        with self._lock:
            self._ensure_open()
            return self._hourly.get(key) or HourlyTokenUsage(hour=key)

    async def get_budget_status(self) -> TokenBudgetStatus:
        with self._lock:
            self._ensure_open()
            day, hour = self._current_buckets()
            daily = self._daily.get(day) or DailyTokenUsage(date=day)
            hourly = self._hourly.get(hour) or HourlyTokenUsage(hour=hour)

        limits = self._limits
        daily_ratio = _ratio(daily.total_tokens, limits.daily_token_limit)
        hourly_ratio = _ratio(hourly.total_tokens, limits.hourly_token_limit)
        risk_level = max(daily_ratio, hourly_ratio)
        return TokenBudgetStatus(
            daily_usage_ratio=daily_ratio,
            hourly_usage_ratio=hourly_ratio,
            daily_remaining_tokens=max(0, limits.daily_token_limit - daily.total_tokens),
            hourly_remaining_tokens=max(0, limits.hourly_token_limit - hourly.total_tokens),
            daily_remaining_budget=max(0.0, limits.daily_budget_limit - daily.total_cost),
            hourly_remaining_budget=max(0.0, limits.hourly_budget_limit - hourly.total_cost),
            risk_level=risk_level,
            is_warning=risk_level >= limits.warning_threshold,
            is_blocked=risk_level >= limits.block_threshold,
            status_time=_as_utc(self._clock()),
        )

    # ------------------------------------------------------------------
    # maintenance
    # ------------------------------------------------------------------

    async def update_budget_limits(self, limits: TokenBudgetLimits) -> None:
        """Limits are fixed at construction; build a new manager instead."""
        with self._lock:
            self._ensure_open()
        raise BudgetLimitsImmutableError("token budget limits cannot be changed at runtime")

    async def cleanup_old_usage(self, retention_days: Optional[int] = None) -> int:
        """
        Drop buckets older than ``retention_days`` (the manager default when None).

        Returns:
            Number of day and hour buckets removed.
        """
        retention_days = self._retention_days if retention_days is None else retention_days
        with self._lock:
            self._ensure_open()
            now = _as_utc(self._clock())
            cutoff_day = (now - timedelta(days=retention_days)).date()
            cutoff_hour = now - timedelta(hours=retention_days * 24)
            stale_days = [d for d in self._daily if d < cutoff_day]
            stale_hours = [h for h in self._hourly if h < cutoff_hour]
            for d in stale_days:
                del self._daily[d]
            for h in stale_hours:
                del self._hourly[h]
        removed = len(stale_days) + len(stale_hours)
        logger.info(f"Token usage cleanup removed {removed} buckets older than {retention_days} days")
        return removed

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._daily.clear()
            self._hourly.clear()
        logger.debug("Token budget manager closed")

    async def __aenter__(self) -> "TokenBudgetManager":
        with self._lock:
            self._ensure_open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()
