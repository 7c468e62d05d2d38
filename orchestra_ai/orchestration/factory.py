"""Wiring helpers.

Assemble the engine and its collaborators from ``Settings``. Everything here
is plain constructor calls; applications with their own wiring can skip this
module entirely.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from ..core.config import Settings, get_settings
from ..state import StateStore, build_state_store
from .actions.factory import ActionFactory
from .budget.manager import TokenBudgetManager
from .budget.models import TokenBudgetLimits
from .capabilities.builtin import SummarizeFunction
from .capabilities.registry import Registry
from .completion import CompletionChecker, DefaultCompletionChecker
from .planning.planner import StructuredPlanner
from .runtime.engine import OrchestrationEngine
from .runtime.models import EngineDeps
from .runtime.stateful import StatefulOrchestrationEngine

logger = logging.getLogger(__name__)


def build_budget_manager(settings: Optional[Settings] = None) -> TokenBudgetManager:
    budget = (settings or get_settings()).budget
    limits = TokenBudgetLimits(
        daily_token_limit=budget.daily_token_limit,
        hourly_token_limit=budget.hourly_token_limit,
        daily_budget_limit=budget.daily_budget_limit,
        hourly_budget_limit=budget.hourly_budget_limit,
        warning_threshold=budget.warning_threshold,
        block_threshold=budget.block_threshold,
    )
    return TokenBudgetManager(limits, retention_days=budget.retention_days)


def build_default_registry(*, model: Any | None = None) -> Registry:
    """Registry holding the structured planner and the summarize function."""
    registry = Registry()
    summarize = SummarizeFunction(model=model)
    registry.register_llm_function(summarize)
    registry.register_llm_function(StructuredPlanner(model=model, available_functions=[summarize.name]))
    return registry


def build_engine(
    *,
    registry: Registry,
    budget_manager: TokenBudgetManager,
    completion_checker: Optional[CompletionChecker] = None,
    max_iterations: Optional[int] = None,
    settings: Optional[Settings] = None,
) -> OrchestrationEngine:
    settings = settings or get_settings()
    deps = EngineDeps(
        registry=registry,
        action_factory=ActionFactory(registry=registry, budget_manager=budget_manager),
        completion_checker=completion_checker or DefaultCompletionChecker(),
        budget_manager=budget_manager,
    )
    engine = OrchestrationEngine(deps=deps, max_iterations=max_iterations or settings.max_iterations)
    logger.info(
        f"Orchestration engine built: max_iterations={engine.max_iterations}, "
        f"functions={registry.list_llm_functions()}, tools={registry.list_tools()}"
    )
    return engine


def build_stateful_engine(
    engine: OrchestrationEngine,
    *,
    store: Optional[StateStore] = None,
    settings: Optional[Settings] = None,
) -> StatefulOrchestrationEngine:
    checkpoint = (settings or get_settings()).checkpoint
    return StatefulOrchestrationEngine(
        engine,
        store or build_state_store(checkpoint),
        success_ttl=checkpoint.success_ttl,
        failure_ttl=checkpoint.failure_ttl,
    )
