"""Runtime dependency bundle and LangGraph state types.

The runtime engine is designed to be dependency-injected.

- ``EngineDeps`` collects what the engine needs: registry, action factory,
  completion checker and an optional budget manager.
- ``_GraphState`` is the mutable state passed between LangGraph nodes.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, NotRequired, Optional, Required, TypedDict

from ..actions.factory import ActionFactory
from ..budget.manager import TokenBudgetManager
from ..capabilities.registry import Registry
from ..completion import CompletionChecker
from ..schemas.domain import Session

DEFAULT_MAX_ITERATIONS = 10
PLANNER_NAME = "planner"


@dataclass(frozen=True)
class EngineDeps:
    """Dependency bundle for ``OrchestrationEngine``.

    This object is typically constructed by ``orchestration.factory`` and
    passed into the engine. It holds:

    - the registry the planner and every action are resolved from,
    - the factory turning planner descriptors into actions,
    - the completion predicate evaluated after each execute phase,
    - the budget manager gating the planner call; ``None`` leaves planning
      unmetered.
    """

    registry: Registry
    action_factory: ActionFactory
    completion_checker: CompletionChecker
    planner_name: str = PLANNER_NAME
    budget_manager: Optional[TokenBudgetManager] = None


class _GraphState(TypedDict):
    """Mutable LangGraph state for a single engine run.

    Required keys:

    - ``session``: the session being driven; mutated in place.
    - ``iteration``: planning cycles started during this run.
    - ``max_iterations``: cap on ``iteration``.

    Optional keys:

    - ``plan_actions``: descriptors of the current cycle.
    - ``cancel_event``: set by the caller to stop between steps.
    - ``_route``: routing decision of the last node.
    """

    session: Required[Session]
    iteration: Required[int]
    max_iterations: Required[int]
    plan_actions: NotRequired[List[Dict[str, Any]]]
    cancel_event: NotRequired[Optional[asyncio.Event]]
    _route: NotRequired[str]
