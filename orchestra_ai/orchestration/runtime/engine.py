"""LangGraph orchestration engine.

``OrchestrationEngine`` drives a ``Session`` until it completes, fails, is
cancelled or runs out of iterations.

Execution model
---------------

The engine runs a LangGraph state machine over a mutable ``_GraphState``::

    plan ──► execute ──► check ──► plan ...
      │                     │
      ├─► limit ──► END     └─► END (completed)
      └─► END (failed / cancelled)

- ``plan`` asks the ``planner`` LLM function for this cycle's actions and
  always records a planning step. A planner that is missing, raises or
  reports failure fails the session; there is no retry. With a budget manager
  in ``EngineDeps`` the planner call is reserved and settled like any other
  LLM call, and a denial fails the session.
- ``execute`` dispatches the descriptors into actions and runs them one at a
  time, recording one step each. A failing action does not stop the cycle.
- ``check`` evaluates the completion checker.
- ``limit`` fails the session once ``max_iterations`` cycles ran without
  completing.

Cancellation
------------

A caller-supplied ``asyncio.Event`` is checked before each cycle and between
actions. A cancelled session is left ``running`` so it can be continued.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Optional

from langgraph.graph import END, StateGraph

from ...core.monitoring import log_budget_denied, log_llm_call, log_session_completed, log_session_started
from ..actions.base import OrchestrationAction
from ..actions.llm import default_usage_estimator
from ..capabilities.base import CapabilityResult, LLMContext, LLMFunction
from ..errors import ActionDispatchError, ActionExecutionError, BudgetExceededError, PlanningError
from ..schemas.domain import ExecutionStep, OrchestrationResult, Session, StepKind
from .models import DEFAULT_MAX_ITERATIONS, EngineDeps, _GraphState

logger = logging.getLogger(__name__)

# Supersteps per cycle (plan, execute, check) plus the limit node and slack.
_STEPS_PER_ITERATION = 3
_RECURSION_SLACK = 5


def _plan_actions_from(result: CapabilityResult) -> Dict[str, Any]:
    """Extract planner hints, falling back to a JSON object in the content."""
    hints = dict(result.data or {})
    if "plan_actions" not in hints and result.content:
        try:
            parsed = json.loads(result.content)
        except ValueError:
            parsed = None
        if isinstance(parsed, dict) and isinstance(parsed.get("plan_actions"), list):
            hints = {**parsed, **hints}
    return hints


class OrchestrationEngine:
    """Plan, execute and check a session until it terminates.

    Args:
        deps: Registry, action factory and completion checker.
        max_iterations: Cap on planning cycles per ``run`` call.
    """

    def __init__(self, *, deps: EngineDeps, max_iterations: int = DEFAULT_MAX_ITERATIONS) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self._deps = deps
        self._max_iterations = max_iterations
        self._graph = self._build_graph()

    @property
    def deps(self) -> EngineDeps:
        return self._deps

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    def _build_graph(self):
        """Build and compile the LangGraph state machine."""
        g: StateGraph = StateGraph(_GraphState)
        g.add_node("plan", self._node_plan)
        g.add_node("execute", self._node_execute)
        g.add_node("check", self._node_check)
        g.add_node("limit", self._node_limit)

        g.set_entry_point("plan")
        g.add_conditional_edges(
            "plan",
            self._route,
            {
                "execute": "execute",
                "limit": "limit",
                "stop": END,
            },
        )
        g.add_edge("execute", "check")
        g.add_conditional_edges(
            "check",
            self._route,
            {
                "plan": "plan",
                "stop": END,
            },
        )
        g.add_edge("limit", END)
        return g.compile()

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------

    async def execute(
        self,
        request: str,
        *,
        session_id: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> OrchestrationResult:
        """Start a new session for ``request`` and drive it."""
        session = Session(session_id=session_id, user_request=request) if session_id else Session(user_request=request)
        session = await self.run(session, cancel_event=cancel_event)
        return OrchestrationResult.from_session(session)

    async def continue_(
        self,
        session: Session,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> OrchestrationResult:
        """Resume a session; terminal sessions are returned as they are."""
        if not session.is_terminal:
            session = await self.run(session, cancel_event=cancel_event)
        return OrchestrationResult.from_session(session)

    async def run(self, session: Session, *, cancel_event: Optional[asyncio.Event] = None) -> Session:
        """
        Drive ``session`` in place and return it.

        Never raises for failures inside the loop: they end up as a failed
        session with ``error_message`` set.
        """
        if session.is_terminal:
            logger.debug(f"Session {session.session_id} is already {session.status.value}; nothing to run")
            return session

        logger.info(f"Orchestration started: session={session.session_id}")
        log_session_started(session.session_id, session.user_request)

        state: _GraphState = {
            "session": session,
            "iteration": 0,
            "max_iterations": self._max_iterations,
            "cancel_event": cancel_event,
        }
        config = {"recursion_limit": self._max_iterations * _STEPS_PER_ITERATION + _RECURSION_SLACK}
        try:
            final = await self._graph.ainvoke(state, config=config)
            session = final.get("session", session)
        except Exception as e:
            logger.error(f"Orchestration error in session {session.session_id}: {e}", exc_info=True)
            if not session.is_terminal:
                session.fail(f"execution error: {e}")

        duration_ms = ((session.completed_at or session.started_at) - session.started_at).total_seconds() * 1000
        logger.info(
            f"Orchestration finished: session={session.session_id}, status={session.status.value}, "
            f"steps={len(session.step_history)}"
        )
        log_session_completed(session.session_id, session.status.value, len(session.step_history), duration_ms)
        return session

    # ------------------------------------------------------------------
    # graph nodes
    # ------------------------------------------------------------------

    @staticmethod
    def _cancelled(state: _GraphState) -> bool:
        event = state.get("cancel_event")
        return event is not None and event.is_set()

    def _route(self, state: _GraphState) -> str:
        return state.get("_route") or "stop"

    async def _call_planner(self, name: str, planner: LLMFunction, ctx: LLMContext) -> CapabilityResult:
        """Run the planner through the budget gate when a budget manager is wired in."""
        budget = self._deps.budget_manager
        if budget is None:
            return await planner.execute(ctx)

        estimate = default_usage_estimator(planner, ctx)
        reservation = await budget.reserve(estimate)
        if reservation is None:
            log_budget_denied(name, estimate.total_tokens, estimate.estimated_cost)
            raise BudgetExceededError(name, estimate.total_tokens, estimate.estimated_cost)

        try:
            result = await planner.execute(ctx)
        except Exception:
            await budget.release(reservation)
            raise

        if result.usage is not None:
            await budget.settle(reservation, result.usage)
            log_llm_call(result.usage.model, result.usage.total_tokens, result.usage.estimated_cost)
        elif result.success:
            await budget.settle(reservation, estimate)
        else:
            await budget.release(reservation)
        return result

    async def _node_plan(self, state: _GraphState) -> _GraphState:
        """Ask the planner for this cycle's actions."""
        session = state["session"]
        if session.is_terminal or self._cancelled(state):
            if not session.is_terminal:
                logger.info(f"Session {session.session_id} cancelled before planning")
            state["_route"] = "stop"
            return state
        if state["iteration"] >= state["max_iterations"]:
            state["_route"] = "limit"
            return state

        state["iteration"] += 1
        planner_name = self._deps.planner_name
        step = ExecutionStep.begin(kind=StepKind.planning, name=planner_name, input=session.user_request)
        try:
            planner = self._deps.registry.get_llm_function(planner_name)
            if planner is None:
                raise PlanningError(f"planner function '{planner_name}' is not registered")
            ctx = LLMContext.from_session(session, parameters={"user_request": session.user_request})
            result = await self._call_planner(planner_name, planner, ctx)
        except Exception as e:
            step.finish(success=False, error_message=str(e))
            session.add_step(step)
            logger.error(f"Planning failed in session {session.session_id}: {e}")
            session.fail(f"planning failed: {e}")
            state["_route"] = "stop"
            return state

        step.finish(
            success=result.success,
            output=result.content or None,
            error_message=result.error,
            metadata={"iteration": state["iteration"]},
        )
        session.add_step(step)
        if not result.success:
            error = result.error or "planner reported failure"
            logger.error(f"Planning failed in session {session.session_id}: {error}")
            session.fail(f"planning failed: {error}")
            state["_route"] = "stop"
            return state

        hints = _plan_actions_from(result)
        plan_actions = hints.pop("plan_actions", None)
        if not isinstance(plan_actions, list):
            plan_actions = []
        session.shared_data.update(hints)
        session.shared_data["plan_actions"] = list(plan_actions)
        state["plan_actions"] = list(plan_actions)
        logger.debug(
            f"Session {session.session_id} iteration {state['iteration']}: {len(plan_actions)} actions planned"
        )
        state["_route"] = "execute"
        return state

    async def _node_execute(self, state: _GraphState) -> _GraphState:
        """Dispatch and run this cycle's actions in order."""
        session = state["session"]
        descriptors = list(state.get("plan_actions") or [])
        if not descriptors:
            return state

        try:
            actions = self._deps.action_factory.create_actions(descriptors)
        except ActionDispatchError as e:
            logger.error(f"Action dispatch failed in session {session.session_id}: {e}")
            session.shared_data["last_error"] = str(e)
            return state

        for action in actions:
            if self._cancelled(state):
                logger.info(f"Session {session.session_id} cancelled between actions")
                break
            await self._run_action(session, action)
        return state

    async def _run_action(self, session: Session, action: OrchestrationAction) -> None:
        step = ExecutionStep.begin(kind=action.step_kind, name=action.name, input=action.parameters)
        try:
            result = await action.execute(session)
        except Exception as e:
            error = ActionExecutionError(action.name, str(e))
            logger.error(f"{action.display_name} raised in session {session.session_id}: {e}", exc_info=True)
            step.finish(success=False, error_message=str(error))
            session.add_step(step)
            return

        step.finish(
            success=result.success,
            output=result.output,
            error_message=result.error,
            metadata={"duration_ms": result.duration.total_seconds() * 1000},
        )
        session.add_step(step)
        if result.success:
            session.shared_data[action.output_key] = result.output
            session.shared_data["last_result"] = result.output
            session.shared_data.update(result.data)
        else:
            logger.warning(f"{action.display_name} failed in session {session.session_id}: {result.error}")

    async def _node_check(self, state: _GraphState) -> _GraphState:
        """Evaluate the completion predicate."""
        session = state["session"]
        if self._cancelled(state):
            state["_route"] = "stop"
            return state
        if self._deps.completion_checker.is_completed(session):
            session.complete()
            logger.info(f"Session {session.session_id} completed after {state['iteration']} iterations")
            state["_route"] = "stop"
        else:
            state["_route"] = "plan"
        return state

    async def _node_limit(self, state: _GraphState) -> _GraphState:
        """Fail a session that exhausted its iterations."""
        session = state["session"]
        message = f"maximum iterations ({state['max_iterations']}) reached"
        logger.warning(f"Session {session.session_id}: {message}")
        session.fail(message)
        return state
