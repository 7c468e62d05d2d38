from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type

import pytest
from pydantic import BaseModel

from orchestra_ai.orchestration.actions.factory import ActionFactory
from orchestra_ai.orchestration.budget.manager import TokenBudgetManager
from orchestra_ai.orchestration.capabilities.base import CapabilityResult, LLMContext, ToolResult
from orchestra_ai.orchestration.capabilities.registry import Registry
from orchestra_ai.orchestration.completion import DefaultCompletionChecker
from orchestra_ai.orchestration.errors import CheckpointError
from orchestra_ai.orchestration.runtime.engine import OrchestrationEngine
from orchestra_ai.orchestration.runtime.models import EngineDeps
from orchestra_ai.orchestration.runtime.stateful import StatefulOrchestrationEngine, state_key
from orchestra_ai.orchestration.schemas.domain import ExecutionStep, Session, SessionStatus, StepKind
from orchestra_ai.orchestration.schemas.state import SessionState
from orchestra_ai.state.base import StateStoreStatistics
from orchestra_ai.state.memory import InMemoryStateStore


class _FakePlanner:
    name = "planner"

    def __init__(self, reply: CapabilityResult) -> None:
        self._reply = reply
        self.calls = 0

    async def execute(self, ctx: LLMContext) -> CapabilityResult:
        self.calls += 1
        return self._reply


class _FakeTool:
    name = "list_files"
    required_parameters: Sequence[str] = ()

    async def execute(self, parameters: Dict[str, Any]) -> ToolResult:
        return ToolResult(success=True, data="a.txt")


class _RecordingStore(InMemoryStateStore):
    def __init__(self) -> None:
        super().__init__()
        self.writes: List[Tuple[str, Optional[timedelta]]] = []

    async def set(self, key: str, value: BaseModel, ttl: Optional[timedelta] = None) -> None:
        self.writes.append((key, ttl))
        await super().set(key, value, ttl)


class _BrokenStore:
    async def get(self, key: str, model: Type[BaseModel]):
        raise CheckpointError("read failed", key=key)

    async def set(self, key: str, value: BaseModel, ttl: Optional[timedelta] = None) -> None:
        raise CheckpointError("write failed", key=key)

    async def delete(self, key: str) -> None:
        raise CheckpointError("delete failed", key=key)

    async def exists(self, key: str) -> bool:
        raise CheckpointError("exists failed", key=key)

    async def is_healthy(self) -> bool:
        raise CheckpointError("down")

    async def cleanup_expired(self) -> int:
        raise CheckpointError("down")

    async def get_statistics(self) -> StateStoreStatistics:
        raise CheckpointError("down")


class _RaisingEngine:
    async def run(self, session: Session, *, cancel_event=None) -> Session:
        raise RuntimeError("engine crashed")


_PLAN = CapabilityResult(
    success=True, data={"plan_actions": [{"type": "tool", "tool_name": "list_files"}]}
)
_FAIL = CapabilityResult(success=False, error="no plan")


def _inner(reply: CapabilityResult) -> Tuple[OrchestrationEngine, _FakePlanner]:
    planner = _FakePlanner(reply)
    registry = Registry()
    registry.register_llm_function(planner)
    registry.register_tool(_FakeTool())
    deps = EngineDeps(
        registry=registry,
        action_factory=ActionFactory(registry=registry, budget_manager=TokenBudgetManager()),
        completion_checker=DefaultCompletionChecker(),
    )
    return OrchestrationEngine(deps=deps), planner


@pytest.mark.asyncio
async def test_successful_run_is_saved_with_success_ttl() -> None:
    store = _RecordingStore()
    inner, _ = _inner(_PLAN)
    engine = StatefulOrchestrationEngine(inner, store)

    result = await engine.execute("list files")

    assert result.is_success
    assert store.writes == [(state_key(result.session_id), timedelta(hours=24))]
    snapshot = await engine.load_session_state(result.session_id)
    assert snapshot is not None
    assert snapshot.is_success is True
    assert snapshot.final_response == "a.txt"
    assert len(snapshot.execution_steps) == 2
    assert await engine.has_session_state(result.session_id)


@pytest.mark.asyncio
async def test_failed_run_is_saved_with_failure_ttl() -> None:
    store = _RecordingStore()
    inner, _ = _inner(_FAIL)
    engine = StatefulOrchestrationEngine(inner, store, failure_ttl=timedelta(minutes=5))

    result = await engine.execute("x")

    assert result.status is SessionStatus.failed
    assert store.writes == [(state_key(result.session_id), timedelta(minutes=5))]


def test_state_key_format() -> None:
    assert state_key("abc") == "orchestration:abc"


@pytest.mark.asyncio
async def test_store_failures_never_change_the_result() -> None:
    inner, _ = _inner(_PLAN)
    engine = StatefulOrchestrationEngine(inner, _BrokenStore())

    result = await engine.execute("list files")

    assert result.is_success
    assert await engine.load_session_state(result.session_id) is None
    assert await engine.load_session(result.session_id) is None
    assert await engine.has_session_state(result.session_id) is False
    assert await engine.is_healthy() is False
    await engine.clear_session_state(result.session_id)


@pytest.mark.asyncio
async def test_maintenance_errors_propagate() -> None:
    inner, _ = _inner(_PLAN)
    engine = StatefulOrchestrationEngine(inner, _BrokenStore())
    with pytest.raises(CheckpointError):
        await engine.get_state_statistics()
    with pytest.raises(CheckpointError):
        await engine.cleanup_expired_states()


@pytest.mark.asyncio
async def test_inner_exception_saves_failure_snapshot_and_reraises() -> None:
    store = _RecordingStore()
    engine = StatefulOrchestrationEngine(_RaisingEngine(), store)  # type: ignore[arg-type]

    with pytest.raises(RuntimeError, match="engine crashed"):
        await engine.execute("x")

    key, ttl = store.writes[0]
    assert ttl == timedelta(hours=1)
    snapshot = await store.get(key, SessionState)
    assert snapshot.status is SessionStatus.failed
    assert snapshot.error_message == "engine crashed"
    assert snapshot.metadata == {"failure_reason": "unhandled_exception"}


@pytest.mark.asyncio
async def test_failure_snapshot_keeps_session_start_time() -> None:
    store = _RecordingStore()
    engine = StatefulOrchestrationEngine(_RaisingEngine(), store)  # type: ignore[arg-type]
    started = datetime(2026, 1, 5, 9, tzinfo=timezone.utc)
    session = Session(session_id="s-old", user_request="x", started_at=started)

    with pytest.raises(RuntimeError):
        await engine.continue_(session)

    snapshot = await store.get(state_key("s-old"), SessionState)
    assert snapshot.started_at == started
    restored = snapshot.to_session()
    assert restored.completed_at > restored.started_at


@pytest.mark.asyncio
async def test_continue_restores_from_snapshot() -> None:
    store = InMemoryStateStore()
    inner, planner = _inner(_PLAN)
    engine = StatefulOrchestrationEngine(inner, store)

    # Checkpointed mid-way by another process.
    step = ExecutionStep.begin(kind=StepKind.planning, name="planner").finish(success=True, output="earlier")
    snapshot = SessionState(
        session_id="s-9", user_request="list files", execution_steps=[step], shared_data={"note": "restored"}
    )
    await store.set(state_key("s-9"), snapshot)

    result = await engine.continue_(Session(session_id="s-9", user_request="list files"))

    assert result.is_success
    assert result.execution_steps[0].output == "earlier"
    assert len(result.execution_steps) == 3
    assert planner.calls == 1
    restored = await engine.load_session("s-9")
    assert restored is not None
    assert restored.status is SessionStatus.completed
    assert restored.shared_data["note"] == "restored"


@pytest.mark.asyncio
async def test_continue_terminal_snapshot_does_not_run() -> None:
    store = _RecordingStore()
    inner, planner = _inner(_PLAN)
    engine = StatefulOrchestrationEngine(inner, store)
    first = await engine.execute("list files")
    writes = len(store.writes)

    again = await engine.continue_(Session(session_id=first.session_id, user_request="list files"))

    assert again.status is SessionStatus.completed
    assert planner.calls == 1
    assert len(store.writes) == writes


@pytest.mark.asyncio
async def test_clear_and_statistics() -> None:
    store = InMemoryStateStore()
    inner, _ = _inner(_PLAN)
    engine = StatefulOrchestrationEngine(inner, store)
    result = await engine.execute("list files")

    stats = await engine.get_state_statistics()
    assert stats.total_states == 1
    assert stats.total_writes == 1

    await engine.clear_session_state(result.session_id)
    assert await engine.has_session_state(result.session_id) is False
    assert await engine.cleanup_expired_states() == 0
    assert await engine.is_healthy() is True
