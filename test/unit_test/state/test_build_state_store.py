from __future__ import annotations

from orchestra_ai.core.config import CheckpointConfig
from orchestra_ai.state import InMemoryStateStore, RedisStateStore, SqlStateStore, build_state_store


def test_memory_backend() -> None:
    assert isinstance(build_state_store(CheckpointConfig(backend="memory")), InMemoryStateStore)


def test_sql_backend() -> None:
    store = build_state_store(CheckpointConfig(backend="sql", database_url="sqlite+aiosqlite:///:memory:"))
    assert isinstance(store, SqlStateStore)


def test_redis_backend() -> None:
    store = build_state_store(CheckpointConfig(backend="redis", redis_url="redis://cache:6379/0"))
    assert isinstance(store, RedisStateStore)
