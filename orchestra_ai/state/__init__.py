"""Checkpoint stores for orchestration session snapshots.

Backends:

- ``InMemoryStateStore``: process-local, for development and tests.
- ``SqlStateStore``: SQLModel table over an async SQLAlchemy engine.
- ``RedisStateStore``: Redis with native key expiry.

``build_state_store`` picks one from the checkpoint settings.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..core.config import CheckpointConfig, get_settings
from ..core.database.utils import create_engine
from .base import StateStore, StateStoreStatistics
from .memory import InMemoryStateStore
from .redis_store import RedisStateStore
from .sql import SqlStateStore

logger = logging.getLogger(__name__)


def build_state_store(config: Optional[CheckpointConfig] = None) -> StateStore:
    """
    Create the checkpoint store selected by ``config.backend``.

    The SQL store is returned uninitialized; await ``initialize()`` on it when
    the table does not exist yet.
    """
    config = config or get_settings().checkpoint
    logger.info(f"Checkpoint store backend: {config.backend}")
    if config.backend == "sql":
        return SqlStateStore(create_engine(config.database_url))
    if config.backend == "redis":
        return RedisStateStore(config.redis_url)
    return InMemoryStateStore()


__all__ = [
    "InMemoryStateStore",
    "RedisStateStore",
    "SqlStateStore",
    "StateStore",
    "StateStoreStatistics",
    "build_state_store",
]
