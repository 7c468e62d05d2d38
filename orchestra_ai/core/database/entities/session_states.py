"""
Session state entity.

Stores checkpoint snapshots written by the stateful orchestration engine as
serialized JSON, keyed by the checkpoint key.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Text
from sqlmodel import Field

from ..base import Base
from ..utils import as_utc, utc_now


class SessionStateRecord(Base, table=True):
    """Entity for checkpoint snapshots.

    Timestamps are timezone-aware UTC; a ``None`` ``expires_at`` means the
    record never expires.

    Table: orc_session_states
    """

    __tablename__ = "orc_session_states"

    key: str = Field(primary_key=True, max_length=255)
    payload: str = Field(sa_type=Text, description="JSON-serialized snapshot")
    expires_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True), index=True)

    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and as_utc(self.expires_at) <= as_utc(now)

    def __repr__(self) -> str:
        return f"SessionStateRecord(key={self.key}, expires_at={self.expires_at})"
