"""SQLModel table entities."""

from .session_states import SessionStateRecord

__all__ = ["SessionStateRecord"]
