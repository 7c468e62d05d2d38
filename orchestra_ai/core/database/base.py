"""
Base database models.

All SQLModel entities of the package derive from ``Base`` so that
``Base.metadata`` covers every table.
"""

from __future__ import annotations

from pydantic import ConfigDict
from sqlmodel import SQLModel


class Base(SQLModel):
    """Base class for all SQLModel entities."""

    model_config = ConfigDict(arbitrary_types_allowed=True)
