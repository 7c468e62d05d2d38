"""LangGraph-based orchestration runtime."""

from .engine import OrchestrationEngine
from .models import EngineDeps
from .stateful import StatefulOrchestrationEngine

__all__ = ["EngineDeps", "OrchestrationEngine", "StatefulOrchestrationEngine"]
