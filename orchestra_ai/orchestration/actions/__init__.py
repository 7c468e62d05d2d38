"""Typed actions built from planner descriptors."""

from .base import ActionKind, ActionResult, OrchestrationAction
from .descriptors import LLMActionDescriptor, ToolActionDescriptor, parse_descriptor
from .factory import ActionFactory
from .llm import LLMAction
from .tool import ToolAction

__all__ = [
    "ActionFactory",
    "ActionKind",
    "ActionResult",
    "LLMAction",
    "LLMActionDescriptor",
    "OrchestrationAction",
    "ToolAction",
    "ToolActionDescriptor",
    "parse_descriptor",
]
