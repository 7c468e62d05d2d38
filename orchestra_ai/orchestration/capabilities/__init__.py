"""LLM function and tool contracts plus the registry resolving them by name."""

from .base import CapabilityResult, LLMContext, LLMFunction, Tool, ToolResult
from .registry import Registry

__all__ = ["CapabilityResult", "LLMContext", "LLMFunction", "Registry", "Tool", "ToolResult"]
