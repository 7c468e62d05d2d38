"""Capability registry.

The registry maps names to LLM functions and tools. The engine resolves the
``planner`` function and every planned action through it; lookups return
``None`` for unknown names so the caller decides how a miss is reported.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from .base import LLMFunction, Tool

logger = logging.getLogger(__name__)


class Registry:
    """
    In-memory mapping of names to LLM functions and tools.

    Notes:
        - ``register_*`` overwrites any existing mapping for the name.
        - ``get_*`` returns ``None`` if nothing is registered under the name.
    """

    def __init__(self) -> None:
        self._functions: Dict[str, LLMFunction] = {}
        self._tools: Dict[str, Tool] = {}

    def register_llm_function(self, fn: LLMFunction) -> None:
        """
        Register an LLM function under its ``name``.

        Args:
            fn: The function instance to register.
        """
        if fn.name in self._functions:
            logger.debug(f"Replacing LLM function '{fn.name}'")
        self._functions[fn.name] = fn

    def register_tool(self, tool: Tool) -> None:
        """
        Register a tool under its ``name``.

        Args:
            tool: The tool instance to register.
        """
        if tool.name in self._tools:
            logger.debug(f"Replacing tool '{tool.name}'")
        self._tools[tool.name] = tool

    def get_llm_function(self, name: str) -> Optional[LLMFunction]:
        return self._functions.get(name)

    def get_tool(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def has_llm_function(self, name: str) -> bool:
        return name in self._functions

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def list_llm_functions(self) -> List[str]:
        return sorted(self._functions)

    def list_tools(self) -> List[str]:
        return sorted(self._tools)
