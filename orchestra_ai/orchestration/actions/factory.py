"""Action factory.

Turns planner descriptors into executable actions. Builders are kept in an
explicit table keyed by ``ActionKind``; the defaults are installed at
construction and ``register`` replaces one, for instance to wrap tool actions
with extra instrumentation.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from ..budget.manager import TokenBudgetManager
from ..capabilities.registry import Registry
from ..errors import ActionDispatchError
from .base import ActionKind, OrchestrationAction
from .descriptors import LLMActionDescriptor, ToolActionDescriptor, parse_descriptor
from .llm import LLMAction, UsageEstimator, default_usage_estimator
from .tool import ToolAction

logger = logging.getLogger(__name__)

Descriptor = Union[LLMActionDescriptor, ToolActionDescriptor]
ActionBuilder = Callable[[Descriptor], OrchestrationAction]


class ActionFactory:
    """
    Build ``LLMAction`` and ``ToolAction`` instances bound to a registry and a
    budget manager.

    Args:
        registry: Resolves function and tool names at execution time.
        budget_manager: Gate every LLM action passes before its call.
        estimator: Usage estimator for LLM actions.
    """

    def __init__(
        self,
        *,
        registry: Registry,
        budget_manager: TokenBudgetManager,
        estimator: UsageEstimator = default_usage_estimator,
    ) -> None:
        self._registry = registry
        self._budget = budget_manager
        self._estimator = estimator
        self._builders: Dict[ActionKind, ActionBuilder] = {
            ActionKind.llm: self._build_llm,
            ActionKind.tool: self._build_tool,
        }

    def register(self, kind: ActionKind, builder: ActionBuilder) -> None:
        self._builders[kind] = builder

    def _build_llm(self, descriptor: Descriptor) -> OrchestrationAction:
        return LLMAction(
            descriptor.name,
            descriptor.parameters,
            registry=self._registry,
            budget=self._budget,
            estimator=self._estimator,
            output_key=descriptor.output_key,
        )

    def _build_tool(self, descriptor: Descriptor) -> OrchestrationAction:
        return ToolAction(
            descriptor.name,
            descriptor.parameters,
            registry=self._registry,
            output_key=descriptor.output_key,
        )

    def create_llm_action(
        self, name: str, parameters: Optional[Mapping[str, Any]] = None, *, output_key: Optional[str] = None
    ) -> OrchestrationAction:
        return self._build(LLMActionDescriptor(name=name, parameters=dict(parameters or {}), output_key=output_key))

    def create_tool_action(
        self, name: str, parameters: Optional[Mapping[str, Any]] = None, *, output_key: Optional[str] = None
    ) -> OrchestrationAction:
        return self._build(ToolActionDescriptor(name=name, parameters=dict(parameters or {}), output_key=output_key))

    def create_action(self, descriptor: Mapping[str, Any]) -> OrchestrationAction:
        """
        Build one action from a planner descriptor.

        Raises:
            ActionDispatchError: If the descriptor is malformed or its type is
                not supported.
        """
        return self._build(parse_descriptor(descriptor))

    def create_actions(self, descriptors: Sequence[Mapping[str, Any]]) -> List[OrchestrationAction]:
        """
        Build every action of a plan; one bad descriptor rejects the batch.

        Raises:
            ActionDispatchError: Naming the position of the first bad descriptor.
        """
        actions: List[OrchestrationAction] = []
        for index, descriptor in enumerate(descriptors):
            try:
                actions.append(self.create_action(descriptor))
            except ActionDispatchError as e:
                raise ActionDispatchError(f"failed to create action #{index}: {e}") from e
        logger.debug(f"Created {len(actions)} actions: {[a.display_name for a in actions]}")
        return actions

    def _build(self, descriptor: Descriptor) -> OrchestrationAction:
        builder = self._builders.get(descriptor.kind)
        if builder is None:
            raise ActionDispatchError(f"no builder registered for action kind '{descriptor.kind.value}'")
        return builder(descriptor)
