"""Tool action: a contract-checked call to a registered tool."""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional

from pydantic import BaseModel, ValidationError

from ..capabilities.base import Tool
from ..capabilities.registry import Registry
from ..errors import ContractViolationError
from ..schemas.domain import Session, StepKind
from .base import ActionKind, ActionResult, OrchestrationAction, Stopwatch

logger = logging.getLogger(__name__)


def check_input_contract(tool: Tool, parameters: Mapping[str, Any]) -> None:
    """
    Validate call parameters against the tool's declared input contract.

    Raises:
        ContractViolationError: If a required parameter is missing or None, or
            the parameters do not validate against ``input_model``.
    """
    missing: List[str] = [p for p in tool.required_parameters if parameters.get(p) is None]
    if missing:
        raise ContractViolationError(tool.name, "input", f"missing required parameters: {', '.join(missing)}")

    input_model = getattr(tool, "input_model", None)
    if input_model is not None:
        try:
            input_model.model_validate(dict(parameters))
        except ValidationError as e:
            raise ContractViolationError(tool.name, "input", str(e)) from e


def check_output_contract(tool: Tool, output: Any) -> None:
    """
    Validate a tool's output against its ``output_model``, if declared.

    Raises:
        ContractViolationError: If the output does not validate.
    """
    output_model = getattr(tool, "output_model", None)
    if output_model is None or isinstance(output, output_model):
        return
    try:
        output_model.model_validate(output)
    except ValidationError as e:
        raise ContractViolationError(tool.name, "output", str(e)) from e


class ToolAction(OrchestrationAction):
    kind = ActionKind.tool
    step_kind = StepKind.tool_action
    label = "Tool"

    def __init__(
        self,
        name: str,
        parameters: Optional[Mapping[str, Any]] = None,
        *,
        registry: Registry,
        output_key: Optional[str] = None,
    ) -> None:
        super().__init__(name, parameters, output_key=output_key)
        self._registry = registry

    async def execute(self, session: Session) -> ActionResult:
        watch = Stopwatch()
        tool = self._registry.get_tool(self.name)
        if tool is None:
            return ActionResult.failure(f"tool '{self.name}' is not registered", watch.elapsed)

        try:
            check_input_contract(tool, self.parameters)
        except ContractViolationError as e:
            logger.warning(f"{self.display_name} rejected: {e}")
            return ActionResult.failure(str(e), watch.elapsed)

        try:
            result = await tool.execute(dict(self.parameters))
        except Exception as e:
            logger.warning(f"{self.display_name} raised: {e}", exc_info=True)
            return ActionResult.failure(f"Tool execution failed: {e}", watch.elapsed)

        if not result.success:
            return ActionResult.failure(
                result.error or f"tool '{self.name}' reported failure", watch.elapsed, output=result.data
            )

        try:
            check_output_contract(tool, result.data)
        except ContractViolationError as e:
            logger.warning(f"{self.display_name}: {e}")

        output = result.data.model_dump(mode="json") if isinstance(result.data, BaseModel) else result.data
        return ActionResult.ok(output, watch.elapsed)
