from __future__ import annotations

import logging
from typing import Any, Dict, List

import pytest
from pydantic import BaseModel

from orchestra_ai.orchestration.actions.tool import ToolAction, check_input_contract
from orchestra_ai.orchestration.capabilities.base import BaseTool, ToolResult
from orchestra_ai.orchestration.capabilities.registry import Registry
from orchestra_ai.orchestration.errors import ContractViolationError
from orchestra_ai.orchestration.schemas.domain import Session


class _ListFilesInput(BaseModel):
    path: str
    recursive: bool = False


class _ListFilesOutput(BaseModel):
    files: List[str]


class _ListFilesTool(BaseTool):
    name = "list_files"
    input_model = _ListFilesInput
    output_model = _ListFilesOutput

    def __init__(self, data: Any = None, *, exc: Exception | None = None) -> None:
        self._data = {"files": ["a.txt", "b.txt"]} if data is None else data
        self._exc = exc
        self.calls: List[Dict[str, Any]] = []

    async def execute(self, parameters: Dict[str, Any]) -> ToolResult:
        self.calls.append(parameters)
        if self._exc is not None:
            raise self._exc
        return ToolResult(success=True, data=self._data)


class _FakeFailingTool:
    name = "flaky"
    required_parameters = ()

    async def execute(self, parameters: Dict[str, Any]) -> ToolResult:
        return ToolResult(success=False, data={"partial": True}, error="disk full")


def _action(tool, **params) -> ToolAction:
    registry = Registry()
    registry.register_tool(tool)
    return ToolAction(tool.name, params, registry=registry)


def test_required_parameters_come_from_input_model() -> None:
    assert tuple(_ListFilesTool().required_parameters) == ("path",)


@pytest.mark.asyncio
async def test_success_returns_tool_data() -> None:
    tool = _ListFilesTool()
    result = await _action(tool, path="/tmp").execute(Session(user_request="list"))

    assert result.success is True
    assert result.output == {"files": ["a.txt", "b.txt"]}
    assert tool.calls == [{"path": "/tmp"}]


@pytest.mark.asyncio
async def test_pydantic_output_is_dumped() -> None:
    tool = _ListFilesTool(data=_ListFilesOutput(files=["x"]))
    result = await _action(tool, path="/").execute(Session(user_request="list"))
    assert result.output == {"files": ["x"]}


@pytest.mark.asyncio
async def test_missing_required_parameter_never_calls_tool() -> None:
    tool = _ListFilesTool()
    result = await _action(tool).execute(Session(user_request="list"))

    assert result.success is False
    assert "input contract violated for tool 'list_files'" in result.error
    assert "path" in result.error
    assert tool.calls == []


@pytest.mark.asyncio
async def test_none_counts_as_missing() -> None:
    tool = _ListFilesTool()
    result = await _action(tool, path=None).execute(Session(user_request="list"))
    assert result.success is False
    assert tool.calls == []


@pytest.mark.asyncio
async def test_input_model_validation() -> None:
    tool = _ListFilesTool()
    result = await _action(tool, path="/", recursive={"no": "bool"}).execute(Session(user_request="list"))
    assert result.success is False
    assert result.error.startswith("input contract violated")


@pytest.mark.asyncio
async def test_output_contract_violation_only_warns(caplog) -> None:
    tool = _ListFilesTool(data={"unexpected": 1})
    with caplog.at_level(logging.WARNING, logger="orchestra_ai.orchestration.actions.tool"):
        result = await _action(tool, path="/").execute(Session(user_request="list"))

    assert result.success is True
    assert result.output == {"unexpected": 1}
    assert any("output contract violated" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_exception_becomes_failure() -> None:
    tool = _ListFilesTool(exc=OSError("permission denied"))
    result = await _action(tool, path="/").execute(Session(user_request="list"))
    assert result.success is False
    assert result.error == "Tool execution failed: permission denied"


@pytest.mark.asyncio
async def test_reported_failure_keeps_partial_output() -> None:
    result = await _action(_FakeFailingTool()).execute(Session(user_request="x"))
    assert result.success is False
    assert result.error == "disk full"
    assert result.output == {"partial": True}


@pytest.mark.asyncio
async def test_unregistered_tool() -> None:
    result = await ToolAction("ghost", registry=Registry()).execute(Session(user_request="x"))
    assert result.success is False
    assert "not registered" in result.error


def test_check_input_contract_raises() -> None:
    with pytest.raises(ContractViolationError) as exc_info:
        check_input_contract(_ListFilesTool(), {})
    assert exc_info.value.direction == "input"
    assert exc_info.value.tool_name == "list_files"
