"""Planner action descriptors.

A planner returns actions as loose mappings. They are normalized here into a
tagged union so that every descriptor is either an ``LLMActionDescriptor`` or a
``ToolActionDescriptor``; anything else is rejected with
``ActionDispatchError``.

Accepted shapes::

    {"type": "tool", "tool_name": "list_files", "parameters": {...}}
    {"type": "llm_function", "function_name": "summarize"}
    {"type": "tool_list_files"}            # name taken from the type
    {"name": "llm_summarize"}              # no type: the name is the discriminant
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, Literal, Mapping, Optional, Tuple, Union

from pydantic import Field, TypeAdapter, ValidationError

from ..errors import ActionDispatchError
from ..schemas.base import BaseSchema
from .base import ActionKind

_LLM_EXACT = frozenset({"llm", "llm_function"})
_TOOL_EXACT = frozenset({"tool"})
_PREFIXES: Tuple[Tuple[str, ActionKind], ...] = (("llm_", ActionKind.llm), ("tool_", ActionKind.tool))
_NAME_FIELDS = ("function_name", "tool_name", "name")


class LLMActionDescriptor(BaseSchema):
    kind: Literal[ActionKind.llm] = ActionKind.llm
    name: str = Field(min_length=1)
    parameters: Dict[str, Any] = Field(default_factory=dict)
    output_key: Optional[str] = None


class ToolActionDescriptor(BaseSchema):
    kind: Literal[ActionKind.tool] = ActionKind.tool
    name: str = Field(min_length=1)
    parameters: Dict[str, Any] = Field(default_factory=dict)
    output_key: Optional[str] = None


ActionDescriptor = Annotated[Union[LLMActionDescriptor, ToolActionDescriptor], Field(discriminator="kind")]

_DESCRIPTOR_ADAPTER: TypeAdapter[ActionDescriptor] = TypeAdapter(ActionDescriptor)


def resolve_action_kind(discriminant: str) -> Tuple[ActionKind, Optional[str]]:
    """
    Map a descriptor discriminant to an action kind.

    Returns:
        The kind and, for prefixed discriminants such as ``tool_list_files``,
        the name carried after the prefix.

    Raises:
        ActionDispatchError: If the discriminant names no known kind.
    """
    value = discriminant.strip().lower()
    if value in _LLM_EXACT:
        return ActionKind.llm, None
    if value in _TOOL_EXACT:
        return ActionKind.tool, None
    for prefix, kind in _PREFIXES:
        if value.startswith(prefix) and len(value) > len(prefix):
            return kind, discriminant.strip()[len(prefix):]
    raise ActionDispatchError(f"Unsupported action type: {discriminant!r}")


def parse_descriptor(raw: Mapping[str, Any]) -> ActionDescriptor:
    """Normalize and validate one planner descriptor."""
    if not isinstance(raw, Mapping):
        raise ActionDispatchError(f"action descriptor must be a mapping, got {type(raw).__name__}")

    discriminant = raw.get("type") or raw.get("name")
    if not isinstance(discriminant, str) or not discriminant.strip():
        raise ActionDispatchError("action descriptor has neither 'type' nor 'name'")
    kind, implied_name = resolve_action_kind(discriminant)

    # Without a type the name field is the discriminant, not the name.
    name_fields = _NAME_FIELDS if raw.get("type") else _NAME_FIELDS[:2]
    explicit = next((raw[f] for f in name_fields if isinstance(raw.get(f), str) and raw[f].strip()), None)
    name = explicit or implied_name
    if not name:
        raise ActionDispatchError(f"action descriptor of type {discriminant!r} has no name")

    parameters = raw.get("parameters")
    if parameters is None:
        parameters = {}
    elif not isinstance(parameters, Mapping):
        raise ActionDispatchError(f"parameters of action {name!r} must be a mapping")

    try:
        return _DESCRIPTOR_ADAPTER.validate_python(
            {
                "kind": kind,
                "name": name,
                "parameters": dict(parameters),
                "output_key": raw.get("output_key"),
            }
        )
    except ValidationError as e:
        raise ActionDispatchError(f"invalid action descriptor {name!r}: {e}") from e
