"""
Tool registry for the conversation loop.

Each tool is registered with:
- name: unique identifier the model calls it by
- description: for the model
- parameters: JSON Schema for the tool input
- handler: callable(session, context, **input) -> dict
- scope: RESTAURANT tools are offered to every caller, ORGANIZATION tools
  only to organization admins
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from freshsheet.agent.types import ToolCallContext


class ToolScope(str, Enum):
    RESTAURANT = "restaurant"
    ORGANIZATION = "organization"


@dataclass(frozen=True)
class RegisteredTool:
    name: str
    description: str
    parameters: Dict[str, Any]
    handler: Callable[..., Any]
    scope: ToolScope = ToolScope.RESTAURANT

    def visible_to(self, context: Optional[ToolCallContext]) -> bool:
        if self.scope == ToolScope.RESTAURANT:
            return True
        return context is not None and context.is_org_admin


_REGISTRY: Dict[str, RegisteredTool] = {}


def register_tool(
    name: str,
    description: str,
    parameters: Dict[str, Any],
    handler: Callable,
    scope: ToolScope = ToolScope.RESTAURANT,
) -> RegisteredTool:
    """Register a tool in the global registry."""
    if name in _REGISTRY:
        raise ValueError(f"Tool already registered: {name}")
    entry = RegisteredTool(name=name, description=description, parameters=parameters, handler=handler, scope=scope)
    _REGISTRY[name] = entry
    return entry


def get_tool(name: str, registry: Optional[Mapping[str, RegisteredTool]] = None) -> Optional[RegisteredTool]:
    """Return the registration for ``name`` or None."""
    return (registry if registry is not None else _REGISTRY).get(name)


def get_tool_manifest(
    context: Optional[ToolCallContext] = None,
    registry: Optional[Mapping[str, RegisteredTool]] = None,
) -> List[Dict[str, Any]]:
    """Return ``{name, description, input_schema}`` for every tool the caller may use."""
    entries = (registry if registry is not None else _REGISTRY).values()
    return [
        {"name": entry.name, "description": entry.description, "input_schema": entry.parameters}
        for entry in entries
        if entry.visible_to(context)
    ]


# Expose for convenience
TOOL_REGISTRY = _REGISTRY
