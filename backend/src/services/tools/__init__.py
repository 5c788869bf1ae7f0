"""Tools the library assistant can call, grouped by capability."""

from .registry import (
    NOT_AUTHENTICATED,
    ToolContext,
    ToolDefinition,
    ToolGroup,
    ToolName,
    ToolRegistry,
    build_tool_registry,
    get_tool_registry,
)

__all__ = [
    "NOT_AUTHENTICATED",
    "ToolContext",
    "ToolDefinition",
    "ToolGroup",
    "ToolName",
    "ToolRegistry",
    "build_tool_registry",
    "get_tool_registry",
]
