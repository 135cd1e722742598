"""Tools for the coding assistant."""

from clyde.tools.base import ToolDefinition, ToolError, ToolInputError, ToolNotFoundError
from clyde.tools.registry import DuplicateToolError, ToolsRegistry, create_default_registry

__all__ = [
    "DuplicateToolError",
    "ToolDefinition",
    "ToolError",
    "ToolInputError",
    "ToolNotFoundError",
    "ToolsRegistry",
    "create_default_registry",
]
