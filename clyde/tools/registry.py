"""Tools registry for managing the agent's tools."""

from clyde.models.llm import LLMToolDefinition
from clyde.tools.base import ToolDefinition, ToolError, ToolNotFoundError
from clyde.tools.files import create_list_files_tool, create_read_file_tool, create_write_file_tool
from clyde.tools.patching import create_multi_patch_tool, create_patch_file_tool
from clyde.tools.search import create_glob_tool, create_grep_tool
from clyde.tools.shell import create_run_bash_tool
from clyde.tools.web import create_browse_tool, create_web_search_tool
from clyde.utils.config import Settings


class DuplicateToolError(ToolError):
    """A tool with the same name is already registered."""

    def __init__(self, name: str):
        super().__init__(f"tool already registered: {name}")
        self.name = name


class ToolsRegistry:
    """Registry for managing AI assistant tools."""

    def __init__(self, tools: list[ToolDefinition] | None = None):
        """Initialize the registry, optionally with an initial set of tools."""
        self._tools: dict[str, ToolDefinition] = {}
        for tool in tools or []:
            self.register_tool(tool)

    def register_tool(self, tool: ToolDefinition) -> None:
        """Register a new tool in the registry.

        Raises:
            DuplicateToolError: If a tool with the same name is already registered
        """
        if tool.name in self._tools:
            raise DuplicateToolError(tool.name)
        self._tools[tool.name] = tool

    def get_tool(self, name: str) -> ToolDefinition:
        """Look up a tool by name.

        Raises:
            ToolNotFoundError: If no tool has that name
        """
        try:
            return self._tools[name]
        except KeyError:
            raise ToolNotFoundError(name) from None

    def all_tools(self) -> list[ToolDefinition]:
        """Get all registered tools, sorted by name."""
        return [self._tools[name] for name in sorted(self._tools)]

    def get_tool_definitions(self) -> list[LLMToolDefinition]:
        """Get the tool catalog sent to the model."""
        return [tool.to_llm_tool() for tool in self.all_tools()]

    def get_tool_names(self) -> list[str]:
        """Get list of all registered tool names."""
        return sorted(self._tools)

    def has_tool(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


def create_default_registry(settings: Settings | None = None) -> ToolsRegistry:
    """Create a registry holding every built-in tool."""
    brave_api_key = settings.brave_search_api_key if settings else None
    return ToolsRegistry(
        [
            create_list_files_tool(),
            create_read_file_tool(),
            create_write_file_tool(),
            create_patch_file_tool(),
            create_multi_patch_tool(),
            create_run_bash_tool(),
            create_grep_tool(),
            create_glob_tool(),
            create_browse_tool(),
            create_web_search_tool(brave_api_key),
        ]
    )
