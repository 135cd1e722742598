"""Base types and definitions for tools."""

from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError

from clyde.clients.anthropic import ModelClient
from clyde.models.llm import LLMMessage, LLMToolDefinition

ToolHandler = Callable[[Any, ModelClient | None, Sequence[LLMMessage]], Awaitable[str]]
DisplayFormatter = Callable[[Any], str]


class ToolError(Exception):
    """A tool failed; the message is reported back to the model."""


class ToolNotFoundError(ToolError):
    """The model asked for a tool that is not registered."""

    def __init__(self, name: str):
        super().__init__(f"unknown tool: {name}")
        self.name = name


class ToolInputError(ToolError):
    """The tool input did not match the tool's parameter schema."""

    def __init__(self, tool_name: str, error: ValidationError):
        self.tool_name = tool_name
        self.problems = [_describe_problem(detail) for detail in error.errors()]
        super().__init__(f"Invalid input for {tool_name}: " + "; ".join(self.problems))


def _describe_problem(detail: Mapping[str, Any]) -> str:
    location = ".".join(str(part) for part in detail.get("loc", ())) or "input"
    if detail.get("type") == "missing":
        return f"missing required parameter '{location}'"
    message = str(detail.get("msg", "invalid value"))
    message = message.removeprefix("Value error, ")
    return f"invalid parameter '{location}': {message}"


@dataclass(frozen=True)
class ToolDefinition:
    """Definition of a tool available to the AI assistant."""

    name: str
    description: str
    input_schema_class: type[BaseModel]
    handler: ToolHandler
    display: DisplayFormatter | None = None

    def get_json_schema(self) -> dict[str, Any]:
        """Get JSON schema for this tool's input."""
        schema = self.input_schema_class.model_json_schema()
        schema.pop("title", None)
        return schema

    def to_llm_tool(self) -> LLMToolDefinition:
        """Project this tool onto the catalog entry sent to the model."""
        return LLMToolDefinition(name=self.name, description=self.description, input_schema=self.get_json_schema())

    def parse_input(self, raw_input: Mapping[str, Any]) -> BaseModel:
        """Parse and validate tool input.

        Raises:
            ToolInputError: If a parameter is missing or invalid
        """
        try:
            return self.input_schema_class.model_validate(dict(raw_input))
        except ValidationError as e:
            raise ToolInputError(self.name, e) from e

    def display_message(self, params: BaseModel) -> str:
        """Progress message for a call, or an empty string for none."""
        if self.display is None:
            return ""
        return self.display(params)

    async def execute(
        self,
        raw_input: Mapping[str, Any],
        client: ModelClient | None = None,
        history: Sequence[LLMMessage] = (),
    ) -> str:
        """Validate raw input and run the handler."""
        params = self.parse_input(raw_input)
        return await self.handler(params, client, history)
