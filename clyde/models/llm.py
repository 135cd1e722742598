"""LLM-related data models and types (provider-agnostic)."""

from dataclasses import dataclass, field
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field


# Content block types
class TextBlock(BaseModel):
    """Text content block."""

    model_config = ConfigDict(extra="ignore")  # Anthropic adds fields such as citations

    type: Literal["text"] = "text"
    text: str


class ToolUseBlock(BaseModel):
    """Tool use content block."""

    model_config = ConfigDict(extra="ignore")

    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: dict[str, Any]


class ToolResultBlock(BaseModel):
    """Tool result content block."""

    model_config = ConfigDict(extra="ignore")

    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: str
    is_error: bool = False


ContentBlock = Annotated[TextBlock | ToolUseBlock | ToolResultBlock, Field(discriminator="type")]


class LLMMessage(BaseModel):
    """A message for LLM conversation."""

    role: Literal["user", "assistant"]
    content: str | list[ContentBlock]

    def tool_use_blocks(self) -> list[ToolUseBlock]:
        """Return the tool use blocks of this message, in order."""
        if isinstance(self.content, str):
            return []
        return [block for block in self.content if isinstance(block, ToolUseBlock)]

    def tool_result_blocks(self) -> list[ToolResultBlock]:
        """Return the tool result blocks of this message, in order."""
        if isinstance(self.content, str):
            return []
        return [block for block in self.content if isinstance(block, ToolResultBlock)]


class LLMToolDefinition(BaseModel):
    """Tool definition as advertised to the model."""

    name: str
    description: str
    input_schema: dict[str, Any]


@dataclass
class LLMUsage:
    """Token usage information from LLM provider."""

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def add(self, other: "LLMUsage | None") -> None:
        """Accumulate another usage record into this one."""
        if other is None:
            return
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens


@dataclass
class LLMResponse:
    """Provider-agnostic response from the model client."""

    content: list[ContentBlock]
    stop_reason: str | None = None
    usage: LLMUsage | None = None
    model: str = ""


@dataclass
class AgentLoopResult:
    """Result from handling one user message."""

    text: str
    error: Exception | None = None
    turns: int = 0
    usage: LLMUsage = field(default_factory=LLMUsage)

    @property
    def ok(self) -> bool:
        return self.error is None
