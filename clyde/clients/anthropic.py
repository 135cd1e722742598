"""Anthropic API client and the model client protocol used by the agent."""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from anthropic import APIError, AsyncAnthropic
from anthropic.types import ContentBlock as AnthropicContentBlock
from anthropic.types import Message
from pydantic import ValidationError

from clyde.models.llm import ContentBlock, LLMMessage, LLMResponse, LLMToolDefinition, LLMUsage, TextBlock, ToolUseBlock
from clyde.utils.logging import get_logger

logger = get_logger(__name__)


class ModelClientError(Exception):
    """Raised when a call to the model provider fails."""


class ModelClient(Protocol):
    """Interface the agent and model-aware tools use to talk to the model."""

    async def create_message(
        self,
        messages: Sequence[LLMMessage],
        system_prompt: str,
        tools: Sequence[LLMToolDefinition] | None = None,
    ) -> LLMResponse:
        """Send the conversation and return the model's reply.

        Raises:
            ModelClientError: On any transport or API failure
        """
        ...


@dataclass
class AnthropicConfig:
    """Configuration for Anthropic API client."""

    model: str = "claude-sonnet-4-5-20250929"
    max_tokens: int = 4096
    base_url: str | None = None
    max_retries: int = 2


class AnthropicClient:
    """Anthropic Messages API client."""

    def __init__(self, api_key: str, config: AnthropicConfig | None = None):
        """Initialize Anthropic client.

        Args:
            api_key: Anthropic API key
            config: Client configuration
        """
        if not api_key:
            raise ValueError("An Anthropic API key is required")

        self.config = config or AnthropicConfig()
        self.client = AsyncAnthropic(
            api_key=api_key,
            base_url=self.config.base_url,
            max_retries=self.config.max_retries,
        )

    async def create_message(
        self,
        messages: Sequence[LLMMessage],
        system_prompt: str,
        tools: Sequence[LLMToolDefinition] | None = None,
    ) -> LLMResponse:
        """Create a message with Claude API.

        Args:
            messages: Conversation history
            system_prompt: System prompt for Claude
            tools: Available tools for Claude

        Returns:
            Structured response with converted content blocks

        Raises:
            ModelClientError: If the request fails
        """
        request_params: dict[str, Any] = {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "system": system_prompt,
            "messages": self._wire_messages(messages),
        }
        if tools:
            request_params["tools"] = [tool.model_dump() for tool in tools]

        logger.debug(
            f"Creating message with {len(messages)} messages, {len(tools) if tools else 0} tools, "
            f"model: {self.config.model}"
        )

        try:
            response: Message = await self.client.messages.create(**request_params)
        except APIError as e:
            status = getattr(e, "status_code", None)
            detail = f"API error (status {status}): {e.message}" if status else f"API request failed: {e.message}"
            logger.error(detail)
            raise ModelClientError(detail) from e

        usage = None
        if response.usage:
            usage = LLMUsage(
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
            )

        logger.debug(
            f"Response received - Stop reason: {response.stop_reason}, Content blocks: {len(response.content)}"
        )

        return LLMResponse(
            content=self._convert_content_blocks(response.content),
            stop_reason=response.stop_reason,
            usage=usage,
            model=response.model,
        )

    @staticmethod
    def _wire_messages(messages: Sequence[LLMMessage]) -> list[dict[str, Any]]:
        """Dump the history for the API, dropping text the API would reject.

        A reply can come back with no content or with blank text blocks. Those blocks are kept
        in the history as received but are not sent, and a message left empty is omitted.
        Consecutive messages from the same role are accepted by the API.
        """
        wire_messages: list[dict[str, Any]] = []
        for msg in messages:
            dumped = msg.model_dump()
            content = dumped["content"]
            if isinstance(content, list):
                content = [block for block in content if block["type"] != "text" or block["text"].strip()]
                dumped["content"] = content
            if not content or (isinstance(content, str) and not content.strip()):
                logger.debug(f"Omitting empty {msg.role} message from request")
                continue
            wire_messages.append(dumped)
        return wire_messages

    def _convert_content_blocks(self, anthropic_content: list[AnthropicContentBlock]) -> list[ContentBlock]:
        """Convert Anthropic content blocks to our ContentBlock types.

        Extended thinking is never requested, so only text and tool_use blocks are expected.
        Any other block type is logged and left out of the converted reply.
        """
        converted_blocks: list[ContentBlock] = []
        for block in anthropic_content:
            block_dict = block.model_dump() if hasattr(block, "model_dump") else dict(block)
            block_type = block_dict.get("type")

            try:
                if block_type == "text":
                    converted_blocks.append(TextBlock.model_validate(block_dict))
                elif block_type == "tool_use":
                    converted_blocks.append(ToolUseBlock.model_validate(block_dict))
                else:
                    logger.warning(f"Skipping unsupported content block type: {block_type}")
            except ValidationError as e:
                raise ModelClientError(f"Malformed {block_type} block in model response: {e}") from e

        return converted_blocks
