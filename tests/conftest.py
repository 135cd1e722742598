"""Shared test fixtures."""

from collections.abc import Sequence

import pytest

from clyde.clients.anthropic import ModelClientError
from clyde.models.llm import ContentBlock, LLMMessage, LLMResponse, LLMToolDefinition, LLMUsage, TextBlock, ToolUseBlock


def text_response(*texts: str) -> LLMResponse:
    """Build a text-only model reply."""
    return LLMResponse(
        content=[TextBlock(text=text) for text in texts],
        stop_reason="end_turn",
        usage=LLMUsage(input_tokens=10, output_tokens=5),
    )


def tool_response(*calls: tuple[str, str, dict], text: str = "") -> LLMResponse:
    """Build a model reply requesting tools, given (id, name, input) triples."""
    content: list[ContentBlock] = [TextBlock(text=text)] if text else []
    content.extend(ToolUseBlock(id=tool_id, name=name, input=tool_input) for tool_id, name, tool_input in calls)
    return LLMResponse(content=content, stop_reason="tool_use", usage=LLMUsage(input_tokens=10, output_tokens=5))


class FakeModelClient:
    """Scripted model client that replays canned replies and records each request."""

    def __init__(self, replies: Sequence[LLMResponse | Exception]):
        self.replies = list(replies)
        self.calls: list[dict] = []

    async def create_message(
        self,
        messages: Sequence[LLMMessage],
        system_prompt: str,
        tools: Sequence[LLMToolDefinition] | None = None,
    ) -> LLMResponse:
        self.calls.append(
            {
                "messages": [message.model_copy(deep=True) for message in messages],
                "system_prompt": system_prompt,
                "tools": list(tools or []),
            }
        )
        if not self.replies:
            raise ModelClientError("no scripted reply left")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def in_tmp_path(tmp_path, monkeypatch):
    """Run the test with tmp_path as the working directory."""
    monkeypatch.chdir(tmp_path)
    return tmp_path
