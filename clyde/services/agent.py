"""Conversation engine: runs the model/tool loop for one user message at a time."""

from collections.abc import Callable

from cuid2 import cuid_wrapper

from clyde.clients.anthropic import ModelClient, ModelClientError
from clyde.models.llm import AgentLoopResult, LLMMessage, LLMUsage, TextBlock, ToolResultBlock, ToolUseBlock
from clyde.tools.base import ToolError
from clyde.tools.registry import ToolsRegistry
from clyde.utils.logging import get_logger

logger = get_logger(__name__)

cuid = cuid_wrapper()

ProgressCallback = Callable[[str], None]
ErrorCallback = Callable[[Exception], None]


class Agent:
    """Coding agent holding one conversation with the model."""

    def __init__(
        self,
        client: ModelClient,
        registry: ToolsRegistry,
        system_prompt: str,
        progress_callback: ProgressCallback | None = None,
        error_callback: ErrorCallback | None = None,
        session_id: str | None = None,
    ):
        """Initialize the agent.

        Args:
            client: Model client used for every turn, and handed to tools that call the model
            registry: Tools offered to the model
            system_prompt: System prompt sent with every request
            progress_callback: Receives a display message before each tool runs
            error_callback: Receives transport errors that end a message early
            session_id: Identifier used in log lines (generated when omitted)
        """
        self.client = client
        self.registry = registry
        self.system_prompt = system_prompt
        self.progress_callback = progress_callback
        self.error_callback = error_callback
        self.session_id = session_id or cuid()
        self._history: list[LLMMessage] = []

    @property
    def history(self) -> list[LLMMessage]:
        """Copy of the conversation so far."""
        return list(self._history)

    def reset(self) -> None:
        """Forget the conversation."""
        logger.info(f"Session {self.session_id}: clearing {len(self._history)} messages of history")
        self._history.clear()

    async def handle_message(self, user_input: str) -> AgentLoopResult:
        """Process a user message, running tools until the model answers with text.

        Args:
            user_input: The user's message

        Returns:
            The model's final text, or the transport error that ended the loop

        Raises:
            ValueError: If the message is empty
        """
        if not user_input or not user_input.strip():
            raise ValueError("Message cannot be empty")

        self._history.append(LLMMessage(role="user", content=user_input))
        tools = self.registry.get_tool_definitions()
        usage = LLMUsage()
        turns = 0

        logger.info(
            f"Session {self.session_id}: handling message with {len(self._history)} messages in history, "
            f"{len(tools)} tools"
        )

        while True:
            turns += 1
            logger.debug(f"Session {self.session_id}: turn {turns}, calling model")

            try:
                response = await self.client.create_message(
                    messages=self.history,
                    system_prompt=self.system_prompt,
                    tools=tools,
                )
            except ModelClientError as e:
                logger.error(f"Session {self.session_id}: model call failed on turn {turns}: {e}")
                if self.error_callback:
                    self.error_callback(e)
                return AgentLoopResult(text=f"Error: {e}", error=e, turns=turns, usage=usage)

            usage.add(response.usage)
            logger.debug(f"Session {self.session_id}: stop reason {response.stop_reason}")

            text_segments: list[str] = []
            tool_uses: list[ToolUseBlock] = []
            for block in response.content:
                if isinstance(block, TextBlock) and block.text:
                    text_segments.append(block.text)
                elif isinstance(block, ToolUseBlock):
                    tool_uses.append(block)

            self._history.append(LLMMessage(role="assistant", content=list(response.content)))

            if not tool_uses:
                logger.info(
                    f"Session {self.session_id}: completed in {turns} turns, "
                    f"{usage.input_tokens} input / {usage.output_tokens} output tokens"
                )
                return AgentLoopResult(text="\n".join(text_segments), turns=turns, usage=usage)

            logger.info(f"Session {self.session_id}: model requested {len(tool_uses)} tools")
            results = [await self._dispatch_tool(block) for block in tool_uses]
            self._history.append(LLMMessage(role="user", content=results))

    async def _dispatch_tool(self, block: ToolUseBlock) -> ToolResultBlock:
        """Run one tool-use request and turn its outcome into a result block."""
        logger.debug(f"Executing tool: {block.name} with input: {block.input}")
        try:
            tool = self.registry.get_tool(block.name)
            params = tool.parse_input(block.input)

            message = tool.display_message(params)
            if message and self.progress_callback:
                self.progress_callback(message)

            output = await tool.handler(params, self.client, tuple(self._history))
        except ToolError as e:
            logger.warning(f"Tool {block.name} failed: {e}")
            return ToolResultBlock(tool_use_id=block.id, content=str(e), is_error=True)
        except Exception as e:
            logger.error(f"Tool {block.name} raised unexpectedly: {e}", exc_info=True)
            return ToolResultBlock(tool_use_id=block.id, content=f"{type(e).__name__}: {e}", is_error=True)

        logger.debug(f"Tool {block.name} succeeded: {output[:100]}...")
        return ToolResultBlock(tool_use_id=block.id, content=output, is_error=False)
