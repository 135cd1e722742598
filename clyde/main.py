"""Interactive terminal chat with the coding agent."""

import asyncio
import sys

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt

from clyde import __version__
from clyde.clients.anthropic import AnthropicClient, AnthropicConfig
from clyde.services.agent import Agent
from clyde.services.prompts import get_system_prompt
from clyde.tools.registry import create_default_registry
from clyde.utils.config import ConfigError, Settings, load_settings
from clyde.utils.logging import LogConfig, get_logger, setup_logging

logger = get_logger(__name__)

EXIT_COMMANDS = ["/quit", "/exit", "quit", "exit"]


class ChatCLI:
    """Read-eval-print loop around an Agent."""

    def __init__(self, agent: Agent, console: Console | None = None):
        """Initialize chat CLI."""
        self.agent = agent
        self.console = console or Console()
        self.agent.progress_callback = self._show_progress

    def start(self) -> None:
        """Start the interactive chat session."""
        self.console.print(
            Panel.fit(
                f"[bold blue]Clyde {__version__} - coding assistant[/bold blue]\n"
                "Type your messages to chat with the agent.\n"
                "Commands: /help, /clear, /quit",
                border_style="blue",
            )
        )

        with asyncio.Runner() as runner:
            try:
                while True:
                    user_input = Prompt.ask("\n[bold cyan]You[/bold cyan]", console=self.console)

                    command = user_input.strip().lower()
                    if command in EXIT_COMMANDS:
                        break
                    elif command == "/help":
                        self._show_help()
                        continue
                    elif command == "/clear":
                        self.agent.reset()
                        self.console.print("[yellow]Conversation cleared[/yellow]")
                        continue
                    elif command == "":
                        continue

                    self._send_message(runner, user_input)

            except (KeyboardInterrupt, EOFError):
                pass
            finally:
                self.console.print("\n[yellow]Goodbye![/yellow]")

    def _send_message(self, runner: asyncio.Runner, message: str) -> None:
        """Run one message through the agent and print the reply."""
        result = runner.run(self.agent.handle_message(message))

        if not result.ok:
            self.console.print(result.text, style="red", markup=False)
            return

        self._display_response(result.text)

    def _show_progress(self, message: str) -> None:
        self.console.print(message, style="dim", markup=False)

    def _display_response(self, text: str) -> None:
        """Display the agent's reply with nice formatting."""
        if not text:
            return

        self.console.print(
            Panel(
                Markdown(text),
                title="[bold green]Clyde[/bold green]",
                border_style="green",
                padding=(1, 2),
            )
        )

    def _show_help(self) -> None:
        """Show help information."""
        tools = "\n".join(f"• {name}" for name in self.agent.registry.get_tool_names())
        help_text = f"""
[bold]Available Commands:[/bold]
• /help - Show this help message
• /clear - Clear the conversation and start over
• /quit or /exit - Exit the chat

[bold]Tools the agent can use:[/bold]
{tools}

[bold]Tips:[/bold]
• Ask for coordinated edits across files; they are applied all-or-nothing
• Commit your work before large edits so they are easy to review
        """

        self.console.print(Panel(help_text.strip(), title="[cyan]Help[/cyan]", border_style="cyan"))


def create_agent(settings: Settings) -> Agent:
    """Wire the model client, tools and system prompt into an Agent."""
    client = AnthropicClient(
        api_key=settings.api_key,
        config=AnthropicConfig(
            model=settings.model,
            max_tokens=settings.max_tokens,
            base_url=settings.api_url,
            max_retries=settings.max_retries,
        ),
    )
    registry = create_default_registry(settings)
    return Agent(client=client, registry=registry, system_prompt=get_system_prompt(registry.get_tool_names()))


def main() -> None:
    """Main entry point for the chat CLI."""
    console = Console()

    try:
        settings = load_settings()
    except ConfigError as e:
        console.print(f"Configuration error: {e}", style="red", markup=False, highlight=False)
        sys.exit(1)

    setup_logging(LogConfig(level=settings.log_level))

    agent = create_agent(settings)
    logger.info(f"Starting session {agent.session_id} with model {settings.model}")

    ChatCLI(agent, console).start()


if __name__ == "__main__":
    main()
