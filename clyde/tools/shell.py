"""Shell tool: run_bash."""

import asyncio
from collections.abc import Sequence

from pydantic import BaseModel, Field

from clyde.clients.anthropic import ModelClient
from clyde.models.llm import LLMMessage
from clyde.tools.base import ToolDefinition, ToolError
from clyde.utils.logging import get_logger

logger = get_logger(__name__)


class RunBashInput(BaseModel):
    """Input schema for run_bash."""

    command: str = Field(
        ...,
        description="The bash command to execute, e.g. 'git status', 'pytest -q', 'gh pr list'.",
    )


def _display(params: RunBashInput) -> str:
    command = params.command.strip().splitlines()[0] if params.command.strip() else ""
    if len(command) > 60:
        command = command[:57] + "..."
    return f"→ Running: {command}"


def create_run_bash_tool(shell: str = "bash") -> ToolDefinition:
    async def run_bash_handler(params: RunBashInput, client: ModelClient | None, history: Sequence[LLMMessage]) -> str:
        if not params.command.strip():
            raise ToolError("command cannot be empty")

        logger.debug(f"Running command: {params.command}")
        try:
            process = await asyncio.create_subprocess_exec(
                shell,
                "-c",
                params.command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            raise ToolError(f"failed to start {shell}: {e.strerror or e}") from e

        stdout, _ = await process.communicate()
        output = stdout.decode("utf-8", errors="replace")

        if process.returncode != 0:
            raise ToolError(f"command failed with exit code {process.returncode}\nOutput: {output}")

        return output

    return ToolDefinition(
        name="run_bash",
        description=(
            "Execute a bash command in the current working directory and return its combined stdout and "
            "stderr. A non-zero exit status is reported as an error together with the output. Use it for "
            "git, gh (GitHub CLI), build and test commands."
        ),
        input_schema_class=RunBashInput,
        handler=run_bash_handler,
        display=_display,
    )
