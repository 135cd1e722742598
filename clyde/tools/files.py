"""File system tools: list_files, read_file and write_file."""

import stat
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field

from clyde.clients.anthropic import ModelClient
from clyde.models.llm import LLMMessage
from clyde.tools.base import ToolDefinition, ToolError
from clyde.tools.patching import resolve_path


class ListFilesInput(BaseModel):
    """Input schema for list_files."""

    path: str = Field(
        default=".",
        description="The directory path to list. Use '.' for the current directory (the default).",
    )


class ReadFileInput(BaseModel):
    """Input schema for read_file."""

    path: str = Field(..., description="The file path to read, absolute or relative to the current directory.")


class WriteFileInput(BaseModel):
    """Input schema for write_file."""

    path: str = Field(..., description="The file path to write, absolute or relative to the current directory.")
    content: str = Field(
        ...,
        description="REQUIRED: the complete file content. The whole file is replaced with this text.",
    )


def _format_entry(entry: Path) -> str:
    info = entry.lstat()
    mode = stat.filemode(info.st_mode)
    modified = datetime.fromtimestamp(info.st_mtime).strftime("%Y-%m-%d %H:%M")
    name = entry.name + ("/" if entry.is_dir() else "")
    return f"{mode} {info.st_size:>10} {modified} {name}"


def create_list_files_tool() -> ToolDefinition:
    async def list_files_handler(
        params: ListFilesInput, client: ModelClient | None, history: Sequence[LLMMessage]
    ) -> str:
        display_path = params.path or "."
        directory = resolve_path(display_path)
        if not directory.exists():
            raise ToolError(f"failed to list files: {display_path} does not exist")
        if not directory.is_dir():
            raise ToolError(f"failed to list files: {display_path} is not a directory")

        try:
            entries = sorted(directory.iterdir(), key=lambda entry: entry.name)
            lines = [_format_entry(entry) for entry in entries]
        except OSError as e:
            raise ToolError(f"failed to list files in {display_path}: {e.strerror or e}") from e

        if not lines:
            return f"{display_path} is empty"
        return f"{display_path} ({len(lines)} entries):\n" + "\n".join(lines)

    return ToolDefinition(
        name="list_files",
        description="List files and directories in a path, with permissions, size and modification time.",
        input_schema_class=ListFilesInput,
        handler=list_files_handler,
        display=lambda params: "→ Listing files...",
    )


def create_read_file_tool() -> ToolDefinition:
    async def read_file_handler(
        params: ReadFileInput, client: ModelClient | None, history: Sequence[LLMMessage]
    ) -> str:
        if not params.path:
            raise ToolError("file path is required")

        path = resolve_path(params.path)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise ToolError(f"failed to read file: {params.path} does not exist") from e
        except UnicodeDecodeError as e:
            raise ToolError(f"failed to read file: {params.path} is not valid UTF-8 text") from e
        except OSError as e:
            raise ToolError(f"failed to read file {params.path}: {e.strerror or e}") from e

    return ToolDefinition(
        name="read_file",
        description="Read the full text contents of a file.",
        input_schema_class=ReadFileInput,
        handler=read_file_handler,
        display=lambda params: f"→ Reading file: {params.path}",
    )


def create_write_file_tool() -> ToolDefinition:
    async def write_file_handler(
        params: WriteFileInput, client: ModelClient | None, history: Sequence[LLMMessage]
    ) -> str:
        if not params.path:
            raise ToolError("file path is required")

        path = resolve_path(params.path)
        existed = path.exists()
        if existed and not path.is_file():
            raise ToolError(f"failed to write file: {params.path} is not a regular file")

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(params.content, encoding="utf-8")
        except OSError as e:
            raise ToolError(f"failed to write file {params.path}: {e.strerror or e}") from e

        size = len(params.content.encode("utf-8"))
        action = "replaced" if existed else "created"
        return f"Successfully {action} {params.path} ({size} bytes)"

    return ToolDefinition(
        name="write_file",
        description=(
            "Write complete content to a file, creating it (and missing parent directories) or replacing it "
            "entirely. You MUST provide the ENTIRE file content. For changes to existing files prefer "
            "patch_file or multi_patch."
        ),
        input_schema_class=WriteFileInput,
        handler=write_file_handler,
        display=lambda params: f"→ Writing file: {params.path}",
    )
