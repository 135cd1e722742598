"""Search tools: grep and glob."""

import fnmatch
import os
import re
from collections.abc import Iterator, Sequence
from pathlib import Path

from pydantic import BaseModel, Field

from clyde.clients.anthropic import ModelClient
from clyde.models.llm import LLMMessage
from clyde.tools.base import ToolDefinition, ToolError
from clyde.tools.patching import resolve_path

SKIPPED_DIRS = {".git", ".hg", ".svn", "__pycache__", "node_modules", ".venv", ".mypy_cache", ".pytest_cache"}
MAX_GREP_MATCHES = 200
MAX_GLOB_FILES = 500
MAX_LINE_LENGTH = 300


class GrepInput(BaseModel):
    """Input schema for grep."""

    pattern: str = Field(..., description="Regular expression to search for, e.g. 'func main' or 'TODO|FIXME'.")
    path: str = Field(default=".", description="Directory or file to search in. Defaults to the current directory.")
    file_pattern: str = Field(
        default="",
        description="Optional filename glob restricting which files are searched, e.g. '*.py'.",
    )


class GlobInput(BaseModel):
    """Input schema for glob."""

    pattern: str = Field(
        ...,
        description="Glob pattern. '*.py' matches in the directory itself, '**/*.py' matches recursively.",
    )
    path: str = Field(default=".", description="Directory to search from. Defaults to the current directory.")


def _iter_files(root: Path) -> Iterator[Path]:
    if root.is_file():
        yield root
        return
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(name for name in dirnames if name not in SKIPPED_DIRS)
        for filename in sorted(filenames):
            yield Path(dirpath) / filename


def _read_searchable(path: Path) -> str | None:
    try:
        raw = path.read_bytes()
    except OSError:
        return None
    if b"\0" in raw[:8192]:
        return None
    return raw.decode("utf-8", errors="replace")


def _display_path(base: str, root: Path, path: Path) -> str:
    if root.is_file():
        return base
    return os.path.join(base, os.path.relpath(path, root))


def create_grep_tool() -> ToolDefinition:
    async def grep_handler(params: GrepInput, client: ModelClient | None, history: Sequence[LLMMessage]) -> str:
        if not params.pattern:
            raise ToolError("pattern is required")
        try:
            regex = re.compile(params.pattern)
        except re.error as e:
            raise ToolError(f"invalid regular expression '{params.pattern}': {e}") from e

        base = params.path or "."
        root = resolve_path(base)
        if not root.exists():
            raise ToolError(f"search path does not exist: {base}")

        matches: list[str] = []
        truncated = False
        for path in _iter_files(root):
            if params.file_pattern and not fnmatch.fnmatch(path.name, params.file_pattern):
                continue
            text = _read_searchable(path)
            if text is None:
                continue
            for line_number, line in enumerate(text.splitlines(), start=1):
                if regex.search(line):
                    if len(matches) >= MAX_GREP_MATCHES:
                        truncated = True
                        break
                    matches.append(f"{_display_path(base, root, path)}:{line_number}: {line[:MAX_LINE_LENGTH]}")
            if truncated:
                break

        if not matches:
            return f"No matches found for pattern '{params.pattern}' in {base}"

        header = f"Found {len(matches)} matches for pattern '{params.pattern}':"
        if truncated:
            header = (
                f"Found more than {MAX_GREP_MATCHES} matches for pattern '{params.pattern}' "
                f"(showing first {MAX_GREP_MATCHES}):"
            )
        return header + "\n" + "\n".join(matches)

    return ToolDefinition(
        name="grep",
        description=(
            "Search file contents with a regular expression, recursively under a directory. Returns "
            "'file:line: text' for each matching line. Optionally restrict files with a filename glob."
        ),
        input_schema_class=GrepInput,
        handler=grep_handler,
        display=lambda params: f"→ Searching for '{params.pattern}'...",
    )


def create_glob_tool() -> ToolDefinition:
    async def glob_handler(params: GlobInput, client: ModelClient | None, history: Sequence[LLMMessage]) -> str:
        if not params.pattern:
            raise ToolError("pattern is required")

        base = params.path or "."
        root = resolve_path(base)
        if not root.is_dir():
            raise ToolError(f"search path does not exist or is not a directory: {base}")

        try:
            found = sorted(
                path
                for path in root.glob(params.pattern)
                if path.is_file() and not SKIPPED_DIRS.intersection(path.relative_to(root).parts)
            )
        except (ValueError, NotImplementedError) as e:
            raise ToolError(f"invalid glob pattern '{params.pattern}': {e}") from e

        if not found:
            return f"No files found matching '{params.pattern}' in {base}"

        shown = [os.path.join(base, str(path.relative_to(root))) for path in found[:MAX_GLOB_FILES]]
        header = f"Found {len(found)} files matching '{params.pattern}':"
        if len(found) > MAX_GLOB_FILES:
            header += f" (showing first {MAX_GLOB_FILES})"
        return header + "\n" + "\n".join(shown)

    return ToolDefinition(
        name="glob",
        description=(
            "Find files by name pattern. '*.py' matches files directly in the directory, '**/*.py' matches "
            "recursively. Returns matching paths sorted alphabetically."
        ),
        input_schema_class=GlobInput,
        handler=glob_handler,
        display=lambda params: f"→ Finding files matching '{params.pattern}'...",
    )
