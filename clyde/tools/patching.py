"""Exact-text patch tools: patch_file and the all-or-nothing multi_patch."""

import subprocess
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from clyde.clients.anthropic import ModelClient
from clyde.models.llm import LLMMessage
from clyde.tools.base import ToolDefinition, ToolError
from clyde.utils.logging import get_logger

logger = get_logger(__name__)

UNCOMMITTED_WARNING = (
    "WARNING: the working tree had uncommitted changes before these patches were applied. "
    "Consider committing your work first so the edits can be reviewed and reverted with git."
)


class Patch(BaseModel):
    """One exact-text replacement in one file."""

    path: str = Field(..., description="Path of the file to modify, absolute or relative to the working directory")
    old_text: str = Field(
        ...,
        description="Exact text to replace. Must appear exactly once in the file, including whitespace.",
    )
    new_text: str = Field(..., description="Replacement text. Use an empty string to delete old_text.")

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("path cannot be empty")
        return v

    @field_validator("old_text")
    @classmethod
    def validate_old_text(cls, v: str) -> str:
        if not v:
            raise ValueError("old_text cannot be empty")
        return v


class MultiPatchInput(BaseModel):
    """Input schema for multi_patch."""

    patches: list[Patch] = Field(
        ...,
        description="Ordered list of patches. Applied in order; if any fails, all earlier ones are rolled back.",
    )

    @field_validator("patches")
    @classmethod
    def validate_patches(cls, v: list[Patch]) -> list[Patch]:
        if not v:
            raise ValueError("at least one patch is required")
        return v


@dataclass(frozen=True)
class UndoRecord:
    """Pre-edit snapshot of one file, taken before a patch writes it."""

    index: int
    path: Path
    display_path: str
    original: bytes


@dataclass
class RollbackReport:
    restored: list[UndoRecord] = field(default_factory=list)
    failures: list[tuple[UndoRecord, str]] = field(default_factory=list)


class PatchBatchError(ToolError):
    """A patch of a batch failed; earlier patches of the batch were rolled back."""

    def __init__(
        self,
        index: int,
        total: int,
        path: str,
        reason: str,
        rolled_back: list[UndoRecord],
        rollback_failures: list[tuple[UndoRecord, str]],
    ):
        self.index = index
        self.total = total
        self.path = path
        self.reason = reason
        self.rolled_back = rolled_back
        self.rollback_failures = rollback_failures
        super().__init__(self._format())

    def _format(self) -> str:
        lines = [f"Patch {self.index + 1}/{self.total} FAILED ({self.path}): {self.reason}"]

        reverted = [record for record in self.rolled_back if record.index < self.index]
        if not reverted and not self.rollback_failures:
            lines.append("No earlier patches had been applied; no files were changed.")
            return "\n".join(lines)

        attempted = len({record.index for record in reverted} | {record.index for record, _ in self.rollback_failures})
        lines.append(f"Rolling back {attempted} previously applied patch(es)...")
        lines.extend(f"  restored {record.display_path}" for record in reverted)
        for record, error in self.rollback_failures:
            lines.append(f"  ROLLBACK FAILED for {record.display_path}: {error}")

        if self.rollback_failures:
            lines.append(
                f"WARNING: {len(self.rollback_failures)} file(s) could not be restored and may be left "
                "partially patched. Inspect them before retrying."
            )
        else:
            lines.append(
                f"Reverted {len(reverted)} patch(es) by rollback; all files are back to their original content."
            )
        return "\n".join(lines)


def resolve_path(path: str, workdir: Path | None = None) -> Path:
    candidate = Path(path).expanduser()
    if candidate.is_absolute():
        return candidate
    return (workdir or Path.cwd()) / candidate


def read_text_file(path: Path, display_path: str) -> tuple[bytes, str]:
    """Read a file for patching, returning its raw bytes and decoded text.

    Raises:
        ToolError: If the file is missing, not a regular file, unreadable or not UTF-8
    """
    if not path.exists():
        raise ToolError(f"file not found: {display_path}")
    if not path.is_file():
        raise ToolError(f"not a regular file: {display_path}")
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise ToolError(f"cannot read {display_path}: {e.strerror or e}") from e
    try:
        return raw, raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ToolError(f"cannot patch {display_path}: file is not valid UTF-8 text") from e


def write_bytes(path: Path, display_path: str, data: bytes) -> None:
    try:
        path.write_bytes(data)
    except OSError as e:
        raise ToolError(f"cannot write {display_path}: {e.strerror or e}") from e


def replace_unique(content: str, old_text: str, new_text: str, display_path: str) -> str:
    """Replace the single occurrence of old_text.

    Raises:
        ToolError: If old_text does not occur exactly once
    """
    occurrences = content.count(old_text)
    if occurrences == 0:
        raise ToolError(f"old_text not found in {display_path}")
    if occurrences > 1:
        raise ToolError(
            f"old_text is not unique in {display_path}: appears {occurrences} times "
            "(it must appear exactly once; include more surrounding context)"
        )
    return content.replace(old_text, new_text, 1)


def has_uncommitted_changes(workdir: Path) -> bool:
    """Report whether git sees uncommitted changes in workdir.

    Returns False when git is unavailable or workdir is not inside a repository.
    """
    try:
        result = subprocess.run(
            ["git", "status", "--porcelain"],
            cwd=workdir,
            capture_output=True,
            text=True,
            timeout=10,
            check=False,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"Skipping uncommitted-changes check: {e}")
        return False

    if result.returncode != 0:
        logger.debug(f"git status failed in {workdir}: {result.stderr.strip()}")
        return False

    return bool(result.stdout.strip())


def roll_back(undo_log: Sequence[UndoRecord]) -> RollbackReport:
    """Restore files from undo records, last applied first."""
    report = RollbackReport()
    for record in reversed(undo_log):
        try:
            current = record.path.read_bytes()
        except OSError:
            current = None

        if current == record.original:
            report.restored.append(record)
            continue

        try:
            record.path.write_bytes(record.original)
        except OSError as e:
            logger.error(f"Rollback of {record.display_path} failed: {e}")
            report.failures.append((record, str(e)))
            continue

        logger.info(f"Rolled back {record.display_path}")
        report.restored.append(record)

    return report


def apply_patch_batch(patches: Sequence[Patch], workdir: Path | None = None) -> str:
    """Apply all patches in order, or none of them.

    Args:
        patches: Patches to apply, in order
        workdir: Directory relative paths resolve against (defaults to the current directory)

    Returns:
        Success message naming the number of patches applied

    Raises:
        ToolError: If the batch is empty
        PatchBatchError: If any patch fails; earlier patches have been rolled back
    """
    if not patches:
        raise ToolError("at least one patch is required")

    workdir = workdir or Path.cwd()
    dirty = has_uncommitted_changes(workdir)

    undo_log: list[UndoRecord] = []
    for index, patch in enumerate(patches):
        path = resolve_path(patch.path, workdir)
        try:
            original, content = read_text_file(path, patch.path)
            updated = replace_unique(content, patch.old_text, patch.new_text, patch.path)
            undo_log.append(UndoRecord(index=index, path=path, display_path=patch.path, original=original))
            write_bytes(path, patch.path, updated.encode("utf-8"))
        except ToolError as e:
            logger.warning(f"Patch {index + 1}/{len(patches)} failed for {patch.path}: {e}")
            report = roll_back(undo_log)
            raise PatchBatchError(
                index=index,
                total=len(patches),
                path=patch.path,
                reason=str(e),
                rolled_back=report.restored,
                rollback_failures=report.failures,
            ) from e

    logger.info(f"Applied {len(patches)} patches")

    lines = [f"Successfully applied all {len(patches)} patches:"]
    lines.extend(f"  {index}. {patch.path}" for index, patch in enumerate(patches, start=1))
    if dirty:
        lines.extend(["", UNCOMMITTED_WARNING])
    return "\n".join(lines)


def create_patch_file_tool() -> ToolDefinition:
    async def patch_file_handler(params: Patch, client: ModelClient | None, history: Sequence[LLMMessage]) -> str:
        path = resolve_path(params.path)
        _, content = read_text_file(path, params.path)
        updated = replace_unique(content, params.old_text, params.new_text, params.path)
        write_bytes(path, params.path, updated.encode("utf-8"))
        return (
            f"Successfully patched {params.path}: replaced {len(params.old_text)} characters "
            f"with {len(params.new_text)} characters"
        )

    return ToolDefinition(
        name="patch_file",
        description=(
            "Edit a file by replacing one exact occurrence of old_text with new_text. "
            "old_text must match the file exactly (including whitespace and indentation) and must appear "
            "exactly once; add surrounding lines to make it unique. Use read_file first to see the content. "
            "Prefer this over write_file for changes to existing files."
        ),
        input_schema_class=Patch,
        handler=patch_file_handler,
        display=lambda params: f"→ Patching file: {params.path}",
    )


def create_multi_patch_tool() -> ToolDefinition:
    async def multi_patch_handler(
        params: MultiPatchInput, client: ModelClient | None, history: Sequence[LLMMessage]
    ) -> str:
        return apply_patch_batch(params.patches)

    return ToolDefinition(
        name="multi_patch",
        description=(
            "Apply several exact-text patches across one or more files as a single all-or-nothing batch. "
            "Each patch replaces one unique occurrence of old_text with new_text. Patches are applied in order; "
            "if any patch fails (file missing, text not found, text not unique), every patch already applied "
            "in the batch is rolled back and no file is left changed. Use this for coordinated multi-file "
            "edits such as renames. Warns when the git working tree has uncommitted changes."
        ),
        input_schema_class=MultiPatchInput,
        handler=multi_patch_handler,
        display=lambda params: f"→ Applying {len(params.patches)} patches...",
    )
