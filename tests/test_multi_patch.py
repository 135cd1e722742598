"""Tests for patch_file and the all-or-nothing multi_patch tool."""

import shutil
import subprocess

import pytest

from clyde.tools.base import ToolError, ToolInputError
from clyde.tools.patching import (
    UNCOMMITTED_WARNING,
    Patch,
    PatchBatchError,
    UndoRecord,
    apply_patch_batch,
    create_multi_patch_tool,
    create_patch_file_tool,
    has_uncommitted_changes,
    roll_back,
)

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


@pytest.fixture(autouse=True)
def outside_any_repository(tmp_path, monkeypatch):
    """Keep git from discovering a repository above tmp_path."""
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path.parent))


def git(tmp_path, *args: str) -> None:
    subprocess.run(
        ["git", "-c", "user.name=Test", "-c", "user.email=test@example.com", *args],
        cwd=tmp_path,
        check=True,
        capture_output=True,
    )


class TestApplyPatchBatch:
    """Tests for successful batches."""

    def test_single_patch(self, tmp_path):
        """Test the single foo -> bar batch."""
        file_a = tmp_path / "a.txt"
        file_a.write_text("say foo to me\n")

        result = apply_patch_batch([Patch(path="a.txt", old_text="foo", new_text="bar")], workdir=tmp_path)

        assert "applied all 1 patches" in result
        assert file_a.read_text() == "say bar to me\n"

    def test_multiple_files(self, tmp_path):
        """Test that every file gets its replacement exactly once."""
        (tmp_path / "pkg").mkdir()
        module = tmp_path / "pkg" / "module.py"
        module.write_text("def old_name():\n    return 1\n")
        caller = tmp_path / "main.py"
        caller.write_text("from pkg.module import old_name\n\nprint(old_name())\n")

        result = apply_patch_batch(
            [
                Patch(path="pkg/module.py", old_text="def old_name", new_text="def new_name"),
                Patch(path="main.py", old_text="import old_name", new_text="import new_name"),
                Patch(path="main.py", old_text="print(old_name())", new_text="print(new_name())"),
            ],
            workdir=tmp_path,
        )

        assert result.startswith("Successfully applied all 3 patches:")
        assert "  1. pkg/module.py" in result
        assert "  3. main.py" in result
        assert module.read_text() == "def new_name():\n    return 1\n"
        assert caller.read_text() == "from pkg.module import new_name\n\nprint(new_name())\n"

    def test_absolute_paths(self, tmp_path):
        """Test patching a file by absolute path."""
        target = tmp_path / "abs.txt"
        target.write_text("alpha")

        apply_patch_batch([Patch(path=str(target), old_text="alpha", new_text="beta")], workdir=tmp_path)

        assert target.read_text() == "beta"

    def test_empty_new_text_deletes(self, tmp_path):
        """Test empty new_text deletes old_text."""
        target = tmp_path / "a.txt"
        target.write_text("keep DROP keep")

        apply_patch_batch([Patch(path="a.txt", old_text=" DROP", new_text="")], workdir=tmp_path)

        assert target.read_text() == "keep keep"

    def test_inverse_patch_restores_file(self, tmp_path):
        """Test patch followed by its inverse restores the exact bytes."""
        target = tmp_path / "a.txt"
        original = "line one\nline two\r\nunicode: é ✓\n"
        target.write_bytes(original.encode("utf-8"))

        apply_patch_batch([Patch(path="a.txt", old_text="line two", new_text="LINE 2")], workdir=tmp_path)
        apply_patch_batch([Patch(path="a.txt", old_text="LINE 2", new_text="line two")], workdir=tmp_path)

        assert target.read_bytes() == original.encode("utf-8")

    def test_rerun_on_replaced_text_is_independent(self, tmp_path):
        """Test that a second call patches the already-replaced text again."""
        target = tmp_path / "a.txt"
        target.write_text("version = 1\n")

        apply_patch_batch([Patch(path="a.txt", old_text="version = 1", new_text="version = 2")], workdir=tmp_path)
        result = apply_patch_batch(
            [Patch(path="a.txt", old_text="version = 2", new_text="version = 3")], workdir=tmp_path
        )

        assert "applied all 1 patches" in result
        assert target.read_text() == "version = 3\n"

    def test_empty_batch_rejected(self, tmp_path):
        """Test empty batch rejected."""
        with pytest.raises(ToolError, match="at least one patch is required"):
            apply_patch_batch([], workdir=tmp_path)


class TestRollback:
    """Tests for batches that fail part way through."""

    def test_missing_text_rolls_back_earlier_file(self, tmp_path):
        """Test the fileA/fileB scenario."""
        file_a = tmp_path / "fileA.txt"
        file_b = tmp_path / "fileB.txt"
        file_a.write_text("x marks the spot\n")
        file_b.write_text("nothing to see\n")

        with pytest.raises(PatchBatchError) as exc_info:
            apply_patch_batch(
                [
                    Patch(path="fileA.txt", old_text="x", new_text="X"),
                    Patch(path="fileB.txt", old_text="MISSING", new_text="y"),
                ],
                workdir=tmp_path,
            )

        message = str(exc_info.value)
        assert "fileB.txt" in message
        assert "not found" in message
        assert file_a.read_text() == "x marks the spot\n"
        assert "X" not in file_a.read_text()
        assert file_b.read_text() == "nothing to see\n"

    def test_error_names_patch_index_and_reverted_files(self, tmp_path):
        """Test failure report naming the patch, reason and restored files."""
        for name in ("a.txt", "b.txt", "c.txt"):
            (tmp_path / name).write_text(f"{name} body\n")

        with pytest.raises(PatchBatchError) as exc_info:
            apply_patch_batch(
                [
                    Patch(path="a.txt", old_text="body", new_text="BODY"),
                    Patch(path="b.txt", old_text="body", new_text="BODY"),
                    Patch(path="c.txt", old_text="absent", new_text="present"),
                ],
                workdir=tmp_path,
            )

        error = exc_info.value
        assert error.index == 2
        assert error.total == 3
        assert error.path == "c.txt"
        assert "old_text not found in c.txt" in error.reason
        assert [record.display_path for record in error.rolled_back] == ["b.txt", "a.txt"]
        assert error.rollback_failures == []

        lines = str(error).splitlines()
        assert lines[0] == "Patch 3/3 FAILED (c.txt): old_text not found in c.txt"
        assert lines[1] == "Rolling back 2 previously applied patch(es)..."
        assert lines[2:4] == ["  restored b.txt", "  restored a.txt"]
        assert "Reverted 2 patch(es)" in lines[4]

        for name in ("a.txt", "b.txt", "c.txt"):
            assert (tmp_path / name).read_text() == f"{name} body\n"

    def test_non_unique_text_rolls_back(self, tmp_path):
        """Test duplicate old_text fails and restores earlier files byte for byte."""
        file_a = tmp_path / "a.txt"
        file_b = tmp_path / "b.txt"
        original_a = b"first\r\nsecond\n"
        file_a.write_bytes(original_a)
        file_b.write_text("dup dup\n")

        with pytest.raises(PatchBatchError) as exc_info:
            apply_patch_batch(
                [
                    Patch(path="a.txt", old_text="first", new_text="1st"),
                    Patch(path="b.txt", old_text="dup", new_text="single"),
                ],
                workdir=tmp_path,
            )

        assert "appears 2 times" in str(exc_info.value)
        assert "unique" in str(exc_info.value)
        assert file_a.read_bytes() == original_a

    def test_same_file_patched_twice_restored_to_original(self, tmp_path):
        """Test several patches to one file undone back to the original."""
        target = tmp_path / "a.txt"
        target.write_text("one two three\n")

        with pytest.raises(PatchBatchError):
            apply_patch_batch(
                [
                    Patch(path="a.txt", old_text="one", new_text="1"),
                    Patch(path="a.txt", old_text="two", new_text="2"),
                    Patch(path="a.txt", old_text="four", new_text="4"),
                ],
                workdir=tmp_path,
            )

        assert target.read_text() == "one two three\n"

    def test_first_patch_failure_changes_nothing(self, tmp_path):
        """Test failure of the first patch leaves every file alone."""
        file_b = tmp_path / "b.txt"
        file_b.write_text("untouched\n")

        with pytest.raises(PatchBatchError) as exc_info:
            apply_patch_batch(
                [
                    Patch(path="missing.txt", old_text="a", new_text="b"),
                    Patch(path="b.txt", old_text="untouched", new_text="touched"),
                ],
                workdir=tmp_path,
            )

        message = str(exc_info.value)
        assert message.startswith("Patch 1/2 FAILED (missing.txt): file not found: missing.txt")
        assert "no files were changed" in message
        assert file_b.read_text() == "untouched\n"

    def test_directory_target_fails(self, tmp_path):
        """Test patching a directory."""
        (tmp_path / "subdir").mkdir()

        with pytest.raises(PatchBatchError, match="not a regular file"):
            apply_patch_batch([Patch(path="subdir", old_text="a", new_text="b")], workdir=tmp_path)

    def test_non_utf8_file_fails(self, tmp_path):
        """Test patching a binary file."""
        (tmp_path / "blob.bin").write_bytes(b"\xff\xfe\x00binary")

        with pytest.raises(PatchBatchError, match="not valid UTF-8"):
            apply_patch_batch([Patch(path="blob.bin", old_text="binary", new_text="text")], workdir=tmp_path)


class TestRollBack:
    """Tests for restoring undo records."""

    def test_restores_in_reverse_order(self, tmp_path):
        """Test undo records applied last first."""
        target = tmp_path / "a.txt"
        target.write_bytes(b"after both")
        records = [
            UndoRecord(index=0, path=target, display_path="a.txt", original=b"original"),
            UndoRecord(index=1, path=target, display_path="a.txt", original=b"after first"),
        ]

        report = roll_back(records)

        assert target.read_bytes() == b"original"
        assert [record.index for record in report.restored] == [1, 0]
        assert report.failures == []

    def test_failed_restore_reported(self, tmp_path):
        """Test that a failed restore does not stop the others."""
        good = tmp_path / "good.txt"
        good.write_bytes(b"patched")
        blocked = tmp_path / "blocked"
        blocked.mkdir()
        records = [
            UndoRecord(index=0, path=good, display_path="good.txt", original=b"original"),
            UndoRecord(index=1, path=blocked, display_path="blocked", original=b"original"),
        ]

        report = roll_back(records)

        assert good.read_bytes() == b"original"
        assert [record.display_path for record in report.restored] == ["good.txt"]
        assert [record.display_path for record, _ in report.failures] == ["blocked"]

    def test_rollback_failure_message(self, tmp_path):
        """Test ROLLBACK FAILED lines and the closing warning."""
        restored = UndoRecord(index=0, path=tmp_path / "a.txt", display_path="a.txt", original=b"")
        stuck = UndoRecord(index=1, path=tmp_path / "b.txt", display_path="b.txt", original=b"")

        error = PatchBatchError(
            index=2,
            total=3,
            path="c.txt",
            reason="old_text not found in c.txt",
            rolled_back=[restored],
            rollback_failures=[(stuck, "Permission denied")],
        )

        lines = str(error).splitlines()
        assert lines[1] == "Rolling back 2 previously applied patch(es)..."
        assert "  restored a.txt" in lines
        assert "  ROLLBACK FAILED for b.txt: Permission denied" in lines
        assert lines[-1].startswith("WARNING: 1 file(s) could not be restored")


class TestUncommittedChanges:
    """Tests for the git working tree advisory."""

    def test_not_a_repository(self, tmp_path):
        """Test no warning outside a git repository."""
        assert has_uncommitted_changes(tmp_path) is False

    @requires_git
    def test_dirty_tree_adds_warning(self, tmp_path):
        """Test warning when the working tree has uncommitted changes."""
        git(tmp_path, "init", "-q")
        (tmp_path / "a.txt").write_text("foo\n")

        result = apply_patch_batch([Patch(path="a.txt", old_text="foo", new_text="bar")], workdir=tmp_path)

        assert "applied all 1 patches" in result
        assert result.endswith(UNCOMMITTED_WARNING)

    @requires_git
    def test_clean_tree_has_no_warning(self, tmp_path):
        """Test no warning for a clean working tree."""
        git(tmp_path, "init", "-q")
        (tmp_path / "a.txt").write_text("foo\n")
        git(tmp_path, "add", "a.txt")
        git(tmp_path, "commit", "-q", "-m", "initial")

        assert has_uncommitted_changes(tmp_path) is False
        result = apply_patch_batch([Patch(path="a.txt", old_text="foo", new_text="bar")], workdir=tmp_path)

        assert "WARNING" not in result
        # The patch itself leaves the tree dirty
        assert has_uncommitted_changes(tmp_path) is True


class TestMultiPatchTool:
    """Tests for the multi_patch tool definition."""

    @pytest.mark.asyncio
    async def test_execute_in_working_directory(self, in_tmp_path):
        """Test relative paths resolved against the working directory."""
        (in_tmp_path / "a.txt").write_text("foo\n")
        tool = create_multi_patch_tool()

        result = await tool.execute({"patches": [{"path": "a.txt", "old_text": "foo", "new_text": "bar"}]})

        assert "applied all 1 patches" in result
        assert (in_tmp_path / "a.txt").read_text() == "bar\n"

    @pytest.mark.asyncio
    async def test_validation_before_touching_files(self, in_tmp_path):
        """Test invalid batch rejected before any file is written."""
        (in_tmp_path / "a.txt").write_text("foo\n")
        tool = create_multi_patch_tool()

        with pytest.raises(ToolInputError, match="missing required parameter 'patches.1.old_text'"):
            await tool.execute(
                {
                    "patches": [
                        {"path": "a.txt", "old_text": "foo", "new_text": "bar"},
                        {"path": "a.txt", "new_text": "baz"},
                    ]
                }
            )

        assert (in_tmp_path / "a.txt").read_text() == "foo\n"

    def test_display_message(self):
        """Test multi_patch progress message."""
        tool = create_multi_patch_tool()
        params = tool.parse_input({"patches": [{"path": "a", "old_text": "x", "new_text": "y"}] * 3})
        assert tool.display_message(params) == "→ Applying 3 patches..."


class TestPatchFileTool:
    """Tests for the single-patch tool."""

    @pytest.mark.asyncio
    async def test_patch_file(self, in_tmp_path):
        """Test single replacement."""
        (in_tmp_path / "a.txt").write_text("hello world\n")
        tool = create_patch_file_tool()

        result = await tool.execute({"path": "a.txt", "old_text": "world", "new_text": "there"})

        assert "Successfully patched a.txt" in result
        assert (in_tmp_path / "a.txt").read_text() == "hello there\n"

    @pytest.mark.asyncio
    async def test_patch_file_not_unique(self, in_tmp_path):
        """Test duplicate old_text rejected with its count."""
        (in_tmp_path / "a.txt").write_text("same same\n")
        tool = create_patch_file_tool()

        with pytest.raises(ToolError) as exc_info:
            await tool.execute({"path": "a.txt", "old_text": "same", "new_text": "other"})

        assert "2" in str(exc_info.value)
        assert "unique" in str(exc_info.value)
        assert (in_tmp_path / "a.txt").read_text() == "same same\n"

    @pytest.mark.asyncio
    async def test_patch_file_empty_old_text(self, in_tmp_path):
        """Test empty old_text rejected at validation."""
        tool = create_patch_file_tool()

        with pytest.raises(ToolInputError, match="old_text cannot be empty"):
            await tool.execute({"path": "a.txt", "old_text": "", "new_text": "x"})

    @pytest.mark.asyncio
    async def test_patch_file_missing(self, in_tmp_path):
        """Test patching a missing file."""
        tool = create_patch_file_tool()

        with pytest.raises(ToolError, match="file not found: nope.txt"):
            await tool.execute({"path": "nope.txt", "old_text": "a", "new_text": "b"})
