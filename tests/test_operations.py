"""Tests for worktree operations and branch-name rules"""
from pathlib import Path

import git
import pytest

from git_worktree_keeper.config import WorktreeConfig, WorktreeMode
from git_worktree_keeper.constants import GITIGNORE_HEADER
from git_worktree_keeper.exceptions import (
    BranchExistsError,
    InvalidBranchNameError,
    InvalidTaskIdError,
    WorktreeNotFoundError,
)
from git_worktree_keeper.services.git.operations import (
    WorktreeOperations,
    parse_worktree_porcelain,
    sanitize_task_id,
    validate_branch_name,
)


class TestSanitizeTaskId:
    """Task ids become branch-safe names."""

    @pytest.mark.parametrize("raw,expected", [
        ("Fix: issue #456", "Fix-issue-456"),
        ("Task 123", "Task-123"),
        ("feature/new ui", "feature/new-ui"),
        ("--leading and trailing--", "leading-and-trailing"),
        ("/slashes/", "slashes"),
        ("a   b", "a-b"),
    ])
    def test_sanitizes(self, raw, expected):
        assert sanitize_task_id(raw) == expected

    @pytest.mark.parametrize("raw", ["!!!", "---", "", "   ", "///"])
    def test_rejects_empty_result(self, raw):
        with pytest.raises(InvalidTaskIdError):
            sanitize_task_id(raw)

    def test_output_alphabet_and_idempotence(self):
        for raw in ["Fix: issue #456", "weird*&^name", "ünïcode task", "a/b c/d"]:
            once = sanitize_task_id(raw)
            assert all(c.isascii() and (c.isalnum() or c in "-_/") for c in once)
            assert not once.startswith(("-", "/"))
            assert not once.endswith(("-", "/"))
            assert sanitize_task_id(once) == once


class TestValidateBranchName:
    """Unsafe or malformed branch names are rejected."""

    @pytest.mark.parametrize("name", ["feature/new-ui", "main", "vibe-ws/task-123"])
    def test_accepts_valid_names(self, name):
        validate_branch_name(name)

    @pytest.mark.parametrize("name", [
        "feat$x", "feat`x`", "a(b)", "a{b}", "a|b", "a&b", "a;b", "a<b>", "a\nb",
        'a"b', "a'b", "a\\b", "a\0b",
    ])
    def test_rejects_dangerous_characters(self, name):
        with pytest.raises(InvalidBranchNameError):
            validate_branch_name(name)

    @pytest.mark.parametrize("name", [
        "", ".hidden", "trailing.", "/lead", "trail/", "a..b", "a@{b", "x" * 256,
    ])
    def test_rejects_malformed_names(self, name):
        with pytest.raises(InvalidBranchNameError):
            validate_branch_name(name)


class TestWorktreePorcelain:
    """Parsing of git worktree list --porcelain."""

    def test_parses_branch_detached_and_bare(self):
        output = (
            "worktree /repo\nHEAD abc123\nbranch refs/heads/main\n\n"
            "worktree /repo/.worktrees/x\nHEAD def456\ndetached\n\n"
            "worktree /bare\nbare\n"
        )
        entries = parse_worktree_porcelain(output)
        assert [e["path"] for e in entries] == ["/repo", "/repo/.worktrees/x", "/bare"]
        assert entries[0]["branch"] == "main"
        assert entries[0]["head"] == "abc123"
        assert entries[1]["branch"] == "(detached)"
        assert entries[2]["branch"] == "(bare)"


class TestWorktreeOperations:
    """Create, list and remove against a real repository."""

    def test_path_layout(self, git_repo, worktree_config):
        root = Path(git_repo.working_dir)
        ops = WorktreeOperations(root, worktree_config)
        path = ops.worktree_path_for("feature/ui", timestamp=0x65)
        assert path == root / ".worktrees" / "feature" / "ui__65"

    def test_global_mode_uses_shared_directory(self, git_repo):
        config = WorktreeConfig(mode=WorktreeMode.GLOBAL)
        ops = WorktreeOperations(git_repo.working_dir, config)
        assert ops.base_dir == Path("~/.toolprint/vibe-workspace/worktrees").expanduser()

    def test_create_sanitizes_and_places_worktree(self, git_repo, worktree_config):
        root = Path(git_repo.working_dir)
        ops = WorktreeOperations(root, worktree_config)

        record = ops.create("Fix: issue #456")

        assert record.branch == "vibe-ws/Fix-issue-456"
        assert record.path.parent == root / ".worktrees"
        assert record.path.name.startswith("Fix-issue-456__")
        assert record.path.is_dir()
        assert record.head == git_repo.head.commit.hexsha
        assert git_repo.git.rev_parse("--abbrev-ref", "HEAD") == "main"

    def test_create_adds_gitignore_entry_once(self, git_repo, worktree_config):
        root = Path(git_repo.working_dir)
        ops = WorktreeOperations(root, worktree_config)

        ops.create("one")
        ops.create("two")

        content = (root / ".gitignore").read_text()
        assert content.count(".worktrees/") == 1
        assert GITIGNORE_HEADER in content

    def test_existing_gitignore_entry_is_respected(self, git_repo, worktree_config):
        root = Path(git_repo.working_dir)
        (root / ".gitignore").write_text("node_modules\n/.worktrees\n")
        WorktreeOperations(root, worktree_config).create("task")
        assert (root / ".gitignore").read_text() == "node_modules\n/.worktrees\n"

    def test_no_gitignore_when_disabled(self, git_repo, worktree_config):
        root = Path(git_repo.working_dir)
        worktree_config.auto_gitignore = False
        WorktreeOperations(root, worktree_config).create("task")
        assert not (root / ".gitignore").exists()

    def test_create_existing_branch_fails_without_force(self, git_repo, worktree_config):
        ops = WorktreeOperations(git_repo.working_dir, worktree_config)
        ops.create("dup")
        with pytest.raises(BranchExistsError):
            ops.create("dup")

    def test_force_recreates_branch_and_worktree(self, git_repo, worktree_config, commit_file):
        ops = WorktreeOperations(git_repo.working_dir, worktree_config)
        first = ops.create("dup")
        commit_file(first.path, "work.txt", "work\n")

        second = ops.create("dup", force=True)

        assert not first.path.exists() or first.path == second.path
        assert second.head == git_repo.head.commit.hexsha
        branches = [r.branch for r in ops.list()]
        assert branches.count("vibe-ws/dup") == 1

    def test_create_from_base_branch(self, git_repo, worktree_config, commit_file):
        root = Path(git_repo.working_dir)
        git_repo.git.checkout("-b", "develop")
        commit_file(root, "dev.txt", "dev\n")
        develop_sha = git_repo.head.commit.hexsha
        git_repo.git.checkout("main")

        record = WorktreeOperations(root, worktree_config).create("from-dev", base_branch="develop")

        assert record.head == develop_sha
        assert (record.path / "dev.txt").exists()

    def test_invalid_task_id_makes_no_git_calls(self, git_repo, worktree_config):
        ops = WorktreeOperations(git_repo.working_dir, worktree_config)
        with pytest.raises(InvalidTaskIdError):
            ops.create("!!!")
        assert len(ops.list()) == 1

    def test_list_includes_primary_checkout(self, git_repo, worktree_config):
        root = Path(git_repo.working_dir)
        ops = WorktreeOperations(root, worktree_config)
        created = ops.create("listed")

        records = ops.list()

        assert records[0].path == root
        assert records[0].branch == "main"
        assert any(r.branch == "vibe-ws/listed" and r.path == created.path for r in records)

    def test_remove_by_branch_deletes_branch(self, git_repo, worktree_config):
        ops = WorktreeOperations(git_repo.working_dir, worktree_config)
        record = ops.create("Fix: issue #456")

        removed = ops.remove(record.branch, delete_branch=True)

        assert removed == record.path
        assert not record.path.exists()
        with pytest.raises(git.exc.GitCommandError):
            git_repo.git.show_ref("--verify", "--quiet", f"refs/heads/{record.branch}")

    def test_remove_by_path_keeps_branch(self, git_repo, worktree_config):
        ops = WorktreeOperations(git_repo.working_dir, worktree_config)
        record = ops.create("keep-branch")

        ops.remove(str(record.path))

        assert not record.path.exists()
        git_repo.git.show_ref("--verify", "--quiet", f"refs/heads/{record.branch}")

    def test_remove_dirty_worktree_needs_force(self, git_repo, worktree_config):
        from git_worktree_keeper.exceptions import GitOperationError

        ops = WorktreeOperations(git_repo.working_dir, worktree_config)
        record = ops.create("dirty")
        (record.path / "scratch.txt").write_text("wip\n")

        with pytest.raises(GitOperationError) as exc_info:
            ops.remove(record.branch)
        assert exc_info.value.stderr

        ops.remove(record.branch, force=True)
        assert not record.path.exists()

    def test_remove_unknown_target(self, git_repo, worktree_config):
        ops = WorktreeOperations(git_repo.working_dir, worktree_config)
        with pytest.raises(WorktreeNotFoundError):
            ops.remove("no-such-branch")

    def test_resolve_target_by_task_id(self, git_repo, worktree_config):
        ops = WorktreeOperations(git_repo.working_dir, worktree_config)
        record = ops.create("Task 123")

        assert ops.resolve_target("Task 123").path == record.path
        assert ops.resolve_target("vibe-ws/Task-123").path == record.path
        assert ops.resolve_target(str(record.path)).branch == record.branch
