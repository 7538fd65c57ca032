"""End-to-end tests for the worktree manager facade."""
import shutil
from pathlib import Path

import git
import pytest

from git_worktree_keeper import (
    CreateOptions,
    RemoveOptions,
    WorktreeConfig,
    WorktreeConfigManager,
    WorktreeManager,
    create_worktree_manager,
)
from git_worktree_keeper.exceptions import (
    BranchExistsError,
    ConfigurationError,
    NotAWorktreeError,
    WorktreeNotFoundError,
)
from git_worktree_keeper.models.worktree import StatusSeverity


@pytest.fixture
def manager(git_repo, worktree_config, temp_dir):
    return WorktreeManager(git_repo.working_dir, config=worktree_config, current_dir=temp_dir)


class TestWorktreeManager:

    def test_root_is_found_from_a_linked_worktree(self, manager, worktree_config):
        record = manager.create_worktree("nested")
        other = WorktreeManager(record.path, config=worktree_config)
        assert other.get_git_root() == manager.get_git_root()

    def test_outside_a_repository(self, temp_dir, worktree_config):
        with pytest.raises(NotAWorktreeError):
            WorktreeManager(temp_dir, config=worktree_config)

    def test_invalid_configuration_is_rejected(self, git_repo):
        with pytest.raises(ConfigurationError) as exc_info:
            WorktreeManager(git_repo.working_dir, config=WorktreeConfig(prefix=""))
        assert "prefix cannot be empty" in exc_info.value.errors

    def test_create_and_remove_by_branch(self, manager, git_repo):
        record = manager.create_worktree("Fix: issue #456")

        assert record.branch == "vibe-ws/Fix-issue-456"
        assert record.path.parent == Path(git_repo.working_dir) / ".worktrees"
        assert record.status is not None
        assert record.status.severity is StatusSeverity.CLEAN

        manager.remove_worktree_with_options(RemoveOptions(target=record.branch, delete_branch=True))

        assert not record.path.exists()
        with pytest.raises(git.exc.GitCommandError):
            git_repo.git.show_ref("--verify", "--quiet", f"refs/heads/{record.branch}")

    def test_plain_remove_keeps_the_branch(self, git_repo, worktree_config, temp_dir):
        worktree_config.cleanup.auto_delete_branch = True
        manager = WorktreeManager(git_repo.working_dir, config=worktree_config, current_dir=temp_dir)
        record = manager.create_worktree("keep-branch")

        manager.remove_worktree(str(record.path))

        assert not record.path.exists()
        git_repo.git.show_ref("--verify", "--quiet", f"refs/heads/{record.branch}")

    def test_create_with_options(self, manager, temp_dir):
        custom = temp_dir / "custom-place"
        record = manager.create_worktree_with_options(CreateOptions(task_id="custom", custom_path=custom))
        assert record.path == custom
        assert custom.is_dir()

        with pytest.raises(BranchExistsError):
            manager.create_worktree("custom")

    def test_list_with_status_sorts_most_severe_first(self, manager):
        clean = manager.create_worktree("clean")
        dirty = manager.create_worktree("dirty")
        (dirty.path / "scratch.txt").write_text("wip\n")

        records = manager.list_worktrees_with_status()

        assert len(records) == 3
        priorities = [r.status.severity.priority for r in records]
        assert priorities == sorted(priorities)
        assert records[-1].branch == clean.branch
        assert next(r for r in records if r.branch == dirty.branch).status.untracked_files == ["scratch.txt"]

    def test_status_cache_is_invalidated_on_remove(self, manager):
        record = manager.create_worktree("cached")
        manager.get_worktree_status(record.branch)
        assert manager.cache.stats().total_entries == 1

        manager.remove_worktree(record.branch)

        assert manager.cache.stats().total_entries == 0

    def test_get_status_of_unknown_target(self, manager):
        with pytest.raises(WorktreeNotFoundError):
            manager.get_worktree_status("nothing-here")

    def test_prune_forgets_deleted_directories(self, manager, git_repo):
        record = manager.create_worktree("pruned")
        shutil.rmtree(record.path)

        manager.prune_worktrees()

        assert [r.branch for r in manager.list_worktrees()] == ["main"]

    def test_disabled_repository_refuses_create(self, git_repo, temp_dir):
        config_manager = WorktreeConfigManager(
            document={"repositories": [{"name": "test_repo", "worktree_config": {"disabled": True}}]},
            environ={},
        )
        manager = WorktreeManager(git_repo.working_dir, config_manager=config_manager)

        with pytest.raises(ConfigurationError):
            manager.create_worktree("anything")

    def test_validation_covers_other_repositories(self, git_repo):
        config_manager = WorktreeConfigManager(
            document={
                "worktree": {"merge_detection": {"use_github_cli": False}},
                "repositories": [
                    {"name": "test_repo", "path": git_repo.working_dir},
                    {"name": "broken", "worktree_config": {"prefix": "../escape"}},
                ],
            },
            environ={},
        )
        manager = WorktreeManager(git_repo.working_dir, config_manager=config_manager)

        problems = manager.validate_configuration()

        assert [p.repository for p in problems] == ["broken"]
        assert str(problems[0]).startswith("[broken]")

    def test_validation_without_config_manager(self, manager):
        assert manager.validate_configuration() == []

    def test_config_summary(self, manager, git_repo):
        summary = manager.get_config_summary()
        assert summary.resolved_base_dir == Path(git_repo.working_dir) / ".worktrees"
        assert "vibe-ws/" in summary.format_summary()

    def test_factory_uses_current_directory(self, git_repo, worktree_config, monkeypatch):
        monkeypatch.chdir(git_repo.working_dir)
        manager = create_worktree_manager(config=worktree_config)
        assert manager.get_git_root() == Path(git_repo.working_dir)
