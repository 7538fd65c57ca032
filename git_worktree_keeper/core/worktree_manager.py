"""Worktree manager: the entry point used by the host CLI."""

from pathlib import Path
from typing import List, Optional, Union

from git_worktree_keeper.config import WorktreeConfig
from git_worktree_keeper.config_manager import ConfigSummary, ConfigValidationError, WorktreeConfigManager
from git_worktree_keeper.exceptions import ConfigurationError, NotAWorktreeError
from git_worktree_keeper.models.cleanup import CleanupOptions, CleanupReport
from git_worktree_keeper.models.worktree import (
    CreateOptions,
    RemoveOptions,
    WorktreeRecord,
    WorktreeStatus,
)
from git_worktree_keeper.services.cache_service import StatusCache
from git_worktree_keeper.services.cleanup_service import CleanupEngine, ConfirmCallback
from git_worktree_keeper.services.git.gateway import GitProcessGateway
from git_worktree_keeper.services.git.github import GitHubService
from git_worktree_keeper.services.git.merge_detector import MergeDetector
from git_worktree_keeper.services.git.operations import WorktreeOperations
from git_worktree_keeper.services.git.queries import RepositoryQueries
from git_worktree_keeper.services.git.status import StatusInspector
from git_worktree_keeper.utils.locks import get_repository_lock
from git_worktree_keeper.utils.logging import get_logger

logger = get_logger(__name__)


class WorktreeManager:
    """Wires configuration to the worktree services for one repository."""

    def __init__(
        self,
        repo_path: Union[str, Path],
        config: Optional[WorktreeConfig] = None,
        config_manager: Optional[WorktreeConfigManager] = None,
        gateway: Optional[GitProcessGateway] = None,
        confirm: Optional[ConfirmCallback] = None,
        current_dir: Optional[Path] = None,
        cache: Optional[StatusCache] = None,
        workers: Optional[int] = None,
    ):
        """Initialize the manager.

        Args:
            repo_path: Any directory inside the repository
            config: Effective configuration; resolved through ``config_manager`` when omitted
            config_manager: Source of the workspace configuration
            gateway: Process gateway shared by every service
            confirm: Confirmation callback for cleanup
            current_dir: Caller's working directory for in-use checks
            cache: Status cache (a fresh one per manager when omitted)
            workers: Thread count for parallel status inspection

        Raises:
            NotAWorktreeError: If ``repo_path`` is not inside a git checkout
            ConfigurationError: If the effective configuration is invalid
        """
        self.queries = RepositoryQueries(gateway or GitProcessGateway())
        root = self.queries.repository_root(repo_path)
        if root is None:
            raise NotAWorktreeError(str(repo_path))
        self.repo_root = root

        self.config_manager = config_manager
        if config is None:
            self.config_manager = self.config_manager or WorktreeConfigManager()
            config = self.config_manager.load_config_for_repo(self.repo_root)
        self.config = config

        errors = self.config.validate()
        if errors:
            raise ConfigurationError(errors, repository=self.repo_root.name)

        self.lock = get_repository_lock(self.repo_root)
        self.cache = cache or StatusCache()
        detection = config.merge_detection
        self.github = GitHubService(self.repo_root, self.queries, token=detection.github_token)
        self.merge_detector = MergeDetector(self.repo_root, detection, self.queries, self.github)
        self.operations = WorktreeOperations(self.repo_root, config, self.queries, self.lock)
        self.inspector = StatusInspector(
            self.queries,
            merge_detector=self.merge_detector,
            cache=self.cache,
            lock=self.lock,
            main_branches=detection.main_branches,
            workers=workers,
        )
        self.cleanup_engine = CleanupEngine(
            self.operations, self.inspector, config, confirm=confirm, current_dir=current_dir
        )
        logger.debug(f"Worktree manager ready for {self.repo_root}")

    def get_git_root(self) -> Path:
        return self.repo_root

    def create_worktree(self, task_id: str) -> WorktreeRecord:
        return self.create_worktree_with_options(CreateOptions(task_id=task_id))

    def create_worktree_with_options(self, options: CreateOptions) -> WorktreeRecord:
        """Create a worktree and return its record with a fresh status."""
        if self.config_manager is not None and not self.config_manager.is_repository_enabled(self.repo_root):
            raise ConfigurationError(["worktrees are disabled for this repository"], self.repo_root.name)
        record = self.operations.create(
            options.task_id,
            base_branch=options.base_branch,
            force=options.force,
            custom_path=options.custom_path,
        )
        record.status = self.inspector.inspect(record.path, use_cache=False)
        return record

    def remove_worktree(self, target: str, force: bool = False) -> Path:
        return self.remove_worktree_with_options(
            RemoveOptions(target=target, force=force, delete_branch=False)
        )

    def remove_worktree_with_options(self, options: RemoveOptions) -> Path:
        path = self.operations.remove(options.target, force=options.force, delete_branch=options.delete_branch)
        self.cache.invalidate(path)
        return path

    def list_worktrees(self) -> List[WorktreeRecord]:
        return self.operations.list()

    def list_worktrees_with_status(self) -> List[WorktreeRecord]:
        """All worktrees with status, most severe first."""
        self.cache.cleanup_stale_entries()
        records = self.inspector.batch_inspect(self.operations.list())
        return sorted(
            records,
            key=lambda r: r.status.severity.priority if r.status else -1,
        )

    def resolve_worktree_target(self, target: str) -> WorktreeRecord:
        return self.operations.resolve_target(target)

    def get_worktree_status(self, target: str, use_cache: bool = True) -> WorktreeStatus:
        record = self.resolve_worktree_target(target)
        return self.inspector.inspect(record.path, use_cache=use_cache)

    def cleanup_worktrees(self, options: Optional[CleanupOptions] = None) -> CleanupReport:
        report = self.cleanup_engine.cleanup(options or CleanupOptions())
        for result in report.results:
            self.cache.invalidate(result.path)
        return report

    def prune_worktrees(self) -> None:
        self.operations.prune()

    def validate_configuration(self) -> List[ConfigValidationError]:
        """Problems in the workspace configuration, every repository override included."""
        if self.config_manager is not None:
            return self.config_manager.validate_all_configs()
        return [ConfigValidationError(error) for error in self.config.validate()]

    def get_config_summary(self) -> ConfigSummary:
        resolved = self.config.resolve_base_dir(self.repo_root)
        if self.config_manager is None:
            return ConfigSummary(global_config=self.config, resolved_base_dir=resolved)
        summary = self.config_manager.get_config_summary(self.repo_root)
        summary.resolved_base_dir = resolved
        return summary


def create_worktree_manager(
    repo_path: Optional[Union[str, Path]] = None,
    config: Optional[WorktreeConfig] = None,
    **kwargs,
) -> WorktreeManager:
    """Build a manager for the repository containing ``repo_path`` (default: cwd)."""
    return WorktreeManager(repo_path or Path.cwd(), config=config, **kwargs)
