"""Workspace configuration document loading and per-repository resolution."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from git_worktree_keeper.config import RepositoryWorktreeConfig, WorktreeConfig
from git_worktree_keeper.constants import DEFAULT_CONFIG_PATH
from git_worktree_keeper.exceptions import ConfigurationError
from git_worktree_keeper.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ConfigValidationError:
    """A validation problem, tied to a repository when it comes from an override."""
    error: str
    repository: Optional[str] = None

    def __str__(self) -> str:
        where = self.repository or "global"
        return f"[{where}] {self.error}"


@dataclass
class ConfigSummary:
    global_config: WorktreeConfig
    resolved_base_dir: Path
    repo_overrides: Dict[str, RepositoryWorktreeConfig] = field(default_factory=dict)
    total_repositories: int = 0
    enabled_repositories: int = 0

    def format_summary(self) -> str:
        config = self.global_config
        lines = [
            "Worktree configuration",
            f"  mode:            {config.mode.value}",
            f"  base directory:  {self.resolved_base_dir}",
            f"  branch prefix:   {config.prefix}",
            f"  auto .gitignore: {'yes' if config.auto_gitignore else 'no'}",
            f"  editor:          {config.default_editor}",
            f"  cleanup age:     {config.cleanup.age_threshold_hours}h",
            f"  merge methods:   {', '.join(config.merge_detection.methods)}",
            f"  main branches:   {', '.join(config.merge_detection.main_branches)}",
            f"  repositories:    {self.enabled_repositories}/{self.total_repositories} enabled",
        ]
        for name, override in sorted(self.repo_overrides.items()):
            settings = ", ".join(f"{k}={v}" for k, v in override.to_dict().items())
            lines.append(f"  override {name}: {settings}")
        return "\n".join(lines)


@dataclass
class RepositoryEntry:
    name: str
    path: Optional[str] = None
    worktree_config: RepositoryWorktreeConfig = field(default_factory=RepositoryWorktreeConfig)


class WorktreeConfigManager:
    """Resolves the worktree configuration for any repository in the workspace.

    Precedence, highest first: the repository's override block, environment
    variables, the document's global ``worktree`` section, built-in defaults.
    """

    def __init__(
        self,
        config_path: Optional[Union[str, Path]] = None,
        document: Optional[Mapping[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        """Initialize the config manager.

        Args:
            config_path: YAML workspace document to read when ``document`` is not given
            document: Already parsed workspace document
            environ: Environment used for overrides (``os.environ`` if omitted)
        """
        self.config_path = Path(config_path or DEFAULT_CONFIG_PATH).expanduser()
        self.environ = environ
        if document is None:
            document = self._read_document()
        self._load(document)

    def _read_document(self) -> Dict[str, Any]:
        if not self.config_path.exists():
            logger.debug(f"No workspace config at {self.config_path}, using defaults")
            return {}
        try:
            with open(self.config_path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError([f"cannot parse {self.config_path}: {e}"]) from e
        if not isinstance(data, dict):
            raise ConfigurationError([f"{self.config_path} must contain a mapping"])
        logger.debug(f"Loaded workspace config from {self.config_path}")
        return data

    def _load(self, document: Mapping[str, Any]) -> None:
        self.document_config = WorktreeConfig.from_dict(document.get("worktree"))
        self.global_config = self.document_config.apply_env_overrides(self.environ)

        self.repositories: List[RepositoryEntry] = []
        for raw in document.get("repositories") or []:
            if not isinstance(raw, dict) or not raw.get("name"):
                logger.warning(f"Ignoring repository entry without a name: {raw!r}")
                continue
            self.repositories.append(RepositoryEntry(
                name=str(raw["name"]),
                path=raw.get("path"),
                worktree_config=RepositoryWorktreeConfig.from_dict(raw.get("worktree_config")),
            ))

    def find_repository(self, repo_path: Union[str, Path]) -> Optional[RepositoryEntry]:
        """Match a repository entry by path, falling back to directory name."""
        repo_path = Path(repo_path).expanduser()
        resolved = repo_path.resolve()
        for entry in self.repositories:
            if entry.path and Path(entry.path).expanduser().resolve() == resolved:
                return entry
        for entry in self.repositories:
            if entry.name == repo_path.name:
                return entry
        return None

    def load_config_for_repo(self, repo_path: Union[str, Path]) -> WorktreeConfig:
        """Effective configuration for the repository at ``repo_path``."""
        entry = self.find_repository(repo_path)
        if entry is None or entry.worktree_config.is_empty():
            return self.global_config
        logger.debug(f"Applying worktree overrides for repository {entry.name}")
        return entry.worktree_config.merge_onto(self.global_config)

    def is_repository_enabled(self, repo_path: Union[str, Path]) -> bool:
        entry = self.find_repository(repo_path)
        return entry is None or not entry.worktree_config.disabled

    def validate_all_configs(self) -> List[ConfigValidationError]:
        """Validate the global config and every repository's merged config."""
        problems = [ConfigValidationError(error) for error in self.global_config.validate()]
        for entry in self.repositories:
            if entry.worktree_config.is_empty():
                continue
            merged = entry.worktree_config.merge_onto(self.global_config)
            problems.extend(ConfigValidationError(error, entry.name) for error in merged.validate())
        return problems

    def get_config_summary(self, repo_root: Optional[Union[str, Path]] = None) -> ConfigSummary:
        root = Path(repo_root) if repo_root else Path.cwd()
        return ConfigSummary(
            global_config=self.global_config,
            resolved_base_dir=self.global_config.resolve_base_dir(root),
            repo_overrides={
                e.name: e.worktree_config for e in self.repositories if not e.worktree_config.is_empty()
            },
            total_repositories=len(self.repositories),
            enabled_repositories=sum(1 for e in self.repositories if not e.worktree_config.disabled),
        )

    def to_document(self) -> Dict[str, Any]:
        """Workspace document for the document-level settings and overrides."""
        repositories = []
        for entry in self.repositories:
            item: Dict[str, Any] = {"name": entry.name}
            if entry.path:
                item["path"] = entry.path
            override = entry.worktree_config.to_dict()
            if override:
                item["worktree_config"] = override
            repositories.append(item)
        return {"worktree": self.document_config.to_dict(), "repositories": repositories}

    def save(self, path: Optional[Union[str, Path]] = None) -> Path:
        target = Path(path).expanduser() if path else self.config_path
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "w") as f:
            yaml.safe_dump(self.to_document(), f, sort_keys=False)
        logger.info(f"Saved workspace config to {target}")
        return target
