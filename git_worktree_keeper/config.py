"""Configuration handling for git-worktree-keeper"""

import os
from dataclasses import dataclass, field, fields, replace, asdict
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from git_worktree_keeper.constants import (
    DEFAULT_BASE_DIR,
    DEFAULT_EDITOR,
    DEFAULT_PREFIX,
    ENV_PREFIX,
    GLOBAL_WORKTREE_DIR,
    MAX_PREFIX_LENGTH,
)
from git_worktree_keeper.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MERGE_METHODS = ["standard", "squash", "github_pr", "file_content"]


class WorktreeMode(Enum):
    """Where worktrees are placed."""
    LOCAL = "local"  # inside the repository, under base_dir
    GLOBAL = "global"  # in one shared directory for every repository

    @classmethod
    def parse(cls, value: Any) -> "WorktreeMode":
        """Parse a mode string, falling back to LOCAL for unknown values."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            logger.warning(f"Unknown worktree mode '{value}', using 'local'")
            return cls.LOCAL


def _known(cls, data: Mapping[str, Any]) -> Dict[str, Any]:
    """Keep only the keys that are fields of dataclass ``cls``."""
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


@dataclass
class WorktreeCleanupConfig:
    age_threshold_hours: int = 24
    verify_remote: bool = True
    auto_delete_branch: bool = False
    require_confirmation: bool = True

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "WorktreeCleanupConfig":
        return cls(**_known(cls, data or {}))


@dataclass
class MergeConfidenceConfig:
    """Confidence scores assigned by each merge detection heuristic."""
    standard_merged: float = 0.95
    standard_not_merged: float = 0.8
    squash_no_unique_changes: float = 0.6
    squash_message_reference: float = 0.7
    squash_timing_correlation: float = 0.5
    squash_not_merged: float = 0.6
    content_match_threshold: float = 0.8
    content_match_weight: float = 0.7
    content_no_changes: float = 0.8
    content_not_merged: float = 0.5
    github_pr_merged: float = 0.9
    github_pr_not_merged: float = 0.6
    timing_window_seconds: int = 3600

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "MergeConfidenceConfig":
        return cls(**_known(cls, data or {}))


@dataclass
class WorktreeMergeDetectionConfig:
    use_github_cli: bool = True
    methods: List[str] = field(default_factory=lambda: list(DEFAULT_MERGE_METHODS))
    main_branches: List[str] = field(default_factory=lambda: ["main", "master"])
    github_token: Optional[str] = None
    confidence: MergeConfidenceConfig = field(default_factory=MergeConfidenceConfig)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "WorktreeMergeDetectionConfig":
        values = _known(cls, data or {})
        if "confidence" in values:
            values["confidence"] = MergeConfidenceConfig.from_dict(values["confidence"])
        return cls(**values)


@dataclass
class WorktreeStatusConfig:
    show_files: bool = True
    max_files_shown: int = 10
    show_commit_messages: bool = True
    max_commits_shown: int = 5

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "WorktreeStatusConfig":
        return cls(**_known(cls, data or {}))


@dataclass
class WorktreeConfig:
    """Worktree settings, either global or resolved for one repository."""

    mode: WorktreeMode = WorktreeMode.LOCAL
    base_dir: str = DEFAULT_BASE_DIR
    prefix: str = DEFAULT_PREFIX
    auto_gitignore: bool = True
    default_editor: str = DEFAULT_EDITOR
    cleanup: WorktreeCleanupConfig = field(default_factory=WorktreeCleanupConfig)
    merge_detection: WorktreeMergeDetectionConfig = field(default_factory=WorktreeMergeDetectionConfig)
    status: WorktreeStatusConfig = field(default_factory=WorktreeStatusConfig)

    def validate(self) -> List[str]:
        """Return every validation problem; an empty list means valid."""
        errors = []

        if not self.prefix:
            errors.append("prefix cannot be empty")
        else:
            if ".." in self.prefix:
                errors.append("prefix cannot contain '..'")
            if "\0" in self.prefix:
                errors.append("prefix cannot contain NUL characters")
            if len(self.prefix) > MAX_PREFIX_LENGTH:
                errors.append(f"prefix must be at most {MAX_PREFIX_LENGTH} characters, got {len(self.prefix)}")

        if not self.base_dir or not self.base_dir.strip():
            errors.append("base_dir cannot be empty")

        hours = self.cleanup.age_threshold_hours
        if hours <= 0 or hours > 8760:
            errors.append(f"cleanup.age_threshold_hours must be between 1 and 8760, got {hours}")

        if not self.merge_detection.methods:
            errors.append("merge_detection.methods cannot be empty")
        if not self.merge_detection.main_branches:
            errors.append("merge_detection.main_branches cannot be empty")

        if not 1 <= self.status.max_files_shown <= 100:
            errors.append(f"status.max_files_shown must be between 1 and 100, got {self.status.max_files_shown}")
        if not 1 <= self.status.max_commits_shown <= 50:
            errors.append(f"status.max_commits_shown must be between 1 and 50, got {self.status.max_commits_shown}")

        if not self.default_editor or not self.default_editor.strip():
            errors.append("default_editor cannot be empty")

        return errors

    def resolve_base_dir(self, repo_root: Path) -> Path:
        """Directory that holds this repository's worktrees."""
        base = Path(self.base_dir).expanduser()
        if base.is_absolute():
            return base
        if self.mode is WorktreeMode.GLOBAL:
            return Path(GLOBAL_WORKTREE_DIR).expanduser()
        return Path(repo_root) / base

    def apply_env_overrides(self, environ: Optional[Mapping[str, str]] = None) -> "WorktreeConfig":
        """Return a copy with ``VIBE_WORKTREE_*`` variables applied.

        Values that fail to parse are logged and leave the field unchanged.
        """
        env = os.environ if environ is None else environ
        config = replace(
            self,
            cleanup=replace(self.cleanup),
            merge_detection=replace(self.merge_detection),
            status=replace(self.status),
        )

        def get(name: str) -> Optional[str]:
            value = env.get(ENV_PREFIX + name)
            return value if value not in (None, "") else None

        if get("MODE") is not None:
            config.mode = WorktreeMode.parse(get("MODE"))
        if get("BASE") is not None:
            config.base_dir = get("BASE")
        if get("PREFIX") is not None:
            config.prefix = get("PREFIX")
        if get("EDITOR") is not None:
            config.default_editor = get("EDITOR")

        for name, target, attr in (
            ("AUTO_GITIGNORE", config, "auto_gitignore"),
            ("VERIFY_REMOTE", config.cleanup, "verify_remote"),
            ("AUTO_DELETE_BRANCH", config.cleanup, "auto_delete_branch"),
            ("USE_GITHUB_CLI", config.merge_detection, "use_github_cli"),
            ("SHOW_FILES", config.status, "show_files"),
        ):
            raw = get(name)
            if raw is None:
                continue
            parsed = _parse_bool(raw)
            if parsed is None:
                logger.warning(f"Ignoring {ENV_PREFIX}{name}={raw!r}: not a boolean")
            else:
                setattr(target, attr, parsed)

        for name, target, attr in (
            ("AGE_THRESHOLD", config.cleanup, "age_threshold_hours"),
            ("MAX_FILES_SHOWN", config.status, "max_files_shown"),
        ):
            raw = get(name)
            if raw is None:
                continue
            try:
                setattr(target, attr, int(raw))
            except ValueError:
                logger.warning(f"Ignoring {ENV_PREFIX}{name}={raw!r}: not an integer")

        if get("MERGE_METHODS") is not None:
            config.merge_detection.methods = _parse_list(get("MERGE_METHODS"))
        if get("MAIN_BRANCHES") is not None:
            config.merge_detection.main_branches = _parse_list(get("MAIN_BRANCHES"))

        return config

    def to_dict(self) -> dict:
        """Convert config to a plain dictionary for YAML output."""
        data = asdict(self)
        data["mode"] = self.mode.value
        return data

    def get(self, key: str, default=None):
        """Get config value by key."""
        return getattr(self, key, default)

    @classmethod
    def from_dict(cls, config_dict: Optional[Mapping[str, Any]]) -> "WorktreeConfig":
        """Create a WorktreeConfig from a ``worktree:`` document section."""
        values = _known(cls, config_dict or {})
        if "mode" in values:
            values["mode"] = WorktreeMode.parse(values["mode"])
        if "cleanup" in values:
            values["cleanup"] = WorktreeCleanupConfig.from_dict(values["cleanup"])
        if "merge_detection" in values:
            values["merge_detection"] = WorktreeMergeDetectionConfig.from_dict(values["merge_detection"])
        if "status" in values:
            values["status"] = WorktreeStatusConfig.from_dict(values["status"])
        return cls(**values)


@dataclass
class RepositoryWorktreeConfig:
    """Per-repository override block; unset fields inherit the global value."""

    mode: Optional[WorktreeMode] = None
    prefix: Optional[str] = None
    base_dir: Optional[str] = None
    cleanup: Dict[str, Any] = field(default_factory=dict)
    merge_detection: Dict[str, Any] = field(default_factory=dict)
    disabled: bool = False

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "RepositoryWorktreeConfig":
        values = _known(cls, data or {})
        if values.get("mode") is not None:
            values["mode"] = WorktreeMode.parse(values["mode"])
        values["cleanup"] = dict(values.get("cleanup") or {})
        values["merge_detection"] = dict(values.get("merge_detection") or {})
        values["disabled"] = bool(values.get("disabled", False))
        return cls(**values)

    def is_empty(self) -> bool:
        return (
            self.mode is None
            and self.prefix is None
            and self.base_dir is None
            and not self.cleanup
            and not self.merge_detection
            and not self.disabled
        )

    def merge_onto(self, base: WorktreeConfig) -> WorktreeConfig:
        """Field-by-field merge of this override onto ``base``."""
        merged = replace(base)
        if self.mode is not None:
            merged.mode = self.mode
        if self.prefix is not None:
            merged.prefix = self.prefix
        if self.base_dir is not None:
            merged.base_dir = self.base_dir
        merged.cleanup = replace(base.cleanup, **_known(WorktreeCleanupConfig, self.cleanup))

        detection = _known(WorktreeMergeDetectionConfig, self.merge_detection)
        if "confidence" in detection:
            detection["confidence"] = replace(
                base.merge_detection.confidence,
                **_known(MergeConfidenceConfig, detection["confidence"] or {}),
            )
        merged.merge_detection = replace(base.merge_detection, **detection)
        return merged

    def to_dict(self) -> dict:
        data: Dict[str, Any] = {}
        if self.mode is not None:
            data["mode"] = self.mode.value
        for key in ("prefix", "base_dir"):
            if getattr(self, key) is not None:
                data[key] = getattr(self, key)
        if self.cleanup:
            data["cleanup"] = dict(self.cleanup)
        if self.merge_detection:
            data["merge_detection"] = dict(self.merge_detection)
        if self.disabled:
            data["disabled"] = True
        return data


def _parse_bool(value: str) -> Optional[bool]:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    return None


def _parse_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]
