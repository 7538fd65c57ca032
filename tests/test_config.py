"""Tests for worktree configuration and the workspace config manager."""
from pathlib import Path

import pytest
import yaml

from git_worktree_keeper.config import (
    RepositoryWorktreeConfig,
    WorktreeConfig,
    WorktreeMode,
)
from git_worktree_keeper.config_manager import WorktreeConfigManager
from git_worktree_keeper.exceptions import ConfigurationError


class TestWorktreeConfig:

    def test_defaults(self):
        config = WorktreeConfig()
        assert config.mode is WorktreeMode.LOCAL
        assert config.base_dir == ".worktrees"
        assert config.prefix == "vibe-ws/"
        assert config.auto_gitignore
        assert config.cleanup.age_threshold_hours == 24
        assert config.merge_detection.methods == ["standard", "squash", "github_pr", "file_content"]
        assert config.merge_detection.main_branches == ["main", "master"]
        assert config.merge_detection.confidence.standard_merged == 0.95
        assert config.validate() == []

    def test_validate_reports_every_problem(self):
        config = WorktreeConfig(prefix="a/../b", base_dir="  ")
        config.cleanup.age_threshold_hours = 0
        config.merge_detection.methods = []
        config.status.max_files_shown = 500

        errors = config.validate()

        assert len(errors) == 5
        assert any("'..'" in e for e in errors)
        assert any("base_dir" in e for e in errors)
        assert any("age_threshold_hours" in e for e in errors)

    @pytest.mark.parametrize("prefix", ["", "x" * 51, "bad\0prefix"])
    def test_invalid_prefix(self, prefix):
        assert WorktreeConfig(prefix=prefix).validate()

    def test_resolve_base_dir(self, temp_dir):
        assert WorktreeConfig().resolve_base_dir(temp_dir) == temp_dir / ".worktrees"
        assert WorktreeConfig(base_dir=str(temp_dir / "abs")).resolve_base_dir(Path("/repo")) == temp_dir / "abs"
        global_dir = WorktreeConfig(mode=WorktreeMode.GLOBAL).resolve_base_dir(temp_dir)
        assert global_dir == Path("~/.toolprint/vibe-workspace/worktrees").expanduser()

    def test_from_dict_nested_sections(self):
        config = WorktreeConfig.from_dict({
            "mode": "GLOBAL",
            "prefix": "wt/",
            "cleanup": {"age_threshold_hours": 48, "unknown": 1},
            "merge_detection": {"methods": ["standard"], "confidence": {"github_pr_merged": 0.85}},
            "status": {"max_files_shown": 20},
            "ignored_key": True,
        })
        assert config.mode is WorktreeMode.GLOBAL
        assert config.prefix == "wt/"
        assert config.cleanup.age_threshold_hours == 48
        assert config.merge_detection.methods == ["standard"]
        assert config.merge_detection.confidence.github_pr_merged == 0.85
        assert config.merge_detection.confidence.standard_merged == 0.95
        assert config.status.max_files_shown == 20

    def test_unknown_mode_falls_back_to_local(self):
        assert WorktreeConfig.from_dict({"mode": "nowhere"}).mode is WorktreeMode.LOCAL

    def test_env_overrides(self):
        base = WorktreeConfig()
        config = base.apply_env_overrides({
            "VIBE_WORKTREE_MODE": "global",
            "VIBE_WORKTREE_PREFIX": "agent/",
            "VIBE_WORKTREE_AGE_THRESHOLD": "72",
            "VIBE_WORKTREE_AUTO_GITIGNORE": "no",
            "VIBE_WORKTREE_MERGE_METHODS": "standard, squash",
            "VIBE_WORKTREE_MAIN_BRANCHES": "trunk",
        })
        assert config.mode is WorktreeMode.GLOBAL
        assert config.prefix == "agent/"
        assert config.cleanup.age_threshold_hours == 72
        assert not config.auto_gitignore
        assert config.merge_detection.methods == ["standard", "squash"]
        assert config.merge_detection.main_branches == ["trunk"]
        # the original is untouched
        assert base.prefix == "vibe-ws/"
        assert base.cleanup.age_threshold_hours == 24

    def test_unparseable_env_values_are_ignored(self, caplog):
        config = WorktreeConfig().apply_env_overrides({
            "VIBE_WORKTREE_AGE_THRESHOLD": "soon",
            "VIBE_WORKTREE_VERIFY_REMOTE": "maybe",
        })
        assert config.cleanup.age_threshold_hours == 24
        assert config.cleanup.verify_remote
        assert "VIBE_WORKTREE_AGE_THRESHOLD" in caplog.text

    def test_to_dict_round_trips_through_yaml(self):
        config = WorktreeConfig(mode=WorktreeMode.GLOBAL, prefix="wt/")
        data = yaml.safe_load(yaml.safe_dump(config.to_dict()))
        assert data["mode"] == "global"
        assert WorktreeConfig.from_dict(data) == config


class TestRepositoryOverrides:

    def test_merge_is_field_by_field(self):
        base = WorktreeConfig()
        override = RepositoryWorktreeConfig.from_dict({
            "prefix": "task/",
            "cleanup": {"auto_delete_branch": True},
            "merge_detection": {"main_branches": ["develop"]},
        })

        merged = override.merge_onto(base)

        assert merged.prefix == "task/"
        assert merged.base_dir == base.base_dir
        assert merged.cleanup.auto_delete_branch
        assert merged.cleanup.age_threshold_hours == 24
        assert merged.merge_detection.main_branches == ["develop"]
        assert merged.merge_detection.methods == base.merge_detection.methods
        assert not base.cleanup.auto_delete_branch

    def test_empty_override(self):
        assert RepositoryWorktreeConfig.from_dict(None).is_empty()
        assert not RepositoryWorktreeConfig.from_dict({"disabled": True}).is_empty()


class TestWorktreeConfigManager:

    @pytest.fixture
    def document(self, temp_dir):
        return {
            "worktree": {"prefix": "ws/", "cleanup": {"age_threshold_hours": 12}},
            "repositories": [
                {"name": "api", "path": str(temp_dir / "api"), "worktree_config": {"prefix": "api/"}},
                {"name": "web"},
                {"name": "legacy", "worktree_config": {"disabled": True}},
            ],
        }

    def test_repository_resolution(self, document, temp_dir):
        manager = WorktreeConfigManager(document=document, environ={})

        assert manager.load_config_for_repo(temp_dir / "api").prefix == "api/"
        assert manager.load_config_for_repo(temp_dir / "api").cleanup.age_threshold_hours == 12
        assert manager.load_config_for_repo(temp_dir / "web").prefix == "ws/"
        assert manager.load_config_for_repo(temp_dir / "unknown").prefix == "ws/"

    def test_override_beats_environment(self, document, temp_dir):
        manager = WorktreeConfigManager(document=document, environ={"VIBE_WORKTREE_PREFIX": "env/"})
        assert manager.load_config_for_repo(temp_dir / "web").prefix == "env/"
        assert manager.load_config_for_repo(temp_dir / "api").prefix == "api/"

    def test_disabled_repositories(self, document, temp_dir):
        manager = WorktreeConfigManager(document=document, environ={})
        assert not manager.is_repository_enabled(temp_dir / "legacy")
        assert manager.is_repository_enabled(temp_dir / "api")
        assert manager.is_repository_enabled(temp_dir / "elsewhere")

    def test_validate_all_configs(self, document):
        document["repositories"].append({"name": "broken", "worktree_config": {"prefix": "../up"}})
        manager = WorktreeConfigManager(document=document, environ={})

        problems = manager.validate_all_configs()

        assert len(problems) == 1
        assert problems[0].repository == "broken"
        assert str(problems[0]).startswith("[broken]")

    def test_summary(self, document, temp_dir):
        summary = WorktreeConfigManager(document=document, environ={}).get_config_summary(temp_dir)

        assert summary.total_repositories == 3
        assert summary.enabled_repositories == 2
        assert set(summary.repo_overrides) == {"api", "legacy"}
        text = summary.format_summary()
        assert "ws/" in text
        assert "2/3 enabled" in text

    def test_load_and_save_yaml(self, document, temp_dir):
        path = temp_dir / "config.yaml"
        path.write_text(yaml.safe_dump(document))
        manager = WorktreeConfigManager(config_path=path, environ={})
        assert manager.global_config.prefix == "ws/"

        saved = manager.save(temp_dir / "out" / "config.yaml")

        reloaded = WorktreeConfigManager(config_path=saved, environ={})
        assert reloaded.global_config == manager.global_config
        assert [e.name for e in reloaded.repositories] == ["api", "web", "legacy"]
        assert reloaded.load_config_for_repo(temp_dir / "api").prefix == "api/"

    def test_missing_file_uses_defaults(self, temp_dir):
        manager = WorktreeConfigManager(config_path=temp_dir / "absent.yaml", environ={})
        assert manager.global_config == WorktreeConfig()
        assert manager.repositories == []

    def test_malformed_yaml(self, temp_dir):
        path = temp_dir / "config.yaml"
        path.write_text("worktree: [unclosed\n")
        with pytest.raises(ConfigurationError):
            WorktreeConfigManager(config_path=path, environ={})
