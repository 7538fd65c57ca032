"""Pytest fixtures for git-worktree-keeper tests"""
import tempfile
from pathlib import Path
from unittest.mock import Mock

import git
import pytest

from git_worktree_keeper.config import WorktreeConfig, WorktreeMergeDetectionConfig
from git_worktree_keeper.models.worktree import (
    MergeInfo,
    RemoteStatus,
    StatusSeverity,
    WorktreeStatus,
)
from git_worktree_keeper.services.git.gateway import GitProcessGateway


def _commit_file(repo_path, name, content, message=None, date=None):
    repo = git.Repo(repo_path)
    target = Path(repo_path) / name
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content)
    repo.git.add(name)
    env = {"GIT_AUTHOR_DATE": date, "GIT_COMMITTER_DATE": date} if date else None
    repo.git.commit("-m", message or f"Update {name}", env=env)
    sha = repo.head.commit.hexsha
    repo.close()
    return sha


@pytest.fixture(autouse=True)
def no_github_token(monkeypatch):
    """Keep tests independent of a developer's GitHub credentials."""
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    for name in ("MODE", "BASE", "PREFIX", "AGE_THRESHOLD", "MERGE_METHODS", "MAIN_BRANCHES"):
        monkeypatch.delenv(f"VIBE_WORKTREE_{name}", raising=False)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def worktree_config():
    """Configuration that never reaches out to GitHub."""
    return WorktreeConfig(
        merge_detection=WorktreeMergeDetectionConfig(
            use_github_cli=False,
            methods=["standard", "file_content"],
        ),
    )


@pytest.fixture
def git_repo(temp_dir):
    """Create a real Git repository for testing."""
    repo_path = temp_dir / "test_repo"
    repo_path.mkdir()

    repo = git.Repo.init(repo_path)

    repo.config_writer().set_value("user", "name", "Test User").release()
    repo.config_writer().set_value("user", "email", "test@example.com").release()

    test_file = repo_path / "README.md"
    test_file.write_text("# Test Repository\n")
    repo.index.add(["README.md"])
    repo.index.commit("Initial commit")

    repo.git.branch('-M', 'main')

    yield repo

    repo.close()


@pytest.fixture
def git_repo_with_origin(git_repo, temp_dir):
    """Repository whose origin is a local bare repository with main pushed."""
    origin_path = temp_dir / "origin.git"
    git.Repo.init(origin_path, bare=True).close()
    git_repo.create_remote("origin", str(origin_path))
    git_repo.git.push("-u", "origin", "main")
    yield git_repo


@pytest.fixture
def commit_file():
    """Helper that writes a file in a checkout and commits it."""
    return _commit_file


@pytest.fixture
def gateway():
    return GitProcessGateway()


@pytest.fixture
def mock_gateway():
    """Gateway double for tests that must not start processes."""
    return Mock(spec=GitProcessGateway)


@pytest.fixture
def clean_status():
    return WorktreeStatus(is_clean=True, severity=StatusSeverity.CLEAN)


@pytest.fixture
def merged_info():
    return MergeInfo(is_merged=True, detection_method="standard", confidence=0.9, details="merged into main")


@pytest.fixture
def make_status():
    """Factory for WorktreeStatus values with only the interesting fields set."""
    def _make(**kwargs):
        kwargs.setdefault("remote_status", RemoteStatus.no_remote())
        kwargs.setdefault("severity", StatusSeverity.CLEAN)
        kwargs.setdefault("is_clean", not (
            kwargs.get("uncommitted_changes") or kwargs.get("untracked_files")
        ))
        return WorktreeStatus(**kwargs)
    return _make
