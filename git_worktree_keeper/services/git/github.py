"""GitHub integration for merged-PR lookups."""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Union
from urllib.parse import urlparse

from github import Auth, Github, GithubException

from git_worktree_keeper.exceptions import GitHubAPIError
from git_worktree_keeper.services.git.gateway import GitProcessGateway
from git_worktree_keeper.services.git.queries import RepositoryQueries
from git_worktree_keeper.utils.logging import get_logger

if TYPE_CHECKING:
    from github.Repository import Repository

logger = get_logger(__name__)


@dataclass
class MergedPullRequest:
    number: int
    title: str
    merged_at: Optional[str] = None


def parse_github_repo(remote_url: str) -> Optional[str]:
    """Extract ``owner/repo`` from an SSH or HTTPS GitHub remote URL."""
    if remote_url.startswith("git@"):
        if "github.com:" not in remote_url:
            return None
        path = remote_url.split("github.com:", 1)[1]
    else:
        parsed_url = urlparse(remote_url)
        if not parsed_url.netloc.endswith("github.com"):
            return None
        path = parsed_url.path.strip("/")

    if path.endswith(".git"):
        path = path[:-4]
    return path or None


class GitHubService:
    """Finds merged pull requests whose head is a given branch.

    The ``gh`` CLI is used when enabled; otherwise a token (from the config
    or ``GITHUB_TOKEN``) enables the REST API through PyGithub.
    """

    def __init__(
        self,
        repo_path: Union[str, Path],
        queries: Optional[RepositoryQueries] = None,
        token: Optional[str] = None,
    ):
        self.repo_path = Path(repo_path)
        self.queries = queries or RepositoryQueries()
        self.gateway: GitProcessGateway = self.queries.gateway
        self.github_token = token or os.environ.get("GITHUB_TOKEN")
        self._gh_repo: Optional["Repository"] = None

    @property
    def has_token(self) -> bool:
        return bool(self.github_token)

    def find_merged_pr_cli(self, branch: str) -> Optional[MergedPullRequest]:
        """Ask the GitHub CLI for a merged PR from ``branch``.

        Raises:
            GitHubAPIError: If gh is missing, unauthenticated or returns junk
        """
        output = self.gateway.run_gh(
            self.repo_path,
            "pr", "list",
            "--state", "merged",
            "--head", branch,
            "--json", "number,title,mergedAt",
        )
        try:
            pulls = json.loads(output or "[]")
        except json.JSONDecodeError as e:
            raise GitHubAPIError("pr list", f"unexpected output: {e}") from e

        if not pulls:
            return None
        pr = pulls[0]
        logger.debug(f"[GitHub] Branch {branch} has merged PR #{pr.get('number')}")
        return MergedPullRequest(
            number=int(pr.get("number", 0)),
            title=pr.get("title", ""),
            merged_at=pr.get("mergedAt"),
        )

    def find_merged_pr_api(self, branch: str) -> Optional[MergedPullRequest]:
        """Look up a merged PR from ``branch`` through the REST API.

        Raises:
            GitHubAPIError: If the remote is not GitHub or the API call fails
        """
        try:
            repo = self._get_gh_repo()
            owner = repo.full_name.split("/")[0]
            for pr in repo.get_pulls(state="closed", head=f"{owner}:{branch}"):
                if pr.merged:
                    merged_at = pr.merged_at.isoformat() if pr.merged_at else None
                    return MergedPullRequest(number=pr.number, title=pr.title, merged_at=merged_at)
        except GithubException as e:
            raise GitHubAPIError("get_pulls", str(e)) from e
        return None

    def _get_gh_repo(self) -> "Repository":
        if self._gh_repo is not None:
            return self._gh_repo
        if not self.github_token:
            raise GitHubAPIError("setup", "no GitHub token configured")

        remote_url = self.queries.remote_url(self.repo_path)
        full_name = parse_github_repo(remote_url) if remote_url else None
        if not full_name:
            raise GitHubAPIError("setup", f"origin is not a GitHub remote: {remote_url}")

        github = Github(auth=Auth.Token(self.github_token))
        try:
            self._gh_repo = github.get_repo(full_name)
        except GithubException as e:
            raise GitHubAPIError("get_repo", str(e)) from e
        logger.debug(f"[GitHub] API integration enabled for: {full_name}")
        return self._gh_repo
