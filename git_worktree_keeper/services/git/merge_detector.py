"""Merge detection service for git-worktree-keeper.

Ancestry alone cannot tell whether a branch landed upstream once squash
merges, rebases and PR merges are involved, so several heuristics each
produce a confidence-scored verdict and the verdicts are fused.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Union

from git_worktree_keeper.config import WorktreeMergeDetectionConfig
from git_worktree_keeper.exceptions import GitHubAPIError, GitOperationError
from git_worktree_keeper.models.worktree import MergeInfo
from git_worktree_keeper.services.git.github import GitHubService
from git_worktree_keeper.services.git.queries import RepositoryQueries
from git_worktree_keeper.utils.logging import get_logger

logger = get_logger(__name__)


class MergeDetectionMethod(Enum):
    STANDARD = "standard"
    SQUASH = "squash"
    GITHUB_PR = "github_pr"
    FILE_CONTENT = "file_content"


@dataclass
class MethodResult:
    """Outcome of one detection method; ``error`` is set when it could not run."""
    method: str
    is_merged: bool
    confidence: float
    details: Optional[str] = None
    error: Optional[str] = None


@dataclass
class MergeDetectionResult:
    is_merged: bool
    confidence: float
    detection_method: str
    details: Optional[str] = None
    method_results: List[MethodResult] = field(default_factory=list)

    def to_merge_info(self) -> MergeInfo:
        return MergeInfo(
            is_merged=self.is_merged,
            detection_method=self.detection_method,
            confidence=self.confidence,
            details=self.details,
        )


def fuse_results(results: Sequence[MethodResult]) -> MergeDetectionResult:
    """Combine per-method verdicts into one.

    The most confident positive wins if any method says merged; otherwise
    the most confident negative. Methods that errored do not vote.
    """
    attempts = list(results)
    if not attempts:
        return MergeDetectionResult(
            is_merged=False,
            confidence=0.0,
            detection_method="none",
            details="No detection methods available",
        )

    voters = [r for r in attempts if r.error is None]
    if not voters:
        failures = "; ".join(f"{r.method}: {r.error}" for r in attempts)
        return MergeDetectionResult(
            is_merged=False,
            confidence=0.0,
            detection_method="none",
            details=f"All detection methods failed ({failures})",
            method_results=attempts,
        )

    positives = [r for r in voters if r.is_merged]
    pool = positives or voters
    best = pool[0]
    for candidate in pool[1:]:
        if candidate.confidence > best.confidence:
            best = candidate

    return MergeDetectionResult(
        is_merged=best.is_merged,
        confidence=best.confidence,
        detection_method=best.method,
        details=best.details,
        method_results=attempts,
    )


class MergeDetector:
    """Decides whether a branch has been merged into a main branch."""

    def __init__(
        self,
        repo_path: Union[str, Path],
        config: WorktreeMergeDetectionConfig,
        queries: Optional[RepositoryQueries] = None,
        github: Optional[GitHubService] = None,
    ):
        """Initialize the merge detector.

        Args:
            repo_path: Any checkout of the repository (refs are shared)
            config: Merge detection settings
            queries: Query service (a default one is created if omitted)
            github: GitHub service for PR lookups (created lazily if omitted)
        """
        self.repo_path = Path(repo_path)
        self.config = config
        self.confidence = config.confidence
        self.queries = queries or RepositoryQueries()
        self._github = github
        self._merged_pr_numbers: Dict[str, int] = {}
        self._handlers: Dict[MergeDetectionMethod, Callable[[str], MethodResult]] = {
            MergeDetectionMethod.STANDARD: self._check_standard,
            MergeDetectionMethod.SQUASH: self._check_squash,
            MergeDetectionMethod.GITHUB_PR: self._check_github_pr,
            MergeDetectionMethod.FILE_CONTENT: self._check_file_content,
        }

    @property
    def github(self) -> GitHubService:
        if self._github is None:
            self._github = GitHubService(self.repo_path, self.queries, token=self.config.github_token)
        return self._github

    def configured_methods(self) -> List[MergeDetectionMethod]:
        methods = []
        for name in self.config.methods:
            try:
                methods.append(MergeDetectionMethod(name.strip().lower()))
            except ValueError:
                logger.warning(f"Unknown merge detection method '{name}', skipping")
        return methods

    def detect(self, branch: str) -> MergeDetectionResult:
        """Run every configured method against ``branch`` and fuse the results."""
        methods = self.configured_methods()
        # PR lookups go first so the squash check can search for the PR number
        run_order = sorted(enumerate(methods), key=lambda item: item[1] is not MergeDetectionMethod.GITHUB_PR)
        results: List[Optional[MethodResult]] = [None] * len(methods)
        for index, method in run_order:
            try:
                result = self._handlers[method](branch)
            except (GitOperationError, GitHubAPIError) as e:
                logger.debug(f"[{method.value}] failed for {branch}: {e}")
                result = MethodResult(method.value, False, 0.0, error=str(e))
            logger.debug(
                f"[{result.method}] {branch}: merged={result.is_merged} "
                f"confidence={result.confidence:.2f} ({result.details or result.error})"
            )
            results[index] = result

        fused = fuse_results(results)
        logger.debug(
            f"Merge verdict for {branch}: merged={fused.is_merged} "
            f"via {fused.detection_method} ({fused.confidence:.2f})"
        )
        return fused

    def _main_branch(self) -> Optional[str]:
        """First configured main branch that exists."""
        for name in self.config.main_branches:
            if self.queries.ref_resolves(self.repo_path, name):
                return name
        return None

    def _check_standard(self, branch: str) -> MethodResult:
        method = MergeDetectionMethod.STANDARD.value
        for main in self.config.main_branches:
            if not self.queries.ref_resolves(self.repo_path, main):
                continue
            if branch in self.queries.merged_branches(self.repo_path, main):
                return MethodResult(method, True, self.confidence.standard_merged, f"merged into {main}")
        return MethodResult(
            method, False, self.confidence.standard_not_merged, "Not reachable from any main branch"
        )

    def _check_squash(self, branch: str) -> MethodResult:
        method = MergeDetectionMethod.SQUASH.value
        main = self._main_branch()
        if main is None:
            return MethodResult(method, False, 0.0, "No main branch found")
        base = self.queries.merge_base(self.repo_path, main, branch)
        if base is None:
            return MethodResult(method, False, 0.0, "Cannot find merge base")

        if self.queries.diff_is_empty(self.repo_path, base, branch):
            return MethodResult(
                method, True, self.confidence.squash_no_unique_changes,
                f"No unique changes relative to {main}",
            )

        mentions = self.queries.log_mentions(self.repo_path, f"{base}..{main}", branch)
        if mentions:
            return MethodResult(
                method, True, self.confidence.squash_message_reference,
                f"{len(mentions)} commit(s) on {main} reference {branch}",
            )
        pr_number = self._merged_pr_numbers.get(branch)
        if pr_number is not None:
            mentions = self.queries.log_mentions_pr(self.repo_path, f"{base}..{main}", pr_number)
            if mentions:
                return MethodResult(
                    method, True, self.confidence.squash_message_reference,
                    f"{len(mentions)} commit(s) on {main} reference PR #{pr_number}",
                )

        if self._commits_correlate(base, main, branch):
            return MethodResult(
                method, True, self.confidence.squash_timing_correlation,
                f"Commits on {main} coincide with branch commits",
            )

        ratio = self._content_match_ratio(main, base, branch)
        if ratio is not None and ratio > self.confidence.content_match_threshold:
            return MethodResult(
                method, True, ratio * self.confidence.content_match_weight,
                f"{ratio:.0%} of changed files match {main}",
            )
        return MethodResult(method, False, self.confidence.squash_not_merged, "No squash merge evidence")

    def _check_github_pr(self, branch: str) -> MethodResult:
        method = MergeDetectionMethod.GITHUB_PR.value
        if self.config.use_github_cli:
            pr = self.github.find_merged_pr_cli(branch)
        elif self.github.has_token:
            pr = self.github.find_merged_pr_api(branch)
        else:
            return MethodResult(method, False, 0.0, "GitHub CLI integration disabled")

        if pr is None:
            return MethodResult(method, False, self.confidence.github_pr_not_merged, "No merged PR found")
        self._merged_pr_numbers[branch] = pr.number
        return MethodResult(method, True, self.confidence.github_pr_merged, f"PR #{pr.number} merged")

    def _check_file_content(self, branch: str) -> MethodResult:
        method = MergeDetectionMethod.FILE_CONTENT.value
        main = self._main_branch()
        if main is None:
            return MethodResult(method, False, 0.0, "No main branch found")
        base = self.queries.merge_base(self.repo_path, main, branch)
        if base is None:
            return MethodResult(method, False, 0.0, "Cannot find merge base")

        ratio = self._content_match_ratio(main, base, branch)
        if ratio is None:
            return MethodResult(method, True, self.confidence.content_no_changes, "Branch changes no files")
        if ratio > self.confidence.content_match_threshold:
            return MethodResult(
                method, True, ratio * self.confidence.content_match_weight,
                f"{ratio:.0%} of changed files match {main}",
            )
        return MethodResult(
            method, False, self.confidence.content_not_merged,
            f"Only {ratio:.0%} of changed files match {main}",
        )

    def _commits_correlate(self, base: str, main: str, branch: str) -> bool:
        branch_times = self.queries.commit_timestamps(self.repo_path, f"{base}..{branch}")
        if not branch_times:
            return False
        window = self.confidence.timing_window_seconds
        nearby = self.queries.commits_in_window(
            self.repo_path, f"{base}..{main}", min(branch_times) - window, max(branch_times) + window
        )
        return bool(nearby)

    def _content_match_ratio(self, main: str, base: str, branch: str) -> Optional[float]:
        """Share of files changed on the branch whose content is identical on main.

        Returns None when the branch changes no files.
        """
        files = self.queries.changed_files(self.repo_path, base, branch)
        if not files:
            return None
        matches = sum(
            1 for path in files
            if self.queries.file_at_ref(self.repo_path, branch, path)
            == self.queries.file_at_ref(self.repo_path, main, path)
        )
        return matches / len(files)
