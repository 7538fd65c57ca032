"""Process gateway for git and gh commands."""

from pathlib import Path
from typing import Sequence, Tuple, Union

import git

from git_worktree_keeper.exceptions import GitHubAPIError, GitOperationError
from git_worktree_keeper.utils.logging import get_logger

logger = get_logger(__name__)

PathLike = Union[str, Path]


class GitProcessGateway:
    """Runs git and gh subcommands in a given directory.

    Every other component reaches git through this class. Failures raise
    GitOperationError (or GitHubAPIError for gh) carrying the command's
    exit status and its stderr verbatim.
    """

    def __init__(self, git_executable: str = "git", gh_executable: str = "gh"):
        """Initialize the gateway.

        Args:
            git_executable: Name or path of the git binary
            gh_executable: Name or path of the GitHub CLI binary
        """
        self.git_executable = git_executable
        self.gh_executable = gh_executable

    def execute(
        self, cwd: PathLike, command: Sequence[str], binary: bool = False
    ) -> Tuple[int, Union[str, bytes], str]:
        """Run ``command`` in ``cwd`` without raising on a non-zero exit.

        Returns:
            Tuple of (exit status, stdout, stderr)

        Raises:
            git.exc.GitCommandNotFound: If the executable or ``cwd`` is missing
        """
        logger.debug(f"[{cwd}] {' '.join(command)}")
        status, stdout, stderr = git.Git(str(cwd)).execute(
            list(command),
            with_extended_output=True,
            with_exceptions=False,
            stdout_as_string=not binary,
            strip_newline_in_stdout=not binary,
        )
        if isinstance(stderr, bytes):
            stderr = stderr.decode("utf-8", errors="replace")
        return status, stdout, stderr

    def run(self, cwd: PathLike, *args: str) -> str:
        """Run ``git <args>`` in ``cwd`` and return its stdout.

        Raises:
            GitOperationError: If git exits non-zero or cannot be started
        """
        command = [self.git_executable, *args]
        try:
            status, stdout, stderr = self.execute(cwd, command)
        except git.exc.GitCommandNotFound as e:
            raise GitOperationError(args[0], message=f"cannot run git in {cwd}: {e}", command=command) from e
        if status != 0:
            raise GitOperationError(args[0], status=status, stderr=stderr, command=command)
        return stdout

    def run_binary(self, cwd: PathLike, *args: str) -> bytes:
        """Like :meth:`run` but returns stdout as raw bytes."""
        command = [self.git_executable, *args]
        try:
            status, stdout, stderr = self.execute(cwd, command, binary=True)
        except git.exc.GitCommandNotFound as e:
            raise GitOperationError(args[0], message=f"cannot run git in {cwd}: {e}", command=command) from e
        if status != 0:
            raise GitOperationError(args[0], status=status, stderr=stderr, command=command)
        return stdout

    def succeeds(self, cwd: PathLike, *args: str) -> bool:
        """Run ``git <args>`` purely for its exit code."""
        try:
            status, _, _ = self.execute(cwd, [self.git_executable, *args])
        except git.exc.GitCommandNotFound as e:
            logger.debug(f"git could not be started in {cwd}: {e}")
            return False
        return status == 0

    def run_gh(self, cwd: PathLike, *args: str) -> str:
        """Run ``gh <args>`` in ``cwd`` and return its stdout.

        Raises:
            GitHubAPIError: If gh is not installed or exits non-zero
        """
        command = [self.gh_executable, *args]
        operation = " ".join(args[:2])
        try:
            status, stdout, stderr = self.execute(cwd, command)
        except git.exc.GitCommandNotFound as e:
            raise GitHubAPIError(operation, f"GitHub CLI not available: {e}") from e
        if status != 0:
            raise GitHubAPIError(operation, stderr.strip() or f"exit code {status}")
        return stdout
