# Copyright (c) Meta Platforms, Inc. and affiliates.

"""
Candidate enumeration for canary bisect.

This module turns two references into the ordered list of main-branch
commits to bisect over, oldest first, with the good endpoint at index 0 and
the bad endpoint last.
"""

from pathlib import Path
from typing import List, Tuple

from canarybisect.bisect.executor import ShellExecutor
from canarybisect.bisect.logger import BisectLogger
from canarybisect.bisect.refs import Ref, ReferenceNotFound, resolve_ref
from canarybisect.bisect.search import BisectError


class CandidateRangeError(BisectError):
    """Raised when the candidate list cannot be built."""

    pass


class CandidateProvider:
    """
    Lists the canary candidates between two references.

    Example:
        >>> logger = BisectLogger("./bisect_logs")
        >>> provider = CandidateProvider(
        ...     repo_dir=Path("/path/to/checkout"),
        ...     executor=ShellExecutor(logger),
        ...     logger=logger,
        ... )
        >>> candidates = provider.candidates(parse_ref("1.45.0"), parse_ref("1.46.0"))
    """

    def __init__(
        self,
        repo_dir: Path,
        executor: ShellExecutor,
        logger: BisectLogger,
    ) -> None:
        """
        Initialize the provider.

        Args:
            repo_dir: Path to a clone of the upstream repository.
            executor: ShellExecutor instance for running git commands.
            logger: BisectLogger instance for logging.
        """
        self.repo_dir = repo_dir
        self.executor = executor
        self.logger = logger

    def main_log(self) -> List[Tuple[str, str]]:
        """
        Read (hash, subject) pairs of the checked-out branch, newest first.

        Raises:
            CandidateRangeError: If git log fails.
        """
        result = self.executor.run_command(
            ["git", "log", "--format=%H%x1f%s"],
            cwd=str(self.repo_dir),
        )
        if not result.success:
            raise CandidateRangeError(f"Failed to read git log: {result.stderr}")

        commits = []
        for line in result.stdout.splitlines():
            if not line:
                continue
            commit_hash, _, subject = line.partition("\x1f")
            commits.append((commit_hash, subject))
        return commits

    def resolve(self, commits: List[Tuple[str, str]], ref: Ref) -> str:
        """
        Resolve a reference to a full commit hash that exists in the clone.

        Raises:
            ReferenceNotFound: If the reference has no matching commit.
        """
        commit = resolve_ref(commits, ref)
        result = self.executor.run_command(
            ["git", "rev-parse", "--verify", "--quiet", f"{commit}^{{commit}}"],
            cwd=str(self.repo_dir),
        )
        if not result.success:
            raise ReferenceNotFound(f"Commit {commit} for {ref} not found in history")
        return result.stdout.strip()

    def candidates(self, good: Ref, bad: Ref) -> List[str]:
        """
        Build the ordered candidate list between two references.

        Args:
            good: Last known good reference.
            bad: Known bad reference.

        Returns:
            Commit hashes, oldest first, starting with the good commit and
            ending with the bad commit.

        Raises:
            ReferenceNotFound: If either reference cannot be resolved.
            CandidateRangeError: If fewer than two candidates are found.
        """
        commits = self.main_log()
        good_commit = self.resolve(commits, good)
        bad_commit = self.resolve(commits, bad)
        self.logger.info(f"Good commit: {good_commit} ({good})")
        self.logger.info(f"Bad commit: {bad_commit} ({bad})")

        result = self.executor.run_command(
            [
                "git",
                "rev-list",
                "--reverse",
                "--first-parent",
                f"{good_commit}..{bad_commit}",
            ],
            cwd=str(self.repo_dir),
        )
        if not result.success:
            raise CandidateRangeError(
                f"Failed to list commits {good_commit[:12]}..{bad_commit[:12]}: "
                f"{result.stderr}"
            )

        hashes = [good_commit] + result.stdout.split()
        if len(hashes) < 2:
            raise CandidateRangeError(
                f"No commits between {good} and {bad}; is {good} older than {bad}?"
            )
        self.logger.info(f"Found {len(hashes)} candidate commits")
        return hashes
