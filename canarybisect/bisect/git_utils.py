# Copyright (c) Meta Platforms, Inc. and affiliates.

"""
Git utility functions for bisect operations.

This module prepares the repository clone used to enumerate candidates:
either an existing checkout that is brought up to date, or a fresh
``--no-checkout`` clone in a temporary directory.
"""

import shutil
import tempfile
from pathlib import Path
from typing import Callable, Optional, Tuple

from canarybisect.bisect.executor import ShellExecutor
from canarybisect.bisect.logger import BisectLogger
from canarybisect.bisect.search import BisectError


class CheckoutError(BisectError):
    """Raised when the repository clone cannot be prepared."""

    pass


def verify_git_repo(
    repo_dir: Path,
    executor: ShellExecutor,
) -> Tuple[bool, str]:
    """
    Verify a directory is a valid git repository.

    Args:
        repo_dir: Path to the repository directory.
        executor: ShellExecutor instance for running commands.

    Returns:
        Tuple of (is_valid, current_commit_hash).
        If not valid, current_commit_hash is empty string.
    """
    result = executor.run_command(
        ["git", "rev-parse", "HEAD"],
        cwd=str(repo_dir),
    )
    if result.success:
        return (True, result.stdout.strip())
    return (False, "")


def ensure_checkout(
    checkout: Optional[str],
    repo_url: str,
    executor: ShellExecutor,
    logger: BisectLogger,
    output_callback: Optional[Callable[[str], None]] = None,
) -> Path:
    """
    Update an existing checkout or clone a fresh one.

    This function handles the two supported setups:
    - ``checkout`` given: the directory must exist and be a git repository;
      it is updated with ``git pull``.
    - ``checkout`` is None: ``repo_url`` is cloned with ``--no-checkout``
      into a new temporary directory, which the caller removes when done.

    Args:
        checkout: Path to an existing clone, or None.
        repo_url: URL to clone from when no checkout is given.
        executor: ShellExecutor instance for running commands.
        logger: BisectLogger instance for logging.
        output_callback: Optional callback receiving clone output lines.

    Returns:
        Path to the ready-to-use clone.

    Raises:
        CheckoutError: If the checkout is invalid or git operations fail.
    """
    if checkout:
        repo_dir = Path(checkout).expanduser().resolve()
        if not repo_dir.exists():
            raise CheckoutError(f"Bad checkout path, doesn't exist: {repo_dir}")

        is_valid, current_commit = verify_git_repo(repo_dir, executor)
        if not is_valid:
            raise CheckoutError(f"Not a valid git repository: {repo_dir}")
        logger.info(f"Using checkout at: {repo_dir}")
        logger.info(f"Current commit: {current_commit[:12]}")

        logger.info("Pulling latest changes...")
        result = executor.run_command(["git", "pull"], cwd=str(repo_dir))
        if not result.success:
            raise CheckoutError(f"Failed to pull {repo_dir}: {result.stderr}")
        logger.info("Pull complete.")
        return repo_dir

    repo_dir = Path(tempfile.mkdtemp(prefix="canarybisect_"))
    logger.info(f"Cloning {repo_url} into {repo_dir}...")
    result = executor.run_command_streaming(
        ["git", "clone", "--no-checkout", repo_url, str(repo_dir)],
        output_callback=output_callback,
    )
    if not result.success:
        shutil.rmtree(repo_dir, ignore_errors=True)
        raise CheckoutError(f"Failed to clone {repo_url}: {result.output}")
    logger.info("Clone complete.")
    return repo_dir
