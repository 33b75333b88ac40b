# Copyright (c) Meta Platforms, Inc. and affiliates.

"""
Configuration for a canary bisect session.

Defaults target Deno canary builds. The log directory and the upstream
repository can be overridden with the ``CANARYBISECT_LOG_DIR`` and
``CANARYBISECT_REPO_URL`` environment variables; every value can be set on
the command line.
"""

import argparse
import os
import shlex
from dataclasses import dataclass
from typing import List, Optional

DEFAULT_REPO_URL = "https://github.com/denoland/deno"
DEFAULT_LOG_DIR = "./bisect_logs"
DEFAULT_UPGRADE_COMMAND = "deno upgrade --canary --version {commit}"
DEFAULT_TEST_COMMAND = "deno run -A --no-lock {script}"

# Same convention as `git bisect run`: the test harness itself is broken
HARNESS_BROKEN_EXIT_CODE = 125


def default_log_dir() -> str:
    return os.environ.get("CANARYBISECT_LOG_DIR", DEFAULT_LOG_DIR)


def default_repo_url() -> str:
    return os.environ.get("CANARYBISECT_REPO_URL", DEFAULT_REPO_URL)


def render_command(template: str, **values: str) -> List[str]:
    """
    Split a command template into arguments and fill in placeholders.

    Placeholders are substituted per argument after splitting, so values
    containing spaces stay a single argument. Only the named placeholders are
    replaced; any other braces (e.g. shell ``${HOME}``) are kept verbatim.

    Args:
        template: Command line such as ``"deno upgrade --version {commit}"``.
        **values: Placeholder values.

    Returns:
        Argument list suitable for subprocess.
    """
    args = []
    for arg in shlex.split(template):
        for name, value in values.items():
            arg = arg.replace(f"{{{name}}}", value)
        args.append(arg)
    return args


@dataclass
class BisectConfig:
    """
    Settings for one bisect session.

    Attributes:
        good: Last known good reference (version or canary hash).
        bad: Known bad reference.
        script: Test script deciding old vs. new behavior.
        checkout: Existing clone to reuse, or None to clone afresh.
        repo_url: Upstream repository to clone and link commits to.
        log_dir: Directory for log files.
        upgrade_command: Template switching the toolchain to ``{commit}``.
        test_command: Template running ``{script}``.
        test_timeout: Seconds before a test run is treated as untestable.
        tui: Whether to use the Rich TUI.
    """

    good: str
    bad: str
    script: str
    checkout: Optional[str] = None
    repo_url: str = DEFAULT_REPO_URL
    log_dir: str = DEFAULT_LOG_DIR
    upgrade_command: str = DEFAULT_UPGRADE_COMMAND
    test_command: str = DEFAULT_TEST_COMMAND
    test_timeout: Optional[float] = None
    tui: bool = True

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "BisectConfig":
        """Create a config from parsed bisect arguments."""
        return cls(
            good=args.good,
            bad=args.bad,
            script=args.script,
            checkout=args.checkout,
            repo_url=args.repo_url,
            log_dir=args.log_dir,
            upgrade_command=args.upgrade_command,
            test_command=args.test_command,
            test_timeout=args.test_timeout,
            tui=args.tui,
        )

    def commit_url(self, commit: str) -> str:
        """Link to a commit on the upstream host."""
        base = self.repo_url.rstrip("/")
        if base.endswith(".git"):
            base = base[: -len(".git")]
        return f"{base}/commit/{commit}"
