# Copyright (c) Meta Platforms, Inc. and affiliates.

"""
Toolchain switcher for canary bisect.

Installs the prebuilt canary binary for a commit so that the test script
runs against that build. Canary builds are not published for every commit,
so a failed switch is an expected, non-fatal result.
"""

from canarybisect.bisect.config import DEFAULT_UPGRADE_COMMAND, render_command
from canarybisect.bisect.executor import CommandResult, ShellExecutor
from canarybisect.bisect.logger import BisectLogger


class ToolchainSwitcher:
    """
    Switches the active toolchain to a given canary build.

    Example:
        >>> logger = BisectLogger("./bisect_logs")
        >>> switcher = ToolchainSwitcher(ShellExecutor(logger), logger)
        >>> if not switcher.switch("f00dcafe...").success:
        ...     print("no canary build for this commit")
    """

    def __init__(
        self,
        executor: ShellExecutor,
        logger: BisectLogger,
        upgrade_command: str = DEFAULT_UPGRADE_COMMAND,
    ) -> None:
        """
        Initialize the switcher.

        Args:
            executor: ShellExecutor instance for running the upgrade command.
            logger: BisectLogger instance for logging.
            upgrade_command: Command template; ``{commit}`` is replaced by
                the commit hash.
        """
        self.executor = executor
        self.logger = logger
        self.upgrade_command = upgrade_command

    def switch(self, commit: str) -> CommandResult:
        """
        Install the canary build for ``commit``.

        Args:
            commit: Full commit hash.

        Returns:
            CommandResult of the upgrade command.
        """
        cmd = render_command(self.upgrade_command, commit=commit)
        self.logger.debug(f"Switching toolchain to {commit[:12]}")
        result = self.executor.run_command(cmd)
        if not result.success:
            self.logger.debug(f"Toolchain switch failed: {result.stderr.strip()}")
        return result
