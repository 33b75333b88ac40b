# Copyright (c) Meta Platforms, Inc. and affiliates.

"""
Outcome oracles for the boundary search.

The engine only ever sees an Outcome. Everything that can go wrong while
materializing and testing a candidate (a canary build that was never
published, a test harness that cannot start, a hung test) is turned into
Outcome.UNKNOWN here.
"""

from pathlib import Path
from typing import Callable, Hashable, Optional

from canarybisect.bisect.config import (
    DEFAULT_TEST_COMMAND,
    HARNESS_BROKEN_EXIT_CODE,
    render_command,
)
from canarybisect.bisect.executor import ShellExecutor
from canarybisect.bisect.logger import BisectLogger
from canarybisect.bisect.search import Oracle, Outcome
from canarybisect.bisect.toolchain import ToolchainSwitcher


def classify_exit_code(exit_code: int) -> Outcome:
    """
    Map a test script exit code to an Outcome.

    0 means the old behavior, 125 means the script could not decide, anything
    else means the new behavior.
    """
    if exit_code == 0:
        return Outcome.DOES_NOT_SATISFY
    if exit_code == HARNESS_BROKEN_EXIT_CODE:
        return Outcome.UNKNOWN
    return Outcome.SATISFIES


def guard_oracle(oracle: Oracle, logger: BisectLogger) -> Oracle:
    """
    Wrap an oracle so that it never raises.

    Any exception raised by ``oracle`` is logged with its traceback and
    reported to the engine as Outcome.UNKNOWN.

    Args:
        oracle: Callable ``(candidate, remaining, steps) -> Outcome``.
        logger: BisectLogger instance for logging failures.

    Returns:
        Oracle with the same signature.
    """

    def guarded(candidate: Hashable, remaining: int, steps: int) -> Outcome:
        try:
            return oracle(candidate, remaining, steps)
        except Exception:
            logger.exception(f"Evaluating {candidate} failed, treating as unknown")
            return Outcome.UNKNOWN

    return guarded


class ScriptOracle:
    """
    Canonical oracle: switch to a canary build, then run a test script.

    Example:
        >>> logger = BisectLogger("./bisect_logs")
        >>> executor = ShellExecutor(logger)
        >>> oracle = ScriptOracle(
        ...     script="is_good.ts",
        ...     switcher=ToolchainSwitcher(executor, logger),
        ...     executor=executor,
        ...     logger=logger,
        ... )
        >>> outcome = oracle("f00dcafe...", remaining=12, steps=4)
    """

    def __init__(
        self,
        script: str,
        switcher: ToolchainSwitcher,
        executor: ShellExecutor,
        logger: BisectLogger,
        test_command: str = DEFAULT_TEST_COMMAND,
        timeout: Optional[float] = None,
        progress_callback: Optional[Callable[[str, int, int], None]] = None,
        output_callback: Optional[Callable[[str], None]] = None,
    ) -> None:
        """
        Initialize the oracle.

        Args:
            script: Path to the test script.
            switcher: ToolchainSwitcher used before each test run.
            executor: ShellExecutor instance for running the test.
            logger: BisectLogger instance for logging.
            test_command: Command template; ``{script}`` is replaced by the
                script path.
            timeout: Seconds before a test run is killed and treated as
                untestable. None waits indefinitely.
            progress_callback: Called with (commit, remaining, steps) before
                each evaluation.
            output_callback: Receives each line of test output.
        """
        self.script = str(Path(script).expanduser().resolve())
        self.switcher = switcher
        self.executor = executor
        self.logger = logger
        self.test_command = test_command
        self.timeout = timeout
        self.progress_callback = progress_callback
        self.output_callback = output_callback

    def __call__(self, commit: str, remaining: int, steps: int) -> Outcome:
        self.logger.info(
            f"on {commit}: {remaining} versions to test after this "
            f"(roughly {steps} steps)"
        )
        if self.progress_callback:
            self.progress_callback(commit, remaining, steps)

        if not self.switcher.switch(commit).success:
            self.logger.warning("Canary build doesn't exist, skipping")
            return Outcome.UNKNOWN

        result = self.executor.run_command_streaming(
            render_command(self.test_command, script=self.script),
            timeout=self.timeout,
            output_callback=self.output_callback,
        )
        if result.timed_out:
            self.logger.warning(f"Test timed out after {self.timeout}s, skipping")
            return Outcome.UNKNOWN
        if not result.launched:
            self.logger.warning(f"Could not run test: {result.stderr}")
            return Outcome.UNKNOWN

        outcome = classify_exit_code(result.exit_code)
        if outcome is Outcome.UNKNOWN:
            self.logger.warning(
                f"Test exited with {HARNESS_BROKEN_EXIT_CODE}, "
                "candidate cannot be tested"
            )
        elif outcome is Outcome.SATISFIES:
            self.logger.info(
                f"Commit {commit[:12]}: new behavior (exit {result.exit_code})"
            )
        else:
            self.logger.info(f"Commit {commit[:12]}: old behavior")
        return outcome
