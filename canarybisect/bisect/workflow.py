# Copyright (c) Meta Platforms, Inc. and affiliates.

"""
End-to-end canary bisect workflow.

Wires the collaborators together:
1. Prepare the repository clone (pull an existing checkout or clone afresh)
2. Resolve the good/bad references and list the candidate commits, then
   remove a temporary clone
3. Run the boundary search with the script oracle
"""

import shutil
from pathlib import Path
from typing import Optional

from canarybisect.bisect.candidates import CandidateProvider
from canarybisect.bisect.config import BisectConfig
from canarybisect.bisect.executor import ShellExecutor
from canarybisect.bisect.git_utils import ensure_checkout
from canarybisect.bisect.logger import BisectLogger
from canarybisect.bisect.oracle import ScriptOracle, guard_oracle
from canarybisect.bisect.refs import parse_ref
from canarybisect.bisect.search import BisectError, SearchResult, search
from canarybisect.bisect.toolchain import ToolchainSwitcher
from canarybisect.bisect.ui import BisectUI


class BisectWorkflow:
    """
    Runs one canary bisect session.

    Example:
        >>> config = BisectConfig(good="1.45.0", bad="1.46.0", script="repro.ts")
        >>> logger = BisectLogger(config.log_dir)
        >>> result = BisectWorkflow(config, logger).run()
        >>> print(result.candidate, result.status.value)
    """

    def __init__(
        self,
        config: BisectConfig,
        logger: BisectLogger,
        ui: Optional[BisectUI] = None,
    ) -> None:
        """
        Initialize the workflow.

        Args:
            config: Session settings.
            logger: BisectLogger instance for logging.
            ui: Optional BisectUI receiving progress and test output.
        """
        self.config = config
        self.logger = logger
        self.ui = ui
        self.executor = ShellExecutor(logger)

    def run(self) -> SearchResult:
        """
        Execute the workflow.

        Returns:
            SearchResult of the boundary search.

        Raises:
            BisectError: If setup fails or the outcomes are inconsistent.
        """
        config = self.config
        self.logger.info("=" * 60)
        self.logger.info("Canary Bisect")
        self.logger.info("=" * 60)
        self.logger.info(f"Good (from): {config.good}")
        self.logger.info(f"Bad (to): {config.bad}")
        self.logger.info(f"Test script: {config.script}")

        # Parse references before touching the network
        good_ref = parse_ref(config.good)
        bad_ref = parse_ref(config.bad)

        if not Path(config.script).expanduser().exists():
            raise BisectError(f"Test script not found: {config.script}")

        output_callback = self.ui.create_output_callback() if self.ui else None
        repo_dir = ensure_checkout(
            config.checkout,
            config.repo_url,
            self.executor,
            self.logger,
            output_callback=output_callback,
        )

        provider = CandidateProvider(repo_dir, self.executor, self.logger)
        try:
            candidates = provider.candidates(good_ref, bad_ref)
        finally:
            # Only the candidate list is needed from a fresh clone
            if config.checkout is None:
                shutil.rmtree(repo_dir, ignore_errors=True)
                self.logger.info(f"Removed temporary clone {repo_dir}")
        if self.ui:
            self.ui.update_progress(total_candidates=len(candidates))

        oracle = ScriptOracle(
            script=config.script,
            switcher=ToolchainSwitcher(
                self.executor, self.logger, config.upgrade_command
            ),
            executor=self.executor,
            logger=self.logger,
            test_command=config.test_command,
            timeout=config.test_timeout,
            progress_callback=self.ui.on_evaluate if self.ui else None,
            output_callback=output_callback,
        )

        result = search(
            candidates,
            guard_oracle(oracle, self.logger),
            on_probe=self.ui.on_probe if self.ui else None,
        )

        self.logger.info("=" * 60)
        if result.ambiguous:
            self.logger.warning(
                f"Bisection inconclusive, regressed at or before {result.candidate}"
            )
        else:
            self.logger.info(f"Bisection complete, regressed in {result.candidate}")
        for span in result.unknown_spans:
            first, last = candidates[span.left], candidates[span.right]
            self.logger.info(
                f"Untestable: {first[:12]}..{last[:12]} ({len(span)} commits)"
            )
        self.logger.info(f"Commits tested: {result.probe_count}")
        self.logger.info("=" * 60)
        return result
