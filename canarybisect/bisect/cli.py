# Copyright (c) Meta Platforms, Inc. and affiliates.

"""
CLI implementation for the bisect subcommand.

This module provides the command-line interface for bisecting canary builds
to find the commit that introduced a regression.

Usage Examples:
    # Bisect between two releases, cloning the repository to a temp dir
    canarybisect bisect --from 1.45.0 --to 1.46.0 is_good.ts

    # Bisect between canary hashes using an existing checkout
    canarybisect bisect --from 3f2e1d0 --to 9a8b7c6 \\
        --checkout ~/src/deno is_good.ts

    # Kill test runs after 5 minutes and treat them as untestable
    canarybisect bisect -f v1.45.0 -t v1.45.2 --test-timeout 300 is_good.ts

The test script decides each candidate: exit 0 means the old (good)
behavior, exit 125 means the candidate cannot be tested, any other exit code
means the new (regressed) behavior.
"""

import argparse

from canarybisect.bisect.config import (
    DEFAULT_TEST_COMMAND,
    DEFAULT_UPGRADE_COMMAND,
    default_log_dir,
    default_repo_url,
)

EXIT_CONFIRMED = 0
EXIT_FAILED = 1
EXIT_AMBIGUOUS = 2


def _add_bisect_args(parser: argparse.ArgumentParser) -> None:
    """Add arguments for the bisect subcommand."""
    parser.add_argument(
        "-f",
        "--from",
        dest="good",
        type=str,
        required=True,
        help="Last good version (e.g. 1.45.0, v1.45.2) or canary commit hash",
    )
    parser.add_argument(
        "-t",
        "--to",
        dest="bad",
        type=str,
        required=True,
        help="Known bad version or canary commit hash",
    )
    parser.add_argument(
        "script",
        type=str,
        help="Test script: exit 0 if good, 125 if untestable, other if bad",
    )
    parser.add_argument(
        "--checkout",
        type=str,
        default=None,
        help="Path to an existing checkout (default: clone into a temp dir)",
    )
    parser.add_argument(
        "--repo-url",
        type=str,
        default=default_repo_url(),
        help="Repository to clone and link commits to "
        "(default: $CANARYBISECT_REPO_URL or %(default)s)",
    )
    parser.add_argument(
        "--log-dir",
        type=str,
        default=default_log_dir(),
        help="Directory for log files (default: $CANARYBISECT_LOG_DIR or %(default)s)",
    )
    parser.add_argument(
        "--upgrade-command",
        type=str,
        default=DEFAULT_UPGRADE_COMMAND,
        help="Command installing the build for {commit} (default: '%(default)s')",
    )
    parser.add_argument(
        "--test-command",
        type=str,
        default=DEFAULT_TEST_COMMAND,
        help="Command running {script} (default: '%(default)s')",
    )
    parser.add_argument(
        "--test-timeout",
        type=float,
        default=None,
        help="Seconds before a test run is killed and treated as untestable",
    )

    # TUI control
    parser.add_argument(
        "--tui",
        action="store_true",
        default=True,
        dest="tui",
        help="Enable Rich TUI interface (default: enabled on a TTY)",
    )
    parser.add_argument(
        "--no-tui",
        action="store_false",
        dest="tui",
        help="Disable Rich TUI, use plain text output",
    )


def _validate_args(args: argparse.Namespace, parser: argparse.ArgumentParser) -> None:
    """
    Validate argument values that argparse cannot check on its own.

    Args:
        args: Parsed arguments.
        parser: ArgumentParser for error reporting.
    """
    if args.test_timeout is not None and args.test_timeout <= 0:
        parser.error("--test-timeout must be a positive number of seconds")
    if "{commit}" not in args.upgrade_command:
        parser.error("--upgrade-command must contain the {commit} placeholder")
    if "{script}" not in args.test_command:
        parser.error("--test-command must contain the {script} placeholder")


def bisect_command(args: argparse.Namespace) -> int:
    """
    Execute the bisect command based on parsed arguments.

    Args:
        args: Parsed command-line arguments.

    Returns:
        0 for a confirmed boundary, 2 for an ambiguous one, 1 on failure.
    """
    from canarybisect.bisect.config import BisectConfig
    from canarybisect.bisect.search import BisectError
    from canarybisect.bisect.ui import BisectUI, print_final_summary
    from canarybisect.bisect.workflow import BisectWorkflow

    config = BisectConfig.from_args(args)
    ui = BisectUI(enabled=config.tui)

    # Variables to store results for summary after TUI exits
    result = None
    error_msg = None
    logger = None

    with ui:
        try:
            logger = _create_logger(config.log_dir)

            # Configure logger for TUI mode (redirect output to TUI)
            if ui.is_tui_enabled:
                logger.configure_for_tui(ui.create_output_callback())

            ui.append_output(ui.get_tui_status_message())
            ui.update_progress(
                log_dir=str(logger.log_dir),
                log_file=logger.module_log_path.name,
                command_log=logger.command_log_path.name,
            )

            result = BisectWorkflow(config, logger, ui).run()

        except BisectError as e:
            error_msg = str(e)
            if logger:
                logger.error(f"Bisect failed: {e}")
        except Exception as e:
            error_msg = f"Unexpected error: {e}"
            if logger:
                logger.exception("Unexpected error during bisect")
            else:
                ui.append_output(error_msg)

    # TUI has exited, print final summary
    print_final_summary(
        result=result,
        commit_url=config.commit_url,
        error_msg=error_msg,
        elapsed_seconds=ui.progress.elapsed_seconds,
        log_dir=config.log_dir,
        log_file=str(logger.module_log_path) if logger else None,
        command_log=str(logger.command_log_path) if logger else None,
    )

    if result is None:
        return EXIT_FAILED
    return EXIT_AMBIGUOUS if result.ambiguous else EXIT_CONFIRMED


def _create_logger(log_dir: str):
    """Create a BisectLogger instance."""
    from canarybisect.bisect.logger import BisectLogger

    return BisectLogger(log_dir)
