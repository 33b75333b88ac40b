# Copyright (c) Meta Platforms, Inc. and affiliates.

"""
Dual logging system for canary bisect sessions.

Provides separate logging for:
- Session logs: Python logging -> stdout (or the TUI) + file
- Command logs: toolchain switch and test script output -> file
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional


class _CallbackHandler(logging.Handler):
    """Logging handler that forwards formatted records to a line callback."""

    def __init__(self, callback: Callable[[str], None]) -> None:
        super().__init__()
        self.callback = callback

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.callback(self.format(record))
        except Exception:
            self.handleError(record)


class BisectLogger:
    """
    Dual logging system for a bisect session.

    This logger provides two separate logging streams:
    1. Session logs: Standard Python logging output to stdout and a log file
    2. Command logs: Output of every executed command, written to a separate file

    The engine's own module logger (``canarybisect.bisect.search``) is attached
    to the same handlers so that span discoveries land in the session log.

    Example:
        >>> logger = BisectLogger("./bisect_logs")
        >>> logger.info("Starting bisect...")
        >>> logger.log_command_output("deno upgrade --canary", "output...", 0)
    """

    FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
    DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

    def __init__(
        self,
        log_dir: str,
        session_name: Optional[str] = None,
    ) -> None:
        """
        Initialize the dual logging system.

        Args:
            log_dir: Directory path where log files will be stored.
            session_name: Optional session identifier. If not provided,
                         a timestamp will be used (format: YYYYMMDD_HHMMSS).
        """
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        if session_name is None:
            session_name = datetime.now().strftime("%Y%m%d_%H%M%S")
        self.session_name = session_name

        # Session log: stdout + file
        self.module_log_path = self.log_dir / f"{session_name}_bisect.log"
        self._setup_module_logger()

        # Command log: file only
        self.command_log_path = self.log_dir / f"{session_name}_bisect_commands.log"

        self.info(f"Log directory: {self.log_dir}")
        self.info(f"  Session log: {self.module_log_path.name}")
        self.info(f"  Command log: {self.command_log_path.name}")

    def _setup_module_logger(self) -> None:
        """Configure the Python logging system with file and stdout handlers."""
        self.logger = logging.getLogger(f"canarybisect.session.{self.session_name}")
        self.logger.setLevel(logging.DEBUG)
        self.logger.propagate = False

        self._engine_logger = logging.getLogger("canarybisect.bisect.search")
        self._engine_logger.setLevel(logging.DEBUG)

        # Prevent duplicate handlers if logger already exists
        if self.logger.handlers:
            self._stream_handler = self.logger.handlers[-1]
            return

        formatter = logging.Formatter(self.FORMAT, datefmt=self.DATE_FORMAT)

        # File handler - captures all levels
        fh = logging.FileHandler(self.module_log_path)
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(formatter)

        # Stdout handler - INFO and above only
        sh = logging.StreamHandler()
        sh.setLevel(logging.INFO)
        sh.setFormatter(formatter)

        # The engine logger follows the most recent session only
        for handler in list(self._engine_logger.handlers):
            self._engine_logger.removeHandler(handler)

        for target in (self.logger, self._engine_logger):
            target.addHandler(fh)
            target.addHandler(sh)
        self._stream_handler: logging.Handler = sh

    def configure_for_tui(self, output_callback: Callable[[str], None]) -> None:
        """
        Redirect console output to the TUI.

        The stdout handler is replaced by a handler that feeds each formatted
        line to ``output_callback``. The file handler is left untouched.

        Args:
            output_callback: Callable receiving one formatted log line.
        """
        handler = _CallbackHandler(output_callback)
        handler.setLevel(logging.INFO)
        handler.setFormatter(logging.Formatter(self.FORMAT, datefmt=self.DATE_FORMAT))

        for target in (self.logger, self._engine_logger):
            target.removeHandler(self._stream_handler)
            target.addHandler(handler)
        self._stream_handler = handler

    def log_command_output(
        self,
        command: str,
        output: str,
        exit_code: int,
        include_wrapper: bool = True,
    ) -> None:
        """
        Log command execution output.

        Writes to the command log file.

        Args:
            command: The command that was executed.
            output: Combined stdout and stderr output from the command.
            exit_code: The exit code returned by the command.
            include_wrapper: If True, include header/footer wrapper around output.
                            If False, only write the output content (used for streaming).
        """
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        with open(self.command_log_path, "a") as f:
            if include_wrapper:
                f.write(f"\n{'=' * 60}\n")
                f.write(f"[{timestamp}] Command: {command}\n")
                f.write(f"Exit code: {exit_code}\n")
                f.write(f"{'=' * 60}\n")
            f.write(output)
            if include_wrapper:
                f.write("\n")

    def info(self, msg: str) -> None:
        """Log an INFO level message."""
        self.logger.info(msg)

    def debug(self, msg: str) -> None:
        """Log a DEBUG level message."""
        self.logger.debug(msg)

    def warning(self, msg: str) -> None:
        """Log a WARNING level message."""
        self.logger.warning(msg)

    def error(self, msg: str) -> None:
        """Log an ERROR level message."""
        self.logger.error(msg)

    def exception(self, msg: str) -> None:
        """Log an ERROR level message with exception info."""
        self.logger.exception(msg)
