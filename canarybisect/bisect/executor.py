# Copyright (c) Meta Platforms, Inc. and affiliates.

"""
Shell command executor for bisect operations.

Provides a unified interface for executing shell commands with:
- Blocking mode (run_command): for short commands (git, toolchain switch)
- Streaming mode (run_command_streaming): for test scripts and clones
- Timeout support
- Environment variable handling
- Integrated logging
"""

import os
import signal
import subprocess
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Union

from canarybisect.bisect.logger import BisectLogger


def _format_duration(seconds: float) -> str:
    """Format duration in human-readable format."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        minutes = int(seconds // 60)
        secs = seconds % 60
        return f"{minutes}m {secs:.1f}s"
    else:
        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        secs = seconds % 60
        return f"{hours}h {minutes}m {secs:.1f}s"


@dataclass
class CommandResult:
    """
    Result of a shell command execution.

    Attributes:
        command: The command that was executed (as a string).
        exit_code: The exit code returned by the command, or -1 if the
            command could not be run to completion.
        stdout: Standard output from the command.
        stderr: Standard error output from the command.
        duration_seconds: Time taken to execute the command in seconds.
        timed_out: Whether the command was killed after its timeout.
        launched: False if the process could not be started at all.
    """

    command: str
    exit_code: int
    stdout: str
    stderr: str
    duration_seconds: float
    timed_out: bool = False
    launched: bool = True

    @property
    def success(self) -> bool:
        """Check if the command executed successfully (exit code 0)."""
        return self.exit_code == 0

    @property
    def output(self) -> str:
        """Get combined stdout and stderr output."""
        return self.stdout + self.stderr

    @property
    def duration_formatted(self) -> str:
        """Get duration in human-readable format."""
        return _format_duration(self.duration_seconds)


class ShellExecutor:
    """
    Shell command executor with logging integration.

    Provides two execution modes:
    - run_command(): Blocking mode for short commands (e.g., git log)
    - run_command_streaming(): Line-by-line output for long commands

    Example:
        >>> logger = BisectLogger("./bisect_logs")
        >>> executor = ShellExecutor(logger)
        >>> result = executor.run_command(["git", "status"])
        >>> if result.success:
        ...     print(result.stdout)
    """

    def __init__(self, logger: BisectLogger) -> None:
        """
        Initialize the shell executor.

        Args:
            logger: BisectLogger instance for logging command execution.
        """
        self.logger = logger

    def run_command(
        self,
        cmd: Union[str, List[str]],
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        shell: bool = False,
    ) -> CommandResult:
        """
        Execute a shell command in blocking mode.

        Use this for short commands where you need the complete output.

        Args:
            cmd: Command to execute. Can be a string or list of arguments.
            cwd: Working directory for command execution.
            env: Additional environment variables (merged with current env).
            timeout: Maximum time in seconds to wait for completion.
            shell: If True, execute command through the shell.

        Returns:
            CommandResult containing exit code, stdout, stderr, and duration.
        """
        full_env = os.environ.copy()
        if env:
            full_env.update(env)

        cmd_str = cmd if isinstance(cmd, str) else " ".join(cmd)
        self.logger.debug(f"Executing: {cmd_str}")
        if cwd:
            self.logger.debug(f"  cwd: {cwd}")

        start_time = time.time()

        try:
            result = subprocess.run(
                cmd,
                cwd=cwd,
                env=full_env,
                capture_output=True,
                text=True,
                timeout=timeout,
                shell=shell,
            )

            cmd_result = CommandResult(
                command=cmd_str,
                exit_code=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
                duration_seconds=time.time() - start_time,
            )

        except subprocess.TimeoutExpired as e:
            stdout = e.stdout if e.stdout else ""
            if isinstance(stdout, bytes):
                stdout = stdout.decode("utf-8", errors="replace")

            cmd_result = CommandResult(
                command=cmd_str,
                exit_code=-1,
                stdout=stdout,
                stderr=f"Command timed out after {timeout}s",
                duration_seconds=time.time() - start_time,
                timed_out=True,
            )

        except OSError as e:
            cmd_result = CommandResult(
                command=cmd_str,
                exit_code=-1,
                stdout="",
                stderr=f"OSError: {e}",
                duration_seconds=time.time() - start_time,
                launched=False,
            )

        self.logger.log_command_output(cmd_str, cmd_result.output, cmd_result.exit_code)
        self.logger.debug(
            f"Command completed in {cmd_result.duration_formatted} "
            f"(exit code: {cmd_result.exit_code})"
        )

        return cmd_result

    def run_command_streaming(
        self,
        cmd: Union[str, List[str]],
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        shell: bool = False,
        output_callback: Optional[Callable[[str], None]] = None,
    ) -> CommandResult:
        """
        Execute a command, handing each output line to a callback as it arrives.

        stderr is merged into stdout. Every line is also appended to the
        command log. The command runs in its own session; if ``timeout``
        elapses its whole process group is killed and the result is marked
        ``timed_out``.

        Args:
            cmd: Command to execute. Can be a string or list of arguments.
            cwd: Working directory for command execution.
            env: Additional environment variables (merged with current env).
            timeout: Maximum time in seconds before the process is killed.
            shell: If True, execute command through the shell.
            output_callback: Optional callable receiving each output line.

        Returns:
            CommandResult with the collected output in ``stdout``.
        """
        full_env = os.environ.copy()
        if env:
            full_env.update(env)

        cmd_str = cmd if isinstance(cmd, str) else " ".join(cmd)
        self.logger.debug(f"Executing (streaming): {cmd_str}")
        if cwd:
            self.logger.debug(f"  cwd: {cwd}")

        start_time = time.time()
        self.logger.log_command_output(cmd_str, "", 0, include_wrapper=True)

        try:
            process = subprocess.Popen(
                cmd,
                cwd=cwd,
                env=full_env,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                bufsize=1,
                shell=shell,
                start_new_session=True,
            )
        except OSError as e:
            cmd_result = CommandResult(
                command=cmd_str,
                exit_code=-1,
                stdout="",
                stderr=f"OSError: {e}",
                duration_seconds=time.time() - start_time,
                launched=False,
            )
            self.logger.log_command_output(cmd_str, cmd_result.output, -1)
            return cmd_result

        # Kill the whole process group from a timer so that the read loop below
        # unblocks even if a grandchild still holds the pipe open
        timed_out = threading.Event()
        timer = None
        if timeout is not None:

            def _kill() -> None:
                timed_out.set()
                try:
                    os.killpg(process.pid, signal.SIGKILL)
                except ProcessLookupError:
                    pass

            timer = threading.Timer(timeout, _kill)
            timer.start()

        lines: List[str] = []
        try:
            assert process.stdout is not None
            for line in process.stdout:
                lines.append(line)
                self.logger.log_command_output(
                    cmd_str, line, 0, include_wrapper=False
                )
                if output_callback:
                    output_callback(line.rstrip("\n"))
            process.wait()
        finally:
            if timer is not None:
                timer.cancel()

        cmd_result = CommandResult(
            command=cmd_str,
            exit_code=-1 if timed_out.is_set() else process.returncode,
            stdout="".join(lines),
            stderr=f"Command timed out after {timeout}s" if timed_out.is_set() else "",
            duration_seconds=time.time() - start_time,
            timed_out=timed_out.is_set(),
        )
        self.logger.info(
            f"Command completed in {cmd_result.duration_formatted} "
            f"(exit code: {cmd_result.exit_code})"
        )
        return cmd_result
