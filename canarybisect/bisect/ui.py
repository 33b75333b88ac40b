# Copyright (c) Meta Platforms, Inc. and affiliates.

"""
Rich TUI interface for bisect operations.

This module provides a split-screen terminal UI for displaying bisect progress
and real-time test output. It falls back to plain line output when running in
non-TTY environments.
"""

import sys
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from canarybisect.bisect.search import Outcome, ProbeRecord, SearchResult

OUTCOME_LABELS = {
    Outcome.DOES_NOT_SATISFY: "Old ✅",
    Outcome.SATISFIES: "New ❌",
    Outcome.UNKNOWN: "Untestable ⚠️",
}


class _LiveContent:
    """
    Wrapper that regenerates layout on each render.

    Implements the Rich renderable protocol (__rich__) so that the elapsed
    time refreshes on every Live cycle without explicit updates.
    """

    def __init__(self, ui: "BisectUI") -> None:
        self._ui = ui

    def __rich__(self) -> "Layout":
        if self._ui.start_time:
            self._ui.progress.elapsed_seconds = time.time() - self._ui.start_time
        self._ui._update_layout()
        return self._ui._layout


@dataclass
class BisectProgress:
    """
    Bisect progress state for UI display.

    Attributes:
        total_candidates: Number of candidates in the search range.
        current_commit: Commit currently being evaluated.
        commits_tested: Number of oracle calls made so far.
        commits_skipped: Number of untestable commits found so far.
        remaining: Versions left to test after the current one.
        steps_remaining: Rough number of bisection steps left.
        elapsed_seconds: Time elapsed since start.
        status_message: Result of the last evaluation.
        log_dir: Directory containing log files.
        log_file: Session log file name.
        command_log: Command log file name.
    """

    total_candidates: Optional[int] = None
    current_commit: Optional[str] = None
    commits_tested: int = 0
    commits_skipped: int = 0
    remaining: Optional[int] = None
    steps_remaining: Optional[int] = None
    elapsed_seconds: float = 0.0
    status_message: Optional[str] = None
    log_dir: Optional[str] = None
    log_file: Optional[str] = None
    command_log: Optional[str] = None


class BisectUI:
    """
    Rich-based TUI for bisect operations.

    Provides a split-screen interface with:
    - Top panel: Progress information (commit, tested/skipped, steps, elapsed)
    - Bottom panel: Scrolling output (log lines and test output)

    Falls back to plain text output when not running in a TTY or when
    explicitly disabled via enabled=False.

    Example:
        >>> ui = BisectUI()
        >>> with ui:
        ...     ui.update_progress(total_candidates=120)
        ...     ui.append_output("Switching toolchain...")
    """

    def __init__(self, enabled: bool = True) -> None:
        """
        Initialize the TUI.

        Args:
            enabled: Whether to enable Rich TUI. If False, falls back to
                    plain text output.
        """
        self._disabled_reason: Optional[str] = None

        if not enabled:
            self._rich_enabled = False
            self._disabled_reason = "disabled by --no-tui flag"
        elif not sys.stdout.isatty() or not sys.stderr.isatty():
            self._rich_enabled = False
            self._disabled_reason = "not running in a TTY (e.g., piped output or CI)"
        else:
            self._rich_enabled = True

        self.progress = BisectProgress()
        self.output_lines: List[str] = []
        self.max_output_lines = 100
        self.start_time: Optional[float] = None

        self._console = Console() if self._rich_enabled else None
        self._layout = self._create_layout() if self._rich_enabled else None
        self._live: Optional[Live] = None

    @property
    def is_tui_enabled(self) -> bool:
        """Check if Rich TUI is enabled."""
        return self._rich_enabled

    def get_tui_status_message(self) -> str:
        """Get a human-readable message about TUI status."""
        if self._rich_enabled:
            return "Rich TUI enabled"
        return f"Rich TUI disabled: {self._disabled_reason}"

    def _create_layout(self) -> "Layout":
        layout = Layout()
        layout.split_column(
            Layout(name="progress", size=6),
            Layout(name="output"),
        )
        return layout

    def _render_progress_panel(self) -> "Panel":
        """Render the progress information panel."""
        p = self.progress
        text = Text()

        text.append("Commit: ", style="bold")
        if p.current_commit:
            text.append(f"{p.current_commit[:12]}  ", style="cyan")
        else:
            text.append("N/A  ", style="dim")

        text.append("Progress: ", style="bold")
        progress_text = f"{p.commits_tested} tested"
        if p.total_candidates is not None:
            progress_text += f" of {p.total_candidates}"
        if p.commits_skipped:
            progress_text += f", {p.commits_skipped} untestable"
        if p.remaining is not None:
            progress_text += f", {p.remaining} versions left"
        if p.steps_remaining is not None:
            progress_text += f", ~{p.steps_remaining} steps left"
        text.append(progress_text + "  ", style="yellow")

        text.append("Elapsed: ", style="bold")
        text.append(f"{format_elapsed(p.elapsed_seconds)}\n", style="magenta")

        if p.log_dir:
            text.append("Logs: ", style="bold")
            text.append(f"{p.log_dir}\n", style="dim")
            log_files = [name for name in (p.log_file, p.command_log) if name]
            if log_files:
                text.append("   └─ ", style="dim")
                text.append(", ".join(log_files) + "\n", style="bright_black")

        if p.status_message:
            text.append(p.status_message, style="bright_black italic")

        return Panel(
            text,
            title="[bold bright_green]Bisect Progress[/bold bright_green]",
            border_style="green",
        )

    def _render_output_panel(self) -> "Panel":
        """Render the scrolling output panel."""
        text = Text()
        for line in self.output_lines[-50:]:
            if len(line) > 200:
                line = line[:197] + "..."
            text.append(line + "\n")

        return Panel(
            text,
            title="[bold bright_cyan]Output[/bold bright_cyan]",
            border_style="blue",
        )

    def _update_layout(self) -> None:
        if not self._rich_enabled or not self._layout:
            return
        self._layout["progress"].update(self._render_progress_panel())
        self._layout["output"].update(self._render_output_panel())

    def start(self) -> None:
        """Start the live display."""
        self.start_time = time.time()

        if not self._rich_enabled:
            return

        self._update_layout()
        self._live = Live(
            _LiveContent(self),
            console=self._console,
            refresh_per_second=2,
            screen=True,
        )
        self._live.start()

    def stop(self) -> None:
        """Stop the live display."""
        if self.start_time:
            self.progress.elapsed_seconds = time.time() - self.start_time
        if self._live:
            self._live.stop()
            self._live = None

    def update_progress(self, **kwargs) -> None:
        """
        Update progress information.

        Args:
            **kwargs: Fields to update on BisectProgress. Unknown keys are
                     ignored.
        """
        if self.start_time and "elapsed_seconds" not in kwargs:
            kwargs["elapsed_seconds"] = time.time() - self.start_time

        for key, value in kwargs.items():
            if hasattr(self.progress, key):
                setattr(self.progress, key, value)

        if self._rich_enabled and self._live:
            self._update_layout()

    def append_output(self, line: str) -> None:
        """
        Append a line to the output panel.

        Args:
            line: Output line to append.
        """
        line = line.rstrip("\n")
        self.output_lines.append(line)

        if len(self.output_lines) > self.max_output_lines:
            self.output_lines = self.output_lines[-self.max_output_lines :]

        if not self._rich_enabled:
            print(line)
        elif self._live:
            self._update_layout()

    def create_output_callback(self) -> Callable[[str], None]:
        """Create a callback that appends lines to the output panel."""
        return self.append_output

    def on_evaluate(self, commit: str, remaining: int, steps: int) -> None:
        """Progress hook called by the oracle before each evaluation."""
        self.update_progress(
            current_commit=commit,
            remaining=remaining,
            steps_remaining=steps,
        )

    def on_probe(self, record: ProbeRecord) -> None:
        """Result hook called by the search engine after each oracle call."""
        label = OUTCOME_LABELS[record.outcome]
        skipped = self.progress.commits_skipped
        if record.outcome is Outcome.UNKNOWN:
            skipped += 1
        self.update_progress(
            commits_tested=self.progress.commits_tested + 1,
            commits_skipped=skipped,
            status_message=f"Last: {str(record.candidate)[:12]} {label}",
        )

    def __enter__(self) -> "BisectUI":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.stop()
        return False


def format_elapsed(seconds: float) -> str:
    """Format elapsed time as human-readable string."""
    if seconds < 60:
        return f"{seconds:.0f}s"
    elif seconds < 3600:
        mins = int(seconds // 60)
        secs = int(seconds % 60)
        return f"{mins}m {secs}s"
    else:
        hours = int(seconds // 3600)
        mins = int((seconds % 3600) // 60)
        return f"{hours}h {mins}m"


def print_final_summary(
    result: Optional[SearchResult] = None,
    commit_url: Optional[Callable[[str], str]] = None,
    error_msg: Optional[str] = None,
    elapsed_seconds: Optional[float] = None,
    log_dir: Optional[str] = None,
    log_file: Optional[str] = None,
    command_log: Optional[str] = None,
    console: Optional[Console] = None,
) -> None:
    """
    Print the final bisect summary as a Rich panel.

    Args:
        result: SearchResult if the search finished, None on failure.
        commit_url: Callable building a link for a commit hash.
        error_msg: Error message if bisect failed.
        elapsed_seconds: Total wall time of the session.
        log_dir: Directory containing log files.
        log_file: Session log path (shown on error).
        command_log: Command log path (shown on error).
        console: Console to print to. Defaults to a new stdout console.
    """
    console = console or Console()
    text = Text()
    success = result is not None

    if result is not None:
        commit = str(result.candidate)
        if result.ambiguous:
            title = "Bisect Result (Ambiguous)"
            border = "yellow"
            text.append("⚠️  Bisect Inconclusive\n\n", style="bold yellow")
            text.append("Regressed at or before: ", style="bold")
        else:
            title = "Bisect Result"
            border = "green"
            text.append("✅ Bisect Completed\n\n", style="bold green")
            text.append("Regressed in: ", style="bold")
        text.append(f"{commit}\n", style="cyan bold")
        if commit_url:
            text.append("   🔗 ", style="bold")
            text.append(f"{commit_url(commit)}\n", style="blue underline")

        if result.ambiguous:
            span = result.blocking_span
            if span is not None:
                text.append(
                    f"\nThe {len(span)} commit(s) just before it could not be "
                    "tested; the regression may be in any of them.\n",
                    style="yellow",
                )

        skipped = sum(len(span) for span in result.unknown_spans)
        text.append(f"\nCommits tested: {result.probe_count}", style="bold")
        if skipped:
            text.append(f" ({skipped} untestable)", style="dim")
        text.append("\n")
        for span in result.unknown_spans:
            text.append(
                f"   Skipped candidates #{span.left}..#{span.right}\n", style="dim"
            )
        if elapsed_seconds is not None:
            text.append(f"Total time: {format_elapsed(elapsed_seconds)}\n", style="dim")
        if log_dir:
            text.append("📁 Log directory: ", style="bold")
            text.append(f"{log_dir}", style="dim")
    else:
        title = "Bisect Failed"
        border = "red"
        text.append("❌ Bisect Failed\n\n", style="bold red")
        if error_msg:
            text.append(f"{error_msg}", style="red")
        if command_log:
            text.append("\n\n📄 Check command log for details:\n", style="bold")
            text.append(f"   {command_log}", style="yellow")
        if log_file:
            text.append("\n📄 Session log: ", style="bold")
            text.append(f"{log_file}", style="dim")
        if log_dir and not command_log and not log_file:
            text.append("\n\n📁 Log directory: ", style="bold")
            text.append(f"{log_dir}", style="dim")

    panel = Panel(
        text,
        title=f"[bold]{title}[/bold]",
        border_style=border if success else "red",
        padding=(1, 2),
    )
    console.print()
    console.print(panel)
