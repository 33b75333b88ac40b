# Copyright (c) Meta Platforms, Inc. and affiliates.

"""
Bisect module for canarybisect.

This module provides the boundary search engine and the tools around it for
bisecting canary builds to find the commit that introduced a regression.
"""

from canarybisect.bisect.executor import CommandResult, ShellExecutor
from canarybisect.bisect.logger import BisectLogger
from canarybisect.bisect.oracle import ScriptOracle, classify_exit_code, guard_oracle
from canarybisect.bisect.search import (
    BisectError,
    BoundarySearch,
    BoundaryStatus,
    MonotonicityError,
    Outcome,
    PreconditionError,
    ProbeRecord,
    SearchResult,
    UnknownSpan,
    estimate_progress,
    search,
)

__all__ = [
    "BisectError",
    "BisectLogger",
    "BoundarySearch",
    "BoundaryStatus",
    "CommandResult",
    "MonotonicityError",
    "Outcome",
    "PreconditionError",
    "ProbeRecord",
    "ScriptOracle",
    "SearchResult",
    "ShellExecutor",
    "UnknownSpan",
    "classify_exit_code",
    "estimate_progress",
    "guard_oracle",
    "search",
]
