# Copyright (c) Meta Platforms, Inc. and affiliates.

"""
Boundary search engine for regression bisection.

This module finds the first candidate in an ordered sequence that exhibits a
new behavior, given a three-way oracle. Unlike plain binary search, candidates
may be untestable (e.g. a canary build that was never published). Untestable
runs are mapped once into unknown spans and routed around on later probes.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Hashable, List, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


class BisectError(Exception):
    """Base exception for bisect related errors."""

    pass


class PreconditionError(BisectError):
    """Raised when the search input cannot be bisected at all."""

    pass


class MonotonicityError(BisectError):
    """Raised when observed outcomes contradict the old-then-new ordering."""

    pass


class Outcome(Enum):
    """
    Verdict of probing a single candidate.

    DOES_NOT_SATISFY: old behavior (test passes).
    SATISFIES: new, regressed behavior (test fails).
    UNKNOWN: the candidate could not be evaluated.
    """

    DOES_NOT_SATISFY = "does_not_satisfy"
    SATISFIES = "satisfies"
    UNKNOWN = "unknown"


class BoundaryStatus(Enum):
    """Whether a returned boundary was pinned or only bracketed."""

    CONFIRMED = "confirmed"
    AMBIGUOUS = "ambiguous"


Oracle = Callable[[Hashable, int, int], Outcome]


@dataclass(frozen=True)
class UnknownSpan:
    """A maximal closed run of indices that all evaluated to UNKNOWN."""

    left: int
    right: int

    def __contains__(self, index: int) -> bool:
        return self.left <= index <= self.right

    def __len__(self) -> int:
        return self.right - self.left + 1


@dataclass(frozen=True)
class ProbeRecord:
    """
    One oracle call made during a search.

    Attributes:
        index: Position of the probed candidate.
        candidate: The probed candidate identifier.
        outcome: Verdict returned by the oracle.
        no_upper_bound: Frontier lower pointer when the probe was issued.
        yes_lower_bound: Frontier upper pointer when the probe was issued.
    """

    index: int
    candidate: Hashable
    outcome: Outcome
    no_upper_bound: int
    yes_lower_bound: int


@dataclass
class SearchResult:
    """
    Result of a boundary search.

    Attributes:
        index: Index of the first candidate exhibiting the new behavior.
        candidate: The candidate at ``index``.
        status: CONFIRMED if ``index - 1`` is known old, AMBIGUOUS if the
            remaining gap below ``index`` is a single unknown span.
        unknown_spans: Unknown spans discovered during the search, in
            discovery order.
        probes: Every oracle call made, in order.
    """

    index: int
    candidate: Hashable
    status: BoundaryStatus
    unknown_spans: List[UnknownSpan] = field(default_factory=list)
    probes: List[ProbeRecord] = field(default_factory=list)

    @property
    def ambiguous(self) -> bool:
        return self.status is BoundaryStatus.AMBIGUOUS

    @property
    def probe_count(self) -> int:
        return len(self.probes)

    @property
    def blocking_span(self) -> Optional[UnknownSpan]:
        """The unknown span directly below an ambiguous boundary, if any."""
        if not self.ambiguous:
            return None
        for span in self.unknown_spans:
            if span.right + 1 == self.index:
                return span
        return None


def estimate_progress(no_upper_bound: int, yes_lower_bound: int) -> Tuple[int, int]:
    """
    Estimate the remaining work for the current frontier.

    Args:
        no_upper_bound: Largest index known not to satisfy.
        yes_lower_bound: Smallest index known to satisfy.

    Returns:
        Tuple of (remaining candidates after this probe, rough step count).
    """
    span = yes_lower_bound - no_upper_bound + 1
    remaining = span // 2
    if span < 3:
        return remaining, 0
    return remaining, int(math.log2(span))


class BoundarySearch:
    """
    Adaptive bisection over an ordered candidate sequence.

    The search keeps two pointers: ``no_upper_bound`` (largest index known
    to be old) and ``yes_lower_bound`` (smallest index known to be new). Each
    candidate is sent to the oracle at most once. When a probe comes back
    UNKNOWN, the neighbouring indices are scanned until a definitive verdict
    or the frontier is reached, and the run is recorded as an unknown span.

    Example:
        >>> def oracle(commit, remaining, steps):
        ...     return Outcome.SATISFIES if commit >= "c" else Outcome.DOES_NOT_SATISFY
        >>> result = BoundarySearch(["a", "b", "c", "d"], oracle).run()
        >>> result.index
        2
    """

    def __init__(
        self,
        candidates: Sequence[Hashable],
        oracle: Oracle,
        known: Optional[Mapping[int, Outcome]] = None,
        on_probe: Optional[Callable[[ProbeRecord], None]] = None,
    ) -> None:
        """
        Initialize the search.

        Args:
            candidates: Ordered candidates, oldest first. The first must not
                satisfy and the last must satisfy.
            oracle: Callable returning the Outcome for a candidate. Receives
                the candidate and two advisory progress hints.
            known: Outcomes already established by the caller, keyed by
                index. These are never sent to the oracle.
            on_probe: Optional callback invoked after every oracle call.

        Raises:
            PreconditionError: If the input cannot be bisected.
            MonotonicityError: If ``known`` outcomes are out of order.
        """
        self.candidates = tuple(candidates)
        self.oracle = oracle
        self.on_probe = on_probe

        n = len(self.candidates)
        if n < 2:
            raise PreconditionError(
                f"Need at least 2 candidates to bisect, got {n}"
            )

        self.no_upper_bound = 0
        self.yes_lower_bound = n - 1
        self.unknown_spans: List[UnknownSpan] = []
        self.probes: List[ProbeRecord] = []
        self._cache: List[Optional[Outcome]] = [None] * n

        if known:
            self._seed(known)

    def _seed(self, known: Mapping[int, Outcome]) -> None:
        """Validate caller-supplied outcomes and load them into the cache."""
        last = len(self.candidates) - 1
        for index, outcome in known.items():
            if not 0 <= index <= last:
                raise PreconditionError(
                    f"Known outcome index {index} out of range [0, {last}]"
                )
        if known.get(0, Outcome.DOES_NOT_SATISFY) is not Outcome.DOES_NOT_SATISFY:
            raise PreconditionError(
                f"First candidate {self.candidates[0]} must not satisfy, "
                f"but is known as {known[0].value}"
            )
        if known.get(last, Outcome.SATISFIES) is not Outcome.SATISFIES:
            raise PreconditionError(
                f"Last candidate {self.candidates[last]} must satisfy, "
                f"but is known as {known[last].value}"
            )

        definite = sorted(
            (i, o) for i, o in known.items() if o is not Outcome.UNKNOWN
        )
        for (i, before), (j, after) in zip(definite, definite[1:]):
            if before is Outcome.SATISFIES and after is Outcome.DOES_NOT_SATISFY:
                raise MonotonicityError(
                    f"Candidate {self.candidates[i]} (index {i}) satisfies but "
                    f"later candidate {self.candidates[j]} (index {j}) does not"
                )

        for index, outcome in known.items():
            self._cache[index] = outcome
        for index, outcome in definite:
            if outcome is Outcome.DOES_NOT_SATISFY:
                self.no_upper_bound = max(self.no_upper_bound, index)
            else:
                self.yes_lower_bound = min(self.yes_lower_bound, index)

    def run(self) -> SearchResult:
        """
        Execute the search until the boundary is pinned or bracketed.

        Returns:
            SearchResult describing the boundary.

        Raises:
            MonotonicityError: If an outcome contradicts the frontier.
        """
        while True:
            no, yes = self.no_upper_bound, self.yes_lower_bound
            logger.debug(f"Frontier: no<={no}, yes>={yes}")

            if no + 1 == yes:
                return self._result(BoundaryStatus.CONFIRMED)

            if self._gap_is_unknown():
                logger.warning(
                    f"Candidates {no + 1}..{yes - 1} are all untestable; "
                    f"boundary at index {yes} is ambiguous"
                )
                return self._result(BoundaryStatus.AMBIGUOUS)

            index = self._select_probe()
            outcome = self._probe(index)

            if outcome is Outcome.SATISFIES:
                self.yes_lower_bound = index
            elif outcome is Outcome.DOES_NOT_SATISFY:
                self.no_upper_bound = index
            else:
                self._map_unknown_span(index)

    def _gap_is_unknown(self) -> bool:
        """Check whether the whole open frontier is one recorded span."""
        for span in self.unknown_spans:
            if (
                self.no_upper_bound + 1 == span.left
                and span.right + 1 == self.yes_lower_bound
            ):
                return True
        return False

    def _select_probe(self) -> int:
        """Pick the midpoint, hopping out of any recorded unknown span."""
        index = (self.no_upper_bound + self.yes_lower_bound) // 2
        for span in self.unknown_spans:
            if index in span:
                if span.left - 1 > self.no_upper_bound:
                    index = span.left - 1
                elif span.right + 1 < self.yes_lower_bound:
                    index = span.right + 1
                break
        return index

    def _probe(self, index: int) -> Outcome:
        """
        Return the outcome for ``index``, calling the oracle on a cache miss.

        Raises:
            MonotonicityError: If the outcome contradicts the frontier.
        """
        cached = self._cache[index]
        if cached is not None:
            return cached

        no, yes = self.no_upper_bound, self.yes_lower_bound
        remaining, steps = estimate_progress(no, yes)
        candidate = self.candidates[index]
        outcome = self.oracle(candidate, remaining, steps)
        self._check_monotonic(index, outcome)

        self._cache[index] = outcome
        record = ProbeRecord(
            index=index,
            candidate=candidate,
            outcome=outcome,
            no_upper_bound=no,
            yes_lower_bound=yes,
        )
        self.probes.append(record)
        logger.debug(f"Probed index {index} ({candidate}): {outcome.value}")
        if self.on_probe is not None:
            self.on_probe(record)
        return outcome

    def _check_monotonic(self, index: int, outcome: Outcome) -> None:
        """
        Fail fast if ``outcome`` at ``index`` contradicts a cached verdict.

        Raises:
            MonotonicityError: If a new verdict precedes an old one.
        """
        if outcome is Outcome.SATISFIES:
            for j in range(index + 1, len(self._cache)):
                if self._cache[j] is Outcome.DOES_NOT_SATISFY:
                    raise MonotonicityError(
                        f"Candidate {self.candidates[index]} (index {index}) "
                        f"satisfies but later candidate {self.candidates[j]} "
                        f"(index {j}) does not"
                    )
        elif outcome is Outcome.DOES_NOT_SATISFY:
            for j in range(index):
                if self._cache[j] is Outcome.SATISFIES:
                    raise MonotonicityError(
                        f"Candidate {self.candidates[index]} (index {index}) "
                        f"does not satisfy but earlier candidate "
                        f"{self.candidates[j]} (index {j}) does"
                    )

    def _map_unknown_span(self, index: int) -> None:
        """Scan outward from an UNKNOWN index and record the maximal run."""
        left = index
        while (
            left - 1 > self.no_upper_bound
            and self._probe(left - 1) is Outcome.UNKNOWN
        ):
            left -= 1

        right = index
        while (
            right + 1 < self.yes_lower_bound
            and self._probe(right + 1) is Outcome.UNKNOWN
        ):
            right += 1

        span = UnknownSpan(left, right)
        self.unknown_spans.append(span)
        logger.info(
            f"Skipping {len(span)} untestable candidate(s): "
            f"indices {left}..{right}"
        )

    def _result(self, status: BoundaryStatus) -> SearchResult:
        index = self.yes_lower_bound
        return SearchResult(
            index=index,
            candidate=self.candidates[index],
            status=status,
            unknown_spans=list(self.unknown_spans),
            probes=list(self.probes),
        )


def search(
    candidates: Sequence[Hashable],
    oracle: Oracle,
    known: Optional[Mapping[int, Outcome]] = None,
    on_probe: Optional[Callable[[ProbeRecord], None]] = None,
) -> SearchResult:
    """
    Find the first candidate that satisfies the oracle.

    Args:
        candidates: Ordered candidates, oldest first. ``candidates[0]`` must
            not satisfy and ``candidates[-1]`` must satisfy.
        oracle: Callable ``(candidate, remaining, steps) -> Outcome``.
        known: Optional outcomes already established, keyed by index.
        on_probe: Optional callback invoked after every oracle call.

    Returns:
        SearchResult with the boundary index and its status.

    Raises:
        PreconditionError: If the input cannot be bisected.
        MonotonicityError: If outcomes contradict the old-then-new ordering.
    """
    return BoundarySearch(candidates, oracle, known=known, on_probe=on_probe).run()
