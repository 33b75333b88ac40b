# Copyright (c) Meta Platforms, Inc. and affiliates.

"""
Parsing and resolution of human-readable bisect endpoints.

A reference is either a released version (``v1.46.0``, ``1.45.3``) or a raw
canary commit hash. Versions are mapped to main-branch commits by looking for
the commit messages the release process leaves behind.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple, Union

from canarybisect.bisect.search import BisectError


class InvalidReference(BisectError):
    """Raised when a reference string cannot be parsed."""

    pass


class ReferenceNotFound(BisectError):
    """Raised when a reference cannot be resolved to a commit."""

    pass


@dataclass(frozen=True)
class VersionRef:
    """A released version, e.g. 1.46.0."""

    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    @property
    def main_commit_pattern(self) -> str:
        """
        Regex matching the main-branch commit subject for this release.

        Minor releases are cut from main by a version bump commit. Patch
        releases are made on a release branch and forwarded to main.
        """
        if self.patch == 0:
            return re.escape(f"Bumped versions for {self}")
        return re.escape(f"forward v{self} release commit to main")


@dataclass(frozen=True)
class CanaryRef:
    """A canary build, named by the commit hash it was built from."""

    hash: str

    def __str__(self) -> str:
        return self.hash


Ref = Union[VersionRef, CanaryRef]


def _parse_number(s: str, ref: str) -> int:
    try:
        return int(s)
    except ValueError:
        raise InvalidReference(f"Not a number: {s!r} in reference {ref!r}") from None


def parse_ref(s: str) -> Ref:
    """
    Parse a reference string.

    Anything containing a dot is a version, optionally prefixed with ``v``.
    Anything else is taken as a canary commit hash.

    Args:
        s: Reference string from the command line.

    Returns:
        VersionRef or CanaryRef.

    Raises:
        InvalidReference: If the string is empty or a malformed version.
    """
    text = s.strip()
    if not text:
        raise InvalidReference("Empty reference")

    if "." not in text:
        return CanaryRef(hash=text)

    if text.startswith("v"):
        text = text[1:]
    parts = text.split(".")
    if len(parts) != 3:
        raise InvalidReference(
            f"Version reference must be MAJOR.MINOR.PATCH, got {s.strip()!r}"
        )
    major, minor, patch = (_parse_number(p, s.strip()) for p in parts)
    return VersionRef(major=major, minor=minor, patch=patch)


def find_commit_with(
    commits: Iterable[Tuple[str, str]],
    pattern: str,
) -> Optional[str]:
    """
    Find the first commit whose subject matches ``pattern``.

    Args:
        commits: (hash, subject) pairs, newest first.
        pattern: Regular expression searched for in each subject.

    Returns:
        The matching commit hash, or None.
    """
    regex = re.compile(pattern)
    for commit_hash, subject in commits:
        if regex.search(subject):
            return commit_hash
    return None


def resolve_ref(commits: Iterable[Tuple[str, str]], ref: Ref) -> str:
    """
    Resolve a reference to a main-branch commit hash.

    Args:
        commits: (hash, subject) pairs of the main branch, newest first.
        ref: Parsed reference.

    Returns:
        Commit hash.

    Raises:
        ReferenceNotFound: If no commit matches a version reference.
    """
    if isinstance(ref, CanaryRef):
        return ref.hash

    commit = find_commit_with(commits, ref.main_commit_pattern)
    if commit is None:
        raise ReferenceNotFound(f"Couldn't find a main-branch commit for {ref}")
    return commit
