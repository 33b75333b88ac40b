# Copyright (c) Meta Platforms, Inc. and affiliates.

"""Tests for CandidateProvider (git is mocked)."""

import unittest
from pathlib import Path
from unittest.mock import MagicMock

from canarybisect.bisect.candidates import CandidateProvider, CandidateRangeError
from canarybisect.bisect.executor import CommandResult
from canarybisect.bisect.refs import CanaryRef, ReferenceNotFound, VersionRef

GOOD = "a" * 40
MIDDLE = ["b" * 40, "c" * 40]
BAD = "d" * 40


def _result(stdout="", exit_code=0, stderr=""):
    return CommandResult(
        command="git",
        exit_code=exit_code,
        stdout=stdout,
        stderr=stderr,
        duration_seconds=0.01,
    )


class FakeGit:
    """Answers the git commands CandidateProvider issues."""

    def __init__(self, log_lines, rev_list, known_commits):
        self.log_lines = log_lines
        self.rev_list = rev_list
        self.known_commits = known_commits

    def __call__(self, cmd, cwd=None):
        if cmd[1] == "log":
            return _result("\n".join(self.log_lines) + "\n")
        if cmd[1] == "rev-parse":
            commit = cmd[-1][: -len("^{commit}")]
            for known in self.known_commits:
                if known.startswith(commit):
                    return _result(known + "\n")
            return _result(exit_code=1)
        if cmd[1] == "rev-list":
            return _result("".join(h + "\n" for h in self.rev_list))
        raise AssertionError(f"unexpected command {cmd}")


class CandidateProviderTest(unittest.TestCase):
    """Tests for building the candidate list."""

    def setUp(self):
        self.executor = MagicMock()
        self.logger = MagicMock()
        self.git = FakeGit(
            log_lines=[
                f"{BAD}\x1fchore: Bumped versions for 1.46.0",
                f"{MIDDLE[1]}\x1ffix: something",
                f"{MIDDLE[0]}\x1ffeat: something else",
                f"{GOOD}\x1fchore: forward v1.45.2 release commit to main",
            ],
            rev_list=MIDDLE + [BAD],
            known_commits=[GOOD] + MIDDLE + [BAD],
        )
        self.executor.run_command.side_effect = self.git
        self.provider = CandidateProvider(
            Path("/tmp/deno"), self.executor, self.logger
        )

    def test_main_log_parsing(self):
        commits = self.provider.main_log()
        self.assertEqual(len(commits), 4)
        self.assertEqual(commits[0], (BAD, "chore: Bumped versions for 1.46.0"))

    def test_candidates_between_versions(self):
        candidates = self.provider.candidates(
            VersionRef(1, 45, 2), VersionRef(1, 46, 0)
        )
        self.assertEqual(candidates, [GOOD] + MIDDLE + [BAD])

    def test_rev_list_range(self):
        self.provider.candidates(VersionRef(1, 45, 2), VersionRef(1, 46, 0))
        rev_list_calls = [
            c
            for c in self.executor.run_command.call_args_list
            if c[0][0][1] == "rev-list"
        ]
        self.assertEqual(len(rev_list_calls), 1)
        cmd = rev_list_calls[0][0][0]
        self.assertIn("--reverse", cmd)
        self.assertEqual(cmd[-1], f"{GOOD}..{BAD}")
        self.assertEqual(rev_list_calls[0][1]["cwd"], "/tmp/deno")

    def test_short_canary_hashes_are_expanded(self):
        candidates = self.provider.candidates(CanaryRef("aaaa"), CanaryRef("dddd"))
        self.assertEqual(candidates[0], GOOD)
        self.assertEqual(candidates[-1], BAD)

    def test_unknown_version(self):
        with self.assertRaises(ReferenceNotFound):
            self.provider.candidates(VersionRef(1, 44, 0), VersionRef(1, 46, 0))

    def test_unknown_hash(self):
        with self.assertRaises(ReferenceNotFound):
            self.provider.candidates(CanaryRef("ffff"), VersionRef(1, 46, 0))

    def test_empty_range(self):
        """Swapped endpoints leave only the good commit."""
        self.git.rev_list = []
        with self.assertRaises(CandidateRangeError):
            self.provider.candidates(VersionRef(1, 45, 2), VersionRef(1, 46, 0))

    def test_git_log_failure(self):
        self.executor.run_command.side_effect = None
        self.executor.run_command.return_value = _result(
            exit_code=128, stderr="fatal: not a git repository"
        )
        with self.assertRaises(CandidateRangeError) as ctx:
            self.provider.main_log()
        self.assertIn("not a git repository", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
