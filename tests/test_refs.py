# Copyright (c) Meta Platforms, Inc. and affiliates.

"""Tests for reference parsing and resolution."""

import unittest

from canarybisect.bisect.refs import (
    CanaryRef,
    InvalidReference,
    ReferenceNotFound,
    VersionRef,
    find_commit_with,
    parse_ref,
    resolve_ref,
)

MAIN_LOG = [
    ("e" * 40, "fix(lsp): handle empty documents"),
    ("d" * 40, "chore: forward v1.45.2 release commit to main"),
    ("c" * 40, "feat: add Deno.serve options"),
    ("b" * 40, "chore: Bumped versions for 1.45.0"),
    ("a" * 40, "chore: forward v1.44.4 release commit to main"),
]


class ParseRefTest(unittest.TestCase):
    """Tests for parse_ref."""

    def test_version(self):
        self.assertEqual(parse_ref("1.45.2"), VersionRef(1, 45, 2))

    def test_version_with_v_prefix(self):
        self.assertEqual(parse_ref("v1.45.0"), VersionRef(1, 45, 0))

    def test_whitespace_is_ignored(self):
        self.assertEqual(parse_ref("  v2.0.1\n"), VersionRef(2, 0, 1))
        self.assertEqual(parse_ref(" abc123 "), CanaryRef("abc123"))

    def test_canary_hash(self):
        ref = parse_ref("3f2e1d0c")
        self.assertEqual(ref, CanaryRef("3f2e1d0c"))
        self.assertEqual(str(ref), "3f2e1d0c")

    def test_not_a_number(self):
        with self.assertRaises(InvalidReference) as ctx:
            parse_ref("1.x.0")
        self.assertIn("Not a number", str(ctx.exception))

    def test_wrong_number_of_parts(self):
        for text in ("1.45", "1.45.0.1", "v1."):
            with self.assertRaises(InvalidReference, msg=text):
                parse_ref(text)

    def test_empty(self):
        with self.assertRaises(InvalidReference):
            parse_ref("   ")


class ResolveRefTest(unittest.TestCase):
    """Tests for mapping references to main-branch commits."""

    def test_minor_release_uses_version_bump_commit(self):
        self.assertEqual(resolve_ref(MAIN_LOG, VersionRef(1, 45, 0)), "b" * 40)

    def test_patch_release_uses_forward_commit(self):
        self.assertEqual(resolve_ref(MAIN_LOG, VersionRef(1, 45, 2)), "d" * 40)
        self.assertEqual(resolve_ref(MAIN_LOG, VersionRef(1, 44, 4)), "a" * 40)

    def test_canary_is_unchanged(self):
        self.assertEqual(resolve_ref(MAIN_LOG, CanaryRef("abc123")), "abc123")

    def test_missing_version(self):
        with self.assertRaises(ReferenceNotFound):
            resolve_ref(MAIN_LOG, VersionRef(1, 46, 0))

    def test_dots_are_literal(self):
        log = [("f" * 40, "chore: Bumped versions for 1x45x0")]
        self.assertIsNone(find_commit_with(log, VersionRef(1, 45, 0).main_commit_pattern))

    def test_newest_match_wins(self):
        log = [
            ("2" * 40, "Revert: Bumped versions for 1.45.0"),
            ("1" * 40, "Bumped versions for 1.45.0"),
        ]
        self.assertEqual(resolve_ref(log, VersionRef(1, 45, 0)), "2" * 40)


if __name__ == "__main__":
    unittest.main()
