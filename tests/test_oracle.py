# Copyright (c) Meta Platforms, Inc. and affiliates.

"""Tests for outcome oracles (no toolchain or network required)."""

import unittest
from unittest.mock import MagicMock

from canarybisect.bisect.executor import CommandResult
from canarybisect.bisect.oracle import ScriptOracle, classify_exit_code, guard_oracle
from canarybisect.bisect.search import Outcome, search


def _result(exit_code=0, timed_out=False, launched=True, stderr=""):
    return CommandResult(
        command="cmd",
        exit_code=exit_code,
        stdout="",
        stderr=stderr,
        duration_seconds=0.1,
        timed_out=timed_out,
        launched=launched,
    )


class ClassifyExitCodeTest(unittest.TestCase):
    """Tests for mapping test script exit codes."""

    def test_zero_is_old_behavior(self):
        self.assertIs(classify_exit_code(0), Outcome.DOES_NOT_SATISFY)

    def test_125_is_unknown(self):
        self.assertIs(classify_exit_code(125), Outcome.UNKNOWN)

    def test_other_codes_are_new_behavior(self):
        for code in (1, 2, 124, 126, 255, -11):
            self.assertIs(classify_exit_code(code), Outcome.SATISFIES, code)


class GuardOracleTest(unittest.TestCase):
    """Tests for converting oracle failures into UNKNOWN."""

    def test_exception_becomes_unknown(self):
        logger = MagicMock()

        def broken(candidate, remaining, steps):
            raise RuntimeError("infrastructure down")

        guarded = guard_oracle(broken, logger)
        self.assertIs(guarded("abc", 3, 1), Outcome.UNKNOWN)
        logger.exception.assert_called_once()
        self.assertIn("abc", logger.exception.call_args[0][0])

    def test_result_passes_through(self):
        guarded = guard_oracle(lambda c, r, s: Outcome.SATISFIES, MagicMock())
        self.assertIs(guarded("abc", 3, 1), Outcome.SATISFIES)

    def test_raising_probe_is_skipped_by_search(self):
        """A probe that raises is routed around like any untestable build."""
        verdicts = ["no", "no", "boom", "no", "yes", "yes"]

        def oracle(index, remaining, steps):
            if verdicts[index] == "boom":
                raise OSError("artifact download failed")
            if verdicts[index] == "yes":
                return Outcome.SATISFIES
            return Outcome.DOES_NOT_SATISFY

        result = search(list(range(6)), guard_oracle(oracle, MagicMock()))
        self.assertEqual(result.index, 4)
        self.assertFalse(result.ambiguous)
        self.assertEqual([(s.left, s.right) for s in result.unknown_spans], [(2, 2)])


class ScriptOracleTest(unittest.TestCase):
    """Tests for the switch-then-test oracle."""

    def setUp(self):
        self.switcher = MagicMock()
        self.switcher.switch.return_value = _result(0)
        self.executor = MagicMock()
        self.logger = MagicMock()
        self.progress = MagicMock()
        self.oracle = ScriptOracle(
            script="/tmp/is_good.ts",
            switcher=self.switcher,
            executor=self.executor,
            logger=self.logger,
            timeout=30,
            progress_callback=self.progress,
        )

    def test_passing_script(self):
        self.executor.run_command_streaming.return_value = _result(0)
        self.assertIs(self.oracle("abc123", 4, 2), Outcome.DOES_NOT_SATISFY)
        self.switcher.switch.assert_called_once_with("abc123")
        self.progress.assert_called_once_with("abc123", 4, 2)

    def test_failing_script(self):
        self.executor.run_command_streaming.return_value = _result(1)
        self.assertIs(self.oracle("abc123", 4, 2), Outcome.SATISFIES)

    def test_harness_broken(self):
        self.executor.run_command_streaming.return_value = _result(125)
        self.assertIs(self.oracle("abc123", 4, 2), Outcome.UNKNOWN)

    def test_missing_canary_build(self):
        self.switcher.switch.return_value = _result(1, stderr="404 Not Found")
        self.assertIs(self.oracle("abc123", 4, 2), Outcome.UNKNOWN)
        self.executor.run_command_streaming.assert_not_called()

    def test_timeout_is_unknown(self):
        self.executor.run_command_streaming.return_value = _result(-1, timed_out=True)
        self.assertIs(self.oracle("abc123", 4, 2), Outcome.UNKNOWN)

    def test_unlaunchable_test_is_unknown(self):
        self.executor.run_command_streaming.return_value = _result(
            -1, launched=False, stderr="OSError: No such file or directory"
        )
        self.assertIs(self.oracle("abc123", 4, 2), Outcome.UNKNOWN)

    def test_test_command_and_timeout(self):
        self.executor.run_command_streaming.return_value = _result(0)
        self.oracle("abc123", 4, 2)
        args, kwargs = self.executor.run_command_streaming.call_args
        self.assertEqual(
            args[0], ["deno", "run", "-A", "--no-lock", self.oracle.script]
        )
        self.assertEqual(kwargs["timeout"], 30)

    def test_progress_is_logged(self):
        self.executor.run_command_streaming.return_value = _result(0)
        self.oracle("abc123", 4, 2)
        messages = [call[0][0] for call in self.logger.info.call_args_list]
        self.assertIn(
            "on abc123: 4 versions to test after this (roughly 2 steps)", messages
        )


if __name__ == "__main__":
    unittest.main()
