# Copyright (c) Meta Platforms, Inc. and affiliates.

"""Tests for checkout preparation (git is mocked)."""

import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock

from canarybisect.bisect.executor import CommandResult
from canarybisect.bisect.git_utils import CheckoutError, ensure_checkout


def _result(exit_code=0, stdout="", stderr=""):
    return CommandResult(
        command="git",
        exit_code=exit_code,
        stdout=stdout,
        stderr=stderr,
        duration_seconds=0.01,
    )


class ExistingCheckoutTest(unittest.TestCase):
    """Tests for reusing a checkout given with --checkout."""

    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp()
        self.executor = MagicMock()
        self.logger = MagicMock()

    def tearDown(self):
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def test_checkout_is_pulled(self):
        self.executor.run_command.side_effect = [
            _result(stdout="abc123def456\n"),
            _result(stdout="Already up to date.\n"),
        ]
        repo_dir = ensure_checkout(
            self.tmp_dir, "unused", self.executor, self.logger
        )
        self.assertEqual(repo_dir, Path(self.tmp_dir).resolve())
        pull = self.executor.run_command.call_args_list[1]
        self.assertEqual(pull[0][0], ["git", "pull"])
        self.assertEqual(pull[1]["cwd"], str(repo_dir))
        self.executor.run_command_streaming.assert_not_called()

    def test_missing_path(self):
        missing = str(Path(self.tmp_dir) / "nope")
        with self.assertRaises(CheckoutError) as ctx:
            ensure_checkout(missing, "unused", self.executor, self.logger)
        self.assertIn("doesn't exist", str(ctx.exception))
        self.executor.run_command.assert_not_called()

    def test_not_a_repository(self):
        self.executor.run_command.return_value = _result(
            exit_code=128, stderr="fatal: not a git repository"
        )
        with self.assertRaises(CheckoutError):
            ensure_checkout(self.tmp_dir, "unused", self.executor, self.logger)

    def test_pull_failure(self):
        self.executor.run_command.side_effect = [
            _result(stdout="abc123\n"),
            _result(exit_code=1, stderr="Could not resolve host"),
        ]
        with self.assertRaises(CheckoutError) as ctx:
            ensure_checkout(self.tmp_dir, "unused", self.executor, self.logger)
        self.assertIn("Could not resolve host", str(ctx.exception))


class FreshCloneTest(unittest.TestCase):
    """Tests for cloning into a temporary directory."""

    def setUp(self):
        self.executor = MagicMock()
        self.logger = MagicMock()
        self.created = []

    def tearDown(self):
        for path in self.created:
            shutil.rmtree(path, ignore_errors=True)

    def test_clone_without_checkout(self):
        self.executor.run_command_streaming.return_value = _result()
        callback = MagicMock()
        repo_dir = ensure_checkout(
            None,
            "https://github.com/denoland/deno",
            self.executor,
            self.logger,
            output_callback=callback,
        )
        self.created.append(repo_dir)

        self.assertTrue(repo_dir.name.startswith("canarybisect_"))
        args, kwargs = self.executor.run_command_streaming.call_args
        self.assertEqual(
            args[0],
            [
                "git",
                "clone",
                "--no-checkout",
                "https://github.com/denoland/deno",
                str(repo_dir),
            ],
        )
        self.assertIs(kwargs["output_callback"], callback)

    def test_clone_failure(self):
        self.executor.run_command_streaming.return_value = _result(
            exit_code=128, stdout="fatal: repository not found\n"
        )
        with self.assertRaises(CheckoutError) as ctx:
            ensure_checkout(
                None, "https://example.invalid/x", self.executor, self.logger
            )
        self.assertIn("repository not found", str(ctx.exception))
        clone_target = self.executor.run_command_streaming.call_args[0][0][-1]
        self.created.append(clone_target)
        self.assertFalse(Path(clone_target).exists())


if __name__ == "__main__":
    unittest.main()
