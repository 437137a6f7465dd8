"""Tests for monorelease.shell."""

from __future__ import annotations

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from monorelease.errors import GitError, GitTimeoutError
from monorelease.shell import git, run_command, step


def completed(returncode: int = 0, stdout: str = "", stderr: str = "") -> MagicMock:
    return MagicMock(returncode=returncode, stdout=stdout, stderr=stderr)


class TestRunCommand:
    @patch("monorelease.shell.subprocess.run")
    def test_captures_output(self, mock_run: MagicMock) -> None:
        mock_run.return_value = completed(3, "out", "err")

        result = run_command("echo", "hi", cwd="/tmp", timeout=5)

        assert (result.exit_code, result.stdout, result.stderr) == (3, "out", "err")
        mock_run.assert_called_once_with(
            ["echo", "hi"], cwd="/tmp", capture_output=True, text=True, timeout=5
        )


class TestGit:
    @patch("monorelease.shell.subprocess.run")
    def test_returns_stripped_stdout(self, mock_run: MagicMock) -> None:
        mock_run.return_value = completed(stdout="  main\n")

        assert git("branch", "--show-current") == "main"
        assert mock_run.call_args.args[0] == ["git", "branch", "--show-current"]

    @patch("monorelease.shell.subprocess.run")
    def test_failure_raises_with_stderr(self, mock_run: MagicMock) -> None:
        mock_run.return_value = completed(128, stderr="fatal: not a git repository\n")

        with pytest.raises(GitError) as excinfo:
            git("status", cwd="/tmp")

        err = excinfo.value
        assert err.returncode == 128
        assert err.command == ("status",)
        assert err.stderr == "fatal: not a git repository"
        assert "not a git repository" in str(err)

    @patch("monorelease.shell.subprocess.run")
    def test_unchecked_failure(self, mock_run: MagicMock) -> None:
        mock_run.return_value = completed(1, stdout="partial")

        assert git("tag", "--list", check=False) == "partial"

    @patch("monorelease.shell.subprocess.run")
    def test_timeout(self, mock_run: MagicMock) -> None:
        mock_run.side_effect = subprocess.TimeoutExpired(["git", "log"], 2)

        with pytest.raises(GitTimeoutError, match="timed out after 2"):
            git("log", timeout=2)

    @patch("monorelease.shell.subprocess.run")
    def test_missing_executable(self, mock_run: MagicMock) -> None:
        mock_run.side_effect = FileNotFoundError("git")

        with pytest.raises(GitError, match="not found"):
            git("status")


class TestStep:
    def test_prints_header(self, capsys: pytest.CaptureFixture[str]) -> None:
        step("Parsing commits")
        out = capsys.readouterr().out
        assert "Parsing commits" in out
        assert "─" * 60 in out
