"""Tests for insiders.platform.process module."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from insiders.core.result import Err, Ok
from insiders.platform.process import ProcessError, run, run_silent


class TestProcessError:
    def test_str_short_command(self) -> None:
        error = ProcessError(command=("npm", "install"), returncode=1, stdout="", stderr="")
        assert str(error) == "npm install failed (exit 1)"

    def test_str_long_command_truncated(self) -> None:
        error = ProcessError(
            command=("npm", "version", "0.0.0-insiders.abc1234", "--force"),
            returncode=1,
            stdout="",
            stderr="",
        )
        assert str(error) == "npm version 0.0.0-insiders.abc1234 ... failed (exit 1)"

    def test_timed_out(self) -> None:
        error = ProcessError(("npm",), -1, "", "Command timed out after 1.0s")
        assert error.timed_out
        assert not ProcessError(("npm",), -1, "", "No such file").timed_out

    def test_frozen(self) -> None:
        error = ProcessError(("cmd",), 1, "", "")
        with pytest.raises(AttributeError):
            error.returncode = 2  # type: ignore[misc]


class TestRun:
    def test_success_returns_stdout(self, tmp_path: Path) -> None:
        result = run([sys.executable, "-c", "print('hello')"], cwd=tmp_path)
        assert isinstance(result, Ok)
        assert "hello" in result.value

    def test_failure_returns_error(self, tmp_path: Path) -> None:
        result = run([sys.executable, "-c", "import sys; sys.exit(42)"], cwd=tmp_path)
        assert isinstance(result, Err)
        assert result.error.returncode == 42

    def test_captures_stderr(self, tmp_path: Path) -> None:
        result = run(
            [sys.executable, "-c", "import sys; sys.stderr.write('bad lockfile'); sys.exit(1)"],
            cwd=tmp_path,
        )
        assert isinstance(result, Err)
        assert "bad lockfile" in result.error.stderr

    def test_command_not_found(self, tmp_path: Path) -> None:
        result = run(["nonexistent_command_12345"], cwd=tmp_path)
        assert isinstance(result, Err)
        assert result.error.returncode == -1
        assert result.error.stderr

    def test_env_is_passed(self, tmp_path: Path) -> None:
        result = run(
            [sys.executable, "-c", "import os; print(os.environ['SHA_SHORT'])"],
            cwd=tmp_path,
            env={"SHA_SHORT": "abc1234"},
        )
        assert isinstance(result, Ok)
        assert result.value.strip() == "abc1234"

    def test_timeout(self, tmp_path: Path) -> None:
        result = run([sys.executable, "-c", "import time; time.sleep(5)"], cwd=tmp_path, timeout=0.2)
        assert isinstance(result, Err)
        assert result.error.timed_out


class TestRunSilent:
    def test_success(self, tmp_path: Path) -> None:
        result = run_silent([sys.executable, "-c", "pass"], cwd=tmp_path)
        assert result == Ok(None)

    def test_failure_keeps_exit_code(self, tmp_path: Path) -> None:
        result = run_silent([sys.executable, "-c", "import sys; sys.exit(3)"], cwd=tmp_path)
        assert isinstance(result, Err)
        assert result.error.returncode == 3

    def test_command_not_found(self, tmp_path: Path) -> None:
        result = run_silent(["nonexistent_command_12345"], cwd=tmp_path)
        assert isinstance(result, Err)
        assert result.error.returncode == -1
