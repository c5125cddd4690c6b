"""shell.py 单元测试"""

from __future__ import annotations

import os

import pytest

from gotrash.core.exceptions import ExecutionError
from gotrash.utils.shell import CommandResult, LocalExecutor, get_executor, run_cmd, set_executor


class TestCommandResult:
    def test_output_combines_streams(self) -> None:
        r = CommandResult(1, "out\n", "err\n")
        assert not r.success
        assert r.output == "out\nerr\n"

    def test_lines_trimmed_and_non_empty(self) -> None:
        r = CommandResult(0, "  origin \n\n  abc1234\n", "")
        assert r.lines() == ["origin", "abc1234"]


class TestRunCmd:
    def test_success(self, tmp_path) -> None:
        r = run_cmd("echo hello", cwd=str(tmp_path), label="test")
        assert r.returncode == 0
        assert "hello" in r.stdout

    def test_failure_raises(self, tmp_path) -> None:
        with pytest.raises(ExecutionError, match="cmd失败"):
            run_cmd("false", cwd=str(tmp_path))

    def test_custom_label_in_error(self, tmp_path) -> None:
        with pytest.raises(ExecutionError, match="git describe失败"):
            run_cmd("false", cwd=str(tmp_path), label="git describe")

    def test_missing_executable(self, tmp_path) -> None:
        with pytest.raises(ExecutionError, match="无法执行"):
            run_cmd(["gotrash-no-such-binary"], cwd=str(tmp_path))

    def test_env_passed(self, tmp_path) -> None:
        env = {**os.environ, "MY_TEST_VAR": "42"}
        r = run_cmd("env", cwd=str(tmp_path), env=env, label="env_test")
        assert "MY_TEST_VAR=42" in r.stdout

    def test_explicit_executor(self, fake_executor) -> None:
        fake_executor.on("git describe", stdout="v1.0.0\n")
        r = run_cmd(["git", "describe"], cwd="/x", executor=fake_executor)
        assert r.stdout.strip() == "v1.0.0"
        assert fake_executor.calls[0][1] == "/x"


class TestExecutorSwap:
    def test_set_executor(self, fake_executor) -> None:
        original = get_executor()
        try:
            set_executor(fake_executor)
            run_cmd("go version")
            assert fake_executor.commands() == ["go version"]
        finally:
            set_executor(original)
        assert isinstance(get_executor(), LocalExecutor)
