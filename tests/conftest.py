"""测试公共夹具：脚本化的命令执行器"""

from __future__ import annotations

import shlex
from collections.abc import Callable
from dataclasses import dataclass

import pytest

from gotrash.utils.shell import CommandResult


@dataclass
class _Rule:
    prefix: str
    handler: Callable[[list[str], str], CommandResult]
    times: int | None = None


class FakeExecutor:
    """按命令前缀返回预设结果，并记录所有调用

    未命中任何规则的命令视为成功、无输出。
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, dict[str, str] | None]] = []
        self._rules: list[_Rule] = []

    def on(
        self,
        prefix: str,
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
        times: int | None = None,
    ) -> FakeExecutor:
        result = CommandResult(returncode, stdout, stderr)
        self._rules.append(_Rule(prefix, lambda args, cwd: result, times))
        return self

    def handle(
        self,
        prefix: str,
        handler: Callable[[list[str], str], CommandResult],
        times: int | None = None,
    ) -> FakeExecutor:
        self._rules.append(_Rule(prefix, handler, times))
        return self

    def missing(self, prefix: str) -> FakeExecutor:
        def _raise(args: list[str], cwd: str) -> CommandResult:
            raise FileNotFoundError(2, "No such file or directory", args[0])
        return self.handle(prefix, _raise)

    def execute(self, cmd, *, cwd=".", env=None, timeout=None) -> CommandResult:
        args = shlex.split(cmd) if isinstance(cmd, str) else list(cmd)
        line = " ".join(args)
        self.calls.append((line, cwd, env))
        for rule in self._rules:
            if rule.times == 0 or not line.startswith(rule.prefix):
                continue
            if rule.times is not None:
                rule.times -= 1
            return rule.handler(args, cwd)
        return CommandResult(0, "", "")

    def commands(self) -> list[str]:
        return [c[0] for c in self.calls]


@pytest.fixture()
def fake_executor() -> FakeExecutor:
    return FakeExecutor()
