"""Shell 命令执行工具: 统一子进程调用

git / go 等外部命令全部经 CommandExecutor 协议执行，并显式传入 cwd / env，
不依赖也不修改进程级的当前目录和环境变量。测试时可注入脚本化的执行器。
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from typing import Protocol

from gotrash.core.exceptions import ExecutionError

logger = logging.getLogger(__name__)


# =========================================================================
# 命令执行结果
# =========================================================================

@dataclass
class CommandResult:
    """命令执行结果（与 subprocess 解耦）"""

    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """stdout + stderr，对应 CombinedOutput"""
        return self.stdout + self.stderr

    def lines(self) -> list[str]:
        """按行拆分 stdout 并去掉首尾空白，丢弃空行"""
        return [ln.strip() for ln in self.stdout.splitlines() if ln.strip()]


# =========================================================================
# 命令执行器协议
# =========================================================================

class CommandExecutor(Protocol):
    """命令执行器协议: 抽象子进程调用

    实现此协议即可替换底层执行方式。
    测试时可注入 mock 实现，无需 patch subprocess。
    """

    def execute(
        self,
        cmd: str | list[str],
        *,
        cwd: str = ".",
        env: dict[str, str] | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        """执行命令并返回结果"""
        ...


# =========================================================================
# 默认实现: 本地执行器
# =========================================================================

class LocalExecutor:
    """本地命令执行器（默认实现）

    可执行文件不存在时 subprocess 抛出 FileNotFoundError，由调用方决定是否致命。
    """

    def execute(
        self,
        cmd: str | list[str],
        *,
        cwd: str = ".",
        env: dict[str, str] | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        args = shlex.split(cmd) if isinstance(cmd, str) else cmd
        r = subprocess.run(
            args, capture_output=True, text=True,
            cwd=cwd, env=env, check=False, timeout=timeout,
        )
        return CommandResult(
            returncode=r.returncode,
            stdout=r.stdout,
            stderr=r.stderr,
        )


# =========================================================================
# 全局默认执行器（可替换）
# =========================================================================

_default_executor: CommandExecutor = LocalExecutor()


def get_executor() -> CommandExecutor:
    """获取全局默认命令执行器"""
    return _default_executor


def set_executor(executor: CommandExecutor) -> None:
    """替换全局默认命令执行器（用于测试）"""
    global _default_executor  # noqa: PLW0603
    _default_executor = executor


# =========================================================================
# 便捷函数
# =========================================================================

def run_cmd(
    cmd: str | list[str], *, cwd: str = ".",
    env: dict[str, str] | None = None,
    label: str = "cmd",
    executor: CommandExecutor | None = None,
) -> CommandResult:
    """执行命令，失败或可执行文件缺失时抛 ExecutionError

    Args:
        cmd: 命令字符串或参数列表
        cwd: 工作目录
        env: 环境变量（不传则继承当前进程）
        label: 日志标签
        executor: 指定执行器，默认使用全局执行器
    """
    ex = executor or get_executor()
    shown = cmd if isinstance(cmd, str) else " ".join(cmd)
    logger.debug("  %s: %s (cwd=%s)", label, shown, cwd)
    try:
        r = ex.execute(cmd, cwd=cwd, env=env)
    except OSError as e:
        raise ExecutionError(f"{label}无法执行: {shown} - {e}") from e
    if not r.success:
        raise ExecutionError(
            f"{label}失败 (rc={r.returncode}): `{shown}`\n{r.output[:500]}"
        )
    return r
