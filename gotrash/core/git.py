"""git 命令封装

所有 git 调用都经过 GitClient，统一显式传入工作目录、统一错误处理，
测试时注入脚本化的 CommandExecutor 即可。输出只做按行切分与去空白。
"""

from __future__ import annotations

import logging
from pathlib import Path

from gotrash.core.exceptions import ExecutionError
from gotrash.utils.shell import CommandExecutor, CommandResult, get_executor, run_cmd

logger = logging.getLogger(__name__)


class GitClient:
    """git 子进程客户端"""

    def __init__(self, executor: CommandExecutor | None = None) -> None:
        self.executor = executor or get_executor()

    def run(self, path: Path, *args: str) -> CommandResult:
        """在 path 下执行 git 子命令，git 不可用时抛 ExecutionError"""
        cmd = ["git", *args]
        try:
            r = self.executor.execute(cmd, cwd=str(path))
        except OSError as e:
            raise ExecutionError(f"无法执行 `{' '.join(cmd)}`: {e}") from e
        if not r.success:
            logger.debug("`%s` (cwd=%s) 返回 %d:\n%s", " ".join(cmd), path, r.returncode, r.output)
        return r

    # ------------------------------------------------------------------
    # 仓库状态
    # ------------------------------------------------------------------

    def toplevel(self, path: Path) -> Path | None:
        r = self.run(path, "rev-parse", "--show-toplevel")
        if not r.success or not r.stdout.strip():
            return None
        return Path(r.stdout.strip())

    def is_repo_under(self, path: Path, root: Path) -> bool:
        """path 是否位于一个工作树根严格处于 root 之下的 git 仓库中"""
        top = self.toplevel(path)
        if top is None:
            logger.debug("不是 git 仓库: %s", path)
            return False
        return root.resolve() in top.resolve().parents

    def init(self, path: Path) -> bool:
        return self.run(path, "init", "-q").success

    def head(self, path: Path) -> str:
        r = self.run(path, "rev-parse", "HEAD")
        return r.stdout.strip() if r.success else ""

    def describe(self, path: Path) -> str:
        """最近的 tag（无 tag 时为缩写 commit）"""
        r = run_cmd(
            ["git", "describe", "--tags", "--always"], cwd=str(path),
            label="git describe", executor=self.executor,
        )
        return r.stdout.strip()

    # ------------------------------------------------------------------
    # remote
    # ------------------------------------------------------------------

    def remotes(self, path: Path) -> list[str]:
        return self.run(path, "remote").lines()

    def remote_exists(self, path: Path, name: str) -> bool:
        return name in self.remotes(path)

    def add_remote(self, path: Path, name: str, url: str) -> bool:
        """添加 remote 并立即 fetch；已存在只告警，其它失败记录错误但不中断"""
        r = self.run(path, "remote", "add", "-f", name, url)
        if r.success:
            return True
        if f"remote {name} already exists" in r.output:
            logger.warning("remote 已存在: '%s' '%s'", name, url)
        else:
            logger.error("无法添加 remote '%s' '%s'", name, url)
        return False

    def fetch(self, path: Path, remote: str) -> CommandResult:
        return self.run(path, "fetch", "-f", "-t", remote)

    # ------------------------------------------------------------------
    # 引用与检出
    # ------------------------------------------------------------------

    def is_branch(self, path: Path, remote: str, version: str) -> bool:
        ref = f"{remote}/{version}"
        logger.debug("检查 '%s' 是否为分支", ref)
        return ref in self.run(path, "branch", "--list", "-r", ref).lines()

    def checkout_detached(self, path: Path, ref: str) -> CommandResult:
        return self.run(path, "checkout", "-f", "--detach", ref)

    def latest_commit(self, path: Path) -> str:
        """所有引用中最新的一个提交（缩写），找不到返回空串"""
        r = self.run(path, "log", "--all", "--pretty=oneline", "--abbrev-commit", "-1")
        fields = r.stdout.split() if r.success else []
        return fields[0] if fields else ""
