"""仓库缓存管理

缓存根目录下 src/<导入路径>/ 为每个包保留一个 git 工作树，跨运行、跨项目复用。
工作树不存在或已损坏（不是 src/ 之下的 git 仓库）时整体销毁重建：
先尽力用 `go get -d` 拉取，失败也不致命，之后至少保证是一个 git 仓库，
再按需登记显式声明的 remote。
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from gotrash.core.exceptions import CacheError
from gotrash.core.git import GitClient
from gotrash.core.models import DEFAULT_REMOTE, CacheEntry, PackageSpec
from gotrash.utils.shell import CommandExecutor, get_executor

logger = logging.getLogger(__name__)


class RepositoryCache:
    """按导入路径组织的 git 工作树缓存"""

    def __init__(
        self,
        cache_root: Path,
        *,
        git: GitClient | None = None,
        executor: CommandExecutor | None = None,
    ) -> None:
        self.cache_root = cache_root
        self.src_root = cache_root / "src"
        self.executor = executor or get_executor()
        self.git = git or GitClient(self.executor)

    def entry_path(self, import_path: str) -> Path:
        return self.src_root / import_path

    def prepare(self) -> None:
        try:
            self.src_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheError(f"无法创建缓存目录 {self.src_root}: {e}") from e

    def ensure(self, spec: PackageSpec, insecure: bool = False) -> CacheEntry:
        """保证 spec 对应的缓存工作树可用，返回 CacheEntry"""
        logger.debug("准备缓存: %s", spec)
        path = self.entry_path(spec.import_path)
        remote = spec.remote

        if not path.is_dir() or not self.git.is_repo_under(path, self.src_root):
            return self._recreate(spec, insecure)

        if remote.explicit:
            if not self.git.remote_exists(path, remote.name):
                self.git.add_remote(path, remote.name, remote.url)
        elif not self.git.remote_exists(path, DEFAULT_REMOTE):
            return self._recreate(spec, insecure)

        return CacheEntry(import_path=spec.import_path, path=path, remote=remote)

    def _recreate(self, spec: PackageSpec, insecure: bool) -> CacheEntry:
        logger.info("准备 '%s' 的缓存", spec.import_path)
        path = self.entry_path(spec.import_path)
        self.prepare()
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise CacheError(f"无法清理缓存目录 {path}: {e}") from e

        self._native_fetch(spec.import_path, insecure)

        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheError(f"无法创建缓存目录 {path}: {e}") from e

        if not self.git.is_repo_under(path, self.src_root):
            logger.debug("不是 git 仓库，初始化: %s", path)
            if not self.git.init(path):
                raise CacheError(f"`git init` 失败: {path}")

        remote = spec.remote
        if remote.explicit:
            self.git.add_remote(path, remote.name, remote.url)
        return CacheEntry(import_path=spec.import_path, path=path, remote=remote, recreated=True)

    def _native_fetch(self, import_path: str, insecure: bool) -> None:
        """尽力通过 go get 拉取初始 clone，任何失败都只记 debug 日志"""
        args = ["go", "get", "-d", "-f", "-u"]
        if insecure:
            args.append("-insecure")
        args.append(import_path)
        env = {**os.environ, "GOPATH": str(self.cache_root), "GO111MODULE": "off"}
        try:
            r = self.executor.execute(args, cwd=str(self.cache_root), env=env)
        except OSError as e:
            logger.debug("`%s` 无法执行: %s", " ".join(args), e)
            return
        if not r.success:
            logger.debug("`%s` 返回错误:\n%s", " ".join(args), r.output)
