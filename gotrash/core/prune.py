"""vendor 目录裁剪

按固定顺序执行，每一步都作用于上一步之后的目录现状:

1. 删除 exclude 列出的子树
2. 重新计算导入闭包，删除测试文件、闭包外包的 .go 文件、以及既不在闭包中
   也不是闭包成员祖先的目录
3. 反复删除空目录直到不动点
4. 删除既非源码也非 license / notice 的文件
5. 对整个被删掉的清单包给出告警

裁剪失败不致命：目录已不存在视为无事可做，其它 I/O 错误记录后放弃该分支。
"""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from gotrash.core.models import ImportSet, PackageSpec

logger = logging.getLogger(__name__)

# 保留的源码扩展名
SOURCE_EXTENSIONS = frozenset({"go", "h", "c", "s", "cpp", "hpp"})


def is_source(filename: str) -> bool:
    parts = filename.split(".")
    return len(parts) > 1 and parts[-1] in SOURCE_EXTENSIONS


def is_license(filename: str) -> bool:
    lower = filename.lower()
    return "license" in lower or "notice" in lower


@dataclass
class PruneReport:
    """一次裁剪的结果"""

    excluded: list[str] = field(default_factory=list)
    removed_dirs: list[str] = field(default_factory=list)
    removed_files: list[str] = field(default_factory=list)
    empty_dirs: list[str] = field(default_factory=list)
    unused_packages: list[str] = field(default_factory=list)


def _walk_error(err: OSError) -> None:
    if isinstance(err, FileNotFoundError):
        return
    logger.error("遍历 vendor 目录出错，跳过该分支: %s", err)


def _remove_tree(path: Path) -> bool:
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.error("无法删除目录 %s: %s", path, e)
        return False
    return True


def _remove_file(path: Path) -> bool:
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.error("无法删除文件 %s: %s", path, e)
        return False
    return True


class Pruner:
    """vendor 目录裁剪器

    closure_fn 在删除 exclude 之后才被调用，保证闭包基于裁剪后的目录计算。
    """

    def __init__(self, vendor_root: Path, closure_fn: Callable[[], ImportSet]) -> None:
        self.vendor_root = vendor_root
        self.closure_fn = closure_fn

    def _rel(self, path: str | Path) -> str:
        rel = Path(path).relative_to(self.vendor_root).as_posix()
        return "" if rel == "." else rel

    def prune(self, excludes: list[str], specs: list[PackageSpec]) -> PruneReport:
        report = PruneReport()
        report.excluded = self.remove_excludes(excludes)
        closure = self.closure_fn()
        report.removed_dirs, report.removed_files = self.remove_unused(closure)
        report.empty_dirs = self.remove_empty_dirs()
        report.removed_files += self.remove_unused_files()
        report.unused_packages = self.warn_unused(specs)
        return report

    def remove_excludes(self, excludes: list[str]) -> list[str]:
        """删除相对路径与 exclude 完全一致的子目录

        只在 vendor 目录内部遍历比较，"/"、".." 之类的条目不会命中任何目录。
        """
        wanted = {e.strip("/") for e in excludes} - {""}
        removed: list[str] = []
        if not wanted:
            return removed
        for dirpath, dirnames, _ in os.walk(self.vendor_root, onerror=_walk_error):
            pkg = self._rel(dirpath)
            kept: list[str] = []
            for d in dirnames:
                sub = f"{pkg}/{d}" if pkg else d
                if sub not in wanted:
                    kept.append(d)
                    continue
                if _remove_tree(Path(dirpath) / d):
                    logger.info("移除排除目录: '%s'", sub)
                    removed.append(sub)
            dirnames[:] = kept
        return removed

    def remove_unused(self, closure: ImportSet) -> tuple[list[str], list[str]]:
        """删除测试文件、闭包外包的源码，以及与闭包无关的目录"""
        logger.debug("删除未使用的代码")
        keep_dirs = closure.ancestors()
        removed_dirs: list[str] = []
        removed_files: list[str] = []

        for dirpath, dirnames, filenames in os.walk(self.vendor_root, onerror=_walk_error):
            pkg = self._rel(dirpath)
            for name in filenames:
                if name.endswith("_test.go") or (name.endswith(".go") and pkg not in closure):
                    path = Path(dirpath) / name
                    logger.debug("移除未使用的源文件: %s", path)
                    if _remove_file(path):
                        removed_files.append(self._rel(path))

            kept: list[str] = []
            for d in dirnames:
                sub = f"{pkg}/{d}" if pkg else d
                if sub in keep_dirs:
                    kept.append(d)
                    continue
                logger.info("移除未使用的目录: '%s'", sub)
                if _remove_tree(Path(dirpath) / d):
                    removed_dirs.append(sub)
            dirnames[:] = kept
        return removed_dirs, removed_files

    def remove_empty_dirs(self) -> list[str]:
        """反复删除空目录，直到一整轮没有删除任何目录"""
        removed: list[str] = []
        while True:
            count = 0
            for dirpath, dirnames, _ in os.walk(self.vendor_root, onerror=_walk_error):
                kept: list[str] = []
                for d in dirnames:
                    path = Path(dirpath) / d
                    try:
                        path.rmdir()
                    except OSError:
                        kept.append(d)
                        continue
                    logger.debug("移除空目录: %s", path)
                    removed.append(self._rel(path))
                    count += 1
                dirnames[:] = kept
            if count == 0:
                return removed

    def remove_unused_files(self) -> list[str]:
        removed: list[str] = []
        for dirpath, _, filenames in os.walk(self.vendor_root, onerror=_walk_error):
            for name in filenames:
                if is_source(name) or is_license(name):
                    continue
                path = Path(dirpath) / name
                logger.debug("移除非源码文件: %s", path)
                if _remove_file(path):
                    removed.append(self._rel(path))
        return removed

    def warn_unused(self, specs: list[PackageSpec]) -> list[str]:
        unused: list[str] = []
        for spec in specs:
            if not (self.vendor_root / spec.import_path).exists():
                logger.warning("包 '%s' 已被整体移除：很可能未被使用，可从清单中删除",
                               spec.import_path)
                unused.append(spec.import_path)
        return unused
