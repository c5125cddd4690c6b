"""导入闭包计算

从项目自身的所有包出发，逐轮扫描源码中的外部导入，直到不再发现新包（不动点）。
每一轮内各包的扫描互不相关，放进线程池并行执行；本轮全部完成后才合并结果、
计算下一轮的待扫描集合，闭包集合只在这一个汇合点被写入。
"""

from __future__ import annotations

import logging
import os
import posixpath
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from gotrash.core import golang
from gotrash.core.exceptions import ConfigError, SourceParseError
from gotrash.core.models import ImportSet, in_namespace

logger = logging.getLogger(__name__)


def is_stdlib(import_path: str) -> bool:
    """标准库启发式判断：首段不含域名式的点"""
    return "." not in import_path.split("/")[0]


class ImportGraph:
    """项目 + 依赖库目录上的导入图"""

    def __init__(
        self,
        root_package: str,
        project_dir: Path,
        lib_root: Path,
        *,
        target: str = "vendor",
        skip_tags: list[str] | None = None,
        native_only: bool = False,
        ignored_pkgs: list[str] | None = None,
        max_workers: int = 8,
        platform: tuple[str, str] | None = None,
    ) -> None:
        self.root_package = root_package
        self.project_dir = project_dir
        self.lib_root = lib_root
        self.target = target
        self.skip_tags = frozenset(skip_tags or ())
        self.native_only = native_only
        self.ignored_pkgs = [p.strip("/") for p in ignored_pkgs or []]
        self.max_workers = max(1, max_workers)
        self.goos, self.goarch = platform or golang.host_platform()
        # 依赖库就是项目 vendor 目录时，其中的 main 包不作为可导入的包
        self._skip_vendored_main = lib_root == project_dir / target

    # ------------------------------------------------------------------
    # 路径
    # ------------------------------------------------------------------

    def is_local(self, pkg: str) -> bool:
        return in_namespace(pkg, self.root_package)

    def is_ignored(self, pkg: str) -> bool:
        return any(in_namespace(pkg, ig) for ig in self.ignored_pkgs)

    def package_dir(self, pkg: str) -> Path:
        if pkg == self.root_package:
            return self.project_dir
        if self.is_local(pkg):
            return self.project_dir / pkg[len(self.root_package) + 1:]
        return self.lib_root / pkg

    # ------------------------------------------------------------------
    # 扫描
    # ------------------------------------------------------------------

    def list_packages(self) -> ImportSet:
        """项目目录下所有含 package 声明的目录（跳过 vendor 目录和点目录）"""
        if not self.project_dir.is_dir():
            raise ConfigError(f"项目目录不存在: {self.project_dir}")

        result = ImportSet()
        for dirpath, dirnames, filenames in os.walk(self.project_dir):
            rel = Path(dirpath).relative_to(self.project_dir).as_posix()
            dirnames[:] = sorted(
                d for d in dirnames
                if not d.startswith(".")
                and (d if rel == "." else f"{rel}/{d}") != self.target
            )
            if not any(
                golang.package_clause(Path(dirpath) / f) is not None
                for f in filenames if f.endswith(".go")
            ):
                continue
            pkg = self.root_package if rel == "." else f"{self.root_package}/{rel}"
            logger.debug("发现本地包: '%s'", pkg)
            result.add(pkg)
        return result

    def _wanted(self, filename: str, vendored: bool) -> bool:
        if not filename.endswith(".go"):
            return False
        if vendored and golang.is_test_file(filename):
            return False
        if self.native_only and not golang.matches_platform(filename, self.goos, self.goarch):
            return False
        return True

    def _accept(self, found: ImportSet, imp: str) -> None:
        if self.is_local(imp) or self.is_ignored(imp):
            return
        found.add(imp)

    def list_imports(self, pkg: str) -> ImportSet:
        """扫描单个包，返回其外部导入（包含 pkg 自身）"""
        found = ImportSet([pkg])
        pkg_dir = self.package_dir(pkg)
        vendored = not self.is_local(pkg)
        try:
            names = sorted(
                e.name for e in os.scandir(pkg_dir)
                if e.is_file() and self._wanted(e.name, vendored)
            )
        except FileNotFoundError:
            logger.debug("包目录不存在: '%s' (%s)", pkg, pkg_dir)
            return found
        except OSError as e:
            logger.error("无法读取包目录 '%s': %s", pkg_dir, e)
            return found

        logger.debug("收集包 '%s' 的导入", pkg)
        for name in names:
            try:
                gofile = golang.parse_file(pkg_dir / name)
            except SourceParseError as e:
                logger.error("解析导入失败，忽略该文件: %s", e)
                continue
            if gofile.package == "main" and vendored and self._skip_vendored_main:
                logger.info("vendor 目录中的程序 '%s' 被忽略", pkg)
                continue
            if gofile.has_filtered_tag(self.skip_tags):
                logger.debug("构建约束命中跳过 tag: %s", pkg_dir / name)
                continue

            for spec in gofile.imports:
                imp = spec.path
                first = imp.split("/")[0]
                if first in (".", ".."):
                    imp = posixpath.normpath(posixpath.join(pkg, imp))
                elif is_stdlib(imp):
                    continue
                self._accept(found, imp)

            for include in gofile.cgo_includes():
                include_dir = posixpath.dirname(include)
                if include_dir in ("", "."):
                    continue
                if (pkg_dir / include_dir).exists():
                    self._accept(found, posixpath.normpath(posixpath.join(pkg, include_dir)))
        return found

    def collect(self) -> ImportSet:
        """迭代至不动点，返回不含项目自身命名空间的导入闭包"""
        logger.info("收集 '%s' 的导入闭包", self.root_package)
        imports = ImportSet()
        seen = ImportSet()
        frontier = self.list_packages()

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            while frontier:
                pkgs = frontier.sorted()
                futures = [executor.submit(self.list_imports, p) for p in pkgs]
                for future in futures:
                    imports.merge(future.result())
                seen.merge(pkgs)
                frontier = ImportSet(i for i in imports if i not in seen)

        closure = ImportSet(p for p in imports if not self.is_local(p))
        for p in closure.sorted():
            logger.debug("保留: '%s'", p)
        logger.debug("闭包大小: %d", len(closure))
        return closure


def compute_closure(
    root_package: str,
    project_dir: Path,
    lib_root: Path,
    **options: object,
) -> ImportSet:
    """计算导入闭包的便捷入口，options 透传给 ImportGraph"""
    return ImportGraph(root_package, project_dir, lib_root, **options).collect()  # type: ignore[arg-type]
