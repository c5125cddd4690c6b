"""vendor 流水线服务

职责：
- sync 模式：按清单解析全部依赖、重建 vendor 目录、裁剪
- update 模式：从源码导入闭包重新生成清单，再执行 sync
- 在清单未声明 package 时从 GOPATH 推导根包名

各引擎只抛异常，本服务按流水线顺序编排，失败即中止。
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from gotrash.core import godeps
from gotrash.core import manifest as manifest_mod
from gotrash.core.cache import RepositoryCache
from gotrash.core.config import Config
from gotrash.core.exceptions import ConfigError
from gotrash.core.git import GitClient
from gotrash.core.imports import ImportGraph
from gotrash.core.manifest import Manifest
from gotrash.core.models import TIP_VERSION, ImportSet, PackageSpec, in_namespace
from gotrash.core.prune import Pruner, PruneReport
from gotrash.core.resolver import Resolution, VersionResolver
from gotrash.core.vendor import VendorSync, check_versions
from gotrash.utils.shell import CommandExecutor, get_executor

logger = logging.getLogger(__name__)


def guess_root_package(project_dir: Path, gopath: str) -> str:
    """根据 GOPATH 推导项目的根包名"""
    logger.warning("清单未声明 package，尝试根据 GOPATH 推导")
    if not gopath:
        raise ConfigError("清单未声明 package，且 GOPATH 未设置")
    if os.pathsep in gopath:
        raise ConfigError(f"GOPATH 只能包含一个路径: '{gopath}'")
    src = Path(gopath).expanduser().resolve() / "src"
    if not src.is_dir():
        raise ConfigError(f"GOPATH/src 不存在: {src}")
    project = project_dir.resolve()
    if src not in project.parents:
        raise ConfigError(f"项目目录 {project} 不在 {src} 之下")
    root = project.relative_to(src).as_posix()
    logger.info("推导出的根包名: '%s'", root)
    return root


class TrashService:
    """vendor 流水线"""

    def __init__(
        self,
        config: Config | None = None,
        executor: CommandExecutor | None = None,
    ) -> None:
        if config is None:
            from gotrash.core.config import get_config
            config = get_config()
        self.config = config
        self.executor = executor or get_executor()
        self.git = GitClient(self.executor)
        self.cache = RepositoryCache(config.cache_root, git=self.git, executor=self.executor)
        self.resolver = VersionResolver(self.git)
        self.vendor = VendorSync(config.cache_src)

    # ------------------------------------------------------------------
    # 入口
    # ------------------------------------------------------------------

    def run(self) -> Manifest:
        logger.debug("运行配置: %s", self.config.to_dict())
        if self.config.update:
            return self.update()
        return self.sync()

    def load_manifest(self, create: bool = False) -> Manifest:
        path = manifest_mod.find_manifest(
            self.config.project_dir, self.config.manifest, create=create,
        )
        logger.info("Trash! 读取清单: '%s'", path)
        return manifest_mod.parse(path)

    def root_package(self, manifest: Manifest) -> str:
        return manifest.package or guess_root_package(self.config.project_dir, self.config.gopath)

    def import_graph(self, manifest: Manifest, root: str, lib_root: Path) -> ImportGraph:
        return ImportGraph(
            root,
            self.config.project_dir,
            lib_root,
            target=self.config.target,
            skip_tags=list(dict.fromkeys([*self.config.skip_tags, *manifest.skip_tags])),
            native_only=self.config.native_only or manifest.native_only,
            ignored_pkgs=manifest.ignored_pkgs,
            max_workers=self.config.max_workers,
        )

    def resolve(self, spec: PackageSpec) -> Resolution:
        entry = self.cache.ensure(spec, insecure=self.config.insecure)
        return self.resolver.resolve(entry, spec.version)

    def transitive_extras(self, manifest: Manifest) -> list[PackageSpec]:
        """transitive 包自带依赖记录中尚未声明的包"""
        extras: dict[str, PackageSpec] = {}
        for spec in manifest.imports:
            if not spec.transitive:
                continue
            for dep in godeps.parse(self.config.cache_src / spec.import_path):
                if dep.name in manifest or dep.name in extras:
                    continue
                logger.debug("'%s' 引入传递依赖 '%s' (%s)", spec.import_path, dep.name, dep.version)
                extras[dep.name] = dep.to_spec()
        return [extras[k] for k in sorted(extras)]

    # ------------------------------------------------------------------
    # sync 模式
    # ------------------------------------------------------------------

    def sync(self, manifest: Manifest | None = None) -> Manifest:
        """按清单解析依赖并重建 vendor 目录"""
        if manifest is None:
            manifest = self.load_manifest()
        check_versions(manifest.imports)
        root = "" if self.config.keep else self.root_package(manifest)

        self.cache.prepare()
        for spec in manifest.imports:
            self.resolve(spec)

        extras = self.transitive_extras(manifest)
        check_versions(extras)
        for spec in extras:
            self.resolve(spec)
        specs = [*manifest.imports, *extras]

        vendor_dir = self.config.vendor_dir
        self.vendor.sync(vendor_dir, specs, strip_vcs=not self.config.keep)
        for spec in specs:
            if spec.staging:
                self.vendor.copy_staging(vendor_dir, spec)

        if self.config.keep:
            logger.info("保留完整的 vendor 目录，跳过裁剪")
            return manifest
        self.prune(manifest, root, specs)
        return manifest

    def prune(self, manifest: Manifest, root: str, specs: list[PackageSpec]) -> PruneReport:
        vendor_dir = self.config.vendor_dir
        graph = self.import_graph(manifest, root, vendor_dir)
        report = Pruner(vendor_dir, graph.collect).prune(manifest.excludes, specs)
        logger.info(
            "裁剪完成: 删除 %d 个目录、%d 个文件",
            len(report.removed_dirs) + len(report.empty_dirs), len(report.removed_files),
        )
        return report

    # ------------------------------------------------------------------
    # update 模式
    # ------------------------------------------------------------------

    def _owner(self, manifest: Manifest, pkg: str) -> PackageSpec:
        """导入路径所属的已声明包（最长前缀），未声明则新建条目"""
        owners = [s for s in manifest.imports if in_namespace(pkg, s.import_path)]
        if owners:
            return max(owners, key=lambda s: len(s.import_path))
        return PackageSpec(import_path=pkg)

    def _fetch_tips(self, manifest: Manifest, imports: ImportSet, done: set[str]) -> None:
        for pkg in imports.sorted():
            spec = self._owner(manifest, pkg)
            if spec.import_path in done:
                continue
            done.add(spec.import_path)
            self.resolve(spec.with_version(TIP_VERSION))

    def _top_level(self, pkg: str) -> str:
        """导入路径所在 git 工作树相对缓存 src/ 的路径"""
        cache_src = self.config.cache_src
        top = self.git.toplevel(cache_src / pkg)
        if top is None:
            raise ConfigError(f"'{pkg}' 不在缓存的 git 仓库中")
        try:
            return top.resolve().relative_to(cache_src.resolve()).as_posix()
        except ValueError as e:
            raise ConfigError(f"'{pkg}' 的仓库 {top} 不在缓存目录 {cache_src} 之下") from e

    def update(self) -> Manifest:
        """从导入闭包重新生成清单，写回后执行 sync"""
        manifest = self.load_manifest(create=True)
        root = self.root_package(manifest)
        self.cache.prepare()
        graph = self.import_graph(manifest, root, self.config.cache_src)

        done: set[str] = set()
        imports = graph.collect()
        known = 0
        while len(imports) > known:
            known = len(imports)
            self._fetch_tips(manifest, imports, done)
            imports = graph.collect()

        specs: list[PackageSpec] = []
        for pkg in imports.sorted():
            top = self._top_level(pkg)
            previous = manifest.get(top) or PackageSpec(import_path=top)
            version = self.git.describe(self.config.cache_src / top)
            specs.append(previous.with_version(version))

        manifest.package = root
        manifest.imports = specs
        manifest.dedupe()
        added = manifest.merge(self.transitive_extras(manifest))
        if added:
            logger.info("并入 %d 个传递依赖", len(added))
        manifest.dump()
        return self.sync(manifest)
