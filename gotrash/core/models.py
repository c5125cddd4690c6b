"""核心数据模型

清单条目、导入路径集合、git remote 与缓存工作树等实体集中定义，
各引擎统一从此处导入。
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

# 未声明 repo 时使用的 remote 名
DEFAULT_REMOTE = "origin"

# 表示"最新提交"的版本哨兵
TIP_VERSION = "master"


class ImportSet(set[str]):
    """导入路径集合，只关心成员关系"""

    def merge(self, other: Iterable[str]) -> ImportSet:
        """并入另一个集合，返回自身便于链式调用"""
        self.update(other)
        return self

    def ancestors(self) -> ImportSet:
        """所有成员及其各级父路径（目录保留判断用）"""
        result = ImportSet()
        for p in self:
            result.merge(parent_paths(p))
        return result

    def sorted(self) -> list[str]:
        return sorted(self)


def parent_paths(path: str) -> list[str]:
    """返回 path 自身及其所有父路径，如 a/b/c -> [a/b/c, a/b, a]"""
    parts = [p for p in path.split("/") if p]
    return ["/".join(parts[:i]) for i in range(len(parts), 0, -1)]


def in_namespace(path: str, root: str) -> bool:
    """path 是否等于 root 或位于 root 之下"""
    return path == root or path.startswith(root + "/")


def remote_name(url: str) -> str:
    """根据仓库 URL 推导 remote 名

    同一 URL 永远得到同一个 7 位小写十六进制名，多个包共享同一仓库时
    复用同一个 remote；未声明 URL 时使用 origin。
    """
    if not url:
        return DEFAULT_REMOTE
    return hashlib.sha1(url.encode("utf-8")).hexdigest()[:7]  # noqa: S324


@dataclass
class PackageSpec:
    """清单中声明的一个依赖包"""

    import_path: str
    version: str = ""
    repo: str = ""           # 显式仓库 URL，空则按 go get 约定推导
    transitive: bool = False  # 同时解析该包自带的依赖记录
    staging: bool = False     # 同时拷贝包内的 staging 子树

    @property
    def remote(self) -> RepositoryRemote:
        return RepositoryRemote(name=remote_name(self.repo), url=self.repo)

    def with_version(self, version: str) -> PackageSpec:
        return PackageSpec(
            import_path=self.import_path, version=version, repo=self.repo,
            transitive=self.transitive, staging=self.staging,
        )

    def to_dict(self) -> dict[str, object]:
        """序列化为清单条目，省略空值"""
        data: dict[str, object] = {"package": self.import_path}
        if self.version:
            data["version"] = self.version
        if self.repo:
            data["repo"] = self.repo
        if self.transitive:
            data["transitive"] = True
        if self.staging:
            data["staging"] = True
        return data


@dataclass(frozen=True)
class RepositoryRemote:
    """一个具名 git remote"""

    name: str
    url: str = ""

    @property
    def explicit(self) -> bool:
        return bool(self.url)


@dataclass
class CacheEntry:
    """缓存根目录下某个导入路径对应的 git 工作树"""

    import_path: str
    path: Path
    remote: RepositoryRemote
    recreated: bool = False  # 本次运行中是否被销毁重建


@dataclass(frozen=True)
class TransitiveDependency:
    """依赖包自带的依赖记录中的一项"""

    name: str
    version: str
    repository: str = ""

    def to_spec(self) -> PackageSpec:
        return PackageSpec(import_path=self.name, version=self.version, repo=self.repository)
