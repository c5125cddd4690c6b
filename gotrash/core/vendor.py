"""vendor 目录同步

每次运行都把 vendor 目录整体重建：删除、重新创建、逐包从缓存工作树拷贝。
单个包先拷贝到同级临时目录再原子改名，拷贝完成后才按需剥离版本控制元数据。
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path

from gotrash.core.exceptions import ConfigError, VendorError
from gotrash.core.models import PackageSpec

logger = logging.getLogger(__name__)

# 剥离的版本控制元数据目录
VCS_DIRS = frozenset({".git", ".hg", ".svn", ".bzr"})

# staging 子树在包内的固定位置
STAGING_SUBDIR = "staging/src"


def check_versions(specs: list[PackageSpec]) -> None:
    """所有包都必须带版本，否则在任何修改发生前报错"""
    for spec in specs:
        if not spec.version:
            raise ConfigError(f"包 '{spec.import_path}' 未指定版本")


def strip_vcs_metadata(root: Path) -> int:
    """递归删除 root 下的版本控制元数据，返回删除条目数"""
    removed = 0
    for dirpath, dirnames, filenames in os.walk(root):
        for d in [d for d in dirnames if d in VCS_DIRS]:
            dirnames.remove(d)
            target = Path(dirpath) / d
            logger.debug("移除版本控制目录: %s", target)
            try:
                shutil.rmtree(target)
            except FileNotFoundError:
                continue
            except OSError as e:
                raise VendorError(f"无法删除 {target}: {e}") from e
            removed += 1
        # submodule / worktree 中 .git 是文件
        for f in filenames:
            if f == ".git":
                try:
                    (Path(dirpath) / f).unlink()
                except FileNotFoundError:
                    continue
                except OSError as e:
                    raise VendorError(f"无法删除 {Path(dirpath) / f}: {e}") from e
                removed += 1
    return removed


class VendorSync:
    """把缓存工作树拷贝进 vendor 目录"""

    def __init__(self, cache_src: Path) -> None:
        self.cache_src = cache_src

    def sync(self, vendor_root: Path, specs: list[PackageSpec], strip_vcs: bool = True) -> None:
        check_versions(specs)

        logger.info("重建 vendor 目录: %s", vendor_root)
        try:
            shutil.rmtree(vendor_root)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise VendorError(f"无法删除 vendor 目录 {vendor_root}: {e}") from e
        try:
            vendor_root.mkdir(parents=True)
        except OSError as e:
            raise VendorError(f"无法创建 vendor 目录 {vendor_root}: {e}") from e

        for spec in sorted(specs, key=lambda s: s.import_path):
            self.copy_package(vendor_root, spec)

        if strip_vcs:
            n = strip_vcs_metadata(vendor_root)
            logger.debug("已剥离 %d 个版本控制元数据条目", n)

    def copy_package(self, vendor_root: Path, spec: PackageSpec) -> Path:
        src = self.cache_src / spec.import_path
        dest = vendor_root / spec.import_path
        if not src.is_dir():
            raise VendorError(f"缓存中不存在包 '{spec.import_path}': {src}")
        logger.info("拷贝 '%s' -> %s", spec.import_path, dest)

        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            if dest.exists():
                # 已随父包一起拷入，按原样覆盖
                shutil.copytree(src, dest, symlinks=True, dirs_exist_ok=True)
                return dest
            tmp = Path(tempfile.mkdtemp(prefix=f".{dest.name}.", dir=dest.parent))
            try:
                shutil.copytree(src, tmp, symlinks=True, dirs_exist_ok=True)
                os.replace(tmp, dest)
            except BaseException:
                shutil.rmtree(tmp, ignore_errors=True)
                raise
        except (OSError, shutil.Error) as e:
            raise VendorError(f"拷贝 '{spec.import_path}' 失败: {e}") from e
        return dest

    def copy_staging(self, vendor_root: Path, spec: PackageSpec) -> list[Path]:
        """把包内 staging/src/<父路径>/ 下的每一项拷贝到 vendor/<父路径>/"""
        location = os.path.dirname(spec.import_path)
        base = self.cache_src / spec.import_path / STAGING_SUBDIR / location
        if not base.is_dir():
            raise VendorError(f"包 '{spec.import_path}' 缺少 staging 目录: {base}")

        target = vendor_root / location
        copied: list[Path] = []
        try:
            target.mkdir(parents=True, exist_ok=True)
            for entry in sorted(base.iterdir()):
                dest = target / entry.name
                logger.info("拷贝 staging '%s' -> %s", entry, dest)
                if entry.is_dir() and not entry.is_symlink():
                    shutil.copytree(entry, dest, symlinks=True, dirs_exist_ok=True)
                else:
                    shutil.copy2(entry, dest, follow_symlinks=False)
                copied.append(dest)
        except (OSError, shutil.Error) as e:
            raise VendorError(f"拷贝 '{spec.import_path}' 的 staging 失败: {e}") from e
        return copied
