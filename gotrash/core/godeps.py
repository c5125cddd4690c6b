"""Godeps 依赖记录解析

transitive 包自带的 Godeps/Godeps.json 记录了它自己锁定的依赖:

    {"ImportPath": "...", "Deps": [{"ImportPath": "github.com/a/b/sub", "Rev": "abc123"}]}

子包路径归并到仓库根，同一仓库只保留第一条记录。
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from gotrash.core.exceptions import ConfigError
from gotrash.core.models import TransitiveDependency

logger = logging.getLogger(__name__)

GODEPS_FILE = "Godeps/Godeps.json"

# 仓库根固定为前三段的托管站点
_THREE_SEGMENT_HOSTS = frozenset({
    "github.com", "bitbucket.org", "gitlab.com", "golang.org", "go.googlesource.com",
})


def repository_root(import_path: str) -> str:
    """把包路径归并到所在仓库的根"""
    parts = import_path.split("/")
    host = parts[0]
    if host in _THREE_SEGMENT_HOSTS:
        return "/".join(parts[:3])
    if host == "gopkg.in":
        # gopkg.in/pkg.v1 或 gopkg.in/user/pkg.v1
        if len(parts) > 1 and ".v" in parts[1]:
            return "/".join(parts[:2])
        return "/".join(parts[:3])
    return import_path


def parse(package_dir: Path) -> list[TransitiveDependency]:
    path = package_dir / GODEPS_FILE
    if not path.is_file():
        logger.debug("未找到依赖记录: %s", path)
        return []
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigError(f"无法解析依赖记录 {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"依赖记录格式无效: {path}")

    result: dict[str, TransitiveDependency] = {}
    for dep in data.get("Deps") or []:
        if not isinstance(dep, dict) or not dep.get("ImportPath"):
            raise ConfigError(f"依赖记录条目无效: {dep!r} (in {path})")
        name = repository_root(str(dep["ImportPath"]))
        if name in result:
            continue
        result[name] = TransitiveDependency(name=name, version=str(dep.get("Rev") or ""))
    logger.debug("%s: %d 个依赖", path, len(result))
    return list(result.values())
