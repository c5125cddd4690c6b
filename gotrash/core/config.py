"""集中配置管理

运行参数统一收敛到 Config，默认值来自环境变量，CLI 参数覆盖。
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path

from gotrash.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

# 构建约束中永远被跳过的哨兵 tag
IGNORE_TAG = "ignore"


def _default_cache_dir() -> str:
    return os.environ.get("TRASH_CACHE") or str(Path.home() / ".trash-cache")


@dataclass
class Config:
    """全局运行配置"""

    # 目录
    manifest: str = "vendor.conf"
    directory: str = "."
    target: str = "vendor"
    cache_dir: str = field(default_factory=_default_cache_dir)
    gopath: str = ""

    # 模式
    keep: bool = False
    update: bool = False
    insecure: bool = False

    # 导入扫描
    skip_tags: list[str] = field(default_factory=lambda: [IGNORE_TAG])
    native_only: bool = False
    max_workers: int = 8

    def __post_init__(self) -> None:
        tags = list(dict.fromkeys([*self.skip_tags, IGNORE_TAG]))
        self.skip_tags = tags
        self.max_workers = max(1, self.max_workers)

    @classmethod
    def from_env(cls, **overrides: object) -> Config:
        """从环境变量取默认值，再应用显式覆盖（None 值忽略）"""
        values: dict[str, object] = {"gopath": os.environ.get("GOPATH", "")}
        values.update({k: v for k, v in overrides.items() if v is not None})
        unknown = sorted(set(values) - set(cls.__dataclass_fields__))
        if unknown:
            raise ConfigError(f"未知配置项: {', '.join(unknown)}")
        return cls(**values)  # type: ignore[arg-type]

    @property
    def project_dir(self) -> Path:
        return Path(self.directory).resolve()

    @property
    def vendor_dir(self) -> Path:
        return self.project_dir / self.target

    @property
    def cache_root(self) -> Path:
        return Path(self.cache_dir).expanduser().resolve()

    @property
    def cache_src(self) -> Path:
        """缓存中按导入路径存放工作树的根目录"""
        return self.cache_root / "src"

    def to_dict(self) -> dict:
        return asdict(self)


# 全局单例，由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config.from_env()
    return _current


def init_config(**overrides: object) -> Config:
    """以环境变量 + 覆盖项初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_env(**overrides)
    logger.debug("配置已加载: %s", _current.to_dict())
    return _current
