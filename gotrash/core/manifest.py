"""vendor 清单模型

清单是扁平的 YAML 记录:

    package: example.com/org/app
    import:
      - package: github.com/org/lib
        version: v1.2.0
        repo: https://git.example.com/mirror/lib.git
        transitive: true
    exclude: [github.com/org/lib/testdata]
    ignored_tags: [integration]
    ignored_pkgs: [github.com/org/lib/contrib/]
    native_only: true

解析后 import 按包路径去重（首次出现者优先）并排序，保证写回结果稳定。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from gotrash.core.config import IGNORE_TAG
from gotrash.core.exceptions import ConfigError
from gotrash.core.models import PackageSpec
from gotrash.utils.yaml_io import load_yaml, save_yaml

logger = logging.getLogger(__name__)

# 未找到指定清单时依次尝试的文件名
MANIFEST_CANDIDATES = (
    "trash.conf", "vndr.cfg", "vendor.manifest", "trash.yml",
    "glide.yaml", "glide.yml", "trash.yaml",
)


@dataclass
class Manifest:
    """vendor 清单"""

    package: str = ""
    imports: list[PackageSpec] = field(default_factory=list)
    excludes: list[str] = field(default_factory=list)
    ignored_tags: list[str] = field(default_factory=list)
    ignored_pkgs: list[str] = field(default_factory=list)
    native_only: bool = False
    conf_file: str = ""

    def __post_init__(self) -> None:
        self.ignored_tags = list(dict.fromkeys(self.ignored_tags))
        self.ignored_pkgs = [p.strip("/") for p in self.ignored_pkgs]
        self.dedupe()

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------

    def get(self, import_path: str) -> PackageSpec | None:
        for spec in self.imports:
            if spec.import_path == import_path:
                return spec
        return None

    def __contains__(self, import_path: object) -> bool:
        return any(s.import_path == import_path for s in self.imports)

    @property
    def skip_tags(self) -> list[str]:
        """需要跳过的构建 tag，始终包含 ignore"""
        return list(dict.fromkeys([*self.ignored_tags, IGNORE_TAG]))

    # ------------------------------------------------------------------
    # 修改
    # ------------------------------------------------------------------

    def dedupe(self) -> None:
        """按包路径去重（首次出现者优先）并排序"""
        seen: dict[str, PackageSpec] = {}
        for spec in self.imports:
            if spec.import_path in seen:
                logger.debug("包 '%s' 重复声明 (in %s)", spec.import_path, self.conf_file)
                continue
            seen[spec.import_path] = spec
        self.imports = [seen[k] for k in sorted(seen)]

    def merge(self, extra: list[PackageSpec]) -> list[PackageSpec]:
        """并入未声明过的包，已有声明优先；返回实际新增的条目"""
        added: list[PackageSpec] = []
        for spec in extra:
            if spec.import_path in self or any(
                a.import_path == spec.import_path for a in added
            ):
                continue
            added.append(spec)
        if added:
            self.imports.extend(added)
            self.dedupe()
        return added

    # ------------------------------------------------------------------
    # 序列化
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: dict, conf_file: str = "") -> Manifest:
        imports: list[PackageSpec] = []
        for item in data.get("import") or []:
            if not isinstance(item, dict) or not item.get("package"):
                raise ConfigError(f"清单 import 条目无效: {item!r} (in {conf_file})")
            imports.append(PackageSpec(
                import_path=str(item["package"]),
                version=str(item.get("version") or ""),
                repo=str(item.get("repo") or ""),
                transitive=bool(item.get("transitive", False)),
                staging=bool(item.get("staging", False)),
            ))
        return cls(
            package=str(data.get("package") or ""),
            imports=imports,
            excludes=[str(e) for e in data.get("exclude") or []],
            ignored_tags=[str(t) for t in data.get("ignored_tags") or []],
            ignored_pkgs=[str(p) for p in data.get("ignored_pkgs") or []],
            native_only=bool(data.get("native_only", False)),
            conf_file=conf_file,
        )

    def to_dict(self) -> dict:
        """转为可写回的字典，省略空字段"""
        data: dict = {}
        if self.package:
            data["package"] = self.package
        if self.imports:
            data["import"] = [s.to_dict() for s in self.imports]
        if self.excludes:
            data["exclude"] = list(self.excludes)
        if self.ignored_tags:
            data["ignored_tags"] = list(self.ignored_tags)
        if self.ignored_pkgs:
            data["ignored_pkgs"] = list(self.ignored_pkgs)
        if self.native_only:
            data["native_only"] = True
        return data

    def dump(self, path: str | Path | None = None) -> None:
        """原子写回清单文件"""
        target = Path(path or self.conf_file)
        self.dedupe()
        save_yaml(target, self.to_dict())
        logger.info("清单已写入: %s (%d 个包)", target, len(self.imports))


def parse(path: str | Path) -> Manifest:
    """读取并解析清单文件"""
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"清单文件不存在: {p}")
    try:
        data = load_yaml(p)
    except (yaml.YAMLError, ValueError, OSError) as e:
        raise ConfigError(f"清单文件无法解析: {p} - {e}") from e
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"清单内容不是字典类型: {p} (实际类型: {type(data).__name__})"
        )
    return Manifest.from_dict(data, conf_file=str(p))


def find_manifest(directory: Path, preferred: str, *, create: bool = False) -> Path:
    """按候选文件名查找清单

    create=True（update 模式）时若都不存在则以 preferred 创建空文件。
    """
    for name in (preferred, *MANIFEST_CANDIDATES):
        candidate = directory / name
        if candidate.is_file():
            return candidate
    target = directory / preferred
    if not create:
        raise ConfigError(f"清单文件不存在: {target}")
    logger.warning("Trash! 未找到 '%s'，创建新的清单文件", target)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.touch()
    return target
