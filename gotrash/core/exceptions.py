"""统一异常体系

所有业务异常继承 TrashError。core 层只负责抛出，
是否终止进程由 CLI 入口统一决定。
"""

from __future__ import annotations


class TrashError(Exception):
    """基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(TrashError):
    """清单缺失、内容无效或必填项缺失"""

    code = "CONFIG_ERROR"


class CacheError(TrashError):
    """缓存工作树无法创建或重建"""

    code = "CACHE_ERROR"


class ResolutionError(TrashError):
    """fetch / checkout 重试耗尽，指定版本无法检出"""

    code = "RESOLUTION_ERROR"

    def __init__(self, message: str, package: str = "", version: str = "") -> None:
        super().__init__(message)
        self.package = package
        self.version = version


class ExecutionError(TrashError):
    """外部命令执行失败或可执行文件不存在"""

    code = "EXECUTION_ERROR"


class VendorError(TrashError):
    """拷贝到 vendor 目录失败"""

    code = "VENDOR_ERROR"


class SourceParseError(TrashError):
    """Go 源文件无法解析（仅在导入扫描内部使用，不会向外传播）"""

    code = "PARSE_ERROR"
