"""gotrash - 按导入闭包 vendoring Go 依赖，并清理掉用不到的代码"""

__version__ = "0.3.0"
