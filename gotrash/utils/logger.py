"""gotrash 日志配置

日志统一写到 stderr，stdout 留给命令本身的输出。
级别与格式默认取自 TRASH_LOG_LEVEL / TRASH_LOG_JSON，调用方显式传参时优先。
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone

LEVEL_ENV = "TRASH_LOG_LEVEL"
JSON_ENV = "TRASH_LOG_JSON"

_TEXT_FORMAT = "%(asctime)s [%(levelname)-7s] %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """每条记录一行 JSON，字段: timestamp / level / logger / message / line，
    带异常时另有 exception
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "line": record.lineno,
        }
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def setup_logging(level: str | None = None, json_output: bool | None = None) -> None:
    """配置根日志器，重复调用会替换之前的 handler"""
    if level is None:
        level = os.getenv(LEVEL_ENV, "INFO")
    if json_output is None:
        json_output = os.getenv(JSON_ENV, "") == "1"

    reset_logging()
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if json_output else logging.Formatter(_TEXT_FORMAT))
    root.addHandler(handler)


def reset_logging() -> None:
    """移除并关闭根日志器上的全部 handler"""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
