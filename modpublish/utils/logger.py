"""modpublish 日志配置

提供统一的日志配置，支持人类可读文本和结构化 JSON 两种输出格式。
解析过程中通过 ``extra={"module_key": ...}`` 附带的模块标识会一并输出。
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

_TEXT_FORMAT = "%(asctime)s [%(levelname)-7s] %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """结构化 JSON 日志格式器，便于 CI 流水线消费

    输出格式:
        {
            "timestamp": "2024-01-01T12:00:00+00:00",
            "level": "INFO",
            "logger": "modpublish.core.dep.resolver",
            "message": "已发布: example.com/foo:v1.0.0",
            "function": "_publish",
            "line": 42,
            "module_key": "example.com/foo:v1.0.0" (仅在提供时),
            "exception": "traceback..." (仅在有异常时)
        }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }
        module_key = getattr(record, "module_key", None)
        if module_key:
            log_entry["module_key"] = str(module_key)
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False)


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """配置根日志器

    参数:
        level: 日志级别字符串（DEBUG, INFO, WARNING, ERROR, CRITICAL）
        json_output: 为 True 时使用 JSON 格式（适用于 CI），否则使用人类可读格式

    说明:
        - 输出到 stderr，标准输出留给命令结果
        - 自动清理已有 handlers，避免重复输出
    """
    reset_logging()
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stderr)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))
    root.addHandler(handler)


def reset_logging() -> None:
    """清理根日志器上所有已注册的 handlers（测试中重新配置时使用）"""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
