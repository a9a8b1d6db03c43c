"""
TokenForge 代币发行工具 — 结构化日志

提供 JSON 格式日志输出，便于日志聚合和分析。
日志输出到 stderr，stdout 留给命令行结果。
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

_LOG_FORMATS = ("json", "text")
_default_format = "json"


class JSONFormatter(logging.Formatter):
    """JSON 格式日志格式化器"""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # 添加位置信息
        if record.pathname:
            log_data["location"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        # 添加异常信息
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # 添加额外字段
        if hasattr(record, "extra_data"):
            log_data["extra"] = record.extra_data

        return json.dumps(log_data, ensure_ascii=False, default=str)


def _make_formatter(use_json: bool) -> logging.Formatter:
    if use_json:
        return JSONFormatter()
    return logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def get_logger(
    name: str,
    level: int = logging.INFO,
    use_json: bool | None = None,
) -> logging.Logger:
    """
    获取结构化日志记录器

    Args:
        name: 日志记录器名称
        level: 日志级别
        use_json: 是否使用 JSON 格式（None 表示使用当前默认格式）

    Returns:
        配置好的 Logger 实例
    """
    logger = logging.getLogger(name)

    # 避免重复添加 handler
    if logger.handlers:
        return logger

    if use_json is None:
        use_json = _default_format == "json"

    logger.setLevel(level)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(_make_formatter(use_json))

    logger.addHandler(handler)
    logger.propagate = False

    return logger


def set_log_format(log_format: str) -> None:
    """
    切换日志格式

    已创建的 tokenforge 日志记录器会同步更新格式。

    Args:
        log_format: json 或 text
    """
    global _default_format
    if log_format not in _LOG_FORMATS:
        raise ValueError(f"不支持的日志格式: {log_format}")
    _default_format = log_format

    formatter = _make_formatter(log_format == "json")
    for name, logger in logging.Logger.manager.loggerDict.items():
        if not name.startswith("tokenforge") or not isinstance(logger, logging.Logger):
            continue
        for handler in logger.handlers:
            handler.setFormatter(formatter)


class LoggerAdapter(logging.LoggerAdapter):
    """支持额外字段的日志适配器"""

    def process(
        self, msg: str, kwargs: dict[str, Any]
    ) -> tuple[str, dict[str, Any]]:
        extra = kwargs.get("extra", {})
        extra["extra_data"] = self.extra
        kwargs["extra"] = extra
        return msg, kwargs
