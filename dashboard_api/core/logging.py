"""
Logging configuration for the dashboard backend.

Routes stdlib logging and structlog through the same root handler, with either a
console renderer or JSON lines.
"""
import logging
import sys
from typing import Any, Optional

import structlog

from ..config import Settings, get_settings
from .request_context import request_id_var

_CONFIGURED = False


def add_request_id(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """把当前请求的 request_id 注入日志事件。"""
    rid = request_id_var.get()
    if rid and "request_id" not in event_dict:
        event_dict["request_id"] = rid
    return event_dict


def add_service(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("service", "dashboard-api")
    return event_dict


def setup_logging(settings: Optional[Settings] = None, level: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """配置日志系统（统一配置 root logger 与 structlog）

    Args:
        settings: 应用配置，默认使用 get_settings()
        level: 日志级别，覆盖配置中的 log_level

    Returns:
        配置好的日志记录器
    """
    global _CONFIGURED
    settings = settings or get_settings()
    logger = structlog.get_logger("dashboard_api")

    if _CONFIGURED:
        return logger

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        add_request_id,
        add_service,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if settings.log_json:
        renderer: Any = structlog.processors.JSONRenderer(ensure_ascii=False)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    root = logging.getLogger()
    root.setLevel((level or settings.log_level).upper())

    # 清理默认 handler，避免重复输出
    for h in list(root.handlers):
        root.removeHandler(h)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    # 让常见 logger 走 root handlers
    for log_name in ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi"):
        l = logging.getLogger(log_name)
        l.handlers = []
        l.propagate = True

    # kubernetes client 的 DEBUG 输出会打印完整请求体
    logging.getLogger("kubernetes").setLevel(logging.WARNING)

    _CONFIGURED = True
    return logger


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
