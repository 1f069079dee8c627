"""
Structlog 日志配置模块

structlog 与标准库 logging（uvicorn / sqlalchemy / celery）共用一条处理链：
DEBUG 下输出彩色控制台格式，其余环境输出单行 JSON。
"""
import logging
import json
from typing import Any, Dict, List

import structlog
from structlog.contextvars import merge_contextvars
from structlog.dev import ConsoleRenderer
from structlog.processors import JSONRenderer, TimeStamper, add_log_level
from structlog.stdlib import ProcessorFormatter

from core.config import settings


# 第三方库默认日志级别；请求日志由 LoggingMiddleware 输出，uvicorn 访问日志关闭
QUIET_LOGGERS: Dict[str, int] = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "aiosqlite": logging.WARNING,
}


def _json_dumps(obj, default=None, **kwargs) -> str:
    # structlog 会传入 default/sort_keys 等关键字参数
    return json.dumps(obj, ensure_ascii=False, default=default, **kwargs)


def get_renderer() -> Any:
    if settings.DEBUG:
        return ConsoleRenderer(colors=True)
    return JSONRenderer(serializer=_json_dumps)


def _resolve_level() -> int:
    if settings.LOG_LEVEL:
        level = logging.getLevelName(settings.LOG_LEVEL.upper())
        if isinstance(level, int):
            return level
    return logging.DEBUG if settings.DEBUG else logging.INFO


def build_shared_processors() -> List[Any]:
    """structlog.configure 与 ProcessorFormatter 共用的预处理链"""
    return [
        merge_contextvars,
        add_log_level,
        TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def configure_logging() -> None:
    """配置 structlog 并桥接标准库 logging；可重复调用。"""
    shared = build_shared_processors()

    structlog.configure(
        processors=[*shared, ProcessorFormatter.wrap_for_formatter],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[ProcessorFormatter.remove_processors_meta, get_renderer()],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(_resolve_level())

    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(max(level, root.level))


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    """获取 structlog logger 实例。"""
    return structlog.get_logger(name)
