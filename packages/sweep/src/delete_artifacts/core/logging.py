from __future__ import annotations

import logging
import sys
from typing import Any, Protocol, runtime_checkable

import structlog
from rich.logging import RichHandler
from structlog.contextvars import bind_contextvars, merge_contextvars

_CONFIGURED = False

_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


@runtime_checkable
class ILogger(Protocol):
    def debug(self, event: str, **kw: Any) -> Any: ...
    def info(self, event: str, **kw: Any) -> Any: ...
    def warning(self, event: str, **kw: Any) -> Any: ...
    def error(self, event: str, **kw: Any) -> Any: ...
    def exception(self, event: str, **kw: Any) -> Any: ...
    def bind(self, **kw: Any) -> "ILogger": ...


def resolve_level(level: str | None) -> str:
    """
    Map a user supplied level to a logging level name.

    Unknown values fall back to DEBUG so a typo gives more output, not less.
    """
    value = (level or "INFO").strip().upper()
    if value == "WARN":
        value = "WARNING"
    if value == "TRACE":
        value = "DEBUG"
    return value if value in _LEVELS else "DEBUG"


def configure_logging(*, level: str = "INFO", fmt: str = "console") -> None:
    global _CONFIGURED
    if _CONFIGURED:
        return

    lvl = resolve_level(level)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(lvl)

    shared: list[Any] = [
        merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if fmt == "console":
        handler: logging.Handler = RichHandler(
            rich_tracebacks=True,
            markup=False,
            show_time=False,
            show_path=False,
            console=None,
        )
        processors = [*shared, structlog.processors.KeyValueRenderer(sort_keys=True)]
    else:
        handler = logging.StreamHandler(stream=sys.stderr)
        processors = [*shared, structlog.processors.JSONRenderer()]

    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.setLevel(lvl)
    root.addHandler(handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(logging.WARNING, logging.getLevelName(lvl)))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(lvl)),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _CONFIGURED = True


def get_logger(name: str = "delete_artifacts") -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind(**values: Any) -> None:
    bind_contextvars(**values)
