from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import os
from datetime import datetime, timezone
from typing import Any

_LOG_CONTEXT: contextvars.ContextVar[dict[str, Any]] = contextvars.ContextVar(
    "log_context", default={}
)

_LOG_FORMAT = "json"
_LOG_LEVEL = logging.INFO

_CONTEXT_KEYS = (
    "file",
    "target",
    "strategy",
    "tag",
)

_RESERVED_ATTRS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "message",
}


def _current_context() -> dict[str, Any]:
    return dict(_LOG_CONTEXT.get({}))


def bind_context(**updates: Any) -> contextvars.Token[dict[str, Any]]:
    ctx = _current_context()
    for key, value in updates.items():
        if value is None:
            ctx.pop(key, None)
        else:
            ctx[key] = value
    return _LOG_CONTEXT.set(ctx)


@contextlib.contextmanager
def context(**updates: Any):
    token = bind_context(**updates)
    try:
        yield
    finally:
        _LOG_CONTEXT.reset(token)


class ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - trivial
        for key, value in _current_context().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        for key in _CONTEXT_KEYS:
            if not hasattr(record, key):
                setattr(record, key, None)
        return True


def _jsonable(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _jsonable(item) for key, item in value.items()}
    return str(value)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        base: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key.startswith("_") or key in base:
                continue
            if value is None:
                continue
            base[key] = _jsonable(value)
        if record.exc_info:
            base["error_type"] = getattr(record.exc_info[0], "__name__", "Exception")
            if _LOG_FORMAT == "pretty":
                base["stack"] = self.formatException(record.exc_info)
        return json.dumps(base, ensure_ascii=False)


class PrettyFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc).strftime(
            "%Y-%m-%d %H:%M:%S.%fZ"
        )
        parts = [f"[{ts}]", record.levelname.ljust(5), record.getMessage()]
        extras: list[str] = []
        for key in _CONTEXT_KEYS:
            value = getattr(record, key, None)
            if value:
                extras.append(f"{key}={value}")
        if extras:
            parts.append("(" + " ".join(extras) + ")")
        if record.exc_info:
            parts.append("\n" + self.formatException(record.exc_info))
        return " ".join(parts)


def setup_logging(*, stream: Any | None = None) -> None:
    global _LOG_FORMAT, _LOG_LEVEL
    format_name = os.getenv("LOG_FORMAT", "json").strip().lower()
    level_name = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    formatter: logging.Formatter
    if format_name == "pretty":
        formatter = PrettyFormatter()
    else:
        format_name = "json"
        formatter = JsonFormatter()
    _LOG_FORMAT = format_name
    _LOG_LEVEL = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(stream)
    handler.setFormatter(formatter)
    handler.addFilter(ContextFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(_LOG_LEVEL)


def is_pretty_format() -> bool:
    return _LOG_FORMAT == "pretty"


def log_exc(ctx: str, err: BaseException) -> None:
    logger = logging.getLogger("observability")
    extra = {"error_type": type(err).__name__, "error": str(err)}
    if is_pretty_format():
        logger.exception(ctx, extra=extra)
    else:
        logger.error(ctx, extra=extra)
