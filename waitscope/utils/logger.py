# waitscope/utils/logger.py
from __future__ import annotations

import json
import logging
import os
import threading
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional

from rich.console import Console
from rich.logging import RichHandler

from waitscope.utils.config import get_settings, LogLevel


__all__ = [
    "get_logger",
    "set_log_level",
    "bind",
    "unbind",
    "log_with_context",
    "attach_file_logger",
    "detach_file_logger",
]

ROOT_LOGGER = "waitscope"

_config_lock = threading.Lock()
_configured = False
_global_extra: Dict[str, Any] = {}  # context attached to every record (run_id, script, ...)


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line for file logs.
    Bound context (`record.extra`) is merged at the top level.
    """

    default_time_format = "%Y-%m-%dT%H:%M:%S"

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).strftime(self.default_time_format),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if isinstance(getattr(record, "extra", None), dict):
            payload.update(record.extra)
        payload["thread"] = record.threadName
        return json.dumps(payload, ensure_ascii=False, default=str)


_LEVEL_MAP = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.CRITICAL: logging.CRITICAL,
}


def _file_handler(path: str, level: int, backups: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        filename=path,
        maxBytes=5 * 1024 * 1024,
        backupCount=backups,
        encoding="utf-8",
        delay=True,
    )
    handler.setLevel(level)
    handler.setFormatter(JsonFormatter())
    return handler


def _ensure_configured() -> None:
    """
    Configure the `waitscope` logger tree once based on settings.
    The root logger is left alone so host applications (and pytest) keep theirs.
    """
    global _configured
    if _configured:
        return

    with _config_lock:
        if _configured:
            return

        settings = get_settings()
        level = _LEVEL_MAP.get(settings.LOG_LEVEL, logging.INFO)

        base = logging.getLogger(ROOT_LOGGER)
        base.setLevel(level)
        for h in list(base.handlers):
            base.removeHandler(h)

        console = Console(stderr=True, force_jupyter=False, color_system="auto")
        rich_handler = RichHandler(
            console=console,
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
            markup=settings.COLORIZED_OUTPUT,
            omit_repeated_times=False,
        )
        rich_handler.setFormatter(logging.Formatter("%(message)s"))
        rich_handler.setLevel(level)
        base.addHandler(rich_handler)

        if settings.LOG_TO_FILE:
            settings.LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
            base.addHandler(_file_handler(str(settings.LOG_FILE), level, backups=5))

        # Playwright is chatty at DEBUG
        logging.getLogger("playwright").setLevel(max(level, logging.WARNING))

        _configured = True


def get_logger(name: Optional[str] = None) -> logging.LoggerAdapter:
    """
    Get a logger under the `waitscope` tree wrapped with a LoggerAdapter
    that injects the bound global context into every record.
    """
    _ensure_configured()
    if not name:
        name = ROOT_LOGGER
    elif not name.startswith(ROOT_LOGGER):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.LoggerAdapter(logging.getLogger(name), extra={"extra": _global_extra})


def set_log_level(level: LogLevel | str) -> None:
    _ensure_configured()
    lvl = level if isinstance(level, str) else level.value
    py_level = getattr(logging, lvl.upper(), logging.INFO)
    base = logging.getLogger(ROOT_LOGGER)
    base.setLevel(py_level)
    for h in base.handlers:
        h.setLevel(py_level)


def bind(**kwargs: Any) -> None:
    """
    Bind global context (e.g., run_id="20261019T120000Z", script="login.yaml").
    Attached to every subsequent log line.
    """
    _global_extra.update(kwargs)


def unbind(*keys: str) -> None:
    for k in keys:
        _global_extra.pop(k, None)


def log_with_context(logger: logging.LoggerAdapter, **kwargs: Any) -> logging.LoggerAdapter:
    """
    Return a new LoggerAdapter that merges additional context for a scoped section.
    Usage:
        log = get_logger(__name__)
        log_with_context(log, locator="css: #save").debug("resolving")
    """
    merged = dict(_global_extra)
    current = logger.extra.get("extra") if logger.extra else None
    if isinstance(current, dict):
        merged.update(current)
    merged.update(kwargs)
    return logging.LoggerAdapter(logger.logger, extra={"extra": merged})


def attach_file_logger(path: os.PathLike | str, level: Optional[int] = None) -> logging.Handler:
    """
    Attach a JSON file handler at runtime (e.g., `waitscope run --log-file`).
    Returns the handler so the caller can later detach it via detach_file_logger.
    """
    _ensure_configured()
    base = logging.getLogger(ROOT_LOGGER)
    p = os.fspath(path)
    parent = os.path.dirname(p)
    if parent:
        os.makedirs(parent, exist_ok=True)
    handler = _file_handler(p, level if level is not None else base.level, backups=3)
    base.addHandler(handler)
    return handler


def detach_file_logger(handler: logging.Handler) -> None:
    """Remove a previously attached handler returned by attach_file_logger."""
    logging.getLogger(ROOT_LOGGER).removeHandler(handler)
    handler.close()
