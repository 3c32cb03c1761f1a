"""
Study Twin Logging Subsystem

Purpose
-------
Provide an async-safe logging subsystem shared by every layer of the Study
Twin backend:

- Structured JSON logs for aggregation in production.
- LogContext-based propagation of per-save context via ContextVars.
- Correlation IDs so the retries of a single save can be grouped together.
- Async-safe output via a QueueHandler + QueueListener pair, so formatting
  and I/O never run on the event loop.
- Output:
  - Console handler (JSON in production, colored human text in dev).
  - Optional rotating file handler when ``LOG_TO_FILE`` is enabled.

Responsibilities
----------------
- Initialize and tear down the global logging stack.
- Enrich all log records with contextual fields:
  - user_id, operation, component
  - correlation_id, request_id
- Provide helper APIs:
  - get_logger()
  - LogContext (sync + async context manager)
  - set_log_context() / clear_log_context()
  - get_logging_health()

Design Decisions
----------------
- JSONFormatter is the canonical representation; extra fields passed via
  ``logger.info("msg", extra={...})`` are merged under ``"extra"``.
- The log queue is bounded; records beyond the bound are counted and dropped.

Dependencies
------------
- src.core.config.config.Config
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

from src.core.config.config import Config


# ============================================================================
# Save / Operation Context (ContextVars)
# ============================================================================

_log_context: ContextVar[Dict[str, Any]] = ContextVar("study_twin_log_context", default={})

_NOT_SET = "N/A"


# ============================================================================
# Settings
# ============================================================================


@dataclass(frozen=True)
class LoggerConfig:
    """Formatting and sink settings derived from `Config`."""

    CONSOLE_FORMAT: str = (
        "%(asctime)s | %(levelname)-8s | %(name)-32s | [%(user_id)s] %(message)s"
    )
    DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

    FILE_BASENAME: str = "study_twin.json.log"
    FILE_BACKUP_COUNT: int = 3

    QUEUE_MAX_SIZE: int = 10_000

    @property
    def environment(self) -> str:
        return str(Config.ENVIRONMENT).lower()

    @property
    def log_level(self) -> int:
        level_name = Config.LOG_LEVEL if isinstance(Config.LOG_LEVEL, str) else "INFO"
        if Config.DEBUG:
            return logging.DEBUG
        return getattr(logging, level_name.upper(), logging.INFO)

    @property
    def use_json(self) -> bool:
        if Config.LOG_JSON is None:
            return Config.is_production()
        return bool(Config.LOG_JSON)

    @property
    def use_colors(self) -> bool:
        return not self.use_json and sys.stdout.isatty()

    @property
    def logs_dir(self) -> Path:
        return Path(Config.LOGS_DIR).resolve()


LOGGER_CONFIG = LoggerConfig()


# ============================================================================
# Health
# ============================================================================


@dataclass
class LoggingMetrics:
    records_enqueued: int = 0
    records_dropped: int = 0


@dataclass(frozen=True)
class LoggingHealth:
    initialized: bool
    queue_size: int
    queue_max_size: int
    records_enqueued: int
    records_dropped: int


_logging_metrics = LoggingMetrics()
_log_queue: Optional["queue.Queue[logging.LogRecord]"] = None
_queue_listener: Optional[QueueListener] = None
_initialized = False


# ============================================================================
# Filters & Formatters
# ============================================================================


class ContextFilter(logging.Filter):
    """Copy the active LogContext onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = _log_context.get()
        defaults = {
            "user_id": context.get("user_id", _NOT_SET),
            "operation": context.get("operation", _NOT_SET),
            "correlation_id": context.get("correlation_id", _NOT_SET),
            "request_id": context.get("request_id", context.get("correlation_id", _NOT_SET)),
            "component": context.get("component") or record.name.split(".", 1)[0],
        }
        # Fields passed explicitly via ``extra`` win over the ambient context
        for attr, value in defaults.items():
            if not hasattr(record, attr):
                setattr(record, attr, value)
        return True


class ColoredFormatter(logging.Formatter):
    COLORS: Dict[str, str] = {
        "DEBUG": "\033[90m",
        "INFO": "\033[94m",
        "WARNING": "\033[93m",
        "ERROR": "\033[91m",
        "CRITICAL": "\033[91m\033[1m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        original = record.levelname
        prefix = self.COLORS.get(original)
        if prefix:
            record.levelname = f"{prefix}{original}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


class JSONFormatter(logging.Formatter):
    """Render a record as one JSON object per line."""

    STANDARD_ATTRS = frozenset(
        logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
    ) | {"message", "asctime", "taskName"}

    CONTEXT_ATTRS = frozenset(
        {"user_id", "operation", "correlation_id", "request_id", "component"}
    )

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for attr in self.CONTEXT_ATTRS:
            value = getattr(record, attr, None)
            if value not in (None, _NOT_SET):
                log_data[attr] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra = {
            key: val
            for key, val in record.__dict__.items()
            if key not in self.STANDARD_ATTRS
            and key not in self.CONTEXT_ATTRS
            and not key.startswith("_")
        }
        if extra:
            log_data["extra"] = extra

        return json.dumps(log_data, ensure_ascii=False, default=str)


# ============================================================================
# Queue Handler
# ============================================================================


class StudyTwinQueueHandler(QueueHandler):
    """Non-blocking enqueue that drops records when the queue is full."""

    def enqueue(self, record: logging.LogRecord) -> None:
        _logging_metrics.records_enqueued += 1
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            _logging_metrics.records_dropped += 1
            sys.stderr.write("Study Twin logging queue full; dropping log record.\n")


# ============================================================================
# Global Setup
# ============================================================================


def _build_console_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(LOGGER_CONFIG.log_level)

    if LOGGER_CONFIG.use_json:
        handler.setFormatter(JSONFormatter())
    elif LOGGER_CONFIG.use_colors:
        handler.setFormatter(
            ColoredFormatter(fmt=LOGGER_CONFIG.CONSOLE_FORMAT, datefmt=LOGGER_CONFIG.DATE_FORMAT)
        )
    else:
        handler.setFormatter(
            logging.Formatter(fmt=LOGGER_CONFIG.CONSOLE_FORMAT, datefmt=LOGGER_CONFIG.DATE_FORMAT)
        )
    return handler


def _build_file_handler() -> logging.Handler:
    LOGGER_CONFIG.logs_dir.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        filename=str(LOGGER_CONFIG.logs_dir / LOGGER_CONFIG.FILE_BASENAME),
        when="midnight",
        backupCount=LOGGER_CONFIG.FILE_BACKUP_COUNT,
        encoding="utf-8",
        utc=True,
    )
    handler.setLevel(LOGGER_CONFIG.log_level)
    handler.setFormatter(JSONFormatter())
    return handler


def setup_logging() -> None:
    """Install the queue-backed handlers on the root logger. Idempotent."""
    global _queue_listener, _log_queue, _logging_metrics, _initialized

    if _initialized:
        return

    _logging_metrics = LoggingMetrics()

    root = logging.getLogger()
    root.setLevel(LOGGER_CONFIG.log_level)

    sinks: List[logging.Handler] = [_build_console_handler()]
    if Config.LOG_TO_FILE:
        sinks.append(_build_file_handler())

    _log_queue = queue.Queue(LOGGER_CONFIG.QUEUE_MAX_SIZE)
    _queue_listener = QueueListener(_log_queue, *sinks, respect_handler_level=True)
    _queue_listener.start()

    queue_handler = StudyTwinQueueHandler(_log_queue)
    queue_handler.setLevel(LOGGER_CONFIG.log_level)
    queue_handler.addFilter(ContextFilter())
    root.addHandler(queue_handler)

    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if Config.DATABASE_ECHO else logging.WARNING
    )

    _initialized = True

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "environment": LOGGER_CONFIG.environment,
            "log_level": logging.getLevelName(LOGGER_CONFIG.log_level),
            "json": LOGGER_CONFIG.use_json,
            "file_output": Config.LOG_TO_FILE,
        },
    )


def shutdown_logging() -> None:
    """Stop the queue listener and detach the handlers installed by setup."""
    global _queue_listener, _log_queue, _initialized

    if not _initialized:
        return

    logging.getLogger(__name__).info("Shutting down logging subsystem")

    root = logging.getLogger()
    if _queue_listener is not None:
        _queue_listener.stop()
        for handler in _queue_listener.handlers:
            handler.close()
        _queue_listener = None

    for handler in list(root.handlers):
        if isinstance(handler, StudyTwinQueueHandler):
            root.removeHandler(handler)
            handler.close()

    _log_queue = None
    _initialized = False


def get_logging_health() -> LoggingHealth:
    return LoggingHealth(
        initialized=_initialized,
        queue_size=_log_queue.qsize() if _log_queue is not None else 0,
        queue_max_size=_log_queue.maxsize if _log_queue is not None else 0,
        records_enqueued=_logging_metrics.records_enqueued,
        records_dropped=_logging_metrics.records_dropped,
    )


# ============================================================================
# Public API
# ============================================================================


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Scope log context to a block of code.

    Works as both a sync and an async context manager:

        async with LogContext(user_id=user_id, operation="record_session"):
            ...
    """

    def __init__(
        self,
        user_id: Optional[str] = None,
        operation: Optional[str] = None,
        component: Optional[str] = None,
        correlation_id: Optional[str] = None,
        request_id: Optional[str] = None,
        **extra: Any,
    ) -> None:
        effective = correlation_id or request_id or self._generate_correlation_id()

        self.context: Dict[str, Any] = {
            **_log_context.get(),
            "correlation_id": effective,
            "request_id": request_id or effective,
            **extra,
        }
        if user_id is not None:
            self.context["user_id"] = str(user_id)
        if operation is not None:
            self.context["operation"] = operation
        if component is not None:
            self.context["component"] = component

        self._token: Optional[Token[Dict[str, Any]]] = None

    @staticmethod
    def _generate_correlation_id() -> str:
        return uuid.uuid4().hex[:8]

    def __enter__(self) -> "LogContext":
        self._token = _log_context.set(self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def set_log_context(
    user_id: Optional[str] = None,
    operation: Optional[str] = None,
    component: Optional[str] = None,
    correlation_id: Optional[str] = None,
    **extra: Any,
) -> None:
    current = dict(_log_context.get())

    if user_id is not None:
        current["user_id"] = str(user_id)
    if operation is not None:
        current["operation"] = operation
    if component is not None:
        current["component"] = component
    if correlation_id:
        current["correlation_id"] = correlation_id

    current.update(extra)
    _log_context.set(current)


def get_log_context() -> Dict[str, Any]:
    return dict(_log_context.get())


def clear_log_context() -> None:
    _log_context.set({})


# Initialize logging automatically
setup_logging()
