"""
Quarry Logging Subsystem

Purpose
-------
Provide the single structured logging setup for the mining backend:

- Structured JSON logs for aggregation and analysis.
- LogContext-based propagation of request context via ContextVars.
- Correlation IDs for tracing one request across services and repositories.
- Async-safe logging via a QueueHandler + QueueListener pair, so handlers
  never block the event loop.
- Console output (JSON in production, plain text in development) plus a
  daily rotating JSON file in production.

Responsibilities
----------------
- Initialize and configure the global logging stack.
- Enrich every record with player_id, session_id, operation, component,
  and correlation_id taken from the active LogContext.
- Merge ``extra={...}`` fields into the JSON document.
- Provide helpers: get_logger(), LogContext, set_log_context(),
  clear_log_context(), get_logging_health().

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
from typing import Any, Dict, Optional

from src.core.config.config import Config


_request_context: ContextVar[Dict[str, Any]] = ContextVar("request_context", default={})


# ============================================================================
# Config
# ============================================================================


@dataclass(frozen=True, slots=True)
class LoggerConfig:
    """Configuration for the logging subsystem."""

    CONSOLE_FORMAT: str = "%(asctime)s | %(levelname)-8s | %(name)-32s | %(message)s"
    DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"
    DAILY_BASENAME: str = "quarry_daily.json.log"
    DAILY_BACKUP_COUNT: int = 1
    QUEUE_MAX_SIZE: int = 10_000

    @property
    def environment(self) -> str:
        return str(getattr(Config, "ENVIRONMENT", "development")).lower()

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def logs_dir(self) -> Path:
        return Path(Config.LOGS_DIR).resolve()

    @property
    def log_level(self) -> int:
        level_name = getattr(Config, "LOG_LEVEL", "INFO")
        if not isinstance(level_name, str):
            level_name = "INFO"
        return getattr(logging, level_name.upper(), logging.INFO)

    @property
    def use_json(self) -> bool:
        json_flag = getattr(Config, "LOG_JSON", None)
        if json_flag is None:
            return self.is_production
        return bool(json_flag)


LOGGER_CONFIG = LoggerConfig()


@dataclass(slots=True)
class LoggingMetrics:
    records_enqueued: int = 0
    records_dropped: int = 0
    listener_errors: int = 0


@dataclass(frozen=True, slots=True)
class LoggingHealth:
    initialized: bool
    queue_size: int
    queue_max_size: int
    records_enqueued: int
    records_dropped: int
    listener_errors: int


_logging_metrics: LoggingMetrics = LoggingMetrics()
_log_queue: Optional["queue.Queue[logging.LogRecord]"] = None
_queue_listener: Optional[QueueListener] = None


# ============================================================================
# Filters & Formatters
# ============================================================================


class ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context: Dict[str, Any] = _request_context.get({})

        record.player_id = context.get("player_id", "N/A")
        record.session_id = context.get("session_id", "N/A")
        record.correlation_id = context.get("correlation_id") or "N/A"
        record.component = context.get("component") or record.name.split(".", 1)[0]
        if not hasattr(record, "operation"):
            record.operation = context.get("operation", "N/A")

        return True


class JSONFormatter(logging.Formatter):
    STANDARD_ATTRS = {
        "name", "msg", "args", "levelname", "levelno", "pathname", "filename",
        "module", "exc_info", "exc_text", "stack_info", "lineno", "funcName",
        "created", "msecs", "relativeCreated", "thread", "threadName",
        "processName", "process", "taskName", "message", "asctime",
    }

    CONTEXT_ATTRS = {
        "player_id",
        "session_id",
        "correlation_id",
        "component",
        "operation",
    }

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
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
            if value not in (None, "N/A"):
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
# Queue Handler & Listener
# ============================================================================


class QuarryQueueHandler(QueueHandler):
    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        _logging_metrics.records_enqueued += 1
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            _logging_metrics.records_dropped += 1
            sys.stderr.write("Quarry logging queue full; dropping log record.\n")


class QuarryQueueListener(QueueListener):
    def handleError(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        _logging_metrics.listener_errors += 1
        sys.stderr.write("Quarry logging handler error while processing record.\n")


# ============================================================================
# Global Setup
# ============================================================================


def _build_console_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(LOGGER_CONFIG.log_level)
    if LOGGER_CONFIG.use_json:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(fmt=LOGGER_CONFIG.CONSOLE_FORMAT, datefmt=LOGGER_CONFIG.DATE_FORMAT)
        )
    return handler


def _build_daily_file_handler() -> logging.Handler:
    LOGGER_CONFIG.logs_dir.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        filename=str(LOGGER_CONFIG.logs_dir / LOGGER_CONFIG.DAILY_BASENAME),
        when="midnight",
        interval=1,
        backupCount=LOGGER_CONFIG.DAILY_BACKUP_COUNT,
        encoding="utf-8",
        utc=True,
    )
    handler.setLevel(LOGGER_CONFIG.log_level)
    handler.setFormatter(JSONFormatter())
    return handler


def setup_logging() -> None:
    global _queue_listener, _logging_metrics, _log_queue

    root = logging.getLogger()
    if getattr(root, "_quarry_logging_initialized", False):
        return

    _logging_metrics = LoggingMetrics()

    root.setLevel(LOGGER_CONFIG.log_level)
    root.handlers.clear()

    handlers = [_build_console_handler()]
    if LOGGER_CONFIG.is_production:
        handlers.append(_build_daily_file_handler())

    _log_queue = queue.Queue(LOGGER_CONFIG.QUEUE_MAX_SIZE)
    _queue_listener = QuarryQueueListener(_log_queue, *handlers, respect_handler_level=True)
    _queue_listener.start()

    queue_handler = QuarryQueueHandler(_log_queue)
    queue_handler.setLevel(LOGGER_CONFIG.log_level)
    # Enrich on the producer side, where the ContextVar is visible
    queue_handler.addFilter(ContextFilter())
    root.addHandler(queue_handler)

    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

    setattr(root, "_quarry_logging_initialized", True)

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "environment": LOGGER_CONFIG.environment,
            "log_level": logging.getLevelName(LOGGER_CONFIG.log_level),
            "json": LOGGER_CONFIG.use_json,
            "queue_max_size": LOGGER_CONFIG.QUEUE_MAX_SIZE,
        },
    )


def shutdown_logging() -> None:
    global _queue_listener, _log_queue

    root = logging.getLogger()
    if not getattr(root, "_quarry_logging_initialized", False):
        return

    if _queue_listener:
        _queue_listener.stop()
        for handler in _queue_listener.handlers:
            handler.flush()
            handler.close()
        _queue_listener = None

    for handler in list(root.handlers):
        if isinstance(handler, QuarryQueueHandler):
            root.removeHandler(handler)
            handler.close()

    setattr(root, "_quarry_logging_initialized", False)
    _log_queue = None


def get_logging_health() -> LoggingHealth:
    initialized = bool(getattr(logging.getLogger(), "_quarry_logging_initialized", False))
    queue_size = _log_queue.qsize() if _log_queue is not None else 0
    max_size = _log_queue.maxsize if _log_queue is not None else 0

    return LoggingHealth(
        initialized=initialized,
        queue_size=queue_size,
        queue_max_size=max_size,
        records_enqueued=_logging_metrics.records_enqueued,
        records_dropped=_logging_metrics.records_dropped,
        listener_errors=_logging_metrics.listener_errors,
    )


# ============================================================================
# Public API
# ============================================================================


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Bind request context for every log line emitted inside the block.

    >>> async with LogContext(player_id=42, operation="stop_session"):
    ...     await coordinator.stop_session(42)
    """

    def __init__(
        self,
        player_id: Optional[int] = None,
        session_id: Optional[int] = None,
        component: Optional[str] = None,
        operation: Optional[str] = None,
        correlation_id: Optional[str] = None,
        **extra: Any,
    ) -> None:
        inherited = _request_context.get({})
        self.context: Dict[str, Any] = {
            **inherited,
            "player_id": str(player_id) if player_id is not None else inherited.get("player_id", "N/A"),
            "session_id": str(session_id) if session_id is not None else inherited.get("session_id", "N/A"),
            "component": component or inherited.get("component"),
            "operation": operation or inherited.get("operation", "N/A"),
            "correlation_id": correlation_id
            or inherited.get("correlation_id")
            or self._generate_correlation_id(),
            **extra,
        }
        self._token: Optional[Token[Dict[str, Any]]] = None

    @staticmethod
    def _generate_correlation_id() -> str:
        return uuid.uuid4().hex[:8]

    def __enter__(self) -> "LogContext":
        self._token = _request_context.set(self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _request_context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def set_log_context(**fields: Any) -> None:
    current = _request_context.get({}).copy()
    for key, value in fields.items():
        if value is not None:
            current[key] = str(value) if key in {"player_id", "session_id"} else value
    _request_context.set(current)


def get_log_context() -> Dict[str, Any]:
    return dict(_request_context.get({}))


def clear_log_context() -> None:
    _request_context.set({})


# Initialize logging automatically
setup_logging()
