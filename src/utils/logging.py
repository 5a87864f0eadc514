# ============================================================================
# src/utils/logging.py
# ============================================================================
"""
Logging setup for the lab extraction engine.

Records emitted while a report is processed carry its document context
(source_file, stage, ...) via LogContext, so interleaved async
extractions stay attributable in JSON logs.
"""

import asyncio
import functools
import json
import logging
import sys
import time
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, TextIO

_document_context: ContextVar[Dict[str, Any]] = ContextVar("document_context", default={})

_PLAIN_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class DocumentContextFilter(logging.Filter):
    """Copies the active LogContext fields onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = _document_context.get()
        for key, value in context.items():
            setattr(record, key, value)
        record.document_context = dict(context)
        return True


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    format_json: bool = False,
    stream: Optional[TextIO] = None
) -> None:
    """
    Configure the root logger.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Also write records to this file
        format_json: One JSON object per line instead of plain text
        stream: Console stream (default stdout)
    """
    formatter = JsonFormatter() if format_json else logging.Formatter(_PLAIN_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')
    context_filter = DocumentContextFilter()

    handlers = [logging.StreamHandler(stream or sys.stdout)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(context_filter)

    logging.basicConfig(level=getattr(logging, level.upper()), handlers=handlers, force=True)


class JsonFormatter(logging.Formatter):
    """Formats a record as a single JSON line, document context included."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'function': record.funcName,
            'line': record.lineno,
        }
        payload.update(getattr(record, 'document_context', None) or _document_context.get())

        if record.exc_info:
            payload['exception'] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Attach document fields to every record logged inside the block.

    Nested contexts merge; the previous context is restored on exit.
    The logger argument names the block's owner and receives the
    enter/exit debug lines.

    Example:
        with LogContext(logger, source_file="report.pdf"):
            draft = await pipeline.extract(path)
    """

    def __init__(self, logger: logging.Logger, **context):
        self.logger = logger
        self.context = context
        self._token = None

    def __enter__(self):
        self._token = _document_context.set({**_document_context.get(), **self.context})
        self.logger.debug(f"Entering context {self.context}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.logger.debug(f"Leaving context {self.context}")
        _document_context.reset(self._token)


def _log_duration(logger: logging.Logger, operation: str, started: float, error: Optional[Exception] = None):
    elapsed = time.perf_counter() - started
    if error is not None:
        logger.error(f"{operation} failed after {elapsed:.3f}s: {error}")
    else:
        logger.info(f"{operation} completed in {elapsed:.3f}s")


def log_performance(logger: logging.Logger, operation: str):
    """
    Decorator that logs how long a function or coroutine took.

    Args:
        logger: Logger receiving the timing line
        operation: Name used in the message
    """
    def decorator(func):
        if asyncio.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                started = time.perf_counter()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _log_duration(logger, operation, started, e)
                    raise
                _log_duration(logger, operation, started)
                return result

            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _log_duration(logger, operation, started, e)
                raise
            _log_duration(logger, operation, started)
            return result

        return wrapper
    return decorator
