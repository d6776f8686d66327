"""
Snowman Attribution - Structured Logging
JSON or console logging with open-window context.
"""

import sys
import logging
import json
from datetime import datetime
from typing import Optional, Tuple
from contextvars import ContextVar, Token

# Context variables for window tracking
_window_id: ContextVar[Optional[str]] = ContextVar('window_id', default=None)
_trigger_source: ContextVar[Optional[str]] = ContextVar('trigger_source', default=None)

# LogRecord attributes that are not user-supplied extras
_RESERVED_ATTRS = {
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'pathname', 'process', 'processName', 'relativeCreated',
    'stack_info', 'exc_info', 'exc_text', 'thread', 'threadName',
    'message', 'taskName'
}


def get_window_id() -> Optional[str]:
    return _window_id.get()


WindowTokens = Tuple[Token, Token]


def set_window_context(window_id: Optional[str], trigger_source: Optional[str] = None) -> WindowTokens:
    """Bind the current open window to every record logged from this context."""
    return _window_id.set(window_id), _trigger_source.set(trigger_source)


def reset_window_context(tokens: WindowTokens):
    """Restore the window context that was active before ``set_window_context``."""
    window_token, source_token = tokens
    _window_id.reset(window_token)
    _trigger_source.reset(source_token)


class StructuredFormatter(logging.Formatter):
    """
    JSON structured log formatter.
    """

    def __init__(self, include_extras: bool = True):
        super().__init__()
        self.include_extras = include_extras

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        log_data["location"] = {
            "file": record.filename,
            "line": record.lineno,
            "function": record.funcName
        }

        window_id = get_window_id()
        if window_id:
            log_data["window_id"] = window_id

        trigger_source = _trigger_source.get()
        if trigger_source:
            log_data["trigger_source"] = trigger_source

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self.include_extras:
            extras = {
                k: v for k, v in record.__dict__.items()
                if k not in _RESERVED_ATTRS
            }
            if extras:
                log_data["extra"] = extras

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable console formatter with colors.
    """

    COLORS = {
        'DEBUG': '\033[36m',    # Cyan
        'INFO': '\033[32m',     # Green
        'WARNING': '\033[33m',  # Yellow
        'ERROR': '\033[31m',    # Red
        'CRITICAL': '\033[35m', # Magenta
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, '')
        timestamp = datetime.utcnow().strftime('%Y-%m-%d %H:%M:%S')

        msg = f"{color}{timestamp} [{record.levelname:8}]{self.RESET} {record.getMessage()}"

        window_id = get_window_id()
        if window_id:
            msg = f"{msg} [win:{window_id[:8]}]"

        if record.exc_info:
            msg += f"\n{self.formatException(record.exc_info)}"

        return msg


class AttributionLogger:
    """
    Structured logger wrapper that accepts keyword extras.
    """

    def __init__(self, name: str):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, message: str, **kwargs):
        self._logger.log(level, message, extra=kwargs)

    def api_call(self, service: str, method: str, duration_ms: int, status: str, **kwargs):
        self._log(logging.INFO, "API call", service=service, method=method,
                  duration_ms=duration_ms, status=status, **kwargs)


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    include_extras: bool = True
):
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Use JSON format (for production)
        include_extras: Include extra fields in JSON output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)

    if json_output:
        handler.setFormatter(StructuredFormatter(include_extras=include_extras))
    else:
        handler.setFormatter(ConsoleFormatter())

    root_logger.addHandler(handler)

    # Reduce noise from the HTTP stack
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str) -> AttributionLogger:
    """Get a structured logger instance."""
    return AttributionLogger(name)
