"""
Logging configuration for the NoteCollab client.
"""
import json
import logging
import logging.config
import sys
import time
from datetime import datetime, timezone
from typing import Optional

import httpx

from ..config import get_settings

_RESERVED_ATTRS = frozenset((
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename', 'module',
    'exc_info', 'exc_text', 'stack_info', 'lineno', 'funcName', 'created', 'msecs',
    'relativeCreated', 'thread', 'threadName', 'processName', 'process', 'getMessage',
    'taskName', 'message', 'asctime',
))


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if record.exc_info:
            log_entry['exception'] = {
                'type': record.exc_info[0].__name__ if record.exc_info[0] else None,
                'message': str(record.exc_info[1]) if record.exc_info[1] else None,
                'traceback': self.formatException(record.exc_info),
            }

        # Add extra fields
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_entry.setdefault('extra', {})[key] = value

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class ColoredFormatter(logging.Formatter):
    """Colored formatter for console output."""

    COLORS = {
        'DEBUG': '\033[36m',    # Cyan
        'INFO': '\033[32m',     # Green
        'WARNING': '\033[33m',  # Yellow
        'ERROR': '\033[31m',    # Red
        'CRITICAL': '\033[35m', # Magenta
    }
    RESET = '\033[0m'
    BOLD = '\033[1m'

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors, leaving the record itself untouched."""
        color = self.COLORS.get(record.levelname, '')
        original_levelname, original_name = record.levelname, record.name
        record.levelname = f"{color}{self.BOLD}{record.levelname}{self.RESET}"
        record.name = f"\033[90m{record.name}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname, record.name = original_levelname, original_name


def get_log_level(level_str: Optional[str] = None) -> int:
    """Get log level from string or settings."""
    settings = get_settings()
    level_str = level_str or settings.log_level

    levels = {
        'CRITICAL': logging.CRITICAL,
        'ERROR': logging.ERROR,
        'WARNING': logging.WARNING,
        'INFO': logging.INFO,
        'DEBUG': logging.DEBUG,
    }

    return levels.get(level_str.upper(), logging.INFO)


def build_logging_config(log_file: Optional[str] = None) -> dict:
    """Build the dictConfig mapping used by setup_logging."""
    settings = get_settings()
    log_file = log_file or settings.log_file

    handlers = {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'colored' if settings.debug else 'json',
            'stream': sys.stdout,
            'level': get_log_level(),
        },
    }
    if log_file:
        handlers['file'] = {
            'class': 'logging.handlers.RotatingFileHandler',
            'filename': log_file,
            'maxBytes': 10_000_000,  # 10MB
            'backupCount': 5,
            'formatter': 'file',
            'level': 'DEBUG',
        }

    return {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'json': {
                '()': JSONFormatter,
            },
            'colored': {
                '()': ColoredFormatter,
                'format': '%(asctime)s | %(levelname)s | %(name)s | %(message)s',
                'datefmt': '%Y-%m-%d %H:%M:%S',
            },
            'file': {
                'format': '%(asctime)s | %(levelname)-8s | %(name)-25s | %(funcName)-20s:%(lineno)-4d | %(message)s',
                'datefmt': '%Y-%m-%d %H:%M:%S',
            },
        },
        'handlers': handlers,
        'loggers': {
            'notecollab': {
                'handlers': list(handlers),
                'level': 'DEBUG',
                'propagate': False,
            },
            'httpx': {
                'handlers': ['console'],
                'level': 'WARNING',
                'propagate': False,
            },
        },
    }


def setup_logging(log_file: Optional[str] = None) -> None:
    """Setup logging for applications embedding the client."""
    settings = get_settings()
    logging.config.dictConfig(build_logging_config(log_file))

    logger = get_logger('logging')
    logger.info("Logging system initialized", extra={
        'log_level': settings.log_level,
        'debug': settings.debug,
        'environment': settings.environment,
    })


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name."""
    return logging.getLogger(f"notecollab.{name}")


# request extension holding the monotonic send time
REQUEST_STARTED_KEY = 'notecollab.started_at'


class HttpLoggingHooks:
    """httpx event hooks logging every round trip to the note service."""

    def __init__(self, logger_name: str = "http"):
        self.logger = get_logger(logger_name)

    async def on_request(self, request: httpx.Request) -> None:
        request.extensions[REQUEST_STARTED_KEY] = time.monotonic()
        self.logger.debug("HTTP Request", extra={
            'method': request.method,
            'path': request.url.path,
        })

    async def on_response(self, response: httpx.Response) -> None:
        request = response.request
        started = request.extensions.get(REQUEST_STARTED_KEY)
        duration = (time.monotonic() - started) * 1000 if started is not None else None

        level = logging.WARNING if response.status_code >= 400 else logging.DEBUG
        self.logger.log(level, "HTTP Response", extra={
            'method': request.method,
            'path': request.url.path,
            'status_code': response.status_code,
            'duration_ms': round(duration, 2) if duration is not None else None,
        })

    def as_event_hooks(self) -> dict:
        return {'request': [self.on_request], 'response': [self.on_response]}
