"""
Logging Configuration and Setup Utilities

Structured (JSON) logging for the conversation context manager. The session
currently being processed is tracked in a context variable so every record
emitted while handling a turn carries its session id.
"""

import contextlib
import contextvars
import json
import logging
import logging.config
import os
import traceback
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Union

# Session ID context variable (set while a session is being processed)
session_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    'session_id', default=None
)


class LogFormat(Enum):
    """Available log formats."""
    JSON = "json"
    PLAIN = "plain"
    COLORED = "colored"


class LogOutput(Enum):
    """Available log outputs."""
    CONSOLE = "console"
    FILE = "file"
    BOTH = "both"


@dataclass
class LoggingConfig:
    """Configuration for logging setup."""
    level: str = "INFO"
    format_type: LogFormat = LogFormat.JSON
    output: LogOutput = LogOutput.CONSOLE
    log_file: Optional[str] = None
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5
    include_traceback: bool = True
    include_extra: bool = True
    console_colors: bool = True


class StructuredJSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def __init__(
        self,
        include_extra: bool = True,
        include_traceback: bool = True,
        sort_keys: bool = True
    ):
        super().__init__()
        self.include_extra = include_extra
        self.include_traceback = include_traceback
        self.sort_keys = sort_keys

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON."""
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line_number": record.lineno,
            "process_id": os.getpid(),
        }

        session_id = session_id_var.get()
        if session_id:
            payload["session_id"] = session_id

        if self.include_extra and hasattr(record, 'extra_data'):
            payload["extra_data"] = record.extra_data

        if record.exc_info and self.include_traceback:
            payload["error_details"] = {
                "exception_type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "exception_message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info)
            }

        return json.dumps(payload, default=str, ensure_ascii=False, sort_keys=self.sort_keys)


class ColoredFormatter(logging.Formatter):
    """Colored formatter for console output."""

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, '')
        reset = self.COLORS['RESET']
        formatted = super().format(record)
        return formatted.replace(record.levelname, f"{color}{record.levelname}{reset}", 1)


PLAIN_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
PACKAGE_LOGGER = 'conversation_context'


def build_logging_config(config: LoggingConfig) -> Dict[str, Any]:
    """Build a ``logging.config.dictConfig`` dictionary from a LoggingConfig."""
    formatters: Dict[str, Any] = {
        'json': {
            '()': StructuredJSONFormatter,
            'include_extra': config.include_extra,
            'include_traceback': config.include_traceback,
        },
        'colored': {
            '()': ColoredFormatter,
            'format': PLAIN_FORMAT,
            'datefmt': DATE_FORMAT,
        },
        'plain': {
            'format': PLAIN_FORMAT,
            'datefmt': DATE_FORMAT,
        },
    }

    if config.format_type == LogFormat.JSON:
        console_formatter = 'json'
    elif config.format_type == LogFormat.COLORED and config.console_colors:
        console_formatter = 'colored'
    else:
        console_formatter = 'plain'

    handlers: Dict[str, Any] = {}

    if config.output in (LogOutput.CONSOLE, LogOutput.BOTH):
        handlers['console'] = {
            'class': 'logging.StreamHandler',
            'level': config.level,
            'formatter': console_formatter,
            'stream': 'ext://sys.stdout',
        }

    if config.output in (LogOutput.FILE, LogOutput.BOTH):
        log_file = config.log_file or str(Path("logs") / "conversation_context.log")
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers['file'] = {
            'class': 'logging.handlers.RotatingFileHandler',
            'level': config.level,
            'formatter': 'json' if config.format_type == LogFormat.JSON else 'plain',
            'filename': log_file,
            'maxBytes': config.max_file_size,
            'backupCount': config.backup_count,
            'encoding': 'utf-8',
        }

    return {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': formatters,
        'handlers': handlers,
        'loggers': {
            PACKAGE_LOGGER: {'level': config.level},
            # Third-party library loggers (reduce noise)
            'redis': {'level': 'WARNING'},
            'asyncio': {'level': 'WARNING'},
        },
        'root': {
            'level': config.level,
            'handlers': list(handlers),
        },
    }


def setup_logging(
    level: str = "INFO",
    format_type: Union[str, LogFormat] = LogFormat.JSON,
    output: Union[str, LogOutput] = LogOutput.CONSOLE,
    log_file: Optional[str] = None,
    **kwargs
) -> LoggingConfig:
    """Convenience function to setup structured logging."""
    if isinstance(format_type, str):
        format_type = LogFormat(format_type.lower())
    if isinstance(output, str):
        output = LogOutput(output.lower())

    config = LoggingConfig(
        level=level.upper(),
        format_type=format_type,
        output=output,
        log_file=log_file,
        **kwargs
    )

    logging.config.dictConfig(build_logging_config(config))
    logging.getLogger(__name__).info(
        "Structured logging configured",
        extra={'extra_data': {'format': config.format_type.value, 'output': config.output.value}}
    )
    return config


@contextlib.contextmanager
def session_logging_context(session_id: str) -> Iterator[None]:
    """Tag every log record emitted inside the block with ``session_id``."""
    token = session_id_var.set(session_id)
    try:
        yield
    finally:
        session_id_var.reset(token)




def apply_log_level(level: Union[str, int]) -> None:
    """Set the level of the package logger without touching handlers."""
    if isinstance(level, str):
        level = level.upper()
    logging.getLogger(PACKAGE_LOGGER).setLevel(level)
