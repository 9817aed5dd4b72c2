#!/usr/bin/env python3
"""
Winerp Logging Configuration

Centralized logging setup for consistent formatting across the client.
Console output is coloured on a terminal; a file handler is added only when
WINERP_LOG_FILE points somewhere.

Usage:
    from winerp.shared.log import get_logger

    logger = get_logger(__name__)
    logger.info("Connecting...")
    logger.error("Request failed", extra={"local_name": "bot", "uuid": "..."})
"""

from __future__ import annotations
import logging
import sys
from pathlib import Path
from typing import Optional, Dict, Any
import os


# ========================================
#           LOGGING FORMATTERS
# ========================================

class ColoredFormatter(logging.Formatter):
    """Colored formatter for console output"""

    # ANSI Color codes
    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
        'RESET': '\033[0m'       # Reset
    }

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.COLORS['RESET']}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


class GenericFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        # Winerp context passed through extra=
        context = []

        if hasattr(record, 'local_name'):
            context.append(f"peer={record.local_name}")
        if hasattr(record, 'msg_type'):
            context.append(f"msg={record.msg_type}")
        if hasattr(record, 'route'):
            context.append(f"route={record.route}")
        if hasattr(record, 'uuid') and record.uuid:
            context.append(f"uuid={str(record.uuid)[:8]}...")

        formatted = super().format(record)
        if context:
            return f"[{' '.join(context)}] {formatted}"
        return formatted


# ========================================
#           LOGGING CONFIGURATION
# ========================================

_loggers_configured = set()

def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Get a configured logger for the given module.

    Args:
        name: Usually __name__ from the calling module
        level: Override log level ("DEBUG", "INFO", "WARNING", "ERROR")

    Returns:
        Configured logger instance

    Examples:
        logger = get_logger(__name__)
        logger.info("Client starting")

        # With context
        logger.warning("Dropped frame", extra={
            "local_name": "dashboard",
            "msg_type": "RESPONSE",
            "uuid": "0b6f...",
        })
    """
    logger = logging.getLogger(name)

    # Only configure each logger once
    if name not in _loggers_configured:
        _configure_logger(logger, level)
        _loggers_configured.add(name)

    return logger


def _configure_logger(logger: logging.Logger, level: Optional[str] = None) -> None:
    """Configure a logger with appropriate handlers and formatters"""

    logger.setLevel(_get_log_level(level))

    # Clear existing handlers to avoid duplicates
    logger.handlers.clear()

    _add_console_handler(logger, colored=_is_development())
    if os.getenv('WINERP_LOG_FILE'):
        _add_file_handler(logger, Path(os.environ['WINERP_LOG_FILE']))

    # Prevent duplicate messages from parent loggers
    logger.propagate = False


def _get_log_level(level: Optional[str] = None) -> int:
    """Determine appropriate log level"""

    level = level or os.getenv('WINERP_LOG_LEVEL')
    if level:
        return getattr(logging, level.upper(), logging.INFO)

    return logging.DEBUG if _is_development() else logging.INFO


def _is_development() -> bool:
    """Detect if we're in development mode"""
    return os.getenv('PYTHON_ENV', '').lower() in ['dev', 'development']


def _add_console_handler(logger: logging.Logger, colored: bool = True) -> None:
    """Add console handler with appropriate formatter"""

    fmt = '[%(levelname)-8s][%(asctime)s][%(name)-5s]: %(message)s'
    handler = logging.StreamHandler(sys.stdout)

    if colored and _supports_color():
        formatter = ColoredFormatter(
            fmt=fmt,
            datefmt='%H:%M:%S'
        )
    else:
        formatter = GenericFormatter(
            fmt=fmt,
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)


def _add_file_handler(logger: logging.Logger, log_file: Path) -> None:
    """Add file handler writing to log_file"""

    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file)

    formatter = GenericFormatter(
        fmt='%(asctime)s | %(name)-30s | %(levelname)-8s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    handler.setFormatter(formatter)
    logger.addHandler(handler)


def _supports_color() -> bool:
    """Check if terminal supports color output"""

    # stdout must be a terminal
    if not (hasattr(sys.stdout, "isatty") and sys.stdout.isatty()):
        return False

    # TERM should not be dumb
    if os.getenv("TERM", "") == "dumb":
        return False

    if sys.platform == "win32":
        return os.getenv("ANSICON") is not None or os.getenv("WT_SESSION") is not None or os.getenv("TERM_PROGRAM") == "vscode" or "WindowsTerminal" in os.getenv("TERM", "")

    return True

# ========================================
#           CONVENIENCE FUNCTIONS
# ========================================

def log_winerp_message(logger: logging.Logger, level: str, message: str,
                       envelope: Optional[Any] = None,
                       **context: Any) -> None:
    """
    Log a Winerp protocol message with structured context.

    Args:
        logger: Logger instance
        level: Log level ("debug", "info", "warning", "error")
        message: Log message
        envelope: Envelope (or its dict form) for automatic context extraction
        **context: Additional context fields

    Example:
        log_winerp_message(logger, "debug", "Dispatching request",
                           envelope=env, local_name="bot")
    """

    extra_context: Dict[str, Any] = {}

    if envelope is not None:
        if isinstance(envelope, dict):
            fields = envelope
        else:
            fields = envelope.to_dict()
            fields["type"] = envelope.type
        msg_type = fields.get('type')
        extra_context.update({
            'msg_type': getattr(msg_type, 'name', msg_type),
            'uuid': fields.get('uuid'),
        })
        if fields.get('route') is not None:
            extra_context['route'] = fields.get('route')

    extra_context.update(context)

    log_func = getattr(logger, level.lower())
    log_func(message, extra=extra_context)
