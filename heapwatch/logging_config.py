"""
Logging Configuration for heapwatch.

Provides centralized logging setup with a verbose toggle, optional log file
and structured (JSON lines) output.

Usage:
    from heapwatch.logging_config import setup_logging, get_logger

    # Setup once at startup
    setup_logging(verbose=True)

    logger = get_logger('heapwatch.sampler')
    logger.info("Sampler started")
"""

import os
import sys
import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any
from dataclasses import dataclass, field

from .constants import env_flag, ENV_PREFIX


# Custom level between DEBUG and INFO for per-tick chatter
VERBOSE = 15
logging.addLevelName(VERBOSE, 'VERBOSE')


# =============================================================================
# THREAD-SAFE CONFIGURATION STATE
# =============================================================================

@dataclass
class LoggingState:
    """Thread-safe logging configuration state."""
    verbose: bool = False
    log_file: Optional[str] = None
    console_enabled: bool = True
    json_format: bool = False
    initialized: bool = False
    _lock: threading.RLock = field(default_factory=threading.RLock)


_state = LoggingState()


# =============================================================================
# CUSTOM FORMATTER
# =============================================================================

class HeapwatchFormatter(logging.Formatter):
    """Formatter with color support and structured output."""

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'VERBOSE': '\033[94m',    # Light blue
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33;1m',  # Bold yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[31;1m', # Bold red
        'RESET': '\033[0m',
    }

    def __init__(self, use_colors: bool = True, json_format: bool = False):
        self.use_colors = use_colors and sys.stdout.isatty()
        self.json_format = json_format
        super().__init__()

    def format(self, record: logging.LogRecord) -> str:
        if self.json_format:
            return self._format_json(record)
        return self._format_text(record)

    def _format_text(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]
        level_name = record.levelname

        if self.use_colors:
            color = self.COLORS.get(level_name, '')
            reset = self.COLORS['RESET']
            level_str = f"{color}{level_name:8}{reset}"
        else:
            level_str = f"{level_name:8}"

        component = self._extract_component(record.name)
        msg = record.getMessage()

        extra_str = ""
        if hasattr(record, 'extra_data') and record.extra_data:
            extra_items = [f"{k}={v}" for k, v in record.extra_data.items()]
            extra_str = f" | {', '.join(extra_items)}"

        text = f"{timestamp} {level_str} [{component}] {msg}{extra_str}"
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        return text

    def _format_json(self, record: logging.LogRecord) -> str:
        data = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'component': self._extract_component(record.name),
            'message': record.getMessage(),
        }

        if hasattr(record, 'extra_data') and record.extra_data:
            data['extra'] = record.extra_data

        if record.exc_info:
            data['exception'] = self.formatException(record.exc_info)

        return json.dumps(data, default=str)

    def _extract_component(self, logger_name: str) -> str:
        """heapwatch.sampler -> sampler"""
        parts = logger_name.split('.')
        if len(parts) >= 2 and parts[0] == 'heapwatch':
            return parts[-1]
        return parts[0] if parts and parts[0] else 'core'


# =============================================================================
# SETUP AND CONFIGURATION
# =============================================================================

def setup_logging(
    verbose: bool = False,
    log_file: Optional[str] = None,
    console: bool = True,
    json_format: bool = False,
) -> None:
    """
    Initialize the logging system.

    Args:
        verbose: Enable verbose logging (VERBOSE level)
        log_file: Optional file path for log output
        console: Enable console output
        json_format: Use JSON format for logs
    """
    with _state._lock:
        _state.verbose = verbose
        _state.log_file = log_file
        _state.console_enabled = console
        _state.json_format = json_format

        base_level = VERBOSE if verbose else logging.INFO

        root = logging.getLogger()
        root.setLevel(base_level)

        for handler in root.handlers[:]:
            root.removeHandler(handler)

        # Console goes to stderr so the report summary on stdout stays clean
        if console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(base_level)
            console_handler.setFormatter(HeapwatchFormatter(
                use_colors=True,
                json_format=json_format
            ))
            root.addHandler(console_handler)

        if log_file:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(base_level)
            file_handler.setFormatter(HeapwatchFormatter(
                use_colors=False,
                json_format=json_format
            ))
            root.addHandler(file_handler)

        _state.initialized = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the heapwatch namespace."""
    if not name.startswith('heapwatch'):
        name = f"heapwatch.{name}"
    return logging.getLogger(name)


def set_verbose(enabled: bool) -> None:
    """Toggle verbose mode at runtime."""
    with _state._lock:
        _state.verbose = enabled
        level = VERBOSE if enabled else logging.INFO

        root = logging.getLogger()
        root.setLevel(level)

        for handler in root.handlers:
            handler.setLevel(level)


def is_verbose() -> bool:
    """Check if verbose mode is enabled."""
    return _state.verbose


def get_logging_state() -> Dict[str, Any]:
    """Get current logging configuration state."""
    with _state._lock:
        return {
            'verbose': _state.verbose,
            'log_file': _state.log_file,
            'console_enabled': _state.console_enabled,
            'json_format': _state.json_format,
            'initialized': _state.initialized,
        }


# =============================================================================
# ENVIRONMENT VARIABLE CONFIGURATION
# =============================================================================

def configure_from_environment(
    verbose: bool = False,
    log_file: Optional[str] = None,
    json_format: bool = False,
) -> None:
    """
    Configure logging from HEAPWATCH_* environment variables.

    Explicit arguments win over the environment.
    """
    setup_logging(
        verbose=verbose or env_flag('VERBOSE'),
        log_file=log_file or os.environ.get(f'{ENV_PREFIX}LOG_FILE'),
        console=not env_flag('LOG_NO_CONSOLE'),
        json_format=json_format or env_flag('LOG_JSON'),
    )


__all__ = [
    'VERBOSE',
    'HeapwatchFormatter',
    'setup_logging',
    'configure_from_environment',
    'get_logger',
    'set_verbose',
    'is_verbose',
    'get_logging_state',
]
