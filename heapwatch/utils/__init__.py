"""
Utility modules for heapwatch.

Provides common utilities including:
- Error handling with contextual logging and deduplication
- Byte/rate formatting for reports
"""

from .error_handling import (
    ErrorCategory,
    ErrorSeverity,
    ErrorContext,
    ErrorAggregator,
    get_error_aggregator,
    handle_error,
    safe_execute,
    determine_severity,
)
from .formatting import format_bytes, format_rate, format_percent

__all__ = [
    # Error handling
    'ErrorCategory',
    'ErrorSeverity',
    'ErrorContext',
    'ErrorAggregator',
    'get_error_aggregator',
    'handle_error',
    'safe_execute',
    'determine_severity',
    # Formatting
    'format_bytes',
    'format_rate',
    'format_percent',
]
