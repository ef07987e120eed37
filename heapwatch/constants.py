"""
Centralized Constants Module for heapwatch.

Consolidates the default sampling settings, threshold ceilings, leak
heuristic tuning and report bounds used throughout the profiler so that the
numeric conventions of the JSON report stay in one place.

Usage:
    from heapwatch.constants import Defaults, LeakDetection, ReportLimits

    interval = Defaults.INTERVAL_MS
    window = LeakDetection.WINDOW_SIZE
"""

import os
import logging
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

ENV_PREFIX = "HEAPWATCH_"

KIB = 1024
MIB = 1024 * 1024
GIB = 1024 * 1024 * 1024


# =============================================================================
# ENVIRONMENT VARIABLE OVERRIDE UTILITIES
# =============================================================================

T = TypeVar('T')


def env_override(
    env_var: str,
    default: T,
    converter: Callable[[str], T] = str,
    validator: Optional[Callable[[T], bool]] = None,
    min_value: Optional[T] = None,
    max_value: Optional[T] = None,
) -> T:
    """Get a configuration value with environment variable override.

    Invalid values are logged and ignored, never raised.

    Args:
        env_var: Environment variable name (will be prefixed with HEAPWATCH_)
        default: Default value if env var not set
        converter: Function to convert string to target type
        validator: Optional validation function
        min_value: Optional minimum allowed value
        max_value: Optional maximum allowed value

    Returns:
        Configured value (from env var if valid, otherwise default)
    """
    full_env_var = f"{ENV_PREFIX}{env_var}"
    env_value = os.environ.get(full_env_var)

    if env_value is None:
        return default

    try:
        converted = converter(env_value)

        if min_value is not None and converted < min_value:
            logger.warning(
                f"{full_env_var}={env_value} below minimum {min_value}, using default"
            )
            return default
        if max_value is not None and converted > max_value:
            logger.warning(
                f"{full_env_var}={env_value} above maximum {max_value}, using default"
            )
            return default

        if validator is not None and not validator(converted):
            logger.warning(f"{full_env_var}={env_value} failed validation, using default")
            return default

        logger.info(f"Using {full_env_var}={converted} (override)")
        return converted

    except (ValueError, TypeError) as e:
        logger.warning(f"Invalid value for {full_env_var}: {e}, using default")
        return default


def env_flag(env_var: str) -> bool:
    """True when HEAPWATCH_<env_var> is set to 1/true/yes."""
    return os.environ.get(f"{ENV_PREFIX}{env_var}", '').lower() in ('1', 'true', 'yes')


# =============================================================================
# SAMPLING DEFAULTS
# =============================================================================

@dataclass(frozen=True)
class Defaults:
    """Default profiler settings."""
    INTERVAL_MS: int = 1000                 # 1 second between samples
    DURATION_MS: int = 300000               # 5 minute run
    OUTPUT_FILE: str = "memory-profile-report.json"

    # Threshold ceilings
    HEAP_USED_BYTES: int = 500 * MIB
    RSS_BYTES: int = 1 * GIB
    EXTERNAL_BYTES: int = 100 * MIB
    GROWTH_RATE_BYTES_PER_SEC: float = 0.1 * MIB   # 104857.6 B/s


# =============================================================================
# LEAK HEURISTIC
# =============================================================================

@dataclass(frozen=True)
class LeakDetection:
    """Tuning for the sliding-window leak heuristic."""
    WINDOW_SIZE: int = 20                   # Most recent snapshots analyzed
    MIN_SAMPLES: int = 10                   # Below this: insufficient data
    RATE_THRESHOLD_BYTES_PER_SEC: float = 1 * MIB
    CONSISTENCY_THRESHOLD: float = 0.7      # Share of intervals that grew


# =============================================================================
# REPORT BOUNDS
# =============================================================================

@dataclass(frozen=True)
class ReportLimits:
    """Bounds on the raw data carried by a report."""
    MAX_VIOLATIONS: int = 20
    MAX_SNAPSHOTS: int = 100
    MAX_GC_EVENTS_SUMMARY: int = 10
    GC_PAUSE_WARNING_MS: float = 100.0


@dataclass(frozen=True)
class Timeouts:
    """Thread coordination timeouts in seconds."""
    THREAD_JOIN_DEFAULT: float = 5.0


__all__ = [
    'ENV_PREFIX',
    'KIB',
    'MIB',
    'GIB',
    'env_override',
    'env_flag',
    'Defaults',
    'LeakDetection',
    'ReportLimits',
    'Timeouts',
]
