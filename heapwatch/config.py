"""
Profiler Configuration

Sources, lowest to highest precedence:
1. Built-in defaults (heapwatch.constants.Defaults)
2. HEAPWATCH_* environment variables
3. A JSON or YAML configuration file
4. Explicit overrides (CLI arguments)

File keys may be snake_case (interval_ms) or the camelCase option names
used by the report (intervalMs, heapUsedThreshold, ...).
"""

import json
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .constants import Defaults, env_override
from .exceptions import ConfigError
from .thresholds import ThresholdConfig

logger = logging.getLogger(__name__)


# Accepted spellings for each field
_FIELD_ALIASES = {
    'interval_ms': ('interval_ms', 'intervalMs', 'interval'),
    'duration_ms': ('duration_ms', 'durationMs', 'duration'),
    'output_file': ('output_file', 'outputFile'),
    'gc_monitoring': ('gc_monitoring', 'gcMonitoring'),
    'trace_python_heap': ('trace_python_heap', 'tracePythonHeap'),
}

_THRESHOLD_ALIASES = {
    'heap_used_bytes': ('heap_used_bytes', 'heapUsedBytes', 'heapUsed'),
    'rss_bytes': ('rss_bytes', 'rssBytes', 'rss'),
    'external_bytes': ('external_bytes', 'externalBytes', 'external'),
    'growth_rate_bytes_per_sec': ('growth_rate_bytes_per_sec', 'growthRateBytesPerSec', 'growthRate'),
}

# Flat top-level spellings of the thresholds
_FLAT_THRESHOLD_ALIASES = {
    'heap_used_bytes': ('heap_used_bytes', 'heapUsedThreshold'),
    'rss_bytes': ('rss_bytes', 'rssThreshold'),
    'external_bytes': ('external_bytes', 'externalThreshold'),
    'growth_rate_bytes_per_sec': ('growth_rate_bytes_per_sec', 'growthRateThreshold'),
}


@dataclass(frozen=True)
class ProfilerConfig:
    """Settings for one profiling run"""
    interval_ms: int = Defaults.INTERVAL_MS
    duration_ms: int = Defaults.DURATION_MS
    output_file: str = Defaults.OUTPUT_FILE
    thresholds: ThresholdConfig = field(default_factory=ThresholdConfig)
    gc_monitoring: bool = True
    trace_python_heap: bool = True

    @property
    def interval_seconds(self) -> float:
        return self.interval_ms / 1000

    @property
    def duration_seconds(self) -> float:
        return self.duration_ms / 1000

    def validate(self) -> 'ProfilerConfig':
        """Raise ConfigError if any setting is out of range; return self."""
        if self.interval_ms <= 0:
            raise ConfigError(f"interval_ms must be positive, got {self.interval_ms}")
        if self.duration_ms <= 0:
            raise ConfigError(f"duration_ms must be positive, got {self.duration_ms}")
        if not self.output_file:
            raise ConfigError("output_file must not be empty")
        for name, value in self.thresholds.to_dict().items():
            if value < 0:
                raise ConfigError(f"threshold {name} must not be negative, got {value}")
        return self

    def with_overrides(self, **overrides: Any) -> 'ProfilerConfig':
        """
        Copy with the given non-None fields replaced. Threshold fields
        (heap_used_bytes, ...) may be passed at top level.
        """
        threshold_updates = {
            key: overrides.pop(key) for key in list(overrides)
            if key in _THRESHOLD_ALIASES and overrides[key] is not None
        }
        updates = {k: v for k, v in overrides.items() if v is not None}
        if threshold_updates:
            updates['thresholds'] = replace(self.thresholds, **threshold_updates)
        return replace(self, **updates)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'intervalMs': self.interval_ms,
            'durationMs': self.duration_ms,
            'outputFile': self.output_file,
            'thresholds': self.thresholds.to_dict(),
            'gcMonitoring': self.gc_monitoring,
            'tracePythonHeap': self.trace_python_heap,
        }

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    @classmethod
    def from_env(cls, base: Optional['ProfilerConfig'] = None) -> 'ProfilerConfig':
        """Apply HEAPWATCH_* environment overrides on top of base (or defaults)."""
        base = base or cls()
        t = base.thresholds
        return base.with_overrides(
            interval_ms=env_override('INTERVAL_MS', base.interval_ms, int, min_value=1),
            duration_ms=env_override('DURATION_MS', base.duration_ms, int, min_value=1),
            output_file=env_override('OUTPUT_FILE', base.output_file, str, validator=bool),
            heap_used_bytes=env_override('HEAP_THRESHOLD', t.heap_used_bytes, float, min_value=0),
            rss_bytes=env_override('RSS_THRESHOLD', t.rss_bytes, float, min_value=0),
            external_bytes=env_override('EXTERNAL_THRESHOLD', t.external_bytes, float, min_value=0),
            growth_rate_bytes_per_sec=env_override(
                'GROWTH_RATE_THRESHOLD', t.growth_rate_bytes_per_sec, float, min_value=0
            ),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base: Optional['ProfilerConfig'] = None) -> 'ProfilerConfig':
        """Build a config from a mapping, applied on top of base (or defaults)."""
        base = base or cls()
        if not isinstance(data, dict):
            raise ConfigError(f"Configuration must be a mapping, got {type(data).__name__}")

        overrides: Dict[str, Any] = {}
        for name, aliases in _FIELD_ALIASES.items():
            value = _first_present(data, aliases)
            if value is not None:
                overrides[name] = value

        threshold_data = data.get('thresholds') or {}
        if not isinstance(threshold_data, dict):
            raise ConfigError("'thresholds' must be a mapping")
        for name, aliases in _THRESHOLD_ALIASES.items():
            # Nested thresholds win over flat top-level keys
            value = _first_present(threshold_data, aliases)
            if value is None:
                value = _first_present(data, _FLAT_THRESHOLD_ALIASES[name])
            if value is not None:
                overrides[name] = value

        try:
            coerced = {
                key: _coerce(key, value) for key, value in overrides.items()
            }
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration value: {e}") from e

        return base.with_overrides(**coerced)

    @classmethod
    def from_file(cls, path: Union[str, Path], base: Optional['ProfilerConfig'] = None) -> 'ProfilerConfig':
        """Load a JSON or YAML configuration file."""
        path = Path(path)
        try:
            content = path.read_text(encoding='utf-8')
        except OSError as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e

        try:
            if path.suffix.lower() in {'.yaml', '.yml'}:
                data = yaml.safe_load(content) or {}
            else:
                data = json.loads(content) if content.strip() else {}
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigError(f"Cannot parse config file {path}: {e}") from e

        logger.info(f"Loaded configuration from {path}")
        return cls.from_dict(data, base=base)


def _first_present(data: Dict[str, Any], keys) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _coerce(name: str, value: Any) -> Any:
    if name in ('interval_ms', 'duration_ms'):
        return int(value)
    if name == 'output_file':
        return str(value)
    if name in ('gc_monitoring', 'trace_python_heap'):
        if isinstance(value, str):
            return value.lower() in ('1', 'true', 'yes', 'on')
        return bool(value)
    return float(value)


def load_config(
    config_file: Optional[Union[str, Path]] = None,
    **overrides: Any,
) -> ProfilerConfig:
    """
    Resolve the effective configuration: defaults, environment, file, then
    explicit overrides (None values are ignored). The result is validated.
    """
    config = ProfilerConfig.from_env()
    if config_file:
        config = ProfilerConfig.from_file(config_file, base=config)
    return config.with_overrides(**overrides).validate()


__all__ = [
    'ProfilerConfig',
    'load_config',
]
