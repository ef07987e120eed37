"""
heapwatch - In-process memory profiler
"""

__version__ = "1.0.0"

from .constants import Defaults, LeakDetection, ReportLimits, Timeouts
from .exceptions import HeapwatchError, SamplerStateError, ConfigError
from .config import ProfilerConfig, load_config
from .memory_source import MemoryUsage, MemorySource, ProcessMemorySource
from .snapshot import Snapshot
from .series_stats import SeriesStats, compute_stats
from .leak_detector import LeakConfidence, LeakVerdict, detect_leak
from .thresholds import ThresholdConfig, ThresholdMonitor, ThresholdViolation, ViolationKind
from .gc_hook import GCEvent, GCHook, gc_collect_available
from .report import Recommendation, Report, ReportGenerator, save_report, format_summary
from .sampler import MemorySampler, SamplerState, profile

__all__ = [
    '__version__',
    # Constants
    'Defaults',
    'LeakDetection',
    'ReportLimits',
    'Timeouts',
    # Errors
    'HeapwatchError',
    'SamplerStateError',
    'ConfigError',
    # Configuration
    'ProfilerConfig',
    'load_config',
    # Sampling
    'MemoryUsage',
    'MemorySource',
    'ProcessMemorySource',
    'Snapshot',
    'MemorySampler',
    'SamplerState',
    'profile',
    # Analysis
    'SeriesStats',
    'compute_stats',
    'LeakConfidence',
    'LeakVerdict',
    'detect_leak',
    'ThresholdConfig',
    'ThresholdMonitor',
    'ThresholdViolation',
    'ViolationKind',
    'GCEvent',
    'GCHook',
    'gc_collect_available',
    # Reporting
    'Recommendation',
    'Report',
    'ReportGenerator',
    'save_report',
    'format_summary',
]
