"""
Exceptions raised by heapwatch.
"""


class HeapwatchError(Exception):
    """Base class for profiler errors"""
    pass


class SamplerStateError(HeapwatchError):
    """Raised when a sampler operation is invalid for its current state"""
    pass


class ConfigError(HeapwatchError):
    """Raised when profiler configuration is invalid"""
    pass
