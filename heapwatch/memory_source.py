"""
Memory Source - Process Memory Counters

The sampler never queries process memory directly; it reads through a
MemorySource so that tests can drive it with synthetic readings.

ProcessMemorySource maps the Python process onto the counters the report
uses:
- heap_used: bytes currently traced by tracemalloc (the Python heap)
- heap_total: peak traced bytes since tracing started
- external: RSS not attributed to the traced heap (native allocations)
- rss: resident set size from psutil
- array_buffers: shared memory reported by psutil, where available
"""

import os
import logging
import tracemalloc
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional

import psutil

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MemoryUsage:
    """One raw reading of process memory counters (bytes)"""
    heap_used: int
    heap_total: int
    external: int
    rss: int
    array_buffers: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            'heapUsed': self.heap_used,
            'heapTotal': self.heap_total,
            'external': self.external,
            'rss': self.rss,
            'arrayBuffers': self.array_buffers,
        }


class MemorySource(ABC):
    """Capability for reading current memory counters"""

    def open(self) -> None:
        """Prepare the source before the first reading."""

    def close(self) -> None:
        """Release anything acquired in open()."""

    @abstractmethod
    def read(self) -> MemoryUsage:
        """Return the current counters."""


class ProcessMemorySource(MemorySource):
    """
    Reads memory counters of the current process with psutil and tracemalloc.

    tracemalloc is started on open() unless it is already tracing, and only
    stopped on close() if this source started it.
    """

    def __init__(self, trace_python_heap: bool = True, pid: Optional[int] = None, nframe: int = 1):
        """
        Args:
            trace_python_heap: Use tracemalloc for heap counters. When False
                the heap counters fall back to USS (or RSS).
            pid: Process to inspect (defaults to the current process)
            nframe: Frames stored per traced allocation
        """
        self.trace_python_heap = trace_python_heap
        self.nframe = nframe
        self._process = psutil.Process(pid or os.getpid())
        self._started_tracing = False

    @property
    def is_tracing(self) -> bool:
        return self.trace_python_heap and tracemalloc.is_tracing()

    def open(self) -> None:
        if not self.trace_python_heap or tracemalloc.is_tracing():
            return
        tracemalloc.start(self.nframe)
        self._started_tracing = True
        logger.debug(f"tracemalloc started (nframe={self.nframe})")

    def close(self) -> None:
        if self._started_tracing and tracemalloc.is_tracing():
            tracemalloc.stop()
            logger.debug("tracemalloc stopped")
        self._started_tracing = False

    def read(self) -> MemoryUsage:
        mem_info = self._process.memory_info()
        rss = mem_info.rss
        shared = getattr(mem_info, 'shared', 0) or 0

        if self.is_tracing:
            heap_used, heap_peak = tracemalloc.get_traced_memory()
        else:
            heap_used = self._untraced_heap(rss)
            heap_peak = heap_used

        return MemoryUsage(
            heap_used=heap_used,
            heap_total=max(heap_peak, heap_used),
            external=max(rss - heap_used, 0),
            rss=rss,
            array_buffers=shared,
        )

    def _untraced_heap(self, rss: int) -> int:
        # USS needs memory_full_info, which is slower and may be denied
        try:
            return getattr(self._process.memory_full_info(), 'uss', rss)
        except (psutil.AccessDenied, AttributeError):
            return rss


__all__ = [
    'MemoryUsage',
    'MemorySource',
    'ProcessMemorySource',
]
