"""
Snapshot - one timed memory sample with growth relative to its predecessor.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from .memory_source import MemoryUsage


@dataclass(frozen=True)
class Snapshot:
    """Point-in-time memory measurement"""
    timestamp: float          # Epoch milliseconds
    elapsed_ms: int           # Since the sampler started
    heap_used: int
    heap_total: int
    external: int
    rss: int
    array_buffers: int
    heap_growth: int = 0      # heap_used delta to the previous snapshot
    rss_growth: int = 0
    heap_growth_rate: float = 0.0  # bytes/s over the configured interval

    @classmethod
    def capture(
        cls,
        usage: MemoryUsage,
        timestamp: float,
        elapsed_ms: int,
        interval_seconds: float,
        previous: Optional['Snapshot'] = None,
    ) -> 'Snapshot':
        """
        Build a snapshot from a raw reading.

        The first snapshot of a run (no previous) has all growth fields set
        to zero. The rate divides by the configured interval, not by the
        measured time between the two samples.
        """
        if previous is None:
            heap_growth = 0
            rss_growth = 0
            heap_growth_rate = 0.0
        else:
            heap_growth = usage.heap_used - previous.heap_used
            rss_growth = usage.rss - previous.rss
            heap_growth_rate = heap_growth / interval_seconds

        return cls(
            timestamp=timestamp,
            elapsed_ms=elapsed_ms,
            heap_used=usage.heap_used,
            heap_total=usage.heap_total,
            external=usage.external,
            rss=usage.rss,
            array_buffers=usage.array_buffers,
            heap_growth=heap_growth,
            rss_growth=rss_growth,
            heap_growth_rate=heap_growth_rate,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp,
            'timestamp_iso': datetime.fromtimestamp(self.timestamp / 1000).isoformat(),
            'elapsedTime': self.elapsed_ms,
            'heapUsed': self.heap_used,
            'heapTotal': self.heap_total,
            'external': self.external,
            'rss': self.rss,
            'arrayBuffers': self.array_buffers,
            'heapGrowth': self.heap_growth,
            'rssGrowth': self.rss_growth,
            'heapGrowthRate': self.heap_growth_rate,
        }


__all__ = ['Snapshot']
