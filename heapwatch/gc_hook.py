"""
GC Instrumentation Hook

Records memory before and after caller-initiated garbage collections.
Instead of patching gc.collect in place, callers route collections through
GCHook.wrap() (or GCHook.collect()), which returns an instrumented callable.

Listeners (normally the sampler) receive one GCEvent per instrumented call.
"""

import gc
import time
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .memory_source import MemorySource, MemoryUsage
from .utils.error_handling import ErrorCategory, safe_execute
from .utils.formatting import format_bytes

logger = logging.getLogger(__name__)

GC_UNAVAILABLE_MESSAGE = "GC monitoring not available"


def gc_collect_available() -> bool:
    """Check whether the runtime exposes a manually-triggerable collection"""
    return callable(getattr(gc, 'collect', None))


@dataclass(frozen=True)
class GCEvent:
    """One instrumented garbage collection"""
    timestamp: float          # Epoch milliseconds, after the collection
    duration_ms: float
    before: MemoryUsage
    after: MemoryUsage
    collected: Optional[int] = None  # Objects reclaimed, if the trigger reports it

    @property
    def heap_freed(self) -> int:
        return self.before.heap_used - self.after.heap_used

    @property
    def rss_freed(self) -> int:
        return self.before.rss - self.after.rss

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp,
            'timestamp_iso': datetime.fromtimestamp(self.timestamp / 1000).isoformat(),
            'duration': self.duration_ms,
            'beforeGC': self.before.to_dict(),
            'afterGC': self.after.to_dict(),
            'heapFreed': self.heap_freed,
            'rssFreed': self.rss_freed,
            'collected': self.collected,
        }


GCListener = Callable[[GCEvent], None]


class GCHook:
    """
    Instruments garbage-collection triggers.

    Usage:
        hook = GCHook(ProcessMemorySource())
        collect = hook.wrap(gc.collect)
        collect()            # listeners receive a GCEvent
    """

    def __init__(
        self,
        memory_source: MemorySource,
        clock: Optional[Callable[[], float]] = None,
        on_event: Optional['GCListener'] = None,
        timer: Callable[[], float] = time.perf_counter,
    ):
        """
        Args:
            memory_source: Source read immediately before and after each collection
            clock: Wall clock returning epoch milliseconds
            on_event: Listener registered at construction
            timer: Monotonic timer in seconds used for the pause duration
        """
        self.memory_source = memory_source
        self._clock = clock or (lambda: time.time() * 1000)
        self._timer = timer
        self._listeners: List[GCListener] = [on_event] if on_event else []
        self._lock = threading.Lock()

    def add_listener(self, listener: GCListener):
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: GCListener):
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def wrap(self, trigger: Callable[..., Any]) -> Callable[..., Any]:
        """
        Return an instrumented version of a collection trigger.

        The wrapper passes its arguments through and returns the trigger's
        result unchanged.
        """
        def instrumented(*args, **kwargs):
            before = self.memory_source.read()
            start = self._timer()

            result = trigger(*args, **kwargs)

            duration_ms = (self._timer() - start) * 1000
            after = self.memory_source.read()

            event = GCEvent(
                timestamp=self._clock(),
                duration_ms=duration_ms,
                before=before,
                after=after,
                collected=result if isinstance(result, int) and not isinstance(result, bool) else None,
            )
            logger.info(
                f"GC completed in {duration_ms:.2f}ms, freed {format_bytes(event.heap_freed)} heap"
            )
            self._emit(event)
            return result

        instrumented.__wrapped__ = trigger
        return instrumented

    def collect(self, generation: int = 2) -> int:
        """Run gc.collect(generation) through the hook"""
        return self.wrap(gc.collect)(generation)

    def _emit(self, event: GCEvent):
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            with safe_execute("gc event listener", ErrorCategory.CALLBACK):
                listener(event)


__all__ = [
    'GC_UNAVAILABLE_MESSAGE',
    'gc_collect_available',
    'GCEvent',
    'GCListener',
    'GCHook',
]
