"""
Memory Sampler - periodic capture of process memory.

Lifecycle: IDLE -> RUNNING -> STOPPED (terminal).

The first snapshot is taken synchronously in start(); a daemon thread then
takes one snapshot per interval until the duration elapses, stop() is called
or the cancellation event is set. Whichever comes first runs report
synthesis exactly once; later stop() calls return the same Report.

Usage:
    sampler = MemorySampler(ProfilerConfig(interval_ms=500, duration_ms=60000))
    report = sampler.run()
"""

import time
import logging
import threading
from enum import Enum
from typing import Any, Callable, List, Optional

from .config import ProfilerConfig
from .constants import Timeouts
from .exceptions import SamplerStateError
from .gc_hook import GCEvent, GCHook, gc_collect_available
from .logging_config import VERBOSE
from .memory_source import MemorySource, ProcessMemorySource
from .report import Report, ReportGenerator, save_report
from .snapshot import Snapshot
from .thresholds import ThresholdMonitor, ThresholdViolation
from .utils.error_handling import ErrorCategory, handle_error
from .utils.formatting import format_bytes

logger = logging.getLogger(__name__)


class SamplerState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


def _wall_clock_ms() -> float:
    return time.time() * 1000


class MemorySampler:
    """
    Samples a MemorySource at a fixed interval and produces a Report.

    Snapshots and GC events are appended under one lock, by the sampling
    thread and by the GC hook listener respectively.
    """

    def __init__(
        self,
        config: Optional[ProfilerConfig] = None,
        memory_source: Optional[MemorySource] = None,
        gc_hook: Optional[GCHook] = None,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], Any]] = None,
        on_violation: Optional[Callable[[ThresholdViolation], None]] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        """
        Args:
            config: Run settings (validated here)
            memory_source: Counter source, defaults to ProcessMemorySource
            gc_hook: Hook whose events are recorded; created from the memory
                source when gc_monitoring is enabled and none is given
            clock: Wall clock returning epoch milliseconds
            sleep: Replacement for the interruptible wait between ticks
            on_violation: Called for each threshold violation
            cancel_event: Checked at every tick boundary; stops the run when set
        """
        self.config = (config or ProfilerConfig()).validate()
        self.memory_source = memory_source or ProcessMemorySource(
            trace_python_heap=self.config.trace_python_heap
        )
        self._clock = clock or _wall_clock_ms
        self._sleep = sleep
        self.cancel_event = cancel_event

        if not self.config.gc_monitoring:
            self.gc_hook = None
        elif gc_hook is not None:
            self.gc_hook = gc_hook
        elif gc_collect_available():
            self.gc_hook = GCHook(self.memory_source, clock=self._clock)
        else:
            self.gc_hook = None

        self.monitor = ThresholdMonitor(self.config.thresholds, on_violation=on_violation)
        self.report_generator = ReportGenerator(self.config)

        self._state = SamplerState.IDLE
        self._state_lock = threading.RLock()
        # Reentrant so a violation callback may call stop() from the sampling thread
        self._lock = threading.RLock()
        self._snapshots: List[Snapshot] = []
        self._gc_events: List[GCEvent] = []

        self._stop_event = threading.Event()
        self._done = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._started_at: Optional[float] = None
        self._stopped_at: Optional[float] = None
        self._report: Optional[Report] = None
        self.report_saved = False

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> SamplerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == SamplerState.RUNNING

    @property
    def gc_available(self) -> bool:
        return self.gc_hook is not None

    @property
    def report(self) -> Optional[Report]:
        return self._report

    def get_snapshots(self) -> List[Snapshot]:
        with self._lock:
            return list(self._snapshots)

    def get_gc_events(self) -> List[GCEvent]:
        with self._lock:
            return list(self._gc_events)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self):
        """Begin sampling. Raises SamplerStateError unless the sampler is idle."""
        with self._state_lock:
            if self._state != SamplerState.IDLE:
                raise SamplerStateError(f"Cannot start sampler in state '{self._state.value}'")

            self.memory_source.open()
            self._started_at = self._clock()
            self._state = SamplerState.RUNNING

            if self.gc_hook:
                self.gc_hook.add_listener(self._on_gc_event)

            self._take_measurement()

            self._thread = threading.Thread(
                target=self._run_loop, name="heapwatch-sampler", daemon=True
            )
            self._thread.start()

        logger.info(
            f"Memory profiling started (interval: {self.config.interval_ms}ms, "
            f"duration: {self.config.duration_ms}ms)"
        )

    def stop(self) -> Report:
        """
        Stop sampling and return the Report.

        Safe to call repeatedly and from the sampling thread itself; every
        call after the first returns the same Report.
        """
        with self._state_lock:
            if self._report is not None:
                return self._report
            if self._state == SamplerState.IDLE:
                raise SamplerStateError("Cannot stop a sampler that was never started")
            self._stop_event.set()
            thread = self._thread

        if thread and thread is not threading.current_thread():
            thread.join(timeout=Timeouts.THREAD_JOIN_DEFAULT)
            if thread.is_alive():
                logger.warning("Sampling thread did not exit in time; generating report anyway")

        return self._finalize()

    def run(self, cancel_event: Optional[threading.Event] = None) -> Report:
        """
        Start, block until the duration elapses or the run is cancelled, then
        stop and return the Report.
        """
        if cancel_event is not None:
            self.cancel_event = cancel_event

        self.start()
        try:
            while not self._done.wait(0.2):
                if self.cancel_event is not None and self.cancel_event.is_set():
                    break
        except KeyboardInterrupt:
            logger.info("Interrupted, stopping memory profiling")
        return self.stop()

    # -------------------------------------------------------------------------
    # Sampling
    # -------------------------------------------------------------------------

    def _run_loop(self):
        interval_ms = self.config.interval_ms
        deadline = self._started_at + self.config.duration_ms
        next_tick = self._started_at + interval_ms

        while True:
            remaining = (min(next_tick, deadline) - self._clock()) / 1000
            if self._wait(max(remaining, 0.0)):
                return

            if self.cancel_event is not None and self.cancel_event.is_set():
                logger.info("Cancellation requested, stopping memory profiling")
                break

            now = self._clock()
            if now - self._started_at >= self.config.duration_ms:
                logger.info("Profiling duration elapsed")
                break
            if now < next_tick:
                continue

            self._take_measurement()
            next_tick += interval_ms
            # Skip ticks missed while the process was stalled
            while next_tick <= now:
                next_tick += interval_ms

        self._finalize()

    def _wait(self, seconds: float) -> bool:
        """Wait up to seconds; True if stop() was requested."""
        if self._sleep is None:
            return self._stop_event.wait(seconds)
        self._sleep(seconds)
        return self._stop_event.is_set()

    def _take_measurement(self) -> Optional[Snapshot]:
        """Read the source and append one snapshot. Returns None if the read failed."""
        try:
            usage = self.memory_source.read()
        except Exception as e:
            handle_error(
                e,
                "memory sample",
                category=ErrorCategory.RESOURCE,
                additional_context={'snapshots': len(self._snapshots)},
            )
            return None

        now = self._clock()
        with self._lock:
            if self._state != SamplerState.RUNNING:
                return None
            previous = self._snapshots[-1] if self._snapshots else None
            snapshot = Snapshot.capture(
                usage,
                timestamp=now,
                elapsed_ms=int(now - self._started_at),
                interval_seconds=self.config.interval_seconds,
                previous=previous,
            )
            self._snapshots.append(snapshot)
            self.monitor.check(snapshot)

        logger.log(
            VERBOSE,
            f"Snapshot #{len(self._snapshots)}: heap={format_bytes(snapshot.heap_used)} "
            f"rss={format_bytes(snapshot.rss)}"
        )
        return snapshot

    def _on_gc_event(self, event: GCEvent):
        with self._lock:
            if self._state != SamplerState.RUNNING:
                return
            self._gc_events.append(event)

    # -------------------------------------------------------------------------
    # Synthesis
    # -------------------------------------------------------------------------

    def _finalize(self) -> Report:
        with self._state_lock:
            if self._report is not None:
                return self._report

            with self._lock:
                self._state = SamplerState.STOPPED
                snapshots = list(self._snapshots)
                gc_events = list(self._gc_events)

            self._stopped_at = self._clock()
            if self.gc_hook:
                self.gc_hook.remove_listener(self._on_gc_event)
            self.memory_source.close()

            report = self.report_generator.generate(
                snapshots,
                gc_events=gc_events,
                violations=self.monitor.violations,
                gc_available=self.gc_available,
                started_at=self._started_at,
                stopped_at=self._stopped_at,
            )
            self.report_saved = save_report(report, self.config.output_file)

            self._report = report
            self._done.set()

        logger.info(
            f"Memory profiling stopped after {report.duration_seconds:.2f}s "
            f"({report.total_measurements} measurements)"
        )
        return report


def profile(config: Optional[ProfilerConfig] = None, **kwargs) -> Report:
    """
    Run one profiling session to completion and return its Report.

    Keyword arguments are passed to MemorySampler.
    """
    cancel_event = kwargs.pop('cancel_event', None)
    sampler = MemorySampler(config, **kwargs)
    return sampler.run(cancel_event=cancel_event)


__all__ = [
    'SamplerState',
    'MemorySampler',
    'profile',
]
