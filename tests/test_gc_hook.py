"""
Tests for the GC Instrumentation Hook.
"""

import gc
import os
import sys

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from conftest import FakeClock, ScriptedMemorySource
from heapwatch.constants import MIB
from heapwatch.gc_hook import GCEvent, GCHook, gc_collect_available
from heapwatch.memory_source import MemoryUsage


class _StepTimer:
    """perf_counter stand-in advancing 25 ms per call"""

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        value = self.now
        self.now += 0.025
        return value


@pytest.fixture
def source():
    return ScriptedMemorySource([30 * MIB, 20 * MIB])


class TestGCHook:
    """Tests for GCHook.wrap() and GCHook.collect()."""

    def test_gc_collect_available(self):
        """CPython always exposes gc.collect."""
        assert gc_collect_available() is True

    def test_wrap_records_event(self, source, fake_clock):
        """A wrapped trigger emits one event with before/after readings."""
        events = []
        hook = GCHook(source, clock=fake_clock, on_event=events.append, timer=_StepTimer())
        collect = hook.wrap(lambda: 7)

        assert collect() == 7
        assert len(events) == 1
        event = events[0]
        assert event.before.heap_used == 30 * MIB
        assert event.after.heap_used == 20 * MIB
        assert event.heap_freed == 10 * MIB
        assert event.duration_ms == pytest.approx(25.0)
        assert event.collected == 7
        assert event.timestamp == fake_clock()

    def test_wrap_passes_arguments(self, source):
        """Arguments reach the trigger and its result is returned unchanged."""
        hook = GCHook(source)
        wrapped = hook.wrap(lambda a, b=0: a + b)
        assert wrapped(2, b=3) == 5

    def test_non_numeric_result_not_counted(self, source):
        """collected is None when the trigger does not return a count."""
        events = []
        hook = GCHook(source, on_event=events.append)
        hook.wrap(lambda: None)()
        assert events[0].collected is None

    def test_wrapped_attribute(self, source):
        """The underlying trigger stays reachable."""
        hook = GCHook(source)
        wrapped = hook.wrap(gc.collect)
        assert wrapped.__wrapped__ is gc.collect

    def test_collect_runs_gc(self):
        """collect() runs a real collection through the hook."""
        events = []
        reading = MemoryUsage(heap_used=MIB, heap_total=MIB, external=0, rss=MIB)
        hook = GCHook(ScriptedMemorySource([reading]), on_event=events.append)
        collected = hook.collect()
        assert isinstance(collected, int)
        assert len(events) == 1
        assert events[0].heap_freed == 0

    def test_remove_listener(self, source):
        """Removed listeners no longer receive events."""
        events = []
        hook = GCHook(source)
        hook.add_listener(events.append)
        hook.remove_listener(events.append)
        hook.wrap(lambda: 0)()
        assert events == []

    def test_listener_error_is_contained(self, source):
        """A failing listener does not break the trigger or other listeners."""
        events = []

        def broken(event):
            raise RuntimeError("listener failed")

        hook = GCHook(source)
        hook.add_listener(broken)
        hook.add_listener(events.append)
        assert hook.wrap(lambda: 1)() == 1
        assert len(events) == 1


class TestGCEventSerialization:
    """Tests for GCEvent.to_dict()."""

    def test_keys(self):
        """Serialized event carries both readings and the freed amounts."""
        before = MemoryUsage(heap_used=3 * MIB, heap_total=4 * MIB, external=0, rss=10 * MIB)
        after = MemoryUsage(heap_used=MIB, heap_total=4 * MIB, external=0, rss=9 * MIB)
        event = GCEvent(timestamp=FakeClock()(), duration_ms=1.5, before=before, after=after)
        data = event.to_dict()
        assert data['duration'] == 1.5
        assert data['heapFreed'] == 2 * MIB
        assert data['rssFreed'] == MIB
        assert data['beforeGC']['heapUsed'] == 3 * MIB
        assert data['afterGC']['heapUsed'] == MIB
