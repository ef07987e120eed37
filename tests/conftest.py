"""
Pytest configuration and shared fixtures for heapwatch tests.

Provides temporary directories, a scripted memory source, a synthetic
clock and snapshot-series builders.
"""

import os
import shutil
import tempfile
import threading
from pathlib import Path
from typing import Callable, Generator, List, Sequence, Union

import pytest

# Add the parent directory to the path for imports
import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from heapwatch.config import ProfilerConfig
from heapwatch.constants import MIB
from heapwatch.memory_source import MemorySource, MemoryUsage
from heapwatch.snapshot import Snapshot
from heapwatch.thresholds import ThresholdConfig
from heapwatch.utils.error_handling import get_error_aggregator

START_MS = 1_700_000_000_000.0


# ===========================================================================
# Test Doubles
# ===========================================================================

class ScriptedMemorySource(MemorySource):
    """
    Returns scripted readings in order, repeating the last one when the
    script runs out. An Exception in the script is raised instead of read.
    """

    def __init__(self, readings: Sequence[Union[MemoryUsage, int, Exception]]):
        self._readings = [self._as_usage(r) for r in readings]
        self._index = 0
        self._lock = threading.Lock()
        self.reads = 0
        self.opened = False
        self.closed = False

    @staticmethod
    def _as_usage(reading):
        if isinstance(reading, (MemoryUsage, Exception)):
            return reading
        # Bare ints are heap_used values with a fixed native overhead
        return MemoryUsage(
            heap_used=reading,
            heap_total=reading,
            external=10 * MIB,
            rss=reading + 10 * MIB,
        )

    def open(self):
        self.opened = True

    def close(self):
        self.closed = True

    def read(self) -> MemoryUsage:
        with self._lock:
            reading = self._readings[min(self._index, len(self._readings) - 1)]
            self._index += 1
            self.reads += 1
        if isinstance(reading, Exception):
            raise reading
        return reading


class FakeClock:
    """Synthetic wall clock in epoch milliseconds; sleep() advances it."""

    def __init__(self, start_ms: float = START_MS):
        self._now = start_ms
        self._lock = threading.Lock()

    def __call__(self) -> float:
        with self._lock:
            return self._now

    def advance(self, ms: float):
        with self._lock:
            self._now = round(self._now + ms, 6)

    def sleep(self, seconds: float):
        self.advance(seconds * 1000)


# ===========================================================================
# Temporary Directory Fixtures
# ===========================================================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory that is cleaned up after the test."""
    tmpdir = tempfile.mkdtemp(prefix="heapwatch_test_")
    yield Path(tmpdir)
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def output_file(temp_dir: Path) -> Path:
    """Provide a report path inside the temporary directory."""
    return temp_dir / "memory-profile-report.json"


# ===========================================================================
# Sampler Fixtures
# ===========================================================================

@pytest.fixture
def fake_clock() -> FakeClock:
    """Provide a synthetic clock."""
    return FakeClock()


@pytest.fixture
def make_config(output_file: Path) -> Callable[..., ProfilerConfig]:
    """Factory for configs that write into the temporary directory."""
    def _make(**overrides) -> ProfilerConfig:
        thresholds = overrides.pop('thresholds', ThresholdConfig())
        values = {
            'interval_ms': 100,
            'duration_ms': 1000,
            'output_file': str(output_file),
            'thresholds': thresholds,
        }
        values.update(overrides)
        return ProfilerConfig(**values)
    return _make


@pytest.fixture
def snapshot_series() -> Callable[..., List[Snapshot]]:
    """
    Factory building a time-ordered snapshot series from heap_used values,
    one snapshot per interval.
    """
    def _build(heap_values: Sequence[int], interval_ms: int = 1000,
               external: int = 10 * MIB) -> List[Snapshot]:
        snapshots: List[Snapshot] = []
        for i, heap in enumerate(heap_values):
            usage = MemoryUsage(
                heap_used=heap,
                heap_total=heap,
                external=external,
                rss=heap + external,
            )
            snapshots.append(Snapshot.capture(
                usage,
                timestamp=START_MS + i * interval_ms,
                elapsed_ms=i * interval_ms,
                interval_seconds=interval_ms / 1000,
                previous=snapshots[-1] if snapshots else None,
            ))
        return snapshots
    return _build


@pytest.fixture(autouse=True)
def reset_error_aggregator():
    """Start each test with an empty error aggregator."""
    get_error_aggregator().clear()
    yield
    get_error_aggregator().clear()


# ===========================================================================
# Pytest Configuration
# ===========================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow tests (>1s)")
