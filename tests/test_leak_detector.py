"""
Tests for the Leak Detector heuristic.
"""

import os
import sys

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from heapwatch.constants import KIB, MIB
from heapwatch.leak_detector import (
    HEURISTIC_DISCLAIMER,
    LeakConfidence,
    LeakVerdict,
    detect_leak,
    interval_growth_rates,
)
from heapwatch.snapshot import Snapshot


class TestInsufficientData:
    """Short series are never flagged."""

    def test_fewer_than_ten_snapshots(self, snapshot_series):
        """Nine snapshots of steep growth are still not a leak."""
        snapshots = snapshot_series([i * 100 * MIB for i in range(9)])
        verdict = detect_leak(snapshots)
        assert verdict.detected is False
        assert verdict.confidence == LeakConfidence.LOW
        assert verdict.reason == "insufficient data"

    def test_empty_series(self):
        """No snapshots at all."""
        verdict = detect_leak([])
        assert verdict.detected is False
        assert verdict.reason == "insufficient data"
        assert verdict.samples_analyzed == 0

    def test_identical_timestamps_give_no_rates(self):
        """Pairs with zero time difference are skipped."""
        snapshots = [
            Snapshot(timestamp=1000.0, elapsed_ms=0, heap_used=i * MIB, heap_total=0,
                     external=0, rss=0, array_buffers=0)
            for i in range(12)
        ]
        assert interval_growth_rates(snapshots) == []
        verdict = detect_leak(snapshots)
        assert verdict.detected is False
        assert verdict.reason == "insufficient data"


class TestDetection:
    """Tests for the growth-rate and consistency rule."""

    def test_steady_growth_is_detected(self, snapshot_series):
        """2 MiB/s steady growth over 30 samples is flagged with High confidence."""
        snapshots = snapshot_series([100 * MIB + i * 2 * MIB for i in range(30)])
        verdict = detect_leak(snapshots)
        assert verdict.detected is True
        assert verdict.confidence == LeakConfidence.HIGH
        assert verdict.avg_growth_rate == pytest.approx(2 * MIB)
        assert verdict.positive_growth_ratio == 1.0
        assert verdict.samples_analyzed == 20

    def test_minimum_series_length(self, snapshot_series):
        """Exactly ten snapshots are enough to analyze."""
        snapshots = snapshot_series([i * 2 * MIB for i in range(10)])
        assert detect_leak(snapshots).detected is True

    def test_oscillation_is_not_detected(self, snapshot_series):
        """+-1 KiB oscillation is not a leak."""
        snapshots = snapshot_series([50 * MIB + (KIB if i % 2 else -KIB) for i in range(40)])
        verdict = detect_leak(snapshots)
        assert verdict.detected is False
        assert verdict.confidence == LeakConfidence.LOW
        assert verdict.reason is None

    def test_rate_threshold_is_strict(self, snapshot_series):
        """Growth of exactly 1 MiB/s does not exceed the threshold."""
        snapshots = snapshot_series([i * MIB for i in range(20)])
        verdict = detect_leak(snapshots)
        assert verdict.avg_growth_rate == pytest.approx(MIB)
        assert verdict.detected is False

    def test_consistency_threshold_is_strict(self, snapshot_series):
        """Seven growing intervals out of ten (0.70) is not enough."""
        steps = [10 * MIB] * 7 + [0] * 3
        heap = [0]
        for step in steps:
            heap.append(heap[-1] + step)
        verdict = detect_leak(snapshot_series(heap))
        assert verdict.positive_growth_ratio == pytest.approx(0.7)
        assert verdict.detected is False

    def test_only_recent_window_is_analyzed(self, snapshot_series):
        """Early growth followed by a flat tail is not flagged."""
        heap = [i * 10 * MIB for i in range(20)] + [200 * MIB] * 20
        verdict = detect_leak(snapshot_series(heap))
        assert verdict.detected is False
        assert verdict.samples_analyzed == 20

    def test_rates_use_measured_timestamps(self, snapshot_series):
        """Per-pair rates divide by the actual time between snapshots."""
        snapshots = snapshot_series([0, MIB, 2 * MIB], interval_ms=500)
        assert interval_growth_rates(snapshots) == [2 * MIB, 2 * MIB]

    def test_deterministic(self, snapshot_series):
        """Same frozen series always gives the same verdict."""
        snapshots = snapshot_series([i * 3 * MIB // 2 for i in range(25)])
        assert detect_leak(snapshots) == detect_leak(list(snapshots))


class TestLeakVerdictSerialization:
    """Tests for LeakVerdict.to_dict()."""

    def test_includes_disclaimer(self, snapshot_series):
        """The verdict always states it is a heuristic."""
        data = detect_leak(snapshot_series([MIB] * 12)).to_dict()
        assert data['method'] == HEURISTIC_DISCLAIMER
        assert data['confidence'] == "Low"
        assert 'avgGrowthRate' in data
        assert data['samplesAnalyzed'] == 12

    def test_insufficient_data_carries_reason(self):
        """Skipped analysis reports the reason instead of rates."""
        data = LeakVerdict(detected=False, confidence=LeakConfidence.LOW,
                           reason="insufficient data").to_dict()
        assert data['reason'] == "insufficient data"
        assert 'avgGrowthRate' not in data
        assert "insufficient data" in data['details']
