"""
Report Generator

Assembles the end-of-run profile from the snapshot and GC event series:
- run summary (first/last deltas and growth rates)
- min/max/avg/median/stdDev for heap, RSS and external memory
- leak heuristic verdict
- GC summary, or a note that GC monitoring was unavailable
- the most recent threshold violations
- rule-based recommendations
- a bounded tail of raw snapshots plus every GC event

The report is written once as JSON; consumers (load-test runners, CI
gates) read that file.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from .config import ProfilerConfig
from .constants import ReportLimits
from .gc_hook import GCEvent, GC_UNAVAILABLE_MESSAGE
from .leak_detector import LeakVerdict, detect_leak
from .series_stats import SeriesStats, compute_stats
from .snapshot import Snapshot
from .thresholds import ThresholdConfig, ThresholdViolation
from .utils.error_handling import ErrorCategory, handle_error
from .utils.formatting import format_bytes, format_rate

logger = logging.getLogger(__name__)

NO_MEASUREMENTS_ERROR = "No measurements taken"


@dataclass(frozen=True)
class Recommendation:
    """Remediation advice triggered by one rule"""
    category: str
    priority: str
    issue: str
    suggestions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'category': self.category,
            'priority': self.priority,
            'issue': self.issue,
            'suggestions': list(self.suggestions),
        }


@dataclass
class Report:
    """Result of one profiling run"""
    generated_at: float                     # Epoch milliseconds
    duration_seconds: float
    interval_ms: int
    snapshots: List[Snapshot]               # Bounded tail
    total_measurements: int
    heap_stats: SeriesStats
    rss_stats: SeriesStats
    external_stats: SeriesStats
    leak: LeakVerdict
    gc_available: bool
    gc_events: List[GCEvent]
    violations: List[ThresholdViolation]    # Bounded tail
    recommendations: List[Recommendation]
    initial: Optional[Snapshot] = None
    final: Optional[Snapshot] = None
    error: Optional[str] = None

    @property
    def heap_growth(self) -> int:
        if not self.initial or not self.final:
            return 0
        return self.final.heap_used - self.initial.heap_used

    @property
    def rss_growth(self) -> int:
        if not self.initial or not self.final:
            return 0
        return self.final.rss - self.initial.rss

    @property
    def heap_growth_rate(self) -> float:
        """Run-level heap growth in bytes/s"""
        if self.duration_seconds <= 0:
            return 0.0
        return self.heap_growth / self.duration_seconds

    @property
    def rss_growth_rate(self) -> float:
        if self.duration_seconds <= 0:
            return 0.0
        return self.rss_growth / self.duration_seconds

    @property
    def avg_gc_duration_ms(self) -> Optional[float]:
        if not self.gc_events:
            return None
        return sum(e.duration_ms for e in self.gc_events) / len(self.gc_events)

    @property
    def total_heap_freed(self) -> int:
        return sum(e.heap_freed for e in self.gc_events)

    def summary_dict(self) -> Dict[str, Any]:
        if not self.initial or not self.final:
            return {}
        return {
            'initialHeapUsed': format_bytes(self.initial.heap_used),
            'finalHeapUsed': format_bytes(self.final.heap_used),
            'heapGrowth': format_bytes(self.heap_growth),
            'heapGrowthRate': format_rate(self.heap_growth_rate),

            'initialRSS': format_bytes(self.initial.rss),
            'finalRSS': format_bytes(self.final.rss),
            'rssGrowth': format_bytes(self.rss_growth),
            'rssGrowthRate': format_rate(self.rss_growth_rate),

            'raw': {
                'initialHeapUsed': self.initial.heap_used,
                'finalHeapUsed': self.final.heap_used,
                'heapGrowth': self.heap_growth,
                'heapGrowthRate': self.heap_growth_rate,
                'initialRSS': self.initial.rss,
                'finalRSS': self.final.rss,
                'rssGrowth': self.rss_growth,
                'rssGrowthRate': self.rss_growth_rate,
            },
        }

    def gc_dict(self) -> Dict[str, Any]:
        if not self.gc_available:
            return {'message': GC_UNAVAILABLE_MESSAGE}

        avg = self.avg_gc_duration_ms
        return {
            'totalGCEvents': len(self.gc_events),
            'avgGCDuration': f"{avg:.2f}ms" if avg is not None else 'N/A',
            'avgGCDurationMs': avg,
            'totalHeapFreed': format_bytes(self.total_heap_freed) if self.gc_events else 'N/A',
            'totalHeapFreedBytes': self.total_heap_freed,
            'gcEvents': [e.to_dict() for e in self.gc_events[-ReportLimits.MAX_GC_EVENTS_SUMMARY:]],
        }

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'timestamp': datetime.fromtimestamp(self.generated_at / 1000).isoformat(),
            'duration': f"{self.duration_seconds:.2f}s",
            'durationMs': round(self.duration_seconds * 1000),
            'totalMeasurements': self.total_measurements,
            'interval': f"{self.interval_ms}ms",
        }
        if self.error:
            data['error'] = self.error

        data.update({
            'summary': self.summary_dict(),
            'statistics': {
                'heapUsed': _stats_dict(self.heap_stats),
                'rss': _stats_dict(self.rss_stats),
                'external': _stats_dict(self.external_stats),
            },
            'memoryLeakDetection': self.leak.to_dict(),
            'garbageCollection': self.gc_dict(),
            'thresholdViolations': [v.to_dict() for v in self.violations],
            'recommendations': [r.to_dict() for r in self.recommendations],
            'rawData': {
                'measurements': [s.to_dict() for s in self.snapshots],
                'gcStats': [e.to_dict() for e in self.gc_events],
            },
        })
        return data

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=str)

    def key_metrics(self) -> Dict[str, Any]:
        """Compact metrics for embedding this profile in a larger test report"""
        avg_gc = self.avg_gc_duration_ms
        return {
            'heapGrowth': format_bytes(self.heap_growth),
            'rssGrowth': format_bytes(self.rss_growth),
            'memoryLeakDetected': self.leak.detected,
            'peakHeapUsage': format_bytes(self.heap_stats.max),
            'avgGCDuration': f"{avg_gc:.2f}ms" if avg_gc is not None else None,
        }


def _stats_dict(stats: SeriesStats) -> Dict[str, Any]:
    data: Dict[str, Any] = {key: format_bytes(value) for key, value in stats.to_dict().items()}
    data['raw'] = stats.to_dict()
    return data


class ReportGenerator:
    """Builds a Report from the series accumulated during a run."""

    def __init__(self, config: Optional[ProfilerConfig] = None):
        self.config = config or ProfilerConfig()

    @property
    def thresholds(self) -> ThresholdConfig:
        return self.config.thresholds

    @property
    def interval_ms(self) -> int:
        return self.config.interval_ms

    def generate(
        self,
        snapshots: Sequence[Snapshot],
        gc_events: Sequence[GCEvent] = (),
        violations: Sequence[ThresholdViolation] = (),
        gc_available: bool = True,
        started_at: Optional[float] = None,
        stopped_at: Optional[float] = None,
    ) -> Report:
        """
        Generate the report.

        Args:
            snapshots: Full time-ordered snapshot series
            gc_events: Every recorded GC event
            violations: Every recorded threshold violation
            gc_available: False when GC monitoring was absent for the run
            started_at: Run start, epoch ms (defaults to the first snapshot)
            stopped_at: Run end, epoch ms (defaults to the last snapshot)
        """
        snapshots = list(snapshots)
        gc_events = list(gc_events) if gc_available else []

        if started_at is None:
            started_at = snapshots[0].timestamp if snapshots else 0.0
        if stopped_at is None:
            stopped_at = snapshots[-1].timestamp if snapshots else started_at
        duration_seconds = max(stopped_at - started_at, 0) / 1000

        heap_stats = compute_stats([s.heap_used for s in snapshots])
        rss_stats = compute_stats([s.rss for s in snapshots])
        external_stats = compute_stats([s.external for s in snapshots])
        leak = detect_leak(snapshots)

        report = Report(
            generated_at=stopped_at,
            duration_seconds=duration_seconds,
            interval_ms=self.interval_ms,
            snapshots=snapshots[-ReportLimits.MAX_SNAPSHOTS:],
            total_measurements=len(snapshots),
            heap_stats=heap_stats,
            rss_stats=rss_stats,
            external_stats=external_stats,
            leak=leak,
            gc_available=gc_available,
            gc_events=gc_events,
            violations=list(violations)[-ReportLimits.MAX_VIOLATIONS:],
            recommendations=[],
            initial=snapshots[0] if snapshots else None,
            final=snapshots[-1] if snapshots else None,
            error=None if snapshots else NO_MEASUREMENTS_ERROR,
        )
        if snapshots:
            report.recommendations = self.recommend(report)
        return report

    def recommend(self, report: Report) -> List[Recommendation]:
        """Apply every recommendation rule independently."""
        t = self.thresholds
        recommendations = []

        if report.heap_stats.max > t.heap_used_bytes:
            recommendations.append(Recommendation(
                category='Memory Usage',
                priority='High',
                issue=f"Peak heap usage ({format_bytes(report.heap_stats.max)}) exceeds threshold",
                suggestions=[
                    'Review large object allocations',
                    'Reuse buffers and pooled objects for frequently created data',
                    'Stream or chunk large data instead of loading it at once',
                    'Use __slots__ or more compact data structures for many small objects',
                ],
            ))

        if report.heap_growth_rate > t.growth_rate_bytes_per_sec:
            recommendations.append(Recommendation(
                category='Memory Growth',
                priority='High',
                issue=f"High memory growth rate ({format_rate(report.heap_growth_rate)})",
                suggestions=[
                    'Check for callbacks and listeners that are registered but never removed',
                    'Review closures and module-level caches that retain references',
                    'Make sure background tasks release their results',
                    'Use weak references where appropriate',
                ],
            ))

        if report.leak.detected:
            recommendations.append(Recommendation(
                category='Memory Leak',
                priority='Critical',
                issue='Potential memory leak detected',
                suggestions=[
                    'Compare tracemalloc snapshots to locate growing allocation sites',
                    'Review listener and callback cleanup',
                    'Check for reference cycles holding objects with __del__',
                    'Close files, sockets and other resources deterministically',
                    'Use a memory profiler for detailed per-line analysis',
                ],
            ))

        avg_gc = report.avg_gc_duration_ms
        if report.gc_available and avg_gc is not None and avg_gc > ReportLimits.GC_PAUSE_WARNING_MS:
            recommendations.append(Recommendation(
                category='Garbage Collection',
                priority='Medium',
                issue=f"Long GC pauses (avg: {avg_gc:.2f}ms)",
                suggestions=[
                    'Reduce the object allocation rate',
                    'Reuse short-lived objects instead of recreating them',
                    'Tune gc.set_threshold() or freeze long-lived objects with gc.freeze()',
                    'Break reference cycles so objects are freed by reference counting',
                ],
            ))

        if report.external_stats.max > t.external_bytes:
            recommendations.append(Recommendation(
                category='External Memory',
                priority='Medium',
                issue=f"High external memory usage ({format_bytes(report.external_stats.max)})",
                suggestions=[
                    'Review bytearray, memoryview and mmap usage',
                    'Check native extension memory (numpy arrays, C libraries)',
                    'Stream large file operations',
                    'Release external resources explicitly when done',
                ],
            ))

        return recommendations


def save_report(report: Report, path: Union[str, Path]) -> bool:
    """
    Write the report as JSON.

    Failures are logged, never raised: the caller still holds the in-memory
    report.

    Returns:
        True if the file was written
    """
    path = Path(path)
    try:
        if path.parent and not path.parent.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(report.to_json(), encoding='utf-8')
    except (OSError, TypeError, ValueError) as e:
        handle_error(
            e,
            "save_report",
            category=ErrorCategory.FILESYSTEM,
            additional_context={'output_file': str(path)},
        )
        return False

    logger.info(f"Memory profile report saved to: {path}")
    return True


def format_summary(report: Report) -> str:
    """Short text summary for terminal output"""
    lines = [
        "Memory Profiling Summary:",
        f"Duration: {report.duration_seconds:.2f}s",
        f"Measurements: {report.total_measurements}",
        f"Heap Growth: {format_bytes(report.heap_growth)}",
        f"RSS Growth: {format_bytes(report.rss_growth)}",
        f"Memory Leak Detected: {'Yes' if report.leak.detected else 'No'}",
    ]
    if report.error:
        lines.append(f"Error: {report.error}")

    if report.recommendations:
        lines.append("")
        lines.append("Recommendations:")
        for rec in report.recommendations:
            lines.append(f"  [{rec.priority}] {rec.category}: {rec.issue}")

    return '\n'.join(lines)


__all__ = [
    'NO_MEASUREMENTS_ERROR',
    'Recommendation',
    'Report',
    'ReportGenerator',
    'save_report',
    'format_summary',
]
