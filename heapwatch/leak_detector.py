"""
Leak Detector - sliding-window heuristic for sustained heap growth.

The verdict is a heuristic, not a proof: steady allocation during warm-up or
a growing cache produce the same signal as a leak.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from .constants import LeakDetection
from .snapshot import Snapshot
from .utils.formatting import format_rate, format_percent

HEURISTIC_DISCLAIMER = (
    "Heuristic verdict based on recent heap growth rates; "
    "it indicates sustained growth, not a proven leak."
)


class LeakConfidence(Enum):
    """Qualitative confidence attached to a verdict"""
    HIGH = "High"
    LOW = "Low"


@dataclass(frozen=True)
class LeakVerdict:
    """Outcome of one leak analysis"""
    detected: bool
    confidence: LeakConfidence
    reason: Optional[str] = None
    avg_growth_rate: float = 0.0        # bytes/s
    positive_growth_ratio: float = 0.0  # 0..1
    samples_analyzed: int = 0

    @property
    def details(self) -> str:
        if self.reason:
            return f"Leak analysis skipped: {self.reason}."
        if self.detected:
            return "Consistent memory growth detected. Possible memory leak."
        return "No significant memory leak patterns detected."

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'detected': self.detected,
            'confidence': self.confidence.value,
        }
        if self.reason:
            data['reason'] = self.reason
        else:
            data.update({
                'avgGrowthRate': format_rate(self.avg_growth_rate),
                'avgGrowthRateBytesPerSec': self.avg_growth_rate,
                'positiveGrowthRatio': format_percent(self.positive_growth_ratio),
                'samplesAnalyzed': self.samples_analyzed,
            })
        data['details'] = self.details
        data['method'] = HEURISTIC_DISCLAIMER
        return data


def interval_growth_rates(snapshots: Sequence[Snapshot]) -> List[float]:
    """
    Heap growth rate (bytes/s) between each consecutive pair of snapshots,
    using the measured time between them. Pairs with no time difference
    are skipped.
    """
    rates = []
    for previous, current in zip(snapshots, snapshots[1:]):
        seconds = (current.timestamp - previous.timestamp) / 1000
        if seconds <= 0:
            continue
        rates.append((current.heap_used - previous.heap_used) / seconds)
    return rates


def detect_leak(
    snapshots: Sequence[Snapshot],
    window: int = LeakDetection.WINDOW_SIZE,
    min_samples: int = LeakDetection.MIN_SAMPLES,
    rate_threshold: float = LeakDetection.RATE_THRESHOLD_BYTES_PER_SEC,
    consistency_threshold: float = LeakDetection.CONSISTENCY_THRESHOLD,
) -> LeakVerdict:
    """
    Analyze recent snapshots for sustained heap growth.

    Args:
        snapshots: Full time-ordered snapshot series
        window: Number of most recent snapshots to analyze
        min_samples: Minimum series length; shorter series are never flagged
        rate_threshold: Average growth (bytes/s) that must be exceeded
        consistency_threshold: Share of growing intervals that must be exceeded

    Returns:
        LeakVerdict; detected only when both thresholds are exceeded
    """
    if len(snapshots) < min_samples:
        return LeakVerdict(
            detected=False,
            confidence=LeakConfidence.LOW,
            reason="insufficient data",
            samples_analyzed=len(snapshots),
        )

    recent = list(snapshots)[-window:]
    rates = interval_growth_rates(recent)
    if not rates:
        return LeakVerdict(
            detected=False,
            confidence=LeakConfidence.LOW,
            reason="insufficient data",
            samples_analyzed=len(recent),
        )

    avg_rate = sum(rates) / len(rates)
    positive_ratio = sum(1 for rate in rates if rate > 0) / len(rates)

    detected = avg_rate > rate_threshold and positive_ratio > consistency_threshold

    return LeakVerdict(
        detected=detected,
        confidence=LeakConfidence.HIGH if detected else LeakConfidence.LOW,
        avg_growth_rate=avg_rate,
        positive_growth_ratio=positive_ratio,
        samples_analyzed=len(recent),
    )


__all__ = [
    'HEURISTIC_DISCLAIMER',
    'LeakConfidence',
    'LeakVerdict',
    'interval_growth_rates',
    'detect_leak',
]
