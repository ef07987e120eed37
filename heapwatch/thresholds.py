"""
Threshold Monitor - per-snapshot ceiling checks.

Breaches are advisory: they are recorded and logged as warnings, and never
stop or alter sampling.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .constants import Defaults
from .snapshot import Snapshot
from .utils.error_handling import ErrorCategory, safe_execute
from .utils.formatting import format_bytes, format_rate

logger = logging.getLogger(__name__)


class ViolationKind(Enum):
    """Metric whose ceiling was exceeded"""
    HEAP_USAGE = "Heap Usage"
    RSS_USAGE = "RSS Usage"
    EXTERNAL_USAGE = "External Usage"
    GROWTH_RATE = "Growth Rate"


@dataclass(frozen=True)
class ThresholdConfig:
    """Ceilings for one profiling run"""
    heap_used_bytes: float = Defaults.HEAP_USED_BYTES
    rss_bytes: float = Defaults.RSS_BYTES
    external_bytes: float = Defaults.EXTERNAL_BYTES
    growth_rate_bytes_per_sec: float = Defaults.GROWTH_RATE_BYTES_PER_SEC

    def to_dict(self) -> Dict[str, float]:
        return {
            'heapUsedBytes': self.heap_used_bytes,
            'rssBytes': self.rss_bytes,
            'externalBytes': self.external_bytes,
            'growthRateBytesPerSec': self.growth_rate_bytes_per_sec,
        }


@dataclass(frozen=True)
class ThresholdViolation:
    """An observed metric above its ceiling at a point in time"""
    kind: ViolationKind
    timestamp: float
    observed_value: float
    threshold_value: float

    @property
    def is_rate(self) -> bool:
        return self.kind == ViolationKind.GROWTH_RATE

    def to_dict(self) -> Dict[str, Any]:
        fmt = format_rate if self.is_rate else format_bytes
        return {
            'type': self.kind.value,
            'timestamp': self.timestamp,
            'timestamp_iso': datetime.fromtimestamp(self.timestamp / 1000).isoformat(),
            'value': fmt(self.observed_value),
            'threshold': fmt(self.threshold_value),
            'observedValue': self.observed_value,
            'thresholdValue': self.threshold_value,
        }


class ThresholdMonitor:
    """
    Evaluates snapshots against a ThresholdConfig.

    Not thread-safe on its own; the sampler calls check() under its lock.
    """

    def __init__(
        self,
        thresholds: Optional[ThresholdConfig] = None,
        on_violation: Optional[Callable[[ThresholdViolation], None]] = None,
    ):
        self.thresholds = thresholds or ThresholdConfig()
        self._on_violation = on_violation
        self._violations: List[ThresholdViolation] = []

    @property
    def violations(self) -> List[ThresholdViolation]:
        return list(self._violations)

    def check(self, snapshot: Snapshot) -> List[ThresholdViolation]:
        """
        Compare one snapshot with every ceiling.

        Returns:
            The violations found for this snapshot (possibly empty)
        """
        t = self.thresholds
        checks = [
            (ViolationKind.HEAP_USAGE, snapshot.heap_used, t.heap_used_bytes),
            (ViolationKind.RSS_USAGE, snapshot.rss, t.rss_bytes),
            (ViolationKind.EXTERNAL_USAGE, snapshot.external, t.external_bytes),
            (ViolationKind.GROWTH_RATE, abs(snapshot.heap_growth_rate), t.growth_rate_bytes_per_sec),
        ]

        found = [
            ThresholdViolation(
                kind=kind,
                timestamp=snapshot.timestamp,
                observed_value=observed,
                threshold_value=threshold,
            )
            for kind, observed, threshold in checks
            if observed > threshold
        ]

        if found:
            self._violations.extend(found)
            warnings = [self._describe(v) for v in found]
            logger.warning(f"Memory threshold warnings: {'; '.join(warnings)}")
            self._notify(found)

        return found

    def _describe(self, violation: ThresholdViolation) -> str:
        fmt = format_rate if violation.is_rate else format_bytes
        return (f"High {violation.kind.value.lower()}: {fmt(violation.observed_value)} "
                f"> {fmt(violation.threshold_value)}")

    def _notify(self, violations: List[ThresholdViolation]):
        if not self._on_violation:
            return
        for violation in violations:
            with safe_execute("threshold violation callback", ErrorCategory.CALLBACK):
                self._on_violation(violation)


__all__ = [
    'ViolationKind',
    'ThresholdConfig',
    'ThresholdViolation',
    'ThresholdMonitor',
]
