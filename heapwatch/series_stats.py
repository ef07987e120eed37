"""
Statistics Engine - summary statistics over numeric series.
"""

import math
from dataclasses import dataclass
from typing import Dict, Sequence


@dataclass(frozen=True)
class SeriesStats:
    """min/max/mean/median/stddev of one metric series"""
    min: float = 0.0
    max: float = 0.0
    mean: float = 0.0
    median: float = 0.0
    stddev: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {
            'min': self.min,
            'max': self.max,
            'avg': self.mean,
            'median': self.median,
            'stdDev': self.stddev,
        }


def compute_stats(series: Sequence[float]) -> SeriesStats:
    """
    Compute summary statistics for a series.

    An empty series yields all-zero stats. The standard deviation is the
    population one. The median is the element at index len // 2 of the
    sorted series, so even-length input reports the upper of the two middle
    values rather than their average.
    """
    values = list(series)
    if not values:
        return SeriesStats()

    ordered = sorted(values)
    n = len(values)
    mean = math.fsum(values) / n

    # Rounding in the mean can push it a hair outside [min, max] for
    # constant series
    mean = min(max(mean, ordered[0]), ordered[-1])

    variance = math.fsum((v - mean) ** 2 for v in values) / n

    return SeriesStats(
        min=ordered[0],
        max=ordered[-1],
        mean=mean,
        median=ordered[n // 2],
        stddev=math.sqrt(variance),
    )


__all__ = ['SeriesStats', 'compute_stats']
