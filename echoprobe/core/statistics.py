"""
Sample statistics for EchoProbe.

Statistics are always recomputed from the full sample list.
"""

from dataclasses import dataclass
from typing import Dict, Sequence

import numpy as np

from .skew import METRICS, Sample


@dataclass(frozen=True)
class MetricStats:
    """Summary of one metric across a sample pool."""
    mean: float
    min: float
    max: float
    stddev: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "mean": self.mean,
            "min": self.min,
            "max": self.max,
            "stdDev": self.stddev,
        }


@dataclass(frozen=True)
class AggregateStats:
    """Per-metric statistics over the union of all session samples."""
    total_samples: int
    rtt: MetricStats
    proc: MetricStats
    uplink: MetricStats
    downlink: MetricStats
    offset: MetricStats

    def metric(self, name: str) -> MetricStats:
        if name not in METRICS:
            raise KeyError(name)
        return getattr(self, name)

    def to_dict(self) -> Dict[str, object]:
        return {
            "totalSamples": self.total_samples,
            "statistics": {name: self.metric(name).to_dict() for name in METRICS},
        }


def _metric_matrix(samples: Sequence[Sample]) -> np.ndarray:
    # One row per sample, one column per metric in METRICS order
    return np.array(
        [[getattr(sample, name) for name in METRICS] for sample in samples],
        dtype=np.float64,
    )


def metric_averages(samples: Sequence[Sample]) -> Dict[str, float]:
    """Arithmetic mean of every metric."""
    if not samples:
        raise ValueError("Cannot average an empty sample list")
    means = _metric_matrix(samples).mean(axis=0)
    return {name: float(value) for name, value in zip(METRICS, means)}


def aggregate(samples: Sequence[Sample]) -> AggregateStats:
    """Compute mean/min/max/population stddev for every metric."""
    if not samples:
        raise ValueError("Cannot aggregate an empty sample list")

    matrix = _metric_matrix(samples)
    means = matrix.mean(axis=0)
    mins = matrix.min(axis=0)
    maxs = matrix.max(axis=0)
    stds = matrix.std(axis=0)

    stats = {
        name: MetricStats(
            mean=float(means[i]),
            min=float(mins[i]),
            max=float(maxs[i]),
            stddev=float(stds[i]),
        )
        for i, name in enumerate(METRICS)
    }
    return AggregateStats(total_samples=len(samples), **stats)
