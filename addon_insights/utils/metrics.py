"""
Serving Metrics
Latency percentiles, latency buckets, error rates and trend analysis for the monitoring views
"""

import time
from collections import deque
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import structlog

logger = structlog.get_logger()

# Upper bounds (exclusive) of the heatmap buckets, in ms
LATENCY_BUCKETS = [
    (50, "#14532d"),
    (100, "#22c55e"),
    (150, "#f59e0b"),
]
LATENCY_BUCKET_OVERFLOW = "#ef4444"

# Heatmap cells older than a day are dropped
HEATMAP_RETENTION_SECONDS = 24 * 60 * 60


def latency_bucket_color(latency_ms: float) -> str:
    """Heatmap colour for a latency sample"""
    for upper_bound, color in LATENCY_BUCKETS:
        if latency_ms < upper_bound:
            return color
    return LATENCY_BUCKET_OVERFLOW


def latency_status(latency_ms: float) -> Dict[str, str]:
    """Traffic-light status for a percentile reading"""
    if latency_ms < 100:
        return {"status": "good", "color": "#22c55e"}
    if latency_ms < 150:
        return {"status": "warn", "color": "#f59e0b"}
    return {"status": "bad", "color": "#ef4444"}


def calculate_percentiles(samples: List[float]) -> Dict[str, int]:
    """P50/P95/P99 of latency samples, rounded to whole milliseconds"""
    if len(samples) == 0:
        return {}

    p50, p95, p99 = np.percentile(np.asarray(samples, dtype=float), [50, 95, 99])
    return {"p50": int(round(p50)), "p95": int(round(p95)), "p99": int(round(p99))}


def calculate_trend(values: List[float]) -> Dict[str, Any]:
    """Direction and slope of a metric series"""
    if len(values) < 2:
        return {"trend": "insufficient_data"}

    x = np.arange(len(values))
    slope = float(np.polyfit(x, values, 1)[0])

    trend_direction = "improving" if slope > 0 else "declining" if slope < 0 else "stable"

    return {
        "trend": trend_direction,
        "slope": slope,
        "current_value": values[-1],
        "average_value": float(np.mean(values)),
        "min_value": min(values),
        "max_value": max(values),
    }


def compare_to_targets(metrics: Dict[str, float], targets: Dict[str, float]) -> Dict[str, Any]:
    """Achievement of each metric against its target"""
    summary = {}

    for metric_name, target_value in targets.items():
        current_value = metrics.get(metric_name, 0.0)

        summary[metric_name] = {
            "current": current_value,
            "target": target_value,
            "achievement_rate": (current_value / target_value) if target_value > 0 else 0.0,
            "meets_target": current_value >= target_value,
        }

    return summary


class LatencyMonitor:
    """Rolling window of observed upstream latencies and request outcomes"""

    def __init__(self, stream_window: int = 50, error_window: int = 100):
        self.stream = deque(maxlen=stream_window)
        self.outcomes = deque(maxlen=error_window)
        # hour of day -> (latency_ms, recorded_at)
        self.hourly: Dict[int, Tuple[float, float]] = {}
        self._next_id = 1

    def record(self, latency_ms: float, ok: bool = True, timestamp: Optional[float] = None):
        """Record one upstream call"""
        if timestamp is None:
            timestamp = time.time()

        latency_ms = float(latency_ms)
        self.stream.append({"id": self._next_id, "latency": latency_ms})
        self._next_id += 1
        self.outcomes.append(ok)
        self.hourly[datetime.fromtimestamp(timestamp).hour] = (latency_ms, timestamp)

        if not ok:
            logger.debug("Recorded failed upstream call", latency_ms=latency_ms)

    def percentiles(self) -> Dict[str, int]:
        return calculate_percentiles([point["latency"] for point in self.stream])

    def error_rate(self) -> float:
        if not self.outcomes:
            return 0.0
        return sum(1 for ok in self.outcomes if not ok) / len(self.outcomes)

    def error_count(self) -> int:
        return sum(1 for ok in self.outcomes if not ok)

    def heatmap(self, now: Optional[float] = None) -> List[Dict[str, Any]]:
        """Latest latency per hour of day within the last 24h; empty hours have no colour"""
        if now is None:
            now = time.time()

        expired = [
            hour
            for hour, (_, recorded_at) in self.hourly.items()
            if now - recorded_at >= HEATMAP_RETENTION_SECONDS
        ]
        for hour in expired:
            del self.hourly[hour]

        cells = []
        for hour in range(24):
            latency = self.hourly[hour][0] if hour in self.hourly else None
            cells.append(
                {
                    "hour": hour,
                    "latency": latency,
                    "color": latency_bucket_color(latency) if latency is not None else None,
                }
            )
        return cells

    def snapshot(self) -> Dict[str, Any]:
        return {
            "stream": list(self.stream),
            "percentiles": self.percentiles(),
            "heatmap": self.heatmap(),
            "requests": len(self.outcomes),
            "errors": self.error_count(),
            "error_rate": self.error_rate(),
        }
