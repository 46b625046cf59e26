"""
Metric rating and comparison helpers.

Provides table-driven qualitative ratings per metric, display labels and
colours, a coarse connection-type guess, and delta comparison against
the previous test result.
"""
from __future__ import annotations

import enum
from typing import Dict, Optional, Tuple, Union

from .models import MeasurementResult, Rating


class Metric(str, enum.Enum):
    DOWNLOAD = "download"
    UPLOAD = "upload"
    PING = "ping"
    JITTER = "jitter"


# ---------------------------------------------------------------------------
# Rating
# ---------------------------------------------------------------------------

# Thresholds for (excellent, good, fair); anything else is poor.
_THRESHOLDS: Dict[Metric, Tuple[float, float, float]] = {
    Metric.DOWNLOAD: (100.0, 25.0, 10.0),
    Metric.UPLOAD: (20.0, 5.0, 1.0),
    Metric.PING: (20.0, 50.0, 100.0),
    Metric.JITTER: (10.0, 30.0, 50.0),
}

_LOWER_IS_BETTER = {Metric.PING, Metric.JITTER}

_ORDER = (Rating.EXCELLENT, Rating.GOOD, Rating.FAIR)


def classify(metric: Union[Metric, str], value: float) -> Rating:
    """
    Rate *value* for *metric*, checking the best threshold first.

    Raises ``ValueError`` for an unknown metric name.
    """
    metric = Metric(metric)
    lower_is_better = metric in _LOWER_IS_BETTER

    for threshold, rating in zip(_THRESHOLDS[metric], _ORDER):
        if lower_is_better and value <= threshold:
            return rating
        if not lower_is_better and value >= threshold:
            return rating

    return Rating.POOR


def rate_result(result: MeasurementResult) -> Dict[Metric, Rating]:
    return {m: classify(m, getattr(result, m.value)) for m in Metric}


# ---------------------------------------------------------------------------
# Display
# ---------------------------------------------------------------------------

_LABELS: Dict[Metric, Dict[Rating, str]] = {
    Metric.DOWNLOAD: {
        Rating.EXCELLENT: "Excellent",
        Rating.GOOD: "Good",
        Rating.FAIR: "Fair",
        Rating.POOR: "Poor",
    },
    Metric.UPLOAD: {
        Rating.EXCELLENT: "Excellent",
        Rating.GOOD: "Good",
        Rating.FAIR: "Limited",
        Rating.POOR: "Very Limited",
    },
    Metric.PING: {
        Rating.EXCELLENT: "Excellent",
        Rating.GOOD: "Good",
        Rating.FAIR: "Moderate",
        Rating.POOR: "High",
    },
    Metric.JITTER: {
        Rating.EXCELLENT: "Very Stable",
        Rating.GOOD: "Stable",
        Rating.FAIR: "Moderate",
        Rating.POOR: "Unstable",
    },
}

_COLORS = {
    Rating.EXCELLENT: "green",
    Rating.GOOD: "blue",
    Rating.FAIR: "yellow",
    Rating.POOR: "red",
}


def rating_label(metric: Union[Metric, str], rating: Rating) -> str:
    return _LABELS[Metric(metric)][rating]


def rating_color(rating: Rating) -> str:
    return _COLORS[rating]


_CONNECTION_TYPES = [
    (500.0, "Fiber Gigabit"),
    (100.0, "High-Speed Cable"),
    (25.0, "Standard Cable"),
    (10.0, "DSL"),
    (1.0, "Basic Broadband"),
]


def connection_type(download_mbps: float) -> str:
    """Guess the access technology from download throughput."""
    for threshold, name in _CONNECTION_TYPES:
        if download_mbps >= threshold:
            return name
    return "Unknown"


# ---------------------------------------------------------------------------
# Delta comparison
# ---------------------------------------------------------------------------

def compare_with_previous(
    current: MeasurementResult,
    previous: Optional[MeasurementResult],
) -> Optional[Dict[str, float]]:
    """
    Compare *current* with *previous*.

    Returns a dict with delta values, or None if there's no previous result.
    Keys: ping_delta, jitter_delta, download_delta, upload_delta.
    """
    if previous is None:
        return None

    return {
        "ping_delta": current.ping - previous.ping,
        "jitter_delta": current.jitter - previous.jitter,
        "download_delta": current.download - previous.download,
        "upload_delta": current.upload - previous.upload,
    }


def format_delta(value: float, unit: str, invert: bool = False) -> str:
    """
    Format a delta value with a +/- prefix and color hint.

    *invert*: True for metrics where lower is better (ping, jitter).
    """
    if abs(value) < 0.01:
        return "[dim](same)[/dim]"

    sign = "+" if value > 0 else ""
    is_good = (value < 0) if invert else (value > 0)
    color = "green" if is_good else "red"

    return f"[{color}]{sign}{value:.1f} {unit}[/{color}]"
