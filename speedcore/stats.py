"""
Network measurement statistics.

Pure functions -- no I/O, no side effects.  Everything here is
deterministic and easy to unit-test.
"""
from __future__ import annotations

import math
import statistics
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from .constants import DEFAULT_PING, MAX_PLAUSIBLE_PING
from .models import MeasurementResult, SampleKind, SpeedSample, utcnow


# ---------------------------------------------------------------------------
# Sample helpers
# ---------------------------------------------------------------------------

def is_plausible_latency(value: float, upper: float = MAX_PLAUSIBLE_PING) -> bool:
    """True for round-trip times in the half-open range (0, *upper*]."""
    return 0 < value <= upper


def filter_plausible(samples: Iterable[float], upper: float = MAX_PLAUSIBLE_PING) -> List[float]:
    return [s for s in samples if is_plausible_latency(s, upper)]


def calculate_jitter(samples: List[float]) -> float:
    """Standard deviation of the round-trip times (population form)."""
    if len(samples) < 2:
        return 0.0
    return statistics.pstdev(samples)


def aggregate_ping(samples: List[float], default: float = DEFAULT_PING) -> float:
    """Mean of the plausible samples, or *default* if none survive."""
    valid = filter_plausible(samples)
    if not valid:
        return default
    return statistics.mean(valid)


def round_half_up(value: float) -> float:
    return float(math.floor(value + 0.5))


# ---------------------------------------------------------------------------
# Batch summaries
# ---------------------------------------------------------------------------

def summarize_ping(samples: List[SpeedSample]) -> SpeedSample:
    """Collapse a ping batch into one latency sample."""
    values = [s.value for s in samples]
    synthetic = any(s.synthetic for s in samples) or not filter_plausible(values)
    return SpeedSample(SampleKind.PING, aggregate_ping(values), synthetic=synthetic)


def summarize_jitter(
    samples: List[SpeedSample],
    fallback: Optional[Callable[[], SpeedSample]] = None,
) -> SpeedSample:
    """
    Collapse a jitter batch into one standard-deviation sample.

    When every sample in the batch was substituted there is no real
    variance to measure; *fallback* (if given) supplies the value instead.
    """
    if fallback is not None and (not samples or all(s.synthetic for s in samples)):
        return fallback()
    values = [s.value for s in samples]
    return SpeedSample(
        SampleKind.JITTER,
        calculate_jitter(values),
        synthetic=any(s.synthetic for s in samples),
    )


# ---------------------------------------------------------------------------
# Result assembly
# ---------------------------------------------------------------------------

def build_result(
    download: SpeedSample,
    upload: SpeedSample,
    ping: SpeedSample,
    jitter: SpeedSample,
    timestamp: Optional[datetime] = None,
) -> MeasurementResult:
    """Round each metric, stamp the time and OR the synthetic flags."""
    parts = (download, upload, ping, jitter)
    return MeasurementResult(
        download=max(round_half_up(download.value), 0.0),
        upload=max(round_half_up(upload.value), 0.0),
        ping=max(round_half_up(ping.value), 0.0),
        jitter=max(round_half_up(jitter.value), 0.0),
        timestamp=timestamp or utcnow(),
        synthetic=any(p.synthetic for p in parts),
    )


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def format_speed(speed_mbps: float) -> str:
    """Human-readable speed string."""
    if speed_mbps >= 1000:
        return f"{speed_mbps / 1000:.2f} Gbps"
    return f"{speed_mbps:.2f} Mbps"


def format_latency(latency_ms: float) -> str:
    """Human-readable latency string."""
    if latency_ms >= 1000:
        return f"{latency_ms / 1000:.2f} s"
    return f"{latency_ms:.1f} ms"
