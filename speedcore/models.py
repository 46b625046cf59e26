"""
Measurement data models.

Samples and results are frozen dataclasses: once a probe or the
aggregator has produced one, nothing downstream may change it.
"""
from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SampleKind(str, enum.Enum):
    DOWNLOAD = "download"
    UPLOAD = "upload"
    PING = "ping"
    JITTER = "jitter"


class Rating(str, enum.Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


# ---------------------------------------------------------------------------
# Sample
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SpeedSample:
    """One measured (or estimated) value for a single metric."""

    kind: SampleKind
    value: float
    synthetic: bool = False
    timestamp: datetime = field(default_factory=utcnow)


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

_METRICS = ("download", "upload", "ping", "jitter")


@dataclass(frozen=True)
class MeasurementResult:
    """Final outcome of one completed test run."""

    download: float
    upload: float
    ping: float
    jitter: float
    timestamp: datetime = field(default_factory=utcnow)
    synthetic: bool = False

    def __post_init__(self) -> None:
        for name in _METRICS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{name} must be a number, got {value!r}")
            try:
                number = float(value)
            except OverflowError as exc:
                raise ValueError(f"{name} is out of range: {exc}") from exc
            if math.isnan(number) or math.isinf(number) or number < 0:
                raise ValueError(f"{name} must be a finite non-negative number, got {value!r}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "download": self.download,
            "upload": self.upload,
            "ping": self.ping,
            "jitter": self.jitter,
            "timestamp": self.timestamp.isoformat(),
            "synthetic": self.synthetic,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> MeasurementResult:
        """Inverse of :meth:`to_dict`.  Raises ``ValueError`` on bad input."""
        if not isinstance(data, dict):
            raise ValueError("result must be a JSON object")

        missing = [k for k in _METRICS if k not in data]
        if missing:
            raise ValueError(f"missing fields: {', '.join(missing)}")

        ts_raw = data.get("timestamp")
        if ts_raw is None:
            timestamp = utcnow()
        elif isinstance(ts_raw, str):
            # toISOString() emits a trailing Z, which fromisoformat only accepts from 3.11
            if ts_raw.endswith("Z"):
                ts_raw = ts_raw[:-1] + "+00:00"
            timestamp = datetime.fromisoformat(ts_raw)
        else:
            raise ValueError(f"timestamp must be an ISO-8601 string, got {ts_raw!r}")

        synthetic = data.get("synthetic", False)
        if not isinstance(synthetic, bool):
            raise ValueError(f"synthetic must be a boolean, got {synthetic!r}")

        return cls(
            download=data["download"],
            upload=data["upload"],
            ping=data["ping"],
            jitter=data["jitter"],
            timestamp=timestamp,
            synthetic=synthetic,
        )
