"""
Local fallback estimation.

When the network cannot be probed, a fixed CPU-bound workload is timed
and the elapsed time is mapped onto a bandwidth range.  Device speed is a
loose proxy for connection tier; nothing produced here is a real
measurement, so every sample carries ``synthetic=True``.
"""
from __future__ import annotations

import logging
import math
import random
import time
from typing import Callable, Optional, Sequence, Tuple

from .constants import (
    CALIBRATION_BUCKETS,
    CALIBRATION_ITERATIONS,
    CALIBRATION_SLOWEST,
    JITTER_FALLBACK_RANGE,
    PING_FALLBACK_RANGE,
    SYNTHETIC_UPLOAD_RATIO,
)
from .models import MeasurementResult, SampleKind, SpeedSample
from .stats import build_result

logger = logging.getLogger(__name__)

Bucket = Tuple[float, Tuple[float, float]]


def speed_range_for(
    elapsed_ms: float,
    buckets: Sequence[Bucket] = CALIBRATION_BUCKETS,
    slowest: Tuple[float, float] = CALIBRATION_SLOWEST,
) -> Tuple[float, float]:
    """Step function from calibration time to a (low, high) Mbps range."""
    for upper_ms, speed_range in buckets:
        if elapsed_ms < upper_ms:
            return speed_range
    return slowest


class FallbackEstimator:
    """Produces synthetic samples from a timed local calibration loop."""

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.perf_counter,
        iterations: int = CALIBRATION_ITERATIONS,
    ) -> None:
        self.rng = rng or random.Random()
        self.clock = clock
        self.iterations = iterations

    # -- Calibration --------------------------------------------------------

    def calibrate(self) -> float:
        """Run the fixed workload and return elapsed milliseconds."""
        start = self.clock()
        acc = 0.0
        for i in range(self.iterations):
            acc += math.sin(i) * math.cos(i)
        elapsed_ms = (self.clock() - start) * 1000
        logger.debug("Calibration: %d iterations in %.2f ms (checksum %.3f)",
                     self.iterations, elapsed_ms, acc)
        return max(elapsed_ms, 0.0)

    # -- Per-metric estimates ----------------------------------------------

    def estimate_download(self) -> SpeedSample:
        low, high = speed_range_for(self.calibrate())
        value = self.rng.uniform(low, high)
        logger.info("Using synthetic download estimate: %.2f Mbps", value)
        return SpeedSample(SampleKind.DOWNLOAD, value, synthetic=True)

    def estimate_upload(self, download_mbps: float) -> SpeedSample:
        ratio = self.rng.uniform(*SYNTHETIC_UPLOAD_RATIO)
        return SpeedSample(SampleKind.UPLOAD, max(download_mbps, 0.0) * ratio, synthetic=True)

    def estimate_ping(self) -> SpeedSample:
        return SpeedSample(SampleKind.PING, self.rng.uniform(*PING_FALLBACK_RANGE), synthetic=True)

    def estimate_jitter(self) -> SpeedSample:
        return SpeedSample(SampleKind.JITTER, self.rng.uniform(*JITTER_FALLBACK_RANGE), synthetic=True)

    def synthetic_result(self) -> MeasurementResult:
        """A complete result built entirely from estimates."""
        download = self.estimate_download()
        result = build_result(
            download,
            self.estimate_upload(download.value),
            self.estimate_ping(),
            self.estimate_jitter(),
        )
        logger.warning("Using synthetic results: %s", result.to_dict())
        return result
