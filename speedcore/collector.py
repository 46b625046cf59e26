"""
Network probes against third-party endpoints.

Every probe is awaited sequentially so probes never compete for the same
link.  No probe raises to its caller: transport errors, timeouts, non-2xx
responses and unusable bodies all degrade to a synthetic sample, either
from the :class:`~speedcore.fallback.FallbackEstimator` or by inline
substitution inside a ping/jitter batch.  The only exception that escapes
is :class:`~speedcore.errors.MeasurementCancelled`.
"""
from __future__ import annotations

import asyncio
import base64
import logging
import random
import time
from typing import Callable, List, Optional, Sequence, Tuple
from urllib.parse import urlsplit, urlunsplit

import aiohttp

from .cancel import CancelToken
from .constants import (
    CACHE_BUST_PARAM,
    COMMON_HEADERS,
    DEFAULT_JITTER_COUNT,
    DEFAULT_JITTER_INTERVAL,
    DEFAULT_PING_COUNT,
    DEFAULT_PING_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT,
    DOWNLOAD_ENDPOINTS,
    JITTER_ENDPOINT,
    JITTER_SAMPLE_FALLBACK_RANGE,
    PING_ENDPOINTS,
    PING_FALLBACK_RANGE,
    UPLOAD_FAILURE_RATIO,
    UPLOAD_PAYLOAD_SIZE,
    UPLOAD_SUCCESS_CAP,
)
from .errors import NetworkFailure
from .fallback import FallbackEstimator
from .models import SampleKind, SpeedSample
from .stats import is_plausible_latency

logger = logging.getLogger(__name__)


def with_cache_buster(url: str, stamp_ms: Optional[int] = None) -> str:
    """Append ``t=<epoch ms>`` so intermediaries cannot serve a cached copy."""
    if stamp_ms is None:
        stamp_ms = int(time.time() * 1000)
    scheme, netloc, path, query, fragment = urlsplit(url)
    param = f"{CACHE_BUST_PARAM}={stamp_ms}"
    query = f"{query}&{param}" if query else param
    return urlunsplit((scheme, netloc, path, query, fragment))


class SampleCollector:
    """
    Timed download / upload-proxy / ping / jitter probes.

    Use as an async context manager (``async with SampleCollector() as c``);
    the collector then owns an ``aiohttp.ClientSession`` for the duration of
    the block.  An injected *session* is used as-is and never closed.
    """

    def __init__(
        self,
        download_endpoints: Sequence[str] = DOWNLOAD_ENDPOINTS,
        ping_endpoints: Sequence[str] = PING_ENDPOINTS,
        jitter_endpoint: str = JITTER_ENDPOINT,
        ping_count: int = DEFAULT_PING_COUNT,
        ping_interval: float = DEFAULT_PING_INTERVAL,
        jitter_count: int = DEFAULT_JITTER_COUNT,
        jitter_interval: float = DEFAULT_JITTER_INTERVAL,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
        estimator: Optional[FallbackEstimator] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.perf_counter,
        encoder: Callable[[bytes], bytes] = base64.b64encode,
    ) -> None:
        if not download_endpoints:
            raise ValueError("download_endpoints must not be empty")
        if not ping_endpoints:
            raise ValueError("ping_endpoints must not be empty")

        self.download_endpoints = list(download_endpoints)
        self.ping_endpoints = list(ping_endpoints)
        self.jitter_endpoint = jitter_endpoint
        self.ping_count = ping_count
        self.ping_interval = ping_interval
        self.jitter_count = jitter_count
        self.jitter_interval = jitter_interval
        self.request_timeout = request_timeout
        self.rng = rng or random.Random()
        self.estimator = estimator or FallbackEstimator(rng=self.rng)
        self.clock = clock
        self.encoder = encoder

        self._session = session
        self._owns_session = False

    # -- Context manager ----------------------------------------------------

    async def __aenter__(self) -> SampleCollector:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers=COMMON_HEADERS,
                timeout=aiohttp.ClientTimeout(total=self.request_timeout),
            )
            self._owns_session = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
            self._owns_session = False

    # -- Internal helpers ---------------------------------------------------

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError(
                "SampleCollector must be used as an async context manager "
                "(async with SampleCollector() as collector: ...)"
            )
        return self._session

    async def _timed_request(self, method: str, url: str, read_body: bool) -> Tuple[float, int]:
        """Issue one non-cached request; return (elapsed seconds, body bytes)."""
        session = self._ensure_session()
        target = with_cache_buster(url)
        start = self.clock()

        try:
            async with session.request(method, target, headers={"Cache-Control": "no-cache"}) as resp:
                resp.raise_for_status()
                body = await resp.read() if read_body else b""
        except asyncio.TimeoutError as exc:
            raise NetworkFailure(f"{method} {url}: timed out") from exc
        except (aiohttp.ClientError, OSError, ValueError) as exc:
            raise NetworkFailure(f"{method} {url}: {exc}") from exc

        return self.clock() - start, len(body)

    # -- Download -----------------------------------------------------------

    async def measure_download(self, token: Optional[CancelToken] = None) -> SpeedSample:
        """Fetch one random pool resource and derive Mbps from size / time."""
        token = token or CancelToken()
        token.raise_if_cancelled()

        url = self.rng.choice(self.download_endpoints)
        logger.debug("Testing download from: %s", url)

        try:
            elapsed, size = await self._timed_request("GET", url, read_body=True)
            if size <= 0:
                raise NetworkFailure(f"GET {url}: empty body")
            if elapsed <= 0:
                raise NetworkFailure(f"GET {url}: no measurable elapsed time")
        except NetworkFailure as exc:
            token.raise_if_cancelled()
            logger.warning("Download test failed, using synthetic result: %s", exc)
            return self.estimator.estimate_download()

        token.raise_if_cancelled()
        mbps = (size * 8) / elapsed / 1_000_000
        logger.info("Download test: %d bytes in %.3fs = %.2f Mbps", size, elapsed, mbps)
        return SpeedSample(SampleKind.DOWNLOAD, mbps)

    # -- Upload (local proxy) -----------------------------------------------

    async def measure_upload(
        self,
        download_mbps: float,
        token: Optional[CancelToken] = None,
    ) -> SpeedSample:
        """
        Estimate upload from a timed local encode of a generated payload.

        There is no cooperative upload target, so the proxy is capped at
        ``UPLOAD_SUCCESS_CAP`` of the measured download; if the proxy itself
        fails, upload is ``UPLOAD_FAILURE_RATIO`` of download.
        """
        token = token or CancelToken()
        token.raise_if_cancelled()
        download_mbps = max(download_mbps, 0.0)

        try:
            payload = self.rng.randbytes(UPLOAD_PAYLOAD_SIZE)
            start = self.clock()
            encoded = self.encoder(payload)
            elapsed = self.clock() - start
            if not encoded:
                raise ValueError("encoder produced no output")
            if elapsed <= 0:
                raise ValueError("encode finished with no measurable elapsed time")
        except (ValueError, TypeError, MemoryError) as exc:
            value = download_mbps * UPLOAD_FAILURE_RATIO
            logger.warning("Upload test failed, using estimate %.2f Mbps: %s", value, exc)
            return SpeedSample(SampleKind.UPLOAD, value, synthetic=True)

        await asyncio.sleep(0)
        token.raise_if_cancelled()

        proxy = (len(payload) * 8) / elapsed / 1_000_000
        value = min(proxy, download_mbps * UPLOAD_SUCCESS_CAP)
        logger.info("Upload test completed in %.4fs = %.2f Mbps (reported %.2f)", elapsed, proxy, value)
        return SpeedSample(SampleKind.UPLOAD, value)

    # -- Ping ---------------------------------------------------------------

    async def measure_ping(self, token: Optional[CancelToken] = None) -> List[SpeedSample]:
        """Sequential HEAD requests rotating through the ping endpoints."""
        token = token or CancelToken()
        samples: List[SpeedSample] = []

        for i in range(self.ping_count):
            token.raise_if_cancelled()
            endpoint = self.ping_endpoints[i % len(self.ping_endpoints)]
            samples.append(
                await self._latency_sample(
                    SampleKind.PING, "HEAD", endpoint, PING_FALLBACK_RANGE, f"Ping {i + 1}"
                )
            )
            if i < self.ping_count - 1:
                await token.sleep(self.ping_interval)

        return samples

    # -- Jitter -------------------------------------------------------------

    async def measure_jitter(self, token: Optional[CancelToken] = None) -> List[SpeedSample]:
        """Sequential GETs to the single reference endpoint."""
        token = token or CancelToken()
        samples: List[SpeedSample] = []

        for i in range(self.jitter_count):
            token.raise_if_cancelled()
            samples.append(
                await self._latency_sample(
                    SampleKind.JITTER, "GET", self.jitter_endpoint,
                    JITTER_SAMPLE_FALLBACK_RANGE, f"Jitter sample {i + 1}",
                )
            )
            if i < self.jitter_count - 1:
                await token.sleep(self.jitter_interval)

        return samples

    async def _latency_sample(
        self,
        kind: SampleKind,
        method: str,
        url: str,
        fallback_range: Tuple[float, float],
        label: str,
    ) -> SpeedSample:
        """One timed round-trip, replaced inline by a bounded random value on failure."""
        try:
            elapsed, _ = await self._timed_request(method, url, read_body=False)
            rtt_ms = elapsed * 1000
            if not is_plausible_latency(rtt_ms):
                raise NetworkFailure(f"{method} {url}: implausible round-trip {rtt_ms:.2f} ms")
        except NetworkFailure as exc:
            value = self.rng.uniform(*fallback_range)
            logger.warning("%s failed, substituting %.2f ms: %s", label, value, exc)
            return SpeedSample(kind, value, synthetic=True)

        logger.debug("%s: %.2f ms", label, rtt_ms)
        return SpeedSample(kind, rtt_ms)
