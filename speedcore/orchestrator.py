"""
Test sequencing.

``TestOrchestrator`` runs the phases strictly in order -- download,
upload, ping, jitter, aggregate -- and moves through::

    IDLE --start()--> RUNNING --(all phases done)--> COMPLETED --reset()--> IDLE
                         |
                         +--(cancel token fired)--> IDLE

There is no failed state.  Probe failures are absorbed by the collector,
and anything unexpected is replaced by a fully synthetic result.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .cancel import CancelToken
from .collector import SampleCollector
from .errors import MeasurementCancelled
from .fallback import FallbackEstimator
from .history import ResultStore
from .models import MeasurementResult
from .stats import build_result, summarize_jitter, summarize_ping

logger = logging.getLogger(__name__)


class State(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"


class Phase(str, enum.Enum):
    DOWNLOAD = "download"
    UPLOAD = "upload"
    PING = "ping"
    JITTER = "jitter"
    AGGREGATE = "aggregate"


@dataclass(frozen=True)
class ProgressEvent:
    """Emitted once per finished phase."""

    phase: Phase
    value: Optional[float] = None
    synthetic: bool = False


class TestOrchestrator:
    """
    Sequences one measurement run at a time.

    The caller owns the instance; a second :meth:`start` while a run is in
    flight is rejected (returns ``None``), never queued.
    """

    __test__ = False  # not a test case, despite the name

    def __init__(
        self,
        collector: Optional[SampleCollector] = None,
        store: Optional[ResultStore] = None,
        estimator: Optional[FallbackEstimator] = None,
    ) -> None:
        self.collector = collector or SampleCollector()
        self.store = store
        self.estimator = estimator or self.collector.estimator
        self.on_progress: Optional[Callable[[ProgressEvent], None]] = None

        self._state = State.IDLE
        self._result: Optional[MeasurementResult] = None

    # -- State --------------------------------------------------------------

    @property
    def state(self) -> State:
        return self._state

    @property
    def result(self) -> Optional[MeasurementResult]:
        """Result of the completed run, or None."""
        return self._result

    def reset(self) -> None:
        """COMPLETED -> IDLE.  History is left alone."""
        if self._state is State.RUNNING:
            logger.warning("reset() ignored while a test is running")
            return
        self._state = State.IDLE
        self._result = None

    # -- Run ----------------------------------------------------------------

    async def start(self, token: Optional[CancelToken] = None) -> Optional[MeasurementResult]:
        """
        Run every phase and return the result.

        Returns ``None`` without doing anything unless the orchestrator is
        IDLE, and ``None`` (back in IDLE) if *token* is cancelled mid-run.
        """
        if self._state is not State.IDLE:
            logger.warning("start() ignored: orchestrator is %s", self._state.value)
            return None

        # Set before the first await so a concurrent start() sees RUNNING.
        self._state = State.RUNNING
        token = token or CancelToken()

        try:
            result = await self._run_phases(token)
        except MeasurementCancelled:
            logger.info("Speed test cancelled")
            self._state = State.IDLE
            return None
        except BaseException:
            self._state = State.IDLE
            raise

        self._result = result
        self._state = State.COMPLETED
        self._emit(Phase.AGGREGATE, None, result.synthetic)

        if self.store is not None:
            self.store.append(result)

        return result

    async def run_full_test(
        self,
        on_complete: Optional[Callable[[MeasurementResult], None]] = None,
        token: Optional[CancelToken] = None,
    ) -> Optional[MeasurementResult]:
        """Reset if needed, run, hand the result to *on_complete* and return it."""
        if self._state is State.COMPLETED:
            self.reset()

        result = await self.start(token)
        if result is not None and on_complete is not None:
            on_complete(result)
        return result

    # -- Internals ----------------------------------------------------------

    async def _run_phases(self, token: CancelToken) -> MeasurementResult:
        logger.info("Starting speed test...")
        try:
            async with self.collector as collector:
                download = await collector.measure_download(token)
                self._emit(Phase.DOWNLOAD, download.value, download.synthetic)

                upload = await collector.measure_upload(download.value, token)
                self._emit(Phase.UPLOAD, upload.value, upload.synthetic)

                ping = summarize_ping(await collector.measure_ping(token))
                self._emit(Phase.PING, ping.value, ping.synthetic)

                jitter = summarize_jitter(
                    await collector.measure_jitter(token),
                    fallback=self.estimator.estimate_jitter,
                )
                self._emit(Phase.JITTER, jitter.value, jitter.synthetic)
        except MeasurementCancelled:
            raise
        except Exception:
            logger.exception("Test failed, returning synthetic results")
            return self.estimator.synthetic_result()

        result = build_result(download, upload, ping, jitter)
        logger.info("Final results: %s", result.to_dict())
        return result

    def _emit(self, phase: Phase, value: Optional[float], synthetic: bool = False) -> None:
        if self.on_progress is None:
            return
        try:
            self.on_progress(ProgressEvent(phase, value, synthetic))
        except Exception:
            logger.exception("Progress callback raised during %s", phase.value)
