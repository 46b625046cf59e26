"""Tests for speedcore.orchestrator -- the run state machine."""

import asyncio
import random
import unittest
from unittest import mock

import aiohttp

from fakes import FakeResponse, FakeSession, StepClock, failing_encoder, failing_responder
from speedcore.cancel import CancelToken
from speedcore.collector import SampleCollector
from speedcore.fallback import FallbackEstimator
from speedcore.history import MemoryStorage, ResultStore
from speedcore.models import MeasurementResult, Rating
from speedcore.orchestrator import Phase, State, TestOrchestrator
from speedcore.rating import Metric, rate_result


def _orchestrator(session, clock_step=0.01, seed=3, **kwargs):
    rng = random.Random(seed)
    collector = SampleCollector(
        download_endpoints=["https://cdn.example/lib.js"],
        ping_endpoints=["https://p.example/"],
        jitter_endpoint="https://ref.example/trace",
        ping_interval=0,
        jitter_interval=0,
        session=session,
        rng=rng,
        estimator=FallbackEstimator(rng=rng, clock=StepClock(0.005), iterations=10),
        clock=StepClock(clock_step),
        **kwargs,
    )
    return TestOrchestrator(collector=collector, store=ResultStore(MemoryStorage()))


class TestHappyPath(unittest.IsolatedAsyncioTestCase):
    async def test_completes_with_real_result(self):
        orch = _orchestrator(FakeSession(lambda m, u: FakeResponse(200, b"x" * 125_000)))
        result = await orch.start()

        self.assertIsInstance(result, MeasurementResult)
        self.assertIs(orch.state, State.COMPLETED)
        self.assertIs(orch.result, result)
        self.assertFalse(result.synthetic)
        # 125 kB in 10 ms = 100 Mbps
        self.assertEqual(result.download, 100.0)
        self.assertEqual(result.ping, 10.0)
        self.assertEqual(result.jitter, 0.0)
        self.assertLessEqual(result.upload, 0.30 * result.download + 1)

    async def test_phase_order_and_progress(self):
        orch = _orchestrator(FakeSession())
        events = []
        orch.on_progress = events.append
        await orch.start()
        self.assertEqual(
            [e.phase for e in events],
            [Phase.DOWNLOAD, Phase.UPLOAD, Phase.PING, Phase.JITTER, Phase.AGGREGATE],
        )

    async def test_request_order(self):
        session = FakeSession()
        await _orchestrator(session).start()
        methods = [m for m, _ in session.calls]
        self.assertEqual(methods, ["GET"] + ["HEAD"] * 5 + ["GET"] * 8)

    async def test_result_stored(self):
        orch = _orchestrator(FakeSession())
        result = await orch.start()
        self.assertEqual(orch.store.history(), [result])
        self.assertEqual(orch.store.last_result, result)

    async def test_progress_callback_error_does_not_abort(self):
        orch = _orchestrator(FakeSession())

        def boom(event):
            raise RuntimeError("ui broke")

        orch.on_progress = boom
        with self.assertLogs("speedcore.orchestrator", level="ERROR"):
            result = await orch.start()
        self.assertIsNotNone(result)


class TestAllProbesFail(unittest.IsolatedAsyncioTestCase):
    async def test_synthetic_bounded_result(self):
        for seed in range(20):
            orch = _orchestrator(FakeSession(failing_responder), seed=seed, encoder=failing_encoder)
            r = await orch.start()
            self.assertTrue(r.synthetic)
            self.assertGreaterEqual(r.download, 1)
            self.assertLessEqual(r.download, 500)
            self.assertGreaterEqual(r.ping, 15)
            self.assertLessEqual(r.ping, 50)
            self.assertGreaterEqual(r.jitter, 5)
            self.assertLessEqual(r.jitter, 40)
            self.assertLessEqual(r.upload, 0.10 * r.download + 1)
            self.assertGreaterEqual(r.upload, 0)

    async def test_one_failed_phase_marks_synthetic(self):
        calls = {"n": 0}

        def responder(method, url):
            calls["n"] += 1
            if method == "HEAD" and calls["n"] == 3:
                return aiohttp.ClientConnectionError("reset")
            return FakeResponse(200, b"x" * 1000)

        r = await _orchestrator(FakeSession(responder)).start()
        self.assertTrue(r.synthetic)

    async def test_unexpected_error_yields_synthetic_result(self):
        orch = _orchestrator(FakeSession())
        with mock.patch.object(orch.collector, "measure_download", side_effect=RuntimeError("boom")):
            with self.assertLogs("speedcore.orchestrator", level="ERROR"):
                r = await orch.start()
        self.assertTrue(r.synthetic)
        self.assertIs(orch.state, State.COMPLETED)
        self.assertEqual(len(orch.store.history()), 1)


class TestStateMachine(unittest.IsolatedAsyncioTestCase):
    async def test_start_while_running_is_noop(self):
        gate = asyncio.Event()
        orch = _orchestrator(FakeSession(gate=gate))

        first = asyncio.create_task(orch.start())
        await asyncio.sleep(0)
        self.assertIs(orch.state, State.RUNNING)

        second = await orch.start()
        self.assertIsNone(second)

        gate.set()
        result = await first
        self.assertIsNotNone(result)
        self.assertEqual(len(orch.store.history()), 1)

    async def test_concurrent_starts_produce_one_result(self):
        orch = _orchestrator(FakeSession())
        results = await asyncio.gather(orch.start(), orch.start())
        self.assertEqual(sum(r is not None for r in results), 1)
        self.assertEqual(len(orch.store.history()), 1)

    async def test_start_after_completed_is_noop(self):
        orch = _orchestrator(FakeSession())
        await orch.start()
        self.assertIsNone(await orch.start())
        self.assertEqual(len(orch.store.history()), 1)

    async def test_reset_keeps_history(self):
        orch = _orchestrator(FakeSession())
        await orch.start()
        orch.reset()
        self.assertIs(orch.state, State.IDLE)
        self.assertIsNone(orch.result)
        self.assertEqual(len(orch.store.history()), 1)

    async def test_run_full_test_callback_and_rerun(self):
        orch = _orchestrator(FakeSession())
        received = []
        first = await orch.run_full_test(received.append)
        second = await orch.run_full_test(received.append)
        self.assertEqual(received, [first, second])
        self.assertEqual(len(orch.store.history()), 2)

    async def test_without_store(self):
        orch = _orchestrator(FakeSession())
        orch.store = None
        self.assertIsNotNone(await orch.start())


class TestCancellation(unittest.IsolatedAsyncioTestCase):
    async def test_cancel_mid_run_returns_to_idle(self):
        token = CancelToken()

        def responder(method, url):
            if method == "HEAD":
                token.cancel()
            return FakeResponse(200, b"x" * 1000)

        orch = _orchestrator(FakeSession(responder))
        events = []
        orch.on_progress = events.append

        result = await orch.start(token)

        self.assertIsNone(result)
        self.assertIs(orch.state, State.IDLE)
        self.assertIsNone(orch.result)
        self.assertEqual(orch.store.history(), [])
        self.assertNotIn(Phase.AGGREGATE, [e.phase for e in events])

    async def test_cancelled_before_start(self):
        token = CancelToken()
        token.cancel()
        session = FakeSession()
        orch = _orchestrator(session)
        self.assertIsNone(await orch.start(token))
        self.assertEqual(session.calls, [])
        self.assertIs(orch.state, State.IDLE)

    async def test_can_run_again_after_cancel(self):
        token = CancelToken()
        token.cancel()
        orch = _orchestrator(FakeSession())
        await orch.start(token)
        self.assertIsNotNone(await orch.start())

    async def test_task_cancellation_restores_idle(self):
        gate = asyncio.Event()
        orch = _orchestrator(FakeSession(gate=gate))
        task = asyncio.create_task(orch.start())
        await asyncio.sleep(0)
        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task
        self.assertIs(orch.state, State.IDLE)


class TestScenarioRatings(unittest.TestCase):
    def test_reference_result(self):
        r = MeasurementResult(download=120, upload=15, ping=18, jitter=8)
        self.assertEqual(
            rate_result(r),
            {
                Metric.DOWNLOAD: Rating.EXCELLENT,
                Metric.UPLOAD: Rating.GOOD,
                Metric.PING: Rating.EXCELLENT,
                Metric.JITTER: Rating.EXCELLENT,
            },
        )


if __name__ == "__main__":
    unittest.main()
