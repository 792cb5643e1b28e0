"""
Unit tests for the periodic Scheduler — lifecycle, error isolation,
and drain-on-stop.
"""
import asyncio
import os
import sys
import threading

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from services.metrics_service.scheduler import Scheduler, SchedulerState


class _Flusher:
    """Counts calls; thread-safe because flushes run in worker threads."""

    def __init__(self) -> None:
        self.calls = 0
        self._lock = threading.Lock()

    def __call__(self) -> None:
        with self._lock:
            self.calls += 1


class TestLifecycle:
    def test_initial_state(self):
        sched = Scheduler(_Flusher(), interval_ms=10)
        assert sched.state is SchedulerState.CREATED
        assert not sched.running

    def test_invalid_interval(self):
        with pytest.raises(ValueError):
            Scheduler(_Flusher(), interval_ms=0)

    def test_periodic_cycles_plus_initial_and_final(self):
        flush = _Flusher()
        sched = Scheduler(flush, interval_ms=20)

        async def scenario():
            await sched.start()
            assert sched.state is SchedulerState.RUNNING
            assert flush.calls >= 1  # initial flush happens before start returns
            await asyncio.sleep(0.15)
            await sched.stop()

        asyncio.run(scenario())
        assert sched.state is SchedulerState.STOPPED
        assert sched.cycles >= 1
        assert flush.calls == sched.cycles + 2

    def test_start_twice_is_noop(self):
        flush = _Flusher()
        sched = Scheduler(flush, interval_ms=10_000)

        async def scenario():
            await sched.start()
            await sched.start()
            await sched.stop()

        asyncio.run(scenario())
        assert flush.calls == 2

    def test_stopped_is_terminal(self):
        sched = Scheduler(_Flusher(), interval_ms=10_000)

        async def scenario():
            await sched.start()
            await sched.stop()
            with pytest.raises(RuntimeError):
                await sched.start()

        asyncio.run(scenario())

    def test_stop_is_idempotent(self):
        flush = _Flusher()
        sched = Scheduler(flush, interval_ms=10_000)

        async def scenario():
            await sched.start()
            await asyncio.gather(sched.stop(), sched.stop())
            await sched.stop()

        asyncio.run(scenario())
        assert flush.calls == 2  # initial + exactly one final

    def test_stop_without_start_still_flushes(self):
        flush = _Flusher()
        sched = Scheduler(flush, interval_ms=10_000)
        asyncio.run(sched.stop())
        assert flush.calls == 1
        assert sched.state is SchedulerState.STOPPED

    def test_async_context_manager(self):
        flush = _Flusher()

        async def scenario():
            async with Scheduler(flush, interval_ms=10_000) as sched:
                assert sched.running
            return sched

        sched = asyncio.run(scenario())
        assert sched.state is SchedulerState.STOPPED
        assert flush.calls == 2


class TestErrorIsolation:
    def test_failing_flush_does_not_stop_cycles(self):
        attempts = _Flusher()

        def flush():
            attempts()
            raise OSError("disk full")

        sched = Scheduler(flush, interval_ms=10)

        async def scenario():
            await sched.start()
            await asyncio.sleep(0.1)
            await sched.stop()

        asyncio.run(scenario())
        assert sched.cycles >= 2
        assert sched.state is SchedulerState.STOPPED
        assert attempts.calls == sched.cycles + 2


class TestDrain:
    def test_stop_waits_for_in_flight_cycle_then_flushes_once(self):
        entered = threading.Event()
        release = threading.Event()
        calls = []

        def flush():
            calls.append(len(calls))
            if len(calls) == 2:  # first periodic cycle
                entered.set()
                release.wait(5)

        sched = Scheduler(flush, interval_ms=10)

        async def scenario():
            await sched.start()
            loop = asyncio.get_running_loop()
            assert await loop.run_in_executor(None, entered.wait, 5)

            stop_task = asyncio.ensure_future(sched.stop())
            await asyncio.sleep(0.05)
            assert not stop_task.done()
            assert sched.state is SchedulerState.RUNNING

            release.set()
            await stop_task

        asyncio.run(scenario())
        assert calls == [0, 1, 2]
        assert sched.state is SchedulerState.STOPPED

    def test_nothing_flushed_after_stop(self):
        flush = _Flusher()
        sched = Scheduler(flush, interval_ms=10)

        async def scenario():
            await sched.start()
            await asyncio.sleep(0.05)
            await sched.stop()
            after_stop = flush.calls
            await asyncio.sleep(0.05)
            return after_stop

        after_stop = asyncio.run(scenario())
        assert flush.calls == after_stop

    def test_stop_during_initial_flush_waits_for_it(self):
        entered = threading.Event()
        release = threading.Event()
        log = []
        lock = threading.Lock()

        def flush():
            with lock:
                n = len([e for e in log if e[0] == "begin"])
                log.append(("begin", n))
            if n == 0:
                entered.set()
                release.wait(5)
            with lock:
                log.append(("end", n))

        sched = Scheduler(flush, interval_ms=10)

        async def scenario():
            loop = asyncio.get_running_loop()
            start_task = asyncio.ensure_future(sched.start())
            assert await loop.run_in_executor(None, entered.wait, 5)

            stop_task = asyncio.ensure_future(sched.stop())
            await asyncio.sleep(0.05)
            assert not stop_task.done()
            assert log == [("begin", 0)]

            release.set()
            await stop_task
            at_stop = list(log)
            await start_task
            await asyncio.sleep(0.05)
            return at_stop

        at_stop = asyncio.run(scenario())
        assert at_stop == [("begin", 0), ("end", 0), ("begin", 1), ("end", 1)]
        assert log == at_stop
        assert sched.state is SchedulerState.STOPPED
        assert sched.cycles == 0

    def test_start_while_stopping_raises(self):
        sched = Scheduler(_Flusher(), interval_ms=10_000)

        async def scenario():
            await sched.start()
            stop_task = asyncio.ensure_future(sched.stop())
            await asyncio.sleep(0)
            with pytest.raises(RuntimeError):
                await sched.start()
            await stop_task

        asyncio.run(scenario())
        assert sched.state is SchedulerState.STOPPED
