"""Tests for the coroutine runners."""

import asyncio
import threading

import pytest

from obspec_stream.runners import (
    BackgroundLoopRunner,
    EphemeralRunner,
    get_default_runner,
)


async def _thread_name():
    await asyncio.sleep(0)
    return threading.current_thread().name


async def _fail():
    raise KeyError("boom")


class TestBackgroundLoopRunner:
    def test_runs_on_background_thread(self, runner):
        assert not runner.running
        assert runner.run(_thread_name()) == "obspec-stream-test-loop"
        assert runner.running

    def test_reuses_the_same_loop(self, runner):
        async def current_loop():
            return asyncio.get_running_loop()

        assert runner.run(current_loop()) is runner.run(current_loop())

    def test_propagates_exceptions(self, runner):
        with pytest.raises(KeyError):
            runner.run(_fail())

    def test_concurrent_callers(self, runner):
        results = []

        def call():
            results.append(runner.run(_thread_name()))

        threads = [threading.Thread(target=call) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert results == ["obspec-stream-test-loop"] * 8

    def test_blocking_from_loop_thread_raises(self, runner):
        async def nested():
            coro = _thread_name()
            with pytest.raises(RuntimeError):
                runner.run(coro)
            return True

        assert runner.run(nested())

    def test_blocking_from_another_event_loop(self, runner):
        """A thread already running its own loop can still block on the runner."""

        async def caller():
            return runner.run(_thread_name())

        assert asyncio.run(caller()) == "obspec-stream-test-loop"

    def test_close_stops_thread(self):
        runner = BackgroundLoopRunner()
        runner.run(_thread_name())
        runner.close()
        assert not runner.running
        # Restarts lazily after close
        assert runner.run(_thread_name()) == "obspec-stream-loop"
        runner.close()


class TestEphemeralRunner:
    def test_runs_on_calling_thread(self):
        assert EphemeralRunner().run(_thread_name()) == threading.current_thread().name

    def test_propagates_exceptions(self):
        with pytest.raises(KeyError):
            EphemeralRunner().run(_fail())

    @pytest.mark.asyncio
    async def test_refuses_nested_event_loop(self):
        with pytest.raises(RuntimeError):
            EphemeralRunner().run(_thread_name())


def test_default_runner_is_shared():
    assert get_default_runner() is get_default_runner()
