"""Unit tests for ScheduledTask."""

import asyncio

from validator.src.ScheduledTask import FixedIntervalCadence, ScheduledTask


class TestScheduledTask:
    """Test the periodic runner."""

    def test_runs_until_stopped(self) -> None:
        calls = []

        async def _run() -> ScheduledTask:
            task = ScheduledTask("test", None, FixedIntervalCadence(0.01), warmup=0)

            async def func() -> None:
                calls.append(1)
                if len(calls) == 3:
                    task.stop()

            task.func = func
            await asyncio.wait_for(task.run(), timeout=5)
            return task

        task = asyncio.run(_run())
        assert task.runs == 3
        assert len(calls) == 3

    def test_stop_during_warmup(self) -> None:
        calls = []

        async def func() -> None:
            calls.append(1)

        async def _run() -> None:
            task = ScheduledTask("test", func, FixedIntervalCadence(60), warmup=60)
            runner = asyncio.create_task(task.run())
            await asyncio.sleep(0.01)
            task.stop()
            await asyncio.wait_for(runner, timeout=5)

        asyncio.run(_run())
        assert calls == []

    def test_failure_does_not_stop_loop(self) -> None:
        async def _run() -> ScheduledTask:
            task = ScheduledTask("test", None, FixedIntervalCadence(0), warmup=0)

            async def func() -> None:
                if task.runs == 1:
                    task.stop()
                raise RuntimeError("boom")

            task.func = func
            await asyncio.wait_for(task.run(), timeout=5)
            return task

        assert asyncio.run(_run()).runs == 2

    def test_fixed_interval(self) -> None:
        assert FixedIntervalCadence(60).next_delay(12.5) == 60
