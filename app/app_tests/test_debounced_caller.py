import asyncio

from ..internal.utilities.debounced_caller import DebouncedCaller

DELAY = 0.05

class TestingHarnessDebouncedCaller:

    def test_only_the_last_scheduled_callback_runs(self):
        calls = []

        async def scenario():
            caller = DebouncedCaller(delay_seconds=DELAY)
            for value in range(5):
                caller.schedule(lambda value=value: calls.append(value))
            await asyncio.sleep(DELAY * 4)

        asyncio.run(scenario())
        assert calls == [4]

    def test_cancel_drops_the_pending_callback(self):
        calls = []

        async def scenario():
            caller = DebouncedCaller(delay_seconds=DELAY)
            caller.schedule(lambda: calls.append("fired"))
            assert caller.is_pending
            caller.cancel()
            assert not caller.is_pending
            await asyncio.sleep(DELAY * 4)

        asyncio.run(scenario())
        assert calls == []

    def test_started_callback_is_not_cancelled_by_a_new_schedule(self):
        calls = []

        async def slow_callback():
            calls.append("started")
            await asyncio.sleep(DELAY * 2)
            calls.append("finished")

        async def scenario():
            caller = DebouncedCaller(delay_seconds=DELAY)
            caller.schedule(slow_callback)
            await asyncio.sleep(DELAY * 1.5)
            caller.schedule(lambda: calls.append("second"))
            caller.cancel()
            await caller.drain()

        asyncio.run(scenario())
        assert calls == ["started", "finished"]

    def test_errors_are_routed_to_on_error(self):
        errors = []

        async def failing_callback():
            raise ValueError("boom")

        async def scenario():
            caller = DebouncedCaller(delay_seconds=DELAY, on_error=errors.append)
            caller.schedule(failing_callback)
            await asyncio.sleep(DELAY * 4)

        asyncio.run(scenario())
        assert len(errors) == 1
        assert str(errors[0]) == "boom"
