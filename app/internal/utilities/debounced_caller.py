import asyncio, logging

from typing import Any, Awaitable, Callable, Optional

class DebouncedCaller:
    """
    Single-slot cancellable timer.

    Every call to `schedule` replaces the pending callback, so only the last one
    scheduled within the quiet period runs. A callback that already started is
    never cancelled; `drain` waits for those to finish.
    """

    def __init__(
        self,
        delay_seconds: float,
        on_error: Optional[Callable[[Exception], Any]] = None
    ):
        self.delay_seconds = delay_seconds
        self.on_error = on_error
        self._pending_task: Optional[asyncio.Task] = None
        self._in_flight_tasks: set[asyncio.Task] = set()

    @property
    def is_pending(self) -> bool:
        return self._pending_task is not None and not self._pending_task.done()

    def schedule(
        self,
        callback: Callable[[], Awaitable | Any]
    ):
        self.cancel()
        task = asyncio.create_task(self._run(callback))
        self._pending_task = task
        self._in_flight_tasks.add(task)
        task.add_done_callback(self._in_flight_tasks.discard)

    def cancel(self):
        if self.is_pending:
            self._pending_task.cancel()
        self._pending_task = None

    async def drain(self):
        tasks = [task for task in self._in_flight_tasks if task is not self._pending_task]
        if len(tasks) > 0:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _run(
        self,
        callback: Callable[[], Awaitable | Any]
    ):
        await asyncio.sleep(self.delay_seconds)

        # Past this point the callback is in flight and a new schedule() must not cancel it.
        if self._pending_task is asyncio.current_task():
            self._pending_task = None

        try:
            result = callback()
            if asyncio.iscoroutine(result):
                await result
        except Exception as e:
            if self.on_error is None:
                logging.error(f"[DebouncedCaller] Unhandled exception in callback: {e}")
                return

            try:
                error_result = self.on_error(e)
                if asyncio.iscoroutine(error_result):
                    await error_result
            except Exception as callback_error:
                logging.error(f"[DebouncedCaller] on_error callback failed: {callback_error}")
