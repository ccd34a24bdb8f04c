"""Trailing-edge debounce for asyncio callbacks."""
from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class Debouncer:
    """Run ``callback`` once input has been quiet for ``delay`` seconds.

    Every ``trigger`` cancels the pending run and schedules a new one with the
    latest arguments. ``cancel`` drops anything pending and is safe to call
    more than once. A failing run is logged and kept in ``last_error`` until
    the next run succeeds.
    """

    def __init__(self, delay: float, callback: Callable[..., Any | Awaitable[Any]]) -> None:
        self._delay = delay
        self._callback = callback
        self._task: asyncio.Task | None = None
        self.last_error: str | None = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def trigger(self, *args: Any, **kwargs: Any) -> asyncio.Task:
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run(args, kwargs))
        return self._task

    async def _run(self, args: tuple, kwargs: dict) -> None:
        await asyncio.sleep(self._delay)
        try:
            result = self._callback(*args, **kwargs)
            if inspect.isawaitable(result):
                await result
            self.last_error = None
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001 - background task, nobody awaits it
            self.last_error = str(exc) or type(exc).__name__
            logger.exception("debounced callback %r failed", self._callback)

    async def wait(self) -> None:
        """Wait for the pending run, if any, to finish."""

        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
