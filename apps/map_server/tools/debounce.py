"""Quiet-period debouncing for viewport updates."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Set


logger = logging.getLogger(__name__)

DEFAULT_QUIET_PERIOD_S = 0.1


class ViewportDebouncer:
    """
    Run ``compute`` for the latest submitted viewport once motion settles.

    Every ``submit`` restarts the quiet period and supersedes earlier
    submissions (last write wins). A computation that already started is not
    interrupted; its result is dropped if a newer submission arrived meanwhile.
    """

    def __init__(
        self,
        compute: Callable[[Any], Any],
        deliver: Callable[[Any], Awaitable[None]],
        quiet_period_s: float = DEFAULT_QUIET_PERIOD_S,
    ):
        self._compute = compute
        self._deliver = deliver
        self.quiet_period_s = quiet_period_s
        self._generation = 0
        self._pending: Optional[asyncio.Task] = None
        self._computing: Set[asyncio.Task] = set()
        self.delivered = 0
        self.discarded = 0

    @property
    def generation(self) -> int:
        return self._generation

    def submit(self, item: Any) -> None:
        """Schedule a recomputation for ``item``. Must be called from a running loop."""
        self._generation += 1
        pending = self._pending
        if pending is not None and not pending.done() and pending not in self._computing:
            pending.cancel()
        self._pending = asyncio.get_running_loop().create_task(self._run(item, self._generation))

    async def flush(self) -> None:
        """Wait until every started submission has been delivered or dropped."""
        tasks = [t for t in (self._pending, *self._computing) if t is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def cancel(self) -> None:
        """Stop any pending or running computation (e.g. on disconnect)."""
        for task in [self._pending, *self._computing]:
            if task is not None and not task.done():
                task.cancel()
        self._pending = None

    async def _run(self, item: Any, generation: int) -> None:
        await asyncio.sleep(self.quiet_period_s)

        task = asyncio.current_task()
        self._computing.add(task)
        try:
            result = self._compute(item)
            if inspect.isawaitable(result):
                result = await result
        finally:
            self._computing.discard(task)

        if generation != self._generation:
            self.discarded += 1
            logger.debug("Dropping stale viewport result (generation %d < %d)", generation, self._generation)
            return

        await self._deliver(result)
        self.delivered += 1
