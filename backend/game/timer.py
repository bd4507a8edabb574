"""Single cancellable timer owned by the current round phase."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

Callback = Callable[[], Awaitable[None]]


class PhaseTimer:
    """At most one pending timer at a time.

    schedule() cancels whatever is pending before arming the new timer, so
    ticks from a previous phase can never overlap with the next one.
    """

    def __init__(self):
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(self, delay: float, callback: Callback) -> None:
        self.cancel()
        self._task = asyncio.create_task(self._fire(delay, callback))

    def cancel(self) -> None:
        task, self._task = self._task, None
        # The running callback may reschedule; never cancel it from inside itself
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _fire(self, delay: float, callback: Callback) -> None:
        try:
            await asyncio.sleep(delay)
            await callback()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Phase timer callback failed: {e}", exc_info=True)
