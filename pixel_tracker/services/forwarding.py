"""
Background forwarder - runs forwarding work after the response is sent.

Tasks are held by strong reference until they finish, run under an overall
time budget and never propagate errors to the request that scheduled them.
"""
import asyncio
import logging
from typing import Awaitable, Set

from pixel_tracker.core.config import settings
from pixel_tracker.core.monitoring import track_error

logger = logging.getLogger(__name__)


class BackgroundForwarder:
    """
    Fire-and-forget task runner with a budget.

    With inline=True, schedule() awaits the work directly; tests use this to
    observe forwarding side effects deterministically.
    """

    def __init__(self, budget: float = settings.FORWARDING_BUDGET, inline: bool = False):
        self.budget = budget
        self.inline = inline
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def schedule(self, work: Awaitable[None], name: str = "forward") -> None:
        if self.inline:
            await self._guarded(work, name)
            return

        task = asyncio.create_task(self._guarded(work, name), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _guarded(self, work: Awaitable[None], name: str) -> None:
        try:
            await asyncio.wait_for(work, timeout=self.budget)
        except asyncio.TimeoutError:
            logger.warning(f"Background task '{name}' exceeded its {self.budget}s budget")
            track_error("forwarding_budget_exceeded", metadata={"task": name})
        except asyncio.CancelledError:
            logger.info(f"Background task '{name}' cancelled")
            raise
        except Exception as e:
            logger.error(f"Background task '{name}' failed: {e}", exc_info=True)
            track_error("forwarding_failed", metadata={"task": name, "error": str(e)})

    async def wait_idle(self) -> None:
        """Wait until every scheduled task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
