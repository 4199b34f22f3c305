"""In-process one-shot triggers backed by asyncio tasks."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TriggerFired:
    """Delivered to the lifecycle when a registered trigger comes due."""

    trigger_id: str
    payload: str


TriggerHandler = Callable[[TriggerFired], Awaitable[object]]


class AsyncioTriggerScheduler:
    """One sleeping task per trigger id. Registering an id again replaces it."""

    def __init__(
        self,
        handler: TriggerHandler | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.handler = handler
        self.clock = clock
        self._tasks: dict[str, asyncio.Task] = {}
        self._instants: dict[str, datetime] = {}

    def register_one_shot(self, trigger_id: str, instant: datetime, payload: str) -> None:
        self.cancel(trigger_id)
        task = asyncio.get_running_loop().create_task(
            self._wait_and_fire(trigger_id, instant, payload),
            name=f"trigger-{trigger_id}",
        )
        self._tasks[trigger_id] = task
        self._instants[trigger_id] = instant
        logger.info(f"Trigger {trigger_id} registered for {instant.isoformat()}")

    def cancel(self, trigger_id: str) -> None:
        task = self._tasks.pop(trigger_id, None)
        self._instants.pop(trigger_id, None)
        if task and not task.done():
            task.cancel()
            logger.info(f"Trigger {trigger_id} cancelled")

    def cancel_all(self) -> None:
        for trigger_id in list(self._tasks):
            self.cancel(trigger_id)

    def pending(self) -> dict[str, datetime]:
        """Registered trigger ids and their fire instants."""
        return dict(self._instants)

    async def _wait_and_fire(self, trigger_id: str, instant: datetime, payload: str) -> None:
        delay = (instant - self.clock()).total_seconds()
        if delay > 0:
            await asyncio.sleep(delay)

        if self._tasks.get(trigger_id) is asyncio.current_task():
            del self._tasks[trigger_id]
            self._instants.pop(trigger_id, None)

        if self.handler is None:
            logger.warning(f"Trigger {trigger_id} fired with no handler")
            return
        try:
            await self.handler(TriggerFired(trigger_id=trigger_id, payload=payload))
        except Exception:
            logger.error(f"Handler for trigger {trigger_id} failed", exc_info=True)
