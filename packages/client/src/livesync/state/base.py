"""Shared reducer plumbing: bindings, generations, change hook.

Learn: Every reducer follows the same cancellation rule. Deactivating
(or switching user) bumps `_generation`; an awaited snapshot captures
the generation before it suspends and drops its result if the number
moved. Bindings are torn down at the same time, so neither a late
snapshot nor a late event can touch state after deactivation.

Switching to a different user also clears the view state through
`_reset_user_state`, so nothing from the previous user is shown or
counted while the new snapshot loads.
"""

import asyncio
from typing import Any, Callable, Coroutine, Optional

import structlog

from livesync.realtime.binding import UserBinding

logger = structlog.get_logger()


def row_id(row: Any) -> Optional[str]:
    """Id as text, so 7 and "7" refer to the same row."""
    value = row.get("id") if isinstance(row, dict) else getattr(row, "id", None)
    return None if value is None else str(value)


class FeatureReducer:
    """Base class for the per-feature reducers."""

    name = "reducer"

    def __init__(self, on_change: Optional[Callable[[Any], None]] = None):
        self.on_change = on_change
        self.user_id: Any = None
        # User whose data the view state holds; survives deactivate()
        self._state_owner: Any = None
        self._bindings: list[UserBinding] = []
        self._generation = 0
        self._tasks: set[asyncio.Task] = set()

    @property
    def active(self) -> bool:
        return self.user_id is not None

    @property
    def connected(self) -> bool:
        return bool(self._bindings) and all(b.connected for b in self._bindings)

    def _bind(self, user_id: Any) -> bool:
        """(Re)bind every binding to `user_id`. Returns True if now active."""
        if user_id == "":
            user_id = None
        if user_id != self.user_id:
            self._generation += 1
        if user_id is not None and user_id != self._state_owner:
            if self._state_owner is not None:
                logger.debug(f"{self.name}.user_switched", previous=self._state_owner, user_id=user_id)
                self._reset_user_state()
                self._changed()
            self._state_owner = user_id
        self.user_id = user_id
        for binding in self._bindings:
            binding.bind(user_id)
        return user_id is not None

    def _reset_user_state(self) -> None:
        """Drop view state tied to the bound user. Overridden per reducer."""

    def deactivate(self) -> None:
        """Stop receiving events and discard any in-flight snapshot."""
        self._generation += 1
        self.user_id = None
        for binding in self._bindings:
            binding.unbind()
        for task in list(self._tasks):
            task.cancel()
        logger.debug(f"{self.name}.deactivated")

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)

        def done(t: asyncio.Task) -> None:
            self._tasks.discard(t)
            if not t.cancelled() and t.exception() is not None:
                logger.error(f"{self.name}.task_failed", error=str(t.exception()))

        task.add_done_callback(done)
        return task

    async def wait_idle(self) -> None:
        """Wait for background work (e.g. scheduled refreshes) to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _changed(self) -> None:
        if self.on_change is None:
            return
        try:
            self.on_change(self)
        except Exception:
            logger.exception(f"{self.name}.on_change_failed")
