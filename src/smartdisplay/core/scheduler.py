"""Wall-clock driven sleep/wake scheduler."""

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Optional

from .commands import CommandType
from .state import StateStore

logger = logging.getLogger(__name__)

Dispatcher = Callable[[CommandType], Awaitable[Any]]
Clock = Callable[[], datetime]


class Scheduler:
    """Injects wake/sleep commands when the configured minute comes around.

    Triggers compare the current HH:MM against the schedule on every tick, so
    two ticks inside the same matching minute dispatch twice. The commands are
    idempotent enough for that to be harmless.
    """

    def __init__(
        self,
        store: StateStore,
        dispatch: Dispatcher,
        tick_interval: float = 60.0,
        clock: Clock = datetime.now,
    ):
        self.store = store
        self.dispatch = dispatch
        self.tick_interval = tick_interval
        self.clock = clock
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start ticking; the first check runs immediately"""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._tick_loop())
        logger.info(f"Scheduler started (tick every {self.tick_interval:.0f}s)")

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Scheduler stopped")

    async def _tick_loop(self) -> None:
        while self._running:
            try:
                await self.check()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Schedule check failed: {e}")
            await asyncio.sleep(self.tick_interval)

    async def check(self, now: Optional[datetime] = None) -> List[CommandType]:
        """Evaluate the schedule once; returns the commands dispatched"""
        state = self.store.get()
        schedule = state.schedule
        if not schedule.enabled:
            return []

        now = now or self.clock()
        current_time = now.strftime("%H:%M")
        is_weekday = now.weekday() < 5

        due: List[CommandType] = []
        if is_weekday and current_time == schedule.weekday_wake_time and state.is_sleeping:
            due.append(CommandType.WAKE)
        if current_time == schedule.sleep_time and not state.is_sleeping:
            due.append(CommandType.SLEEP)

        for command_type in due:
            logger.info(f"Schedule reached {current_time}, dispatching {command_type.value}")
            await self.dispatch(command_type)
        return due
