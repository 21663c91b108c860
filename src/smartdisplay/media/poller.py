"""Periodic media polling that feeds the command queue."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from ..core.commands import CommandType
from ..core.state import MediaSnapshot
from .base import MediaStatusSource

logger = logging.getLogger(__name__)

Submit = Callable[..., Awaitable[Any]]


class MediaPoller:
    """Polls a MediaStatusSource and posts each snapshot as a media command."""

    def __init__(self, source: MediaStatusSource, submit: Submit, interval: float = 3.0) -> None:
        self.source = source
        self.submit = submit
        self.interval = interval
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._poll_loop())
        logger.info("Media poller started (every %.1fs)", self.interval)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        await self.source.close()
        logger.info("Media poller stopped")

    async def poll_once(self) -> MediaSnapshot | None:
        snapshot = await self.source.poll()
        if snapshot is None:
            return None
        await self.submit(CommandType.MEDIA, {"snapshot": snapshot})
        return snapshot

    async def _poll_loop(self) -> None:
        while True:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Media poll failed")
            await asyncio.sleep(self.interval)
