"""Mode to foreground-activity orchestration."""

import asyncio
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, Optional, Set

from .state import Mode

logger = logging.getLogger(__name__)


class ActivityKind(str, Enum):
    """Mutually exclusive foreground activities"""

    PRESENTATION = "presentation"
    MIRRORING = "mirroring"


MODE_ACTIVITIES: Dict[Mode, Optional[ActivityKind]] = {
    Mode.READY: ActivityKind.PRESENTATION,
    Mode.MUSIC: ActivityKind.PRESENTATION,
    Mode.IMAGE: ActivityKind.PRESENTATION,
    Mode.AIRPLAY: ActivityKind.MIRRORING,
    Mode.CAST: None,
    Mode.OFF: None,
}


class ActivityController(ABC):
    """Launches and stops foreground activities on the host"""

    @abstractmethod
    async def start(self, kind: ActivityKind) -> bool:
        """Start an activity; True on success"""

    @abstractmethod
    async def stop(self, kind: ActivityKind) -> bool:
        """Stop an activity; True on success"""


class DeviceController(ABC):
    """Device-level power control"""

    @abstractmethod
    async def suspend(self) -> bool:
        """Put the device to sleep; True on success"""

    @abstractmethod
    async def wake(self) -> bool:
        """Wake the device; True on success"""


class ModeOrchestrator:
    """Keeps at most one foreground activity running for the current mode"""

    def __init__(self, activities: ActivityController, device: DeviceController):
        self.activities = activities
        self.device = device
        self._running: Optional[ActivityKind] = None
        self._last_mode: Optional[Mode] = None
        self._orphaned: Set[ActivityKind] = set()
        self._lock = asyncio.Lock()

    @property
    def running(self) -> Optional[ActivityKind]:
        """Activity currently tagged as running"""
        return self._running

    @property
    def last_mode(self) -> Optional[Mode]:
        """Mode most recently entered through transition_to"""
        return self._last_mode

    async def transition_to(self, mode: Mode) -> bool:
        """Stop the running activity, then start the one mode requires"""
        async with self._lock:
            return await self._transition(mode)

    async def suspend_all(self) -> bool:
        """Stop any activity and suspend the device"""
        async with self._lock:
            await self._stop_running()
            try:
                suspended = await self.device.suspend()
            except Exception as e:
                logger.error(f"Device suspend failed: {e}")
                suspended = False
            if not suspended:
                logger.error("Device did not suspend")
            return suspended

    async def resume(self) -> bool:
        """Wake the device and re-enter the last mode's activity"""
        async with self._lock:
            try:
                woke = await self.device.wake()
            except Exception as e:
                logger.error(f"Device wake failed: {e}")
                woke = False
            if not woke:
                logger.error("Device did not wake")

            if self._last_mode is None:
                logger.info("No previous mode recorded, nothing to resume")
                return woke
            started = await self._transition(self._last_mode)
            return woke and started

    async def _transition(self, mode: Mode) -> bool:
        required = MODE_ACTIVITIES[mode]
        await self._stop_running()
        self._last_mode = mode

        if required is None:
            logger.info(f"Mode {mode.value} needs no foreground activity")
            return True

        try:
            started = await self.activities.start(required)
        except Exception as e:
            logger.error(f"Starting {required.value} for mode {mode.value} raised: {e}")
            started = False

        if started:
            self._running = required
            logger.info(f"Started {required.value} for mode {mode.value}")
        else:
            logger.error(f"Failed to start {required.value} for mode {mode.value}")
        return started

    async def _stop_running(self) -> None:
        # A failed stop counts as stopped; it is reissued on the next transition
        pending = list(self._orphaned)
        if self._running is not None and self._running not in pending:
            pending.insert(0, self._running)
        self._running = None

        for kind in pending:
            try:
                stopped = await self.activities.stop(kind)
            except Exception as e:
                logger.warning(f"Stopping {kind.value} raised: {e}")
                stopped = False
            if stopped:
                self._orphaned.discard(kind)
            else:
                logger.warning(
                    f"Stop of {kind.value} reported failure, treating as stopped"
                )
                self._orphaned.add(kind)
