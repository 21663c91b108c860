"""Device-level suspend and wake."""

import asyncio
import logging
from typing import Optional, Sequence

from ..core.orchestrator import DeviceController

logger = logging.getLogger(__name__)

_METHODS = {
    # method: (suspend argv, wake argv)
    "systemd": (["systemctl", "suspend"], None),
    "dpms": (["xset", "dpms", "force", "off"], ["xset", "dpms", "force", "on"]),
    "none": (None, None),
}


class HostDeviceController(DeviceController):
    """Suspends the host or blanks its screen, depending on method.

    ``systemd`` suspends the whole machine; waking is left to the platform
    (RTC alarm, input) and reported as success. ``dpms`` only powers the
    panel down, which keeps the scheduler running.
    """

    def __init__(self, method: str = "systemd"):
        if method not in _METHODS:
            raise ValueError(f"Unknown power method: {method}")
        self.method = method
        self._suspend_cmd, self._wake_cmd = _METHODS[method]

    async def suspend(self) -> bool:
        return await self._run(self._suspend_cmd, "suspend")

    async def wake(self) -> bool:
        return await self._run(self._wake_cmd, "wake")

    async def _run(self, argv: Optional[Sequence[str]], action: str) -> bool:
        if not argv:
            return True
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            _, stderr_bytes = await proc.communicate()
        except OSError as e:
            logger.error(f"Failed to {action} ({argv[0]}): {e}")
            return False

        if proc.returncode != 0:
            stderr = stderr_bytes.decode("utf-8", errors="replace").strip()
            logger.error(f"Failed to {action} (rc={proc.returncode}): {stderr[:500]}")
            return False
        logger.info(f"Device {action} via {self.method}")
        return True
