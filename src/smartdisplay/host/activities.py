"""Foreground processes launched on the display host."""

import asyncio
import logging
import os
import signal
from typing import Dict, Sequence

from ..core.orchestrator import ActivityController, ActivityKind

logger = logging.getLogger(__name__)


class ProcessActivityController(ActivityController):
    """Runs each activity as a detached child process.

    The kiosk browser serves presentation modes and the AirPlay receiver
    serves mirroring. A process this controller did not spawn (left over from
    an earlier run) is stopped with ``pkill -f`` on its executable name.
    """

    def __init__(
        self,
        commands: Dict[ActivityKind, Sequence[str]],
        stop_timeout: float = 5.0,
    ):
        missing = [kind.value for kind in ActivityKind if not commands.get(kind)]
        if missing:
            raise ValueError(f"No command configured for: {', '.join(missing)}")
        self.commands = {kind: list(argv) for kind, argv in commands.items()}
        self.stop_timeout = stop_timeout
        self._processes: Dict[ActivityKind, asyncio.subprocess.Process] = {}

    def is_running(self, kind: ActivityKind) -> bool:
        proc = self._processes.get(kind)
        return proc is not None and proc.returncode is None

    async def start(self, kind: ActivityKind) -> bool:
        argv = self.commands[kind]
        if self.is_running(kind):
            logger.debug(f"{kind.value} already running")
            return True
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            logger.error(f"Failed to launch {kind.value} ({argv[0]}): {e}")
            return False

        self._processes[kind] = proc
        logger.info(f"Launched {kind.value} (pid {proc.pid})")
        return True

    async def stop(self, kind: ActivityKind) -> bool:
        proc = self._processes.pop(kind, None)
        if proc is None:
            return await self._pkill(self.commands[kind][0])
        if proc.returncode is not None:
            return True

        self._signal_group(proc, signal.SIGTERM)
        try:
            await asyncio.wait_for(proc.wait(), timeout=self.stop_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{kind.value} ignored SIGTERM, killing pid {proc.pid}")
            self._signal_group(proc, signal.SIGKILL)
            try:
                await asyncio.wait_for(proc.wait(), timeout=self.stop_timeout)
            except asyncio.TimeoutError:
                logger.error(f"{kind.value} (pid {proc.pid}) did not exit")
                return False
        logger.info(f"Stopped {kind.value}")
        return True

    @staticmethod
    def _signal_group(proc: asyncio.subprocess.Process, sig: int) -> None:
        try:
            os.killpg(proc.pid, sig)
        except ProcessLookupError:
            pass
        except OSError:
            proc.send_signal(sig)

    async def _pkill(self, executable: str) -> bool:
        name = os.path.basename(executable)
        try:
            proc = await asyncio.create_subprocess_exec(
                "pkill",
                "-f",
                name,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
            await proc.wait()
        except OSError as e:
            logger.warning(f"pkill unavailable: {e}")
            return False
        # pkill exits 1 when nothing matched
        return proc.returncode in (0, 1)

