import logging
from typing import Any, Dict, Optional

from ..common.exceptions import QueueClosedError
from .broadcast import BroadcastFanout
from .commands import CommandQueue, CommandResult, CommandType
from .config import SystemConfig
from .orchestrator import ActivityController, ActivityKind, DeviceController, ModeOrchestrator
from .router import CommandRouter
from .scheduler import Clock, Scheduler
from .state import StateStore
from ..host.activities import ProcessActivityController
from ..host.power import HostDeviceController
from ..media.base import MediaStatusSource
from ..media.images import ImageStore
from ..media.poller import MediaPoller
from ..media.spotify import SpotifyMediaSource

logger = logging.getLogger(__name__)


class SystemController:
    """Owns the state store and every component that reads or feeds it"""

    def __init__(
        self,
        config: SystemConfig,
        activities: Optional[ActivityController] = None,
        device: Optional[DeviceController] = None,
        media_source: Optional[MediaStatusSource] = None,
        clock: Optional[Clock] = None,
    ):
        """Initialize system controller; collaborators default to the host ones"""
        self.config = config
        self.store = StateStore()

        if activities is None:
            activities = ProcessActivityController(
                {
                    ActivityKind.PRESENTATION: config.activities.presentation_command,
                    ActivityKind.MIRRORING: config.activities.mirroring_command,
                },
                stop_timeout=config.activities.stop_timeout,
            )
        if device is None:
            device = HostDeviceController(config.power.method)
        if media_source is None:
            media_source = SpotifyMediaSource(
                config.media.client_id,
                config.media.client_secret,
                config.media.refresh_token,
                timeout=config.media.request_timeout,
            )

        self.orchestrator = ModeOrchestrator(activities, device)
        self.router = CommandRouter(self.store, self.orchestrator)
        self.command_queue = CommandQueue(
            self.router.execute, maxsize=config.commands.queue_size
        )
        self.fanout = BroadcastFanout(self.store, on_disconnect=self._on_disconnect)

        scheduler_kwargs: Dict[str, Any] = {}
        if clock is not None:
            scheduler_kwargs["clock"] = clock
        self.scheduler = Scheduler(
            self.store,
            self.command_queue.dispatch,
            tick_interval=config.scheduler.tick_interval,
            **scheduler_kwargs,
        )
        self.media_poller = MediaPoller(
            media_source, self.command_queue.submit, interval=config.media.poll_interval
        )
        self.image_store = ImageStore(config.storage.upload_dir)
        self._started = False

    @property
    def is_running(self) -> bool:
        return self._started

    async def start(self) -> None:
        """Start the system"""
        if self._started:
            return
        logger.info("Starting system controller")

        await self.command_queue.start()
        await self.fanout.start()

        if self.config.activities.launch_on_start:
            result = await self.command_queue.dispatch(CommandType.LAUNCH)
            if not result.success:
                logger.warning(f"Startup activity not launched ({result.status.value})")

        await self.scheduler.start()
        if self.media_poller.source.configured:
            await self.media_poller.start()
        else:
            logger.info("Media source not configured, polling disabled")

        self._started = True
        logger.info("System controller started")

    async def stop(self) -> None:
        """Stop the system"""
        if not self._started:
            return
        logger.info("Stopping system controller")
        self._started = False

        await self.media_poller.stop()
        await self.scheduler.stop()
        await self.command_queue.stop()
        await self.fanout.stop()
        logger.info("System controller stopped")

    async def dispatch(
        self,
        command_type: CommandType,
        data: Optional[Dict[str, Any]] = None,
        subscriber_id: Optional[str] = None,
    ) -> CommandResult:
        """Queue a command and wait for it to finish"""
        return await self.command_queue.dispatch(command_type, data, subscriber_id)

    async def _on_disconnect(self, subscriber_id: str) -> None:
        try:
            await self.command_queue.submit(CommandType.DISCONNECT, subscriber_id=subscriber_id)
        except QueueClosedError:
            logger.debug(f"Shutting down, dropping disconnect of {subscriber_id}")

    def get_state(self) -> Dict[str, Any]:
        """Get the current state in wire form"""
        return self.store.get().to_dict()
