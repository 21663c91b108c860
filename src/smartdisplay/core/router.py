"""Single funnel for every state-changing command.

The router runs inside the command queue worker, so each command's state
mutation and orchestration calls finish before the next command starts.
"""

import logging
from typing import Any, Dict, Mapping

from ..common.exceptions import ValidationError
from .commands import Command, CommandResult, CommandStatus, CommandType
from .config import is_valid_time
from .orchestrator import ModeOrchestrator
from .state import MediaSnapshot, Mode, StateStore

logger = logging.getLogger(__name__)

# Commands that still run while the device is asleep
UNGATED_COMMANDS = frozenset(
    {
        CommandType.WAKE,
        CommandType.SET_DISPLAY_MODE,
        CommandType.MEDIA,
        CommandType.DISCONNECT,
    }
)

SCHEDULE_KEYS = ("weekdayWakeTime", "sleepTime", "enabled")


class CommandRouter:
    """Validates commands, applies the sleep gate, and drives side effects"""

    def __init__(self, store: StateStore, orchestrator: ModeOrchestrator):
        self.store = store
        self.orchestrator = orchestrator
        self._handlers = {
            CommandType.MODE: self._handle_mode,
            CommandType.SLEEP: self._handle_sleep,
            CommandType.WAKE: self._handle_wake,
            CommandType.SCHEDULE: self._handle_schedule,
            CommandType.SET_DISPLAY_MODE: self._handle_display_mode,
            CommandType.IMAGE: self._handle_image,
            CommandType.MEDIA: self._handle_media,
            CommandType.DISCONNECT: self._handle_disconnect,
            CommandType.LAUNCH: self._handle_launch,
        }

    async def execute(self, command: Command) -> CommandResult:
        """Run one command to completion"""
        handler = self._handlers.get(command.type)
        if handler is None:
            raise ValidationError(f"Unknown command type: {command.type!r}")

        if self.store.get().is_sleeping and command.type not in UNGATED_COMMANDS:
            logger.debug(f"Dropped {command.type.value} while sleeping")
            return CommandResult(status=CommandStatus.GATED)

        data = command.data if command.data is not None else {}
        if not isinstance(data, Mapping):
            raise ValidationError(f"Payload for {command.type.value} must be an object")
        return await handler(command, data)

    async def _handle_mode(self, command: Command, data: Mapping[str, Any]) -> CommandResult:
        mode = Mode.parse(data.get("mode"))
        if mode is None:
            raise ValidationError(f"Invalid mode: {data.get('mode')!r}")
        return await self._change_mode(mode)

    async def _change_mode(self, mode: Mode) -> CommandResult:
        if not self.store.set_mode(mode):
            return CommandResult(status=CommandStatus.COMPLETED)

        # A failed start leaves current_mode as requested
        if await self.orchestrator.transition_to(mode):
            return CommandResult(status=CommandStatus.COMPLETED, changed=True)
        return CommandResult(
            status=CommandStatus.FAILED,
            changed=True,
            error=f"Foreground activity for {mode.value} failed to start",
        )

    async def _handle_sleep(self, command: Command, data: Mapping[str, Any]) -> CommandResult:
        self.store.set_sleeping(True)
        logger.info("Entering sleep")
        if not await self.orchestrator.suspend_all():
            return CommandResult(
                status=CommandStatus.FAILED, changed=True, error="Device suspend failed"
            )
        return CommandResult(status=CommandStatus.COMPLETED, changed=True)

    async def _handle_wake(self, command: Command, data: Mapping[str, Any]) -> CommandResult:
        self.store.set_sleeping(False)
        logger.info("Waking up")
        if not await self.orchestrator.resume():
            return CommandResult(
                status=CommandStatus.FAILED, changed=True, error="Resume failed"
            )
        return CommandResult(status=CommandStatus.COMPLETED, changed=True)

    async def _handle_schedule(
        self, command: Command, data: Mapping[str, Any]
    ) -> CommandResult:
        updates: Dict[str, Any] = {
            key: data[key] for key in SCHEDULE_KEYS if key in data
        }
        for key in ("weekdayWakeTime", "sleepTime"):
            if key in updates and not is_valid_time(updates[key]):
                raise ValidationError(f"{key} must be HH:MM, got {updates[key]!r}")
        if "enabled" in updates and not isinstance(updates["enabled"], bool):
            raise ValidationError("Schedule 'enabled' must be a boolean")
        self.store.update_schedule(**updates)
        return CommandResult(status=CommandStatus.COMPLETED, changed=True)

    async def _handle_display_mode(
        self, command: Command, data: Mapping[str, Any]
    ) -> CommandResult:
        if not command.subscriber_id:
            raise ValidationError("setDisplayMode requires a connected subscriber")
        enabled = data.get("enabled")
        if not isinstance(enabled, bool):
            raise ValidationError("setDisplayMode 'enabled' must be a boolean")
        if enabled:
            changed = self.store.register_display_subscriber(command.subscriber_id)
        else:
            changed = self.store.unregister_display_subscriber(command.subscriber_id)
        return CommandResult(status=CommandStatus.COMPLETED, changed=changed)

    async def _handle_disconnect(
        self, command: Command, data: Mapping[str, Any]
    ) -> CommandResult:
        changed = False
        if command.subscriber_id:
            changed = self.store.unregister_display_subscriber(command.subscriber_id)
        return CommandResult(status=CommandStatus.COMPLETED, changed=changed)

    async def _handle_launch(self, command: Command, data: Mapping[str, Any]) -> CommandResult:
        """Enter the activity for the current mode without changing state"""
        mode = self.store.get().current_mode
        if await self.orchestrator.transition_to(mode):
            return CommandResult(status=CommandStatus.COMPLETED)
        return CommandResult(
            status=CommandStatus.FAILED,
            error=f"Foreground activity for {mode.value} failed to start",
        )

    async def _handle_image(self, command: Command, data: Mapping[str, Any]) -> CommandResult:
        url = data.get("url")
        if not isinstance(url, str) or not url:
            raise ValidationError("Image command requires a url")
        changed = self.store.apply(image_url=url)
        result = await self._change_mode(Mode.IMAGE)
        result.changed = result.changed or changed
        return result

    async def _handle_media(self, command: Command, data: Mapping[str, Any]) -> CommandResult:
        snapshot = data.get("snapshot", data)
        if not isinstance(snapshot, (MediaSnapshot, Mapping)):
            raise ValidationError("Media update requires a snapshot")
        changed = self.store.update_media(snapshot)
        return CommandResult(status=CommandStatus.COMPLETED, changed=changed)
