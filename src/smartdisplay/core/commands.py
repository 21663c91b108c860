"""Command queue that serializes every state-changing action."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional
from uuid import uuid4

from ..common.exceptions import QueueClosedError, ValidationError

logger = logging.getLogger(__name__)


class CommandType(str, Enum):
    """Command types understood by the router"""

    MODE = "mode"
    SLEEP = "sleep"
    WAKE = "wake"
    SCHEDULE = "schedule"
    SET_DISPLAY_MODE = "setDisplayMode"

    # Internal, never accepted from a subscriber
    IMAGE = "image"
    MEDIA = "media"
    DISCONNECT = "disconnect"
    LAUNCH = "launch"

    @classmethod
    def parse_external(cls, value: Any) -> "CommandType":
        """Parse a command type received from a subscriber"""
        try:
            command_type = cls(value)
        except ValueError:
            raise ValidationError(f"Unknown command type: {value!r}")
        if command_type in INTERNAL_COMMANDS:
            raise ValidationError(f"Command type not accepted: {value!r}")
        return command_type


INTERNAL_COMMANDS = frozenset(
    {
        CommandType.IMAGE,
        CommandType.MEDIA,
        CommandType.DISCONNECT,
        CommandType.LAUNCH,
    }
)


class CommandStatus(str, Enum):
    """Command execution status"""

    PENDING = "pending"
    EXECUTING = "executing"
    COMPLETED = "completed"
    GATED = "gated"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass
class CommandResult:
    """Result of command execution"""

    status: CommandStatus
    changed: bool = False
    error: Optional[str] = None
    execution_time: float = 0.0

    @property
    def success(self) -> bool:
        return self.status == CommandStatus.COMPLETED


@dataclass
class Command:
    """A single queued command"""

    type: CommandType
    data: Dict[str, Any] = field(default_factory=dict)
    subscriber_id: Optional[str] = None
    id: str = field(default_factory=lambda: uuid4().hex[:8])
    timestamp: float = field(default_factory=time.time)
    status: CommandStatus = CommandStatus.PENDING
    result: Optional[CommandResult] = None


CommandHandler = Callable[[Command], Awaitable[CommandResult]]


class CommandQueue:
    """Bounded FIFO processed by a single worker task"""

    def __init__(self, handler: CommandHandler, maxsize: int = 64):
        self.handler = handler
        self._queue: "asyncio.Queue[Command]" = asyncio.Queue(maxsize=maxsize)
        self._futures: Dict[str, "asyncio.Future[CommandResult]"] = {}
        self.history: List[Command] = []
        self.max_history = 100
        self._running = False
        self._closed = False
        self._processor_task: Optional[asyncio.Task] = None
        self._current_command: Optional[Command] = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def submit(
        self,
        command_type: CommandType,
        data: Optional[Dict[str, Any]] = None,
        subscriber_id: Optional[str] = None,
    ) -> "asyncio.Future[CommandResult]":
        """Enqueue a command; the returned future resolves once it has run"""
        if self._closed:
            raise QueueClosedError(f"Command queue stopped, {command_type.value} refused")
        command = Command(
            type=command_type, data=data or {}, subscriber_id=subscriber_id
        )
        future = asyncio.get_running_loop().create_future()
        self._futures[command.id] = future
        await self._queue.put(command)
        logger.debug(f"Enqueued command {command.id} ({command.type.value})")
        return future

    async def dispatch(
        self,
        command_type: CommandType,
        data: Optional[Dict[str, Any]] = None,
        subscriber_id: Optional[str] = None,
    ) -> CommandResult:
        """Enqueue a command and wait for its result"""
        future = await self.submit(command_type, data, subscriber_id)
        return await future

    async def start(self) -> None:
        """Start command processing"""
        if self._running:
            return
        self._running = True
        self._closed = False
        self._processor_task = asyncio.create_task(self._process_commands())
        logger.info("Command queue processor started")

    async def stop(self) -> None:
        """Stop command processing; later submits are refused until restarted"""
        self._running = False
        self._closed = True
        if self._processor_task:
            self._processor_task.cancel()
            try:
                await self._processor_task
            except asyncio.CancelledError:
                pass
            self._processor_task = None

        # Anything still queued will never run
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()
        for future in self._futures.values():
            if not future.done():
                future.cancel()
        self._futures.clear()
        logger.info("Command queue processor stopped")

    async def join(self) -> None:
        """Wait until every queued command has been processed"""
        await self._queue.join()

    async def _process_commands(self) -> None:
        while self._running:
            command = await self._queue.get()
            try:
                self._current_command = command
                await self._execute_command(command)
                self._add_to_history(command)
            finally:
                self._current_command = None
                self._queue.task_done()

    async def _execute_command(self, command: Command) -> None:
        start_time = time.time()
        command.status = CommandStatus.EXECUTING
        try:
            result = await self.handler(command)
        except asyncio.CancelledError:
            raise
        except ValidationError as e:
            logger.warning(f"Command {command.id} ({command.type.value}) rejected: {e}")
            result = CommandResult(status=CommandStatus.REJECTED, error=str(e))
        except Exception as e:
            logger.error(f"Command {command.id} ({command.type.value}) failed: {e}")
            result = CommandResult(status=CommandStatus.FAILED, error=str(e))

        result.execution_time = time.time() - start_time
        command.status = result.status
        command.result = result

        future = self._futures.pop(command.id, None)
        if future is not None and not future.done():
            future.set_result(result)

    def _add_to_history(self, command: Command) -> None:
        """Add command to history, maintaining max size"""
        self.history.append(command)
        if len(self.history) > self.max_history:
            self.history.pop(0)

    def get_history(self, count: Optional[int] = None) -> List[Command]:
        """Get command history"""
        if count is None:
            return self.history.copy()
        return self.history[-count:]

    def get_current_command(self) -> Optional[Command]:
        """Get currently executing command"""
        return self._current_command
