"""Core control plane: state, commands, orchestration, scheduling"""

from ..common.exceptions import ValidationError, ConfigurationError
from .config import SystemConfig, SystemDefaults
from .state import DisplayState, MediaSnapshot, Mode, Schedule, StateStore
from .commands import Command, CommandQueue, CommandResult, CommandStatus, CommandType
from .orchestrator import (
    ActivityController,
    ActivityKind,
    DeviceController,
    ModeOrchestrator,
)
from .router import CommandRouter
from .scheduler import Scheduler
from .broadcast import BroadcastFanout

__all__ = [
    "ValidationError",
    "ConfigurationError",
    "SystemConfig",
    "SystemDefaults",
    "DisplayState",
    "MediaSnapshot",
    "Mode",
    "Schedule",
    "StateStore",
    "Command",
    "CommandQueue",
    "CommandResult",
    "CommandStatus",
    "CommandType",
    "ActivityController",
    "ActivityKind",
    "DeviceController",
    "ModeOrchestrator",
    "CommandRouter",
    "Scheduler",
    "BroadcastFanout",
]
