import sys
from pathlib import Path
from typing import List, Optional, Tuple

import pytest
import yaml

# Make the src layout importable without an editable install
src_dir = Path(__file__).parent.parent.absolute() / "src"
if str(src_dir) not in sys.path:
    sys.path.insert(0, str(src_dir))

from smartdisplay.core.commands import CommandQueue
from smartdisplay.core.config import SystemConfig
from smartdisplay.core.orchestrator import (
    ActivityController,
    ActivityKind,
    DeviceController,
    ModeOrchestrator,
)
from smartdisplay.core.router import CommandRouter
from smartdisplay.core.state import MediaSnapshot, StateStore
from smartdisplay.media.base import MediaStatusSource


class RecordingActivities(ActivityController):
    """Records start/stop calls instead of spawning processes"""

    def __init__(self):
        self.calls: List[Tuple[str, ActivityKind]] = []
        self.fail_start = set()
        self.fail_stop = set()

    async def start(self, kind: ActivityKind) -> bool:
        self.calls.append(("start", kind))
        return kind not in self.fail_start

    async def stop(self, kind: ActivityKind) -> bool:
        self.calls.append(("stop", kind))
        return kind not in self.fail_stop


class FakeDevice(DeviceController):
    def __init__(self):
        self.calls: List[str] = []
        self.suspend_ok = True
        self.wake_ok = True

    async def suspend(self) -> bool:
        self.calls.append("suspend")
        return self.suspend_ok

    async def wake(self) -> bool:
        self.calls.append("wake")
        return self.wake_ok


class FakeMediaSource(MediaStatusSource):
    """Returns queued snapshots in order"""

    def __init__(self, snapshots=None, configured: bool = True):
        self.snapshots: List[Optional[MediaSnapshot]] = list(snapshots or [])
        self._configured = configured
        self.closed = False

    @property
    def configured(self) -> bool:
        return self._configured

    async def poll(self) -> Optional[MediaSnapshot]:
        if not self.snapshots:
            return None
        return self.snapshots.pop(0)

    async def close(self) -> None:
        self.closed = True


class FakeSubscriber:
    """Collects every JSON message sent to it"""

    def __init__(self, fail: bool = False):
        self.messages = []
        self.fail = fail

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("connection lost")
        self.messages.append(data)


@pytest.fixture
def activities():
    return RecordingActivities()


@pytest.fixture
def device():
    return FakeDevice()


@pytest.fixture
def store():
    """Fresh state store"""
    return StateStore()


@pytest.fixture
def orchestrator(activities, device):
    return ModeOrchestrator(activities, device)


@pytest.fixture
def router(store, orchestrator):
    return CommandRouter(store, orchestrator)


@pytest.fixture
def command_queue(router):
    """Queue wired to the router, not started"""
    return CommandQueue(router.execute, maxsize=16)


@pytest.fixture
def system_config(tmp_path):
    """Default configuration writing uploads into a temp dir"""
    config = SystemConfig.create_default()
    config.storage.upload_dir = str(tmp_path / "uploads")
    return config


@pytest.fixture
def config_file(tmp_path):
    """Create a temporary config file for testing"""
    config_path = tmp_path / "smartdisplay.yaml"
    with open(config_path, "w") as f:
        yaml.dump(
            {
                "server": {"port": 8080},
                "power": {"method": "dpms"},
                "scheduler": {"tick_interval": 30},
            },
            f,
        )
    return config_path
