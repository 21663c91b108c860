from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Union
import logging
import os
import re

import yaml

from ..common.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


@dataclass
class SystemDefaults:
    """Built-in defaults for the display appliance"""

    # Server
    DEFAULT_HOST: ClassVar[str] = "0.0.0.0"
    DEFAULT_PORT: ClassVar[int] = 3000

    # Command processing
    DEFAULT_QUEUE_SIZE: ClassVar[int] = 64

    # Foreground activities
    DEFAULT_KIOSK_URL: ClassVar[str] = "http://localhost:3000"
    DEFAULT_STOP_TIMEOUT_S: ClassVar[float] = 5.0

    # Scheduling
    DEFAULT_TICK_INTERVAL_S: ClassVar[float] = 60.0
    DEFAULT_WAKE_TIME: ClassVar[str] = "07:00"
    DEFAULT_SLEEP_TIME: ClassVar[str] = "23:00"

    # Media polling
    DEFAULT_POLL_INTERVAL_S: ClassVar[float] = 3.0
    DEFAULT_MEDIA_TIMEOUT_S: ClassVar[float] = 10.0

    # Storage
    DEFAULT_UPLOAD_DIR: ClassVar[str] = "uploads"
    MAX_UPLOAD_BYTES: ClassVar[int] = 50 * 1024 * 1024

    POWER_METHODS: ClassVar[tuple] = ("systemd", "dpms", "none")

    @classmethod
    def get_all_defaults(cls) -> Dict[str, Any]:
        """Get all default values as a dictionary"""
        return {
            name: value
            for name, value in vars(cls).items()
            if name.startswith("DEFAULT_") and isinstance(value, (int, float, str))
        }


def _kiosk_command(url: str) -> List[str]:
    return [
        "chromium-browser",
        "--kiosk",
        "--noerrdialogs",
        "--disable-infobars",
        "--no-first-run",
        "--enable-features=OverlayScrollbar",
        "--start-fullscreen",
        url,
    ]


@dataclass
class ServerConfig:
    """HTTP/WebSocket server settings"""

    host: str = SystemDefaults.DEFAULT_HOST
    port: int = SystemDefaults.DEFAULT_PORT
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    def validate(self) -> None:
        if not 1 <= self.port <= 65535:
            raise ConfigurationError("Server port must be between 1 and 65535")


@dataclass
class CommandConfig:
    """Command queue settings"""

    queue_size: int = SystemDefaults.DEFAULT_QUEUE_SIZE

    def validate(self) -> None:
        if not 1 <= self.queue_size <= 4096:
            raise ConfigurationError("Command queue size must be between 1 and 4096")


@dataclass
class ActivityConfig:
    """Foreground process settings"""

    kiosk_url: str = SystemDefaults.DEFAULT_KIOSK_URL
    presentation_command: Optional[List[str]] = None
    mirroring_command: List[str] = field(default_factory=lambda: ["uxplay"])
    stop_timeout: float = SystemDefaults.DEFAULT_STOP_TIMEOUT_S
    launch_on_start: bool = False

    def __post_init__(self):
        if self.presentation_command is None:
            self.presentation_command = _kiosk_command(self.kiosk_url)

    def validate(self) -> None:
        if not self.presentation_command or not self.mirroring_command:
            raise ConfigurationError("Activity commands must not be empty")
        if self.stop_timeout <= 0:
            raise ConfigurationError("Activity stop timeout must be positive")


@dataclass
class PowerConfig:
    """Device power settings"""

    method: str = "systemd"

    def validate(self) -> None:
        if self.method not in SystemDefaults.POWER_METHODS:
            raise ConfigurationError(
                f"Power method must be one of {', '.join(SystemDefaults.POWER_METHODS)}"
            )


@dataclass
class SchedulerConfig:
    """Sleep/wake scheduler settings"""

    tick_interval: float = SystemDefaults.DEFAULT_TICK_INTERVAL_S

    def validate(self) -> None:
        if not 1 <= self.tick_interval <= 60:
            raise ConfigurationError(
                "Scheduler tick interval must be between 1 and 60 seconds"
            )


@dataclass
class MediaConfig:
    """Streaming service credentials and polling"""

    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    refresh_token: Optional[str] = None
    poll_interval: float = SystemDefaults.DEFAULT_POLL_INTERVAL_S
    request_timeout: float = SystemDefaults.DEFAULT_MEDIA_TIMEOUT_S

    @property
    def has_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret and self.refresh_token)

    def validate(self) -> None:
        if self.poll_interval < 1:
            raise ConfigurationError("Media poll interval must be at least 1 second")
        if self.request_timeout <= 0:
            raise ConfigurationError("Media request timeout must be positive")


@dataclass
class StorageConfig:
    """Uploaded image and static file locations"""

    upload_dir: str = SystemDefaults.DEFAULT_UPLOAD_DIR
    static_dir: Optional[str] = None
    max_upload_bytes: int = SystemDefaults.MAX_UPLOAD_BYTES

    def validate(self) -> None:
        if not self.upload_dir:
            raise ConfigurationError("Upload directory must be set")
        if self.max_upload_bytes < 1024:
            raise ConfigurationError("Max upload size must be at least 1KB")


# Environment variable -> (section, field, type)
_ENV_OVERRIDES = {
    "HOST": ("server", "host", str),
    "PORT": ("server", "port", int),
    "CHROMIUM_URL": ("activities", "kiosk_url", str),
    "POWER_METHOD": ("power", "method", str),
    "SPOTIFY_CLIENT_ID": ("media", "client_id", str),
    "SPOTIFY_CLIENT_SECRET": ("media", "client_secret", str),
    "SPOTIFY_REFRESH_TOKEN": ("media", "refresh_token", str),
    "UPLOAD_DIR": ("storage", "upload_dir", str),
    "STATIC_DIR": ("storage", "static_dir", str),
}

_SECTIONS = {
    "server": ServerConfig,
    "commands": CommandConfig,
    "activities": ActivityConfig,
    "power": PowerConfig,
    "scheduler": SchedulerConfig,
    "media": MediaConfig,
    "storage": StorageConfig,
}


@dataclass
class SystemConfig:
    """Main system configuration"""

    server: ServerConfig = field(default_factory=ServerConfig)
    commands: CommandConfig = field(default_factory=CommandConfig)
    activities: ActivityConfig = field(default_factory=ActivityConfig)
    power: PowerConfig = field(default_factory=PowerConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    media: MediaConfig = field(default_factory=MediaConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    def __post_init__(self):
        """Validate entire configuration"""
        try:
            for name in _SECTIONS:
                getattr(self, name).validate()
        except ConfigurationError as e:
            logger.error(f"Configuration validation failed: {e}")
            raise

    @classmethod
    def create_default(cls) -> "SystemConfig":
        """Create default configuration"""
        return cls()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SystemConfig":
        """Build configuration from a nested mapping"""
        unknown = set(data) - set(_SECTIONS)
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration sections: {', '.join(sorted(unknown))}"
            )

        sections = {}
        for name, section_cls in _SECTIONS.items():
            values = data.get(name) or {}
            if not isinstance(values, Mapping):
                raise ConfigurationError(f"Section '{name}' must be a mapping")
            try:
                sections[name] = section_cls(**values)
            except TypeError as e:
                raise ConfigurationError(f"Invalid '{name}' section: {e}") from e
        return cls(**sections)

    @classmethod
    def load(
        cls,
        path: Optional[Union[str, Path]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "SystemConfig":
        """Load configuration from an optional YAML file plus environment"""
        data: Dict[str, Any] = {}
        if path is not None:
            try:
                with open(path, "r", encoding="utf-8") as f:
                    data = yaml.safe_load(f) or {}
            except OSError as e:
                raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigurationError(f"Config file {path} must contain a mapping")
            logger.info(f"Loaded configuration from {path}")

        env = os.environ if environ is None else environ
        for var, (section, key, cast) in _ENV_OVERRIDES.items():
            raw = env.get(var)
            if raw is None or raw == "":
                continue
            try:
                value = cast(raw)
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for {var}: {raw!r}") from e
            values = dict(data.get(section) or {})
            values[key] = value
            data[section] = values

        return cls.from_dict(data)


def is_valid_time(value: str) -> bool:
    """Check an HH:MM 24-hour time string"""
    return isinstance(value, str) and bool(_HHMM.match(value))
