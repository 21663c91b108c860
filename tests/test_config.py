"""Tests for configuration loading."""

import pytest

from smartdisplay.common.exceptions import ConfigurationError
from smartdisplay.core.config import SystemConfig, SystemDefaults, is_valid_time


class TestDefaults:
    def test_default_config(self):
        config = SystemConfig.create_default()
        assert config.server.port == SystemDefaults.DEFAULT_PORT
        assert config.power.method == "systemd"
        assert config.scheduler.tick_interval == 60
        assert not config.media.has_credentials
        assert config.activities.presentation_command[0] == "chromium-browser"
        assert config.activities.presentation_command[-1] == SystemDefaults.DEFAULT_KIOSK_URL
        assert config.activities.mirroring_command == ["uxplay"]

    def test_get_all_defaults(self):
        defaults = SystemDefaults.get_all_defaults()
        assert defaults["DEFAULT_PORT"] == 3000
        assert "POWER_METHODS" not in defaults


class TestLoading:
    """Test YAML and environment sources"""

    def test_load_yaml(self, config_file):
        config = SystemConfig.load(config_file, environ={})
        assert config.server.port == 8080
        assert config.power.method == "dpms"
        assert config.scheduler.tick_interval == 30
        assert config.commands.queue_size == SystemDefaults.DEFAULT_QUEUE_SIZE

    def test_env_overrides_file(self, config_file):
        config = SystemConfig.load(
            config_file,
            environ={
                "PORT": "9000",
                "CHROMIUM_URL": "http://display.local",
                "SPOTIFY_CLIENT_ID": "id",
                "SPOTIFY_CLIENT_SECRET": "secret",
                "SPOTIFY_REFRESH_TOKEN": "token",
            },
        )
        assert config.server.port == 9000
        assert config.activities.presentation_command[-1] == "http://display.local"
        assert config.media.has_credentials

    def test_empty_env_values_ignored(self):
        config = SystemConfig.load(environ={"PORT": "", "HOST": ""})
        assert config.server.port == SystemDefaults.DEFAULT_PORT

    def test_bad_env_value(self):
        with pytest.raises(ConfigurationError):
            SystemConfig.load(environ={"PORT": "eighty"})

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            SystemConfig.load(tmp_path / "missing.yaml", environ={})

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("server: [unclosed\n")
        with pytest.raises(ConfigurationError):
            SystemConfig.load(path, environ={})

    def test_null_section(self, tmp_path):
        path = tmp_path / "null.yaml"
        path.write_text("server:\n")
        config = SystemConfig.load(path, environ={"PORT": "4000"})
        assert config.server.port == 4000


class TestValidation:
    """Test configuration validation"""

    def test_unknown_section(self):
        with pytest.raises(ConfigurationError):
            SystemConfig.from_dict({"leds": {}})

    def test_unknown_field(self):
        with pytest.raises(ConfigurationError):
            SystemConfig.from_dict({"server": {"colour": "red"}})

    @pytest.mark.parametrize(
        "data",
        [
            {"server": {"port": 0}},
            {"power": {"method": "hibernate"}},
            {"scheduler": {"tick_interval": 120}},
            {"commands": {"queue_size": 0}},
            {"media": {"poll_interval": 0.1}},
            {"activities": {"mirroring_command": []}},
        ],
    )
    def test_invalid_values(self, data):
        with pytest.raises(ConfigurationError):
            SystemConfig.from_dict(data)


@pytest.mark.parametrize(
    "value,valid",
    [("07:00", True), ("23:59", True), ("00:00", True), ("24:00", False), ("7:00", False), ("07:60", False), (None, False)],
)
def test_is_valid_time(value, valid):
    assert is_valid_time(value) is valid
