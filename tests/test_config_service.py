"""Tests for ConfigService."""

import tempfile
from pathlib import Path

import pytest
import yaml

from termsense.models.config import AppConfig
from termsense.services.config_service import ConfigService, get_config_service


@pytest.fixture
def temp_dir():
    """Create a temporary directory for config files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


class TestConfigServiceLoad:
    """Tests for loading configuration."""

    def test_load_defaults_when_no_file(self, temp_dir):
        """Returns default config when file doesn't exist."""
        config = ConfigService(temp_dir / "nonexistent.yaml").load()

        assert config.port == 52429
        assert config.detection.idle_timeout_ms == 800
        assert config.hooks.enabled is True

    def test_load_from_yaml(self, temp_dir):
        """Loads config from YAML file."""
        config_file = temp_dir / "config.yaml"
        config_file.write_text(
            """
detection:
  idle_timeout_ms: 1000
  hooks_priority_window_ms: 3000
hooks:
  enabled: false
port: 8080
log_level: DEBUG
"""
        )

        config = ConfigService(config_file).load()

        assert config.detection.idle_timeout_ms == 1000
        assert config.detection.hooks_priority_window_ms == 3000
        assert config.detection.buffer_max_length == 1200
        assert config.hooks.enabled is False
        assert config.port == 8080
        assert config.log_level == "DEBUG"

    def test_load_handles_invalid_yaml(self, temp_dir):
        """Returns defaults for invalid YAML."""
        config_file = temp_dir / "config.yaml"
        config_file.write_text("invalid: yaml: content: [")

        config = ConfigService(config_file).load()
        assert config == AppConfig()

    def test_load_handles_non_mapping(self, temp_dir):
        config_file = temp_dir / "config.yaml"
        config_file.write_text("- just\n- a list\n")

        assert ConfigService(config_file).load() == AppConfig()

    def test_load_handles_validation_error(self, temp_dir):
        """Out-of-range values fall back to defaults."""
        config_file = temp_dir / "config.yaml"
        config_file.write_text("port: 80\n")

        assert ConfigService(config_file).load().port == 52429

    def test_empty_file(self, temp_dir):
        config_file = temp_dir / "config.yaml"
        config_file.write_text("")

        assert ConfigService(config_file).load() == AppConfig()


class TestConfigSchema:
    """Tests for how the file maps onto the schema."""

    def test_detection_settings_must_be_nested(self, temp_dir):
        """Top-level detection keys are not part of the schema and are ignored."""
        config_file = temp_dir / "config.yaml"
        config_file.write_text("idle_timeout_ms: 1500\ndetection:\n  forced_exit_timeout_ms: 3000\n")

        config = ConfigService(config_file).load()

        assert config.detection.idle_timeout_ms == 800
        assert config.detection.forced_exit_timeout_ms == 3000


class TestConfigServiceSave:
    """Tests for saving configuration."""

    def test_save_round_trip(self, temp_dir):
        config_file = temp_dir / "config.yaml"
        service = ConfigService(config_file)
        config = AppConfig(port=9000)

        assert service.save(config) is True

        saved = yaml.safe_load(config_file.read_text())
        assert saved["port"] == 9000
        assert service.reload().port == 9000

    def test_save_without_config(self, temp_dir):
        assert ConfigService(temp_dir / "config.yaml").save() is False


class TestGetConfigService:
    """Tests for the singleton accessor."""

    def test_singleton(self, temp_dir):
        first = get_config_service(temp_dir / "config.yaml")
        second = get_config_service(temp_dir / "other.yaml")

        assert first is second
        assert first.config_path == temp_dir / "config.yaml"

    def test_get_config_loads_lazily(self, temp_dir):
        service = ConfigService(temp_dir / "config.yaml")
        assert service.get_config() is service.get_config()
