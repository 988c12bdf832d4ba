"""
Unit tests for configuration loading and engine settings.
"""

import pytest

from config import (
    ENGINE_ENV_OVERRIDES,
    get_log_level,
    is_production,
    load_catalog_config,
    load_engine_config,
)
from stance.errors import ConfigurationError
from stance.settings import EngineSettings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove engine overrides that may be set in the environment."""
    for name in list(ENGINE_ENV_OVERRIDES) + ["STANCE_CONFIG_PATH", "STANCE_CATALOG_PATH", "LOG_LEVEL", "ENVIRONMENT"]:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def engine_yml(tmp_path):
    """Write a custom engine.yml."""
    path = tmp_path / "engine.yml"
    path.write_text("engine:\n  flip_threshold: 0.5\n  min_confidence: 0.6\n  duplicate_policy: last_write_wins\n")
    return path


class TestConfigLoading:
    """Test cases for the config package."""

    def test_shipped_engine_config(self):
        """Test that the shipped engine.yml matches the defaults."""
        assert EngineSettings.from_mapping(load_engine_config()) == EngineSettings()

    def test_custom_file(self, engine_yml):
        """Test loading an explicit file."""
        config = load_engine_config(engine_yml)

        assert config["flip_threshold"] == 0.5
        assert config["duplicate_policy"] == "last_write_wins"

    def test_config_path_env(self, engine_yml, monkeypatch):
        """Test STANCE_CONFIG_PATH."""
        monkeypatch.setenv("STANCE_CONFIG_PATH", str(engine_yml))

        assert load_engine_config()["min_confidence"] == 0.6

    def test_env_overrides(self, monkeypatch):
        """Test environment overrides and their casts."""
        monkeypatch.setenv("STANCE_FLIP_THRESHOLD", "0.45")
        monkeypatch.setenv("STANCE_TOP_VOICES_LIMIT", "3")
        monkeypatch.setenv("STANCE_STRICT_ORDER", "false")

        config = load_engine_config()

        assert config["flip_threshold"] == 0.45
        assert config["top_voices_limit"] == 3
        assert config["strict_order"] is False

    def test_invalid_env_override(self, monkeypatch):
        """Test that uncastable overrides raise ValueError."""
        monkeypatch.setenv("STANCE_SURGE_THRESHOLD", "lots")

        with pytest.raises(ValueError, match="STANCE_SURGE_THRESHOLD"):
            load_engine_config()

    def test_missing_file(self, tmp_path):
        """Test loading a missing file."""
        with pytest.raises(FileNotFoundError):
            load_engine_config(tmp_path / "missing.yml")

    def test_catalog_config(self):
        """Test the shipped catalog."""
        config = load_catalog_config()

        assert len(config["voices"]) == 13
        assert len(config["topics"]) == 11

    def test_log_level_and_environment(self, monkeypatch):
        """Test LOG_LEVEL and ENVIRONMENT helpers."""
        assert get_log_level() == "INFO"
        assert is_production() is False

        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("ENVIRONMENT", "Production")

        assert get_log_level() == "DEBUG"
        assert is_production() is True


class TestEngineSettings:
    """Test cases for EngineSettings class."""

    def test_defaults(self):
        """Test default thresholds."""
        settings = EngineSettings()

        assert settings.flip_threshold == 0.3
        assert settings.min_confidence == 0.4
        assert settings.neutral_band == 0.1
        assert settings.bridge_window.total_seconds() == 48 * 3600

    @pytest.mark.parametrize(
        "overrides",
        [
            {"flip_threshold": 0},
            {"min_confidence": 1.5},
            {"neutral_band": 1.0},
            {"top_voices_limit": 0},
            {"duplicate_policy": "first_write_wins"},
            {"default_time_window": "90d"},
            {"max_compared_voices": 0},
            {"correlation_lag_hours": -1},
            {"correlation_threshold": 1.5},
        ],
    )
    def test_invalid_values(self, overrides):
        """Test that invalid settings raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            EngineSettings(**overrides)

    def test_from_mapping_ignores_unknown(self):
        """Test that unknown keys are ignored."""
        settings = EngineSettings.from_mapping({"flip_threshold": 0.4, "colour": "blue"})

        assert settings.flip_threshold == 0.4

    def test_from_mapping_wrong_type(self):
        """Test that badly typed values raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            EngineSettings.from_mapping({"flip_threshold": "high"})

    def test_load(self, engine_yml):
        """Test loading settings from a file."""
        settings = EngineSettings.load(engine_yml)

        assert settings.flip_threshold == 0.5
        assert settings.duplicate_policy == "last_write_wins"

    def test_load_invalid_env(self, monkeypatch):
        """Test that invalid environment values surface as ConfigurationError."""
        monkeypatch.setenv("STANCE_FLIP_THRESHOLD", "abc")

        with pytest.raises(ConfigurationError):
            EngineSettings.load()

    def test_load_invalid_policy_env(self, monkeypatch):
        monkeypatch.setenv("STANCE_DUPLICATE_POLICY", "newest")

        with pytest.raises(ConfigurationError):
            EngineSettings.load()
