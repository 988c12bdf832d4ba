"""
Engine Settings

Typed view over the "engine" section of config/engine.yml. Values are
validated once at load time; a bad value is a deployment mistake and raises
ConfigurationError instead of surfacing later as odd query results.
"""

import logging
from dataclasses import asdict, dataclass, fields
from datetime import timedelta
from typing import Any, Dict, Mapping, Optional

from config import load_engine_config

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DUPLICATE_POLICIES = ("reject", "last_write_wins")
PRESET_WINDOWS = ("24h", "7d", "30d", "all")


@dataclass(frozen=True)
class EngineSettings:
    """Tunable thresholds and policies of the stance engine."""

    flip_threshold: float = 0.3
    min_confidence: float = 0.4
    neutral_band: float = 0.1
    top_voices_limit: int = 10
    bridge_window_hours: float = 48.0
    surge_threshold: float = 2.0
    strict_order: bool = True
    duplicate_policy: str = "reject"
    default_time_window: str = "7d"
    max_compared_voices: int = 5
    recent_flip_days: int = 7
    correlation_lag_hours: int = 48
    correlation_threshold: float = 0.5

    def __post_init__(self):
        if not 0 < self.flip_threshold <= 2:
            raise ConfigurationError(f"flip_threshold must be in (0, 2], got {self.flip_threshold}")
        if not 0 <= self.min_confidence <= 1:
            raise ConfigurationError(f"min_confidence must be in [0, 1], got {self.min_confidence}")
        if not 0 <= self.neutral_band < 1:
            raise ConfigurationError(f"neutral_band must be in [0, 1), got {self.neutral_band}")
        if self.top_voices_limit < 1:
            raise ConfigurationError("top_voices_limit must be at least 1")
        if self.bridge_window_hours < 0:
            raise ConfigurationError("bridge_window_hours must not be negative")
        if self.surge_threshold < 0:
            raise ConfigurationError("surge_threshold must not be negative")
        if self.duplicate_policy not in DUPLICATE_POLICIES:
            raise ConfigurationError(
                f"duplicate_policy must be one of {DUPLICATE_POLICIES}, got {self.duplicate_policy!r}"
            )
        if self.default_time_window not in PRESET_WINDOWS:
            raise ConfigurationError(
                f"default_time_window must be one of {PRESET_WINDOWS}, got {self.default_time_window!r}"
            )
        if self.max_compared_voices < 1:
            raise ConfigurationError("max_compared_voices must be at least 1")
        if self.correlation_lag_hours < 0:
            raise ConfigurationError("correlation_lag_hours must not be negative")
        if not 0 <= self.correlation_threshold <= 1:
            raise ConfigurationError(
                f"correlation_threshold must be in [0, 1], got {self.correlation_threshold}"
            )

    @property
    def bridge_window(self) -> timedelta:
        return timedelta(hours=self.bridge_window_hours)

    @property
    def recent_flip_window(self) -> timedelta:
        return timedelta(days=self.recent_flip_days)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "EngineSettings":
        """Build settings from a mapping, ignoring keys that are not settings."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown engine settings: {sorted(unknown)}")
        try:
            return cls(**{k: v for k, v in data.items() if k in known})
        except TypeError as e:
            raise ConfigurationError(f"Invalid engine settings: {e}") from e

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "EngineSettings":
        """Load settings from engine.yml with environment overrides applied."""
        try:
            data = load_engine_config(config_path)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        settings = cls.from_mapping(data)
        logger.debug(f"Loaded engine settings: {settings.to_dict()}")
        return settings

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
