"""
Configuration Management Module

This module handles environment variables, configuration files,
and settings for the stance engine.
"""

__version__ = "0.1.0"
__author__ = "Stance Engine Team"

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

load_dotenv()

CONFIG_DIR = Path(__file__).parent

# Environment variables that override keys of the "engine" section
ENGINE_ENV_OVERRIDES = {
    "STANCE_FLIP_THRESHOLD": ("flip_threshold", float),
    "STANCE_MIN_CONFIDENCE": ("min_confidence", float),
    "STANCE_NEUTRAL_BAND": ("neutral_band", float),
    "STANCE_BRIDGE_WINDOW_HOURS": ("bridge_window_hours", float),
    "STANCE_SURGE_THRESHOLD": ("surge_threshold", float),
    "STANCE_CORRELATION_LAG_HOURS": ("correlation_lag_hours", int),
    "STANCE_CORRELATION_THRESHOLD": ("correlation_threshold", float),
    "STANCE_TOP_VOICES_LIMIT": ("top_voices_limit", int),
    "STANCE_STRICT_ORDER": ("strict_order", lambda v: v.lower() in ("1", "true", "yes")),
    "STANCE_DUPLICATE_POLICY": ("duplicate_policy", str),
    "STANCE_DEFAULT_WINDOW": ("default_time_window", str),
}


def _load_yaml(config_path: Path) -> Dict[str, Any]:
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def get_engine_config_path() -> Path:
    """Get the engine configuration path, overridable via STANCE_CONFIG_PATH."""
    return Path(os.getenv("STANCE_CONFIG_PATH", CONFIG_DIR / "engine.yml"))


def get_catalog_config_path() -> Path:
    """Get the voice/topic catalog path, overridable via STANCE_CATALOG_PATH."""
    return Path(os.getenv("STANCE_CATALOG_PATH", CONFIG_DIR / "catalog.yml"))


def load_engine_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load engine configuration from engine.yml and apply environment overrides.

    Args:
        config_path: Optional explicit path, defaults to get_engine_config_path()

    Returns:
        Dictionary with the flattened "engine" section
    """
    data = _load_yaml(Path(config_path) if config_path else get_engine_config_path())
    engine = dict(data.get("engine", {}))

    for env_name, (key, cast) in ENGINE_ENV_OVERRIDES.items():
        raw = os.getenv(env_name)
        if raw is None or raw == "":
            continue
        try:
            engine[key] = cast(raw)
        except ValueError as e:
            raise ValueError(f"Invalid value for {env_name}: {raw!r}") from e

    return engine


def load_catalog_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load the voice/topic reference catalog from catalog.yml.

    Returns:
        Dictionary with "voices" and "topics" lists
    """
    return _load_yaml(Path(config_path) if config_path else get_catalog_config_path())


def get_log_level() -> str:
    """Get log level name from environment."""
    return os.getenv("LOG_LEVEL", "INFO").upper()


def is_production() -> bool:
    """Check if running in production environment."""
    return os.getenv("ENVIRONMENT", "development").lower() == "production"
