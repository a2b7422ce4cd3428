"""
Replay Configuration

Settings for the replay engine, its HTTP surface and logging.
Loaded from YAML with environment variable overrides.
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)


class EngineSettings(BaseModel):
    """Replay engine settings."""

    time_scale: float = Field(default=1.0, ge=0.0, description="Initial playback speed multiplier")
    trace_length: int = Field(default=60, ge=1, description="Samples kept per track for trails")
    tick_interval_s: float = Field(default=0.1, gt=0.0, description="Timer period in seconds")
    fast_forward_step_s: float = Field(
        default=1.0, gt=0.0, description="Virtual seconds per fast-forward step"
    )
    fast_forward_max_steps: int = Field(
        default=10000, ge=1, description="Fast-forward steps allowed in a single tick"
    )
    spline_tension: float = Field(default=0.5, ge=0.0, le=1.0)


class ServerSettings(BaseModel):
    """HTTP surface settings."""

    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8090, ge=1, le=65535)


class LoggingSettings(BaseModel):
    """Logging settings."""

    level: str = Field(default="INFO", description="Logging level")
    json_output: bool = Field(default=False, description="Render log lines as JSON")


class ReplayConfig(BaseModel):
    """Complete replay configuration."""

    engine: EngineSettings = Field(default_factory=EngineSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def _parse_bool(value: str) -> bool:
    """Parse boolean from string."""
    return value.lower() in ("true", "1", "yes", "on", "enabled")


ENV_MAPPINGS: dict[str, tuple] = {
    "REPLAY_TIME_SCALE": ("engine", "time_scale", float),
    "REPLAY_TRACE_LENGTH": ("engine", "trace_length", int),
    "REPLAY_TICK_INTERVAL": ("engine", "tick_interval_s", float),
    "REPLAY_FAST_FORWARD_STEP": ("engine", "fast_forward_step_s", float),
    "REPLAY_HOST": ("server", "host"),
    "REPLAY_PORT": ("server", "port", int),
    "REPLAY_LOG_LEVEL": ("logging", "level"),
    "REPLAY_JSON_LOGS": ("logging", "json_output", _parse_bool),
}


def _update_section(config: ReplayConfig, section: str, values: dict[str, Any]) -> ReplayConfig:
    """Return a copy of ``config`` with one section re-validated."""
    current = getattr(config, section).model_dump()
    current.update(values)
    section_class = type(getattr(config, section))
    return config.model_copy(update={section: section_class(**current)})


def _apply_dict(config: ReplayConfig, data: dict) -> ReplayConfig:
    for section, values in data.items():
        if section not in ReplayConfig.model_fields:
            logger.warning(f"Unknown config section: {section}")
            continue
        if isinstance(values, dict):
            config = _update_section(config, section, values)
    return config


def _apply_environment(config: ReplayConfig) -> ReplayConfig:
    for env_var, mapping in ENV_MAPPINGS.items():
        value = os.environ.get(env_var)
        if value is None:
            continue
        section, key = mapping[0], mapping[1]
        converter = mapping[2] if len(mapping) > 2 else str
        try:
            config = _update_section(config, section, {key: converter(value)})
        except (ValueError, ValidationError) as e:
            logger.warning(f"Failed to apply env var {env_var}: {e}")
    return config


def load_config(path: Path | str | None = None) -> ReplayConfig:
    """
    Load replay configuration.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file
    3. Defaults

    Args:
        path: Optional YAML file.

    Returns:
        Loaded configuration
    """
    config = ReplayConfig()

    if path is not None:
        config_file = Path(path)
        if config_file.exists():
            try:
                with open(config_file, encoding="utf-8") as f:
                    data = yaml.safe_load(f) or {}
                if not isinstance(data, dict):
                    raise yaml.YAMLError("top level must be a mapping")
                config = _apply_dict(config, data)
                logger.info(f"Loaded config from {config_file}")
            except (OSError, yaml.YAMLError, ValidationError) as e:
                logger.error(f"Failed to load config: {e}")
                config = ReplayConfig()
        else:
            logger.warning(f"Config file not found: {config_file}")

    return _apply_environment(config)


def save_config(config: ReplayConfig, path: Path | str) -> Path:
    """Write configuration to a YAML file."""
    config_file = Path(path)
    config_file.parent.mkdir(parents=True, exist_ok=True)
    with open(config_file, "w", encoding="utf-8") as f:
        yaml.dump(config.model_dump(), f, default_flow_style=False, sort_keys=False)
    logger.info(f"Saved config to {config_file}")
    return config_file
