"""
Configuration loader for the Telemetry Observer.

This module provides Pydantic models for strong validation of settings
and a loader function that merges a YAML configuration file with
environment variables.

Design Principles:
- Strict Schema: All settings are defined in Pydantic models to ensure type
  safety and validate constraints (e.g., value ranges, URL shape).
- Environment Overrides: Any setting can be overridden by an environment
  variable. The override mechanism follows a nested structure, e.g.,
  `feed.telemetry_url` can be overridden by the environment variable
  `TELEMETRY_OBSERVER_FEED__TELEMETRY_URL`.
- Defaults First: Every section has defaults matching the public feed the
  observer was written for, so running without a YAML file is valid.
- Clear Errors: If validation fails, Pydantic raises a detailed `ValidationError`
  which is wrapped in a custom `ConfigError` for clear, actionable feedback.
"""

import os
import json
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import yaml
from loguru import logger
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_core import PydanticCustomError

ENV_PREFIX = "TELEMETRY_OBSERVER"

DEFAULT_TELEMETRY_URL = "wss://tc0.res.fm/feed"
DEFAULT_GENESIS_HASH = "0xdbacc01ae41b79388135ccd5d0ebe81eb0905260344256e6f4003bb8e75a91b5"
LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")

# --- Custom Exceptions ---

class ConfigError(Exception):
    """Custom exception for configuration-related errors."""
    pass

# --- Pydantic Models for Configuration Sections ---

class FeedSettings(BaseModel):
    """Settings for the telemetry websocket feed."""
    telemetry_url: str = DEFAULT_TELEMETRY_URL
    genesis_hash: str = Field(DEFAULT_GENESIS_HASH, min_length=1)
    reconnect_delay_sec: float = Field(5.0, ge=0)
    open_timeout_sec: float = Field(30.0, gt=0)
    ping_interval_sec: Optional[float] = Field(25.0, gt=0)
    ping_timeout_sec: Optional[float] = Field(20.0, gt=0)
    max_message_bytes: int = Field(16 * 1024 * 1024, gt=0)
    queue_size: int = Field(10_000, gt=0)

    @field_validator('telemetry_url')
    def telemetry_url_must_be_websocket(cls, v):
        parsed = urlparse(v)
        if parsed.scheme not in ("ws", "wss") or not parsed.netloc:
            raise PydanticCustomError(
                "telemetry_url_invalid",
                "Telemetry URL '{url}' must be a ws:// or wss:// address with a host",
                {"url": v},
            )
        return v

class AggregationSettings(BaseModel):
    """Block aggregation thresholds: when a record is emitted and how many are kept."""
    retention_window: int = Field(100, gt=0)
    min_reports: int = Field(3, gt=0)
    max_age_seconds: int = Field(3, ge=0)
    max_height_lag: int = Field(1, ge=0)

class StorageSettings(BaseModel):
    """Locations of the output CSV and the JSON snapshots."""
    output_path: str = "./data/res-likely-authors.csv"
    nodes_file: str = "./data/telemetry-nodes.json"
    blocks_file: str = "./data/telemetry-blocks.json"

class LoggingSettings(BaseModel):
    """Settings for logging configuration."""
    level: str = Field("INFO", description="The logging level, e.g., DEBUG, INFO, WARNING.")
    file: Optional[str] = Field(None, description="Optional log file; rotated by size.")
    rotation: str = "10 MB"

    @field_validator('level')
    def level_must_be_known(cls, v):
        level = v.upper()
        if level not in LOG_LEVELS:
            raise PydanticCustomError(
                "log_level_invalid",
                "Log level '{level}' must be one of: {levels}",
                {"level": v, "levels": ", ".join(LOG_LEVELS)},
            )
        return level

class Settings(BaseModel):
    """Root settings object for the observer."""
    feed: FeedSettings = FeedSettings()
    aggregation: AggregationSettings = AggregationSettings()
    storage: StorageSettings = StorageSettings()
    logging: LoggingSettings = LoggingSettings()

# --- Helper Functions ---

def _load_config_from_yaml(path: Path) -> Dict[str, Any]:
    """Loads the YAML configuration file."""
    if not path.is_file():
        raise ConfigError(f"Configuration file not found at: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing YAML file at {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"YAML file '{path}' must contain a mapping at the top level.")
    return data

def _get_env_overrides(prefix: str = ENV_PREFIX) -> Dict[str, Any]:
    """
    Parses environment variables and converts them into a nested dict.
    e.g., TELEMETRY_OBSERVER_FEED__GENESIS_HASH becomes
    {'feed': {'genesis_hash': '...'}}
    """
    overrides: Dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(prefix + "_"):
            continue
        parts = key.removeprefix(prefix).strip("_").lower().split("__")

        # Hashes look like hex numbers but must stay strings
        if 'genesis_hash' in parts:
            parsed_value = value
        elif (value.startswith('[') and value.endswith(']')) or \
             (value.startswith('{') and value.endswith('}')) or \
             value.lower() in ['true', 'false', 'null'] or \
             value.replace('.', '', 1).isdigit():
            try:
                parsed_value = json.loads(value.lower() if value.lower() in ['true', 'false', 'null'] else value)
            except (json.JSONDecodeError, AttributeError):
                parsed_value = value
        else:
            parsed_value = value

        d = overrides
        for part in parts[:-1]:
            d = d.setdefault(part, {})
        d[parts[-1]] = parsed_value
    return overrides

def _merge_configs(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively merges the override dict into the base dict.
    Overwrites values, dictionaries, and lists.
    """
    for key, value in overrides.items():
        if isinstance(value, dict) and key in base and isinstance(base[key], dict):
            base[key] = _merge_configs(base[key], value)
        else:
            base[key] = value
    return base

def _format_validation_error(e: ValidationError) -> str:
    error_details = e.errors()
    error_msg = f"Configuration validation failed with {len(error_details)} error(s):\n"
    for error in error_details:
        loc = " -> ".join(map(str, error['loc'])) if error['loc'] else "root"
        error_msg += f"  - Location: {loc}\n    Message: {error['msg']}\n"
    return error_msg

# --- Public API ---

def load_settings(path: Optional[str] = "settings.yaml", overrides: Optional[Dict[str, Any]] = None) -> Settings:
    """
    Loads, validates, and returns the application settings.

    Steps:
    1. Loads the base configuration from the YAML file, if a path is given.
    2. Scans environment variables for overrides (prefixed with "TELEMETRY_OBSERVER_").
    3. Merges explicit overrides (e.g. from CLI flags) on top.
    4. Validates the final configuration against the `Settings` Pydantic model.

    Args:
        path: The path to the YAML configuration file, or None for defaults.
        overrides: Nested dict applied last, taking precedence over everything.

    Returns:
        A validated `Settings` object.

    Raises:
        ConfigError: If the file is not found, cannot be parsed, or if
                     validation fails.
    """
    if path is not None:
        logger.info(f"Loading settings from '{path}'...")
        config = _load_config_from_yaml(Path(path))
    else:
        logger.info("No settings file given, using defaults.")
        config = {}

    config = _merge_configs(config, _get_env_overrides())
    if overrides:
        config = _merge_configs(config, overrides)

    try:
        settings = Settings.model_validate(config)
    except ValidationError as e:
        logger.error(_format_validation_error(e))
        raise ConfigError("Failed to validate settings.") from e
    logger.success("Settings loaded and validated successfully.")
    return settings


__all__ = ["ConfigError", "Settings", "FeedSettings", "AggregationSettings",
           "StorageSettings", "LoggingSettings", "load_settings"]
