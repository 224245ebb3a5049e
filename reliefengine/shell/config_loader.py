"""Configuration Loader - Imperative Shell.

This module handles loading configuration from YAML files and
environment variables. All I/O is contained here.

Models (EngineConfig and friends) are defined in reliefengine/core/config.py
to avoid information leakage between layers.
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from reliefengine.core.config import (
    CollectionNames,
    EngineConfig,
    ProximityConfig,
    RetryConfig,
    ShelterConfig,
    validate_config,
)


logger = logging.getLogger(__name__)


DEFAULT_CONFIG_PATH = "config/config.yaml"


def _resolve_value(value: Any) -> Any:
    """Resolve a ``${ENV_VAR}`` placeholder from the environment.

    Non-string values and plain strings are returned unchanged. An unset
    variable leaves the placeholder in place and logs a warning.

    Args:
        value: Value to resolve

    Returns:
        Resolved value
    """
    if not isinstance(value, str):
        return value

    if value.startswith("${") and value.endswith("}"):
        var_name = value[2:-1]
        env_value = os.environ.get(var_name)
        if env_value:
            return env_value
        logger.warning("Environment variable %s not set", var_name)

    return value


def _parse_shelter(data: dict[str, Any]) -> ShelterConfig:
    """Parse shelter settings from config data."""
    defaults = ShelterConfig()
    return ShelterConfig(
        limited_threshold=float(_resolve_value(
            data.get("limited_threshold", defaults.limited_threshold)
        )),
    )


def _parse_proximity(data: dict[str, Any]) -> ProximityConfig:
    """Parse proximity settings from config data."""
    defaults = ProximityConfig()
    return ProximityConfig(
        distance_decimals=int(_resolve_value(
            data.get("distance_decimals", defaults.distance_decimals)
        )),
        request_radius_km=float(_resolve_value(
            data.get("request_radius_km", defaults.request_radius_km)
        )),
        shelter_radius_km=float(_resolve_value(
            data.get("shelter_radius_km", defaults.shelter_radius_km)
        )),
    )


def _parse_retry(data: dict[str, Any]) -> RetryConfig:
    """Parse commit retry settings from config data."""
    defaults = RetryConfig()
    return RetryConfig(
        max_attempts=int(_resolve_value(data.get("max_attempts", defaults.max_attempts))),
        backoff_seconds=float(_resolve_value(
            data.get("backoff_seconds", defaults.backoff_seconds)
        )),
    )


def _parse_collections(data: dict[str, Any]) -> CollectionNames:
    """Parse collection name overrides from config data."""
    defaults = CollectionNames()
    return CollectionNames(
        requests=data.get("requests", defaults.requests),
        donations=data.get("donations", defaults.donations),
        asked_donations=data.get("asked_donations", defaults.asked_donations),
        shelters=data.get("shelters", defaults.shelters),
        shelter_requests=data.get("shelter_requests", defaults.shelter_requests),
    )


def load_config_from_dict(data: dict[str, Any]) -> EngineConfig:
    """Load configuration from a dictionary.

    This is a pure-ish function (only env var expansion has side effects).

    Args:
        data: Configuration dictionary

    Returns:
        Parsed EngineConfig object
    """
    firestore_data = data.get("firestore", {}) or {}

    return EngineConfig(
        match_policy=_resolve_value(data.get("match_policy", "category_match")),
        shelter=_parse_shelter(data.get("shelter", {}) or {}),
        proximity=_parse_proximity(data.get("proximity", {}) or {}),
        retry=_parse_retry(data.get("retry", {}) or {}),
        collections=_parse_collections(data.get("collections", {}) or {}),
        firestore_project=_resolve_value(firestore_data.get("project")),
        firestore_database=_resolve_value(firestore_data.get("database")),
    )


def _log_validation(config: EngineConfig) -> None:
    result = validate_config(config)
    for error in result.errors:
        if error.severity == "warning":
            logger.warning("Config warning in %s: %s", error.field, error.message)
        else:
            logger.error("Config error in %s: %s", error.field, error.message)


def load_config(config_path: str | Path | None = None) -> EngineConfig:
    """Load configuration from a YAML file.

    This method performs file I/O.

    Args:
        config_path: Path to YAML config file.
                    If None, uses CONFIG_PATH env var or default.

    Returns:
        Parsed EngineConfig object

    Raises:
        yaml.YAMLError: If config file is invalid YAML
    """
    if config_path is None:
        config_path = os.environ.get("CONFIG_PATH", DEFAULT_CONFIG_PATH)

    path = Path(config_path)

    logger.info("Loading configuration from %s", path)

    if not path.exists():
        logger.warning("Config file not found: %s, using defaults", path)
        return EngineConfig()

    with open(path, "r") as f:
        data = yaml.safe_load(f)

    if data is None:
        logger.warning("Config file is empty, using defaults")
        return EngineConfig()

    config = load_config_from_dict(data)
    _log_validation(config)

    logger.info(
        "Loaded config: policy=%s, limited_threshold=%.2f, max_attempts=%d",
        config.match_policy,
        config.shelter.limited_threshold,
        config.retry.max_attempts,
    )

    return config


def load_config_from_env() -> EngineConfig:
    """Load minimal configuration from environment variables.

    Useful for simple deployments without a YAML file.

    Environment variables:
        FIRESTORE_PROJECT: GCP project ID
        FIRESTORE_DATABASE: Firestore database name
        MATCH_POLICY: Donation match policy name
        MAX_COMMIT_ATTEMPTS: Commit attempts before surfacing a conflict

    Returns:
        EngineConfig object from environment
    """
    retry = RetryConfig(
        max_attempts=int(os.environ.get("MAX_COMMIT_ATTEMPTS", "3")),
    )

    config = EngineConfig(
        match_policy=os.environ.get("MATCH_POLICY", "category_match"),
        retry=retry,
        firestore_project=os.environ.get("FIRESTORE_PROJECT"),
        firestore_database=os.environ.get("FIRESTORE_DATABASE"),
    )
    _log_validation(config)

    return config
