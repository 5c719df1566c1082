"""Configuration Loader - Imperative Shell.

This module handles loading configuration from YAML files and
environment variables. All I/O is contained here.

Models (Config, FeedConfig, ...) are defined in quakewatch/core/config.py
to avoid information leakage between layers.
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from quakewatch.core.config import (
    DEFAULT_FEED_URLS,
    Config,
    DedupConfig,
    FeedConfig,
    PushConfig,
    default_feeds,
)
from quakewatch.core.event import Source


logger = logging.getLogger(__name__)


DEFAULT_CONFIG_PATH = "config/config.yaml"

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _resolve_value(value: Any) -> Any:
    """Resolve a ${VAR} placeholder from the environment.

    Non-string values and plain strings are returned unchanged. An unset
    variable leaves the placeholder in place.

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


def _resolve_optional(value: Any) -> Any:
    """Resolve a placeholder, returning None if it stays unresolved."""
    resolved = _resolve_value(value)
    if isinstance(resolved, str) and resolved.startswith("${"):
        return None
    return resolved


def _parse_bool(value: Any) -> bool:
    """Parse a YAML/env boolean, accepting common string spellings."""
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_VALUES
    return bool(value)


def _parse_source(name: str) -> Source:
    """Look up a Source by name, case-insensitively."""
    for source in Source:
        if source.value.lower() == str(name).lower() or source.name.lower() == str(name).lower():
            return source
    raise ValueError(f"Unknown feed source: {name}")


def _parse_feed(data: dict[str, Any]) -> FeedConfig:
    """Parse a feed entry from config data."""
    source = _parse_source(data["source"])
    return FeedConfig(
        source=source,
        url=_resolve_value(data.get("url", DEFAULT_FEED_URLS[source])),
        enabled=_parse_bool(data.get("enabled", True)),
    )


def _parse_dedup(data: dict[str, Any]) -> DedupConfig:
    """Parse deduplication thresholds from config data."""
    defaults = DedupConfig()
    return DedupConfig(
        time_tolerance_seconds=float(
            data.get("time_tolerance_seconds", defaults.time_tolerance_seconds)
        ),
        distance_radius_km=float(
            data.get("distance_radius_km", defaults.distance_radius_km)
        ),
        window_seconds=float(data.get("window_seconds", defaults.window_seconds)),
    )


def _parse_push(data: dict[str, Any]) -> PushConfig:
    """Parse push delivery settings from config data."""
    defaults = PushConfig()
    project_id = _resolve_optional(data.get("project_id"))

    return PushConfig(
        enabled=_parse_bool(data.get("enabled", defaults.enabled)),
        project_id=project_id,
        topic=data.get("topic", defaults.topic),
        timeout_seconds=int(data.get("timeout_seconds", defaults.timeout_seconds)),
    )


def load_config_from_dict(data: dict[str, Any]) -> Config:
    """Load configuration from a dictionary.

    This is a pure-ish function (only env var expansion has side effects).

    Args:
        data: Configuration dictionary

    Returns:
        Parsed Config object
    """
    defaults = Config()

    if "feeds" in data:
        feeds = [_parse_feed(f) for f in data.get("feeds") or []]
    else:
        feeds = default_feeds()

    return Config(
        poll_interval_seconds=float(
            data.get("poll_interval_seconds", defaults.poll_interval_seconds)
        ),
        fetch_timeout_seconds=float(
            data.get("fetch_timeout_seconds", defaults.fetch_timeout_seconds)
        ),
        page_size=int(data.get("page_size", defaults.page_size)),
        feeds=feeds,
        dedup=_parse_dedup(data.get("dedup") or {}),
        push=_parse_push(data.get("push") or {}),
        firestore_database=_resolve_optional(data.get("firestore_database")),
        firestore_collection=data.get("firestore_collection", defaults.firestore_collection),
    )


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from a YAML file.

    This method performs file I/O.

    Args:
        config_path: Path to YAML config file.
                    If None, uses CONFIG_PATH env var or default.

    Returns:
        Parsed Config object

    Raises:
        yaml.YAMLError: If config file is invalid YAML
    """
    if config_path is None:
        config_path = os.environ.get("CONFIG_PATH", DEFAULT_CONFIG_PATH)

    path = Path(config_path)

    logger.info("Loading configuration from %s", path)

    if not path.exists():
        logger.warning("Config file not found: %s, using defaults", path)
        return Config()

    with open(path, "r") as f:
        data = yaml.safe_load(f)

    if data is None:
        logger.warning("Config file is empty, using defaults")
        return Config()

    config = load_config_from_dict(data)

    logger.info(
        "Loaded config: %d feeds (%d enabled), poll every %ss",
        len(config.feeds),
        len(config.enabled_feeds),
        config.poll_interval_seconds,
    )

    return config


def load_config_from_env() -> Config:
    """Load configuration from environment variables.

    Useful for container deployments without a YAML file.

    Environment variables:
        POLL_INTERVAL_SECONDS: Seconds between ticks
        FETCH_TIMEOUT_SECONDS: Per-feed HTTP timeout
        FIRESTORE_DATABASE: Firestore database name
        FIRESTORE_COLLECTION: Firestore collection for events
        FCM_PROJECT_ID: Firebase project for push delivery
        PUSH_ENABLED: Set to "false" to disable push hand-off

    Returns:
        Config object from environment
    """
    defaults = Config()

    push = PushConfig(
        enabled=_parse_bool(os.environ.get("PUSH_ENABLED", "true")),
        project_id=os.environ.get("FCM_PROJECT_ID"),
    )

    return Config(
        poll_interval_seconds=float(
            os.environ.get("POLL_INTERVAL_SECONDS", defaults.poll_interval_seconds)
        ),
        fetch_timeout_seconds=float(
            os.environ.get("FETCH_TIMEOUT_SECONDS", defaults.fetch_timeout_seconds)
        ),
        push=push,
        firestore_database=os.environ.get("FIRESTORE_DATABASE"),
        firestore_collection=os.environ.get(
            "FIRESTORE_COLLECTION", defaults.firestore_collection
        ),
    )
