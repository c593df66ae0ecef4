"""Configuration loading, validation, and defaults."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml

from .core.version import parse as parse_version
from .types import (
    ChartConfig,
    ConfigError,
    LogChannel,
    LogTailConfig,
    PmcWatchConfig,
    Settings,
    StreamConfig,
    VersionParseError,
)

CONFIG_FILENAMES = [
    "pmc-watch.yaml",
    "pmc-watch.yml",
    "pmc-watch.json",
    ".pmc-watch.yaml",
    ".pmc-watch.yml",
]

ENV_URL = "PMC_URL"
ENV_TOKEN = "PMC_TOKEN"


def _discover_config() -> Path | None:
    """Search CWD then parent dirs up to home for a config file."""
    cwd = Path.cwd()
    home = Path.home()
    search = cwd
    while True:
        for name in CONFIG_FILENAMES:
            candidate = search / name
            if candidate.is_file():
                return candidate
        if search == home or search == search.parent:
            break
        search = search.parent
    return None


def _number(section: dict[str, Any], key: str, default, kind=float):
    value = section.get(key, default)
    try:
        return kind(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{key} must be a number, got {value!r}") from e


def _build_config(raw: dict[str, Any]) -> PmcWatchConfig:
    """Build a PmcWatchConfig from a raw dict, then apply env overrides."""
    daemon_raw = raw.get("daemon", {})
    settings = Settings(
        base_url=os.environ.get(ENV_URL) or daemon_raw.get("url", Settings.base_url),
        token=os.environ.get(ENV_TOKEN) or daemon_raw.get("token", ""),
        timeout=_number(daemon_raw, "timeout", Settings.timeout),
    )

    stream_raw = raw.get("stream", {})
    stream = StreamConfig(
        retry_delay=_number(stream_raw, "retry_delay", 5.0),
    )

    logs_raw = raw.get("logs", {})
    channel = logs_raw.get("channel", LogChannel.STDOUT.value)
    try:
        default_channel = LogChannel(channel)
    except ValueError as e:
        raise ConfigError(f"Unknown log channel: {channel!r}") from e
    logs = LogTailConfig(
        poll_interval=_number(logs_raw, "poll_interval", 5.0),
        default_channel=default_channel,
    )

    charts_raw = raw.get("charts", {})
    charts = ChartConfig(
        buffer_capacity=_number(charts_raw, "buffer_capacity", 21, int),
    )

    return PmcWatchConfig(
        settings=settings,
        stream=stream,
        logs=logs,
        charts=charts,
        client_version=raw.get("client_version", ""),
        default_server=raw.get("server", "local"),
    )


def validate_config(config: PmcWatchConfig) -> list[str]:
    """Validate a config. Returns list of error strings (empty = valid)."""
    errors: list[str] = []

    parsed = urlparse(config.settings.base_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        errors.append(f"daemon.url must be an http(s) URL, got {config.settings.base_url!r}")

    if config.settings.timeout <= 0:
        errors.append("daemon.timeout must be > 0")

    if config.stream.retry_delay <= 0:
        errors.append("stream.retry_delay must be > 0")

    if config.logs.poll_interval <= 0:
        errors.append("logs.poll_interval must be > 0")

    if config.charts.buffer_capacity < 1:
        errors.append("charts.buffer_capacity must be >= 1")

    if config.client_version:
        try:
            parse_version(config.client_version)
        except VersionParseError as e:
            errors.append(f"client_version: {e}")

    return errors


def load_config(
    config_path: str | Path | None = None,
    config_dict: dict | None = None,
) -> PmcWatchConfig:
    """Load config from dict, explicit path, or auto-discover."""
    if config_dict is not None:
        return _build_config(config_dict)

    if config_path is not None:
        path = Path(config_path)
    else:
        path = _discover_config()

    if path is None:
        # Return defaults
        return _build_config({})

    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    text = path.read_text()
    if path.suffix == ".json":
        raw = json.loads(text)
    else:
        raw = yaml.safe_load(text) or {}

    return _build_config(raw)
