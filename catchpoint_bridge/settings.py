"""Configuration management for the bridge HTTP server."""

from __future__ import annotations

import json
import os
import socket
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from catchpoint_bridge.errors import ConfigurationError


DEFAULT_CONFIG_PATH = "./receiver.cfg.json"


class EndpointSettings(BaseModel):
    """A write endpoint and the plugin that normalizes its payloads."""
    uri_path: str = Field(..., min_length=1, description="Exact request path, e.g. /catchpoint/alerts")
    plugin_name: str = Field(..., min_length=1, description="Normalizer kind, e.g. catchpoint_alerts")
    host: str = Field(default="localhost", description="Host the resulting check records are filed under")


class EmitterSettings(BaseModel):
    """A read endpoint serving the check snapshot."""
    uri_path: str = Field(..., min_length=1, description="Exact request path of the snapshot")
    template: Optional[str] = Field(default=None, description="Optional Jinja2 template rendering one record")


class NscaSettings(BaseModel):
    """Configuration of the send_nsca passive-check forwarder."""
    enabled: bool = Field(default=False, description="Forward every failure through send_nsca")
    server: str = Field(default="", description="NSCA server to send the data to")
    os_command_path: str = Field(default="/usr/sbin/send_nsca", description="Full path of send_nsca")
    config_file: str = Field(default="/etc/send_nsca.cfg", description="send_nsca configuration file")
    client_host: str = Field(default_factory=socket.gethostname, description="Host name reported to NSCA")
    timeout_seconds: float = Field(default=10.0, gt=0, description="Timeout of one send_nsca call")


class BridgeSettings(BaseModel):
    """Main configuration of the bridge."""

    # Listener
    listener_ip: str = Field(default="127.0.0.1", description="IP the web server listens on")
    listener_port: int = Field(default=8080, ge=1, le=65535, description="Port the web server listens on")

    # Comma-separated list of client IPs; empty serves every client.
    authorized_ips: str = Field(default="", description="Comma-separated allow-list of client IPs")

    # Logging
    log_file: str = Field(default="", description="Append logs to this file instead of stdout")
    log_level: str = Field(default="INFO", description="Logging level")

    # Debugging
    dump_requests_dir: str = Field(default="", description="Dump each write request body into this directory")

    endpoints: list[EndpointSettings] = Field(default_factory=list)
    emitter: list[EmitterSettings] = Field(default_factory=list)
    nsca: NscaSettings = Field(default_factory=NscaSettings)


def _read_config_file(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Unable to read configuration {path}: {exc}") from exc

    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text) if text.strip() else {}
        else:
            data = yaml.safe_load(text) or {}
    except (ValueError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Unable to parse configuration {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration {path} must be a mapping")
    return data


def _apply_env_overrides(config_data: dict[str, Any]) -> dict[str, Any]:
    env_overrides = {
        "listener_ip": os.getenv("BRIDGE_LISTENER_IP"),
        "listener_port": os.getenv("BRIDGE_LISTENER_PORT"),
        "authorized_ips": os.getenv("BRIDGE_AUTHORIZED_IPS"),
        "log_level": os.getenv("BRIDGE_LOG_LEVEL"),
        "log_file": os.getenv("BRIDGE_LOG_FILE"),
        "dump_requests_dir": os.getenv("BRIDGE_DUMP_REQUESTS_DIR"),
    }
    for key, value in env_overrides.items():
        if value is not None:
            config_data[key] = value.strip()

    nsca_enabled = os.getenv("BRIDGE_NSCA_ENABLED")
    if nsca_enabled is not None:
        nsca = dict(config_data.get("nsca") or {})
        nsca["enabled"] = nsca_enabled.strip().lower() in ("true", "1", "yes", "on")
        config_data["nsca"] = nsca
    return config_data


def load_settings(config_path: Optional[str] = None) -> BridgeSettings:
    """Load configuration from file, then apply environment overrides."""
    if config_path is None:
        config_path = os.getenv("BRIDGE_CONFIG", DEFAULT_CONFIG_PATH)

    config_data = _apply_env_overrides(_read_config_file(Path(config_path)))
    try:
        return BridgeSettings(**config_data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration {config_path}: {exc}") from exc
