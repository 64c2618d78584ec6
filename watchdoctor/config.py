"""Configuration management for the watch engine."""

from __future__ import annotations

import math
import os
import re
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlsplit

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator


logger = structlog.get_logger(__name__)

DEFAULT_CONFIG_PATH = "config/watchdoctor.yaml"

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


class ConfigurationError(ValueError):
    """Raised when the engine cannot be configured or started."""


def parse_duration(value: Any) -> float:
    """Parse a duration into seconds.

    Accepts plain numbers (seconds) and Go-style duration strings such as
    ``"300ms"``, ``"1.5s"`` or ``"2h45m"``.
    """
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)

    s = str(value or "").strip()
    if not s:
        raise ConfigurationError("Invalid duration: empty string")

    sign = 1.0
    if s[0] in "+-":
        sign = -1.0 if s[0] == "-" else 1.0
        s = s[1:]
    if s == "0":
        return 0.0

    total = 0.0
    pos = 0
    for match in _DURATION_PART_RE.finditer(s):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos == 0 or pos != len(s):
        raise ConfigurationError(f"Invalid duration: {value!r}")
    return sign * total


def normalize_target(raw: str) -> str:
    """Turn a URL-like string into a bare ``host:port`` address."""
    url = str(raw or "").replace("https://", "", 1)
    url = url.replace("http://", "", 1)
    return url.strip()


def parse_targets(raw: Any) -> list[str]:
    """Split and normalize monitored servers, dropping empty entries.

    Duplicates are kept in source order.
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        entries = raw.split(" ")
    else:
        entries = [str(item) for item in raw]

    targets: list[str] = []
    for entry in entries:
        target = normalize_target(entry)
        if target:
            targets.append(target)
    return targets


def notification_address(endpoint: str) -> str:
    """Return the ``host:port`` the pre-flight probe should dial."""
    s = (endpoint or "").strip()
    parts = urlsplit(s) if "://" in s else None
    if parts is None or not parts.hostname:
        return normalize_target(s)

    try:
        port = parts.port
    except ValueError:
        return parts.netloc
    if port is None:
        port = 443 if parts.scheme.lower() == "https" else 80
    host = parts.hostname
    if ":" in host:
        host = f"[{host}]"
    return f"{host}:{port}"


class WatchDoctorConfig(BaseModel):
    """Validated, immutable watch configuration."""

    model_config = ConfigDict(frozen=True)

    directive_name: str = Field(default="watch_doctor", description="Name given to this watch block")
    interval: float = Field(description="Seconds between probes of one target")
    timeout: float = Field(description="Seconds allowed for a probe or a notification request")
    notification_server: str = Field(default="", description="URL receiving down notifications")
    monitored_servers: tuple[str, ...] = Field(default_factory=tuple, description="Normalized host:port targets")

    @field_validator("interval", "timeout", mode="before")
    @classmethod
    def _parse_duration(cls, value: Any) -> float:
        return parse_duration(value)

    @field_validator("interval", "timeout")
    @classmethod
    def _positive(cls, value: float) -> float:
        if not math.isfinite(value) or value <= 0:
            raise ValueError("duration must be greater than zero")
        return value

    @field_validator("notification_server", mode="before")
    @classmethod
    def _strip_notification_server(cls, value: Any) -> str:
        return str(value or "").strip()

    @field_validator("monitored_servers", mode="before")
    @classmethod
    def _parse_monitored_servers(cls, value: Any) -> tuple[str, ...]:
        return tuple(parse_targets(value))

    @model_validator(mode="after")
    def _warn_timeout_exceeds_interval(self) -> "WatchDoctorConfig":
        if self.timeout > self.interval:
            logger.warning(
                "Probe timeout exceeds interval",
                directive=self.directive_name,
                timeout=self.timeout,
                interval=self.interval,
            )
        return self


def build_config(**data: Any) -> WatchDoctorConfig:
    """Build a config, reporting every validation problem as ``ConfigurationError``."""
    try:
        return WatchDoctorConfig(**data)
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e


def parse_directive(args: list[str]) -> WatchDoctorConfig:
    """Build a config from the five directive arguments.

    ``<name> <interval> <timeout> <notification_server> "<server> <server> ..."``
    """
    if len(args) != 5:
        raise ConfigurationError(f"Expected 5 directive arguments, got {len(args)}")
    name, interval, timeout, notification_server, servers = args
    return build_config(
        directive_name=name,
        interval=interval,
        timeout=timeout,
        notification_server=notification_server,
        monitored_servers=servers,
    )


def load_config(config_path: Optional[str] = None) -> WatchDoctorConfig:
    """Load configuration from file and environment variables."""
    if config_path is None:
        config_path = os.getenv("WATCHDOCTOR_CONFIG", DEFAULT_CONFIG_PATH)

    config_data: dict[str, Any] = {}

    path = Path(config_path)
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}
        if not isinstance(config_data, dict):
            raise ConfigurationError(f"Config YAML must be a mapping: {config_path}")
    else:
        logger.info("Config file not found, using environment only", path=str(path))

    env_overrides = {
        "interval": os.getenv("WATCHDOCTOR_INTERVAL"),
        "timeout": os.getenv("WATCHDOCTOR_TIMEOUT"),
        "notification_server": os.getenv("WATCHDOCTOR_NOTIFICATION_SERVER"),
        "monitored_servers": os.getenv("WATCHDOCTOR_SERVERS"),
    }
    for key, value in env_overrides.items():
        if value is not None:
            config_data[key] = value

    for key in ("interval", "timeout"):
        if key not in config_data:
            raise ConfigurationError(f"Missing required setting: {key}")

    config = build_config(**config_data)
    logger.info(
        "Loaded watch config",
        directive=config.directive_name,
        targets=len(config.monitored_servers),
        interval=config.interval,
        timeout=config.timeout,
    )
    return config
