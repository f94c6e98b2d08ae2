"""
Bridge daemon configuration loaded from a TOML file and environment variables.

Uses Pydantic BaseSettings for validation. The first existing file in
DEFAULT_CONFIG_PATHS is parsed with tomllib and its values take precedence;
anything it omits may come from environment variables (or a .env file),
with nested blocks addressed as ``MQTT__BROKER``, ``INFLUXDB__TOKEN`` etc.

Example config.toml::

    inverter_url = "http://192.168.1.50/measurements.xml"
    poll_interval_secs = 10
    max_errors = 5
    quiet_mode = false

    [mqtt]
    broker = "localhost"
    port = 1883
    client_id = "solbridxml2mqtt"

    [influxdb]
    url = "http://localhost:8086"
    token = "..."
    org = "home"
    bucket = "solar"

CHANGELOG:
- 2026-10-18: Add count_sink_errors policy and optional health_path
- 2026-10-18: Initial creation (STORY-006)

TODO:
- None
"""

from __future__ import annotations

import logging
import tomllib
from collections.abc import Iterable
from pathlib import Path

from pydantic import BaseModel, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from solbrid.src.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATHS: tuple[Path, ...] = (
    Path("config.toml"),
    Path("/etc/solbridxml2mqtt/config.toml"),
)
"""Config file search order; the first existing file wins."""


class MqttSettings(BaseModel):
    """Publish-sink block (``[mqtt]``).

    Attributes:
        broker: MQTT broker hostname or IP address.
        port: Broker TCP port.
        client_id: MQTT client identifier.
    """

    broker: str
    port: int
    client_id: str

    @field_validator("port")
    @classmethod
    def port_must_be_valid(cls, v: int) -> int:
        """Validate broker port is in valid range."""
        if v < 1 or v > 65535:
            raise ValueError("mqtt.port must be between 1 and 65535")
        return v


class InfluxSettings(BaseModel):
    """Time-series-sink block (``[influxdb]``).

    Attributes:
        url: InfluxDB 2.x base URL.
        token: API token with write access to *bucket*.
        org: Organization name or ID.
        bucket: Target bucket.
    """

    url: str
    token: str
    org: str
    bucket: str


class BridgeSettings(BaseSettings):
    """Bridge daemon configuration.

    Attributes:
        inverter_url: URL of the inverter's XML status document.
        poll_interval_secs: Seconds to sleep between poll cycles.
        max_errors: Consecutive failed cycles that stop the daemon.
        quiet_mode: Suppress informational log lines (errors still surface).
        count_sink_errors: Whether a failed InfluxDB batch write counts as a
            failed cycle. When False only fetch, body-read and decode
            failures drive the consecutive-error counter.
        health_path: Optional path of a JSON health file rewritten after
            every cycle.
        mqtt: Publish-sink settings, or None to disable MQTT.
        influxdb: Time-series-sink settings, or None to disable InfluxDB.
    """

    inverter_url: str
    poll_interval_secs: int
    max_errors: int
    quiet_mode: bool = False
    count_sink_errors: bool = True
    health_path: str | None = None
    mqtt: MqttSettings | None = None
    influxdb: InfluxSettings | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    @field_validator("poll_interval_secs")
    @classmethod
    def poll_interval_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("poll_interval_secs must be >= 1")
        return v

    @field_validator("max_errors")
    @classmethod
    def max_errors_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_errors must be >= 1")
        return v

    @model_validator(mode="after")
    def _require_a_sink(self) -> BridgeSettings:
        """Refuse to start unless at least one sink is configured."""
        if self.mqtt is None and self.influxdb is None:
            raise ValueError(
                "No valid MQTT or InfluxDB configuration found. "
                "Please check your config.toml."
            )
        return self


def find_config_file(paths: Iterable[Path] = DEFAULT_CONFIG_PATHS) -> Path | None:
    """Return the first existing path in *paths*, or None."""
    for path in paths:
        if path.is_file():
            return path
    return None


def load_settings(
    paths: Iterable[Path] = DEFAULT_CONFIG_PATHS,
) -> tuple[BridgeSettings, Path | None]:
    """Locate, parse, and validate the bridge configuration.

    Args:
        paths: Candidate config file locations in priority order.

    Returns:
        The validated settings and the file they were read from
        (``None`` when built from the environment alone).

    Raises:
        ConfigError: If the file is not valid TOML or the resulting
            settings fail validation (including "no sink configured").
    """
    paths = tuple(paths)
    used_path = find_config_file(paths)
    values: dict[str, object] = {}

    if used_path is None:
        logger.warning(
            "No config file found in %s, using environment only",
            ", ".join(str(p) for p in paths),
        )
    else:
        try:
            with used_path.open("rb") as fh:
                values = tomllib.load(fh)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            raise ConfigError(f"Failed to parse {used_path}: {exc}") from exc

    try:
        settings = BridgeSettings(**values)
    except ValidationError as exc:
        source = used_path or "environment"
        raise ConfigError(f"Invalid configuration ({source}): {exc}") from exc

    return settings, used_path
