"""
Shared test fixtures for bridge daemon tests.

Provides environment isolation for BridgeSettings, sample inverter XML
documents, and a helper to write config files.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-001)

TODO:
- None
"""

from __future__ import annotations

from pathlib import Path

import pytest

# All BridgeSettings environment variable names, used for cleanup.
_ALL_BRIDGE_ENV_VARS = (
    "INVERTER_URL",
    "POLL_INTERVAL_SECS",
    "MAX_ERRORS",
    "QUIET_MODE",
    "COUNT_SINK_ERRORS",
    "HEALTH_PATH",
    "MQTT",
    "MQTT__BROKER",
    "MQTT__PORT",
    "MQTT__CLIENT_ID",
    "INFLUXDB",
    "INFLUXDB__URL",
    "INFLUXDB__TOKEN",
    "INFLUXDB__ORG",
    "INFLUXDB__BUCKET",
)

SAMPLE_XML = (
    '<?xml version="1.0" encoding="UTF-8"?>'
    '<Root><Device Name="Inv1" Serial="SN1"><Measurements>'
    '<Measurement Type="Voltage_L1" Value="230.5" Unit="V"/>'
    '<Measurement Type="Status" Type2=""/>'
    "</Measurements></Device></Root>"
)
"""One valued measurement followed by one without a Value attribute."""

FULL_XML = (
    '<Root><Device Name="Solbrid 10K" Serial="KS123456"><Measurements>'
    '<Measurement Type="AC_Voltage" Value="231.2" Unit="V"/>'
    '<Measurement Type="AC_Power" Value="4512" Unit="W"/>'
    '<Measurement Type="Temp" Value="n/a" Unit="C"/>'
    '<Measurement Type="BDC_Status"/>'
    '<Measurement Type="Mode" Value="MPP"/>'
    "</Measurements></Device></Root>"
)
"""Five measurements: two numeric, one non-numeric with unit, one empty, one text."""


@pytest.fixture(autouse=True)
def _clean_bridge_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Remove all bridge env vars and isolate from .env/config files.

    Changes working directory to tmp_path so neither a .env file nor a
    config.toml in the repository is picked up accidentally.
    """
    for var in _ALL_BRIDGE_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def write_config(tmp_path: Path):
    """Return a callable that writes TOML text to tmp_path/config.toml."""

    def _write(text: str, name: str = "config.toml") -> Path:
        path = tmp_path / name
        path.write_text(text)
        return path

    return _write


@pytest.fixture()
def sample_xml() -> str:
    return SAMPLE_XML


@pytest.fixture()
def full_xml() -> str:
    return FULL_XML
