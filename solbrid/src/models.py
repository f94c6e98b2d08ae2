"""
Domain models for decoded inverter telemetry and per-cycle results.

DeviceReading and MeasurementSample are frozen pydantic models built by the
decoder from one XML document. PublishMessage and TimeSeriesPoint are the
sink-specific shapes produced by the translator. CycleOutcome and SinkError
are plain result values passed between the ingestion loop and the sinks.

CHANGELOG:
- 2026-10-18: Add DispatchReport for per-cycle sink statistics
- 2026-10-18: Initial creation (STORY-003)

TODO:
- None
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Decoded telemetry
# ---------------------------------------------------------------------------


class MeasurementSample(BaseModel):
    """A single ``<Measurement>`` element from the inverter document.

    Attributes:
        kind: Measurement label taken from the ``Type`` attribute
            (e.g. ``"Voltage_L1"``).
        raw_value: The ``Value`` attribute verbatim, or ``None`` when the
            sensor currently has no reading.
        unit: The ``Unit`` attribute, or ``None`` when absent.
    """

    model_config = ConfigDict(frozen=True)

    kind: str
    raw_value: str | None = None
    unit: str | None = None


class DeviceReading(BaseModel):
    """Device identity plus its measurements, in document order.

    Attributes:
        name: Device name from the ``Name`` attribute.
        serial: Device serial number; must be non-empty.
        measurements: Samples in the order they appear in the document.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    serial: str = Field(min_length=1)
    measurements: tuple[MeasurementSample, ...] = ()


# ---------------------------------------------------------------------------
# Translated sink representations
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PublishMessage:
    """Topic and payload for one MQTT publish."""

    topic: str
    payload: str


@dataclass(frozen=True, slots=True)
class TimeSeriesPoint:
    """One point destined for the time-series batch.

    Attributes:
        measurement: Series name (always ``"inverter_data"``).
        tags: Tag set; ``serial`` and ``type`` always, ``unit`` when known.
        value: The ``value`` field as a float.
        ts: Cycle timestamp injected by the caller.
    """

    measurement: str
    tags: dict[str, str]
    value: float
    ts: datetime


# ---------------------------------------------------------------------------
# Result values
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SinkError:
    """A transport fault reported by a sink adapter (returned, not raised).

    Attributes:
        sink: Which sink failed (``"mqtt"`` or ``"influxdb"``).
        message: Human-readable description of the fault.
    """

    sink: str
    message: str

    def __str__(self) -> str:
        return f"{self.sink}: {self.message}"


class FailureKind(StrEnum):
    """Whole-cycle failure categories that feed the consecutive-error counter."""

    FETCH = "fetch-error"
    BODY_READ = "body-read-error"
    DECODE = "decode-error"
    SINK_WRITE = "sink-write-error"


@dataclass(frozen=True, slots=True)
class CycleOutcome:
    """Result of one poll cycle: success, or a failure kind with a reason."""

    kind: FailureKind | None = None
    reason: str = ""

    @classmethod
    def success(cls) -> CycleOutcome:
        return cls()

    @classmethod
    def failure(cls, kind: FailureKind, reason: str) -> CycleOutcome:
        return cls(kind=kind, reason=reason)

    @property
    def ok(self) -> bool:
        return self.kind is None

    @property
    def reached_dispatch(self) -> bool:
        """True when fetch, body read and decode all succeeded."""
        return self.kind is None or self.kind is FailureKind.SINK_WRITE

    def describe(self) -> str:
        if self.kind is None:
            return "success"
        return f"{self.kind}: {self.reason}"


@dataclass(slots=True)
class DispatchReport:
    """Per-cycle statistics collected while dispatching a reading."""

    messages: int = 0
    publish_errors: list[SinkError] = field(default_factory=list)
    points: int = 0
    flush_error: SinkError | None = None
