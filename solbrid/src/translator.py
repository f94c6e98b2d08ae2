"""
Pure translator from MeasurementSample to sink-specific representations.

- to_publish(): MQTT topic ``inverter/{serial}/{kind}`` and payload
  ``"{value} {unit}"`` (unit omitted when absent, whitespace trimmed).
- to_point(): InfluxDB point ``inverter_data`` tagged with serial, type and
  (when known) unit, with the value parsed as a float.

Neither function raises. A sample without a value produces nothing for
either sink; a value that is not a finite float produces nothing for the
time-series sink only.

CHANGELOG:
- 2026-10-18: Reject underscores and surrounding whitespace in numeric values
- 2026-10-18: Initial creation (STORY-005)

TODO:
- None
"""

from __future__ import annotations

import logging
import math
from datetime import datetime

from solbrid.src.models import MeasurementSample, PublishMessage, TimeSeriesPoint

logger = logging.getLogger(__name__)

POINT_MEASUREMENT = "inverter_data"
"""Series name for every time-series point written by the bridge."""

TOPIC_PREFIX = "inverter"


def parse_value(raw: str) -> float | None:
    """Parse *raw* as a finite float, or return ``None``.

    Python's ``float()`` is more lenient than a plain decimal literal
    (it strips whitespace and accepts ``1_000``); both are rejected here.
    NaN and infinities cannot be stored as field values and are rejected too.
    """
    if not raw or raw != raw.strip() or "_" in raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def to_publish(sample: MeasurementSample, serial: str) -> PublishMessage | None:
    """Build the MQTT topic/payload pair for *sample*.

    Returns ``None`` when the sample carries no value.
    """
    if sample.raw_value is None:
        return None
    payload = f"{sample.raw_value} {sample.unit or ''}".strip()
    return PublishMessage(
        topic=f"{TOPIC_PREFIX}/{serial}/{sample.kind}",
        payload=payload,
    )


def to_point(
    sample: MeasurementSample,
    serial: str,
    *,
    ts: datetime,
) -> TimeSeriesPoint | None:
    """Build the time-series point for *sample*.

    Args:
        sample: The decoded measurement.
        serial: Serial number of the owning device.
        ts: Cycle timestamp (injected; this module never reads the clock).

    Returns:
        A :class:`TimeSeriesPoint`, or ``None`` if the sample has no value
        or the value is not numeric.
    """
    if sample.raw_value is None:
        return None

    value = parse_value(sample.raw_value)
    if value is None:
        logger.debug(
            "Skipping non-numeric value %r for %s (time-series only)",
            sample.raw_value,
            sample.kind,
        )
        return None

    tags = {"serial": serial, "type": sample.kind}
    if sample.unit:
        tags["unit"] = sample.unit

    return TimeSeriesPoint(
        measurement=POINT_MEASUREMENT,
        tags=tags,
        value=value,
        ts=ts,
    )
