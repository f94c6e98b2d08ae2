"""
Pure decoder that turns the inverter's XML status document into a DeviceReading.

Expected shape::

    <Root>
      <Device Name=".." Serial="..">
        <Measurements>
          <Measurement Type=".." Value=".." Unit=".."/>
          ...
        </Measurements>
      </Device>
    </Root>

``Value`` and ``Unit`` are optional on each measurement; a missing ``Value``
is the normal "no current reading" case and yields ``raw_value=None``.
Every other structural mismatch raises DecodeError for the whole document;
there is no partial decoding.

This is a pure function: no I/O, no clock, no sink awareness.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-004)

TODO:
- None
"""

from __future__ import annotations

import xml.etree.ElementTree as ET

from pydantic import ValidationError

from solbrid.src.errors import DecodeError
from solbrid.src.models import DeviceReading, MeasurementSample

_DEVICE_TAG = "Device"
_MEASUREMENTS_TAG = "Measurements"
_MEASUREMENT_TAG = "Measurement"


def _required_attr(element: ET.Element, name: str) -> str:
    """Return attribute *name* of *element* or raise DecodeError."""
    value = element.get(name)
    if value is None:
        raise DecodeError(f"<{element.tag}> is missing required attribute '{name}'")
    return value


def _decode_measurement(element: ET.Element) -> MeasurementSample:
    return MeasurementSample(
        kind=_required_attr(element, "Type"),
        raw_value=element.get("Value"),
        unit=element.get("Unit"),
    )


def decode(document: str | bytes) -> DeviceReading:
    """Decode one inverter XML document.

    Args:
        document: Raw XML text. ``bytes`` are handed to the parser as-is so
            the encoding declared in the XML prolog is honoured.

    Returns:
        A :class:`DeviceReading` with one sample per ``<Measurement>``
        element, in document order.

    Raises:
        DecodeError: If the document is not well-formed XML or does not
            match the expected Root/Device/Measurements nesting.
    """
    try:
        root = ET.fromstring(document)
    except ET.ParseError as exc:
        raise DecodeError(f"Malformed XML: {exc}") from exc

    device = root.find(_DEVICE_TAG)
    if device is None:
        raise DecodeError(f"<{root.tag}> has no <{_DEVICE_TAG}> element")

    name = _required_attr(device, "Name")
    serial = _required_attr(device, "Serial")

    container = device.find(_MEASUREMENTS_TAG)
    if container is None:
        raise DecodeError(f"<{_DEVICE_TAG}> has no <{_MEASUREMENTS_TAG}> element")

    samples = tuple(
        _decode_measurement(el) for el in container.findall(_MEASUREMENT_TAG)
    )

    try:
        return DeviceReading(name=name, serial=serial, measurements=samples)
    except ValidationError as exc:
        raise DecodeError(f"Invalid device identity: {exc}") from exc
