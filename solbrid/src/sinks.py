"""
Sink adapters for MQTT (publish) and InfluxDB (time-series batch write).

Each sink kind has two variants behind a small protocol:

- An enabled adapter wrapping the real transport.
- A disabled no-op adapter installed when the config block is absent.

build_sinks() picks the variants once at startup, so the dispatch stage
calls whichever is installed without branching on configuration.

Adapters never raise on transport faults (timeouts, refused connections,
broker or server rejections). They log the fault and return a SinkError;
``None`` means success.

The MQTT adapter relies on paho-mqtt's background network thread
(``loop_start``) to keep the session alive: it reconnects with a fixed
delay for the lifetime of the process and never propagates transport
errors to the ingestion loop.

CHANGELOG:
- 2026-10-18: Bound the MQTT outbound queue; narrow InfluxDB write errors
- 2026-10-18: Switch InfluxDB adapter to InfluxDBClientAsync
- 2026-10-18: Initial creation (STORY-007)

TODO:
- None
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

import aiohttp
import paho.mqtt.client as mqtt
from influxdb_client import Point
from influxdb_client.client.exceptions import InfluxDBError
from influxdb_client.client.influxdb_client_async import InfluxDBClientAsync
from influxdb_client.rest import ApiException

from solbrid.src.models import PublishMessage, SinkError, TimeSeriesPoint

if TYPE_CHECKING:
    from solbrid.src.config import BridgeSettings, InfluxSettings, MqttSettings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MQTT_KEEPALIVE_S: int = 5
"""MQTT keep-alive interval in seconds."""

MQTT_RECONNECT_DELAY_S: int = 1
"""Fixed wait between reconnect attempts of the background network thread."""

MQTT_QOS: int = 1
"""At-least-once delivery."""

MQTT_MAX_QUEUED: int = 10
"""Outbound messages paho may hold while the broker is unreachable."""

MQTT_SINK = "mqtt"
INFLUX_SINK = "influxdb"


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


class PublishSink(Protocol):
    """Topic-addressed, fire-and-forget sink."""

    enabled: bool

    async def publish(self, message: PublishMessage) -> SinkError | None: ...

    async def close(self) -> None: ...


class TimeSeriesSink(Protocol):
    """Batched point sink written once per cycle."""

    enabled: bool

    async def write(self, points: list[TimeSeriesPoint]) -> SinkError | None: ...

    async def close(self) -> None: ...


# ---------------------------------------------------------------------------
# Disabled variants
# ---------------------------------------------------------------------------


class DisabledPublishSink:
    """Installed when no ``[mqtt]`` block is configured."""

    enabled = False

    async def publish(self, message: PublishMessage) -> SinkError | None:
        return None

    async def close(self) -> None:
        return None


class DisabledTimeSeriesSink:
    """Installed when no ``[influxdb]`` block is configured."""

    enabled = False

    async def write(self, points: list[TimeSeriesPoint]) -> SinkError | None:
        return None

    async def close(self) -> None:
        return None


# ---------------------------------------------------------------------------
# MQTT
# ---------------------------------------------------------------------------


class MqttPublishSink:
    """Publish sink backed by a long-lived paho-mqtt client.

    The client connects asynchronously and runs its network loop in a
    background thread started by :meth:`start`. Publishes made while the
    broker is unreachable are reported as errors; up to ``MQTT_MAX_QUEUED``
    QoS 1 messages stay queued in the client and are delivered after
    reconnect. Once the queue is full further publishes are rejected.

    Args:
        broker: MQTT broker hostname or IP address.
        port: Broker TCP port.
        client_id: MQTT client identifier.
    """

    enabled = True

    def __init__(self, *, broker: str, port: int, client_id: str) -> None:
        self._broker = broker
        self._port = port
        self._client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
        )
        self._client.reconnect_delay_set(
            min_delay=MQTT_RECONNECT_DELAY_S,
            max_delay=MQTT_RECONNECT_DELAY_S,
        )
        self._client.max_queued_messages_set(MQTT_MAX_QUEUED)
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect

    @classmethod
    def from_settings(cls, settings: MqttSettings) -> MqttPublishSink:
        return cls(
            broker=settings.broker,
            port=settings.port,
            client_id=settings.client_id,
        )

    def start(self) -> None:
        """Begin connecting and start the background network thread."""
        logger.info("Connecting to MQTT broker %s:%d", self._broker, self._port)
        self._client.connect_async(
            self._broker,
            self._port,
            keepalive=MQTT_KEEPALIVE_S,
        )
        self._client.loop_start()

    async def publish(self, message: PublishMessage) -> SinkError | None:
        try:
            info = self._client.publish(
                message.topic,
                message.payload.encode("utf-8"),
                qos=MQTT_QOS,
                retain=False,
            )
        except (ValueError, OSError) as exc:
            logger.error("MQTT Publish Error on %s: %s", message.topic, exc)
            return SinkError(MQTT_SINK, str(exc))

        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            reason = mqtt.error_string(info.rc)
            logger.error("MQTT Publish Error on %s: %s", message.topic, reason)
            return SinkError(MQTT_SINK, reason)

        logger.info("MQTT Published: %s = %s", message.topic, message.payload)
        return None

    async def close(self) -> None:
        self._client.disconnect()
        self._client.loop_stop()

    # ------------------------------------------------------------------
    # paho callbacks (run on the network thread)
    # ------------------------------------------------------------------

    def _on_connect(self, client, userdata, flags, reason_code, properties) -> None:
        if reason_code.is_failure:
            logger.error("MQTT connection refused: %s", reason_code)
        else:
            logger.info("MQTT connected to %s:%d", self._broker, self._port)

    def _on_disconnect(self, client, userdata, flags, reason_code, properties) -> None:
        logger.warning(
            "MQTT disconnected (%s), retrying every %ds",
            reason_code,
            MQTT_RECONNECT_DELAY_S,
        )


# ---------------------------------------------------------------------------
# InfluxDB
# ---------------------------------------------------------------------------


def to_influx_point(point: TimeSeriesPoint) -> Point:
    """Convert a domain TimeSeriesPoint into an influxdb-client Point."""
    record = Point(point.measurement)
    for key, value in point.tags.items():
        record = record.tag(key, value)
    return record.field("value", point.value).time(point.ts)


class InfluxTimeSeriesSink:
    """Time-series sink writing one batch per call to an InfluxDB 2.x bucket.

    The async client holds an aiohttp session, so it must be constructed
    from inside a running event loop.

    Args:
        url: InfluxDB base URL.
        token: API token.
        org: Organization name or ID.
        bucket: Target bucket.
    """

    enabled = True

    def __init__(self, *, url: str, token: str, org: str, bucket: str) -> None:
        self._url = url
        self._org = org
        self._bucket = bucket
        self._client = InfluxDBClientAsync(url=url, token=token, org=org)
        self._write_api = self._client.write_api()

    @classmethod
    def from_settings(cls, settings: InfluxSettings) -> InfluxTimeSeriesSink:
        return cls(
            url=settings.url,
            token=settings.token,
            org=settings.org,
            bucket=settings.bucket,
        )

    async def write(self, points: list[TimeSeriesPoint]) -> SinkError | None:
        """Write *points* as a single batch. An empty batch makes no call."""
        if not points:
            return None

        records = [to_influx_point(p) for p in points]
        try:
            await self._write_api.write(
                bucket=self._bucket,
                org=self._org,
                record=records,
            )
        except (ApiException, InfluxDBError, aiohttp.ClientError, TimeoutError) as exc:
            logger.error("InfluxDB Write Error: %s", exc, exc_info=True)
            return SinkError(INFLUX_SINK, str(exc) or type(exc).__name__)

        logger.info("InfluxDB Write Success (%d points)", len(records))
        return None

    async def close(self) -> None:
        await self._client.close()


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def build_sinks(settings: BridgeSettings) -> tuple[PublishSink, TimeSeriesSink]:
    """Instantiate the enabled or disabled variant of each sink.

    Must be called from inside the running event loop. The MQTT network
    thread is started here.
    """
    publish_sink: PublishSink
    timeseries_sink: TimeSeriesSink

    if settings.mqtt is not None:
        logger.info(
            "MQTT Configuration found: %s:%d",
            settings.mqtt.broker,
            settings.mqtt.port,
        )
        mqtt_sink = MqttPublishSink.from_settings(settings.mqtt)
        mqtt_sink.start()
        publish_sink = mqtt_sink
    else:
        publish_sink = DisabledPublishSink()

    if settings.influxdb is not None:
        logger.info("InfluxDB Configuration found: %s", settings.influxdb.url)
        timeseries_sink = InfluxTimeSeriesSink.from_settings(settings.influxdb)
    else:
        timeseries_sink = DisabledTimeSeriesSink()

    return publish_sink, timeseries_sink
