"""
Ingestion loop: fetch -> decode -> translate -> fan out -> count -> sleep.

One cycle runs to completion before the next begins:

1. **Fetching**: InverterPoller.fetch() (5 s timeout). Request or status
   failure -> ``fetch-error``; body failure -> ``body-read-error``.
2. **Decoding**: decoder.decode(). Shape mismatch -> ``decode-error``.
3. **Dispatching**: for every sample in document order, publish to the MQTT
   sink and collect a point for the InfluxDB batch. Per-sample publish
   errors are logged and do not stop the cycle. After all publishes, the
   batch is written once; a failed write -> ``sink-write-error`` (when
   ``count_sink_errors`` is enabled).
4. **Escalation**: the ErrorTracker resets to 0 on every cycle whose fetch
   and decode succeeded, then adds exactly 1 if the cycle failed. A failed
   batch write therefore sets the counter to 1, while fetch, body-read and
   decode failures accumulate. Reaching ``max_errors`` raises
   FatalEscalation.
5. **Sleeping**: wait ``poll_interval_s`` unconditionally (no backoff),
   returning early only if the shutdown event is set.

Each stage raises a typed exception; run_cycle() is the only place those
become CycleOutcome values, and ErrorTracker.record() is the only place the
counter changes.

CHANGELOG:
- 2026-10-18: Reset the counter before counting a sink-write failure
- 2026-10-18: Make sink-write escalation a policy (count_sink_errors)
- 2026-10-18: Replace per-stage counters with CycleOutcome + ErrorTracker
- 2026-10-18: Initial creation (STORY-009)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from solbrid.src.decoder import decode
from solbrid.src.errors import BodyReadError, DecodeError, FatalEscalation, FetchError
from solbrid.src.models import CycleOutcome, DispatchReport, FailureKind
from solbrid.src.translator import to_point, to_publish

if TYPE_CHECKING:
    from solbrid.src.health import HealthWriter
    from solbrid.src.models import DeviceReading, TimeSeriesPoint
    from solbrid.src.poller import InverterPoller
    from solbrid.src.sinks import PublishSink, TimeSeriesSink

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Error escalation
# ---------------------------------------------------------------------------


class ErrorTracker:
    """Consecutive-failure counter driving fatal escalation.

    Args:
        max_errors: Counter value at which the loop must stop (>= 1).
    """

    def __init__(self, max_errors: int) -> None:
        if max_errors < 1:
            raise ValueError("max_errors must be >= 1")
        self._max_errors = max_errors
        self._consecutive = 0

    @property
    def consecutive(self) -> int:
        return self._consecutive

    @property
    def exhausted(self) -> bool:
        """True once the counter has reached ``max_errors``."""
        return self._consecutive >= self._max_errors

    def record(self, outcome: CycleOutcome) -> int:
        """Apply *outcome* to the counter and return the new value.

        A cycle that got as far as dispatching resets the counter first, so
        a failed batch write leaves it at exactly 1.
        """
        if outcome.reached_dispatch:
            self._consecutive = 0
        if not outcome.ok:
            self._consecutive += 1
        return self._consecutive


# ---------------------------------------------------------------------------
# Single-cycle functions (easily testable)
# ---------------------------------------------------------------------------


async def dispatch(
    reading: DeviceReading,
    *,
    ts: datetime,
    publish_sink: PublishSink,
    timeseries_sink: TimeSeriesSink,
) -> DispatchReport:
    """Fan one reading out to both sinks.

    Every sample is offered to the publish sink in document order; a failed
    publish is recorded and the next sample is still attempted. Points are
    accumulated and written as one batch after the last publish. An empty
    batch is never written.

    Args:
        reading: The decoded device reading.
        ts: Cycle timestamp stamped on every point.
        publish_sink: Enabled or disabled MQTT sink.
        timeseries_sink: Enabled or disabled InfluxDB sink.

    Returns:
        A :class:`DispatchReport` with per-sink statistics.
    """
    report = DispatchReport()
    batch: list[TimeSeriesPoint] = []

    for sample in reading.measurements:
        message = to_publish(sample, reading.serial)
        if message is not None:
            report.messages += 1
            error = await publish_sink.publish(message)
            if error is not None:
                report.publish_errors.append(error)

        point = to_point(sample, reading.serial, ts=ts)
        if point is not None:
            batch.append(point)

    report.points = len(batch)
    if batch:
        report.flush_error = await timeseries_sink.write(batch)

    return report


async def run_cycle(
    *,
    poller: InverterPoller,
    publish_sink: PublishSink,
    timeseries_sink: TimeSeriesSink,
    count_sink_errors: bool = True,
) -> CycleOutcome:
    """Execute one fetch-decode-dispatch cycle and classify its result.

    Never raises for expected faults: every stage failure is logged here and
    returned as a failed :class:`CycleOutcome`.
    """
    try:
        body = await poller.fetch()
    except FetchError as exc:
        logger.error("Request Error: %s", exc)
        return CycleOutcome.failure(FailureKind.FETCH, str(exc))
    except BodyReadError as exc:
        logger.error("Response Text Error: %s", exc)
        return CycleOutcome.failure(FailureKind.BODY_READ, str(exc))

    ts = datetime.now(tz=UTC)

    try:
        reading = decode(body)
    except DecodeError as exc:
        logger.error("XML Parse Error: %s", exc)
        return CycleOutcome.failure(FailureKind.DECODE, str(exc))

    logger.info(
        "Device: %s (serial=%s, %d measurements)",
        reading.name,
        reading.serial,
        len(reading.measurements),
    )

    report = await dispatch(
        reading,
        ts=ts,
        publish_sink=publish_sink,
        timeseries_sink=timeseries_sink,
    )

    if report.publish_errors:
        logger.warning(
            "%d of %d MQTT publishes failed this cycle",
            len(report.publish_errors),
            report.messages,
        )

    if report.flush_error is not None:
        if count_sink_errors:
            return CycleOutcome.failure(FailureKind.SINK_WRITE, str(report.flush_error))
        logger.warning("Ignoring sink write failure for error counting: %s", report.flush_error)

    return CycleOutcome.success()


# ---------------------------------------------------------------------------
# Loop runner
# ---------------------------------------------------------------------------


async def ingest_loop(
    *,
    poller: InverterPoller,
    publish_sink: PublishSink,
    timeseries_sink: TimeSeriesSink,
    poll_interval_s: float,
    max_errors: int,
    shutdown_event: asyncio.Event,
    health: HealthWriter | None = None,
    count_sink_errors: bool = True,
) -> None:
    """Run cycles until fatal escalation or shutdown.

    Args:
        poller: Inverter HTTP poller.
        publish_sink: Enabled or disabled MQTT sink.
        timeseries_sink: Enabled or disabled InfluxDB sink.
        poll_interval_s: Seconds to wait after every cycle.
        max_errors: Consecutive failures that stop the loop.
        shutdown_event: Set by signal handlers to stop after the current cycle.
        health: HealthWriter instance, or None to skip health writes.
        count_sink_errors: Whether a failed batch write counts as a failure.

    Raises:
        FatalEscalation: When the consecutive-error counter reaches
            ``max_errors``.
    """
    tracker = ErrorTracker(max_errors)
    logger.info("Ingestion loop started (interval=%ss)", poll_interval_s)

    while not shutdown_event.is_set():
        outcome = await run_cycle(
            poller=poller,
            publish_sink=publish_sink,
            timeseries_sink=timeseries_sink,
            count_sink_errors=count_sink_errors,
        )
        consecutive = tracker.record(outcome)

        if not outcome.ok:
            logger.warning(
                "Cycle failed (%s), consecutive errors: %d/%d",
                outcome.kind,
                consecutive,
                max_errors,
            )

        if health is not None:
            try:
                health.record_cycle(outcome, consecutive)
            except OSError:
                logger.warning("Failed to write health file", exc_info=True)

        if tracker.exhausted:
            raise FatalEscalation(consecutive, outcome)

        # Use wait with timeout so we can check shutdown between sleeps
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(shutdown_event.wait(), timeout=poll_interval_s)

    logger.info("Ingestion loop stopped")
