"""
Bridge daemon entrypoint for the SolBrid-XML-to-MQTT telemetry pipeline.

Loads configuration, builds the inverter poller and the two sinks (enabled or
disabled variants), then runs the ingestion loop until either:

- the consecutive-error counter reaches ``max_errors`` (exit status 1), or
- SIGTERM/SIGINT sets the shutdown event (exit status 0 after the current
  cycle finishes).

A configuration error (including "no sink configured") exits with status 2
before any poll cycle runs.

Structured JSON logging is used for all events. ``quiet_mode`` raises the
log level to WARNING so only errors and warnings are emitted.

CHANGELOG:
- 2026-10-18: Exit codes for config error vs. fatal escalation
- 2026-10-18: Initial creation (STORY-010)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import signal
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from solbrid.src.config import DEFAULT_CONFIG_PATHS, load_settings
from solbrid.src.errors import ConfigError, FatalEscalation
from solbrid.src.health import HealthWriter
from solbrid.src.ingest import ingest_loop
from solbrid.src.poller import InverterPoller
from solbrid.src.sinks import build_sinks

if TYPE_CHECKING:
    from collections.abc import Iterable

    from solbrid.src.config import BridgeSettings

logger = logging.getLogger(__name__)

EXIT_FATAL = 1
EXIT_CONFIG = 2


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


class _JsonFormatter(logging.Formatter):
    """Minimal JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def configure_logging(quiet: bool = False) -> None:
    """Configure structured JSON logging for the bridge daemon.

    Sets up the root logger with a JSON-formatted handler writing to stderr.

    Args:
        quiet: When True only WARNING and above are emitted.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.WARNING if quiet else logging.INFO)


def _masked_token(value: str | None) -> str:
    """Return a short non-reversible token fingerprint for diagnostics."""
    if not value:
        return "empty"
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()[:10]
    return f"len={len(value)} sha256={digest}"


# ---------------------------------------------------------------------------
# Startup config logging
# ---------------------------------------------------------------------------


def log_config_summary(settings: BridgeSettings, used_path: Path | None) -> None:
    """Log a config summary at startup, excluding secrets.

    The InfluxDB token is replaced by a fingerprint.
    """
    logger.info(
        "Bridge starting with config: source=%s, inverter_url=%s, "
        "poll_interval_secs=%s, max_errors=%s, count_sink_errors=%s, "
        "health_path=%s",
        used_path or "environment",
        settings.inverter_url,
        settings.poll_interval_secs,
        settings.max_errors,
        settings.count_sink_errors,
        settings.health_path,
    )
    if settings.mqtt is not None:
        logger.info(
            "MQTT sink: broker=%s, port=%s, client_id=%s",
            settings.mqtt.broker,
            settings.mqtt.port,
            settings.mqtt.client_id,
        )
    if settings.influxdb is not None:
        logger.info(
            "InfluxDB sink: url=%s, org=%s, bucket=%s, token_masked=%s",
            settings.influxdb.url,
            settings.influxdb.org,
            settings.influxdb.bucket,
            _masked_token(settings.influxdb.token),
        )


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


async def run(settings: BridgeSettings, shutdown_event: asyncio.Event) -> None:
    """Build components from *settings* and run the ingestion loop.

    Sinks and the HTTP client are closed on every exit path.

    Raises:
        FatalEscalation: Propagated from the ingestion loop.
    """
    publish_sink, timeseries_sink = build_sinks(settings)
    health = HealthWriter(settings.health_path) if settings.health_path else None

    try:
        async with InverterPoller(settings.inverter_url) as poller:
            await ingest_loop(
                poller=poller,
                publish_sink=publish_sink,
                timeseries_sink=timeseries_sink,
                poll_interval_s=settings.poll_interval_secs,
                max_errors=settings.max_errors,
                shutdown_event=shutdown_event,
                health=health,
                count_sink_errors=settings.count_sink_errors,
            )
    finally:
        await publish_sink.close()
        await timeseries_sink.close()


async def async_main(config_paths: Iterable[Path] = DEFAULT_CONFIG_PATHS) -> int:
    """Async entrypoint: load config, install signal handlers, run.

    Returns:
        Process exit status.
    """
    configure_logging()

    try:
        settings, used_path = load_settings(config_paths)
    except ConfigError as exc:
        logger.critical("%s", exc)
        return EXIT_CONFIG

    configure_logging(quiet=settings.quiet_mode)
    log_config_summary(settings, used_path)

    shutdown_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: _handle_signal(shutdown_event),
        )

    try:
        await run(settings, shutdown_event)
    except FatalEscalation as exc:
        logger.critical("%s", exc)
        return EXIT_FATAL

    logger.info("Shutdown complete")
    return 0


def _handle_signal(shutdown_event: asyncio.Event) -> None:
    """Handle SIGTERM/SIGINT by setting the shutdown event.

    Args:
        shutdown_event: The event to set for graceful shutdown.
    """
    logger.info("Received shutdown signal, stopping after current cycle")
    shutdown_event.set()


def main() -> None:
    """Synchronous entrypoint for the bridge daemon."""
    sys.exit(asyncio.run(async_main()))


if __name__ == "__main__":
    main()
