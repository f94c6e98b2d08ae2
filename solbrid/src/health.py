"""
Health file writer for the bridge daemon.

Writes a JSON health file at a configurable path with four fields:
- last_poll_ts: ISO timestamp of the most recent cycle (any outcome).
- last_success_ts: ISO timestamp of the most recent successful cycle.
- consecutive_errors: Current value of the consecutive-error counter.
- last_failure: Description of the most recent failed cycle, or null.

The file is rewritten after every cycle, providing a simple liveness
signal that systemd watchdogs or monitoring scripts can inspect.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-011)

TODO:
- None
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

from solbrid.src.models import CycleOutcome


class HealthWriter:
    """Writes bridge health status to a JSON file.

    Args:
        path: Filesystem path for the health JSON file. Accepts str or Path.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._last_poll_ts: str | None = None
        self._last_success_ts: str | None = None
        self._consecutive_errors: int = 0
        self._last_failure: str | None = None

    def record_cycle(self, outcome: CycleOutcome, consecutive_errors: int) -> None:
        """Record the result of one cycle and write health file.

        Args:
            outcome: The cycle's outcome.
            consecutive_errors: Counter value after recording *outcome*.
        """
        now = datetime.now(tz=UTC).isoformat()
        self._last_poll_ts = now
        if outcome.ok:
            self._last_success_ts = now
        else:
            self._last_failure = outcome.describe()
        self._consecutive_errors = consecutive_errors
        self._write()

    def _write(self) -> None:
        """Write the health JSON file with current state."""
        data = {
            "last_poll_ts": self._last_poll_ts,
            "last_success_ts": self._last_success_ts,
            "consecutive_errors": self._consecutive_errors,
            "last_failure": self._last_failure,
        }
        self.path.write_text(json.dumps(data))
