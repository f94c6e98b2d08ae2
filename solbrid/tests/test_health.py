"""
Unit tests for the bridge health writer module.

Tests verify:
- record_cycle() writes health.json with all four fields.
- A success updates last_success_ts and keeps the previous failure text.
- A failure records the outcome description and counter value.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-011)

TODO:
- None
"""

from __future__ import annotations

import json
from pathlib import Path

from solbrid.src.health import HealthWriter
from solbrid.src.models import CycleOutcome, FailureKind


class TestRecordCycle:
    """record_cycle() rewrites the health file."""

    def test_success_writes_all_fields(self, tmp_path: Path) -> None:
        health_path = tmp_path / "health.json"
        writer = HealthWriter(str(health_path))

        writer.record_cycle(CycleOutcome.success(), 0)

        data = json.loads(health_path.read_text())
        assert set(data) == {
            "last_poll_ts",
            "last_success_ts",
            "consecutive_errors",
            "last_failure",
        }
        assert "T" in data["last_poll_ts"]
        assert data["last_success_ts"] == data["last_poll_ts"]
        assert data["consecutive_errors"] == 0
        assert data["last_failure"] is None

    def test_failure_records_description(self, tmp_path: Path) -> None:
        health_path = tmp_path / "health.json"
        writer = HealthWriter(health_path)

        writer.record_cycle(CycleOutcome.failure(FailureKind.DECODE, "no Device"), 2)

        data = json.loads(health_path.read_text())
        assert data["last_success_ts"] is None
        assert data["consecutive_errors"] == 2
        assert data["last_failure"] == "decode-error: no Device"

    def test_success_after_failure_keeps_last_failure(self, tmp_path: Path) -> None:
        health_path = tmp_path / "health.json"
        writer = HealthWriter(health_path)

        writer.record_cycle(CycleOutcome.failure(FailureKind.FETCH, "timeout"), 1)
        writer.record_cycle(CycleOutcome.success(), 0)

        data = json.loads(health_path.read_text())
        assert data["consecutive_errors"] == 0
        assert data["last_success_ts"] is not None
        assert data["last_failure"] == "fetch-error: timeout"
