"""Tests for cron job models and timestamp helpers."""

import json
from datetime import UTC, datetime, timedelta, timezone

from notebot.scheduler.models import CronJobDefinition, CronJobRecord, isoformat


class TestIsoformat:
    def test_naive_treated_as_utc(self):
        assert isoformat(datetime(2025, 1, 1, 9, 30)) == "2025-01-01T09:30:00.000000+00:00"

    def test_converts_to_utc(self):
        ts = datetime(2025, 1, 1, 9, 0, tzinfo=timezone(timedelta(hours=-6)))
        assert isoformat(ts) == "2025-01-01T15:00:00.000000+00:00"

    def test_fixed_width_sorts_lexically(self):
        early = isoformat(datetime(2025, 1, 1, 9, 0, 0, tzinfo=UTC))
        late = isoformat(datetime(2025, 1, 1, 9, 0, 0, 1, tzinfo=UTC))
        assert early < late


class TestCronJobDefinition:
    def test_defaults(self):
        job = CronJobDefinition(id="sync", schedule="*/5 * * * *", workflow_id="wf")
        assert job.input_data == {}
        assert job.enabled is True


class TestCronJobRecord:
    def _row(self, last_run_at=None):
        return (
            "sync",
            "*/5 * * * *",
            "wf",
            json.dumps({"folder": "inbox"}),
            last_run_at,
            1,
            "2025-01-01T00:00:00.000000+00:00",
            "2025-01-01T00:00:00.000000+00:00",
        )

    def test_from_row(self):
        record = CronJobRecord.from_row(self._row())
        assert record.job_id == "sync"
        assert record.input_data == {"folder": "inbox"}
        assert record.enabled is True
        assert record.last_run is None

    def test_last_run_parses_aware_datetime(self):
        record = CronJobRecord.from_row(self._row("2025-01-01T09:00:00.000000+00:00"))
        assert record.last_run == datetime(2025, 1, 1, 9, 0, tzinfo=UTC)

    def test_last_run_naive_string_assumed_utc(self):
        record = CronJobRecord.from_row(self._row("2025-01-01T09:00:00"))
        assert record.last_run is not None
        assert record.last_run.tzinfo is not None
