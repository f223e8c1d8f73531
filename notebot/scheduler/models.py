"""Cron job data models — static definitions and persisted rows."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


def isoformat(ts: datetime) -> str:
    """Serialize a timestamp as UTC ISO 8601 with fixed microsecond precision.

    A fixed width keeps stored values lexically ordered.
    """
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC).isoformat(timespec="microseconds")


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class CronJobDefinition:
    """A cron job registered by the application at startup.

    Attributes:
        id: Unique job identifier (primary key in the store).
        schedule: Five-field crontab expression, e.g. ``"*/5 * * * *"``.
        workflow_id: Workflow started on each execution.
        input_data: Payload passed as the workflow's input.
        enabled: Disabled jobs are stored but never considered due.
    """

    id: str
    schedule: str
    workflow_id: str
    input_data: dict[str, Any] = field(default_factory=dict)
    enabled: bool = True


@dataclass
class CronJobRecord:
    """A row of the ``cron_jobs`` table.

    ``last_run_at`` is None until the job has executed once.
    """

    job_id: str
    schedule: str
    workflow_id: str
    input_data: dict[str, Any]
    last_run_at: str | None
    enabled: bool
    created_at: str
    updated_at: str

    @property
    def last_run(self) -> datetime | None:
        if self.last_run_at is None:
            return None
        ts = datetime.fromisoformat(self.last_run_at)
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=UTC)
        return ts

    @classmethod
    def from_row(cls, row: tuple) -> CronJobRecord:
        """Deserialize from a row selected in table column order."""
        return cls(
            job_id=row[0],
            schedule=row[1],
            workflow_id=row[2],
            input_data=json.loads(row[3] or "{}"),
            last_run_at=row[4],
            enabled=bool(row[5]),
            created_at=row[6],
            updated_at=row[7],
        )
