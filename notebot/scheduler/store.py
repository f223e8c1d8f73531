"""CronStore — aiosqlite persistence for cron job definitions and last runs."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import aiosqlite

from notebot.config import settings
from notebot.scheduler.models import CronJobRecord, isoformat, utcnow

if TYPE_CHECKING:
    from datetime import datetime
    from pathlib import Path

    from notebot.scheduler.models import CronJobDefinition

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS cron_jobs (
    job_id       TEXT PRIMARY KEY,
    schedule     TEXT NOT NULL,
    workflow_id  TEXT NOT NULL,
    input_data   TEXT NOT NULL DEFAULT '{}',
    last_run_at  TEXT,
    enabled      INTEGER NOT NULL DEFAULT 1,
    created_at   TEXT NOT NULL,
    updated_at   TEXT NOT NULL
)
"""

_COLUMNS = (
    "job_id, schedule, workflow_id, input_data, last_run_at, enabled, created_at, updated_at"
)


class CronStore:
    """Persists cron jobs in SQLite.

    Pass an explicit *db_path* for test isolation (e.g. ``tmp_path / "test.db"``).
    """

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path or settings.database_path

    async def _connect(self) -> aiosqlite.Connection:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        return await aiosqlite.connect(str(self._db_path))

    async def initialize(self) -> None:
        """Create the ``cron_jobs`` table if it does not exist."""
        db = await self._connect()
        try:
            await db.execute(_CREATE_TABLE)
            await db.commit()
        finally:
            await db.close()

    async def upsert(self, job: CronJobDefinition) -> None:
        """Insert or replace a job definition, preserving ``last_run_at``."""
        now = isoformat(utcnow())
        db = await self._connect()
        try:
            await db.execute(
                """
                INSERT INTO cron_jobs
                    (job_id, schedule, workflow_id, input_data, enabled, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(job_id) DO UPDATE SET
                    schedule    = excluded.schedule,
                    workflow_id = excluded.workflow_id,
                    input_data  = excluded.input_data,
                    enabled     = excluded.enabled,
                    updated_at  = excluded.updated_at
                """,
                (
                    job.id,
                    job.schedule,
                    job.workflow_id,
                    json.dumps(job.input_data),
                    int(job.enabled),
                    now,
                    now,
                ),
            )
            await db.commit()
            logger.debug("Upserted cron job: %s (%s)", job.id, job.schedule)
        finally:
            await db.close()

    async def get(self, job_id: str) -> CronJobRecord | None:
        """Fetch a job by ID, or None if not found."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM cron_jobs WHERE job_id = ?", (job_id,)
            )
            row = await cursor.fetchone()
            return CronJobRecord.from_row(row) if row else None
        finally:
            await db.close()

    async def list_enabled(self) -> list[CronJobRecord]:
        """Return all enabled jobs (order unspecified)."""
        db = await self._connect()
        try:
            cursor = await db.execute(f"SELECT {_COLUMNS} FROM cron_jobs WHERE enabled = 1")
            rows = await cursor.fetchall()
            return [CronJobRecord.from_row(row) for row in rows]
        finally:
            await db.close()

    async def record_run(self, job_id: str, timestamp: datetime) -> None:
        """Set ``last_run_at`` for a job.

        Older timestamps never overwrite newer ones.
        """
        ts = isoformat(timestamp)
        db = await self._connect()
        try:
            await db.execute(
                """
                UPDATE cron_jobs
                SET last_run_at = ?, updated_at = ?
                WHERE job_id = ? AND (last_run_at IS NULL OR last_run_at <= ?)
                """,
                (ts, isoformat(utcnow()), job_id, ts),
            )
            await db.commit()
        finally:
            await db.close()
