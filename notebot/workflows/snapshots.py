"""SnapshotStore — aiosqlite persistence for suspended workflow runs."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import aiosqlite

from notebot.config import settings
from notebot.scheduler.models import isoformat, utcnow

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS workflow_snapshots (
    run_id          TEXT PRIMARY KEY,
    workflow_id     TEXT NOT NULL,
    step_id         TEXT NOT NULL,
    step_index      INTEGER NOT NULL,
    step_input      TEXT NOT NULL,
    suspend_payload TEXT NOT NULL,
    created_at      TEXT NOT NULL
)
"""


@dataclass
class RunSnapshot:
    """State of a run parked at a suspended step."""

    run_id: str
    workflow_id: str
    step_id: str
    step_index: int
    step_input: dict[str, Any]
    suspend_payload: dict[str, Any]
    created_at: str = ""

    @classmethod
    def from_row(cls, row: tuple) -> RunSnapshot:
        return cls(
            run_id=row[0],
            workflow_id=row[1],
            step_id=row[2],
            step_index=row[3],
            step_input=json.loads(row[4]),
            suspend_payload=json.loads(row[5]),
            created_at=row[6],
        )


class SnapshotStore:
    """Stores at most one snapshot per run ID."""

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path or settings.database_path
        self._initialised = False

    async def _connect(self) -> aiosqlite.Connection:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(str(self._db_path))
        if not self._initialised:
            await db.execute(_CREATE_TABLE)
            await db.commit()
            self._initialised = True
        return db

    async def save(self, snapshot: RunSnapshot) -> None:
        db = await self._connect()
        try:
            await db.execute(
                """
                INSERT OR REPLACE INTO workflow_snapshots
                    (run_id, workflow_id, step_id, step_index, step_input,
                     suspend_payload, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    snapshot.run_id,
                    snapshot.workflow_id,
                    snapshot.step_id,
                    snapshot.step_index,
                    json.dumps(snapshot.step_input),
                    json.dumps(snapshot.suspend_payload),
                    snapshot.created_at or isoformat(utcnow()),
                ),
            )
            await db.commit()
        finally:
            await db.close()

    async def get(self, run_id: str) -> RunSnapshot | None:
        db = await self._connect()
        try:
            cursor = await db.execute(
                "SELECT * FROM workflow_snapshots WHERE run_id = ?", (run_id,)
            )
            row = await cursor.fetchone()
            return RunSnapshot.from_row(row) if row else None
        finally:
            await db.close()

    async def take(self, run_id: str, step_id: str) -> RunSnapshot | None:
        """Remove and return the snapshot if it is parked at *step_id*.

        Only one caller can take a given snapshot.
        """
        db = await self._connect()
        try:
            cursor = await db.execute(
                "SELECT * FROM workflow_snapshots WHERE run_id = ? AND step_id = ?",
                (run_id, step_id),
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            cursor = await db.execute(
                "DELETE FROM workflow_snapshots WHERE run_id = ? AND step_id = ?",
                (run_id, step_id),
            )
            await db.commit()
            if cursor.rowcount == 0:
                return None
            return RunSnapshot.from_row(row)
        finally:
            await db.close()
