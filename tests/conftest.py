"""Shared test fixtures."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from notebot.vault.notes import write_md_file
from notebot.workflows import WorkflowDeps, WorkflowEngine, build_engine
from notebot.workflows.snapshots import SnapshotStore

VAULT_INDEX = """\
# Vault index

## Grocery
Shopping lists and pantry notes.
**Path**: lists/grocery

## To-Do
Tasks.

## Inbox (default)
Anything that does not fit elsewhere.
**Path**: inbox
"""


@pytest.fixture
def notes_root(tmp_path: Path) -> Path:
    """A vault with an index and an empty intake folder."""
    root = tmp_path / "notes"
    (root / "telegram").mkdir(parents=True)
    (root / "vault-index.md").write_text(VAULT_INDEX, encoding="utf-8")
    return root


@pytest.fixture
def telegram() -> AsyncMock:
    """Stand-in for TelegramClient; every call succeeds."""
    client = AsyncMock()
    client.bot = None
    client.send_message.return_value = MagicMock(message_id=900)
    client.send_message_with_keyboard.return_value = MagicMock(message_id=901)
    return client


@pytest.fixture
def classifier_reply() -> dict[str, str]:
    """Mutable reply for the fake LLM; tests overwrite ``["text"]``."""
    return {"text": '{"targetFolder": "lists/grocery", "content": "milk"}'}


@pytest.fixture
def engine(
    tmp_path: Path, notes_root: Path, telegram: AsyncMock, classifier_reply: dict[str, str]
) -> WorkflowEngine:
    async def _complete(prompt: str) -> str:
        return classifier_reply["text"]

    deps = WorkflowDeps(notes_root=notes_root, telegram=telegram, complete_text=_complete)
    return build_engine(SnapshotStore(tmp_path / "test.db"), deps)


@pytest.fixture
def make_note(notes_root: Path):
    """Factory writing intake notes with unprocessed defaults."""

    def _make(
        name: str = "2025-01-01T10-00-00-telegram.md",
        body: str = "Buy milk and eggs",
        **metadata,
    ) -> Path:
        meta = {"source": "telegram", "chat_id": 42, "message_id": 7, "status": "unprocessed"}
        meta.update(metadata)
        path = notes_root / "telegram" / name
        write_md_file(path, meta, body)
        return path

    return _make
