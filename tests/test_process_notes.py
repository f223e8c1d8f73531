"""Tests for process-notes-workflow — intake scan and router fan-out."""

from pathlib import Path
from unittest.mock import AsyncMock

from notebot.vault.notes import read_md_file
from notebot.workflows.engine import WorkflowEngine
from notebot.workflows.process_notes import PROCESS_NOTES_WORKFLOW_ID


async def _process(engine: WorkflowEngine):
    return await engine.get_workflow(PROCESS_NOTES_WORKFLOW_ID).create_run().start({})


async def test_starts_router_for_unprocessed_notes(
    engine: WorkflowEngine, make_note, telegram: AsyncMock
) -> None:
    first = make_note("a.md")
    second = make_note("b.md")
    make_note("c.md", status="processed")

    result = await _process(engine)
    await engine.wait_background()

    assert result.status == "success"
    assert result.result == {"processed": 2, "skipped": 1}
    assert telegram.send_message_with_keyboard.await_count == 2
    assert read_md_file(first).metadata["status"] == "processing"
    assert read_md_file(second).metadata["status"] == "processing"


async def test_processing_notes_are_not_picked_up_again(
    engine: WorkflowEngine, make_note
) -> None:
    make_note("a.md")

    await _process(engine)
    await engine.wait_background()
    result = await _process(engine)

    assert result.result == {"processed": 0, "skipped": 1}


async def test_empty_intake(engine: WorkflowEngine) -> None:
    result = await _process(engine)
    assert result.result == {"processed": 0, "skipped": 0}


async def test_missing_intake_dir(engine: WorkflowEngine, notes_root: Path) -> None:
    (notes_root / "telegram").rmdir()

    result = await _process(engine)
    assert result.result == {"processed": 0, "skipped": 0}


async def test_failed_router_run_does_not_fail_scan(
    engine: WorkflowEngine, make_note, classifier_reply: dict
) -> None:
    classifier_reply["text"] = "no json"
    make_note("a.md")

    result = await _process(engine)
    await engine.wait_background()

    assert result.status == "success"
    assert result.result["processed"] == 1


async def test_back_to_back_scans_prompt_once(
    engine: WorkflowEngine, make_note, telegram: AsyncMock
) -> None:
    note = make_note("a.md")

    # The second scan runs before the first scan's router task has started.
    first = await _process(engine)
    second = await _process(engine)
    await engine.wait_background()

    assert first.result == {"processed": 1, "skipped": 0}
    assert second.result == {"processed": 0, "skipped": 1}
    telegram.send_message_with_keyboard.assert_awaited_once()
    assert read_md_file(note).metadata["status"] == "processing"


async def test_note_is_retried_after_its_run_finishes(
    engine: WorkflowEngine, make_note
) -> None:
    make_note("a.md", chat_id=None)

    await _process(engine)
    await engine.wait_background()
    result = await _process(engine)

    assert result.result == {"processed": 1, "skipped": 0}
