"""process-notes-workflow — start a note-router run for every unprocessed note."""

from __future__ import annotations

import logging

from notebot.vault.notes import list_md_files, read_md_file
from notebot.workflows.engine import Step, StepContext, Workflow
from notebot.workflows.note_router import NOTE_ROUTER_WORKFLOW_ID
from notebot.workflows.schemas import ProcessNotesInput, ProcessNotesOutput

logger = logging.getLogger(__name__)

PROCESS_NOTES_WORKFLOW_ID = "process-notes-workflow"
INTAKE_DIR = "telegram"


async def scan_and_process(ctx: StepContext) -> ProcessNotesOutput:
    router = ctx.engine.get_workflow(NOTE_ROUTER_WORKFLOW_ID)
    processed = 0
    skipped = 0

    for path in list_md_files(ctx.deps.notes_root / INTAKE_DIR):
        note = read_md_file(path)
        if note.metadata.get("status") != "unprocessed":
            skipped += 1
            continue

        label = f"route:{path}"
        if ctx.engine.is_active(label):
            # Claimed by an earlier scan whose run has not marked it yet.
            skipped += 1
            continue

        run = router.create_run()
        ctx.engine.spawn(run.start({"file_path": str(path)}), label=label)
        processed += 1

    if processed:
        logger.info("Started routing for %d note(s), skipped %d", processed, skipped)
    return ProcessNotesOutput(processed=processed, skipped=skipped)


def build_process_notes_workflow() -> Workflow:
    return Workflow(
        PROCESS_NOTES_WORKFLOW_ID,
        [
            Step(
                id="scan-and-process",
                description="Scan the intake folder and start a router run per unprocessed note",
                input_schema=ProcessNotesInput,
                output_schema=ProcessNotesOutput,
                execute=scan_and_process,
            ),
        ],
    )
