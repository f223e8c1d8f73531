"""note-router-workflow — classify a note, ask the owner to confirm, then move it.

Steps:
1. ``classify-note``: mark the note as processing and ask Claude for a target
   folder, resolved against the vault index (unknown folders go to the inbox).
2. ``await-confirmation``: send an inline keyboard and suspend. On resume,
   an explicit ``selected_folder_id`` overrides the suggestion.
3. ``route-note``: move the file into ``<vaultPath>/+`` and mark it processed.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path

from notebot.integrations.telegram import keyboard_button
from notebot.llm.classifier import build_classification_prompt, parse_classification
from notebot.vault.index import find_folder, load_vault_index, resolve_folder
from notebot.vault.notes import move_md_file, read_md_file, update_frontmatter
from notebot.workflows.engine import Step, StepContext, Suspend, Workflow
from notebot.workflows.schemas import (
    ClassifyNoteOutput,
    ConfirmationContext,
    ConfirmationResume,
    NoteRouterInput,
    RouteNoteOutput,
)

logger = logging.getLogger(__name__)

NOTE_ROUTER_WORKFLOW_ID = "note-router-workflow"
AWAIT_CONFIRMATION_STEP = "await-confirmation"

# Callback data namespace for the routing keyboard: route:<action>:<args...>
CALLBACK_NAMESPACE = "route"

_PREVIEW_CHARS = 100


def _preview(body: str) -> str:
    if len(body) > _PREVIEW_CHARS:
        return body[:_PREVIEW_CHARS] + "..."
    return body


async def classify_note(ctx: StepContext) -> ClassifyNoteOutput:
    file_path = Path(ctx.input_data.file_path)
    note = read_md_file(file_path)

    chat_id = note.metadata.get("chat_id")
    if not chat_id:
        raise ValueError(f"Note {file_path} has no chat_id in its front matter")

    update_frontmatter(file_path, {"status": "processing"})

    vault_index, folders = load_vault_index(ctx.deps.notes_root)
    reply = await ctx.deps.complete_text(build_classification_prompt(vault_index, note.body))
    classification = parse_classification(reply)

    folder = resolve_folder(folders, classification.target_folder)
    if classification.target_folder not in (folder.id, folder.vault_path):
        logger.info(
            "Unknown folder %r suggested for %s, using %s",
            classification.target_folder,
            file_path.name,
            folder.id,
        )

    return ClassifyNoteOutput(
        file_path=str(file_path),
        chat_id=int(chat_id),
        note_body=note.body,
        suggested_folder_id=folder.id,
        suggested_folder_name=folder.name,
        suggested_folder_path=folder.vault_path,
    )


async def await_confirmation(ctx: StepContext) -> ClassifyNoteOutput | Suspend:
    data: ClassifyNoteOutput = ctx.input_data
    resume: ConfirmationResume | None = ctx.resume_data

    if resume is not None:
        selected = resume.selected_folder_id
        if selected and selected != data.suggested_folder_id:
            _, folders = load_vault_index(ctx.deps.notes_root)
            picked = find_folder(folders, selected)
            if picked is not None:
                return data.model_copy(
                    update={
                        "suggested_folder_id": picked.id,
                        "suggested_folder_name": picked.name,
                        "suggested_folder_path": picked.vault_path,
                    }
                )
            logger.warning(
                "Selected folder %r not in vault index, keeping %s",
                selected,
                data.suggested_folder_id,
            )
        return data

    keyboard = [
        [
            keyboard_button(
                f"Yes, route to {data.suggested_folder_name}",
                f"{CALLBACK_NAMESPACE}:confirm:{ctx.run_id}",
            )
        ],
        [keyboard_button("Change folder...", f"{CALLBACK_NAMESPACE}:change:{ctx.run_id}")],
    ]
    message = await ctx.deps.telegram.send_message_with_keyboard(
        data.chat_id,
        f'Route this note to {data.suggested_folder_name}?\n\n"{_preview(data.note_body)}"',
        keyboard,
    )
    return ctx.suspend(
        ConfirmationContext(
            run_id=ctx.run_id,
            chat_id=data.chat_id,
            message_id=message.message_id,
            suggested_folder_id=data.suggested_folder_id,
            suggested_folder_name=data.suggested_folder_name,
        )
    )


async def route_note(ctx: StepContext) -> RouteNoteOutput:
    data: ClassifyNoteOutput = ctx.input_data
    dest_dir = ctx.deps.notes_root / data.suggested_folder_path / "+"
    routed_at = datetime.now(UTC).isoformat()

    new_path = move_md_file(Path(data.file_path), dest_dir)
    update_frontmatter(
        new_path,
        {"status": "processed", "routed_to": data.suggested_folder_name, "routed_at": routed_at},
    )
    logger.info("Routed %s to %s", new_path.name, data.suggested_folder_name)

    try:
        await ctx.deps.telegram.send_message(
            data.chat_id, f"Routed to {data.suggested_folder_name}."
        )
    except Exception:
        # Routing already succeeded; the notification is best-effort.
        logger.warning("Failed to notify chat %s about routed note", data.chat_id, exc_info=True)

    return RouteNoteOutput(
        success=True,
        file_path=str(new_path),
        routed_to=data.suggested_folder_name,
        routed_at=routed_at,
    )


def build_note_router_workflow() -> Workflow:
    return Workflow(
        NOTE_ROUTER_WORKFLOW_ID,
        [
            Step(
                id="classify-note",
                description="Classify an unprocessed note against the vault index",
                input_schema=NoteRouterInput,
                output_schema=ClassifyNoteOutput,
                execute=classify_note,
            ),
            Step(
                id=AWAIT_CONFIRMATION_STEP,
                description="Ask the owner to confirm the target folder and suspend",
                input_schema=ClassifyNoteOutput,
                output_schema=ClassifyNoteOutput,
                execute=await_confirmation,
                suspend_schema=ConfirmationContext,
                resume_schema=ConfirmationResume,
            ),
            Step(
                id="route-note",
                description="Move the note into the confirmed folder's inbox",
                input_schema=ClassifyNoteOutput,
                output_schema=RouteNoteOutput,
                execute=route_note,
            ),
        ],
    )
