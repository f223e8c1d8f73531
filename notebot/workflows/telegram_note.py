"""telegram-note-workflow — save an incoming Telegram message into the vault.

Text messages become markdown notes in ``<notes_root>/telegram``. Voice and
audio messages are downloaded next to a companion markdown note. Every note
is written with ``status: unprocessed`` so process-notes-workflow picks it up.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from notebot.vault.notes import write_md_file
from notebot.workflows.engine import Step, StepContext, Workflow
from notebot.workflows.process_notes import INTAKE_DIR
from notebot.workflows.schemas import SaveContentOutput, SendReplyOutput, TelegramNoteInput

logger = logging.getLogger(__name__)

TELEGRAM_NOTE_WORKFLOW_ID = "telegram-note-workflow"

_AUDIO_EXTENSIONS = {
    "audio/ogg": "ogg",
    "audio/mpeg": "mp3",
    "audio/mp4": "m4a",
    "audio/wav": "wav",
}


def audio_extension(mime_type: str | None) -> str:
    return _AUDIO_EXTENSIONS.get(mime_type or "", "ogg")


async def save_content(ctx: StepContext) -> SaveContentOutput:
    data: TelegramNoteInput = ctx.input_data
    timestamp = datetime.fromtimestamp(data.date, UTC).isoformat()
    date_slug = timestamp[:19].replace(":", "-")
    intake_dir = ctx.deps.notes_root / INTAKE_DIR
    stem = f"{date_slug}-telegram"
    if (intake_dir / f"{stem}.md").exists():
        # Two messages within the same second.
        stem = f"{stem}-{data.message_id}"
    md_path = intake_dir / f"{stem}.md"

    metadata: dict[str, Any] = {
        "created": timestamp,
        "source": "telegram",
        "sender": data.sender_name,
        "message_type": data.message_type,
        "chat_id": data.chat_id,
        "message_id": data.message_id,
        "status": "unprocessed",
    }

    if data.message_type == "text":
        write_md_file(md_path, metadata, data.text or "")
        saved = md_path
    else:
        if not data.file_id:
            raise ValueError("file_id required for voice/audio messages")
        audio_name = f"{stem}.{audio_extension(data.mime_type)}"
        audio_path = intake_dir / audio_name

        file_info = await ctx.deps.telegram.get_file(data.file_id)
        if not file_info.file_path:
            raise ValueError("Telegram getFile did not return file_path")
        content = await ctx.deps.telegram.download_file(file_info)
        audio_path.parent.mkdir(parents=True, exist_ok=True)
        audio_path.write_bytes(content)

        if data.duration is not None:
            metadata["duration"] = data.duration
        if data.mime_type:
            metadata["mime_type"] = data.mime_type
        metadata["audio_file"] = audio_name
        write_md_file(md_path, metadata, f"Audio note saved: `{audio_name}`")
        saved = audio_path

    logger.info("Saved %s note from %s: %s", data.message_type, data.sender_name, saved.name)
    return SaveContentOutput(
        chat_id=data.chat_id,
        message_id=data.message_id,
        sender_name=data.sender_name,
        message_type=data.message_type,
        saved_file_path=str(saved),
        timestamp=timestamp,
    )


async def send_reply(ctx: StepContext) -> SendReplyOutput:
    data: SaveContentOutput = ctx.input_data
    text = "Text note saved." if data.message_type == "text" else "Audio note saved."
    reply_id: int | None = None
    try:
        reply = await ctx.deps.telegram.send_message(
            data.chat_id, text, reply_to_message_id=data.message_id
        )
        reply_id = reply.message_id
    except Exception:
        # The note is already on disk.
        logger.warning("Failed to send reply to chat %s", data.chat_id, exc_info=True)
    return SendReplyOutput(
        success=True,
        saved_file_path=data.saved_file_path,
        message_type=data.message_type,
        reply_message_id=reply_id,
        timestamp=data.timestamp,
    )


def build_telegram_note_workflow() -> Workflow:
    return Workflow(
        TELEGRAM_NOTE_WORKFLOW_ID,
        [
            Step(
                id="save-content",
                description="Save a text or audio message to the vault",
                input_schema=TelegramNoteInput,
                output_schema=SaveContentOutput,
                execute=save_content,
            ),
            Step(
                id="send-reply",
                description="Acknowledge the saved note in the chat",
                input_schema=SaveContentOutput,
                output_schema=SendReplyOutput,
                execute=send_reply,
            ),
        ],
    )
