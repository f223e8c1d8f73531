"""Telegram webhook updates — parsing and dispatch.

Messages start telegram-note-workflow; callback queries from the routing
keyboard are handed to :mod:`notebot.bot.confirmations`.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from telegram import Update

from notebot.bot.confirmations import handle_route_callback, parse_route_callback
from notebot.workflows.schemas import TelegramNoteInput
from notebot.workflows.telegram_note import TELEGRAM_NOTE_WORKFLOW_ID

if TYPE_CHECKING:
    from telegram import Bot

    from notebot.integrations.telegram import TelegramClient
    from notebot.workflows.engine import WorkflowEngine

logger = logging.getLogger(__name__)


class MalformedUpdateError(ValueError):
    """A webhook payload could not be parsed as a Telegram Update."""


def parse_update(payload: dict[str, Any], bot: Bot | None = None) -> Update:
    try:
        update = Update.de_json(payload, bot)
    except (KeyError, TypeError, ValueError) as exc:
        raise MalformedUpdateError(str(exc)) from exc
    if update is None:
        raise MalformedUpdateError("empty update")
    return update


def _seconds(duration: int | timedelta | None) -> int | None:
    if isinstance(duration, timedelta):
        return int(duration.total_seconds())
    return duration


def extract_note_input(update: Update) -> TelegramNoteInput | None:
    """Build workflow input from a text, voice, or audio message."""
    msg = update.message
    if msg is None:
        return None

    sender = "Unknown"
    if msg.from_user is not None:
        parts = [msg.from_user.first_name, msg.from_user.last_name]
        sender = " ".join(p for p in parts if p) or "Unknown"

    common = {
        "chat_id": msg.chat.id,
        "message_id": msg.message_id,
        "sender_name": sender,
        "date": int(msg.date.timestamp()),
    }
    for kind, media in (("voice", msg.voice), ("audio", msg.audio)):
        if media is not None:
            return TelegramNoteInput(
                **common,
                message_type=kind,
                file_id=media.file_id,
                mime_type=media.mime_type,
                duration=_seconds(media.duration),
            )
    if msg.text:
        return TelegramNoteInput(**common, message_type="text", text=msg.text)
    return None


async def handle_telegram_message(update: Update, engine: WorkflowEngine) -> None:
    note_input = extract_note_input(update)
    if note_input is None:
        logger.info("Ignoring unsupported Telegram update %s", update.update_id)
        return

    logger.info(
        "Processing %s message from %s", note_input.message_type, note_input.sender_name
    )
    run = engine.get_workflow(TELEGRAM_NOTE_WORKFLOW_ID).create_run()
    result = await run.start(note_input)
    if result.status == "failed":
        logger.error("Telegram note workflow failed: %s", result.error)


async def handle_callback_query(
    update: Update, engine: WorkflowEngine, telegram: TelegramClient
) -> None:
    query = update.callback_query
    if query is None or not query.data:
        return

    await telegram.answer_callback_query(query.id)

    callback = parse_route_callback(query.data)
    if callback is None:
        logger.warning("Unrecognised callback data: %r", query.data)
        return
    chat_id = query.message.chat.id if query.message else None
    await handle_route_callback(callback, chat_id=chat_id, engine=engine, telegram=telegram)


async def dispatch_update(
    update: Update, engine: WorkflowEngine, telegram: TelegramClient
) -> None:
    if update.callback_query is not None:
        await handle_callback_query(update, engine, telegram)
    else:
        await handle_telegram_message(update, engine)
