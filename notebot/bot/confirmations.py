"""Inline-keyboard confirmation for note routing.

The await-confirmation step of note-router-workflow sends a two-button
prompt and suspends. Button presses arrive as callback queries whose data
has the form::

    route:confirm:<run_id>               accept the suggested folder
    route:change:<run_id>                show the folder menu (run stays suspended)
    route:select:<folder_id>:<run_id>    route to a specific folder
    route:select:#<n>:<run_id>           route to the n-th folder of the index

The positional form is used when a folder ID would push the callback data
past Telegram's 64-byte limit. ``confirm`` and ``select`` resume the
suspended run. A run can only be resumed once; later presses on the same
prompt are ignored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from notebot.integrations.telegram import CALLBACK_DATA_MAX_BYTES, keyboard_button
from notebot.vault.index import load_vault_index
from notebot.workflows.engine import RunNotSuspendedError
from notebot.workflows.note_router import (
    AWAIT_CONFIRMATION_STEP,
    CALLBACK_NAMESPACE,
    NOTE_ROUTER_WORKFLOW_ID,
)

if TYPE_CHECKING:
    from notebot.integrations.telegram import TelegramClient
    from notebot.workflows.engine import RunResult, WorkflowEngine

logger = logging.getLogger(__name__)

RouteAction = Literal["confirm", "change", "select"]


@dataclass(frozen=True)
class RouteCallback:
    action: RouteAction
    run_id: str
    folder_id: str | None = None


def parse_route_callback(data: str) -> RouteCallback | None:
    """Parse routing callback data. Returns None for anything else."""
    parts = data.split(":")
    if len(parts) < 3 or parts[0] != CALLBACK_NAMESPACE:
        return None
    action = parts[1]
    if action in ("confirm", "change") and len(parts) == 3 and parts[2]:
        return RouteCallback(action=action, run_id=parts[2])
    if action == "select" and len(parts) == 4 and parts[2] and parts[3]:
        return RouteCallback(action="select", folder_id=parts[2], run_id=parts[3])
    return None


def _select_data(folder_id: str, position: int, run_id: str) -> str:
    data = f"{CALLBACK_NAMESPACE}:select:{folder_id}:{run_id}"
    if len(data.encode()) <= CALLBACK_DATA_MAX_BYTES:
        return data
    return f"{CALLBACK_NAMESPACE}:select:#{position}:{run_id}"


def folder_menu(engine: WorkflowEngine, run_id: str) -> list[list[dict[str, str]]]:
    """One button per vault folder, read fresh from the index."""
    _, folders = load_vault_index(engine.deps.notes_root)
    return [
        [keyboard_button(f.name, _select_data(f.id, position, run_id))]
        for position, f in enumerate(folders)
    ]


def resolve_folder_ref(engine: WorkflowEngine, ref: str) -> str | None:
    """Turn ``#<n>`` into the n-th folder ID of the current index."""
    if not ref.startswith("#"):
        return ref
    _, folders = load_vault_index(engine.deps.notes_root)
    try:
        return folders[int(ref[1:])].id
    except (ValueError, IndexError):
        return None


async def _resume(
    engine: WorkflowEngine, run_id: str, folder_id: str | None = None
) -> RunResult | None:
    resume_data: dict[str, object] = {"confirmed": True}
    if folder_id:
        resume_data["selected_folder_id"] = folder_id
    run = engine.get_workflow(NOTE_ROUTER_WORKFLOW_ID).create_run(run_id)
    try:
        result = await run.resume(resume_data, step=AWAIT_CONFIRMATION_STEP)
    except RunNotSuspendedError:
        logger.warning("Ignoring callback for run %s: not awaiting confirmation", run_id)
        return None
    if result.status == "failed":
        logger.error("Routing run %s failed after confirmation: %s", run_id, result.error)
    return result


async def handle_route_callback(
    callback: RouteCallback,
    *,
    chat_id: int | None,
    engine: WorkflowEngine,
    telegram: TelegramClient,
) -> RunResult | None:
    """Apply a parsed routing callback. Returns the resumed run's result, if any."""
    if callback.action == "confirm":
        return await _resume(engine, callback.run_id)

    if callback.action == "select":
        folder_id = resolve_folder_ref(engine, callback.folder_id or "")
        if folder_id is None:
            logger.warning(
                "Ignoring folder selection %r for run %s: no such folder",
                callback.folder_id,
                callback.run_id,
            )
            return None
        return await _resume(engine, callback.run_id, folder_id)

    # change: show the folder menu; the run stays suspended.
    if chat_id is None:
        logger.warning("Change-folder callback without a chat (run %s)", callback.run_id)
        return None
    await telegram.send_message_with_keyboard(
        chat_id, "Choose a folder:", folder_menu(engine, callback.run_id)
    )
    return None
