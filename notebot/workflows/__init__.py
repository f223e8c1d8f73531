"""Workflows — the in-process runner and the note pipelines built on it."""

from notebot.workflows.email_classification import build_email_classification_workflow
from notebot.workflows.engine import (
    RunNotSuspendedError,
    RunResult,
    Workflow,
    WorkflowDeps,
    WorkflowEngine,
    WorkflowNotFoundError,
)
from notebot.workflows.note_router import build_note_router_workflow
from notebot.workflows.process_notes import build_process_notes_workflow
from notebot.workflows.snapshots import SnapshotStore
from notebot.workflows.telegram_note import build_telegram_note_workflow

__all__ = [
    "RunNotSuspendedError",
    "RunResult",
    "SnapshotStore",
    "Workflow",
    "WorkflowDeps",
    "WorkflowEngine",
    "WorkflowNotFoundError",
    "build_engine",
]


def build_engine(snapshots: SnapshotStore, deps: WorkflowDeps) -> WorkflowEngine:
    """Create an engine with every workflow registered."""
    engine = WorkflowEngine(snapshots, deps)
    engine.add_workflow(build_telegram_note_workflow())
    engine.add_workflow(build_process_notes_workflow())
    engine.add_workflow(build_note_router_workflow())
    engine.add_workflow(build_email_classification_workflow())
    return engine
