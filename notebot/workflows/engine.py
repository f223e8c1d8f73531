"""In-process workflow runner with suspend/resume.

Workflows are ordered lists of typed steps. Each step validates its input
and output against pydantic models. A step may suspend the run by returning
``ctx.suspend(payload)``; the run is parked in the :class:`SnapshotStore`
until :meth:`Run.resume` is called with the same run ID and step ID.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, ValidationError

from notebot.workflows.snapshots import RunSnapshot

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Coroutine
    from pathlib import Path

    from notebot.integrations.telegram import TelegramClient
    from notebot.workflows.snapshots import SnapshotStore

logger = logging.getLogger(__name__)


class WorkflowNotFoundError(LookupError):
    """No workflow is registered under the requested ID."""


class RunNotSuspendedError(RuntimeError):
    """A resume targeted a run that is not parked at the given step."""


class StepValidationError(ValueError):
    """Step input, output, or resume data failed schema validation."""


def new_run_id() -> str:
    """Return a 12-character hex ID, short enough for Telegram callback data."""
    return uuid.uuid4().hex[:12]


@dataclass
class WorkflowDeps:
    """Collaborators shared by every step."""

    notes_root: Path
    telegram: TelegramClient
    complete_text: Callable[[str], Awaitable[str]]


@dataclass
class Suspend:
    payload: BaseModel


@dataclass
class RunResult:
    """Outcome of ``Run.start`` or ``Run.resume``."""

    status: Literal["success", "suspended", "failed"]
    result: dict[str, Any] | None = None
    error: str | None = None
    suspended_step: str | None = None
    suspend_payload: dict[str, Any] | None = None


@dataclass
class StepContext:
    run_id: str
    input_data: Any
    resume_data: Any
    deps: WorkflowDeps
    engine: WorkflowEngine

    def suspend(self, payload: BaseModel) -> Suspend:
        return Suspend(payload)


@dataclass
class Step:
    """A single typed workflow step."""

    id: str
    description: str
    input_schema: type[BaseModel]
    output_schema: type[BaseModel]
    execute: Callable[[StepContext], Awaitable[BaseModel | Suspend]]
    suspend_schema: type[BaseModel] | None = None
    resume_schema: type[BaseModel] | None = None


def _validate(schema: type[BaseModel], data: Any, what: str) -> BaseModel:
    if isinstance(data, schema):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump()
    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        raise StepValidationError(f"Invalid {what}: {exc}") from exc


class Workflow:
    """A named sequence of steps bound to an engine."""

    def __init__(self, workflow_id: str, steps: list[Step]) -> None:
        if not steps:
            raise ValueError(f"Workflow {workflow_id} has no steps")
        self.id = workflow_id
        self.steps = steps
        self._engine: WorkflowEngine | None = None

    def bind(self, engine: WorkflowEngine) -> None:
        self._engine = engine

    def create_run(self, run_id: str | None = None) -> Run:
        if self._engine is None:
            raise RuntimeError(f"Workflow {self.id} is not registered with an engine")
        return Run(self, self._engine, run_id or new_run_id())


class Run:
    """One execution of a workflow, identified by ``run_id``."""

    def __init__(self, workflow: Workflow, engine: WorkflowEngine, run_id: str) -> None:
        self.workflow = workflow
        self.run_id = run_id
        self._engine = engine

    async def start(self, input_data: dict[str, Any] | BaseModel) -> RunResult:
        first = self.workflow.steps[0]
        try:
            data = _validate(first.input_schema, input_data, f"input for {self.workflow.id}")
        except StepValidationError as exc:
            logger.warning("Run %s rejected: %s", self.run_id, exc)
            return RunResult(status="failed", error=str(exc))
        return await self._execute_from(0, data, None)

    async def resume(self, resume_data: dict[str, Any], step: str) -> RunResult:
        """Continue a suspended run from *step* with *resume_data*.

        Raises:
            RunNotSuspendedError: The run is not parked at *step* (unknown,
                finished, or already resumed).
        """
        snapshot = await self._engine.snapshots.take(self.run_id, step)
        if snapshot is None:
            raise RunNotSuspendedError(f"Run {self.run_id} is not suspended at step {step}")
        if snapshot.workflow_id != self.workflow.id:
            raise RunNotSuspendedError(
                f"Run {self.run_id} belongs to {snapshot.workflow_id}, not {self.workflow.id}"
            )
        index = snapshot.step_index
        target = self.workflow.steps[index]
        try:
            data = _validate(target.input_schema, snapshot.step_input, f"input for {step}")
            resumed = (
                _validate(target.resume_schema, resume_data, f"resume data for {step}")
                if target.resume_schema
                else resume_data
            )
        except StepValidationError as exc:
            logger.warning("Resume of run %s rejected: %s", self.run_id, exc)
            return RunResult(status="failed", error=str(exc))
        logger.info("Resuming run %s of %s at %s", self.run_id, self.workflow.id, step)
        return await self._execute_from(index, data, resumed)

    async def _execute_from(
        self, index: int, data: BaseModel, resume_data: Any
    ) -> RunResult:
        steps = self.workflow.steps
        for i in range(index, len(steps)):
            step = steps[i]
            ctx = StepContext(
                run_id=self.run_id,
                input_data=data,
                resume_data=resume_data if i == index else None,
                deps=self._engine.deps,
                engine=self._engine,
            )
            try:
                outcome = await step.execute(ctx)
                if isinstance(outcome, Suspend):
                    return await self._park(i, data, outcome)
                data = _validate(step.output_schema, outcome, f"output of {step.id}")
            except Exception as exc:
                logger.exception(
                    "Step %s failed (workflow=%s run=%s)", step.id, self.workflow.id, self.run_id
                )
                return RunResult(status="failed", error=f"{type(exc).__name__}: {exc}")
        return RunResult(status="success", result=data.model_dump())

    async def _park(self, index: int, data: BaseModel, outcome: Suspend) -> RunResult:
        step = self.workflow.steps[index]
        payload = outcome.payload
        if step.suspend_schema is not None:
            payload = _validate(step.suspend_schema, payload, f"suspend payload of {step.id}")
        dumped = payload.model_dump()
        await self._engine.snapshots.save(
            RunSnapshot(
                run_id=self.run_id,
                workflow_id=self.workflow.id,
                step_id=step.id,
                step_index=index,
                step_input=data.model_dump(),
                suspend_payload=dumped,
            )
        )
        logger.info("Run %s of %s suspended at %s", self.run_id, self.workflow.id, step.id)
        return RunResult(status="suspended", suspended_step=step.id, suspend_payload=dumped)


class WorkflowEngine:
    """Registry of workflows plus the shared snapshot store and deps."""

    def __init__(self, snapshots: SnapshotStore, deps: WorkflowDeps) -> None:
        self.snapshots = snapshots
        self.deps = deps
        self._workflows: dict[str, Workflow] = {}
        self._background: set[asyncio.Task[Any]] = set()
        self._active_labels: set[str] = set()

    def add_workflow(self, workflow: Workflow) -> Workflow:
        workflow.bind(self)
        self._workflows[workflow.id] = workflow
        logger.debug("Registered workflow: %s (%d steps)", workflow.id, len(workflow.steps))
        return workflow

    def get_workflow(self, workflow_id: str) -> Workflow:
        try:
            return self._workflows[workflow_id]
        except KeyError:
            raise WorkflowNotFoundError(f"Unknown workflow: {workflow_id}") from None

    @property
    def workflow_ids(self) -> list[str]:
        return list(self._workflows)

    def spawn(self, coro: Coroutine[Any, Any, RunResult], label: str) -> asyncio.Task[RunResult]:
        """Run *coro* in the background, logging failed or raising runs."""
        task = asyncio.create_task(coro, name=label)
        self._background.add(task)
        self._active_labels.add(label)
        task.add_done_callback(lambda t: self._on_background_done(t, label))
        return task

    def _on_background_done(self, task: asyncio.Task[RunResult], label: str) -> None:
        self._background.discard(task)
        self._active_labels.discard(label)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background run %s raised", label, exc_info=exc)
        elif task.result().status == "failed":
            logger.error("Background run %s failed: %s", label, task.result().error)

    def is_active(self, label: str) -> bool:
        """Whether a run spawned under *label* is still in flight."""
        return label in self._active_labels

    async def wait_background(self) -> None:
        """Wait for every spawned run (used at shutdown and in tests)."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
