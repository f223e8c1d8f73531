"""Cron job registry. Jobs listed here are registered at startup."""

from notebot.scheduler.models import CronJobDefinition
from notebot.workflows.process_notes import PROCESS_NOTES_WORKFLOW_ID

DEFAULT_JOBS: list[CronJobDefinition] = [
    CronJobDefinition(
        id="process-notes",
        schedule="*/5 * * * *",
        workflow_id=PROCESS_NOTES_WORKFLOW_ID,
        input_data={},
    ),
]
