"""Notebot entry point — cron scheduler plus webhook server in one event loop."""

import asyncio
import logging
import signal

from notebot.config import settings

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)
logger = logging.getLogger(__name__)


async def run() -> None:
    """Start every service and block until SIGINT or SIGTERM."""
    from notebot.integrations.telegram import TelegramClient
    from notebot.llm.client import complete_prompt
    from notebot.scheduler import CronScheduler, CronStore
    from notebot.scheduler.jobs import DEFAULT_JOBS
    from notebot.webhooks.server import WebhookServer
    from notebot.workflows import WorkflowDeps, build_engine
    from notebot.workflows.snapshots import SnapshotStore

    telegram = TelegramClient()
    deps = WorkflowDeps(
        notes_root=settings.resolved_notes_root(),
        telegram=telegram,
        complete_text=complete_prompt,
    )
    engine = build_engine(SnapshotStore(settings.database_path), deps)

    scheduler = CronScheduler(
        CronStore(settings.database_path),
        engine,
        job_timeout=settings.cron_job_timeout_seconds,
    )
    for job in DEFAULT_JOBS:
        scheduler.register(job)

    server = WebhookServer(engine)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    logger.info(
        "Starting notebot (notes_root=%s, model=%s)", deps.notes_root, settings.claude_model
    )
    await scheduler.start()
    await server.start()
    try:
        await stop_event.wait()
    finally:
        logger.info("Shutting down...")
        await server.stop()
        await scheduler.stop()
        await scheduler.wait_idle()
        await engine.wait_background()
        await telegram.close()


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
