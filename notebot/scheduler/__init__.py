"""Cron scheduling — job models, persistence, tick source, and due-checking."""

from notebot.scheduler.engine import CronScheduler, is_due, next_occurrence
from notebot.scheduler.models import CronJobDefinition, CronJobRecord
from notebot.scheduler.store import CronStore
from notebot.scheduler.ticker import TICK_INTERVAL_SECONDS, TickSource

__all__ = [
    "CronJobDefinition",
    "CronJobRecord",
    "CronStore",
    "CronScheduler",
    "TickSource",
    "TICK_INTERVAL_SECONDS",
    "is_due",
    "next_occurrence",
]
