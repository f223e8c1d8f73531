"""Handlers for verified GitHub and Slack webhook events.

Events are logged; no workflow consumes them yet.
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)


async def handle_github_event(event_type: str, event: dict[str, Any]) -> None:
    repo = (event.get("repository") or {}).get("full_name")
    sender = (event.get("sender") or {}).get("login")
    if event_type == "push":
        logger.info("GitHub push to %s by %s", repo, sender)
    elif event_type in ("pull_request", "issues"):
        logger.info("GitHub %s %s on %s by %s", event_type, event.get("action"), repo, sender)
    else:
        logger.info("GitHub event %s on %s (unhandled)", event_type, repo)


async def handle_slack_event(event: dict[str, Any]) -> None:
    if event.get("type") != "event_callback":
        logger.debug("Slack envelope %s ignored", event.get("type"))
        return
    inner = event.get("event") or {}
    inner_type = inner.get("type")
    if inner_type == "message":
        logger.info("Slack message in %s", inner.get("channel"))
    elif inner_type == "app_mention":
        logger.info("Slack app mention by %s", inner.get("user"))
    elif inner_type == "reaction_added":
        logger.info("Slack reaction added: %s", inner.get("reaction"))
    else:
        logger.info("Slack event %s (unhandled)", inner_type)
