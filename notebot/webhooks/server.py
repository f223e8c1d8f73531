"""Async HTTP server for provider webhooks and the manual process-notes trigger.

Runs in the same asyncio event loop as the cron scheduler, using aiohttp's
AppRunner/TCPSite for non-blocking start/stop.

Routes:
    GET  /health               liveness check
    POST /webhooks/telegram    Telegram updates (secret token header)
    POST /webhooks/github      GitHub events (HMAC-SHA256 signature)
    POST /webhooks/slack       Slack events (v0 signature, 5 minute window)
    POST /api/process-notes    run process-notes-workflow (X-Webhook-Secret)
    POST /api/classify-email   run email-classification-workflow (X-Webhook-Secret)

A route whose secret is not configured answers 500; a bad secret or
signature answers 401 and nothing is executed.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from aiohttp import web

from notebot.bot.telegram import MalformedUpdateError, dispatch_update, parse_update
from notebot.config import settings
from notebot.webhooks.providers import handle_github_event, handle_slack_event
from notebot.webhooks.signatures import (
    verify_github_signature,
    verify_shared_secret,
    verify_slack_signature,
)
from notebot.workflows.email_classification import EMAIL_CLASSIFICATION_WORKFLOW_ID
from notebot.workflows.engine import WorkflowEngine
from notebot.workflows.process_notes import PROCESS_NOTES_WORKFLOW_ID

logger = logging.getLogger(__name__)

ENGINE_KEY = web.AppKey("engine", WorkflowEngine)


def _not_configured(source: str, variable: str) -> web.Response:
    logger.error("%s webhook rejected: %s not configured", source, variable)
    return web.json_response({"error": "webhook not configured"}, status=500)


def _unauthorized(source: str) -> web.Response:
    logger.warning("%s webhook rejected: invalid signature", source)
    return web.json_response({"error": "unauthorized"}, status=401)


def _parse_json(body: bytes) -> dict[str, Any] | None:
    try:
        payload = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    return payload if isinstance(payload, dict) else None


async def _health(request: web.Request) -> web.Response:
    """GET /health — basic liveness check."""
    return web.json_response({"status": "ok"})


async def _handle_telegram(request: web.Request) -> web.Response:
    secret = settings.telegram_webhook_secret
    if not secret:
        return _not_configured("Telegram", "TELEGRAM_WEBHOOK_SECRET")

    token = request.headers.get("X-Telegram-Bot-Api-Secret-Token", "")
    if not verify_shared_secret(token, secret):
        return _unauthorized("Telegram")

    payload = _parse_json(await request.read())
    if payload is None:
        return web.json_response({"error": "invalid JSON"}, status=400)

    engine = request.app[ENGINE_KEY]
    try:
        update = parse_update(payload, engine.deps.telegram.bot)
    except MalformedUpdateError as exc:
        logger.warning("Telegram webhook: malformed update (%s)", exc)
        return web.json_response({"error": "invalid update"}, status=400)

    try:
        await dispatch_update(update, engine, engine.deps.telegram)
    except Exception:
        logger.exception("Telegram webhook processing failed (update=%s)", update.update_id)
        return web.json_response({"error": "processing failed"}, status=500)
    return web.json_response({"ok": True})


async def _handle_github(request: web.Request) -> web.Response:
    secret = settings.github_webhook_secret
    if not secret:
        return _not_configured("GitHub", "GITHUB_WEBHOOK_SECRET")

    body = await request.read()
    signature = request.headers.get("X-Hub-Signature-256", "")
    if not verify_github_signature(body, signature, secret):
        return _unauthorized("GitHub")

    event = _parse_json(body)
    if event is None:
        return web.json_response({"error": "invalid JSON"}, status=400)
    event_type = request.headers.get("X-GitHub-Event", "unknown")
    try:
        await handle_github_event(event_type, event)
    except Exception:
        logger.exception("GitHub webhook processing failed (event=%s)", event_type)
        return web.json_response({"error": "processing failed"}, status=500)
    return web.json_response({"ok": True})


async def _handle_slack(request: web.Request) -> web.Response:
    secret = settings.slack_signing_secret
    if not secret:
        return _not_configured("Slack", "SLACK_SIGNING_SECRET")

    body = await request.read()
    timestamp = request.headers.get("X-Slack-Request-Timestamp", "")
    signature = request.headers.get("X-Slack-Signature", "")
    if not verify_slack_signature(body, timestamp, signature, secret):
        return _unauthorized("Slack")

    event = _parse_json(body)
    if event is None:
        return web.json_response({"error": "invalid JSON"}, status=400)
    if event.get("type") == "url_verification" and event.get("challenge"):
        return web.json_response({"challenge": event["challenge"]})
    try:
        await handle_slack_event(event)
    except Exception:
        logger.exception("Slack webhook processing failed")
        return web.json_response({"error": "processing failed"}, status=500)
    return web.json_response({"ok": True})


async def _handle_process_notes(request: web.Request) -> web.Response:
    secret = settings.webhook_secret
    if not secret:
        return _not_configured("process-notes", "WEBHOOK_SECRET")
    if not verify_shared_secret(request.headers.get("X-Webhook-Secret", ""), secret):
        return _unauthorized("process-notes")

    engine = request.app[ENGINE_KEY]
    run = engine.get_workflow(PROCESS_NOTES_WORKFLOW_ID).create_run()
    result = await run.start({})
    if result.status != "success":
        logger.error("process-notes run failed: %s", result.error)
        return web.json_response({"error": "processing failed"}, status=500)
    return web.json_response(result.result)


async def _handle_classify_email(request: web.Request) -> web.Response:
    secret = settings.webhook_secret
    if not secret:
        return _not_configured("classify-email", "WEBHOOK_SECRET")
    if not verify_shared_secret(request.headers.get("X-Webhook-Secret", ""), secret):
        return _unauthorized("classify-email")

    payload = _parse_json(await request.read())
    if payload is None:
        return web.json_response({"error": "invalid JSON"}, status=400)

    engine = request.app[ENGINE_KEY]
    run = engine.get_workflow(EMAIL_CLASSIFICATION_WORKFLOW_ID).create_run()
    result = await run.start(payload)
    if result.status != "success":
        logger.error("classify-email run failed: %s", result.error)
        return web.json_response({"error": result.error}, status=500)
    return web.json_response(result.result)


def _create_web_app(engine: WorkflowEngine) -> web.Application:
    """Build the aiohttp Application with routes."""
    app = web.Application()
    app[ENGINE_KEY] = engine
    app.router.add_get("/health", _health)
    app.router.add_post("/webhooks/telegram", _handle_telegram)
    app.router.add_post("/webhooks/github", _handle_github)
    app.router.add_post("/webhooks/slack", _handle_slack)
    app.router.add_post("/api/process-notes", _handle_process_notes)
    app.router.add_post("/api/classify-email", _handle_classify_email)
    return app


class WebhookServer:
    """Manages the aiohttp server lifecycle."""

    def __init__(self, engine: WorkflowEngine, port: int | None = None) -> None:
        self.port = port or settings.webhook_port
        self._engine = engine
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        app = _create_web_app(self._engine)
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, "0.0.0.0", self.port)
        await site.start()
        logger.info("Webhook server listening on port %d", self.port)

    async def stop(self) -> None:
        """Shut down the server gracefully."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Webhook server stopped")
