"""Tests for the webhook HTTP server."""

import hashlib
import hmac
import json
import time
from pathlib import Path
from unittest.mock import AsyncMock, patch

from aiohttp.test_utils import TestClient, TestServer

from notebot.vault.notes import list_md_files
from notebot.webhooks.server import _create_web_app
from notebot.workflows.engine import WorkflowEngine
from notebot.workflows.note_router import NOTE_ROUTER_WORKFLOW_ID

TEST_SECRET = "test-secret-123"


# -- Helpers -----------------------------------------------------------------


class _FakeSettings:
    def __init__(
        self,
        webhook_secret: str = TEST_SECRET,
        telegram_webhook_secret: str = TEST_SECRET,
        github_webhook_secret: str = TEST_SECRET,
        slack_signing_secret: str = TEST_SECRET,
        webhook_port: int = 8443,
    ) -> None:
        self.webhook_secret = webhook_secret
        self.telegram_webhook_secret = telegram_webhook_secret
        self.github_webhook_secret = github_webhook_secret
        self.slack_signing_secret = slack_signing_secret
        self.webhook_port = webhook_port


async def _make_client(app):
    """Create a TestClient for the webhook app."""
    server = TestServer(app)
    client = TestClient(server)
    await client.start_server()
    return client


def _github_headers(body: bytes, secret: str = TEST_SECRET, event: str = "push") -> dict:
    digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return {"X-Hub-Signature-256": f"sha256={digest}", "X-GitHub-Event": event}


def _slack_headers(body: bytes, timestamp: int | None = None) -> dict:
    ts = str(int(time.time()) if timestamp is None else timestamp)
    base = b"v0:" + ts.encode() + b":" + body
    digest = hmac.new(TEST_SECRET.encode(), base, hashlib.sha256).hexdigest()
    return {"X-Slack-Request-Timestamp": ts, "X-Slack-Signature": f"v0={digest}"}


def _telegram_headers(secret: str = TEST_SECRET) -> dict:
    return {"X-Telegram-Bot-Api-Secret-Token": secret}


# -- Health check -----------------------------------------------------------


async def test_health_check(engine: WorkflowEngine) -> None:
    client = await _make_client(_create_web_app(engine))
    try:
        resp = await client.get("/health")
        assert resp.status == 200
        data = await resp.json()
        assert data["status"] == "ok"
    finally:
        await client.close()


# -- GitHub -----------------------------------------------------------------


async def test_github_valid_signature(engine: WorkflowEngine) -> None:
    body = json.dumps({"repository": {"full_name": "me/repo"}}).encode()
    handler = AsyncMock()
    with (
        patch("notebot.webhooks.server.settings", _FakeSettings()),
        patch("notebot.webhooks.server.handle_github_event", handler),
    ):
        client = await _make_client(_create_web_app(engine))
        try:
            resp = await client.post("/webhooks/github", data=body, headers=_github_headers(body))
            assert resp.status == 200
        finally:
            await client.close()

    handler.assert_awaited_once_with("push", {"repository": {"full_name": "me/repo"}})


async def test_github_invalid_signature_starts_nothing(engine: WorkflowEngine) -> None:
    body = b'{"action": "opened"}'
    handler = AsyncMock()
    with (
        patch("notebot.webhooks.server.settings", _FakeSettings()),
        patch("notebot.webhooks.server.handle_github_event", handler),
        patch.object(engine, "get_workflow") as get_workflow,
    ):
        client = await _make_client(_create_web_app(engine))
        try:
            resp = await client.post(
                "/webhooks/github", data=body, headers=_github_headers(body, secret="wrong")
            )
            assert resp.status == 401
        finally:
            await client.close()

    handler.assert_not_awaited()
    get_workflow.assert_not_called()


async def test_github_unconfigured_returns_500(engine: WorkflowEngine) -> None:
    body = b"{}"
    with patch("notebot.webhooks.server.settings", _FakeSettings(github_webhook_secret="")):
        client = await _make_client(_create_web_app(engine))
        try:
            resp = await client.post("/webhooks/github", data=body, headers=_github_headers(body))
            assert resp.status == 500
        finally:
            await client.close()


async def test_github_invalid_json(engine: WorkflowEngine) -> None:
    body = b"not json"
    with patch("notebot.webhooks.server.settings", _FakeSettings()):
        client = await _make_client(_create_web_app(engine))
        try:
            resp = await client.post("/webhooks/github", data=body, headers=_github_headers(body))
            assert resp.status == 400
        finally:
            await client.close()


async def test_github_handler_failure_returns_500(engine: WorkflowEngine) -> None:
    body = b"{}"
    with (
        patch("notebot.webhooks.server.settings", _FakeSettings()),
        patch(
            "notebot.webhooks.server.handle_github_event",
            AsyncMock(side_effect=RuntimeError("boom")),
        ),
    ):
        client = await _make_client(_create_web_app(engine))
        try:
            resp = await client.post("/webhooks/github", data=body, headers=_github_headers(body))
            assert resp.status == 500
        finally:
            await client.close()


# -- Slack ------------------------------------------------------------------


async def test_slack_url_verification(engine: WorkflowEngine) -> None:
    body = json.dumps({"type": "url_verification", "challenge": "xyz"}).encode()
    with patch("notebot.webhooks.server.settings", _FakeSettings()):
        client = await _make_client(_create_web_app(engine))
        try:
            resp = await client.post("/webhooks/slack", data=body, headers=_slack_headers(body))
            assert resp.status == 200
            assert await resp.json() == {"challenge": "xyz"}
        finally:
            await client.close()


async def test_slack_event_dispatched(engine: WorkflowEngine) -> None:
    event = {"type": "event_callback", "event": {"type": "message", "channel": "C1"}}
    body = json.dumps(event).encode()
    handler = AsyncMock()
    with (
        patch("notebot.webhooks.server.settings", _FakeSettings()),
        patch("notebot.webhooks.server.handle_slack_event", handler),
    ):
        client = await _make_client(_create_web_app(engine))
        try:
            resp = await client.post("/webhooks/slack", data=body, headers=_slack_headers(body))
            assert resp.status == 200
        finally:
            await client.close()

    handler.assert_awaited_once_with(event)


async def test_slack_stale_timestamp_rejected(engine: WorkflowEngine) -> None:
    body = b'{"type": "event_callback"}'
    headers = _slack_headers(body, timestamp=int(time.time()) - 301)
    with patch("notebot.webhooks.server.settings", _FakeSettings()):
        client = await _make_client(_create_web_app(engine))
        try:
            resp = await client.post("/webhooks/slack", data=body, headers=headers)
            assert resp.status == 401
        finally:
            await client.close()


async def test_slack_unconfigured_returns_500(engine: WorkflowEngine) -> None:
    body = b"{}"
    with patch("notebot.webhooks.server.settings", _FakeSettings(slack_signing_secret="")):
        client = await _make_client(_create_web_app(engine))
        try:
            resp = await client.post("/webhooks/slack", data=body, headers=_slack_headers(body))
            assert resp.status == 500
        finally:
            await client.close()


# -- Telegram ---------------------------------------------------------------


def _text_update(text: str = "Buy milk") -> dict:
    return {
        "update_id": 1,
        "message": {
            "message_id": 7,
            "from": {"id": 1, "is_bot": False, "first_name": "Sam"},
            "chat": {"id": 42, "type": "private"},
            "date": 1736937000,
            "text": text,
        },
    }


async def test_telegram_rejects_wrong_secret(engine: WorkflowEngine, notes_root: Path) -> None:
    with patch("notebot.webhooks.server.settings", _FakeSettings()):
        client = await _make_client(_create_web_app(engine))
        try:
            resp = await client.post(
                "/webhooks/telegram", json=_text_update(), headers=_telegram_headers("wrong")
            )
            assert resp.status == 401
        finally:
            await client.close()

    assert list_md_files(notes_root / "telegram") == []


async def test_telegram_unconfigured_returns_500(engine: WorkflowEngine) -> None:
    with patch("notebot.webhooks.server.settings", _FakeSettings(telegram_webhook_secret="")):
        client = await _make_client(_create_web_app(engine))
        try:
            resp = await client.post(
                "/webhooks/telegram", json=_text_update(), headers=_telegram_headers()
            )
            assert resp.status == 500
        finally:
            await client.close()


async def test_telegram_text_message_saved(
    engine: WorkflowEngine, notes_root: Path, telegram: AsyncMock
) -> None:
    with patch("notebot.webhooks.server.settings", _FakeSettings()):
        client = await _make_client(_create_web_app(engine))
        try:
            resp = await client.post(
                "/webhooks/telegram", json=_text_update(), headers=_telegram_headers()
            )
            assert resp.status == 200
        finally:
            await client.close()

    saved = list_md_files(notes_root / "telegram")
    assert [p.name for p in saved] == ["2025-01-15T10-30-00-telegram.md"]
    telegram.send_message.assert_awaited_once()


async def test_telegram_malformed_update(engine: WorkflowEngine) -> None:
    with patch("notebot.webhooks.server.settings", _FakeSettings()):
        client = await _make_client(_create_web_app(engine))
        try:
            resp = await client.post(
                "/webhooks/telegram", json={"message": {}}, headers=_telegram_headers()
            )
            assert resp.status == 400
        finally:
            await client.close()


async def test_telegram_confirm_callback_routes_note(
    engine: WorkflowEngine, make_note, notes_root: Path, telegram: AsyncMock
) -> None:
    note = make_note()
    run = engine.get_workflow(NOTE_ROUTER_WORKFLOW_ID).create_run("run-1")
    await run.start({"file_path": str(note)})
    update = {
        "update_id": 2,
        "callback_query": {
            "id": "cb-1",
            "from": {"id": 1, "is_bot": False, "first_name": "Sam"},
            "chat_instance": "ci-1",
            "message": {
                "message_id": 901,
                "date": 1736937000,
                "chat": {"id": 42, "type": "private"},
            },
            "data": "route:confirm:run-1",
        },
    }

    with patch("notebot.webhooks.server.settings", _FakeSettings()):
        client = await _make_client(_create_web_app(engine))
        try:
            resp = await client.post("/webhooks/telegram", json=update, headers=_telegram_headers())
            assert resp.status == 200
        finally:
            await client.close()

    telegram.answer_callback_query.assert_awaited_once_with("cb-1")
    assert (notes_root / "lists" / "grocery" / "+" / note.name).exists()


# -- Manual process-notes trigger -------------------------------------------


async def test_process_notes_requires_secret(engine: WorkflowEngine) -> None:
    with patch("notebot.webhooks.server.settings", _FakeSettings()):
        client = await _make_client(_create_web_app(engine))
        try:
            resp = await client.post("/api/process-notes")
            assert resp.status == 401
        finally:
            await client.close()


async def test_process_notes_runs_workflow(engine: WorkflowEngine, make_note) -> None:
    make_note()
    with patch("notebot.webhooks.server.settings", _FakeSettings()):
        client = await _make_client(_create_web_app(engine))
        try:
            resp = await client.post(
                "/api/process-notes", headers={"X-Webhook-Secret": TEST_SECRET}
            )
            assert resp.status == 200
            assert await resp.json() == {"processed": 1, "skipped": 0}
        finally:
            await client.close()
    await engine.wait_background()


# -- E-mail classification --------------------------------------------------


async def test_classify_email_requires_secret(engine: WorkflowEngine) -> None:
    with patch("notebot.webhooks.server.settings", _FakeSettings()):
        client = await _make_client(_create_web_app(engine))
        try:
            resp = await client.post("/api/classify-email", json={})
            assert resp.status == 401
        finally:
            await client.close()


async def test_classify_email_runs_workflow(
    engine: WorkflowEngine, classifier_reply: dict
) -> None:
    classifier_reply["text"] = json.dumps(
        {
            "labels": [{"name": "fyi", "confidence": 0.8}],
            "primaryLabel": "fyi",
            "priority": "low",
        }
    )
    email = {
        "id": "m-1",
        "subject": "Newsletter",
        "body": "Monthly update.",
        "from": {"email": "news@example.com"},
        "date": "2025-01-15",
    }
    with patch("notebot.webhooks.server.settings", _FakeSettings()):
        client = await _make_client(_create_web_app(engine))
        try:
            resp = await client.post(
                "/api/classify-email",
                json={"email": email},
                headers={"X-Webhook-Secret": TEST_SECRET},
            )
            assert resp.status == 200
            body = await resp.json()
        finally:
            await client.close()

    assert body["email_id"] == "m-1"
    assert body["primary_label"] == "fyi"


async def test_classify_email_failure_returns_500(
    engine: WorkflowEngine, classifier_reply: dict
) -> None:
    classifier_reply["text"] = "no idea"
    with patch("notebot.webhooks.server.settings", _FakeSettings()):
        client = await _make_client(_create_web_app(engine))
        try:
            resp = await client.post(
                "/api/classify-email",
                json={"email": {"id": "m-1"}},
                headers={"X-Webhook-Secret": TEST_SECRET},
            )
            assert resp.status == 500
        finally:
            await client.close()
