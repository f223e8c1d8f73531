"""Tests for email-classification-workflow — prompt preparation and parsing."""

import json

import pytest

from notebot.llm.classifier import ClassificationParseError
from notebot.workflows.email_classification import (
    DEFAULT_LABEL_CONFIG,
    EMAIL_CLASSIFICATION_WORKFLOW_ID,
    parse_email_classification,
)
from notebot.workflows.engine import WorkflowEngine
from notebot.workflows.schemas import LabelConfig

EMAIL = {
    "id": "m-1",
    "subject": "Quarterly review",
    "body": "Please send the slides before Friday.",
    "from": {"email": "ana@example.com", "name": "Ana"},
    "to": [{"email": "me@example.com"}],
    "date": "2025-01-15T10:30:00Z",
    "hasAttachments": False,
}


def _reply(**overrides) -> str:
    data = {
        "emailId": "something-else",
        "labels": [
            {"name": "action-required", "confidence": 0.9, "reason": "asks for slides"},
            {"name": "meeting", "confidence": 0.6},
            {"name": "fyi", "confidence": 0.2},
        ],
        "primaryLabel": "action-required",
        "priority": "high",
        "suggestedAction": "Send the slides",
        "summary": "Ana needs the slides before Friday.",
    }
    data.update(overrides)
    return "Here you go:\n" + json.dumps(data)


async def _classify(engine: WorkflowEngine, payload: dict):
    return await engine.get_workflow(EMAIL_CLASSIFICATION_WORKFLOW_ID).create_run().start(payload)


async def test_classifies_email(engine: WorkflowEngine, classifier_reply: dict) -> None:
    classifier_reply["text"] = _reply()

    result = await _classify(engine, {"email": EMAIL})

    assert result.status == "success"
    assert result.result["email_id"] == "m-1"
    assert result.result["primary_label"] == "action-required"
    assert result.result["priority"] == "high"
    # The 0.2 label is under the default threshold.
    assert [label["name"] for label in result.result["labels"]] == ["action-required", "meeting"]


async def test_prompt_lists_labels_and_email(engine: WorkflowEngine) -> None:
    prompts: list[str] = []

    async def _complete(prompt: str) -> str:
        prompts.append(prompt)
        return _reply()

    engine.deps.complete_text = _complete
    await _classify(engine, {"email": EMAIL})

    (prompt,) = prompts
    assert '- "action-required": Emails requiring action from you' in prompt
    assert '- "internal": From colleagues' in prompt
    assert "From: Ana <ana@example.com>" in prompt
    assert "Subject: Quarterly review" in prompt
    assert "Has Attachments: false" in prompt
    assert '"emailId": "m-1"' in prompt


async def test_custom_label_config(engine: WorkflowEngine, classifier_reply: dict) -> None:
    classifier_reply["text"] = _reply(
        labels=[{"name": "billing", "confidence": 0.7}, {"name": "vendors", "confidence": 0.95}],
        primaryLabel="vendors",
    )
    config = {
        "labels": [
            {"name": "billing", "description": "Invoices"},
            {"name": "vendors", "description": "Suppliers"},
        ],
        "allowMultipleLabels": False,
    }

    result = await _classify(engine, {"email": EMAIL, "labelConfig": config})

    assert result.status == "success"
    assert [label["name"] for label in result.result["labels"]] == ["vendors"]


async def test_unparseable_reply_fails_run(engine: WorkflowEngine, classifier_reply: dict) -> None:
    classifier_reply["text"] = "This looks like a meeting request."

    result = await _classify(engine, {"email": EMAIL})

    assert result.status == "failed"
    assert "ClassificationParseError" in result.error


async def test_invalid_email_is_rejected(engine: WorkflowEngine) -> None:
    result = await _classify(engine, {"email": {"id": "m-2"}})
    assert result.status == "failed"


class TestParseEmailClassification:
    def test_email_id_comes_from_the_email(self):
        result = parse_email_classification(_reply(), "m-9", DEFAULT_LABEL_CONFIG)
        assert result.email_id == "m-9"

    def test_invalid_priority(self):
        with pytest.raises(ClassificationParseError):
            parse_email_classification(_reply(priority="soon"), "m-1", DEFAULT_LABEL_CONFIG)

    def test_confidence_out_of_range(self):
        with pytest.raises(ClassificationParseError):
            parse_email_classification(
                _reply(labels=[{"name": "fyi", "confidence": 1.5}]), "m-1", DEFAULT_LABEL_CONFIG
            )

    def test_missing_primary_label(self):
        reply = json.dumps({"labels": [], "priority": "low"})
        with pytest.raises(ClassificationParseError):
            parse_email_classification(reply, "m-1", DEFAULT_LABEL_CONFIG)

    def test_threshold_from_config(self):
        config = LabelConfig(labels=[], min_confidence_threshold=0.1)
        result = parse_email_classification(_reply(), "m-1", config)
        assert len(result.labels) == 3
