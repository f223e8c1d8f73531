"""email-classification-workflow — label one e-mail with the classifier model.

Two steps: prepare-email renders the prompt from the label config, then
classify-email asks the model and validates its JSON reply. Fetching mail
and applying labels belong to the mailbox integration that calls this.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from notebot.llm.classifier import ClassificationParseError, load_json_object
from notebot.workflows.engine import Step, StepContext, Workflow
from notebot.workflows.schemas import (
    EmailClassification,
    EmailClassificationInput,
    EmailLabel,
    LabelConfig,
    PrepareEmailOutput,
)

logger = logging.getLogger(__name__)

EMAIL_CLASSIFICATION_WORKFLOW_ID = "email-classification-workflow"

DEFAULT_LABEL_CONFIG = LabelConfig(
    labels=[
        EmailLabel(
            name="action-required",
            description="Emails requiring action from you",
            keywords=["please", "need", "request", "action"],
        ),
        EmailLabel(
            name="fyi",
            description="For your information only",
            keywords=["fyi", "info", "update", "announcement"],
        ),
        EmailLabel(
            name="meeting",
            description="Calendar and scheduling",
            keywords=["meeting", "calendar", "invite", "schedule"],
        ),
        EmailLabel(
            name="urgent",
            description="Time-sensitive",
            keywords=["urgent", "asap", "critical", "deadline"],
        ),
        EmailLabel(name="external", description="From outside organization"),
        EmailLabel(name="internal", description="From colleagues"),
    ],
    allow_multiple_labels=True,
    min_confidence_threshold=0.5,
)

EMAIL_PROMPT = """\
Classify this email:

LABELS (assign one or more with confidence scores):
{labels}

EMAIL:
From: {sender_name} <{sender_email}>
Subject: {subject}
Date: {date}
Has Attachments: {has_attachments}

Body:
{body}

Return valid JSON matching this exact structure:
{{
  "emailId": "{email_id}",
  "labels": [{{"name": "label-name", "confidence": 0.9, "reason": "brief reason"}}],
  "primaryLabel": "most-relevant-label",
  "priority": "high|medium|low",
  "suggestedAction": "what to do next",
  "summary": "one-sentence summary"
}}"""


async def prepare_email(ctx: StepContext) -> PrepareEmailOutput:
    data: EmailClassificationInput = ctx.input_data
    email = data.email
    label_config = data.label_config or DEFAULT_LABEL_CONFIG

    labels = "\n".join(f'- "{label.name}": {label.description}' for label in label_config.labels)
    prompt = EMAIL_PROMPT.format(
        labels=labels,
        sender_name=email.sender.name or "",
        sender_email=email.sender.email,
        subject=email.subject,
        date=email.date,
        has_attachments=str(email.has_attachments).lower(),
        body=email.body,
        email_id=email.id,
    )
    return PrepareEmailOutput(
        email=email, label_config=label_config, classification_prompt=prompt
    )


def parse_email_classification(
    text: str, email_id: str, label_config: LabelConfig
) -> EmailClassification:
    """Validate the model's reply for one e-mail.

    The reply's ``emailId`` is replaced with *email_id*. Labels under the
    config's confidence threshold are dropped, and only the most confident
    label is kept when multiple labels are not allowed.

    Raises:
        ClassificationParseError: No JSON object, invalid JSON, or a
            payload that does not match :class:`EmailClassification`.
    """
    data = load_json_object(text)
    data["emailId"] = email_id
    try:
        result = EmailClassification.model_validate(data)
    except ValidationError as exc:
        raise ClassificationParseError(f"Email classification failed validation: {exc}") from exc

    labels = [
        label
        for label in result.labels
        if label.confidence >= label_config.min_confidence_threshold
    ]
    if not label_config.allow_multiple_labels and labels:
        labels = [max(labels, key=lambda label: label.confidence)]
    return result.model_copy(update={"labels": labels})


async def classify_email(ctx: StepContext) -> EmailClassification:
    data: PrepareEmailOutput = ctx.input_data
    reply = await ctx.deps.complete_text(data.classification_prompt)
    result = parse_email_classification(reply, data.email.id, data.label_config)
    logger.info(
        "Classified email %s as %s (priority=%s)",
        data.email.id,
        result.primary_label,
        result.priority,
    )
    return result


def build_email_classification_workflow() -> Workflow:
    return Workflow(
        EMAIL_CLASSIFICATION_WORKFLOW_ID,
        [
            Step(
                id="prepare-email",
                description="Prepares email data for classification",
                input_schema=EmailClassificationInput,
                output_schema=PrepareEmailOutput,
                execute=prepare_email,
            ),
            Step(
                id="classify-email",
                description="Uses the model to classify the email into labels",
                input_schema=PrepareEmailOutput,
                output_schema=EmailClassification,
                execute=classify_email,
            ),
        ],
    )
