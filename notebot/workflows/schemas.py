"""Pydantic schemas for workflow inputs, step outputs, and suspend/resume payloads."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

MessageType = Literal["text", "voice", "audio"]


# -- note-router-workflow -------------------------------------------------------


class NoteRouterInput(BaseModel):
    file_path: str


class ClassifyNoteOutput(BaseModel):
    file_path: str
    chat_id: int
    note_body: str
    suggested_folder_id: str
    suggested_folder_name: str
    suggested_folder_path: str


class ConfirmationContext(BaseModel):
    """Suspend payload of the await-confirmation step."""

    run_id: str
    chat_id: int
    message_id: int
    suggested_folder_id: str
    suggested_folder_name: str


class ConfirmationResume(BaseModel):
    """Resume payload sent back from a keyboard callback."""

    confirmed: bool
    selected_folder_id: str | None = None


class RouteNoteOutput(BaseModel):
    success: bool
    file_path: str
    routed_to: str
    routed_at: str


# -- process-notes-workflow -----------------------------------------------------


class ProcessNotesInput(BaseModel):
    pass


class ProcessNotesOutput(BaseModel):
    processed: int
    skipped: int


# -- telegram-note-workflow -----------------------------------------------------


class TelegramNoteInput(BaseModel):
    chat_id: int
    message_id: int
    sender_name: str
    date: int
    message_type: MessageType
    text: str | None = None
    file_id: str | None = None
    mime_type: str | None = None
    duration: int | None = None


class SaveContentOutput(BaseModel):
    chat_id: int
    message_id: int
    sender_name: str
    message_type: MessageType
    saved_file_path: str
    timestamp: str


class SendReplyOutput(BaseModel):
    success: bool
    saved_file_path: str
    message_type: MessageType
    reply_message_id: int | None = None
    timestamp: str


# -- email-classification-workflow ----------------------------------------------


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class EmailAddress(BaseModel):
    email: str
    name: str | None = None


class NormalizedEmail(_CamelModel):
    """A provider-neutral e-mail, as handed over by a mailbox integration."""

    id: str
    thread_id: str | None = Field(default=None, alias="threadId")
    subject: str
    body: str
    sender: EmailAddress = Field(alias="from")
    to: list[EmailAddress] = []
    date: str
    snippet: str | None = None
    has_attachments: bool = Field(default=False, alias="hasAttachments")
    labels: list[str] | None = None


class EmailLabel(BaseModel):
    name: str
    description: str
    keywords: list[str] = []


class LabelConfig(_CamelModel):
    labels: list[EmailLabel]
    allow_multiple_labels: bool = Field(default=True, alias="allowMultipleLabels")
    min_confidence_threshold: float = Field(default=0.5, alias="minConfidenceThreshold")


class EmailClassificationInput(_CamelModel):
    email: NormalizedEmail
    label_config: LabelConfig | None = Field(default=None, alias="labelConfig")


class PrepareEmailOutput(BaseModel):
    email: NormalizedEmail
    label_config: LabelConfig
    classification_prompt: str


class AssignedLabel(BaseModel):
    name: str
    confidence: float = Field(ge=0, le=1)
    reason: str | None = None


class EmailClassification(_CamelModel):
    email_id: str = Field(alias="emailId")
    labels: list[AssignedLabel]
    primary_label: str = Field(alias="primaryLabel")
    priority: Literal["high", "medium", "low"]
    suggested_action: str | None = Field(default=None, alias="suggestedAction")
    summary: str | None = None
