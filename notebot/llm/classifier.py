"""Note classification — prompt building and parsing of the model's reply."""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

CLASSIFY_PROMPT = """\
Given the following vault organization:

{vault_index}

Classify this note and return JSON with "targetFolder" (the Path value from \
vault-index) and "content" (a clean version of the note):

{body}"""


class ClassificationParseError(ValueError):
    """The model's reply did not contain a usable classification object."""


class NoteClassification(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    target_folder: str = Field(default="inbox", alias="targetFolder")
    content: str | None = None

    @field_validator("target_folder", mode="before")
    @classmethod
    def _blank_is_inbox(cls, value: object) -> object:
        if value is None or (isinstance(value, str) and not value.strip()):
            return "inbox"
        return value.strip() if isinstance(value, str) else value


def build_classification_prompt(vault_index: str, body: str) -> str:
    return CLASSIFY_PROMPT.format(vault_index=vault_index, body=body)


def extract_json_block(text: str) -> str | None:
    """Return the first balanced ``{...}`` block in *text*, or None.

    Braces inside JSON string literals are ignored.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
            elif ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start : i + 1]
        # Unbalanced from this brace; try the next one.
        start = text.find("{", start + 1)
    return None


def load_json_object(text: str) -> dict[str, Any]:
    """Extract the first JSON object from a model reply.

    Raises:
        ClassificationParseError: No JSON object, or invalid JSON.
    """
    block = extract_json_block(text)
    if block is None:
        raise ClassificationParseError(f"No JSON object in classification: {text[:200]!r}")
    try:
        data = json.loads(block)
    except json.JSONDecodeError as exc:
        raise ClassificationParseError(f"Invalid JSON in classification: {exc}") from exc
    if not isinstance(data, dict):
        raise ClassificationParseError("Classification is not a JSON object")
    return data


def parse_classification(text: str) -> NoteClassification:
    """Extract and validate the classification object from a model reply.

    Raises:
        ClassificationParseError: No JSON object, invalid JSON, or a
            payload that does not match :class:`NoteClassification`.
    """
    data = load_json_object(text)
    try:
        return NoteClassification.model_validate(data)
    except ValidationError as exc:
        raise ClassificationParseError(f"Classification failed validation: {exc}") from exc
