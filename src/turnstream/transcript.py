"""Conversion from client chat messages to model-facing content."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError

from turnstream.message import Content, ContentRole, TextPart, UIMessage, UIRole


class MessageValidationError(ValueError):
    """Raised before streaming when the client sent no usable messages."""

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.details = details


def validate_messages(
    messages: Sequence[UIMessage | dict[str, Any]] | None,
) -> list[UIMessage]:
    """Return *messages* as validated ``UIMessage`` objects.

    Raises:
        MessageValidationError: If *messages* is missing, not a list,
            empty, or holds an entry that is not a valid message.
    """
    if not messages or not isinstance(messages, (list, tuple)):
        raise MessageValidationError("Messages are required")
    try:
        return [
            m if isinstance(m, UIMessage) else UIMessage.model_validate(m)
            for m in messages
        ]
    except ValidationError as e:
        raise MessageValidationError("Invalid messages", details=str(e)) from e


def to_contents(messages: Sequence[UIMessage]) -> list[Content]:
    """Map client messages onto model content.

    ``user`` stays ``user``; every other role is spoken by the model.
    Only text parts survive.
    """
    return [
        Content(
            role=ContentRole.USER if m.role == UIRole.USER else ContentRole.MODEL,
            parts=[
                TextPart(text=p.text or "")
                for p in m.parts
                if p.type == "text"
            ],
        )
        for m in messages
    ]
