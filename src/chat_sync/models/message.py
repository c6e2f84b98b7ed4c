"""Pydantic models for segmented messages and publish batches.

- :class:`Role` -- attributed speaker of a message.
- :class:`ExtractedMessage` -- one role-tagged message cut out of a transcript.
- :class:`SyncMetadata` -- bookkeeping sent alongside every batch.
- :class:`SyncBatch` -- what a :class:`~chat_sync.publisher.Publisher` receives.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from chat_sync.models.transcript import utcnow


class Role(str, Enum):
    """Attributed speaker of a message."""

    USER = "user"
    ASSISTANT = "assistant"
    UNKNOWN = "unknown"


def _new_message_id() -> str:
    return f"msg-{uuid.uuid4().hex[:12]}"


class ExtractedMessage(BaseModel):
    """A single role-tagged message produced by the segmenter.

    Attributes:
        id: Opaque unique identifier.
        role: Attributed speaker.
        content: Message text with the speaker prefix removed (never empty).
        raw_line: The transcript line that opened this message.
        timestamp: When the message was extracted (not when it was written;
            the transcript carries no reliable timestamps).
    """

    id: str = Field(default_factory=_new_message_id)
    role: Role
    content: str
    raw_line: str = ""
    timestamp: datetime = Field(default_factory=utcnow)

    @field_validator("content")
    @classmethod
    def _content_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("message content must not be empty")
        return value


SyncMethod = Literal["periodic_sync", "stabilization", "incremental"]


class SyncMetadata(BaseModel):
    """Metadata pushed with every batch.

    Attributes:
        message_count: Number of messages in the batch.
        content_length: Length of the transcript snapshot the batch was
            derived from.
        timestamp: When the batch was built.
        method: Which engine path produced the batch.
        session_id: Owning session, when the batch belongs to one.
    """

    message_count: int
    content_length: int
    timestamp: datetime = Field(default_factory=utcnow)
    method: SyncMethod = "periodic_sync"
    session_id: str | None = None


class SyncBatch(BaseModel):
    """An ordered batch of messages plus metadata, handed to a publisher."""

    messages: list[ExtractedMessage] = Field(default_factory=list)
    metadata: SyncMetadata

    @classmethod
    def build(
        cls,
        messages: list[ExtractedMessage],
        content_length: int,
        method: SyncMethod,
        session_id: str | None = None,
    ) -> SyncBatch:
        """Build a batch whose ``message_count`` matches *messages*."""
        return cls(
            messages=list(messages),
            metadata=SyncMetadata(
                message_count=len(messages),
                content_length=content_length,
                method=method,
                session_id=session_id,
            ),
        )

    def to_payload(self) -> dict[str, Any]:
        """Return a JSON-safe dict (enums as values, datetimes as ISO strings)."""
        return self.model_dump(mode="json")
