from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from tessera.content import UsageContent
from tessera.message import FinishReason, Message
from tessera.update import ResponseUpdate
from tessera.usage import UsageDetails


class Response(BaseModel):
    """The complete result of a model call: one or more messages plus
    response-wide metadata and aggregate usage."""

    messages: list[Message] = Field(default_factory=list)
    response_id: str | None = None
    conversation_id: str | None = None
    model_id: str | None = None
    created_at: datetime | None = None
    finish_reason: FinishReason | None = None
    usage: UsageDetails | None = None
    raw_representation: Any = Field(default=None, exclude=True)
    additional_properties: dict[str, Any] | None = None

    @field_validator("messages", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        if value is None:
            return []
        if isinstance(value, Message):
            return [value]
        return value

    @property
    def text(self) -> str:
        """Each message's text, newline-separated, skipping empty ones."""
        return "\n".join(m.text for m in self.messages if m.text)

    def to_updates(self) -> list[ResponseUpdate]:
        """Decompose into one update per message.

        Response-level fields are repeated on every update.  If the
        response has usage or additional properties, a trailing update
        carries them, the usage as a :class:`UsageContent`.  The
        conversion is lossy: folding the result back yields a single
        raw representation and a single value per scalar field.
        """
        updates = [
            ResponseUpdate(
                role=message.role,
                contents=message.contents,
                author_name=message.author_name,
                message_id=message.message_id,
                raw_representation=message.raw_representation,
                additional_properties=message.additional_properties,
                response_id=self.response_id,
                conversation_id=self.conversation_id,
                finish_reason=self.finish_reason,
                model_id=self.model_id,
                created_at=message.created_at or self.created_at,
            )
            for message in self.messages
        ]

        if self.additional_properties is not None or self.usage is not None:
            extra = ResponseUpdate(
                additional_properties=self.additional_properties,
            )
            if self.usage is not None:
                extra.contents.append(UsageContent(self.usage))
            updates.append(extra)

        return updates

    def __str__(self) -> str:
        return self.text
