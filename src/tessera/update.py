from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, SerializeAsAny, field_validator

from tessera.content import Content, TextContent, concat_text
from tessera.message import FinishReason, Role


class ResponseUpdate(BaseModel):
    """One streamed fragment of a response.

    Updates layer on each other to form a :class:`~tessera.response.Response`.
    ``role`` may be omitted to keep the role of the message in progress,
    and ``message_id`` groups consecutive updates into messages.  The
    remaining scalar fields refine either the message being built or the
    response as a whole; see :mod:`tessera.streaming`.
    """

    role: Role | None = None
    contents: list[SerializeAsAny[Content]] = Field(default_factory=list)
    author_name: str | None = None
    response_id: str | None = None
    message_id: str | None = None
    conversation_id: str | None = None
    created_at: datetime | None = None
    finish_reason: FinishReason | None = None
    model_id: str | None = None
    raw_representation: Any = Field(default=None, exclude=True)
    additional_properties: dict[str, Any] | None = None

    model_config = {"validate_assignment": True}

    @field_validator("contents", mode="before")
    @classmethod
    def _coerce_contents(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [TextContent(value)]
        return value

    @field_validator("author_name", mode="before")
    @classmethod
    def _blank_author_as_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def text(self) -> str:
        return concat_text(self.contents)

    def __str__(self) -> str:
        return self.text
