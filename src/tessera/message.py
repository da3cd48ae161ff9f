from __future__ import annotations

from datetime import datetime
from typing import Any, ClassVar

from pydantic import (
    BaseModel,
    Field,
    SerializeAsAny,
    field_validator,
    model_serializer,
    model_validator,
)

from tessera.content import Content, TextContent, concat_text


class CaseInsensitiveValue(BaseModel):
    """An open set of string identifiers compared without regard to case.

    Serializes as the bare string and validates from one, so it can be
    used as a field type anywhere a plain string would be accepted.
    """

    value: str

    model_config = {"frozen": True}

    def __init__(self, value: str, **data):
        super().__init__(value=value, **data)

    @model_validator(mode="before")
    @classmethod
    def _from_str(cls, data):
        if isinstance(data, str):
            return {"value": data}
        return data

    @field_validator("value")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("value must not be empty or whitespace")
        return value

    @model_serializer
    def _as_str(self) -> str:
        return self.value

    def __eq__(self, other) -> bool:
        if isinstance(other, str):
            return self.value.lower() == other.lower()
        if type(other) is type(self):
            return self.value.lower() == other.value.lower()
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.value.lower())

    def __str__(self) -> str:
        return self.value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.value!r})"


class Role(CaseInsensitiveValue):
    """Who authored a message.  Custom roles are allowed."""

    SYSTEM: ClassVar[Role]
    ASSISTANT: ClassVar[Role]
    USER: ClassVar[Role]
    TOOL: ClassVar[Role]


Role.SYSTEM = Role("system")
Role.ASSISTANT = Role("assistant")
Role.USER = Role("user")
Role.TOOL = Role("tool")


class FinishReason(CaseInsensitiveValue):
    """Why a model stopped generating.  Unset behaves as ``stop``."""

    value: str = "stop"

    STOP: ClassVar[FinishReason]
    LENGTH: ClassVar[FinishReason]
    TOOL_CALLS: ClassVar[FinishReason]
    CONTENT_FILTER: ClassVar[FinishReason]

    def __init__(self, value: str | None = None, **data):
        super().__init__("stop" if value is None else value, **data)


FinishReason.STOP = FinishReason("stop")
FinishReason.LENGTH = FinishReason("length")
FinishReason.TOOL_CALLS = FinishReason("tool_calls")
FinishReason.CONTENT_FILTER = FinishReason("content_filter")


class Message(BaseModel):
    """A single message in a conversation.

    ``contents`` is always a list, in rendering order.  A plain string
    is accepted and becomes a single :class:`TextContent`.
    """

    role: Role | None = Role.USER
    contents: list[SerializeAsAny[Content]] = Field(default_factory=list)
    author_name: str | None = None
    created_at: datetime | None = None
    message_id: str | None = None
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
        """Text of every :class:`TextContent`, concatenated."""
        return concat_text(self.contents)

    def clone(self) -> Message:
        """Shallow copy.  Contents and properties are shared."""
        return self.model_copy()

    def __str__(self) -> str:
        return self.text
