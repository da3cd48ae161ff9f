"""Content items carried by messages and response updates.

:class:`Content` is the base of every content kind and doubles as the
opaque variant: items of kinds this package does not special-case are
passed through untouched.  ``raw_representation`` holds whatever
provider object an item was built from; it is never copied, inspected
or serialized.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, Field, SerializeAsAny, field_validator

from tessera.usage import UsageDetails


class AnnotatedRegion(BaseModel):
    """A region of content that an annotation applies to."""


class TextSpanRegion(AnnotatedRegion):
    """A ``[start_index, end_index)`` character span within text."""

    start_index: int | None = None
    end_index: int | None = None


class Annotation(BaseModel):
    annotated_regions: list[SerializeAsAny[AnnotatedRegion]] | None = None
    raw_representation: Any = Field(default=None, exclude=True)
    additional_properties: dict[str, Any] | None = None


class CitationAnnotation(Annotation):
    """Points a span of generated text back at a source."""

    title: str | None = None
    url: str | None = None
    file_id: str | None = None
    tool_name: str | None = None
    snippet: str | None = None


class Content(BaseModel):
    annotations: list[SerializeAsAny[Annotation]] | None = None
    raw_representation: Any = Field(default=None, exclude=True)
    additional_properties: dict[str, Any] | None = None

    model_config = {"validate_assignment": True}


class _TextBase(Content):
    text: str = ""

    def __init__(self, text: str | None = None, **data):
        super().__init__(text=text, **data)

    @field_validator("text", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return "" if value is None else value

    def __str__(self) -> str:
        return self.text


class TextContent(_TextBase):
    """Plain text produced by or sent to a model."""


class TextReasoningContent(_TextBase):
    """Reasoning text.  Never merged with or rendered as plain text."""


class UsageContent(Content):
    """Usage counters delivered in-band with a stream.

    Reconstruction folds these into the response's aggregate usage
    rather than keeping them in a message.
    """

    details: UsageDetails | None = Field(default_factory=UsageDetails)

    def __init__(self, details: UsageDetails | None = None, **data):
        if details is None:
            details = UsageDetails()
        super().__init__(details=details, **data)

    def __str__(self) -> str:
        return f"Usage = {self.details or ''}"


def concat_text(contents: Iterable[Content]) -> str:
    """Concatenate the text of every :class:`TextContent` in order."""
    return "".join(c.text for c in contents if isinstance(c, TextContent))
