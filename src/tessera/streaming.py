"""Reassembling streamed updates into responses.

Providers yield :class:`~tessera.update.ResponseUpdate` objects.  The
:class:`ResponseAccumulator` folds them, in arrival order, into a
:class:`~tessera.response.Response`: it splits messages on
``message_id`` changes, lets later updates override earlier scalar
fields, sums in-band usage and, on finalize, coalesces adjacent text.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import AsyncIterable, Callable, Iterable, Sized

from tessera.content import (
    Content,
    TextContent,
    TextReasoningContent,
    UsageContent,
)
from tessera.instrumentation import reconstruct_span, record_error, record_response
from tessera.message import Message
from tessera.response import Response
from tessera.update import ResponseUpdate
from tessera.usage import UsageDetails

logger = logging.getLogger(__name__)

# Kinds merged by coalesce_contents, each only with its own kind.
COALESCABLE_KINDS: tuple[type[TextContent | TextReasoningContent], ...] = (
    TextContent,
    TextReasoningContent,
)


def _is_coalescable(content: Content | None, kind: type) -> bool:
    # Annotations index into the text, so annotated items never merge.
    return isinstance(content, kind) and not content.annotations


def _coalesce_kind(contents: list[Content | None], kind: type) -> None:
    start = 0
    while start < len(contents) - 1:
        first = contents[start]
        if not _is_coalescable(first, kind):
            start += 1
            continue
        if not _is_coalescable(contents[start + 1], kind):
            start += 2
            continue

        parts = [first.text]
        i = start + 1
        while i < len(contents) and _is_coalescable(contents[i], kind):
            parts.append(contents[i].text)
            contents[i] = None
            i += 1

        merged = kind("".join(parts))
        if first.additional_properties is not None:
            merged.additional_properties = copy.deepcopy(
                first.additional_properties
            )
        contents[start] = merged
        start = i


def coalesce_contents(contents: list[Content]) -> None:
    """Merge runs of adjacent same-kind text items in place.

    Text and reasoning text are coalesced separately and never with
    each other.  A run's replacement keeps a copy of the first item's
    additional properties; the rest of the run is dropped.  Text items
    with annotations are left alone and end any run.
    """
    if len(contents) < 2:
        return

    for kind in COALESCABLE_KINDS:
        _coalesce_kind(contents, kind)

    contents[:] = [c for c in contents if c is not None]


class ResponseAccumulator:
    """Builds a :class:`Response` from streaming updates.

    Feed updates in the order they were produced, then call
    :meth:`finalize` once.
    """

    def __init__(self, coalesce: bool = True) -> None:
        self.coalesce = coalesce
        self.update_count = 0
        self._response = Response()

    def feed(self, update: ResponseUpdate) -> None:
        response = self._response
        self.update_count += 1

        message = self._target_message(update)

        if update.author_name is not None:
            message.author_name = update.author_name
        if update.created_at is not None:
            message.created_at = update.created_at
        if update.role is not None:
            message.role = update.role
        # Must follow _target_message, which compares against the old id.
        if update.message_id:
            message.message_id = update.message_id

        for content in update.contents:
            if isinstance(content, UsageContent):
                if content.details is None:
                    continue
                if response.usage is None:
                    response.usage = UsageDetails()
                response.usage.add(content.details)
            else:
                message.contents.append(content)

        if update.response_id:
            response.response_id = update.response_id
        if update.conversation_id is not None:
            response.conversation_id = update.conversation_id
        if update.created_at is not None:
            response.created_at = update.created_at
        if update.finish_reason is not None:
            response.finish_reason = update.finish_reason
        if update.model_id is not None:
            response.model_id = update.model_id
        if update.additional_properties is not None:
            if response.additional_properties is None:
                response.additional_properties = dict(update.additional_properties)
            else:
                response.additional_properties.update(update.additional_properties)

    def _target_message(self, update: ResponseUpdate) -> Message:
        messages = self._response.messages
        if messages:
            last = messages[-1]
            if not (
                update.message_id
                and last.message_id is not None
                and update.message_id != last.message_id
            ):
                return last

        role = update.role
        if role is None and messages:
            role = messages[-1].role
        message = Message(role=role)
        messages.append(message)
        logger.debug(
            "Opened message %d (message_id=%r, role=%s)",
            len(messages), update.message_id, role,
        )
        return message

    def finalize(self) -> Response:
        """Coalesce message contents and hand the response over."""
        response = self._response
        if self.coalesce:
            for message in response.messages:
                coalesce_contents(message.contents)
        logger.debug(
            "Finalized response with %d message(s) from %d update(s)",
            len(response.messages), self.update_count,
        )
        self._response = Response()
        self.update_count = 0
        return response


def to_response(
    updates: Iterable[ResponseUpdate], coalesce: bool = True,
) -> Response:
    """Combine *updates* into a single :class:`Response`."""
    if updates is None:
        raise ValueError("updates must not be None")

    acc = ResponseAccumulator(coalesce=coalesce)
    with reconstruct_span("sync") as span:
        try:
            for update in updates:
                acc.feed(update)
        except BaseException as exc:
            record_error(span, exc)
            raise
        count = acc.update_count
        response = acc.finalize()
        record_response(span, response, count)
    return response


async def to_response_async(
    updates: AsyncIterable[ResponseUpdate],
    coalesce: bool = True,
    cancel_event: asyncio.Event | None = None,
) -> Response:
    """Combine an async stream of updates into a single :class:`Response`.

    Updates are pulled one at a time.  If *cancel_event* is set, the
    next check between updates raises :class:`asyncio.CancelledError`.
    """
    if updates is None:
        raise ValueError("updates must not be None")

    acc = ResponseAccumulator(coalesce=coalesce)
    with reconstruct_span("async") as span:
        try:
            async for update in updates:
                if cancel_event is not None and cancel_event.is_set():
                    raise asyncio.CancelledError("response reconstruction cancelled")
                acc.feed(update)
        except BaseException as exc:
            record_error(span, exc)
            raise
        count = acc.update_count
        response = acc.finalize()
        record_response(span, response, count)
    return response


def add_response_messages(messages: list[Message], response: Response) -> None:
    """Append all of *response*'s messages to *messages*."""
    if messages is None:
        raise ValueError("messages must not be None")
    if response is None:
        raise ValueError("response must not be None")
    messages.extend(response.messages)


def add_update_messages(
    messages: list[Message], updates: Iterable[ResponseUpdate],
) -> None:
    """Reconstruct messages from *updates* and append them to *messages*."""
    if messages is None:
        raise ValueError("messages must not be None")
    if updates is None:
        raise ValueError("updates must not be None")
    if isinstance(updates, Sized) and len(updates) == 0:
        return
    add_response_messages(messages, to_response(updates))


async def add_update_messages_async(
    messages: list[Message],
    updates: AsyncIterable[ResponseUpdate],
    cancel_event: asyncio.Event | None = None,
) -> None:
    """Async counterpart of :func:`add_update_messages`."""
    if messages is None:
        raise ValueError("messages must not be None")
    if updates is None:
        raise ValueError("updates must not be None")
    response = await to_response_async(updates, cancel_event=cancel_event)
    add_response_messages(messages, response)


def add_update_message(
    messages: list[Message],
    update: ResponseUpdate,
    content_filter: Callable[[Content], bool] | None = None,
) -> None:
    """Append *update* to *messages* as a message of its own.

    Unlike the stream paths this does no segmentation or coalescing.
    The update must carry a role.  Nothing is appended when the update
    has no contents left after *content_filter*.
    """
    if messages is None:
        raise ValueError("messages must not be None")
    if update is None:
        raise ValueError("update must not be None")
    if update.role is None:
        raise ValueError("update.role must not be None")

    if content_filter is None:
        contents = update.contents
    else:
        contents = [c for c in update.contents if content_filter(c)]
    if not contents:
        return

    messages.append(Message(
        role=update.role,
        contents=contents,
        author_name=update.author_name,
        created_at=update.created_at,
        raw_representation=update.raw_representation,
        additional_properties=update.additional_properties,
    ))
