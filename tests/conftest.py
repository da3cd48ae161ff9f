import asyncio
from datetime import datetime, timezone

import pytest

from tessera.content import TextContent, TextReasoningContent, UsageContent
from tessera.message import Role
from tessera.provider import ModelProvider
from tessera.update import ResponseUpdate
from tessera.usage import UsageDetails


# ---------------------------------------------------------------------------
# Async stream helpers
# ---------------------------------------------------------------------------

async def yield_async(updates):
    """Yield *updates* one at a time, suspending between each."""
    for update in updates:
        await asyncio.sleep(0)
        yield update


async def failing_stream(updates, exc: BaseException):
    """Yield *updates* then raise *exc* on the next pull."""
    for update in updates:
        await asyncio.sleep(0)
        yield update
    raise exc


# ---------------------------------------------------------------------------
# Mock provider
# ---------------------------------------------------------------------------

class MockProvider(ModelProvider):
    """Provider that streams pre-queued updates. No network calls."""

    name = "mock"

    def __init__(self):
        self.streams: list[list[ResponseUpdate]] = []
        self.call_log: list[dict] = []

    async def stream(self, model, messages):
        self.call_log.append({"model": model, "messages": messages})
        for update in self.streams.pop(0):
            await asyncio.sleep(0)
            yield update


# ---------------------------------------------------------------------------
# Update builder helpers
# ---------------------------------------------------------------------------

def text_update(text: str, role=None, **kwargs) -> ResponseUpdate:
    return ResponseUpdate(role=role, contents=[TextContent(text)], **kwargs)


def reasoning_update(text: str, **kwargs) -> ResponseUpdate:
    return ResponseUpdate(contents=[TextReasoningContent(text)], **kwargs)


def usage_update(**counts) -> ResponseUpdate:
    return ResponseUpdate(contents=[UsageContent(UsageDetails(**counts))])


@pytest.fixture
def mock_provider():
    return MockProvider()


@pytest.fixture
def hello_world_updates():
    """The canonical five-update stream: three text pieces with shifting
    roles and properties, followed by two usage reports."""
    return [
        text_update(
            "Hello",
            role=Role.ASSISTANT,
            response_id="someResponse",
            message_id="12345",
            created_at=datetime(2001, 2, 3, 4, 5, 6, tzinfo=timezone.utc),
        ),
        text_update(
            ", ",
            role=Role("human"),
            author_name="Someone",
            additional_properties={"a": "b"},
        ),
        text_update(
            "world!",
            created_at=datetime(2002, 2, 3, 4, 5, 6, tzinfo=timezone.utc),
            additional_properties={"c": "d"},
        ),
        usage_update(input_token_count=1, output_token_count=2),
        usage_update(input_token_count=4, output_token_count=5),
    ]
