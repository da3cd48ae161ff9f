import asyncio
from collections.abc import AsyncIterable, Iterable

from pydantic import BaseModel, Field

from tessera.message import Message
from tessera.response import Response
from tessera.streaming import (
    add_response_messages,
    add_update_messages,
    add_update_messages_async,
)
from tessera.update import ResponseUpdate


class Session(BaseModel):
    """A conversation transcript that absorbs model output."""

    session_id: str
    transcript: list[Message] = Field(default_factory=list)

    @property
    def text(self) -> str:
        return "\n".join(m.text for m in self.transcript if m.text)

    def add_response(self, response: Response) -> None:
        add_response_messages(self.transcript, response)

    def add_updates(self, updates: Iterable[ResponseUpdate]) -> None:
        add_update_messages(self.transcript, updates)

    async def add_updates_async(
        self,
        updates: AsyncIterable[ResponseUpdate],
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        await add_update_messages_async(
            self.transcript, updates, cancel_event=cancel_event,
        )
