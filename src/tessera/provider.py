import logging
from collections.abc import AsyncIterator

from tessera.instrumentation import completion_span
from tessera.message import Message
from tessera.response import Response
from tessera.streaming import to_response_async
from tessera.update import ResponseUpdate

logger = logging.getLogger(__name__)


class ModelProvider:
    """Interface for a model backend that streams response updates.

    Subclasses implement :meth:`stream`, translating their own wire
    format into :class:`ResponseUpdate` objects.  :meth:`complete` folds
    that stream into a single :class:`Response`.
    """

    name: str = "unknown"

    async def stream(
            self,
            model: str,
            messages: list[Message],
    ) -> AsyncIterator[ResponseUpdate]:
        raise NotImplementedError(
            f"{type(self).__name__} has not implemented stream()"
        )
        yield  # async generator

    async def complete(
            self,
            model: str,
            messages: list[Message],
    ) -> Response:
        async with completion_span(self.name, model):
            response = await to_response_async(
                self.stream(model=model, messages=messages)
            )
        logger.debug(
            "%s completed %s with %d message(s)",
            self.name, model, len(response.messages),
        )
        return response
