"""Optional OpenTelemetry instrumentation for tessera.

Call ``tessera.instrumentation.instrument()`` once at startup to enable
tracing.  Requires ``opentelemetry-api`` to be installed; the package
works identically without it.
"""

import importlib.util
import logging
from contextlib import asynccontextmanager, contextmanager

logger = logging.getLogger(__name__)

_tracer = None


def instrument(*, tracer_name: str = "tessera") -> None:
    """Enable OpenTelemetry tracing for response reconstruction.

    Call once at startup, after configuring your TracerProvider.
    Requires ``opentelemetry-api``: ``pip install tessera[otel]``

    Example::

        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry import trace

        trace.set_tracer_provider(TracerProvider())

        from tessera.instrumentation import instrument
        instrument()

    Args:
        tracer_name: Name passed to ``trace.get_tracer()``.

    Raises:
        ImportError: If ``opentelemetry-api`` is not installed.
    """
    global _tracer
    if importlib.util.find_spec("opentelemetry.trace") is None:
        raise ImportError(
            "opentelemetry-api is required for instrumentation. "
            "Install it with: pip install tessera[otel]"
        )
    from opentelemetry import trace
    _tracer = trace.get_tracer(tracer_name)
    if isinstance(_tracer, trace.NoOpTracer):
        logger.info(
            "No TracerProvider configured; spans will be "
            "discarded. Set up a TracerProvider to export "
            "traces."
        )
    else:
        logger.info("Tessera instrumentation enabled")


def uninstrument() -> None:
    """Disable OpenTelemetry tracing."""
    global _tracer
    _tracer = None


@contextmanager
def reconstruct_span(mode: str):
    """Wrap one update-to-response reconstruction.

    *mode* is ``"sync"`` or ``"async"``.
    """
    if _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(
        "reconstruct_response",
        attributes={
            "tessera.operation.name": "reconstruct_response",
            "tessera.reconstruct.mode": mode,
        },
    ) as span:
        yield span


@asynccontextmanager
async def completion_span(system: str, model: str):
    """Wrap a ModelProvider.complete() call in a ``chat`` span."""
    if _tracer is None:
        yield None
        return
    from opentelemetry.trace import SpanKind

    with _tracer.start_as_current_span(
        f"chat {model}",
        kind=SpanKind.CLIENT,
        attributes={
            "gen_ai.operation.name": "chat",
            "gen_ai.provider.name": system,
            "gen_ai.request.model": model,
        },
    ) as span:
        yield span


def record_response(span, response, update_count: int | None = None):
    """Set usage, model and shape attributes for a finished response."""
    if span is None or response is None:
        return
    span.set_attribute(
        "tessera.response.message_count", len(response.messages)
    )
    if update_count is not None:
        span.set_attribute("tessera.update.count", update_count)
    usage = response.usage
    if usage is not None:
        if usage.input_token_count is not None:
            span.set_attribute(
                "gen_ai.usage.input_tokens",
                usage.input_token_count,
            )
        if usage.output_token_count is not None:
            span.set_attribute(
                "gen_ai.usage.output_tokens",
                usage.output_token_count,
            )
    if response.model_id:
        span.set_attribute("gen_ai.response.model", response.model_id)
    if response.response_id:
        span.set_attribute("gen_ai.response.id", response.response_id)
    if response.finish_reason is not None:
        span.set_attribute(
            "gen_ai.response.finish_reasons",
            [response.finish_reason.value],
        )


def record_error(span, exception: BaseException) -> None:
    """Record an exception and set ERROR status on a span.

    Sets ``error.type`` per GenAI semantic conventions.
    No-ops when *span* is ``None`` (tracing disabled).
    """
    if span is None:
        return
    from opentelemetry.trace import StatusCode

    span.set_status(StatusCode.ERROR, str(exception))
    span.record_exception(exception)
    span.set_attribute(
        "error.type", type(exception).__qualname__
    )
