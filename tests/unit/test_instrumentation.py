"""Unit tests for the instrumentation module.

Tests use unittest.mock for OTel interactions.  ``opentelemetry-api``
is a test dependency so we can import ``SpanKind`` / ``StatusCode``
directly for assertion accuracy.
"""

import logging
from unittest.mock import MagicMock, patch

import pytest
from opentelemetry.trace import SpanKind, StatusCode

import tessera.instrumentation as inst
from tessera.instrumentation import (
    completion_span,
    reconstruct_span,
    record_error,
    record_response,
    uninstrument,
)
from tessera.message import FinishReason, Message, Role
from tessera.response import Response
from tessera.streaming import to_response
from tessera.usage import UsageDetails
from tests.conftest import text_update, usage_update


@pytest.fixture(autouse=True)
def _reset_tracer():
    """Ensure _tracer is reset to None before and after each test."""
    inst._tracer = None
    yield
    inst._tracer = None


@pytest.fixture
def mock_tracer():
    span = MagicMock()
    tracer = MagicMock()
    tracer.start_as_current_span.return_value.__enter__ = MagicMock(return_value=span)
    tracer.start_as_current_span.return_value.__exit__ = MagicMock(return_value=False)
    inst._tracer = tracer
    return tracer, span


# -------------------------------------------------------------------
# instrument() / uninstrument()
# -------------------------------------------------------------------


class TestInstrument:
    def test_raises_without_otel_installed(self):
        with patch("importlib.util.find_spec", return_value=None):
            with pytest.raises(ImportError, match="pip install"):
                inst.instrument()

    def _mock_otel(self, mock_trace):
        """Patch find_spec + sys.modules for a mock OTel env."""
        return (
            patch("importlib.util.find_spec", return_value=MagicMock()),
            patch.dict(
                "sys.modules",
                {
                    "opentelemetry": MagicMock(trace=mock_trace),
                    "opentelemetry.trace": mock_trace,
                },
            ),
        )

    def test_sets_global_tracer(self):
        mock_tracer = MagicMock()
        mock_trace = MagicMock()
        mock_trace.get_tracer.return_value = mock_tracer
        mock_trace.NoOpTracer = type("NoOpTracer", (), {})

        p1, p2 = self._mock_otel(mock_trace)
        with p1, p2:
            inst.instrument()

        assert inst._tracer is mock_tracer
        mock_trace.get_tracer.assert_called_once_with("tessera")

    def test_logs_message_for_noop_tracer(self, caplog):
        NoOpTracer = type("NoOpTracer", (), {})
        mock_trace = MagicMock()
        mock_trace.get_tracer.return_value = NoOpTracer()
        mock_trace.NoOpTracer = NoOpTracer

        p1, p2 = self._mock_otel(mock_trace)
        with p1, p2:
            with caplog.at_level(logging.INFO, logger="tessera.instrumentation"):
                inst.instrument()

        assert any(
            "No TracerProvider configured" in r.message
            for r in caplog.records
        )

    def test_uninstrument_clears_tracer(self):
        inst._tracer = MagicMock()
        uninstrument()
        assert inst._tracer is None


# -------------------------------------------------------------------
# Span helpers
# -------------------------------------------------------------------


class TestSpans:
    def test_reconstruct_span_yields_none_without_tracer(self):
        with reconstruct_span("sync") as s:
            assert s is None

    @pytest.mark.asyncio
    async def test_completion_span_yields_none_without_tracer(self):
        async with completion_span("mock", "m") as s:
            assert s is None

    def test_reconstruct_span_creates_span(self, mock_tracer):
        tracer, span = mock_tracer
        with reconstruct_span("async") as s:
            assert s is span

        tracer.start_as_current_span.assert_called_once_with(
            "reconstruct_response",
            attributes={
                "tessera.operation.name": "reconstruct_response",
                "tessera.reconstruct.mode": "async",
            },
        )

    @pytest.mark.asyncio
    async def test_completion_span_creates_span(self, mock_tracer):
        tracer, span = mock_tracer
        async with completion_span("mock", "gpt-4o") as s:
            assert s is span

        tracer.start_as_current_span.assert_called_once_with(
            "chat gpt-4o",
            kind=SpanKind.CLIENT,
            attributes={
                "gen_ai.operation.name": "chat",
                "gen_ai.provider.name": "mock",
                "gen_ai.request.model": "gpt-4o",
            },
        )


# -------------------------------------------------------------------
# record_response / record_error
# -------------------------------------------------------------------


class TestRecordResponse:
    def test_noop_on_none_span(self):
        record_response(None, Response())  # should not raise

    def test_sets_usage_model_and_shape(self):
        span = MagicMock()
        response = Response(
            messages=[Message(role=Role.ASSISTANT, contents="x")],
            response_id="r1",
            model_id="gpt-4o-2024-08-06",
            finish_reason=FinishReason.LENGTH,
            usage=UsageDetails(input_token_count=100, output_token_count=50),
        )
        record_response(span, response, update_count=7)

        span.set_attribute.assert_any_call("tessera.response.message_count", 1)
        span.set_attribute.assert_any_call("tessera.update.count", 7)
        span.set_attribute.assert_any_call("gen_ai.usage.input_tokens", 100)
        span.set_attribute.assert_any_call("gen_ai.usage.output_tokens", 50)
        span.set_attribute.assert_any_call("gen_ai.response.model", "gpt-4o-2024-08-06")
        span.set_attribute.assert_any_call("gen_ai.response.id", "r1")
        span.set_attribute.assert_any_call("gen_ai.response.finish_reasons", ["length"])

    def test_skips_unknown_counts(self):
        span = MagicMock()
        record_response(span, Response(usage=UsageDetails()))

        names = [c.args[0] for c in span.set_attribute.call_args_list]
        assert names == ["tessera.response.message_count"]


class TestRecordError:
    def test_sets_status_and_records_exception(self):
        span = MagicMock()
        exc = RuntimeError("boom")
        record_error(span, exc)

        span.set_status.assert_called_once_with(StatusCode.ERROR, "boom")
        span.record_exception.assert_called_once_with(exc)
        span.set_attribute.assert_called_once_with("error.type", "RuntimeError")

    def test_noop_on_none_span(self):
        record_error(None, RuntimeError("boom"))  # no raise


# -------------------------------------------------------------------
# Reconstruction emits spans when instrumented
# -------------------------------------------------------------------


class TestReconstructionTracing:
    def test_to_response_records_response(self, mock_tracer):
        _, span = mock_tracer
        to_response([
            text_update("hi", role=Role.ASSISTANT),
            usage_update(input_token_count=3),
        ])

        span.set_attribute.assert_any_call("tessera.update.count", 2)
        span.set_attribute.assert_any_call("gen_ai.usage.input_tokens", 3)

    def test_to_response_records_upstream_error(self, mock_tracer):
        _, span = mock_tracer

        def source():
            yield text_update("hi", role=Role.ASSISTANT)
            raise ConnectionError("gone")

        with pytest.raises(ConnectionError):
            to_response(source())

        span.set_status.assert_called_once_with(StatusCode.ERROR, "gone")
