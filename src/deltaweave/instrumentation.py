"""Optional OpenTelemetry instrumentation for deltaweave.

Call ``deltaweave.instrument()`` once at startup to enable tracing.
Requires ``opentelemetry-api`` to be installed; decoding works
identically without it.
"""

import importlib.util
import logging
from contextlib import asynccontextmanager, contextmanager

logger = logging.getLogger(__name__)

_tracer = None


def instrument(*, tracer_name: str = "deltaweave") -> None:
    """Enable OpenTelemetry tracing for stream readers.

    Call once at startup, after configuring your TracerProvider.
    Requires ``opentelemetry-api``: ``pip install deltaweave[otel]``

    Example::

        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry import trace

        trace.set_tracer_provider(TracerProvider())

        import deltaweave
        deltaweave.instrument()

    Args:
        tracer_name: Name passed to ``trace.get_tracer()``.

    Raises:
        ImportError: If ``opentelemetry-api`` is not installed.
    """
    global _tracer
    if importlib.util.find_spec("opentelemetry.trace") is None:
        raise ImportError(
            "opentelemetry-api is required for instrumentation. "
            "Install it with: pip install deltaweave[otel]"
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
        logger.info("deltaweave instrumentation enabled")


def uninstrument() -> None:
    """Disable OpenTelemetry tracing."""
    global _tracer
    _tracer = None


def _span_attributes(provider: str) -> dict:
    return {
        "gen_ai.operation.name": "chat",
        "gen_ai.provider.name": provider,
    }


@contextmanager
def stream_span(provider: str = "openai"):
    """Wrap the iteration of a :class:`StreamReader` in a span."""
    if _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(
        f"decode_stream {provider}",
        attributes=_span_attributes(provider),
    ) as span:
        yield span


@asynccontextmanager
async def astream_span(provider: str = "openai"):
    """Wrap the iteration of an :class:`AsyncStreamReader` in a span."""
    if _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(
        f"decode_stream {provider}",
        attributes=_span_attributes(provider),
    ) as span:
        yield span


def record_usage(span, usage, finish_reason=None) -> None:
    """Set token-usage and finish-reason attributes on a span."""
    if span is None:
        return
    if usage is not None:
        span.set_attribute(
            "gen_ai.usage.input_tokens", usage.input_tokens
        )
        span.set_attribute(
            "gen_ai.usage.output_tokens", usage.output_tokens
        )
    if finish_reason is not None:
        span.set_attribute(
            "gen_ai.response.finish_reasons",
            [getattr(finish_reason, "value", finish_reason)],
        )


def record_tool_call(span, chunk) -> None:
    """Add an event for a completed tool call."""
    if span is None:
        return
    span.add_event(
        "gen_ai.tool.call",
        attributes={
            "gen_ai.tool.name": chunk.name,
            "gen_ai.tool.call.id": chunk.call_id,
        },
    )


def record_error(span, exception: BaseException) -> None:
    """Record an exception and set ERROR status on a span.

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
