"""Optional OpenTelemetry instrumentation for turnstream.

Call ``turnstream.instrument()`` once at startup to enable tracing.
Requires ``opentelemetry-api`` to be installed; the engine works
identically without it.
"""

import importlib.util
import logging
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)

_tracer = None


def instrument(*, tracer_name: str = "turnstream") -> None:
    """Enable OpenTelemetry tracing for conversations, turns and tools.

    Call once at startup, after configuring your TracerProvider.
    Requires ``opentelemetry-api``: ``pip install turnstream[otel]``

    Example::

        from opentelemetry import trace
        from opentelemetry.sdk.trace import TracerProvider

        trace.set_tracer_provider(TracerProvider())

        import turnstream
        turnstream.instrument()

    Args:
        tracer_name: Name passed to ``trace.get_tracer()``.

    Raises:
        ImportError: If ``opentelemetry-api`` is not installed.
    """
    global _tracer
    if importlib.util.find_spec("opentelemetry.trace") is None:
        raise ImportError(
            "opentelemetry-api is required for instrumentation. "
            "Install it with: pip install turnstream[otel]"
        )
    from opentelemetry import trace
    _tracer = trace.get_tracer(tracer_name)
    if isinstance(_tracer, trace.NoOpTracer):
        logger.info(
            "No TracerProvider configured — spans will be "
            "discarded. Set up a TracerProvider to export "
            "traces."
        )
    else:
        logger.info("turnstream instrumentation enabled")


def uninstrument() -> None:
    """Disable OpenTelemetry tracing."""
    global _tracer
    _tracer = None


@asynccontextmanager
async def conversation_span(model: str, max_turns: int):
    """Wrap one conversation loop in an ``invoke_agent`` span."""
    if _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(
        f"invoke_agent {model}",
        attributes={
            "gen_ai.operation.name": "invoke_agent",
            "gen_ai.request.model": model,
            "turnstream.max_turns": max_turns,
        },
    ) as span:
        yield span


@asynccontextmanager
async def turn_span(system: str, model: str, turn: int):
    """Wrap one streamed model turn in a ``chat`` span."""
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
            "turnstream.turn": turn,
        },
    ) as span:
        yield span


@asynccontextmanager
async def tool_span(tool_name: str):
    """Wrap a tool execution in an ``execute_tool`` span."""
    if _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(
        f"execute_tool {tool_name}",
        attributes={
            "gen_ai.operation.name": "execute_tool",
            "gen_ai.tool.name": tool_name,
        },
    ) as span:
        yield span


def record_tool_calls(span, count: int) -> None:
    """Record how many tool calls a turn requested."""
    if span is None:
        return
    span.set_attribute("turnstream.tool_calls", count)


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
