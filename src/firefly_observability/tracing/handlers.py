"""
Span handlers - built-in handlers for common use cases.
"""

from __future__ import annotations

import logging
import threading

from opentelemetry import context as otel_context
from opentelemetry import trace as otel_trace
from opentelemetry.trace import Status, StatusCode, Tracer

from firefly_observability.tracing.span import Span, SpanOutcome

logger = logging.getLogger(__name__)

CANCELLED_ATTRIBUTE = "firefly.cancelled"


class RecordingSpanHandler:
    """
    Keeps every span it sees, for tests and local inspection.

    Example:
        ```python
        recorder = RecordingSpanHandler()
        registry = ObservationRegistry([recorder])

        await support.trace("orders.create", create_order)()

        span = recorder.single("orders.create")
        assert span.outcome == SpanOutcome.COMPLETED
        ```
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._started: list[Span] = []
        self._stopped: list[Span] = []

    def on_start(self, span: Span) -> None:
        with self._lock:
            self._started.append(span)

    def on_error(self, span: Span, error: BaseException) -> None:
        pass

    def on_stop(self, span: Span) -> None:
        with self._lock:
            self._stopped.append(span)

    @property
    def started(self) -> list[Span]:
        """Spans in start order."""
        with self._lock:
            return list(self._started)

    @property
    def stopped(self) -> list[Span]:
        """Spans in stop order."""
        with self._lock:
            return list(self._stopped)

    @property
    def active(self) -> list[Span]:
        """Spans started but not yet stopped."""
        return [s for s in self.started if not s.is_stopped]

    def find(self, name: str) -> list[Span]:
        """All started spans with the given name."""
        return [s for s in self.started if s.name == name]

    def single(self, name: str) -> Span:
        """
        The only span with the given name.

        Raises:
            AssertionError: If there is not exactly one such span
        """
        spans = self.find(name)
        if len(spans) != 1:
            raise AssertionError(f"Expected exactly one span named '{name}', found {len(spans)}")
        return spans[0]

    def clear(self) -> None:
        with self._lock:
            self._started.clear()
            self._stopped.clear()


class LoggingSpanHandler:
    """Logs span lifecycle transitions."""

    def __init__(self, level: int = logging.DEBUG, log: logging.Logger | None = None) -> None:
        self.level = level
        self.log = log or logger

    def on_start(self, span: Span) -> None:
        self.log.log(
            self.level,
            "span.start %s trace_id=%s span_id=%s parent=%s",
            span.name,
            span.trace_id,
            span.span_id,
            span.parent_span_id,
        )

    def on_error(self, span: Span, error: BaseException) -> None:
        self.log.log(self.level, "span.error %s %s: %s", span.name, type(error).__name__, error)

    def on_stop(self, span: Span) -> None:
        self.log.log(
            self.level,
            "span.stop %s outcome=%s duration_ms=%.2f",
            span.name,
            span.outcome,
            span.duration_ms or 0.0,
        )


class OpenTelemetrySpanHandler:
    """
    Mirrors spans onto an OpenTelemetry tracer.

    Each span becomes an OpenTelemetry span carrying both tag sets as
    attributes, and is the current OpenTelemetry span while the traced
    computation runs. Parent/child relationships follow the span hierarchy;
    a root span attaches to whatever OpenTelemetry context is ambient when it starts.

    Example:
        ```python
        from opentelemetry.sdk.trace import TracerProvider

        provider = TracerProvider()
        registry = ObservationRegistry(
            [OpenTelemetrySpanHandler(provider.get_tracer("orders"))]
        )
        ```
    """

    def __init__(self, tracer: Tracer | None = None) -> None:
        self._tracer = tracer or otel_trace.get_tracer(__name__)
        self._lock = threading.Lock()
        self._live: dict[str, otel_trace.Span] = {}

    def on_start(self, span: Span) -> None:
        context = None
        if span.parent is not None:
            with self._lock:
                parent = self._live.get(span.parent.span_id)
            if parent is not None:
                context = otel_trace.set_span_in_context(parent)

        attributes: dict[str, str] = {}
        attributes.update(span.low_cardinality.as_dict())
        attributes.update(span.high_cardinality.as_dict())
        otel_span = self._tracer.start_span(span.name, context=context, attributes=attributes)
        with self._lock:
            self._live[span.span_id] = otel_span

    def on_scope(self, span: Span) -> None:
        otel_span = self._get(span)
        if otel_span is None:
            return
        # Runs in the evaluation's private context, which is dropped afterwards
        otel_context.attach(otel_trace.set_span_in_context(otel_span))

    def on_error(self, span: Span, error: BaseException) -> None:
        otel_span = self._get(span)
        if otel_span is None:
            return
        otel_span.record_exception(error)
        otel_span.set_status(Status(StatusCode.ERROR, f"{type(error).__name__}: {error}"))

    def on_stop(self, span: Span) -> None:
        with self._lock:
            otel_span = self._live.pop(span.span_id, None)
        if otel_span is None:
            return
        if span.outcome == SpanOutcome.CANCELLED:
            otel_span.set_attribute(CANCELLED_ATTRIBUTE, True)
        elif span.outcome == SpanOutcome.COMPLETED:
            otel_span.set_status(Status(StatusCode.OK))
        otel_span.end()

    def _get(self, span: Span) -> otel_trace.Span | None:
        with self._lock:
            return self._live.get(span.span_id)
