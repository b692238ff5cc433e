"""Tracing - Span lifecycles bound to async computations."""

from firefly_observability.tracing.baggage import BaggageConfiguration
from firefly_observability.tracing.context import (
    ContextPropagatingExecutor,
    bind_context,
    get_current_span,
    run_in_executor,
    use_span,
)
from firefly_observability.tracing.handlers import (
    LoggingSpanHandler,
    OpenTelemetrySpanHandler,
    RecordingSpanHandler,
)
from firefly_observability.tracing.keyvalues import InvalidKeyValueError, KeyValues
from firefly_observability.tracing.registry import (
    NOOP_REGISTRY,
    ObservationRegistry,
    SpanHandler,
)
from firefly_observability.tracing.span import Span, SpanContext, SpanOutcome, SpanStateError
from firefly_observability.tracing.support import (
    SpanLifecycle,
    TracingSupport,
    get_tracing_support,
    set_tracing_support,
    traced,
)

__all__ = [
    "BaggageConfiguration",
    "ContextPropagatingExecutor",
    "InvalidKeyValueError",
    "KeyValues",
    "LoggingSpanHandler",
    "NOOP_REGISTRY",
    "ObservationRegistry",
    "OpenTelemetrySpanHandler",
    "RecordingSpanHandler",
    "Span",
    "SpanContext",
    "SpanHandler",
    "SpanLifecycle",
    "SpanOutcome",
    "SpanStateError",
    "TracingSupport",
    "bind_context",
    "get_current_span",
    "get_tracing_support",
    "run_in_executor",
    "set_tracing_support",
    "traced",
    "use_span",
]
