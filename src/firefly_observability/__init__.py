"""
firefly-observability - Tracing, metrics and health glue for async Python services.

Quick Start:
    ```python
    from firefly_observability import (
        KeyValues,
        ObservationRegistry,
        RecordingSpanHandler,
        configure_observability,
    )

    registry = ObservationRegistry([RecordingSpanHandler()])
    obs = configure_observability(observation_registry=registry)

    create = obs.tracing.trace(
        "orders.create",
        create_order,
        KeyValues.of({"command.type": "CreateOrder"}),
    )
    await create(payload)
    ```
"""

from firefly_observability.bootstrap import Observability, configure_observability
from firefly_observability.config import ObservabilitySettings, load_settings
from firefly_observability.health import (
    Health,
    HealthBuilder,
    HealthIndicator,
    HealthMetricsBridge,
    HealthStatus,
)
from firefly_observability.metrics import MetricNaming, MetricsSupport, MetricTags
from firefly_observability.tracing import (
    NOOP_REGISTRY,
    BaggageConfiguration,
    ContextPropagatingExecutor,
    InvalidKeyValueError,
    KeyValues,
    LoggingSpanHandler,
    ObservationRegistry,
    OpenTelemetrySpanHandler,
    RecordingSpanHandler,
    Span,
    SpanContext,
    SpanHandler,
    SpanOutcome,
    SpanStateError,
    TracingSupport,
    get_current_span,
    run_in_executor,
    traced,
    use_span,
)

__version__ = "0.1.0"

__all__ = [
    # Setup
    "Observability",
    "ObservabilitySettings",
    "configure_observability",
    "load_settings",
    # Tracing
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
    "SpanOutcome",
    "SpanStateError",
    "TracingSupport",
    "get_current_span",
    "run_in_executor",
    "traced",
    "use_span",
    # Metrics
    "MetricNaming",
    "MetricTags",
    "MetricsSupport",
    # Health
    "Health",
    "HealthBuilder",
    "HealthIndicator",
    "HealthMetricsBridge",
    "HealthStatus",
]
