"""
Wiring of observability components from settings.

Each feature is guarded by its own setting and by the presence of its
collaborator, so a disabled or missing piece degrades to a no-op instead
of failing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from prometheus_client import CollectorRegistry

from firefly_observability.config import ObservabilitySettings, load_settings
from firefly_observability.health.bridge import HealthMetricsBridge
from firefly_observability.metrics.tags import MetricTags
from firefly_observability.tracing.baggage import BaggageConfiguration
from firefly_observability.tracing.keyvalues import KeyValues
from firefly_observability.tracing.registry import NOOP_REGISTRY, ObservationRegistry
from firefly_observability.tracing.support import TracingSupport, set_tracing_support

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Observability:
    """Everything `configure_observability` built."""

    settings: ObservabilitySettings
    tracing: TracingSupport
    baggage: BaggageConfiguration | None
    metrics_registry: CollectorRegistry | None
    common_tags: KeyValues
    health_bridge: HealthMetricsBridge | None


def configure_observability(
    settings: ObservabilitySettings | None = None,
    *,
    observation_registry: ObservationRegistry | None = None,
    metrics_registry: CollectorRegistry | None = None,
    install_default: bool = True,
) -> Observability:
    """
    Build the observability components described by `settings`.

    Args:
        settings: Settings to use (resolved with `load_settings()` if None)
        observation_registry: Registry spans are created in; tracing is a
            no-op without one
        metrics_registry: Collector registry; a fresh one is created when
            metrics are enabled and none is given
        install_default: Make the tracing support the process-wide default
            used by `@traced`

    Returns:
        The configured components
    """
    if settings is None:
        settings = load_settings()

    if settings.tracing.enabled:
        tracing = TracingSupport(observation_registry or NOOP_REGISTRY)
        baggage = BaggageConfiguration.of(settings.tracing.baggage_fields)
        if not tracing.enabled:
            logger.info("Tracing enabled but no span handlers registered; spans are no-ops")
    else:
        tracing = TracingSupport(NOOP_REGISTRY)
        baggage = None
        logger.info("Tracing disabled")

    if settings.metrics.enabled:
        registry = metrics_registry if metrics_registry is not None else CollectorRegistry()
        common_tags = KeyValues.of(
            {
                MetricTags.APPLICATION: settings.metrics.application,
                MetricTags.ENVIRONMENT: settings.metrics.environment,
            }
        )
    else:
        registry = None
        common_tags = KeyValues.empty()
        logger.info("Metrics disabled")

    health_bridge = None
    if settings.health.enabled and registry is not None:
        health_bridge = HealthMetricsBridge(registry)

    if install_default:
        set_tracing_support(tracing)

    return Observability(
        settings=settings,
        tracing=tracing,
        baggage=baggage,
        metrics_registry=registry,
        common_tags=common_tags,
        health_bridge=health_bridge,
    )
