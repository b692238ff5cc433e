"""Exposes health indicator status as a gauge."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Gauge

from firefly_observability.health.indicator import HealthIndicator, HealthStatus
from firefly_observability.metrics.naming import MetricNaming
from firefly_observability.metrics.support import get_or_create_family

HEALTH_STATUS_METRIC = "firefly.health.status"

_STATUS_VALUES: dict[HealthStatus, float] = {
    HealthStatus.UP: 1.0,
    HealthStatus.DOWN: 0.0,
    HealthStatus.OUT_OF_SERVICE: -1.0,
    HealthStatus.UNKNOWN: -2.0,
}


def status_to_value(status: HealthStatus) -> float:
    return _STATUS_VALUES.get(status, -2.0)


class HealthMetricsBridge:
    """
    Registers `firefly_health_status{component=...}` per indicator.

    The indicator is evaluated at scrape time: UP 1, DOWN 0,
    OUT_OF_SERVICE -1, UNKNOWN -2.
    """

    def __init__(self, registry: CollectorRegistry) -> None:
        self._registry = registry
        self._gauge = get_or_create_family(
            registry,
            Gauge,
            MetricNaming.to_prometheus(HEALTH_STATUS_METRIC),
            "Health status per component (1 up, 0 down, -1 out of service, -2 unknown)",
            ("component",),
        )

    def register(self, component_name: str, indicator: HealthIndicator) -> None:
        self._gauge.labels(component=component_name).set_function(
            lambda: status_to_value(indicator.health().status)
        )
