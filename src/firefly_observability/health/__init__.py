"""Health - Component health indicators and their metrics bridge."""

from firefly_observability.health.bridge import HealthMetricsBridge, status_to_value
from firefly_observability.health.indicator import (
    Health,
    HealthBuilder,
    HealthIndicator,
    HealthStatus,
)

__all__ = [
    "Health",
    "HealthBuilder",
    "HealthIndicator",
    "HealthMetricsBridge",
    "HealthStatus",
    "status_to_value",
]
