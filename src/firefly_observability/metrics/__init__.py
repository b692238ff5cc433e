"""Metrics - Naming conventions and a null-safe base over prometheus_client."""

from firefly_observability.metrics.naming import MetricNaming
from firefly_observability.metrics.support import NOOP_METRIC, MetricsSupport, get_or_create_family
from firefly_observability.metrics.tags import MetricTags

__all__ = [
    "MetricNaming",
    "MetricTags",
    "MetricsSupport",
    "NOOP_METRIC",
    "get_or_create_family",
]
