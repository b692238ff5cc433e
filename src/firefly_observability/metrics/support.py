"""
MetricsSupport - Base class for module metrics services.

Provides null-safe metric creation over `prometheus_client`, consistent
naming via `MetricNaming`, thread-safe caching, and timing of async
computations.

When the registry is None (metrics disabled), every metric is a shared
no-op and `timed` returns the operation unchanged.

Example:
    ```python
    class CqrsMetrics(MetricsSupport):
        def __init__(self, registry: CollectorRegistry | None) -> None:
            super().__init__(registry, "cqrs")

        def command_processed(self, command_type: str) -> None:
            self.counter(
                "command.processed", {MetricTags.COMMAND_TYPE: command_type}
            ).inc()
    ```
"""

from __future__ import annotations

import functools
import threading
import time
import weakref
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable, Mapping
from contextlib import nullcontext
from typing import Any, TypeVar

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, Summary
from prometheus_client.metrics import MetricWrapperBase

from firefly_observability.metrics.naming import MetricNaming
from firefly_observability.metrics.tags import MetricTags
from firefly_observability.tracing.keyvalues import KeyValues

T = TypeVar("T")

NONE_VALUE = "none"

_families_lock = threading.Lock()
_families: weakref.WeakKeyDictionary[
    CollectorRegistry, dict[str, tuple[MetricWrapperBase, tuple[str, ...]]]
] = weakref.WeakKeyDictionary()


def get_or_create_family(
    registry: CollectorRegistry,
    kind: type[MetricWrapperBase],
    name: str,
    documentation: str,
    labelnames: tuple[str, ...],
) -> MetricWrapperBase:
    """
    Return the metric family `name` in `registry`, registering it once.

    Families are shared per registry, so several services (or bridges) can
    ask for the same metric without duplicate registration.

    Raises:
        ValueError: If `name` exists with a different type or label set
    """
    with _families_lock:
        per_registry = _families.setdefault(registry, {})
        existing = per_registry.get(name)
        if existing is not None:
            family, existing_labels = existing
            if not isinstance(family, kind) or existing_labels != labelnames:
                raise ValueError(
                    f"Metric '{name}' already registered as {type(family).__name__}"
                    f" with labels {list(existing_labels)}"
                )
            return family
        family = kind(name, documentation, labelnames=labelnames, registry=registry)
        per_registry[name] = (family, labelnames)
        return family


class _NoopMetric:
    """Stands in for any metric when metrics are disabled."""

    def inc(self, amount: float = 1) -> None:
        pass

    def dec(self, amount: float = 1) -> None:
        pass

    def set(self, value: float) -> None:
        pass

    def observe(self, amount: float) -> None:
        pass

    def set_function(self, f: Callable[[], float]) -> None:
        pass

    def time(self) -> nullcontext[None]:
        return nullcontext()


NOOP_METRIC = _NoopMetric()


class MetricsSupport:
    """
    Base class for metrics services of one module.

    All metrics are named `firefly.{module}.{name}` (exposed to Prometheus
    as `firefly_{module}_{name}` with dots turned into underscores).
    """

    def __init__(
        self,
        registry: CollectorRegistry | None,
        module: str,
        common_tags: Mapping[str, str] | KeyValues | None = None,
    ) -> None:
        """
        Args:
            registry: The collector registry, or None if metrics are disabled
            module: Module identifier (e.g., "cqrs", "eda", "workflow")
            common_tags: Tags merged into every metric (application, environment)

        Raises:
            ValueError: If module violates the naming convention
        """
        self._registry = registry
        self._module_prefix = MetricNaming.prefix(module)
        self._common_tags = KeyValues.coerce(common_tags)
        self._lock = threading.Lock()
        self._children: dict[tuple[str, str, KeyValues], Any] = {}

    @property
    def is_enabled(self) -> bool:
        """Whether this instance has an active registry."""
        return self._registry is not None

    @property
    def registry(self) -> CollectorRegistry | None:
        return self._registry

    @property
    def module_prefix(self) -> str:
        """The module prefix (e.g., "firefly.cqrs")."""
        return self._module_prefix

    @property
    def common_tags(self) -> KeyValues:
        return self._common_tags

    # === Metric factories ===

    def counter(self, name: str, tags: Mapping[str, object] | KeyValues | None = None) -> Any:
        """Cached counter (no-op when disabled)."""
        return self._metric(Counter, name, tags)

    def timer(self, name: str, tags: Mapping[str, object] | KeyValues | None = None) -> Any:
        """Cached histogram of durations in seconds (no-op when disabled)."""
        return self._metric(Histogram, name, tags)

    def distribution_summary(
        self, name: str, tags: Mapping[str, object] | KeyValues | None = None
    ) -> Any:
        """Cached summary of observed amounts (no-op when disabled)."""
        return self._metric(Summary, name, tags)

    def gauge(
        self,
        name: str,
        value_function: Callable[[], float],
        tags: Mapping[str, object] | KeyValues | None = None,
    ) -> None:
        """
        Register a gauge whose value is read from `value_function` at scrape time.

        No-op when disabled.
        """
        metric = self._metric(Gauge, name, tags)
        metric.set_function(value_function)

    def _metric(
        self,
        kind: type[MetricWrapperBase],
        name: str,
        tags: Mapping[str, object] | KeyValues | None,
    ) -> Any:
        if self._registry is None:
            return NOOP_METRIC
        full_name = MetricNaming.name(self._module_prefix, name)
        merged = self._common_tags.and_(KeyValues.coerce(tags))
        key = (kind.__name__, full_name, merged)
        with self._lock:
            cached = self._children.get(key)
            if cached is not None:
                return cached
            labels = {MetricNaming.to_prometheus(k): v for k, v in merged}
            family = get_or_create_family(
                self._registry,
                kind,
                MetricNaming.to_prometheus(full_name),
                full_name,
                tuple(sorted(labels)),
            )
            child = family.labels(**labels) if labels else family
            self._children[key] = child
            return child

    # === Timing ===

    def timed(
        self,
        metric_name: str,
        operation: Callable[..., Awaitable[T]],
        tags: Mapping[str, object] | KeyValues | None = None,
    ) -> Callable[..., Awaitable[T]]:
        """
        Record the duration of each call of `operation` until it settles.

        Success, failure and cancellation are all recorded.
        """
        if self._registry is None:
            return operation
        timer = self.timer(metric_name, tags)

        @functools.wraps(operation)
        async def timed_call(*args: Any, **kwargs: Any) -> T:
            start = time.perf_counter()
            try:
                return await operation(*args, **kwargs)
            finally:
                timer.observe(time.perf_counter() - start)

        return timed_call

    def timed_stream(
        self,
        metric_name: str,
        stream: Callable[..., AsyncIterable[T]],
        tags: Mapping[str, object] | KeyValues | None = None,
    ) -> Callable[..., AsyncIterator[T]]:
        """Record the duration of each iteration of `stream`, first pull to terminal signal."""
        if self._registry is None:
            return stream
        timer = self.timer(metric_name, tags)

        @functools.wraps(stream)
        async def timed_call(*args: Any, **kwargs: Any) -> AsyncIterator[T]:
            start = time.perf_counter()
            try:
                async for item in stream(*args, **kwargs):
                    yield item
            finally:
                timer.observe(time.perf_counter() - start)

        return timed_call

    # === Outcome counters ===

    def record_success(
        self, metric_name: str, tags: Mapping[str, object] | KeyValues | None = None
    ) -> None:
        """Increment `metric_name` with status=success."""
        outcome = KeyValues.of(
            {MetricTags.STATUS: MetricTags.SUCCESS, MetricTags.ERROR_TYPE: NONE_VALUE}
        )
        self.counter(metric_name, outcome.and_(tags)).inc()

    def record_failure(
        self,
        metric_name: str,
        error: BaseException,
        tags: Mapping[str, object] | KeyValues | None = None,
    ) -> None:
        """Increment `metric_name` with status=failure and error.type=<class name>."""
        outcome = KeyValues.of(
            {MetricTags.STATUS: MetricTags.FAILURE, MetricTags.ERROR_TYPE: type(error).__name__}
        )
        self.counter(metric_name, outcome.and_(tags)).inc()
