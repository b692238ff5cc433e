"""
Health indicators with threshold helpers.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import timedelta
from enum import StrEnum
from types import MappingProxyType
from typing import Any

logger = logging.getLogger(__name__)


class HealthStatus(StrEnum):
    UP = "UP"
    DOWN = "DOWN"
    OUT_OF_SERVICE = "OUT_OF_SERVICE"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class Health:
    """Result of a health check."""

    status: HealthStatus
    details: MappingProxyType[str, Any] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @property
    def is_up(self) -> bool:
        return self.status == HealthStatus.UP


class HealthBuilder:
    """Mutable builder for a `Health`. Status defaults to UNKNOWN."""

    def __init__(self, status: HealthStatus = HealthStatus.UNKNOWN) -> None:
        self._status = status
        self._details: dict[str, Any] = {}

    @property
    def current_status(self) -> HealthStatus:
        return self._status

    def status(self, status: HealthStatus) -> HealthBuilder:
        self._status = status
        return self

    def up(self) -> HealthBuilder:
        return self.status(HealthStatus.UP)

    def down(self, error: BaseException | None = None) -> HealthBuilder:
        if error is not None:
            self.with_detail("error", f"{type(error).__name__}: {error}")
        return self.status(HealthStatus.DOWN)

    def out_of_service(self) -> HealthBuilder:
        return self.status(HealthStatus.OUT_OF_SERVICE)

    def with_detail(self, key: str, value: Any) -> HealthBuilder:
        if not key:
            raise ValueError("Detail key must not be empty")
        self._details[key] = value
        return self

    def build(self) -> Health:
        return Health(self._status, MappingProxyType(dict(self._details)))


class HealthIndicator(ABC):
    """
    Base class for component health indicators.

    Subclasses implement `do_health_check`, typically calling `builder.up()`
    and then the threshold helpers, which turn the result DOWN when a
    threshold is exceeded.

    Example:
        ```python
        class BrokerHealth(HealthIndicator):
            def __init__(self, broker):
                super().__init__("broker")
                self.broker = broker

            def do_health_check(self, builder: HealthBuilder) -> None:
                builder.up()
                self.add_error_rate(builder, self.broker.error_rate(), 0.05)
        ```
    """

    def __init__(self, component_name: str) -> None:
        if not component_name:
            raise ValueError("Component name must not be empty")
        self._component_name = component_name

    @property
    def component_name(self) -> str:
        return self._component_name

    @abstractmethod
    def do_health_check(self, builder: HealthBuilder) -> None:
        """Populate `builder`. Raising marks the component DOWN."""

    def health(self) -> Health:
        builder = HealthBuilder()
        try:
            self.do_health_check(builder)
        except Exception as e:
            logger.warning("%s health check failed", self._component_name, exc_info=e)
            builder.down(e)
        return builder.build()

    # === Helpers ===

    def add_metric_detail(self, builder: HealthBuilder, name: str, value: float) -> None:
        builder.with_detail(name, value)

    def add_error_rate(self, builder: HealthBuilder, rate: float, threshold: float) -> None:
        """DOWN if `rate` exceeds `threshold`."""
        builder.with_detail("error.rate", rate)
        builder.with_detail("error.rate.threshold", threshold)
        if rate > threshold:
            builder.down()

    def add_latency(
        self, builder: HealthBuilder, p99: timedelta, threshold: timedelta
    ) -> None:
        """DOWN if the p99 latency exceeds `threshold`."""
        builder.with_detail("latency.p99.ms", int(p99 / timedelta(milliseconds=1)))
        builder.with_detail("latency.threshold.ms", int(threshold / timedelta(milliseconds=1)))
        if p99 > threshold:
            builder.down()

    def add_connection_pool(
        self, builder: HealthBuilder, active: int, idle: int, max_size: int
    ) -> None:
        """DOWN and `pool.exhausted` if every connection is in use."""
        builder.with_detail("pool.active", active)
        builder.with_detail("pool.idle", idle)
        builder.with_detail("pool.max", max_size)
        if active >= max_size:
            builder.down().with_detail("pool.exhausted", True)
