"""Tests for health indicators and the health metrics bridge."""

import logging
from datetime import timedelta

import pytest

from firefly_observability.health import (
    HealthBuilder,
    HealthIndicator,
    HealthMetricsBridge,
    HealthStatus,
    status_to_value,
)


class StaticHealth(HealthIndicator):
    """Indicator driven by plain attributes, for tests."""

    def __init__(self, name="broker", error_rate=0.0, p99_ms=10, active=1):
        super().__init__(name)
        self.error_rate = error_rate
        self.p99_ms = p99_ms
        self.active = active
        self.status = HealthStatus.UP

    def do_health_check(self, builder):
        builder.status(self.status)
        self.add_error_rate(builder, self.error_rate, 0.05)
        self.add_latency(builder, timedelta(milliseconds=self.p99_ms), timedelta(seconds=1))
        self.add_connection_pool(builder, self.active, 10 - self.active, 10)


class ExplodingHealth(HealthIndicator):
    def do_health_check(self, builder):
        raise ConnectionError("broker unreachable")


class TestHealthBuilder:
    """Tests for building health results."""

    def test_defaults_to_unknown(self):
        assert HealthBuilder().build().status == HealthStatus.UNKNOWN

    def test_status_and_details(self):
        """Test builder calls chain."""
        health = HealthBuilder().up().with_detail("version", "1.2").build()

        assert health.is_up
        assert health.details == {"version": "1.2"}

    def test_details_are_read_only(self):
        """Test built details cannot be mutated."""
        health = HealthBuilder().up().with_detail("a", 1).build()

        with pytest.raises(TypeError):
            health.details["a"] = 2

    def test_down_with_error(self):
        """Test down(error) records the error detail."""
        health = HealthBuilder().down(ConnectionError("refused")).build()

        assert health.status == HealthStatus.DOWN
        assert health.details["error"] == "ConnectionError: refused"

    def test_empty_detail_key_rejected(self):
        with pytest.raises(ValueError):
            HealthBuilder().with_detail("", 1)


class TestHealthIndicator:
    """Tests for indicators and their threshold helpers."""

    def test_healthy_component(self):
        """Test all thresholds respected keeps the component UP."""
        health = StaticHealth().health()

        assert health.status == HealthStatus.UP
        assert health.details["error.rate"] == 0.0
        assert health.details["latency.p99.ms"] == 10
        assert health.details["latency.threshold.ms"] == 1000
        assert health.details["pool.max"] == 10
        assert "pool.exhausted" not in health.details

    def test_error_rate_over_threshold(self):
        """Test a high error rate marks the component DOWN."""
        health = StaticHealth(error_rate=0.2).health()

        assert health.status == HealthStatus.DOWN
        assert health.details["error.rate.threshold"] == 0.05

    def test_latency_over_threshold(self):
        """Test slow p99 latency marks the component DOWN."""
        assert StaticHealth(p99_ms=1500).health().status == HealthStatus.DOWN

    def test_pool_exhausted(self):
        """Test an exhausted pool marks the component DOWN."""
        health = StaticHealth(active=10).health()

        assert health.status == HealthStatus.DOWN
        assert health.details["pool.exhausted"] is True

    def test_metric_detail(self):
        """Test add_metric_detail only adds a detail."""
        indicator = StaticHealth()
        builder = HealthBuilder().up()

        indicator.add_metric_detail(builder, "queue.depth", 4)

        assert builder.build().details == {"queue.depth": 4}
        assert builder.current_status == HealthStatus.UP

    def test_exception_marks_down(self, caplog):
        """Test a failing check is DOWN and logged."""
        indicator = ExplodingHealth("broker")

        with caplog.at_level(logging.WARNING, logger="firefly_observability.health.indicator"):
            health = indicator.health()

        assert health.status == HealthStatus.DOWN
        assert "broker unreachable" in health.details["error"]
        assert "broker health check failed" in caplog.text

    def test_component_name_required(self):
        with pytest.raises(ValueError):
            ExplodingHealth("")


class TestHealthMetricsBridge:
    """Tests for exposing health as a gauge."""

    @pytest.mark.parametrize(
        "status,value",
        [
            (HealthStatus.UP, 1.0),
            (HealthStatus.DOWN, 0.0),
            (HealthStatus.OUT_OF_SERVICE, -1.0),
            (HealthStatus.UNKNOWN, -2.0),
        ],
    )
    def test_status_values(self, status, value):
        assert status_to_value(status) == value

    def test_gauge_follows_indicator(self, collector):
        """Test the gauge is re-evaluated on every scrape."""
        indicator = StaticHealth("db")
        HealthMetricsBridge(collector).register("db", indicator)

        assert collector.get_sample_value("firefly_health_status", {"component": "db"}) == 1.0

        indicator.status = HealthStatus.OUT_OF_SERVICE
        assert collector.get_sample_value("firefly_health_status", {"component": "db"}) == -1.0

        indicator.error_rate = 0.5
        assert collector.get_sample_value("firefly_health_status", {"component": "db"}) == 0.0

    def test_bridges_share_the_family(self, collector):
        """Test two bridges on one registry do not clash."""
        HealthMetricsBridge(collector).register("db", StaticHealth("db"))
        HealthMetricsBridge(collector).register("cache", StaticHealth("cache"))

        assert collector.get_sample_value("firefly_health_status", {"component": "db"}) == 1.0
        assert collector.get_sample_value("firefly_health_status", {"component": "cache"}) == 1.0
