"""Shared fixtures for firefly-observability tests."""

import pytest
from prometheus_client import CollectorRegistry

from firefly_observability.tracing import (
    ObservationRegistry,
    RecordingSpanHandler,
    TracingSupport,
    get_tracing_support,
    set_tracing_support,
)


@pytest.fixture
def recorder() -> RecordingSpanHandler:
    return RecordingSpanHandler()


@pytest.fixture
def registry(recorder: RecordingSpanHandler) -> ObservationRegistry:
    return ObservationRegistry([recorder])


@pytest.fixture
def support(registry: ObservationRegistry) -> TracingSupport:
    return TracingSupport(registry)


@pytest.fixture
def collector() -> CollectorRegistry:
    """A private Prometheus registry so tests never touch the global one."""
    return CollectorRegistry()


@pytest.fixture(autouse=True)
def restore_default_tracing_support():
    previous = get_tracing_support()
    yield
    set_tracing_support(previous)
