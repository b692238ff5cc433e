"""
Span - A named, timed record of one logical operation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING
from uuid import uuid4

from firefly_observability.tracing.keyvalues import KeyValues

if TYPE_CHECKING:
    from firefly_observability.tracing.registry import ObservationRegistry


class SpanOutcome(StrEnum):
    """Terminal outcome of a span."""

    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"


class SpanStateError(RuntimeError):
    """Raised on an illegal lifecycle transition (double start, double stop)."""


@dataclass(frozen=True, slots=True)
class SpanContext:
    """
    Identifiers that place a span inside a trace.
    """

    trace_id: str
    """Unique ID for the entire trace."""

    span_id: str
    """Unique ID for this span."""

    parent_span_id: str | None = None
    """ID of the parent span, if any."""

    @classmethod
    def create(cls, parent: SpanContext | None = None) -> SpanContext:
        """Create a new span context, optionally as child of parent."""
        return cls(
            trace_id=parent.trace_id if parent else uuid4().hex,
            span_id=uuid4().hex[:16],
            parent_span_id=parent.span_id if parent else None,
        )


@dataclass(eq=False)
class Span:
    """
    A span created by an `ObservationRegistry`.

    A span moves through created -> started -> stopped exactly once.
    Handlers registered on the owning registry are notified on every
    transition.

    Example:
        ```python
        span = registry.create_span("orders.create", KeyValues.of(channel="web"))
        span.start()
        try:
            await create_order()
        except Exception as e:
            span.record_error(e)
            raise
        finally:
            span.stop()
        ```
    """

    name: str
    """Name of the span (e.g., "orders.create")."""

    low_cardinality: KeyValues = field(default_factory=KeyValues.empty)
    """Tags safe for aggregation."""

    high_cardinality: KeyValues = field(default_factory=KeyValues.empty)
    """Tags for per-trace detail only."""

    context: SpanContext = field(default_factory=SpanContext.create)
    """Tracing identifiers."""

    parent: Span | None = field(default=None, repr=False)
    """Parent span, if created inside another span's scope."""

    start_time: datetime | None = None
    end_time: datetime | None = None

    error: BaseException | None = None
    """The recorded failure, if any."""

    outcome: SpanOutcome | None = None
    """Terminal outcome, None while the span has not stopped."""

    _registry: ObservationRegistry | None = field(default=None, repr=False)

    def start(self) -> Span:
        """
        Start the span and notify handlers.

        Raises:
            SpanStateError: If the span was already started
        """
        if self.start_time is not None:
            raise SpanStateError(f"Span '{self.name}' already started")
        self.start_time = datetime.now(UTC)
        if self._registry is not None:
            self._registry._notify("on_start", self)
        return self

    def record_error(self, error: BaseException) -> Span:
        """Attach a failure to the span."""
        if self.end_time is not None:
            raise SpanStateError(f"Span '{self.name}' already stopped")
        self.error = error
        if self._registry is not None:
            self._registry._notify("on_error", self, error)
        return self

    def stop(self, outcome: SpanOutcome | None = None) -> Span:
        """
        Stop the span.

        Args:
            outcome: Terminal outcome. Defaults to ERROR when an error was
                recorded, COMPLETED otherwise.

        Raises:
            SpanStateError: If the span is not started or already stopped
        """
        if self.start_time is None:
            raise SpanStateError(f"Span '{self.name}' was never started")
        if self.end_time is not None:
            raise SpanStateError(f"Span '{self.name}' already stopped")
        if outcome is None:
            outcome = SpanOutcome.ERROR if self.error is not None else SpanOutcome.COMPLETED
        self.outcome = outcome
        self.end_time = datetime.now(UTC)
        if self._registry is not None:
            self._registry._notify("on_stop", self)
        return self

    # === Properties ===

    @property
    def is_started(self) -> bool:
        return self.start_time is not None

    @property
    def is_stopped(self) -> bool:
        return self.end_time is not None

    @property
    def is_recording(self) -> bool:
        """Whether the span is started and not yet stopped."""
        return self.is_started and not self.is_stopped

    @property
    def duration_ms(self) -> float | None:
        """Duration in milliseconds, or None if not stopped."""
        if self.start_time is None or self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds() * 1000

    @property
    def trace_id(self) -> str:
        return self.context.trace_id

    @property
    def span_id(self) -> str:
        return self.context.span_id

    @property
    def parent_span_id(self) -> str | None:
        return self.context.parent_span_id

    def to_dict(self) -> dict[str, object]:
        """Convert to a plain dictionary (for logging and inspection)."""
        return {
            "name": self.name,
            "trace_id": self.trace_id,
            "span_id": self.span_id,
            "parent_span_id": self.parent_span_id,
            "low_cardinality": self.low_cardinality.as_dict(),
            "high_cardinality": self.high_cardinality.as_dict(),
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration_ms": self.duration_ms,
            "outcome": str(self.outcome) if self.outcome else None,
            "error": repr(self.error) if self.error is not None else None,
        }
