"""
ObservationRegistry - Creates spans and fans their lifecycle out to handlers.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from firefly_observability.tracing.keyvalues import KeyValues, TagInput
from firefly_observability.tracing.span import Span, SpanContext

logger = logging.getLogger(__name__)


@runtime_checkable
class SpanHandler(Protocol):
    """
    Protocol for span lifecycle handlers.

    Implement this protocol to ship spans somewhere (a tracing backend,
    logs, an in-memory list for tests).

    Handlers may also define `on_scope(span)`. It is called inside the
    context a traced computation runs in, right after `on_start`, so a
    handler can make its own notion of the span current there.

    Example:
        ```python
        class PrintHandler:
            def on_start(self, span: Span) -> None:
                print("start", span.name)

            def on_error(self, span: Span, error: BaseException) -> None:
                pass

            def on_stop(self, span: Span) -> None:
                print("stop", span.name, span.outcome)
        ```
    """

    def on_start(self, span: Span) -> None: ...

    def on_error(self, span: Span, error: BaseException) -> None: ...

    def on_stop(self, span: Span) -> None: ...


class ObservationRegistry:
    """
    Factory for spans.

    A registry without handlers is a no-op: wrappers skip it entirely, so
    tracing costs nothing until a handler is attached.

    Safe for concurrent use: the handler list is replaced, never mutated
    in place.
    """

    def __init__(self, handlers: Iterable[SpanHandler] = ()) -> None:
        self._handlers: tuple[SpanHandler, ...] = tuple(handlers)
        self._lock = threading.Lock()

    @property
    def handlers(self) -> tuple[SpanHandler, ...]:
        return self._handlers

    @property
    def is_noop(self) -> bool:
        """True when spans created here would be observed by nobody."""
        return not self._handlers

    def add_handler(self, handler: SpanHandler) -> ObservationRegistry:
        """Attach a handler. Returns self for chaining."""
        with self._lock:
            self._handlers = (*self._handlers, handler)
        return self

    def create_span(
        self,
        name: str,
        low_cardinality: TagInput = None,
        high_cardinality: TagInput = None,
        *,
        parent: Span | None = None,
    ) -> Span:
        """
        Create a span that has not been started yet.

        Args:
            name: Span name
            low_cardinality: Aggregatable tags
            high_cardinality: Per-trace detail tags
            parent: Parent span for trace hierarchy

        Raises:
            ValueError: If the name is empty
            InvalidKeyValueError: If a tag is malformed
        """
        if not isinstance(name, str) or not name.strip():
            raise ValueError(f"Span name must be a non-empty string, got {name!r}")
        return Span(
            name=name,
            low_cardinality=KeyValues.coerce(low_cardinality),
            high_cardinality=KeyValues.coerce(high_cardinality),
            context=SpanContext.create(parent.context if parent else None),
            parent=parent,
            _registry=self,
        )

    def _notify(self, method: str, span: Span, *args: object) -> None:
        for handler in self._handlers:
            try:
                getattr(handler, method)(span, *args)
            except Exception:
                logger.exception(
                    "Span handler %r failed in %s for span '%s'",
                    handler,
                    method,
                    span.name,
                )

    def _enter_scope(self, span: Span) -> None:
        """Let handlers install state in the evaluation context of `span`."""
        for handler in self._handlers:
            enter = getattr(handler, "on_scope", None)
            if enter is None:
                continue
            try:
                enter(span)
            except Exception:
                logger.exception(
                    "Span handler %r failed in on_scope for span '%s'", handler, span.name
                )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(handlers={len(self._handlers)})"


class _NoopObservationRegistry(ObservationRegistry):
    """Registry that can never observe anything."""

    @property
    def is_noop(self) -> bool:
        return True

    def add_handler(self, handler: SpanHandler) -> ObservationRegistry:
        raise TypeError("Handlers cannot be added to the no-op registry")


NOOP_REGISTRY: ObservationRegistry = _NoopObservationRegistry()
"""Distinguished registry that makes tracing free."""
