"""
TracingSupport - Bind a span's lifetime to an asynchronous computation.

Two computation shapes are supported:

- one-shot: a coroutine function (or any callable returning an awaitable),
  or an awaitable object
- many-shot: an async generator function (or any callable returning an
  async iterable), or an async iterable

Each evaluation of a traced computation gets its own span and its own
copy of the execution context. The span is stopped exactly once, as
completed, error or cancelled, before the terminal signal reaches the
consumer.

Example:
    ```python
    support = TracingSupport(registry)

    create = support.trace(
        "orders.create",
        create_order,
        KeyValues.of({"command.type": "CreateOrder"}),
        KeyValues.of(order_id=order_id),
    )
    order = await create(payload)

    async for row in support.trace_stream("orders.export", export_rows)():
        ...
    ```
"""

from __future__ import annotations

import asyncio
import contextvars
import functools
import inspect
import logging
import threading
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable, Generator
from typing import Any, TypeVar

from firefly_observability.tracing.context import (
    bind_context,
    context_with_span,
    get_current_span,
)
from firefly_observability.tracing.keyvalues import InvalidKeyValueError, KeyValues, TagInput
from firefly_observability.tracing.registry import NOOP_REGISTRY, ObservationRegistry
from firefly_observability.tracing.span import Span, SpanOutcome

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SpanLifecycle:
    """
    The single terminal transition of a started span.

    Success, failure and cancellation all go through `terminate`; only the
    first call has an effect.
    """

    __slots__ = ("span", "_gate")

    def __init__(self, span: Span) -> None:
        self.span = span
        self._gate = threading.Lock()

    @property
    def terminated(self) -> bool:
        return self._gate.locked()

    def terminate(self, outcome: SpanOutcome, error: BaseException | None = None) -> bool:
        """Stop the span with `outcome`. Returns False if already terminated."""
        if not self._gate.acquire(blocking=False):
            return False
        if error is not None:
            self.span.record_error(error)
        self.span.stop(outcome)
        return True

    def complete(self) -> bool:
        return self.terminate(SpanOutcome.COMPLETED)

    def fail(self, error: BaseException) -> bool:
        return self.terminate(SpanOutcome.ERROR, error)

    def cancel(self) -> bool:
        return self.terminate(SpanOutcome.CANCELLED)


def _validate(
    name: str, low_cardinality: TagInput, high_cardinality: TagInput
) -> tuple[KeyValues, KeyValues]:
    if not isinstance(name, str) or not name.strip():
        raise ValueError(f"Span name must be a non-empty string, got {name!r}")
    low = KeyValues.coerce(low_cardinality)
    high = KeyValues.coerce(high_cardinality)
    overlap = set(low.keys()) & set(high.keys())
    if overlap:
        raise InvalidKeyValueError(
            f"Tags cannot be both low and high cardinality: {', '.join(sorted(overlap))}"
        )
    return low, high


async def _close_source(
    iterator: AsyncIterator[Any] | None, context: contextvars.Context
) -> None:
    aclose = getattr(iterator, "aclose", None)
    if aclose is not None:
        await bind_context(context.run(aclose), context)


class _TracedAwaitable:
    """Awaitable whose every `await` is a separately traced evaluation."""

    __slots__ = ("_support", "_name", "_low", "_high", "_awaitable")

    def __init__(
        self,
        support: TracingSupport,
        name: str,
        low: KeyValues,
        high: KeyValues,
        awaitable: Awaitable[Any],
    ) -> None:
        self._support = support
        self._name = name
        self._low = low
        self._high = high
        self._awaitable = awaitable

    def __await__(self) -> Generator[Any, Any, Any]:
        evaluation = self._support._observe(
            self._name, self._low, self._high, lambda: self._awaitable, (), {}
        )
        return evaluation.__await__()


class _TracedAsyncIterable:
    """Async iterable whose every iteration is a separately traced evaluation."""

    __slots__ = ("_support", "_name", "_low", "_high", "_iterable")

    def __init__(
        self,
        support: TracingSupport,
        name: str,
        low: KeyValues,
        high: KeyValues,
        iterable: AsyncIterable[Any],
    ) -> None:
        self._support = support
        self._name = name
        self._low = low
        self._high = high
        self._iterable = iterable

    def __aiter__(self) -> AsyncIterator[Any]:
        return self._support._observe_stream(
            self._name, self._low, self._high, lambda: self._iterable, (), {}
        )


class TracingSupport:
    """
    Wraps one-shot and many-shot async computations with spans.

    When the registry is missing or is a no-op, every wrap returns the
    computation itself.
    """

    def __init__(self, registry: ObservationRegistry | None = None) -> None:
        self._registry = registry

    @property
    def registry(self) -> ObservationRegistry | None:
        return self._registry

    @property
    def enabled(self) -> bool:
        return self._registry is not None and not self._registry.is_noop

    # === One-shot ===

    def trace(
        self,
        name: str,
        operation: Callable[..., Awaitable[T]] | Awaitable[T],
        low_cardinality: TagInput = None,
        high_cardinality: TagInput = None,
    ) -> Any:
        """
        Trace a single-value computation.

        Args:
            name: Span name
            operation: Coroutine function / callable returning an awaitable,
                or an awaitable
            low_cardinality: Aggregatable tags
            high_cardinality: Per-trace detail tags

        Returns:
            A computation of the same shape as `operation`, or `operation`
            itself when tracing is disabled.

        Raises:
            ValueError: If the name or a tag is malformed
            TypeError: If `operation` is a stream
        """
        low, high = _validate(name, low_cardinality, high_cardinality)
        if inspect.isasyncgenfunction(operation) or (
            not callable(operation) and isinstance(operation, AsyncIterable)
        ):
            raise TypeError(f"'{name}' is a stream; use trace_stream()")
        if not callable(operation) and not inspect.isawaitable(operation):
            raise TypeError(f"Cannot trace {type(operation).__name__}: not awaitable")

        if not self.enabled:
            return operation

        if not callable(operation):
            return _TracedAwaitable(self, name, low, high, operation)

        @functools.wraps(operation)
        async def traced_call(*args: Any, **kwargs: Any) -> T:
            return await self._observe(name, low, high, operation, args, kwargs)

        return traced_call

    async def _observe(
        self,
        name: str,
        low: KeyValues,
        high: KeyValues,
        operation: Callable[..., Awaitable[T]],
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> T:
        span, context = self._open(name, low, high)
        lifecycle = SpanLifecycle(span)
        try:
            awaitable = context.run(operation, *args, **kwargs)
            if not inspect.isawaitable(awaitable):
                raise TypeError(
                    f"'{name}' returned {type(awaitable).__name__}, expected an awaitable"
                )
            result = await bind_context(awaitable, context)
        except (asyncio.CancelledError, GeneratorExit):
            lifecycle.cancel()
            raise
        except BaseException as e:
            lifecycle.fail(e)
            raise
        lifecycle.complete()
        return result

    # === Many-shot ===

    def trace_stream(
        self,
        name: str,
        stream: Callable[..., AsyncIterable[T]] | AsyncIterable[T],
        low_cardinality: TagInput = None,
        high_cardinality: TagInput = None,
    ) -> Any:
        """
        Trace a multi-value computation with one span for the whole sequence.

        Items pass through unchanged. Consumers that stop early should close
        the iterator (`contextlib.aclosing`) so the span stops promptly.

        Returns:
            A computation of the same shape as `stream`, or `stream` itself
            when tracing is disabled.

        Raises:
            ValueError: If the name or a tag is malformed
            TypeError: If `stream` is a one-shot computation
        """
        low, high = _validate(name, low_cardinality, high_cardinality)
        if inspect.iscoroutinefunction(stream) or inspect.isawaitable(stream):
            raise TypeError(f"'{name}' is a one-shot computation; use trace()")
        if not callable(stream) and not isinstance(stream, AsyncIterable):
            raise TypeError(f"Cannot trace {type(stream).__name__}: not an async iterable")

        if not self.enabled:
            return stream

        if not callable(stream):
            return _TracedAsyncIterable(self, name, low, high, stream)

        @functools.wraps(stream)
        def traced_call(*args: Any, **kwargs: Any) -> AsyncIterator[T]:
            return self._observe_stream(name, low, high, stream, args, kwargs)

        return traced_call

    async def _observe_stream(
        self,
        name: str,
        low: KeyValues,
        high: KeyValues,
        source: Callable[..., AsyncIterable[T]],
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> AsyncIterator[T]:
        span, context = self._open(name, low, high)
        lifecycle = SpanLifecycle(span)
        iterator: AsyncIterator[T] | None = None
        try:
            iterator = context.run(lambda: aiter(source(*args, **kwargs)))
            while True:
                try:
                    item = await bind_context(context.run(iterator.__anext__), context)
                except StopAsyncIteration:
                    break
                yield item
        except (asyncio.CancelledError, GeneratorExit):
            lifecycle.cancel()
            await _close_source(iterator, context)
            raise
        except BaseException as e:
            lifecycle.fail(e)
            # Errors thrown in by the consumer leave the source suspended
            await _close_source(iterator, context)
            raise
        lifecycle.complete()

    # === Shared ===

    def _open(
        self, name: str, low: KeyValues, high: KeyValues
    ) -> tuple[Span, contextvars.Context]:
        registry = self._registry
        if registry is None:
            raise RuntimeError("Cannot open a span without a registry")
        span = registry.create_span(name, low, high, parent=get_current_span())
        context = context_with_span(span)
        span.start()
        context.run(registry._enter_scope, span)
        logger.debug("Started span '%s' (%s)", name, span.span_id)
        return span, context

    @staticmethod
    async def current_span() -> Span | None:
        """
        Look up the span active in the current execution context.

        Returns None outside any traced scope.
        """
        return get_current_span()


# === Module-level API ===


_default_support: TracingSupport = TracingSupport(NOOP_REGISTRY)


def get_tracing_support() -> TracingSupport:
    """Get the process-wide default TracingSupport (no-op until configured)."""
    return _default_support


def set_tracing_support(support: TracingSupport) -> None:
    """Replace the process-wide default TracingSupport."""
    global _default_support
    _default_support = support


def traced(
    name: str | None = None,
    *,
    low_cardinality: TagInput = None,
    high_cardinality: TagInput = None,
    support: TracingSupport | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Decorator tracing a coroutine function or an async generator function.

    Without an explicit `support`, the default TracingSupport is looked up
    at call time, so functions decorated at import time pick up a support
    configured later.

    Example:
        ```python
        @traced("orders.create", low_cardinality={"command.type": "CreateOrder"})
        async def create_order(payload): ...

        @traced("orders.export")
        async def export_rows():
            yield ...
        ```
    """
    low, high = _validate(name or "unnamed", low_cardinality, high_cardinality)

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        span_name = name or fn.__qualname__

        if inspect.isasyncgenfunction(fn):

            @functools.wraps(fn)
            def stream_wrapper(*args: Any, **kwargs: Any) -> AsyncIterator[Any]:
                target = support or get_tracing_support()
                return target.trace_stream(span_name, fn, low, high)(*args, **kwargs)

            return stream_wrapper

        if inspect.iscoroutinefunction(fn):

            @functools.wraps(fn)
            async def wrapper(*args: Any, **kwargs: Any) -> Any:
                target = support or get_tracing_support()
                return await target.trace(span_name, fn, low, high)(*args, **kwargs)

            return wrapper

        raise TypeError(
            f"@traced requires a coroutine or async generator function, got {fn!r}"
        )

    return decorator
