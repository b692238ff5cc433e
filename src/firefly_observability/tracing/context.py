"""
Context carrier for the current span.

The current span lives in a `contextvars.ContextVar`, never in
thread-local state. Each traced evaluation runs its computation inside its
own copy of the ambient `contextvars.Context`, and every resume of that
computation is driven through `Context.run`, so the span is visible to
nested code no matter which task or thread resumes it, and never leaks
back into the caller.
"""

from __future__ import annotations

import asyncio
import contextvars
import functools
from collections.abc import Awaitable, Callable, Generator, Iterator
from concurrent.futures import Executor, Future
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, ParamSpec, TypeVar

if TYPE_CHECKING:
    from firefly_observability.tracing.span import Span

T = TypeVar("T")
P = ParamSpec("P")

_current_span: contextvars.ContextVar[Span | None] = contextvars.ContextVar(
    "firefly_current_span", default=None
)


def get_current_span() -> Span | None:
    """Get the span active in the current execution context."""
    return _current_span.get()


def context_with_span(span: Span | None) -> contextvars.Context:
    """
    Copy the ambient context and make `span` current in the copy.

    The ambient context is left untouched.
    """
    context = contextvars.copy_context()
    context.run(_current_span.set, span)
    return context


@contextmanager
def use_span(span: Span | None) -> Iterator[Span | None]:
    """
    Make `span` current for a synchronous block.

    Example:
        ```python
        with use_span(span):
            assert get_current_span() is span
        ```
    """
    token = _current_span.set(span)
    try:
        yield span
    finally:
        _current_span.reset(token)


class _ContextBoundAwaitable:
    """Awaitable that resumes the wrapped awaitable only inside `context`."""

    __slots__ = ("_awaitable", "_context")

    def __init__(self, awaitable: Awaitable[Any], context: contextvars.Context) -> None:
        self._awaitable = awaitable
        self._context = context

    def __await__(self) -> Generator[Any, Any, Any]:
        context = self._context
        iterator = context.run(self._awaitable.__await__)
        to_send: Any = None
        to_throw: BaseException | None = None
        while True:
            try:
                if to_throw is not None:
                    error, to_throw = to_throw, None
                    yielded = context.run(iterator.throw, error)
                else:
                    yielded = context.run(iterator.send, to_send)
            except StopIteration as stop:
                return stop.value
            try:
                to_send = yield yielded
            except GeneratorExit:
                close = getattr(iterator, "close", None)
                if close is not None:
                    context.run(close)
                raise
            except BaseException as e:
                to_send, to_throw = None, e


def bind_context(awaitable: Awaitable[T], context: contextvars.Context) -> Awaitable[T]:
    """
    Wrap `awaitable` so that every step of it runs inside `context`.

    Sends, thrown exceptions (including `asyncio.CancelledError`) and close
    are forwarded unchanged; only the context differs.
    """
    return _ContextBoundAwaitable(awaitable, context)


async def run_in_executor(
    executor: Executor | None,
    fn: Callable[P, T],
    /,
    *args: P.args,
    **kwargs: P.kwargs,
) -> T:
    """
    Run `fn` in `executor` with the caller's context (current span included).

    `loop.run_in_executor` alone does not carry context variables into the
    worker thread.
    """
    loop = asyncio.get_running_loop()
    context = contextvars.copy_context()
    call = functools.partial(context.run, fn, *args, **kwargs)
    return await loop.run_in_executor(executor, call)


class ContextPropagatingExecutor(Executor):
    """
    Executor wrapper that runs each task in the submitter's context.

    Example:
        ```python
        pool = ContextPropagatingExecutor(ThreadPoolExecutor(max_workers=4))
        future = pool.submit(get_current_span)
        ```
    """

    def __init__(self, delegate: Executor) -> None:
        self._delegate = delegate

    @property
    def delegate(self) -> Executor:
        return self._delegate

    def submit(self, fn: Callable[..., T], /, *args: Any, **kwargs: Any) -> Future[T]:
        context = contextvars.copy_context()
        return self._delegate.submit(context.run, fn, *args, **kwargs)

    def shutdown(self, wait: bool = True, *, cancel_futures: bool = False) -> None:
        self._delegate.shutdown(wait=wait, cancel_futures=cancel_futures)
