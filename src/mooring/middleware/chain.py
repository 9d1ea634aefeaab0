"""
Middleware chain for Mooring.
Implements the Chain of Responsibility pattern with explicit continuations.

Each handler is called as ``handler(context, next)``. Awaiting ``next()``
runs the rest of the chain; returning without calling it ends the chain
and everything scheduled after it.
"""

import inspect
from collections.abc import Awaitable, Coroutine, Iterable
from typing import Any

from mooring.exceptions import DoubleNextError, TypeMismatchError
from mooring.types import Continuation, Handler


def ensure_handler(handler: Any, where: str = "middleware") -> Handler:
    """Return *handler* unchanged, or raise if it is not callable."""
    if not callable(handler):
        raise TypeMismatchError(
            f"{where} must be callable, got {type(handler).__name__}"
        )
    return handler


class MiddlewareChain:
    """
    A compiled, immutable sequence of handlers.

    Building a chain never runs a handler. The chain keeps no per-request
    state, so one instance can be shared by every request.
    """

    __slots__ = ("_handlers",)

    def __init__(self, handlers: Iterable[Handler] = ()) -> None:
        self._handlers: tuple[Handler, ...] = tuple(
            ensure_handler(h) for h in handlers
        )

    @property
    def handlers(self) -> tuple[Handler, ...]:
        return self._handlers

    def __len__(self) -> int:
        return len(self._handlers)

    def __repr__(self) -> str:
        names = ", ".join(getattr(h, "__name__", repr(h)) for h in self._handlers)
        return f"MiddlewareChain([{names}])"

    async def __call__(
        self,
        context: Any,
        on_complete: Continuation | None = None,
    ) -> None:
        """
        Run the chain against *context*.

        *on_complete* is awaited when the last handler calls ``next``.
        """
        await self._run(0, context, on_complete)

    async def _run(
        self,
        index: int,
        context: Any,
        on_complete: Continuation | None,
    ) -> None:
        if index == len(self._handlers):
            if on_complete is not None:
                await on_complete(context)
            return

        handler = self._handlers[index]
        called = False
        pending: Coroutine[Any, Any, None] | None = None

        def next_() -> Awaitable[None]:
            nonlocal called, pending
            if called:
                raise DoubleNextError(
                    f"next() called more than once by "
                    f"{getattr(handler, '__name__', repr(handler))}"
                )
            called = True
            pending = self._run(index + 1, context, on_complete)
            return pending

        try:
            result = handler(context, next_)
            if inspect.isawaitable(result):
                await result
        except BaseException:
            if pending is not None and inspect.getcoroutinestate(pending) == inspect.CORO_CREATED:
                pending.close()
            raise
        # a sync handler may call next() without returning it
        if pending is not None and inspect.getcoroutinestate(pending) == inspect.CORO_CREATED:
            await pending


def compile_chain(handlers: Iterable[Handler]) -> MiddlewareChain:
    """Compile *handlers* into a :class:`MiddlewareChain`."""
    return MiddlewareChain(handlers)
