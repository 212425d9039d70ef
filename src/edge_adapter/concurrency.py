"""
Async concurrency helpers.

Edge runtimes execute a request on a single cooperative event loop with no
worker threads, so every shared initialization (native module loads, native
logger construction) goes through a "once" primitive that caches the
in-flight attempt itself. Concurrent first callers await the same task
instead of racing duplicate loads.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

T = TypeVar("T")

_UNSET: Any = object()


class AsyncOnce(Generic[T]):
    """
    Run an async initializer at most once and share its outcome.

    The first call to ``get()`` starts the initializer as a task; every later
    or concurrent call awaits that same task. A successful result is kept for
    the lifetime of the instance. A raised exception is re-raised to all
    waiters of that attempt, and the next ``get()`` starts a fresh attempt.

    Example:
        ```python
        loader = AsyncOnce(lambda: load_module("fastly_compute.logger"))
        module = await loader.get()
        ```
    """

    def __init__(self, initializer: Callable[[], Awaitable[T]]):
        self._initializer = initializer
        self._task: asyncio.Future[T] | None = None
        self._value: T = _UNSET

    @property
    def done(self) -> bool:
        """True once a value is available without awaiting."""
        return self._value is not _UNSET

    @property
    def pending(self) -> bool:
        """True while an initialization attempt is in flight."""
        return self._task is not None and not self._task.done()

    @property
    def value(self) -> T:
        if self._value is _UNSET:
            raise RuntimeError("AsyncOnce value requested before initialization completed")
        return self._value

    async def get(self) -> T:
        if self._value is not _UNSET:
            return self._value
        if self._task is None:
            self._task = asyncio.ensure_future(self._run())
        task = self._task
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            # Only the waiter was cancelled; leave the shared attempt running.
            if task.cancelled():
                self._task = None
            raise

    async def _run(self) -> T:
        try:
            value = await self._initializer()
        except BaseException:
            self._task = None
            raise
        self._value = value
        return value

    def reset(self) -> None:
        """Forget any cached value (simulates a cold start)."""
        self._task = None
        self._value = _UNSET


async def maybe_await(value: Any) -> Any:
    """Await ``value`` if it is awaitable, otherwise return it unchanged.

    Native platform objects may expose either sync or async methods.
    """
    if inspect.isawaitable(value):
        return await value
    return value


__all__ = ["AsyncOnce", "maybe_await"]
