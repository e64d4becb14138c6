"""Bounded-concurrency launcher for upload tasks."""

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

TaskFactory = Callable[[], Awaitable[T]]


class ConcurrencyThrottle:
    """Launch task factories in submission order, at most ``limit`` at a time.

    Launched tasks always run to completion. A failing task never cancels its
    siblings, so callers awaiting ``map`` may observe a failure while other
    tasks keep running and keep producing side effects.
    """

    def __init__(self, limit: int) -> None:
        """Initialise the throttle.

        Args:
            limit: Maximum number of outstanding tasks.
        """
        if limit <= 0:
            raise ValueError(f"limit must be a positive integer, got {limit}")
        self._limit = limit
        self._pending: deque[tuple[TaskFactory[Any], asyncio.Future]] = deque()
        self._active: set[asyncio.Task] = set()

    @property
    def limit(self) -> int:
        """Maximum number of outstanding tasks."""
        return self._limit

    @property
    def outstanding(self) -> int:
        """Number of launched tasks that have not settled yet."""
        return len(self._active)

    @property
    def pending(self) -> int:
        """Number of submitted factories still waiting for a slot."""
        return len(self._pending)

    def submit(self, factory: TaskFactory[T]) -> "asyncio.Future[T]":
        """Queue a task factory.

        Args:
            factory: Zero-argument callable returning an awaitable.

        Returns:
            A future settled with the task's result or exception.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[T] = loop.create_future()
        self._pending.append((factory, future))
        self._launch_next()
        return future

    async def map(self, factories: Iterable[TaskFactory[T]]) -> list[T]:
        """Submit every factory and wait for all results.

        Raises the first failure as soon as it happens; remaining tasks keep
        running in the background.
        """
        futures = [self.submit(factory) for factory in factories]
        return list(await asyncio.gather(*futures))

    async def drain(self) -> None:
        """Wait until every submitted task has launched and settled."""
        while self._active or self._pending:
            await asyncio.gather(*self._active, return_exceptions=True)

    def _launch_next(self) -> None:
        while self._pending and len(self._active) < self._limit:
            factory, future = self._pending.popleft()
            try:
                task = asyncio.ensure_future(factory())
            except Exception as exc:
                future.set_exception(exc)
                continue
            self._active.add(task)
            task.add_done_callback(lambda t, f=future: self._settle(t, f))

    def _settle(self, task: asyncio.Task, future: asyncio.Future) -> None:
        self._active.discard(task)
        if not future.done():
            if task.cancelled():
                future.cancel()
            elif task.exception() is not None:
                future.set_exception(task.exception())
            else:
                future.set_result(task.result())
        elif not task.cancelled():
            # Caller gave up on the future; keep the task's exception retrieved
            exc = task.exception()
            if exc is not None:
                logger.debug("Task settled after its result was abandoned: %s", exc)
        self._launch_next()
