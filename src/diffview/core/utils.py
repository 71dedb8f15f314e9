"""Core utility helpers: background tasks, call coalescing and map helpers."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Coroutine, Iterable, Mapping

_T = TypeVar("_T")
_K = TypeVar("_K")
_V = TypeVar("_V")
log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Background tasks
# ---------------------------------------------------------------------------


class BackgroundTasks:
    """Track fire-and-forget tasks and route their failures to a handler."""

    def __init__(self, on_error: Callable[[BaseException], None] | None = None) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()
        self._on_error = on_error

    def register(self, task: asyncio.Task[_T]) -> asyncio.Task[_T]:
        """Register an existing task and remove it once it completes."""
        self._tasks.add(task)

        def _on_done(done_task: asyncio.Task[object]) -> None:
            self._tasks.discard(done_task)
            if done_task.cancelled():
                return
            exc = done_task.exception()
            if exc is None:
                return
            log.error(
                "Background task failed",
                extra={"task_name": done_task.get_name()},
                exc_info=(type(exc), exc, exc.__traceback__),
            )
            if self._on_error is not None:
                self._on_error(exc)

        task.add_done_callback(_on_done)
        return task

    def spawn(
        self,
        coro: Coroutine[Any, Any, _T],
        *,
        name: str | None = None,
    ) -> asyncio.Task[_T]:
        """Create and register a background task."""
        return self.register(asyncio.create_task(coro, name=name))

    @property
    def pending(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    async def drain(self) -> None:
        """Wait until no tracked task is left, including ones spawned meanwhile."""
        while True:
            pending = [task for task in self._tasks if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    def cancel_all(self) -> None:
        for task in self._tasks:
            if not task.done():
                task.cancel()

    async def shutdown(self, *, timeout: float = 2.0) -> None:
        """Cancel tracked tasks and wait briefly for graceful completion."""
        pending = [task for task in self._tasks if not task.done()]
        if not pending:
            return

        for task in pending:
            task.cancel()

        done, _pending = await asyncio.wait(pending, timeout=timeout)
        if done:
            await asyncio.gather(*done, return_exceptions=True)


# ---------------------------------------------------------------------------
# Call coalescing
# ---------------------------------------------------------------------------


def serialize_async_call(
    func: Callable[[], Awaitable[_T]],
) -> Callable[[], asyncio.Future[_T]]:
    """Wrap ``func`` so that at most one call runs at a time.

    Calls made while a run is in flight do not queue up: they share a single
    follow-up run that starts once the current one finishes. Every caller gets a
    future for the run that will reflect its request.
    """
    running: asyncio.Future[_T] | None = None
    next_run: asyncio.Future[_T] | None = None

    def _start() -> asyncio.Future[_T]:
        nonlocal running
        task = asyncio.ensure_future(func())
        running = task
        task.add_done_callback(_on_done)
        return task

    def _on_done(_task: asyncio.Future[_T]) -> None:
        nonlocal running, next_run
        running = None
        follow_up, next_run = next_run, None
        if follow_up is None or follow_up.done():
            return
        task = _start()
        _chain(task, follow_up)

    def call() -> asyncio.Future[_T]:
        nonlocal next_run
        if running is None:
            return _start()
        if next_run is None:
            next_run = asyncio.get_running_loop().create_future()
        return next_run

    return call


def _chain(source: asyncio.Future[_T], target: asyncio.Future[_T]) -> None:
    def _copy(done: asyncio.Future[_T]) -> None:
        if target.done():
            return
        if done.cancelled():
            target.cancel()
            return
        exc = done.exception()
        if exc is not None:
            target.set_exception(exc)
        else:
            target.set_result(done.result())

    source.add_done_callback(_copy)


# ---------------------------------------------------------------------------
# Maps and paths
# ---------------------------------------------------------------------------


def map_union(*maps: Mapping[_K, _V]) -> dict[_K, _V]:
    """Merge maps left to right; later maps win on shared keys."""
    merged: dict[_K, _V] = {}
    for mapping in maps:
        merged.update(mapping)
    return merged


def map_filter(mapping: Mapping[_K, _V], selector: Callable[[_K], bool]) -> dict[_K, _V]:
    return {key: value for key, value in mapping.items() if selector(key)}


def path_contains(root: str, path: str) -> bool:
    """Whether ``path`` is ``root`` itself or lies under it."""
    if not root:
        return False
    normalized_root = os.path.normpath(root)
    normalized_path = os.path.normpath(path)
    if normalized_path == normalized_root:
        return True
    return normalized_path.startswith(normalized_root.rstrip(os.sep) + os.sep)


def first_contained(paths: Iterable[str], parent: str) -> str | None:
    return next((path for path in paths if path_contains(parent, path)), None)


def convert_newlines(message: str) -> str:
    """Turn literal ``\\n`` sequences into real line breaks."""
    return message.replace("\\n", "\n")
