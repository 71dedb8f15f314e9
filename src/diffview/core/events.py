"""Observer registration with disposal handles."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Generic, Protocol, TypeVar

log = logging.getLogger(__name__)


class Disposable(Protocol):
    def dispose(self) -> None: ...


class CallbackDisposable:
    """Runs a teardown callback once, on the first ``dispose()``."""

    def __init__(self, callback: Callable[[], None]) -> None:
        self._callback: Callable[[], None] | None = callback

    @property
    def disposed(self) -> bool:
        return self._callback is None

    def dispose(self) -> None:
        callback, self._callback = self._callback, None
        if callback is not None:
            callback()


class CompositeDisposable:
    """A bag of disposables released together."""

    def __init__(self, *disposables: Disposable) -> None:
        self._disposables: list[Disposable] = list(disposables)
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def add(self, *disposables: Disposable) -> None:
        if self._disposed:
            for disposable in disposables:
                disposable.dispose()
            return
        self._disposables.extend(disposables)

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        disposables, self._disposables = self._disposables, []
        for disposable in disposables:
            disposable.dispose()


T = TypeVar("T")


class Emitter(Generic[T]):
    """Synchronous fan-out of a single typed notification.

    Handlers run in registration order before ``emit`` returns. A failing
    handler is logged and does not stop the others.
    """

    def __init__(self, name: str = "") -> None:
        self._name = name
        self._handlers: list[Callable[[T], None]] = []

    def subscribe(self, handler: Callable[[T], None]) -> CallbackDisposable:
        """Register a handler and return the handle that removes it."""
        self._handlers.append(handler)
        return CallbackDisposable(lambda: self._remove(handler))

    def _remove(self, handler: Callable[[T], None]) -> None:
        self._handlers = [h for h in self._handlers if h is not handler]

    def emit(self, value: T) -> None:
        for handler in list(self._handlers):
            try:
                handler(value)
            except Exception:  # quality-allow-broad-except
                log.exception("Handler for %s failed", self._name or "event")

    @property
    def handler_count(self) -> int:
        return len(self._handlers)

    def clear(self) -> None:
        self._handlers.clear()


class Signal:
    """Payload-free notification: subscribers re-read whatever changed."""

    def __init__(self, name: str = "") -> None:
        self._emitter: Emitter[None] = Emitter(name)

    def subscribe(self, handler: Callable[[], None]) -> CallbackDisposable:
        return self._emitter.subscribe(lambda _: handler())

    def emit(self) -> None:
        self._emitter.emit(None)

    @property
    def handler_count(self) -> int:
        return self._emitter.handler_count

    def clear(self) -> None:
        self._emitter.clear()
