"""Single-record state store with a synchronous change signal."""

from __future__ import annotations

from typing import TYPE_CHECKING

from diffview.core.events import Signal
from diffview.core.models.entities import ViewState

if TYPE_CHECKING:
    from collections.abc import Callable

    from diffview.core.events import CallbackDisposable


class StateStore:
    """Holds the current :class:`ViewState`.

    ``set_state`` replaces the whole record and then notifies every subscriber
    before returning. Subscribers get no payload and re-read ``get_state()``.
    """

    def __init__(self, initial: ViewState | None = None) -> None:
        self._state = initial if initial is not None else ViewState()
        self._did_update = Signal("did-update-state")

    def get_state(self) -> ViewState:
        return self._state

    @property
    def state(self) -> ViewState:
        return self._state

    def set_state(self, next_state: ViewState) -> None:
        self._state = next_state
        self._did_update.emit()

    def on_did_update(self, callback: Callable[[], None]) -> CallbackDisposable:
        return self._did_update.subscribe(callback)

    def dispose(self) -> None:
        self._did_update.clear()
