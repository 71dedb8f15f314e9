"""Race-proof retrieval of the diff for the open file."""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

from diffview.core.events import CompositeDisposable, Signal
from diffview.core.models.entities import FileDiffState, initial_file_change_state
from diffview.core.services.review import format_file_diff_revision_title
from diffview.core.utils import serialize_async_call

if TYPE_CHECKING:
    from diffview.core.events import CallbackDisposable
    from diffview.core.models.entities import RevisionInfo, ViewState
    from diffview.core.models.enums import CommitMode, ViewMode
    from diffview.core.ports import BufferProvider, DiffSource, TextBuffer, UIProvider
    from diffview.core.services.registry import RepositoryRegistry
    from diffview.core.store import StateStore
    from diffview.core.utils import BackgroundTasks

log = logging.getLogger(__name__)

DEFAULT_TO_REVISION_TITLE = "Filesystem / Editor"


@dataclass(frozen=True)
class FetchTarget:
    """What a diff fetch was started for."""

    file_path: str
    view_mode: ViewMode
    commit_mode: CommitMode

    @classmethod
    def from_state(cls, state: ViewState) -> FetchTarget:
        return cls(
            file_path=state.file_path,
            view_mode=state.view_mode,
            commit_mode=state.commit_mode,
        )


class DiffFetchOrchestrator:
    """Keeps the diff on screen consistent with the selected file and modes.

    Fetches never block each other. Requests made while a fetch is running are
    coalesced into one follow-up fetch, and a result is dropped on arrival if
    the file path, view mode or commit mode moved while it was in flight.
    """

    def __init__(
        self,
        store: StateStore,
        registry: RepositoryRegistry,
        buffers: BufferProvider,
        tasks: BackgroundTasks,
        *,
        to_revision_title: str = DEFAULT_TO_REVISION_TITLE,
    ) -> None:
        self._store = store
        self._registry = registry
        self._buffers = buffers
        self._tasks = tasks
        self._to_revision_title = to_revision_title
        self._ui_providers: list[UIProvider] = []
        self._active_subscriptions = CompositeDisposable()
        self._serialized_update = serialize_async_call(self._update_active_file_diff)
        self.active_buffer_change_modified = Signal("active-buffer-change-modified")
        self._registry_subscription: CallbackDisposable = registry.active_file_removed.subscribe(
            self._drop_active_subscriptions
        )

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def request_update(self) -> asyncio.Future[None]:
        """Schedule a fetch for the current target, coalescing with one in flight."""
        future = self._serialized_update()
        self._tasks.spawn(self._await(future), name="update-active-file-diff")
        return future

    @staticmethod
    async def _await(future: asyncio.Future[None]) -> None:
        await future

    async def _update_active_file_diff(self) -> None:
        target = FetchTarget.from_state(self._store.state)
        if not target.file_path:
            return
        diff_state = await self.fetch_file_diff(target.file_path)
        if FetchTarget.from_state(self._store.state) != target:
            # Every change to the target schedules a follow-up fetch.
            log.debug("Discarding stale diff for %s", target.file_path)
            return
        await self.update_diff_state(target.file_path, diff_state)

    async def fetch_file_diff(self, file_path: str) -> FileDiffState:
        stack = self._registry.stack_for_path(file_path)
        repository_diff, _ = await asyncio.gather(
            stack.fetch_diff(file_path),
            self._set_active_stack(stack),
        )
        # Read the live side after the committed side so it is the freshest.
        buffer = await self._buffers.load_buffer(file_path)
        return FileDiffState(
            revision_info=repository_diff.revision_info,
            committed_contents=repository_diff.committed_contents,
            filesystem_contents=buffer.get_text(),
        )

    async def _set_active_stack(self, stack: DiffSource) -> None:
        self._registry.set_active_stack(stack)

    # ------------------------------------------------------------------
    # State writes
    # ------------------------------------------------------------------

    async def update_diff_state(self, file_path: str, diff_state: FileDiffState) -> None:
        self._store.set_state(
            replace(
                self._store.state,
                file_path=file_path,
                old_contents=diff_state.committed_contents,
                new_contents=diff_state.filesystem_contents,
                compare_revision_info=diff_state.revision_info,
                from_revision_title=format_file_diff_revision_title(diff_state.revision_info),
                to_revision_title=self._to_revision_title,
            )
        )
        await self.update_inline_components()

    async def update_diff_state_if_changed(
        self,
        file_path: str,
        committed_contents: str,
        filesystem_contents: str,
        revision_info: RevisionInfo,
    ) -> None:
        if self._store.state.file_path != file_path:
            return
        await self.update_diff_state(
            file_path,
            FileDiffState(
                revision_info=revision_info,
                committed_contents=committed_contents,
                filesystem_contents=filesystem_contents,
            ),
        )

    def set_new_contents(self, new_contents: str) -> None:
        self._store.set_state(replace(self._store.state, new_contents=new_contents))

    # ------------------------------------------------------------------
    # Open file
    # ------------------------------------------------------------------

    def open_file(self, file_path: str) -> None:
        """Make ``file_path`` the diffed file and watch its buffer."""
        if file_path == self._store.state.file_path:
            return
        self._store.set_state(
            replace(self._store.state, **{**initial_file_change_state(), "file_path": file_path})
        )
        self._active_subscriptions.dispose()
        self._active_subscriptions = CompositeDisposable()
        buffer = self._buffers.buffer_for_path(file_path)
        self._active_subscriptions.add(
            buffer.on_did_reload(
                lambda: self._tasks.spawn(
                    self._on_active_buffer_reload(file_path, buffer), name="active-buffer-reload"
                )
            ),
            buffer.on_did_destroy(self._on_active_buffer_destroy),
            buffer.on_did_change_modified(self.active_buffer_change_modified.emit),
            # Modified events can arrive before the last edits settle.
            buffer.on_did_stop_changing(self.active_buffer_change_modified.emit),
        )
        log.debug("Opening %s in the diff view", file_path)
        self.request_update()

    async def _on_active_buffer_reload(self, file_path: str, buffer: TextBuffer) -> None:
        state = self._store.state
        if state.compare_revision_info is None:
            return
        await self.update_diff_state_if_changed(
            file_path,
            state.old_contents,
            buffer.get_text(),
            state.compare_revision_info,
        )

    def _on_active_buffer_destroy(self) -> None:
        log.info("Diff view's active buffer was destroyed; the file may have been removed")
        self.clear_active_file()

    def clear_active_file(self) -> None:
        self._drop_active_subscriptions()
        self._store.set_state(replace(self._store.state, **initial_file_change_state()))

    def _drop_active_subscriptions(self) -> None:
        self._active_subscriptions.dispose()
        self._active_subscriptions = CompositeDisposable()

    def is_active_buffer_modified(self) -> bool:
        file_path = self._store.state.file_path
        if not file_path:
            return False
        return self._buffers.buffer_for_path(file_path).is_modified()

    async def save_active_file(self) -> None:
        file_path = self._store.state.file_path
        if not file_path:
            raise OSError("Could not find file buffer to save: no file is open")
        buffer = self._buffers.buffer_for_path(file_path)
        try:
            await buffer.save()
        except Exception as error:
            raise OSError(f"Could not save file buffer: `{file_path}` - {error}") from error

    # ------------------------------------------------------------------
    # Inline components
    # ------------------------------------------------------------------

    def set_ui_providers(self, ui_providers: list[UIProvider]) -> None:
        self._ui_providers = list(ui_providers)
        self._tasks.spawn(self.update_inline_components(), name="update-inline-components")

    async def update_inline_components(self) -> None:
        file_path = self._store.state.file_path
        if not file_path:
            return
        components = await self._fetch_inline_components(file_path)
        if file_path != self._store.state.file_path:
            return
        self._store.set_state(replace(self._store.state, inline_components=tuple(components)))

    async def _fetch_inline_components(self, file_path: str) -> list[Any]:
        component_lists = await asyncio.gather(
            *(provider.compose_ui_elements(file_path) for provider in self._ui_providers)
        )
        return list(itertools.chain.from_iterable(component_lists))

    def dispose(self) -> None:
        self._drop_active_subscriptions()
        self._registry_subscription.dispose()
