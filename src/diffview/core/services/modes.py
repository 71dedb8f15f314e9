"""View mode plus the commit and publish sub-state machines."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from diffview.core.errors import HeadCommitMessageError, NoActiveRepositoryError
from diffview.core.events import Signal
from diffview.core.models.enums import (
    CommitMode,
    CommitModeState,
    PublishMode,
    PublishModeState,
    ViewMode,
    view_mode_to_diff_option,
)
from diffview.core.services.changes import (
    aggregate_dirty_changes,
    aggregate_selected_changes,
    filter_selected_changes,
)
from diffview.core.services.review import get_revision_update_message
from diffview.core.utils import convert_newlines

if TYPE_CHECKING:
    from collections.abc import Mapping

    from diffview.core.events import CallbackDisposable
    from diffview.core.models.entities import ReviewRef
    from diffview.core.models.enums import FileChangeStatus
    from diffview.core.ports import Notifier, ReviewReferenceParser
    from diffview.core.services.registry import RepositoryRegistry
    from diffview.core.store import StateStore
    from diffview.core.utils import BackgroundTasks

log = logging.getLogger(__name__)


class ModeController:
    """Owns the view mode and the state derived from it.

    Keeps the filtered change maps current and loads the commit or publish
    message for the mode being shown. ``comparison_changed`` fires whenever the
    basis the open file is diffed against may have moved.
    """

    def __init__(
        self,
        store: StateStore,
        registry: RepositoryRegistry,
        notifier: Notifier,
        parse_review_reference: ReviewReferenceParser,
        tasks: BackgroundTasks,
    ) -> None:
        self._store = store
        self._registry = registry
        self._notifier = notifier
        self._parse_review_reference = parse_review_reference
        self._tasks = tasks
        self.comparison_changed = Signal("comparison-changed")
        self._subscriptions: list[CallbackDisposable] = [
            registry.dirty_changes_updated.subscribe(self.update_dirty_changed_status),
            registry.selected_changes_updated.subscribe(self.update_selected_file_changes),
            registry.reconciled.subscribe(self.refresh_change_maps),
            registry.active_stack_changed.subscribe(lambda _: self.update_selected_file_changes()),
        ]

    # ------------------------------------------------------------------
    # Filtered change view
    # ------------------------------------------------------------------

    def refresh_change_maps(self) -> None:
        self.update_view_changed_files_status()

    def update_dirty_changed_status(self) -> None:
        self.update_view_changed_files_status(dirty=aggregate_dirty_changes(self._registry.stacks))

    def update_selected_file_changes(self) -> None:
        self.update_view_changed_files_status(
            selected=aggregate_selected_changes(self._registry.stacks)
        )

    def update_view_changed_files_status(
        self,
        dirty: Mapping[str, FileChangeStatus] | None = None,
        selected: Mapping[str, FileChangeStatus] | None = None,
    ) -> None:
        if dirty is None:
            dirty = aggregate_dirty_changes(self._registry.stacks)
        if selected is None:
            selected = aggregate_selected_changes(self._registry.stacks)
        state = self._store.state
        active = self._registry.active_stack
        active_root = active.get_repository().get_project_directory() if active else None
        filtered = filter_selected_changes(selected, state.view_mode, active_root)
        self._store.set_state(
            replace(
                state,
                dirty_file_changes=dict(dirty),
                selected_file_changes=filtered.selected_file_changes,
                show_non_hg_repos=filtered.show_non_hg_repos,
            )
        )

    # ------------------------------------------------------------------
    # Mode transitions
    # ------------------------------------------------------------------

    def set_view_mode(self, view_mode: ViewMode, load_mode_state: bool = True) -> None:
        diff_option = view_mode_to_diff_option(view_mode)
        if view_mode == self._store.state.view_mode:
            return
        log.debug("Switching view mode to %s", view_mode)
        self._store.set_state(replace(self._store.state, view_mode=view_mode))
        active = self._registry.active_stack
        if active is not None:
            active.set_diff_option(diff_option)
        self.update_view_changed_files_status()
        if load_mode_state:
            self.load_mode_state(reset_state=False)
        self.comparison_changed.emit()

    def set_commit_mode(self, commit_mode: CommitMode, load_mode_state: bool = True) -> None:
        if self._store.state.commit_mode == commit_mode:
            return
        log.debug("Switching commit mode to %s", commit_mode)
        self._store.set_state(
            replace(self._store.state, commit_mode=commit_mode, commit_message=None)
        )
        if load_mode_state:
            self.load_mode_state(reset_state=True)
        self.comparison_changed.emit()

    def set_commit_message(self, commit_message: str | None) -> None:
        self._store.set_state(replace(self._store.state, commit_message=commit_message))

    def set_publish_message(self, publish_message: str | None) -> None:
        self._store.set_state(replace(self._store.state, publish_message=publish_message))

    def set_should_rebase_on_amend(self, should_rebase_on_amend: bool) -> None:
        self._store.set_state(
            replace(self._store.state, should_rebase_on_amend=should_rebase_on_amend)
        )

    def load_mode_state(self, reset_state: bool) -> None:
        """Reload the message backing the current mode in the background."""
        if reset_state:
            self._store.set_state(
                replace(self._store.state, commit_message=None, publish_message=None)
            )
        match self._store.state.view_mode:
            case ViewMode.COMMIT:
                self._tasks.spawn(self.load_commit_mode_state(), name="load-commit-mode-state")
            case ViewMode.PUBLISH:
                self._tasks.spawn(self.load_publish_mode_state(), name="load-publish-mode-state")
            case _:
                pass

    # ------------------------------------------------------------------
    # Commit sub-state machine
    # ------------------------------------------------------------------

    async def load_commit_mode_state(self) -> None:
        self._store.set_state(
            replace(
                self._store.state,
                commit_mode_state=CommitModeState.LOADING_COMMIT_MESSAGE,
            )
        )
        commit_message: str | None = None
        try:
            state = self._store.state
            if state.commit_message is not None:
                commit_message = state.commit_message
            elif state.commit_mode == CommitMode.COMMIT:
                commit_message = await self._load_template_commit_message()
            else:
                commit_message = await self._load_latest_commit_message()
        except Exception as error:  # quality-allow-broad-except
            self._notifier.internal_error(error)
        finally:
            self._store.set_state(
                replace(
                    self._store.state,
                    commit_message=commit_message,
                    commit_mode_state=CommitModeState.READY,
                )
            )

    async def _load_template_commit_message(self) -> str | None:
        active = self._registry.active_stack
        if active is None:
            raise NoActiveRepositoryError("Diff View: No active file or repository open")
        message = await active.get_repository().get_template_commit_message()
        if message is not None:
            message = convert_newlines(message)
        return message

    async def _load_latest_commit_message(self) -> str:
        if self._registry.active_stack is None:
            raise NoActiveRepositoryError("Diff View: No active file or repository open")
        message = await self.get_active_head_commit_message()
        if message is None:
            raise HeadCommitMessageError
        return message

    # ------------------------------------------------------------------
    # Publish sub-state machine
    # ------------------------------------------------------------------

    async def load_publish_mode_state(self) -> None:
        if self._store.state.publish_mode_state == PublishModeState.AWAITING_PUBLISH:
            # A publish-triggered amend changed the history; the publish owns the state.
            return
        publish_message = self._store.state.publish_message
        self._store.set_state(
            replace(
                self._store.state,
                publish_mode=PublishMode.CREATE,
                publish_mode_state=PublishModeState.LOADING_PUBLISH_MESSAGE,
                publish_message=None,
                head_commit_message=None,
            )
        )
        try:
            head_commit_message, review = await self.get_active_head_commit_details()
        except Exception:
            self._store.set_state(
                replace(
                    self._store.state,
                    publish_mode_state=PublishModeState.READY,
                    publish_message=publish_message,
                )
            )
            raise
        if not publish_message:
            publish_message = (
                get_revision_update_message(review) if review is not None else head_commit_message
            )
        self._store.set_state(
            replace(
                self._store.state,
                publish_mode=PublishMode.UPDATE if review is not None else PublishMode.CREATE,
                publish_mode_state=PublishModeState.READY,
                publish_message=publish_message,
                head_commit_message=head_commit_message,
            )
        )

    async def get_active_head_commit_details(self) -> tuple[str, ReviewRef | None]:
        head_commit_message = await self.get_active_head_commit_message()
        if head_commit_message is None:
            raise HeadCommitMessageError
        return head_commit_message, self._parse_review_reference(head_commit_message)

    async def get_active_head_commit_message(self) -> str | None:
        active = self._registry.active_stack
        if active is None or not self._registry.is_active:
            return None
        return await active.get_repository().get_head_commit_message()

    def dispose(self) -> None:
        for subscription in self._subscriptions:
            subscription.dispose()
        self._subscriptions.clear()
