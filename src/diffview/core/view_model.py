"""Diff view model: the single entry point UI code talks to."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from diffview.core.config import DiffViewConfig
from diffview.core.errors import NoActiveRepositoryError, PreconditionError
from diffview.core.models.entities import initial_state
from diffview.core.models.enums import ViewMode
from diffview.core.services.fetch import DiffFetchOrchestrator
from diffview.core.services.modes import ModeController
from diffview.core.services.registry import RepositoryRegistry
from diffview.core.services.review import parse_review_reference
from diffview.core.services.workflow import PublishCommitWorkflow
from diffview.core.store import StateStore
from diffview.core.utils import BackgroundTasks, first_contained

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from diffview.core.events import CallbackDisposable, Disposable, Emitter
    from diffview.core.models.entities import (
        DiffEntityOptions,
        ProgressMessage,
        RevisionInfo,
        ViewState,
    )
    from diffview.core.models.enums import CommitMode, FileChangeStatus
    from diffview.core.ports import (
        BufferProvider,
        CleanupPrompt,
        DiffSource,
        DiffSourceFactory,
        Notifier,
        ProjectHost,
        ReviewReferenceParser,
        ReviewService,
        UIProvider,
    )

log = logging.getLogger(__name__)


class DiffViewModel:
    """Wires the state store, registry, mode controller, fetcher and workflows.

    Synchronous methods that start asynchronous work schedule it on the running
    event loop. ``wait_idle()`` waits for everything scheduled so far.
    """

    def __init__(
        self,
        host: ProjectHost,
        diff_source_factory: DiffSourceFactory,
        buffers: BufferProvider,
        review_service: ReviewService,
        cleanup_prompt: CleanupPrompt,
        notifier: Notifier,
        *,
        config: DiffViewConfig | None = None,
        parse_review: ReviewReferenceParser = parse_review_reference,
    ) -> None:
        self._config = config or DiffViewConfig()
        self._host = host
        self._notifier = notifier
        self._tasks = BackgroundTasks(on_error=notifier.internal_error)
        self.store = StateStore(
            initial_state(
                should_rebase_on_amend=self._config.general.rebase_on_amend,
                show_non_hg_repos=self._config.ui.show_non_vcs_repos,
            )
        )
        self.registry = RepositoryRegistry(
            self.store,
            host,
            diff_source_factory,
            vcs_type=self._config.general.vcs_type,
        )
        self.modes = ModeController(self.store, self.registry, notifier, parse_review, self._tasks)
        self.fetcher = DiffFetchOrchestrator(
            self.store,
            self.registry,
            buffers,
            self._tasks,
            to_revision_title=self._config.ui.to_revision_title,
        )
        self.workflow = PublishCommitWorkflow(
            self.store,
            self.registry,
            self.modes,
            review_service,
            cleanup_prompt,
            notifier,
            parse_review,
        )
        self._subscriptions: list[Disposable] = [
            self.registry.revisions_state_changed.subscribe(
                lambda stack: self._spawn_revisions_update(stack, reload_file_diff=True)
            ),
            self.registry.active_stack_changed.subscribe(
                lambda stack: self._spawn_revisions_update(stack, reload_file_diff=False)
            ),
            self.modes.comparison_changed.subscribe(self.fetcher.request_update),
        ]
        self.registry.reconcile()
        self._subscriptions.append(host.on_did_change_paths(self.registry.reconcile))

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def get_state(self) -> ViewState:
        return self.store.get_state()

    def on_did_update_state(self, callback: Callable[[], None]) -> CallbackDisposable:
        return self.store.on_did_update(callback)

    async def wait_idle(self) -> None:
        await self._tasks.drain()

    @property
    def pending_tasks(self) -> int:
        return self._tasks.pending

    # ------------------------------------------------------------------
    # Revisions
    # ------------------------------------------------------------------

    def _spawn_revisions_update(self, stack: DiffSource, *, reload_file_diff: bool) -> None:
        self._tasks.spawn(
            self._update_changed_revisions_state(stack, reload_file_diff),
            name="update-revisions-state",
        )

    async def _update_changed_revisions_state(
        self,
        stack: DiffSource,
        reload_file_diff: bool,
    ) -> None:
        if stack is not self.registry.active_stack:
            return
        revisions_state = await stack.get_cached_revisions_state()
        if stack is not self.registry.active_stack:
            return
        self.store.set_state(replace(self.store.state, revisions_state=revisions_state))
        self.modes.load_mode_state(reset_state=True)
        if not self.store.state.file_path or not reload_file_diff:
            return
        self.fetcher.request_update()

    def set_compare_revision(self, revision: RevisionInfo) -> None:
        stack = self.registry.active_stack
        if stack is None:
            raise NoActiveRepositoryError("There must be an active repository stack!")
        self.store.set_state(replace(self.store.state, compare_revision_info=revision))
        self._tasks.spawn(stack.set_compare_revision(revision), name="set-compare-revision")

    # ------------------------------------------------------------------
    # Entities
    # ------------------------------------------------------------------

    def diff_entity(self, options: DiffEntityOptions) -> None:
        """Show a file or directory, optionally switching modes first."""
        diff_path: str | None = None
        if options.file is not None:
            diff_path = options.file
        elif options.directory is not None:
            diff_path = self._find_file_path_to_diff_in_directory(options.directory)

        if diff_path is None:
            repository = self._host.repository_for_path(options.file or options.directory or "")
            stack = (
                self.registry.stack_for_repository(repository)
                if self.registry.is_supported(repository)
                else None
            )
            if stack is not None:
                self.registry.set_active_stack(stack)
            elif self.registry.active_stack is None:
                raise NoActiveRepositoryError(
                    f"No active repository stack and non-diffable entity: {options!r}"
                )
            else:
                log.error("Non diffable entity: %r", options)

        view_mode, commit_mode = options.view_mode, options.commit_mode
        state = self.store.state
        if view_mode != state.view_mode or commit_mode != state.commit_mode:
            if view_mode == ViewMode.COMMIT:
                if commit_mode is None:
                    raise PreconditionError("DIFF: Commit Mode not set!")
                self.modes.set_view_mode(ViewMode.COMMIT, load_mode_state=False)
                self.modes.set_commit_mode(commit_mode, load_mode_state=False)
                self.modes.load_mode_state(reset_state=True)
            elif view_mode is not None:
                self.modes.set_view_mode(view_mode)

        if diff_path is not None:
            # Opened after the mode switch so the fetch compares against the right basis.
            self.fetcher.open_file(diff_path)

    def _find_file_path_to_diff_in_directory(self, directory: str) -> str | None:
        stack = self.registry.stack_for_path(directory)
        project_directory = stack.get_repository().get_project_directory()
        dirty_paths = list(stack.get_dirty_file_changes())
        return first_contained(dirty_paths, directory) or first_contained(
            dirty_paths, project_directory
        )

    # ------------------------------------------------------------------
    # Modes and messages
    # ------------------------------------------------------------------

    def set_view_mode(self, view_mode: ViewMode, load_mode_state: bool = True) -> None:
        self.modes.set_view_mode(view_mode, load_mode_state)

    def set_commit_mode(self, commit_mode: CommitMode, load_mode_state: bool = True) -> None:
        self.modes.set_commit_mode(commit_mode, load_mode_state)

    def set_commit_message(self, commit_message: str | None) -> None:
        self.modes.set_commit_message(commit_message)

    def set_publish_message(self, publish_message: str | None) -> None:
        self.modes.set_publish_message(publish_message)

    def set_should_rebase_on_amend(self, should_rebase_on_amend: bool) -> None:
        self.modes.set_should_rebase_on_amend(should_rebase_on_amend)

    def get_active_stack_dirty_file_changes(self) -> Mapping[str, FileChangeStatus]:
        return self.registry.get_active_stack_dirty_file_changes()

    # ------------------------------------------------------------------
    # Active file
    # ------------------------------------------------------------------

    def set_new_contents(self, new_contents: str) -> None:
        self.fetcher.set_new_contents(new_contents)

    def is_active_buffer_modified(self) -> bool:
        return self.fetcher.is_active_buffer_modified()

    def on_did_active_buffer_change_modified(
        self,
        callback: Callable[[], None],
    ) -> CallbackDisposable:
        return self.fetcher.active_buffer_change_modified.subscribe(callback)

    def set_ui_providers(self, ui_providers: list[UIProvider]) -> None:
        self.fetcher.set_ui_providers(ui_providers)

    async def save_active_file(self) -> None:
        try:
            await self.fetcher.save_active_file()
        except Exception as error:  # quality-allow-broad-except
            self._notifier.internal_error(error)

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------

    async def commit(self, message: str) -> None:
        await self.workflow.commit(message)

    async def publish_diff(self, publish_message: str, lint_excuse: str | None = None) -> None:
        await self.workflow.publish_diff(publish_message, lint_excuse)

    @property
    def publish_updates(self) -> Emitter[ProgressMessage]:
        return self.workflow.publish_updates

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def activate(self) -> None:
        self.registry.activate()

    def deactivate(self) -> None:
        self.registry.deactivate()
        self.fetcher.clear_active_file()

    def dispose(self) -> None:
        for subscription in self._subscriptions:
            subscription.dispose()
        self._subscriptions.clear()
        self.registry.dispose()
        self.fetcher.dispose()
        self.modes.dispose()
        self._tasks.cancel_all()
        self.store.dispose()

    async def aclose(self) -> None:
        self.dispose()
        await self._tasks.shutdown()
