"""Repository registry: one diff source per open repository, one active."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from diffview.core.errors import MissingRepositoryStackError, UnsupportedRepositoryError
from diffview.core.events import CompositeDisposable, Emitter, Signal
from diffview.core.models.entities import initial_file_change_state
from diffview.core.models.enums import view_mode_to_diff_option

if TYPE_CHECKING:
    from collections.abc import Mapping

    from diffview.core.models.enums import FileChangeStatus
    from diffview.core.ports import DiffSource, DiffSourceFactory, ProjectHost, Repository
    from diffview.core.store import StateStore

log = logging.getLogger(__name__)


class RepositoryRegistry:
    """Tracks a diff source ("stack") per supported repository.

    At most one stack is active. The active stack is always one of the tracked
    stacks, and whenever any stack is tracked one of them is active.
    """

    def __init__(
        self,
        store: StateStore,
        host: ProjectHost,
        diff_source_factory: DiffSourceFactory,
        *,
        vcs_type: str = "git",
    ) -> None:
        self._store = store
        self._host = host
        self._diff_source_factory = diff_source_factory
        self._vcs_type = vcs_type
        self._stacks: dict[Repository, DiffSource] = {}
        self._subscriptions: dict[Repository, CompositeDisposable] = {}
        self._active_stack: DiffSource | None = None
        self._is_active = False

        self.dirty_changes_updated = Signal("dirty-file-changes-updated")
        self.selected_changes_updated = Signal("selected-file-changes-updated")
        self.revisions_state_changed: Emitter[DiffSource] = Emitter("revisions-state-changed")
        self.active_stack_changed: Emitter[DiffSource] = Emitter("active-stack-changed")
        self.reconciled = Signal("repositories-reconciled")
        self.active_file_removed = Signal("active-file-removed")

    @property
    def vcs_type(self) -> str:
        return self._vcs_type

    @property
    def is_active(self) -> bool:
        return self._is_active

    @property
    def active_stack(self) -> DiffSource | None:
        return self._active_stack

    @property
    def stacks(self) -> list[DiffSource]:
        return list(self._stacks.values())

    def is_supported(self, repository: Repository | None) -> bool:
        return repository is not None and repository.type == self._vcs_type

    def _supported_repositories(self) -> list[Repository]:
        repositories: list[Repository] = []
        for repository in self._host.get_repositories():
            if repository is None or not self.is_supported(repository):
                continue
            if repository not in repositories:
                repositories.append(repository)
        return repositories

    def reconcile(self) -> None:
        """Bring the tracked stacks in line with the host's open repositories."""
        repositories = self._supported_repositories()
        current = set(repositories)

        for repository in list(self._stacks):
            if repository in current:
                continue
            self._remove(repository)

        for repository in repositories:
            if repository not in self._stacks:
                self._create_stack(repository)

        if self._active_stack is None and self._stacks:
            self.set_active_stack(next(iter(self._stacks.values())))

        self.reconciled.emit()

        file_path = self._store.state.file_path
        if file_path and self._host.repository_for_path(file_path) not in current:
            log.info(
                "Diff view's active file belonged to a removed project; clearing the file state"
            )
            self._store.set_state(replace(self._store.state, **initial_file_change_state()))
            self.active_file_removed.emit()

    def _remove(self, repository: Repository) -> None:
        stack = self._stacks.pop(repository)
        if self._active_stack is stack:
            self._active_stack = None
        stack.dispose()
        subscriptions = self._subscriptions.pop(repository, None)
        if subscriptions is not None:
            subscriptions.dispose()
        log.debug("Removed diff source for %s", repository.get_project_directory())

    def _create_stack(self, repository: Repository) -> DiffSource:
        option = view_mode_to_diff_option(self._store.state.view_mode)
        stack = self._diff_source_factory(repository, option)
        subscriptions = CompositeDisposable(
            stack.on_did_update_dirty_file_changes(self.dirty_changes_updated.emit),
            stack.on_did_update_selected_file_changes(self.selected_changes_updated.emit),
            stack.on_did_change_revisions_state(lambda: self.revisions_state_changed.emit(stack)),
        )
        self._stacks[repository] = stack
        self._subscriptions[repository] = subscriptions
        if self._is_active:
            stack.activate()
        log.debug("Tracking diff source for %s", repository.get_project_directory())
        return stack

    def set_active_stack(self, stack: DiffSource) -> bool:
        """Point the registry at ``stack``. Returns whether the pointer moved."""
        if self._active_stack is stack:
            return False
        if stack not in self._stacks.values():
            raise MissingRepositoryStackError("Cannot activate an untracked repository stack")
        self._active_stack = stack
        stack.set_diff_option(view_mode_to_diff_option(self._store.state.view_mode))
        if self._is_active:
            self.active_stack_changed.emit(stack)
        return True

    def stack_for_repository(self, repository: Repository | None) -> DiffSource | None:
        if repository is None:
            return None
        return self._stacks.get(repository)

    def repository_for_path(self, path: str) -> Repository:
        """Supported repository owning ``path``; fails loudly when there is none."""
        repository = self._host.repository_for_path(path)
        if repository is None or not self.is_supported(repository):
            found = repository.type if repository is not None else None
            raise UnsupportedRepositoryError(path, found, self._vcs_type)
        return repository

    def stack_for_path(self, path: str) -> DiffSource:
        repository = self.repository_for_path(path)
        stack = self._stacks.get(repository)
        if stack is None:
            raise MissingRepositoryStackError(
                f"There must be a repository stack for the repository at `{path}`"
            )
        return stack

    def get_active_stack_dirty_file_changes(self) -> Mapping[str, FileChangeStatus]:
        if self._active_stack is None:
            return {}
        return self._active_stack.get_dirty_file_changes()

    def activate(self) -> None:
        self.reconcile()
        self._is_active = True
        for stack in self._stacks.values():
            stack.activate()
        if self._active_stack is not None:
            # Picked while inactive, so nobody has loaded its revisions yet.
            self.active_stack_changed.emit(self._active_stack)

    def deactivate(self) -> None:
        self._is_active = False
        for stack in self._stacks.values():
            stack.deactivate()
        self._active_stack = None

    def dispose(self) -> None:
        for stack in self._stacks.values():
            stack.dispose()
        self._stacks.clear()
        for subscriptions in self._subscriptions.values():
            subscriptions.dispose()
        self._subscriptions.clear()
        self._active_stack = None
        self._is_active = False
