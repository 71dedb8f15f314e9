"""Per-repository change tracking backed by git commands."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from diffview.adapters.git.operations import EMPTY_TREE
from diffview.core.events import Signal
from diffview.core.models.entities import RepositoryDiff, RevisionsState
from diffview.core.models.enums import DiffOption
from diffview.core.utils import BackgroundTasks

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from diffview.adapters.git.operations import GitRepository
    from diffview.core.events import Disposable
    from diffview.core.models.entities import RevisionInfo
    from diffview.core.models.enums import FileChangeStatus

log = logging.getLogger(__name__)


class GitDiffSource:
    """Tracks dirty and selected changes of one git repository.

    ``DIRTY`` compares the working copy to ``HEAD``, ``LAST_COMMIT`` to the
    parent of ``HEAD`` and ``COMPARE_COMMIT`` to the chosen compare revision.
    """

    def __init__(
        self,
        repository: GitRepository,
        diff_option: DiffOption,
        *,
        compare_revision: str = "HEAD",
        revisions_limit: int = 20,
        on_error: Callable[[BaseException], None] | None = None,
    ) -> None:
        self._repository = repository
        self._diff_option = diff_option
        self._compare_revision = compare_revision
        self._revisions_limit = revisions_limit
        self._dirty: dict[str, FileChangeStatus] = {}
        self._selected: dict[str, FileChangeStatus] = {}
        self._revisions_state: RevisionsState | None = None
        self._active = False
        self._tasks = BackgroundTasks(on_error=on_error)
        self._dirty_updated = Signal("dirty-file-changes")
        self._selected_updated = Signal("selected-file-changes")
        self._revisions_changed = Signal("revisions-state")

    def get_repository(self) -> GitRepository:
        return self._repository

    @property
    def diff_option(self) -> DiffOption:
        return self._diff_option

    @property
    def is_active(self) -> bool:
        return self._active

    def get_dirty_file_changes(self) -> Mapping[str, FileChangeStatus]:
        return self._dirty

    def get_selected_file_changes(self) -> Mapping[str, FileChangeStatus]:
        return self._selected

    def on_did_update_dirty_file_changes(self, callback: Callable[[], None]) -> Disposable:
        return self._dirty_updated.subscribe(callback)

    def on_did_update_selected_file_changes(self, callback: Callable[[], None]) -> Disposable:
        return self._selected_updated.subscribe(callback)

    def on_did_change_revisions_state(self, callback: Callable[[], None]) -> Disposable:
        return self._revisions_changed.subscribe(callback)

    async def _base_revision(self) -> str:
        match self._diff_option:
            case DiffOption.DIRTY:
                return "HEAD"
            case DiffOption.LAST_COMMIT:
                parent = await self._repository.resolve_revision("HEAD~1")
                return parent or EMPTY_TREE
            case DiffOption.COMPARE_COMMIT:
                return self._compare_revision

    async def refresh(self) -> None:
        """Re-read dirty and selected changes from the working copy."""
        self._dirty = await self._repository.get_status()
        self._dirty_updated.emit()
        await self._refresh_selected()

    async def _refresh_selected(self) -> None:
        if self._diff_option == DiffOption.DIRTY:
            self._selected = dict(self._dirty)
        else:
            self._selected = await self._repository.get_changed_files(await self._base_revision())
        log.debug(
            "%s: %d selected changes (%s)",
            self._repository.root,
            len(self._selected),
            self._diff_option,
        )
        self._selected_updated.emit()

    async def fetch_diff(self, file_path: str) -> RepositoryDiff:
        base = await self._base_revision()
        committed = await self._repository.get_file_at_revision(base, file_path)
        revision_info = await self._repository.get_revision_info(base)
        return RepositoryDiff(committed_contents=committed, revision_info=revision_info)

    def set_diff_option(self, option: DiffOption) -> None:
        if option == self._diff_option:
            return
        self._diff_option = option
        if self._active:
            self._tasks.spawn(self._refresh_selected(), name="git-selected-refresh")

    async def set_compare_revision(self, revision: RevisionInfo) -> None:
        self._compare_revision = revision.hash
        self._revisions_state = None
        await self._refresh_selected()
        self._revisions_changed.emit()

    async def get_cached_revisions_state(self) -> RevisionsState:
        if self._revisions_state is None:
            revisions = await self._repository.get_recent_revisions(self._revisions_limit)
            head = revisions[0].id if revisions else 0
            compare = await self._repository.resolve_revision(self._compare_revision)
            compare_id = next(
                (r.id for r in revisions if compare and compare.startswith(r.hash)),
                head,
            )
            self._revisions_state = RevisionsState(
                revisions=tuple(revisions),
                commit_id=head,
                compare_commit_id=compare_id,
            )
        return self._revisions_state

    def refresh_revisions_state(self) -> None:
        self._revisions_state = None
        self._tasks.spawn(self._reload_revisions(), name="git-revisions-refresh")

    async def _reload_revisions(self) -> None:
        await self.get_cached_revisions_state()
        await self.refresh()
        self._revisions_changed.emit()

    def activate(self) -> None:
        if self._active:
            return
        self._active = True
        self._tasks.spawn(self.refresh(), name="git-status-refresh")

    def deactivate(self) -> None:
        self._active = False

    @property
    def pending(self) -> int:
        return self._tasks.pending

    async def wait_idle(self) -> None:
        await self._tasks.drain()

    def dispose(self) -> None:
        self._active = False
        self._tasks.cancel_all()
        self._dirty_updated.clear()
        self._selected_updated.clear()
        self._revisions_changed.clear()
