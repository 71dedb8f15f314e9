"""Collaborator contracts the diff view core drives or depends on."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, TypeAlias

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Mapping, Sequence

    from diffview.core.events import Disposable
    from diffview.core.models.entities import (
        CleanupResult,
        ProgressMessage,
        RepositoryDiff,
        ReviewRef,
        RevisionInfo,
        RevisionsState,
    )
    from diffview.core.models.enums import AmendMode, DiffOption, FileChangeStatus


class Repository(Protocol):
    """A version-controlled working copy."""

    @property
    def type(self) -> str: ...

    def get_project_directory(self) -> str: ...

    def commit(self, message: str) -> AsyncIterator[ProgressMessage]:
        """Create a commit, streaming progress until completion."""
        ...

    def amend(self, message: str, mode: AmendMode) -> AsyncIterator[ProgressMessage]:
        """Amend the head commit, streaming progress until completion."""
        ...

    async def get_head_commit_message(self) -> str | None: ...

    async def get_template_commit_message(self) -> str | None: ...


class DiffSource(Protocol):
    """Per-repository source of change sets and file diffs (a "stack")."""

    def get_repository(self) -> Repository: ...

    async def fetch_diff(self, file_path: str) -> RepositoryDiff: ...

    def get_dirty_file_changes(self) -> Mapping[str, FileChangeStatus]: ...

    def get_selected_file_changes(self) -> Mapping[str, FileChangeStatus]: ...

    def set_diff_option(self, option: DiffOption) -> None: ...

    async def set_compare_revision(self, revision: RevisionInfo) -> None: ...

    async def get_cached_revisions_state(self) -> RevisionsState: ...

    def refresh_revisions_state(self) -> None: ...

    def activate(self) -> None: ...

    def deactivate(self) -> None: ...

    def dispose(self) -> None: ...

    def on_did_update_dirty_file_changes(self, callback: Callable[[], None]) -> Disposable: ...

    def on_did_update_selected_file_changes(self, callback: Callable[[], None]) -> Disposable: ...

    def on_did_change_revisions_state(self, callback: Callable[[], None]) -> Disposable: ...


DiffSourceFactory: TypeAlias = "Callable[[Repository, DiffOption], DiffSource]"


class ProjectHost(Protocol):
    """The editor's set of open project repositories."""

    def get_repositories(self) -> Sequence[Repository | None]: ...

    def repository_for_path(self, path: str) -> Repository | None: ...

    def on_did_change_paths(self, callback: Callable[[], None]) -> Disposable: ...


class ReviewService(Protocol):
    """Code-review service that creates and updates revisions."""

    def create_revision(
        self,
        path: str,
        lint_excuse: str | None,
    ) -> AsyncIterator[ProgressMessage]: ...

    def update_revision(
        self,
        path: str,
        message: str,
        allow_untracked: bool,
        lint_excuse: str | None,
    ) -> AsyncIterator[ProgressMessage]: ...


class TextBuffer(Protocol):
    """A live editor buffer."""

    def get_text(self) -> str: ...

    def is_modified(self) -> bool: ...

    async def save(self) -> None: ...

    def on_did_reload(self, callback: Callable[[], None]) -> Disposable: ...

    def on_did_destroy(self, callback: Callable[[], None]) -> Disposable: ...

    def on_did_change_modified(self, callback: Callable[[], None]) -> Disposable: ...

    def on_did_stop_changing(self, callback: Callable[[], None]) -> Disposable: ...


class BufferProvider(Protocol):
    def buffer_for_path(self, path: str) -> TextBuffer: ...

    async def load_buffer(self, path: str) -> TextBuffer: ...


class Notifier(Protocol):
    """Presents outcomes to the user. Never affects control flow."""

    def success(self, message: str, detail: str | None = None) -> None: ...

    def error(self, message: str, detail: str | None = None) -> None: ...

    def info(self, message: str, detail: str | None = None) -> None: ...

    def internal_error(self, error: BaseException) -> None: ...


class CleanupPrompt(Protocol):
    """Asks the user to resolve uncommitted changes before publishing."""

    async def __call__(
        self,
        repository: Repository,
        commit_message: str | None,
        should_rebase_on_amend: bool,
    ) -> CleanupResult | None: ...


class UIProvider(Protocol):
    async def compose_ui_elements(self, file_path: str) -> list[Any]: ...


ReviewReferenceParser: TypeAlias = "Callable[[str], ReviewRef | None]"
