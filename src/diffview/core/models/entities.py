"""Immutable value types shared by the diff view core."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from diffview.core.models.enums import (
    CommitMode,
    CommitModeState,
    PublishMode,
    PublishModeState,
    ViewMode,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from diffview.core.models.enums import FileChangeStatus

NO_FILE_SELECTED = "No file selected"


@dataclass(frozen=True)
class RevisionInfo:
    """A single revision in a repository's history."""

    id: int
    hash: str
    title: str = ""
    author: str = ""
    bookmarks: tuple[str, ...] = ()
    timestamp: float | None = None


@dataclass(frozen=True)
class RevisionsState:
    """Snapshot of the active repository's revision history."""

    revisions: tuple[RevisionInfo, ...]
    commit_id: int | None = None
    compare_commit_id: int | None = None


@dataclass(frozen=True)
class RepositoryDiff:
    """Committed side of a file diff, as returned by a diff source."""

    committed_contents: str
    revision_info: RevisionInfo


@dataclass(frozen=True)
class FileDiffState:
    revision_info: RevisionInfo
    committed_contents: str
    filesystem_contents: str


@dataclass(frozen=True)
class ReviewRef:
    """A code-review revision referenced from a commit message."""

    name: str
    url: str
    id: str | None = None


@dataclass(frozen=True)
class CleanupResult:
    amended: bool
    allow_untracked: bool


@dataclass(frozen=True)
class ProgressMessage:
    """One line of streamed progress from a commit or review operation."""

    level: str
    text: str


@dataclass(frozen=True)
class DiffEntityOptions:
    file: str | None = None
    directory: str | None = None
    view_mode: ViewMode | None = None
    commit_mode: CommitMode | None = None


@dataclass(frozen=True)
class ViewState:
    """The whole diff view state. Replaced wholesale on every change."""

    file_path: str = ""
    old_contents: str = ""
    new_contents: str = ""
    from_revision_title: str = NO_FILE_SELECTED
    to_revision_title: str = NO_FILE_SELECTED
    compare_revision_info: RevisionInfo | None = None
    inline_components: tuple[Any, ...] = ()
    view_mode: ViewMode = ViewMode.BROWSE
    commit_message: str | None = None
    commit_mode: CommitMode = CommitMode.COMMIT
    commit_mode_state: CommitModeState = CommitModeState.READY
    should_rebase_on_amend: bool = True
    publish_message: str | None = None
    publish_mode: PublishMode = PublishMode.CREATE
    publish_mode_state: PublishModeState = PublishModeState.READY
    head_commit_message: str | None = None
    dirty_file_changes: Mapping[str, FileChangeStatus] = field(default_factory=dict)
    selected_file_changes: Mapping[str, FileChangeStatus] = field(default_factory=dict)
    show_non_hg_repos: bool = True
    revisions_state: RevisionsState | None = None


def initial_file_change_state() -> dict[str, Any]:
    """Field values that describe "no file open"."""
    return {
        "file_path": "",
        "old_contents": "",
        "new_contents": "",
        "from_revision_title": NO_FILE_SELECTED,
        "to_revision_title": NO_FILE_SELECTED,
        "compare_revision_info": None,
    }


def initial_state(
    *,
    should_rebase_on_amend: bool = True,
    show_non_hg_repos: bool = True,
) -> ViewState:
    return ViewState(
        should_rebase_on_amend=should_rebase_on_amend,
        show_non_hg_repos=show_non_hg_repos,
    )
