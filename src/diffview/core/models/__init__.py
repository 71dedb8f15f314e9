"""Domain models for the diff view core."""

from diffview.core.models.entities import (
    NO_FILE_SELECTED,
    CleanupResult,
    DiffEntityOptions,
    FileDiffState,
    ProgressMessage,
    RepositoryDiff,
    ReviewRef,
    RevisionInfo,
    RevisionsState,
    ViewState,
    initial_file_change_state,
    initial_state,
)
from diffview.core.models.enums import (
    AmendMode,
    CommitMode,
    CommitModeState,
    DiffOption,
    FileChangeStatus,
    PublishMode,
    PublishModeState,
    ViewMode,
    view_mode_to_diff_option,
)

__all__ = [
    "NO_FILE_SELECTED",
    "AmendMode",
    "CleanupResult",
    "CommitMode",
    "CommitModeState",
    "DiffEntityOptions",
    "DiffOption",
    "FileChangeStatus",
    "FileDiffState",
    "ProgressMessage",
    "PublishMode",
    "PublishModeState",
    "RepositoryDiff",
    "ReviewRef",
    "RevisionInfo",
    "RevisionsState",
    "ViewMode",
    "ViewState",
    "initial_file_change_state",
    "initial_state",
    "view_mode_to_diff_option",
]
