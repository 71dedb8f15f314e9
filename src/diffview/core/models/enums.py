"""Core domain enums."""

from __future__ import annotations

from enum import StrEnum

from diffview.core.errors import UnrecognizedModeError


class ViewMode(StrEnum):
    """What the open file is diffed against."""

    BROWSE = "browse"
    COMMIT = "commit"
    PUBLISH = "publish"


class DiffOption(StrEnum):
    """Comparison basis requested from a diff source."""

    DIRTY = "DIRTY"
    LAST_COMMIT = "LAST_COMMIT"
    COMPARE_COMMIT = "COMPARE_COMMIT"


class CommitMode(StrEnum):
    """Write operation performed by the commit workflow."""

    COMMIT = "Commit"
    AMEND = "Amend"


class CommitModeState(StrEnum):
    READY = "Ready"
    LOADING_COMMIT_MESSAGE = "Loading Commit Message"
    AWAITING_COMMIT = "Awaiting Commit"


class PublishMode(StrEnum):
    """Whether publishing creates a new review or updates an existing one."""

    CREATE = "Create"
    UPDATE = "Update"


class PublishModeState(StrEnum):
    READY = "Ready"
    LOADING_PUBLISH_MESSAGE = "Loading Publish Message"
    AWAITING_PUBLISH = "Awaiting Publish"
    PUBLISH_ERROR = "Publish Error"


class AmendMode(StrEnum):
    """How descendants of an amended commit are handled."""

    CLEAN = "clean"
    REBASE = "rebase"


class FileChangeStatus(StrEnum):
    """Change status tag attached to a changed path."""

    ADDED = "A"
    MODIFIED = "M"
    MISSING = "!"
    REMOVED = "R"
    UNTRACKED = "?"
    IGNORED = "I"
    CLEAN = "C"


def view_mode_to_diff_option(view_mode: ViewMode) -> DiffOption:
    """Return the diff option fetched for a view mode."""
    match view_mode:
        case ViewMode.COMMIT:
            return DiffOption.DIRTY
        case ViewMode.PUBLISH:
            return DiffOption.LAST_COMMIT
        case ViewMode.BROWSE:
            return DiffOption.COMPARE_COMMIT
        case _:
            raise UnrecognizedModeError(f"Unrecognized view mode: {view_mode!r}")


def get_amend_mode(should_rebase_on_amend: bool) -> AmendMode:
    return AmendMode.REBASE if should_rebase_on_amend else AmendMode.CLEAN
