"""Aggregated and mode-filtered change maps."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeAlias

from diffview.core.errors import UnrecognizedModeError
from diffview.core.models.enums import ViewMode
from diffview.core.utils import map_filter, map_union, path_contains

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from diffview.core.models.enums import FileChangeStatus
    from diffview.core.ports import DiffSource

ChangeMap: TypeAlias = "Mapping[str, FileChangeStatus]"


@dataclass(frozen=True)
class FilteredChanges:
    selected_file_changes: dict[str, FileChangeStatus]
    show_non_hg_repos: bool


def aggregate_dirty_changes(stacks: Iterable[DiffSource]) -> dict[str, FileChangeStatus]:
    return map_union(*(stack.get_dirty_file_changes() for stack in stacks))


def aggregate_selected_changes(stacks: Iterable[DiffSource]) -> dict[str, FileChangeStatus]:
    return map_union(*(stack.get_selected_file_changes() for stack in stacks))


def filter_selected_changes(
    selected: ChangeMap,
    view_mode: ViewMode,
    active_root: str | None,
) -> FilteredChanges:
    """Apply the view mode's visibility rule to the selected changes.

    Commit and publish work on the active repository only. Browse shows every
    repository, including paths outside managed repositories.
    """
    match view_mode:
        case ViewMode.COMMIT | ViewMode.PUBLISH:
            if active_root is None:
                filtered = dict(selected)
            else:
                filtered = map_filter(selected, lambda path: path_contains(active_root, path))
            return FilteredChanges(selected_file_changes=filtered, show_non_hg_repos=False)
        case ViewMode.BROWSE:
            return FilteredChanges(selected_file_changes=dict(selected), show_non_hg_repos=True)
        case _:
            raise UnrecognizedModeError(f"Unrecognized view mode: {view_mode!r}")
