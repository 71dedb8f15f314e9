from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from diffview.core.errors import UnrecognizedModeError
from diffview.core.models.enums import DiffOption, FileChangeStatus, ViewMode
from diffview.core.services.changes import (
    aggregate_dirty_changes,
    aggregate_selected_changes,
    filter_selected_changes,
)
from diffview.core.utils import path_contains
from tests.helpers.fakes import FakeDiffSource, FakeRepository

_SELECTED = {
    "/work/r1/a.txt": FileChangeStatus.MODIFIED,
    "/work/r1/src/b.py": FileChangeStatus.ADDED,
    "/work/r2/c.txt": FileChangeStatus.REMOVED,
    "/elsewhere/d.txt": FileChangeStatus.UNTRACKED,
}


def test_aggregation_merges_every_stack() -> None:
    first = FakeDiffSource(FakeRepository("/work/r1"), DiffOption.DIRTY)
    second = FakeDiffSource(FakeRepository("/work/r2"), DiffOption.DIRTY)
    first.dirty = {"/work/r1/a.txt": FileChangeStatus.MODIFIED}
    second.dirty = {"/work/r2/c.txt": FileChangeStatus.ADDED}
    second.selected = {"/work/r2/c.txt": FileChangeStatus.ADDED}

    assert aggregate_dirty_changes([first, second]) == {
        "/work/r1/a.txt": FileChangeStatus.MODIFIED,
        "/work/r2/c.txt": FileChangeStatus.ADDED,
    }
    assert aggregate_selected_changes([first, second]) == second.selected
    assert aggregate_dirty_changes([]) == {}


@pytest.mark.parametrize("view_mode", [ViewMode.COMMIT, ViewMode.PUBLISH])
def test_commit_and_publish_only_show_the_active_repository(view_mode: ViewMode) -> None:
    filtered = filter_selected_changes(_SELECTED, view_mode, "/work/r1")

    assert filtered.selected_file_changes == {
        "/work/r1/a.txt": FileChangeStatus.MODIFIED,
        "/work/r1/src/b.py": FileChangeStatus.ADDED,
    }
    assert filtered.show_non_hg_repos is False


def test_when_no_repository_is_active_then_nothing_is_filtered_out() -> None:
    filtered = filter_selected_changes(_SELECTED, ViewMode.COMMIT, None)

    assert filtered.selected_file_changes == _SELECTED
    assert filtered.show_non_hg_repos is False


def test_browse_shows_everything() -> None:
    filtered = filter_selected_changes(_SELECTED, ViewMode.BROWSE, "/work/r1")

    assert filtered.selected_file_changes == _SELECTED
    assert filtered.show_non_hg_repos is True


def test_unknown_view_mode_is_rejected() -> None:
    with pytest.raises(UnrecognizedModeError):
        filter_selected_changes(_SELECTED, "review", "/work/r1")  # type: ignore[arg-type]


_paths = st.builds(
    lambda root, name: f"/work/{root}/{name}",
    st.sampled_from(["r1", "r2", "r10"]),
    st.sampled_from(["a.txt", "b.py", "sub/c.md"]),
)


@given(
    st.dictionaries(_paths, st.sampled_from(list(FileChangeStatus)), max_size=8),
    st.sampled_from([ViewMode.COMMIT, ViewMode.PUBLISH]),
)
def test_filtered_changes_are_a_subset_inside_the_active_root(
    selected: dict[str, FileChangeStatus],
    view_mode: ViewMode,
) -> None:
    filtered = filter_selected_changes(selected, view_mode, "/work/r1")

    assert set(filtered.selected_file_changes) <= set(selected)
    assert all(path_contains("/work/r1", path) for path in filtered.selected_file_changes)
    assert {
        path for path in selected if path_contains("/work/r1", path)
    } == set(filtered.selected_file_changes)
