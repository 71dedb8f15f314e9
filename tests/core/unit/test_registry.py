from __future__ import annotations

from dataclasses import replace
from typing import Any

import pytest
from hypothesis import given
from hypothesis import strategies as st

from diffview.core.errors import MissingRepositoryStackError, UnsupportedRepositoryError
from diffview.core.models.entities import NO_FILE_SELECTED
from diffview.core.models.enums import DiffOption, ViewMode
from diffview.core.services.registry import RepositoryRegistry
from diffview.core.store import StateStore
from tests.helpers.fakes import FakeDiffSource, FakeProjectHost, FakeRepository


class _Built:
    def __init__(self, repositories: list[FakeRepository | None]) -> None:
        self.store = StateStore()
        self.host = FakeProjectHost(repositories)
        self.sources: list[FakeDiffSource] = []
        self.registry = RepositoryRegistry(self.store, self.host, self._create)

    def _create(self, repository: Any, option: DiffOption) -> FakeDiffSource:
        source = FakeDiffSource(repository, option)
        self.sources.append(source)
        return source


def test_only_supported_repositories_get_a_stack() -> None:
    git = FakeRepository("/work/r1")
    hg = FakeRepository("/work/r2", vcs_type="hg")
    built = _Built([git, hg, None])

    built.registry.reconcile()

    assert [stack.get_repository() for stack in built.registry.stacks] == [git]
    assert built.registry.active_stack is built.registry.stacks[0]


def test_new_stacks_use_the_diff_option_of_the_current_view_mode() -> None:
    built = _Built([FakeRepository("/work/r1")])
    built.store.set_state(replace(built.store.state, view_mode=ViewMode.COMMIT))

    built.registry.reconcile()

    assert built.sources[0].diff_option == DiffOption.DIRTY


def test_when_active_repository_is_removed_then_another_one_becomes_active() -> None:
    first, second = FakeRepository("/work/r1"), FakeRepository("/work/r2")
    built = _Built([first, second])
    built.registry.reconcile()
    first_stack = built.registry.active_stack
    assert first_stack is not None

    built.host.set_repositories([second])
    built.registry.reconcile()

    assert first_stack.disposed  # type: ignore[attr-defined]
    assert built.registry.active_stack is built.registry.stack_for_repository(second)


def test_when_all_repositories_close_then_no_stack_is_active() -> None:
    built = _Built([FakeRepository("/work/r1")])
    built.registry.reconcile()

    built.host.set_repositories([])
    built.registry.reconcile()

    assert built.registry.stacks == []
    assert built.registry.active_stack is None


def test_when_registry_is_active_then_new_stacks_are_activated_immediately() -> None:
    built = _Built([FakeRepository("/work/r1")])
    built.registry.activate()

    built.host.set_repositories([FakeRepository("/work/r1"), FakeRepository("/work/r2")])
    built.registry.reconcile()

    assert all(source.active for source in built.sources)


def test_activation_announces_the_initial_active_stack() -> None:
    built = _Built([FakeRepository("/work/r1")])
    announced: list[Any] = []
    built.registry.active_stack_changed.subscribe(announced.append)

    built.registry.activate()

    assert announced == [built.registry.active_stack]


def test_when_open_file_repository_is_removed_then_file_state_resets() -> None:
    first, second = FakeRepository("/work/r1"), FakeRepository("/work/r2")
    built = _Built([first, second])
    built.registry.reconcile()
    built.store.set_state(
        replace(
            built.store.state,
            file_path="/work/r2/c.txt",
            old_contents="old",
            from_revision_title="abc123",
        )
    )
    removed: list[int] = []
    built.registry.active_file_removed.subscribe(lambda: removed.append(1))

    built.host.set_repositories([first])
    built.registry.reconcile()

    state = built.store.state
    assert state.file_path == ""
    assert state.old_contents == ""
    assert state.from_revision_title == NO_FILE_SELECTED
    assert removed == [1]


def test_when_open_file_repository_stays_then_file_state_is_kept() -> None:
    first, second = FakeRepository("/work/r1"), FakeRepository("/work/r2")
    built = _Built([first, second])
    built.registry.reconcile()
    built.store.set_state(replace(built.store.state, file_path="/work/r1/a.txt"))

    built.host.set_repositories([first])
    built.registry.reconcile()

    assert built.store.state.file_path == "/work/r1/a.txt"


def test_unsupported_path_error_names_both_types() -> None:
    built = _Built([FakeRepository("/work/hg", vcs_type="hg")])
    built.registry.reconcile()

    with pytest.raises(UnsupportedRepositoryError) as excinfo:
        built.registry.stack_for_path("/work/hg/a.txt")

    assert str(excinfo.value) == (
        "Diff view only supports `git` repositories, but found `hg` at path: `/work/hg/a.txt`"
    )


def test_path_outside_any_repository_is_unsupported() -> None:
    built = _Built([FakeRepository("/work/r1")])
    built.registry.reconcile()

    with pytest.raises(UnsupportedRepositoryError, match="found `no repository`"):
        built.registry.repository_for_path("/tmp/a.txt")


def test_supported_repository_without_a_stack_is_reported() -> None:
    built = _Built([])
    built.registry.reconcile()
    built.host.repositories = [FakeRepository("/work/r1")]

    with pytest.raises(MissingRepositoryStackError):
        built.registry.stack_for_path("/work/r1/a.txt")


def test_untracked_stack_cannot_become_active() -> None:
    built = _Built([FakeRepository("/work/r1")])
    built.registry.reconcile()
    stranger = FakeDiffSource(FakeRepository("/work/other"), DiffOption.DIRTY)

    with pytest.raises(MissingRepositoryStackError):
        built.registry.set_active_stack(stranger)


def test_setting_the_active_stack_applies_the_view_mode_option() -> None:
    built = _Built([FakeRepository("/work/r1"), FakeRepository("/work/r2")])
    built.registry.reconcile()
    built.store.set_state(replace(built.store.state, view_mode=ViewMode.PUBLISH))
    second = built.registry.stacks[1]

    moved = built.registry.set_active_stack(second)

    assert moved is True
    assert second.diff_option == DiffOption.LAST_COMMIT  # type: ignore[attr-defined]
    assert built.registry.set_active_stack(second) is False


def test_deactivate_clears_the_active_stack() -> None:
    built = _Built([FakeRepository("/work/r1")])
    built.registry.activate()

    built.registry.deactivate()

    assert built.registry.active_stack is None
    assert not built.sources[0].active
    assert built.registry.get_active_stack_dirty_file_changes() == {}


_ROOTS = ["/work/r1", "/work/r2", "/work/r3", "/work/r4"]


@given(st.lists(st.sets(st.sampled_from(_ROOTS)), min_size=1, max_size=6))
def test_active_stack_is_always_tracked_while_stacks_exist(steps: list[set[str]]) -> None:
    repositories = {root: FakeRepository(root) for root in _ROOTS}
    built = _Built([])
    built.registry.activate()

    for roots in steps:
        built.host.set_repositories([repositories[root] for root in sorted(roots)])
        built.registry.reconcile()

        stacks = built.registry.stacks
        assert {stack.get_repository().root for stack in stacks} == roots
        if stacks:
            assert built.registry.active_stack in stacks
        else:
            assert built.registry.active_stack is None
        assert all(not source.disposed for source in stacks)  # type: ignore[attr-defined]
