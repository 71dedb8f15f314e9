from __future__ import annotations

import asyncio
import logging

import pytest
from hypothesis import given
from hypothesis import strategies as st

from diffview.core.utils import (
    BackgroundTasks,
    convert_newlines,
    first_contained,
    map_filter,
    map_union,
    path_contains,
    serialize_async_call,
)


async def test_background_tasks_spawn_logs_exceptions_and_reports_them(caplog) -> None:
    errors: list[BaseException] = []
    tasks = BackgroundTasks(on_error=errors.append)

    async def _boom() -> None:
        raise RuntimeError("background-failure")

    with caplog.at_level(logging.ERROR):
        tasks.spawn(_boom(), name="boom-task")
        await tasks.drain()
        await asyncio.sleep(0)

    assert any("Background task failed" in message for message in caplog.messages)
    assert [str(error) for error in errors] == ["background-failure"]


async def test_when_tasks_spawn_more_tasks_then_drain_waits_for_all_of_them() -> None:
    tasks = BackgroundTasks()
    finished: list[str] = []

    async def _child() -> None:
        await asyncio.sleep(0)
        finished.append("child")

    async def _parent() -> None:
        tasks.spawn(_child())
        finished.append("parent")

    tasks.spawn(_parent())
    await tasks.drain()

    assert finished == ["parent", "child"]
    assert tasks.pending == 0


async def test_when_shutdown_then_pending_tasks_are_cancelled() -> None:
    tasks = BackgroundTasks()
    never = asyncio.Event()
    task = tasks.spawn(never.wait())

    await tasks.shutdown(timeout=0.5)

    assert task.cancelled()


async def test_when_calls_overlap_then_they_coalesce_into_one_follow_up_run() -> None:
    runs = 0
    release = asyncio.Event()

    async def _work() -> int:
        nonlocal runs
        runs += 1
        current = runs
        await release.wait()
        return current

    call = serialize_async_call(_work)
    first = call()
    second = call()
    third = call()

    assert second is third
    assert first is not second

    release.set()

    assert await first == 1
    assert await second == 2
    assert runs == 2


async def test_when_no_run_is_in_flight_then_call_starts_immediately() -> None:
    runs: list[int] = []

    async def _work() -> None:
        runs.append(1)

    call = serialize_async_call(_work)
    await call()
    await call()

    assert runs == [1, 1]


async def test_when_a_run_fails_then_its_callers_see_the_error_and_follow_up_still_runs() -> None:
    attempts = 0
    release = asyncio.Event()

    async def _work() -> str:
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            await release.wait()
            raise RuntimeError("first-run-failed")
        return "recovered"

    call = serialize_async_call(_work)
    first = call()
    follow_up = call()
    release.set()

    with pytest.raises(RuntimeError, match="first-run-failed"):
        await first
    assert await follow_up == "recovered"


def test_map_union_merges_left_to_right() -> None:
    assert map_union({"a": 1}, {"b": 2}, {"a": 3}) == {"a": 3, "b": 2}


def test_map_filter_keeps_selected_keys() -> None:
    assert map_filter({"a": 1, "b": 2}, lambda key: key == "b") == {"b": 2}


@pytest.mark.parametrize(
    ("root", "path", "expected"),
    [
        pytest.param("/work/r1", "/work/r1", True, id="root-itself"),
        pytest.param("/work/r1", "/work/r1/a.txt", True, id="child"),
        pytest.param("/work/r1/", "/work/r1/src/b.py", True, id="trailing-separator"),
        pytest.param("/work/r1", "/work/r10/a.txt", False, id="sibling-prefix"),
        pytest.param("/work/r1", "/work/a.txt", False, id="outside"),
        pytest.param("", "/work/a.txt", False, id="empty-root"),
    ],
)
def test_path_contains(root: str, path: str, expected: bool) -> None:
    assert path_contains(root, path) is expected


@given(st.lists(st.sampled_from(["a", "b", "c"]), min_size=1, max_size=4))
def test_every_path_built_under_a_root_is_contained_by_it(parts: list[str]) -> None:
    assert path_contains("/work/r1", "/work/r1/" + "/".join(parts))


def test_first_contained_returns_first_match_in_order() -> None:
    paths = ["/work/r2/x", "/work/r1/src/b.py", "/work/r1/a.txt"]

    assert first_contained(paths, "/work/r1") == "/work/r1/src/b.py"
    assert first_contained(paths, "/work/r3") is None


def test_convert_newlines_expands_literal_sequences() -> None:
    assert convert_newlines("Summary:\\n\\nTest Plan:") == "Summary:\n\nTest Plan:"
