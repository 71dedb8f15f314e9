from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest

from diffview.adapters.git.command import GitCommandError, GitCommandRunner

_CWD = Path("/work/r1")


class _FinishedGit:
    def __init__(self, returncode: int, stdout: bytes = b"", stderr: bytes = b"") -> None:
        self.returncode = returncode
        self.communicate = AsyncMock(return_value=(stdout, stderr))


class _HangingGit:
    def __init__(self) -> None:
        self.returncode = None
        self.kill = Mock()
        self.communicate = AsyncMock(side_effect=[TimeoutError(), (b"", b"")])


def _spawned(monkeypatch: pytest.MonkeyPatch, *processes: object) -> AsyncMock:
    spawn = AsyncMock(side_effect=list(processes))
    monkeypatch.setattr("diffview.adapters.git.command._spawn", spawn)
    return spawn


async def test_successful_command_output_is_decoded(monkeypatch: pytest.MonkeyPatch) -> None:
    spawn = _spawned(monkeypatch, _FinishedGit(0, stdout="M  é.txt\n".encode()))

    result = await GitCommandRunner().run(_CWD, ("status", "--porcelain"))

    assert result.ok
    assert result.stdout == "M  é.txt\n"
    spawn.assert_awaited_once_with("git", ("status", "--porcelain"), _CWD)


async def test_when_checked_command_fails_then_stderr_is_the_reason(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _spawned(monkeypatch, _FinishedGit(128, stderr=b"fatal: not a git repository\n"))

    with pytest.raises(GitCommandError) as exc_info:
        await GitCommandRunner().run(_CWD, ("rev-parse", "--show-toplevel"))

    error = exc_info.value
    assert error.returncode == 128
    assert error.git_args == ("rev-parse", "--show-toplevel")
    assert error.reason == "fatal: not a git repository"
    assert str(error) == (
        "`git rev-parse --show-toplevel` failed (exit 128): fatal: not a git repository"
    )


async def test_when_unchecked_command_fails_then_the_result_is_returned(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _spawned(monkeypatch, _FinishedGit(1))

    result = await GitCommandRunner().run(_CWD, ("config", "--get", "commit.template"), check=False)

    assert result.returncode == 1
    assert not result.ok


async def test_when_the_index_is_locked_then_the_command_is_retried(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    locked = _FinishedGit(128, stderr=b"fatal: Unable to create '.git/index.lock': File exists.")
    spawn = _spawned(monkeypatch, locked, _FinishedGit(0, stdout=b"[main abc123] Bump\n"))

    result = await GitCommandRunner(lock_retry_delay=0).run(_CWD, ("commit", "-m", "Bump"))

    assert result.stdout == "[main abc123] Bump\n"
    assert spawn.await_count == 2


async def test_when_the_index_stays_locked_then_retries_run_out(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    locked = [_FinishedGit(128, stderr=b"index.lock exists") for _ in range(3)]
    spawn = _spawned(monkeypatch, *locked)

    with pytest.raises(GitCommandError, match="index.lock"):
        await GitCommandRunner(lock_retries=2, lock_retry_delay=0).run(_CWD, ("commit",))

    assert spawn.await_count == 3


async def test_other_failures_are_not_retried(monkeypatch: pytest.MonkeyPatch) -> None:
    spawn = _spawned(monkeypatch, _FinishedGit(1, stderr=b"nothing to commit"))

    with pytest.raises(GitCommandError):
        await GitCommandRunner(lock_retry_delay=0).run(_CWD, ("commit",))

    assert spawn.await_count == 1


async def test_when_git_times_out_then_it_is_killed_and_reported(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    process = _HangingGit()
    _spawned(monkeypatch, process)

    with pytest.raises(GitCommandError) as exc_info:
        await GitCommandRunner(timeout=0.01).run(_CWD, ("log",), check=False)

    assert exc_info.value.timed_out is True
    assert "timed out" in str(exc_info.value)
    process.kill.assert_called_once_with()
    assert process.communicate.await_count == 2


async def test_when_git_cannot_start_then_a_command_error_is_raised(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(
        "diffview.adapters.git.command._spawn",
        AsyncMock(side_effect=FileNotFoundError("No such file or directory: 'git'")),
    )

    with pytest.raises(GitCommandError, match="could not start git"):
        await GitCommandRunner().run(_CWD, ("status",), check=False)


async def test_a_missing_working_directory_is_reported_through_the_runner(tmp_path: Path) -> None:
    with pytest.raises(GitCommandError, match="could not start"):
        await GitCommandRunner().run(tmp_path / "missing", ("status",))
