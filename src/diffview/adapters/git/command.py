"""Running git as a subprocess, one invocation per command."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

log = logging.getLogger(__name__)

# git prints this when another process holds the index lock.
INDEX_LOCK_MARKER = "index.lock"


@dataclass(frozen=True)
class GitCommandResult:
    """Decoded result of a git command invocation."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def index_locked(self) -> bool:
        return not self.ok and INDEX_LOCK_MARKER in self.stderr


class GitCommandError(RuntimeError):
    """git could not be started, timed out, or exited with a failure."""

    def __init__(
        self,
        git_args: Sequence[str],
        reason: str,
        *,
        returncode: int | None = None,
        timed_out: bool = False,
    ) -> None:
        self.git_args = tuple(git_args)
        self.reason = reason
        self.returncode = returncode
        self.timed_out = timed_out
        command = " ".join(("git", *self.git_args))
        status = f" (exit {returncode})" if returncode is not None else ""
        super().__init__(f"`{command}` failed{status}: {reason}")


async def _spawn(executable: str, args: Sequence[str], cwd: Path) -> asyncio.subprocess.Process:
    return await asyncio.create_subprocess_exec(
        executable,
        *args,
        cwd=str(cwd),
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )


class GitCommandRunner:
    """Run git commands in a working directory.

    A command that fails because another git process holds the index lock is
    retried up to ``lock_retries`` times. Anything else is reported as it came.
    """

    def __init__(
        self,
        timeout: float | None = 30.0,
        *,
        lock_retries: int = 2,
        lock_retry_delay: float = 0.1,
        executable: str = "git",
    ) -> None:
        self._timeout = timeout
        self._lock_retries = max(0, lock_retries)
        self._lock_retry_delay = max(0.0, lock_retry_delay)
        self._executable = executable

    async def run(self, cwd: Path, args: Sequence[str], *, check: bool = True) -> GitCommandResult:
        """Run ``git <args>`` in ``cwd``.

        With ``check`` a non-zero exit raises ``GitCommandError``; without it
        the result is returned for the caller to inspect. Start failures and
        timeouts raise either way.
        """
        retries = 0
        while True:
            result = await self._run_once(cwd, args)
            if not result.index_locked or retries >= self._lock_retries:
                break
            retries += 1
            log.debug("git %s found the index locked in %s (retry %d)", args[0], cwd, retries)
            await asyncio.sleep(self._lock_retry_delay)

        if check and not result.ok:
            reason = result.stderr.strip() or result.stdout.strip() or "non-zero exit status"
            raise GitCommandError(args, reason, returncode=result.returncode)
        return result

    async def _run_once(self, cwd: Path, args: Sequence[str]) -> GitCommandResult:
        try:
            process = await _spawn(self._executable, args, cwd)
        except OSError as exc:
            raise GitCommandError(args, f"could not start {self._executable}: {exc}") from exc

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self._timeout)
        except TimeoutError as exc:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            with contextlib.suppress(ProcessLookupError):
                await process.communicate()
            log.warning("git %s timed out in %s after %ss", args[0], cwd, self._timeout)
            raise GitCommandError(
                args, f"timed out after {self._timeout}s", timed_out=True
            ) from exc

        return GitCommandResult(
            returncode=process.returncode if process.returncode is not None else 1,
            stdout=(stdout or b"").decode("utf-8", errors="replace"),
            stderr=(stderr or b"").decode("utf-8", errors="replace"),
        )
