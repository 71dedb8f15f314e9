"""Git output parsing and the git-backed repository."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from diffview.adapters.git.command import GitCommandResult, GitCommandRunner
from diffview.core.models.entities import ProgressMessage, RevisionInfo
from diffview.core.models.enums import AmendMode, FileChangeStatus

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

log = logging.getLogger(__name__)

GIT_TYPE = "git"
EMPTY_TREE = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"
_LOG_FORMAT = "%H%x00%s%x00%an%x00%ct"

# ---------------------------------------------------------------------------
# Output parsing
# ---------------------------------------------------------------------------


def parse_porcelain_status(output: str, root: Path) -> dict[str, FileChangeStatus]:
    """Parse ``git status --porcelain -z`` into absolute path → status."""
    changes: dict[str, FileChangeStatus] = {}
    entries = output.split("\0")
    index = 0
    while index < len(entries):
        entry = entries[index]
        index += 1
        if len(entry) < 4:
            continue
        code, path = entry[:2], entry[3:]
        if code[0] in "RC":
            # The source path of a rename or copy follows as its own entry.
            index += 1
        status = status_from_porcelain(code)
        if status is not None:
            changes[str(root / path)] = status
    return changes


def status_from_porcelain(code: str) -> FileChangeStatus | None:
    match code:
        case "??":
            return FileChangeStatus.UNTRACKED
        case "!!":
            return FileChangeStatus.IGNORED
        case _ if "A" in code:
            return FileChangeStatus.ADDED
        case _ if code[0] == "D":
            return FileChangeStatus.REMOVED
        case _ if code[1] == "D":
            return FileChangeStatus.MISSING
        case "  ":
            return None
        case _:
            return FileChangeStatus.MODIFIED


def parse_name_status(output: str, root: Path) -> dict[str, FileChangeStatus]:
    """Parse ``git diff --name-status`` into absolute path → status."""
    changes: dict[str, FileChangeStatus] = {}
    for line in output.splitlines():
        parts = line.split("\t")
        if len(parts) < 2 or not parts[0]:
            continue
        letter, path = parts[0][0], parts[-1]
        match letter:
            case "A" | "C":
                status = FileChangeStatus.ADDED
            case "D":
                status = FileChangeStatus.REMOVED
            case _:
                status = FileChangeStatus.MODIFIED
        changes[str(root / path)] = status
    return changes


def parse_log_records(output: str) -> list[tuple[str, str, str, float | None]]:
    """Parse log lines produced with the ``%H%x00%s%x00%an%x00%ct`` format."""
    records: list[tuple[str, str, str, float | None]] = []
    for line in output.splitlines():
        fields = line.split("\0")
        if len(fields) != 4:
            continue
        commit_hash, subject, author, timestamp = fields
        try:
            when: float | None = float(timestamp)
        except ValueError:
            when = None
        records.append((commit_hash, subject, author, when))
    return records


def has_tracked_uncommitted_changes(status_output: str) -> bool:
    """Check ``git status --porcelain`` output for tracked uncommitted changes."""
    for raw_line in status_output.splitlines():
        line = raw_line.rstrip()
        if line and not line.startswith("??"):
            return True
    return False


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class GitRepository:
    """A git working copy. Equal to any other instance for the same root."""

    def __init__(self, root: Path | str, runner: GitCommandRunner | None = None) -> None:
        self._root = Path(root).resolve()
        self._runner = runner or GitCommandRunner()

    def __eq__(self, other: object) -> bool:
        return isinstance(other, GitRepository) and other._root == self._root

    def __hash__(self) -> int:
        return hash((GIT_TYPE, self._root))

    def __repr__(self) -> str:
        return f"GitRepository({str(self._root)!r})"

    @property
    def type(self) -> str:
        return GIT_TYPE

    @property
    def root(self) -> Path:
        return self._root

    def get_project_directory(self) -> str:
        return str(self._root)

    async def run_git(self, *args: str, check: bool = True) -> GitCommandResult:
        return await self._runner.run(self._root, args, check=check)

    async def commit(self, message: str) -> AsyncIterator[ProgressMessage]:
        yield ProgressMessage(level="log", text="Creating commit...\n")
        result = await self.run_git("commit", "--all", "--message", message)
        for line in result.stdout.splitlines():
            yield ProgressMessage(level="info", text=f"{line}\n")

    async def amend(self, message: str, mode: AmendMode) -> AsyncIterator[ProgressMessage]:
        # HEAD has no checked-out descendants in git, so both modes amend in place.
        log.debug("Amending %s (%s)", self._root, mode)
        yield ProgressMessage(level="log", text="Amending commit...\n")
        result = await self.run_git("commit", "--all", "--amend", "--message", message)
        for line in result.stdout.splitlines():
            yield ProgressMessage(level="info", text=f"{line}\n")

    async def get_head_commit_message(self) -> str | None:
        result = await self.run_git("log", "-1", "--format=%B", check=False)
        if result.returncode != 0:
            return None
        return result.stdout.rstrip("\n")

    async def get_template_commit_message(self) -> str | None:
        result = await self.run_git("config", "--get", "commit.template", check=False)
        template = result.stdout.strip()
        if result.returncode != 0 or not template:
            return None
        path = Path(template).expanduser()
        if not path.is_absolute():
            path = self._root / path
        if not path.exists():
            log.warning("Commit template %s does not exist", path)
            return None
        return await asyncio.to_thread(path.read_text, encoding="utf-8")

    async def get_status(self) -> dict[str, FileChangeStatus]:
        result = await self.run_git("status", "--porcelain", "-z")
        return parse_porcelain_status(result.stdout, self._root)

    async def has_uncommitted_changes(self) -> bool:
        result = await self.run_git("status", "--porcelain", check=False)
        return has_tracked_uncommitted_changes(result.stdout)

    async def resolve_revision(self, revision: str) -> str | None:
        result = await self.run_git(
            "rev-parse", "--verify", "--quiet", f"{revision}^{{commit}}", check=False
        )
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    async def get_changed_files(self, base: str) -> dict[str, FileChangeStatus]:
        """Working copy against ``base``, plus untracked files."""
        result = await self.run_git("diff", "--name-status", base)
        changes = parse_name_status(result.stdout, self._root)
        for path, status in (await self.get_status()).items():
            if status == FileChangeStatus.UNTRACKED:
                changes[path] = status
        return changes

    async def get_file_at_revision(self, revision: str, file_path: str) -> str:
        relative = Path(file_path).resolve().relative_to(self._root).as_posix()
        result = await self.run_git("show", f"{revision}:{relative}", check=False)
        if result.returncode != 0:
            return ""
        return result.stdout

    async def get_revision_info(self, revision: str) -> RevisionInfo:
        result = await self.run_git("log", "-1", f"--format={_LOG_FORMAT}", revision, check=False)
        records = parse_log_records(result.stdout)
        if result.returncode != 0 or not records:
            return RevisionInfo(id=0, hash=revision)
        commit_hash, subject, author, timestamp = records[0]
        count = await self.run_git("rev-list", "--count", commit_hash, check=False)
        bookmarks = await self.get_bookmarks()
        return RevisionInfo(
            id=int(count.stdout.strip() or 0) if count.returncode == 0 else 0,
            hash=commit_hash[:12],
            title=subject,
            author=author,
            bookmarks=tuple(bookmarks.get(commit_hash, ())),
            timestamp=timestamp,
        )

    async def get_bookmarks(self) -> dict[str, list[str]]:
        """Local branch names keyed by the commit they point at."""
        result = await self.run_git(
            "for-each-ref", "--format=%(objectname) %(refname:short)", "refs/heads", check=False
        )
        bookmarks: dict[str, list[str]] = {}
        for line in result.stdout.splitlines():
            commit_hash, _, name = line.partition(" ")
            if name:
                bookmarks.setdefault(commit_hash, []).append(name)
        return bookmarks

    async def get_recent_revisions(self, limit: int = 20) -> list[RevisionInfo]:
        result = await self.run_git("log", f"-n{limit}", f"--format={_LOG_FORMAT}", check=False)
        if result.returncode != 0:
            return []
        count = await self.run_git("rev-list", "--count", "HEAD", check=False)
        total = int(count.stdout.strip() or 0) if count.returncode == 0 else 0
        bookmarks = await self.get_bookmarks()
        return [
            RevisionInfo(
                id=total - index,
                hash=commit_hash[:12],
                title=subject,
                author=author,
                bookmarks=tuple(bookmarks.get(commit_hash, ())),
                timestamp=timestamp,
            )
            for index, (commit_hash, subject, author, timestamp) in enumerate(
                parse_log_records(result.stdout)
            )
        ]
