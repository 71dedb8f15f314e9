"""Project roots and the git repositories that contain them."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from diffview.adapters.git.command import GitCommandRunner
from diffview.adapters.git.operations import GitRepository
from diffview.core.events import Signal
from diffview.core.models.entities import CleanupResult
from diffview.core.models.enums import get_amend_mode
from diffview.core.utils import path_contains

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    from diffview.core.events import Disposable
    from diffview.core.ports import Repository

log = logging.getLogger(__name__)


async def find_repository_root(path: Path, runner: GitCommandRunner) -> Path | None:
    """Return the work-tree root containing ``path``, or None outside git."""
    cwd = path if path.is_dir() else path.parent
    if not cwd.exists():
        return None
    result = await runner.run(cwd, ("rev-parse", "--show-toplevel"), check=False)
    if result.returncode != 0:
        return None
    top = result.stdout.strip()
    return Path(top).resolve() if top else None


class GitProjectHost:
    """Open project roots mapped to their git repositories.

    Roots outside any git work tree are kept as ``None`` entries so callers can
    tell them apart from an empty project list.
    """

    def __init__(self, runner: GitCommandRunner | None = None) -> None:
        self._runner = runner or GitCommandRunner()
        self._roots: list[Path] = []
        self._repositories: dict[Path, GitRepository | None] = {}
        self._paths_changed = Signal("project-paths")

    @property
    def roots(self) -> tuple[Path, ...]:
        return tuple(self._roots)

    def get_repositories(self) -> Sequence[Repository | None]:
        return [self._repositories.get(root) for root in self._roots]

    def repository_for_path(self, path: str) -> Repository | None:
        best: GitRepository | None = None
        for repository in self._repositories.values():
            if repository is None or not path_contains(str(repository.root), path):
                continue
            if best is None or len(str(repository.root)) > len(str(best.root)):
                best = repository
        return best

    def on_did_change_paths(self, callback: Callable[[], None]) -> Disposable:
        return self._paths_changed.subscribe(callback)

    async def set_roots(self, roots: Iterable[Path | str]) -> None:
        """Replace the open roots and rediscover their repositories."""
        resolved = list(dict.fromkeys(Path(root).resolve() for root in roots))
        repositories: dict[Path, GitRepository | None] = {}
        for root in resolved:
            if root in self._repositories:
                repositories[root] = self._repositories[root]
                continue
            top = await find_repository_root(root, self._runner)
            repositories[root] = GitRepository(top, self._runner) if top is not None else None
            if top is None:
                log.info("No git repository found for %s", root)
        self._roots = resolved
        self._repositories = repositories
        self._paths_changed.emit()

    async def add_root(self, root: Path | str) -> None:
        await self.set_roots([*self._roots, Path(root)])

    async def remove_root(self, root: Path | str) -> None:
        target = Path(root).resolve()
        await self.set_roots([r for r in self._roots if r != target])

    def dispose(self) -> None:
        self._paths_changed.clear()


class AutoCleanupPrompt:
    """Resolves uncommitted changes before publishing without asking.

    Tracked changes are amended into the head commit when ``amend_dirty`` is set;
    otherwise publishing is cancelled while they exist.
    """

    def __init__(self, *, amend_dirty: bool = False) -> None:
        self._amend_dirty = amend_dirty

    async def __call__(
        self,
        repository: Repository,
        commit_message: str | None,
        should_rebase_on_amend: bool,
    ) -> CleanupResult | None:
        if not isinstance(repository, GitRepository):
            return CleanupResult(amended=False, allow_untracked=False)
        if not await repository.has_uncommitted_changes():
            return CleanupResult(amended=False, allow_untracked=False)
        if not self._amend_dirty:
            log.info("Publishing cancelled: %s has uncommitted changes", repository.root)
            return None

        message = commit_message or await repository.get_head_commit_message() or ""
        async for progress in repository.amend(message, get_amend_mode(should_rebase_on_amend)):
            log.debug("%s", progress.text.rstrip())
        return CleanupResult(amended=True, allow_untracked=True)
